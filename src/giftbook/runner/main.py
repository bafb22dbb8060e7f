"""
CLI main entry point.
"""

import argparse
import json
import logging
import sys
from pathlib import Path

from ..config import Config, create_default_config, load_config
from ..errors import GiftbookError
from ..services import (
    BankLinkService,
    IngestionRequest,
    IngestionService,
    MembershipGate,
    summarize_ledger,
)
from ..state_store import StateStore
from ..web.auth import issue_token

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    """Configure logging."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format="%(asctime)s | %(levelname)-8s | %(name)s | %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )


def create_cli() -> argparse.ArgumentParser:
    """Create CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="giftbook",
        description="Ingest wedding-account bank transactions into the gift ledger",
    )

    parser.add_argument(
        "-c",
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Path to config file (default: config.yaml)",
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Enable verbose logging",
    )

    subparsers = parser.add_subparsers(dest="command", help="Command to run")

    # init command
    init_parser = subparsers.add_parser("init", help="Write a default config and create the state DB")
    init_parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite an existing config file",
    )

    # status command
    subparsers.add_parser("status", help="Show state store statistics")

    # create-event command
    event_parser = subparsers.add_parser("create-event", help="Create an event with its schedule")
    event_parser.add_argument("--title", type=str, help="Event title")
    event_parser.add_argument("--ceremony-date", type=str, help="YYYY-MM-DD")
    event_parser.add_argument("--start-time", type=str, help="HH:MM")
    event_parser.add_argument("--end-time", type=str, help="HH:MM")

    # add-member command
    member_parser = subparsers.add_parser("add-member", help="Add a member to an event")
    member_parser.add_argument("--event", required=True, help="Event ID")
    member_parser.add_argument("--user", required=True, help="User ID")
    member_parser.add_argument("--email", type=str, help="Member email")
    member_parser.add_argument("--role", default="member", choices=["owner", "member"])
    member_parser.add_argument("--side", choices=["groom", "bride"], help="Guest-list side")

    # ingest command
    ingest_parser = subparsers.add_parser(
        "ingest", help="Ingest transactions from a JSON request file"
    )
    ingest_parser.add_argument("--user", required=True, help="Caller user ID")
    ingest_parser.add_argument(
        "file",
        type=Path,
        help="JSON file with eventId, scrapeAccountId, startDate, endDate and data",
    )

    # link-start command
    link_start_parser = subparsers.add_parser("link-start", help="Start linking a bank account")
    link_start_parser.add_argument("--user", required=True, help="Caller user ID")
    link_start_parser.add_argument("--event", required=True, help="Event ID")
    link_start_parser.add_argument("--bank-code", type=str, help="Bank code")

    # link-finish command
    link_finish_parser = subparsers.add_parser(
        "link-finish", help="Record verified bank details on a scrape account"
    )
    link_finish_parser.add_argument("--user", required=True, help="Caller user ID")
    link_finish_parser.add_argument("--event", required=True, help="Event ID")
    link_finish_parser.add_argument("--account", required=True, help="Scrape account ID")
    link_finish_parser.add_argument("--bank-code", required=True, help="Bank code")
    link_finish_parser.add_argument("--account-masked", required=True, help="Masked account number")
    link_finish_parser.add_argument("--bank-name", type=str, help="Bank name")

    # summary command
    summary_parser = subparsers.add_parser("summary", help="Show ledger totals of an event")
    summary_parser.add_argument("--user", required=True, help="Caller user ID")
    summary_parser.add_argument("--event", required=True, help="Event ID")

    # issue-token command
    token_parser = subparsers.add_parser("issue-token", help="Sign a bearer token for the API")
    token_parser.add_argument("--user", required=True, help="User ID")

    # serve command
    serve_parser = subparsers.add_parser("serve", help="Run the JSON API server")
    serve_parser.add_argument(
        "--host",
        type=str,
        default="127.0.0.1",
        help="Host to bind the web server (default: 127.0.0.1)",
    )
    serve_parser.add_argument(
        "--port",
        type=int,
        default=8080,
        help="Port for the web server (default: 8080)",
    )

    return parser


def cmd_init(config: Config, config_path: Path, force: bool) -> int:
    """Write a default config file and create the state database."""
    if config_path.exists() and not force:
        print(f"⚠️  Config already exists: {config_path} (use --force to overwrite)")
    else:
        create_default_config(config_path)
        print(f"✓ Wrote default config to {config_path}")

    StateStore(config.state_db_path)
    print(f"✓ State DB ready at {config.state_db_path}")
    return 0


def cmd_status(config: Config) -> int:
    """Show state store status."""
    store = StateStore(config.state_db_path)
    stats = store.get_stats()

    print("\n📊 Giftbook Status")
    print("=" * 40)
    print(f"  Events:                 {stats['events']}")
    print(f"  Members:                {stats['event_members']}")
    print(f"  Scrape accounts:        {stats['scrape_accounts']}")
    print(f"  Transactions stored:    {stats['transactions_total']}")
    print(f"  Transactions reflected: {stats['transactions_reflected']}")
    print(f"  Ledger entries:         {stats['ledger_entries']}")
    print(f"  Reconciled entries:     {stats['ledger_reconciled']}")
    print()

    return 0


def cmd_create_event(
    config: Config,
    title: str | None,
    ceremony_date: str | None,
    start_time: str | None,
    end_time: str | None,
) -> int:
    """Create an event, optionally with its ceremony schedule."""
    store = StateStore(config.state_db_path)
    event_id = store.create_event(title=title)
    if ceremony_date:
        store.set_event_settings(event_id, ceremony_date, start_time, end_time)
    print(event_id)
    return 0


def cmd_add_member(
    config: Config,
    event_id: str,
    user_id: str,
    email: str | None,
    role: str,
    side: str | None,
) -> int:
    """Add a member to an event."""
    store = StateStore(config.state_db_path)
    member_id = store.add_member(event_id, user_id, email=email, role=role, side=side)
    print(member_id)
    return 0


def cmd_ingest(config: Config, user_id: str, file: Path) -> int:
    """Run the ingestion pipeline on a JSON request file."""
    try:
        with open(file, encoding="utf-8") as f:
            payload = json.load(f)
    except (OSError, ValueError) as e:
        print(f"❌ Cannot read {file}: {e}")
        return 1

    service = IngestionService(StateStore(config.state_db_path), config)
    result = service.ingest(user_id, IngestionRequest.from_payload(payload))

    print(f"✓ Ingested {result.start_date} .. {result.end_date}")
    print(f"  Fetched:                {result.fetched}")
    print(f"  Skipped:                {result.skipped}")
    print(f"  New transactions:       {result.inserted_tx}")
    print(f"  New ledger entries:     {result.reflected_ledger_new}")
    print(f"  Reflected in range:     {result.reflected_ledger_total}")
    return 0


def cmd_link_start(config: Config, user_id: str, event_id: str, bank_code: str | None) -> int:
    """Start linking a bank account."""
    service = BankLinkService(StateStore(config.state_db_path), config)
    result = service.start(user_id, event_id, bank_code=bank_code)
    verb = "Reusing" if result.reused else "Created"
    print(f"✓ {verb} scrape account {result.account.id} ({result.account.status.value})")
    return 0


def cmd_link_finish(
    config: Config,
    user_id: str,
    event_id: str,
    account_id: str,
    bank_code: str,
    account_masked: str,
    bank_name: str | None,
) -> int:
    """Mark a scrape account connected."""
    service = BankLinkService(StateStore(config.state_db_path), config)
    result = service.finish(user_id, event_id, account_id, bank_code, account_masked, bank_name=bank_name)
    print(f"✓ Scrape account {result.account.id} connected: {result.account.label}")
    return 0


def cmd_summary(config: Config, user_id: str, event_id: str) -> int:
    """Show ledger totals of an event."""
    store = StateStore(config.state_db_path)
    MembershipGate(store).check(user_id, event_id)
    summary = summarize_ledger(store.list_ledger_entries(event_id))

    print(f"\n📒 Ledger of event {event_id}")
    print("=" * 40)
    print(f"  Entries:                {summary.total_entries}")
    print(f"  Total amount:           {summary.total_amount:,.2f}")
    print(f"  QR entries:             {summary.qr_entries}")
    print(f"  QR amount:              {summary.qr_amount:,.2f}")
    print(f"  Reconciled entries:     {summary.reconciled_entries}")
    print()
    return 0


def cmd_issue_token(config: Config, user_id: str) -> int:
    """Print a bearer token for a user."""
    print(issue_token(user_id, config.auth))
    return 0


def cmd_serve(config: Config, config_path: Path, host: str, port: int) -> int:
    """Run the JSON API server."""
    from ..web.app import run_server

    run_server(
        host=host,
        port=port,
        config_path=str(config_path),
        state_db_path=str(config.state_db_path),
    )
    return 0


def main(args: list[str] | None = None) -> int:
    """Main entry point."""
    parser = create_cli()
    parsed = parser.parse_args(args)

    setup_logging(parsed.verbose)

    if not parsed.command:
        parser.print_help()
        return 1

    # Load config
    try:
        config = load_config(parsed.config)
    except Exception as e:
        print(f"❌ Failed to load config: {e}")
        return 1

    problems = config.validate()
    if problems:
        print("❌ Invalid configuration:")
        for problem in problems:
            print(f"   - {problem}")
        return 1

    # Route to command
    try:
        if parsed.command == "init":
            return cmd_init(config, parsed.config, parsed.force)
        elif parsed.command == "status":
            return cmd_status(config)
        elif parsed.command == "create-event":
            return cmd_create_event(
                config, parsed.title, parsed.ceremony_date, parsed.start_time, parsed.end_time
            )
        elif parsed.command == "add-member":
            return cmd_add_member(
                config, parsed.event, parsed.user, parsed.email, parsed.role, parsed.side
            )
        elif parsed.command == "ingest":
            return cmd_ingest(config, parsed.user, parsed.file)
        elif parsed.command == "link-start":
            return cmd_link_start(config, parsed.user, parsed.event, parsed.bank_code)
        elif parsed.command == "link-finish":
            return cmd_link_finish(
                config,
                parsed.user,
                parsed.event,
                parsed.account,
                parsed.bank_code,
                parsed.account_masked,
                parsed.bank_name,
            )
        elif parsed.command == "summary":
            return cmd_summary(config, parsed.user, parsed.event)
        elif parsed.command == "issue-token":
            return cmd_issue_token(config, parsed.user)
        elif parsed.command == "serve":
            return cmd_serve(config, parsed.config, parsed.host, parsed.port)
        else:
            parser.print_help()
            return 1
    except GiftbookError as e:
        print(f"❌ {e.code}: {e.message}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
