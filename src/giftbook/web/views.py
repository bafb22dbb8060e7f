"""
JSON API views.

Every domain error is turned into its JSON body and status here, and only
here.
"""

import json
import logging
from functools import wraps
from pathlib import Path
from typing import Any

from django.conf import settings
from django.http import HttpRequest, JsonResponse
from django.views.decorators.csrf import csrf_exempt
from django.views.decorators.http import require_http_methods

from ..config import Config, load_config
from ..errors import GiftbookError, InvalidInput
from ..services import (
    BankLinkService,
    IngestionRequest,
    IngestionService,
    MembershipGate,
    summarize_ledger,
)
from ..state_store import StateStore
from .auth import resolve_bearer

logger = logging.getLogger(__name__)

LINK_ACTIONS = ("start", "finish", "fail")


def _get_config() -> Config:
    """Load config; STATE_DB_PATH from Django settings wins over the file."""
    config = load_config(Path(settings.GIFTBOOK_CONFIG_PATH))
    if settings.STATE_DB_PATH:
        config.state_db_path = Path(settings.STATE_DB_PATH)
    return config


def _get_store(config: Config) -> StateStore:
    """Get the state store instance."""
    return StateStore(config.state_db_path)


def _read_json(request: HttpRequest) -> dict[str, Any]:
    try:
        body = json.loads(request.body or b"{}")
    except (ValueError, UnicodeDecodeError):
        raise InvalidInput("Request body is not valid JSON") from None
    if not isinstance(body, dict):
        raise InvalidInput("Request body must be a JSON object")
    return body


def api_view(view):
    """Render GiftbookError as its JSON error body and status."""

    @wraps(view)
    def wrapper(request: HttpRequest, *args, **kwargs) -> JsonResponse:
        try:
            return view(request, *args, **kwargs)
        except GiftbookError as e:
            if e.status >= 500:
                logger.error("%s %s failed: %s", request.method, request.path, e.message)
            else:
                logger.info("%s %s rejected: %s", request.method, request.path, e.code)
            return JsonResponse(e.to_dict(), status=e.status)

    return wrapper


# ============================================================================
# API Endpoints
# ============================================================================


@csrf_exempt
@require_http_methods(["POST"])
@api_view
def scrape_transactions(request: HttpRequest) -> JsonResponse:
    """Ingest bank transactions and reconcile them into the ledger."""
    config = _get_config()
    user_id = resolve_bearer(request, config.auth)
    ingestion_request = IngestionRequest.from_payload(_read_json(request))

    service = IngestionService(_get_store(config), config)
    result = service.ingest(user_id, ingestion_request)
    return JsonResponse(result.to_dict())


@csrf_exempt
@require_http_methods(["POST"])
@api_view
def scrape_account_connect(request: HttpRequest) -> JsonResponse:
    """Start, finish or fail linking a bank account."""
    config = _get_config()
    user_id = resolve_bearer(request, config.auth)
    body = _read_json(request)

    action = body.get("action")
    event_id = body.get("eventId")
    if action not in LINK_ACTIONS or not event_id:
        raise InvalidInput("action must be start, finish or fail, with an eventId")

    service = BankLinkService(_get_store(config), config)
    if action == "start":
        result = service.start(user_id, event_id, bank_code=body.get("bankCode"))
    elif action == "finish":
        result = service.finish(
            user_id,
            event_id,
            body.get("scrapeAccountId"),
            body.get("bankCode"),
            body.get("accountMasked"),
            bank_name=body.get("bankName"),
        )
    else:
        result = service.fail(user_id, event_id, body.get("scrapeAccountId"), reason=body.get("reason"))

    return JsonResponse(result.to_dict())


@require_http_methods(["GET"])
@api_view
def ledger_summary(request: HttpRequest, event_id: str) -> JsonResponse:
    """Report totals for an event's ledger (members only)."""
    config = _get_config()
    user_id = resolve_bearer(request, config.auth)
    store = _get_store(config)

    MembershipGate(store).check(user_id, event_id)
    summary = summarize_ledger(store.list_ledger_entries(event_id))
    return JsonResponse({"ok": True, "eventId": event_id, **summary.to_dict()})


@require_http_methods(["GET"])
def health(request: HttpRequest) -> JsonResponse:
    """Liveness probe."""
    return JsonResponse({"status": "ok"})
