"""
Configuration management (SSOT).

All config keys are defined here; no other module should invent config keys.

Key invariants:
- The ceremony cutoff is always evaluated in one fixed civil timezone
- Reflect-flag updates are issued in bounded batches
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml


class ConfigValidationError(Exception):
    """Raised when configuration validation fails."""

    pass


@dataclass
class CutoffConfig:
    """Ceremony cutoff settings.

    Ceremony dates and end times are stored as local wall-clock values;
    timezone names the civil zone they are expressed in.
    """

    timezone: str = "Asia/Seoul"
    # Master switch; when off, reconciliation is never locked
    enforce: bool = True

    def tzinfo(self) -> ZoneInfo:
        """Resolve the configured timezone."""
        return ZoneInfo(self.timezone)


@dataclass
class IngestionConfig:
    """Ingestion and reconciliation settings."""

    # Provider name recorded on newly linked scrape accounts
    provider: str = "coocon"
    # Maximum fingerprints per reflect-flag UPDATE
    reflect_batch_size: int = 200
    # Keep the original provider row on each stored transaction (audit)
    keep_raw_payload: bool = True


@dataclass
class AuthConfig:
    """Bearer credential settings for the HTTP surface."""

    secret_key: str = "dev-secret-key-change-in-production"
    # Bearer tokens older than this are rejected
    token_max_age_seconds: int = 86400 * 7


@dataclass
class Config:
    """Application configuration (SSOT)."""

    cutoff: CutoffConfig = field(default_factory=CutoffConfig)
    ingestion: IngestionConfig = field(default_factory=IngestionConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)
    state_db_path: Path = field(default_factory=lambda: Path("data/state.db"))

    def validate(self) -> list[str]:
        """Validate configuration completeness and consistency.

        Returns:
            List of validation errors (empty if valid)
        """
        errors: list[str] = []

        try:
            self.cutoff.tzinfo()
        except (ZoneInfoNotFoundError, ValueError):
            errors.append(f"cutoff.timezone is not a known timezone: {self.cutoff.timezone!r}")

        if self.ingestion.reflect_batch_size < 1:
            errors.append("ingestion.reflect_batch_size must be >= 1")

        if not self.auth.secret_key:
            errors.append("auth.secret_key is required")
        if self.auth.token_max_age_seconds <= 0:
            errors.append("auth.token_max_age_seconds must be positive")

        return errors


def load_config(config_path: Path) -> Config:
    """
    Load configuration from YAML file.

    Environment variables can override config values:
    - GIFTBOOK_STATE_DB
    - GIFTBOOK_TIMEZONE
    - GIFTBOOK_REFLECT_BATCH_SIZE
    - GIFTBOOK_SECRET_KEY
    - GIFTBOOK_TOKEN_MAX_AGE (seconds)
    """
    config_path = Path(config_path)
    if config_path.exists():
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    else:
        data = {}

    cutoff_data = data.get("cutoff", {})
    cutoff = CutoffConfig(
        timezone=os.environ.get("GIFTBOOK_TIMEZONE", cutoff_data.get("timezone", "Asia/Seoul")),
        enforce=cutoff_data.get("enforce", True),
    )

    ingestion_data = data.get("ingestion", {})
    batch_size = ingestion_data.get("reflect_batch_size", 200)
    batch_size_env = os.environ.get("GIFTBOOK_REFLECT_BATCH_SIZE", "")
    if batch_size_env:
        try:
            batch_size = int(batch_size_env)
        except ValueError:
            pass  # Keep file/default value

    ingestion = IngestionConfig(
        provider=ingestion_data.get("provider", "coocon"),
        reflect_batch_size=batch_size,
        keep_raw_payload=ingestion_data.get("keep_raw_payload", True),
    )

    auth_data = data.get("auth", {})
    max_age = auth_data.get("token_max_age_seconds", 86400 * 7)
    max_age_env = os.environ.get("GIFTBOOK_TOKEN_MAX_AGE", "")
    if max_age_env:
        try:
            max_age = int(max_age_env)
        except ValueError:
            pass  # Keep file/default value

    auth = AuthConfig(
        secret_key=os.environ.get(
            "GIFTBOOK_SECRET_KEY",
            auth_data.get("secret_key", "dev-secret-key-change-in-production"),
        ),
        token_max_age_seconds=max_age,
    )


    state_db = os.environ.get("GIFTBOOK_STATE_DB", data.get("state_db_path", "data/state.db"))

    return Config(
        cutoff=cutoff,
        ingestion=ingestion,
        auth=auth,
        state_db_path=Path(state_db),
    )


def create_default_config(config_path: Path) -> None:
    """Create a default configuration file."""
    default_config = """# giftbook configuration

# Ceremony cutoff: after the ceremony end time no reconciliation is accepted
cutoff:
  timezone: "Asia/Seoul"      # Civil timezone of ceremony dates/times
  enforce: true

# Bank statement ingestion
ingestion:
  provider: "coocon"          # Provider recorded on newly linked accounts
  reflect_batch_size: 200     # Max fingerprints per reflect UPDATE
  keep_raw_payload: true      # Store the provider row with each transaction

# Bearer credentials for the HTTP API
auth:
  secret_key: "CHANGE_ME"
  token_max_age_seconds: 604800

# State database path
state_db_path: "data/state.db"
"""

    config_path = Path(config_path)
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, "w") as f:
        f.write(default_config)
