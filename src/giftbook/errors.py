"""
Error taxonomy for the ingestion pipeline.

Every failure a caller can observe is one of these, each with a distinct
condition code. The web layer turns them into JSON responses; the CLI turns
them into exit codes.

- Input errors: rejected before any side effect
- Authorization errors: rejected before any side effect
- Temporal-policy error (Locked): the ceremony has ended
- Storage errors: fatal for the request, safe to retry
"""

from datetime import datetime
from typing import Any


class GiftbookError(Exception):
    """Base exception for all pipeline errors."""

    code = "error"
    status = 500

    def __init__(self, message: str | None = None, code: str | None = None):
        if code:
            self.code = code
        self.message = message or self.code
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        """JSON body for this error."""
        return {"error": self.code, "message": self.message}


class InvalidInput(GiftbookError):
    """Request body is malformed."""

    code = "invalid_body"
    status = 400


class MissingFields(InvalidInput):
    """Required request fields are absent."""

    code = "missing_fields"

    def __init__(self, fields: list[str]):
        self.fields = fields
        super().__init__(f"Missing required fields: {', '.join(fields)}")

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["fields"] = self.fields
        return body


class InvalidDate(InvalidInput):
    """A date is not a real YYYY-MM-DD calendar day, or the range is reversed."""

    code = "invalid_date"


class Unauthorized(GiftbookError):
    """Caller identity could not be established."""

    code = "unauthorized"
    status = 401


class Forbidden(GiftbookError):
    """Caller is not a member of the event."""

    code = "forbidden"
    status = 403


class AccountMismatch(Forbidden):
    """Scrape account does not belong to both the caller and the event."""

    code = "account_mismatch"


class Locked(GiftbookError):
    """The ceremony has ended; the ledger no longer accepts reconciliation."""

    code = "locked"
    status = 423

    def __init__(self, cutoff: datetime):
        self.cutoff = cutoff
        super().__init__(f"Reconciliation closed at {cutoff.isoformat()}")

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["cutoff"] = self.cutoff.isoformat()
        return body


class StorageError(GiftbookError):
    """The state store rejected an operation."""

    code = "storage_error"
    status = 500

    def __init__(self, detail: str):
        self.detail = detail
        super().__init__(f"Storage failure: {detail}")

    def to_dict(self) -> dict[str, Any]:
        body = super().to_dict()
        body["detail"] = self.detail
        return body
