"""
Ledger provenance markers (SSOT).

A reconciled ledger entry references the bank transaction it came from in
two ways:
1. source_fingerprint column: explicit, nullable back-reference
2. memo: "scrape_fp:{fingerprint}" as the leading token, optionally followed
   by a space and the original bank memo

Manual entries carry neither. The memo marker is kept so rows written before
the source_fingerprint column existed are still recognised as reflected.
"""

from .fingerprint import is_fingerprint

MEMO_MARKER_PREFIX = "scrape_fp:"


def build_reconciled_memo(fingerprint: str, memo: str | None = None) -> str:
    """Build the memo for a reconciled ledger entry."""
    marker = f"{MEMO_MARKER_PREFIX}{fingerprint}"
    memo = (memo or "").strip()
    if not memo:
        return marker
    return f"{marker} {memo}"


def extract_fingerprint_from_memo(memo: str | None) -> str | None:
    """
    Extract the fingerprint from a memo's leading marker token.

    Only the first whitespace-delimited token is inspected; a marker that
    appears later in free text does not count.
    """
    if not memo:
        return None
    parts = memo.split(maxsplit=1)
    if not parts:
        return None
    token = parts[0]
    if not token.startswith(MEMO_MARKER_PREFIX):
        return None
    fingerprint = token[len(MEMO_MARKER_PREFIX):]
    return fingerprint if is_fingerprint(fingerprint) else None
