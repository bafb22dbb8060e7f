"""
Raw provider payload normalization.

Turns a bank-scraping provider's output into NormalizedTransactions. The
payload's shape varies between provider versions, so both the location of
the row array and the per-row field names are probed through ordered variant
lists.
"""

import json
import logging
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from ..schemas.transaction import NormalizedTransaction
from .fields import (
    AmountFlow,
    FieldChain,
    SignedAmountExtractor,
    SplitAmountExtractor,
    clean_text,
    parse_date,
    parse_decimal,
    parse_time,
)

logger = logging.getLogger(__name__)

# Keys under which the row array has been seen, in probe order
ROW_LIST_KEYS = ("ResultList", "List", "TX_LIST", "txList", "Data", "rows", "items")

DIRECTION_FLAG_KEYS = ("direction", "입출금구분", "IO_GB", "INOUT_GB")

DATE_FIELD = FieldChain.for_keys("tx_date", "tx_date", "TRN_DT", "거래일자", "거래일")
TIME_FIELD = FieldChain.for_keys("tx_time", "tx_time", "TRN_TM", "거래시간", "거래시각")
AMOUNT_FIELD = FieldChain(
    "amount",
    [
        # Separate inbound/outbound columns are the most explicit form
        SplitAmountExtractor("입금액", "출금액"),
        SplitAmountExtractor("입금금액", "출금금액"),
        SplitAmountExtractor("IN_AMT", "OUT_AMT"),
        SplitAmountExtractor("TRN_IN_AMT", "TRN_OUT_AMT"),
        SplitAmountExtractor("deposit", "withdrawal"),
        # Single amount column with a flag or sign
        SignedAmountExtractor("amount", DIRECTION_FLAG_KEYS),
        SignedAmountExtractor("TRN_AMT", DIRECTION_FLAG_KEYS),
        SignedAmountExtractor("거래금액", DIRECTION_FLAG_KEYS),
    ],
)
BALANCE_FIELD = FieldChain.for_keys("balance", "balance", "TRN_AF_AMT", "BAL_AMT", "잔액", "거래후잔액")
MEMO_FIELD = FieldChain.for_keys("memo", "memo", "TRN_MEMO", "RMK", "적요", "메모", "내용")
COUNTERPARTY_FIELD = FieldChain.for_keys(
    "counterparty", "counterparty", "TRN_NM", "상대방", "입금자명", "의뢰인", "거래처"
)
COUNTERPARTY_ACCOUNT_FIELD = FieldChain.for_keys(
    "counterparty_account", "counterparty_account", "CP_ACCT_NO", "상대계좌번호", "상대계좌"
)

ROW_FIELDS = (
    DATE_FIELD,
    TIME_FIELD,
    AMOUNT_FIELD,
    BALANCE_FIELD,
    MEMO_FIELD,
    COUNTERPARTY_FIELD,
    COUNTERPARTY_ACCOUNT_FIELD,
)


@dataclass
class ProviderParseResult:
    """Rows parsed from a provider payload."""

    transactions: list[NormalizedTransaction] = field(default_factory=list)
    skipped: int = 0
    list_key: str | None = None  # Where the row array was found (debug info)


def _payload_root(payload: Any) -> Any:
    """First present root among Result, Output.Result, Output, the payload."""
    if isinstance(payload, dict):
        if payload.get("Result") is not None:
            return payload["Result"]
        output = payload.get("Output")
        if isinstance(output, dict) and output.get("Result") is not None:
            return output["Result"]
        if output is not None:
            return output
    return payload


def _candidate_lists(root: Any) -> Iterator[tuple[str, list]]:
    """Yield (location, list) pairs in probe order."""
    if isinstance(root, list):
        yield "<root>", root
    if not isinstance(root, dict):
        return

    for key in ROW_LIST_KEYS:
        if isinstance(root.get(key), list):
            yield key, root[key]

    # One level deeper: root.Result.ResultList and friends
    nested = root.get("Result")
    if isinstance(nested, list):
        yield "Result", nested
    elif isinstance(nested, dict):
        for key in ROW_LIST_KEYS:
            if isinstance(nested.get(key), list):
                yield f"Result.{key}", nested[key]


def locate_rows(payload: Any) -> tuple[str | None, list]:
    """
    Find the transaction array inside a provider payload.

    Returns:
        (location, rows); location is None and rows empty when nothing matched
    """
    if isinstance(payload, (str, bytes)):
        try:
            payload = json.loads(payload)
        except ValueError:
            logger.warning("Provider payload is a string but not JSON; ignoring it")
            return None, []

    root = _payload_root(payload)
    for location, rows in _candidate_lists(root):
        if rows:
            return location, rows
    return None, []


class ProviderPayloadNormalizer:
    """Best-effort parser for raw provider output."""

    def __init__(self, keep_raw: bool = True):
        self.keep_raw = keep_raw

    def normalize(self, payload: Any) -> ProviderParseResult:
        """
        Parse every row of a provider payload.

        Rows without a valid date or a positive amount are dropped and
        counted; they never fail the batch.
        """
        location, rows = locate_rows(payload)
        result = ProviderParseResult(list_key=location)
        if location is None:
            logger.info("No transaction rows found in provider payload")
            return result

        for row in rows:
            tx = self.normalize_row(row) if isinstance(row, dict) else None
            if tx is None:
                result.skipped += 1
                continue
            result.transactions.append(tx)

        logger.debug(
            "Parsed %d provider rows from %s (%d skipped)",
            len(result.transactions),
            location,
            result.skipped,
        )
        return result

    def normalize_row(self, row: dict[str, Any]) -> NormalizedTransaction | None:
        """Parse one provider row, or None if it lacks a date or amount."""
        tx_date = parse_date(DATE_FIELD.first(row))
        if tx_date is None:
            return None

        flow = AMOUNT_FIELD.first(row)
        if not isinstance(flow, AmountFlow) or flow.amount <= 0:
            return None

        return NormalizedTransaction(
            tx_date=tx_date,
            tx_time=parse_time(TIME_FIELD.first(row)),
            amount=flow.amount,
            direction=flow.direction,
            balance=parse_decimal(BALANCE_FIELD.first(row)),
            memo=clean_text(MEMO_FIELD.first(row)),
            counterparty=clean_text(COUNTERPARTY_FIELD.first(row)),
            counterparty_account=clean_text(COUNTERPARTY_ACCOUNT_FIELD.first(row)),
            raw=row if self.keep_raw else None,
        )
