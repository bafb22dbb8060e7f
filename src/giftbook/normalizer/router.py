"""
Normalizer router - chooses between the two supported data sources.

Sources, in priority order:
1. A pre-normalized transaction list (already structured upstream)
2. A raw provider payload (parsed best-effort)

With neither, the result is empty: reconciliation still runs, it simply
has nothing new to reflect.
"""

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from ..schemas.transaction import Direction, NormalizedTransaction
from .fields import clean_text, parse_date, parse_decimal, parse_direction_flag, parse_time
from .provider import ProviderPayloadNormalizer

logger = logging.getLogger(__name__)


class NormalizationSource:
    """Which input a normalization result came from."""

    STRUCTURED = "structured"
    PROVIDER = "provider"
    NONE = "none"


@dataclass
class NormalizationResult:
    """Normalized transactions plus a count of dropped inputs."""

    transactions: list[NormalizedTransaction] = field(default_factory=list)
    skipped: int = 0
    source: str = NormalizationSource.NONE


class TransactionNormalizer:
    """Converts either supported input into canonical transactions."""

    def __init__(self, keep_raw: bool = True):
        self.keep_raw = keep_raw
        self.provider = ProviderPayloadNormalizer(keep_raw=keep_raw)

    def normalize(
        self,
        transactions: list[Any] | None = None,
        raw_payload: Any = None,
    ) -> NormalizationResult:
        """
        Normalize upstream data.

        Args:
            transactions: Pre-normalized list (dicts or NormalizedTransaction)
            raw_payload: Raw provider output, used only if no list is given

        Returns:
            NormalizationResult
        """
        if transactions is not None:
            if raw_payload is not None:
                logger.warning("Both a transaction list and a provider payload given; using the list")
            return self._from_structured(transactions)

        if raw_payload is not None:
            parsed = self.provider.normalize(raw_payload)
            return NormalizationResult(
                transactions=parsed.transactions,
                skipped=parsed.skipped,
                source=NormalizationSource.PROVIDER,
            )

        return NormalizationResult()

    def _from_structured(self, items: list[Any]) -> NormalizationResult:
        """Pass through a structured list, clamping amounts and defaulting direction."""
        result = NormalizationResult(source=NormalizationSource.STRUCTURED)

        for item in items:
            tx = self._coerce(item)
            if tx is None:
                result.skipped += 1
                continue
            result.transactions.append(tx)

        return result

    def _coerce(self, item: Any) -> NormalizedTransaction | None:
        """Coerce one structured item; None if it has no usable date or amount."""
        if isinstance(item, NormalizedTransaction):
            if not isinstance(item.amount, Decimal) or not item.amount.is_finite():
                return None
            return NormalizedTransaction(
                tx_date=item.tx_date,
                tx_time=item.tx_time,
                amount=abs(item.amount),
                direction=item.direction or Direction.IN,
                balance=item.balance,
                memo=item.memo,
                counterparty=item.counterparty,
                counterparty_account=item.counterparty_account,
                raw=item.raw,
            )

        if not isinstance(item, dict):
            return None

        tx_date = parse_date(item.get("tx_date", item.get("date")))
        if tx_date is None:
            return None

        amount = parse_decimal(item.get("amount"))
        if amount is None:
            return None

        direction_value = clean_text(item.get("direction"))
        direction = parse_direction_flag(direction_value) if direction_value else Direction.IN

        return NormalizedTransaction(
            tx_date=tx_date,
            tx_time=parse_time(item.get("tx_time", item.get("time"))),
            amount=abs(amount),
            direction=direction,
            balance=parse_decimal(item.get("balance")),
            memo=clean_text(item.get("memo")),
            counterparty=clean_text(item.get("counterparty")),
            counterparty_account=clean_text(item.get("counterparty_account")),
            raw=item if self.keep_raw else None,
        )
