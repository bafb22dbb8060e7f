"""
Field parsers and extractors for provider rows.

Provider output schemas are not stable: the same logical field shows up under
English keys, upstream codes, or Korean labels depending on bank and API
version. Each logical field is therefore read through an ordered chain of
named extractors, tried in priority order; the first one that matches wins.
"""

import re
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import date, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional

from ..schemas.transaction import Direction

_YMD_DASHED = re.compile(r"^(\d{4})-(\d{2})-(\d{2})$")
_YMD_COMPACT = re.compile(r"^(\d{4})(\d{2})(\d{2})$")
_YMD_SEPARATED = re.compile(r"^(\d{4})[./](\d{2})[./](\d{2})$")

_HMS_COMPACT = re.compile(r"^(\d{2})(\d{2})(\d{2})$")
_HMS_COLON = re.compile(r"^(\d{2}):(\d{2}):(\d{2})$")
_HM_COLON = re.compile(r"^(\d{2}):(\d{2})$")

_NON_NUMERIC = re.compile(r"[^\d.\-]")

# Direction flag fragments meaning money left the account
_OUTBOUND_MARKERS = ("출금", "OUT", "WITHDRAW", "DEBIT")


def parse_date(value: Any) -> date | None:
    """Parse YYYYMMDD, YYYY-MM-DD, YYYY.MM.DD or YYYY/MM/DD into a date."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None

    for pattern in (_YMD_DASHED, _YMD_COMPACT, _YMD_SEPARATED):
        m = pattern.match(s)
        if m:
            try:
                return date(int(m.group(1)), int(m.group(2)), int(m.group(3)))
            except ValueError:
                return None
    return None


def parse_time(value: Any) -> time | None:
    """Parse HHMMSS, HH:MM:SS or HH:MM into a time of day."""
    if value is None:
        return None
    s = str(value).strip()
    if not s:
        return None

    m = _HMS_COMPACT.match(s) or _HMS_COLON.match(s)
    if m:
        hh, mm, ss = int(m.group(1)), int(m.group(2)), int(m.group(3))
    else:
        m = _HM_COLON.match(s)
        if not m:
            return None
        hh, mm, ss = int(m.group(1)), int(m.group(2)), 0

    try:
        return time(hh, mm, ss)
    except ValueError:
        return None


def parse_decimal(value: Any) -> Decimal | None:
    """
    Parse a signed amount, dropping thousands separators and currency text.

    "1,234,000원" -> Decimal("1234000"), "-50,000" -> Decimal("-50000").
    NaN and infinities parse to None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, Decimal):
        parsed = value
    elif isinstance(value, (int, float)):
        parsed = Decimal(str(value))
    else:
        s = _NON_NUMERIC.sub("", str(value))
        if not s or s in ("-", ".", "-."):
            return None
        try:
            parsed = Decimal(s)
        except InvalidOperation:
            return None
    return parsed if parsed.is_finite() else None


def parse_direction_flag(value: Any) -> Direction:
    """Interpret a free-form direction flag ("입금", "OUT", "-", ...)."""
    s = str(value or "").upper()
    if any(marker in s for marker in _OUTBOUND_MARKERS) or s.startswith("-"):
        return Direction.OUT
    return Direction.IN


def clean_text(value: Any) -> str | None:
    """Strip a text value; empty becomes None."""
    if value is None:
        return None
    s = str(value).strip()
    return s or None


class FieldExtractor(ABC):
    """
    Base class for all field extractors.

    Each extractor knows one way a logical field can appear in a raw row.
    """

    @property
    @abstractmethod
    def name(self) -> str:
        """Extractor name for logging and auditing."""
        pass

    @abstractmethod
    def can_extract(self, row: dict[str, Any]) -> bool:
        """Check if this extractor recognises the row."""
        pass

    @abstractmethod
    def extract(self, row: dict[str, Any]) -> Any:
        """Extract the value; only called when can_extract() is True."""
        pass


class KeyExtractor(FieldExtractor):
    """Reads a single key, matching when the value is present and non-blank."""

    def __init__(self, key: str):
        self.key = key

    @property
    def name(self) -> str:
        return f"key:{self.key}"

    def can_extract(self, row: dict[str, Any]) -> bool:
        value = row.get(self.key)
        if value is None:
            return False
        return not (isinstance(value, str) and not value.strip())

    def extract(self, row: dict[str, Any]) -> Any:
        return row[self.key]


@dataclass
class AmountFlow:
    """Amount magnitude and direction read from a row."""

    amount: Decimal
    direction: Direction


class SplitAmountExtractor(FieldExtractor):
    """
    Reads separate inbound/outbound amount columns.

    When both columns are non-zero the row is treated as inbound.
    """

    def __init__(self, inbound_key: str, outbound_key: str):
        self.inbound_key = inbound_key
        self.outbound_key = outbound_key

    @property
    def name(self) -> str:
        return f"split:{self.inbound_key}/{self.outbound_key}"

    def can_extract(self, row: dict[str, Any]) -> bool:
        return self.inbound_key in row or self.outbound_key in row

    def extract(self, row: dict[str, Any]) -> Optional[AmountFlow]:
        inbound = parse_decimal(row.get(self.inbound_key))
        outbound = parse_decimal(row.get(self.outbound_key))

        if inbound:
            return AmountFlow(amount=abs(inbound), direction=Direction.IN)
        if outbound:
            return AmountFlow(amount=abs(outbound), direction=Direction.OUT)
        return None


class SignedAmountExtractor(FieldExtractor):
    """
    Reads a single amount column plus an optional direction flag column.

    Without a flag, a negative amount means outbound.
    """

    def __init__(self, amount_key: str, flag_keys: tuple[str, ...] = ()):
        self.amount_key = amount_key
        self.flag_keys = flag_keys

    @property
    def name(self) -> str:
        return f"signed:{self.amount_key}"

    def can_extract(self, row: dict[str, Any]) -> bool:
        return row.get(self.amount_key) is not None

    def extract(self, row: dict[str, Any]) -> Optional[AmountFlow]:
        raw_amount = row.get(self.amount_key)
        amount = parse_decimal(raw_amount)
        if amount is None:
            return None

        flag = next(
            (row[k] for k in self.flag_keys if clean_text(row.get(k)) is not None),
            None,
        )
        direction = parse_direction_flag(flag if flag is not None else raw_amount)
        return AmountFlow(amount=abs(amount), direction=direction)


class FieldChain:
    """Ordered extractors for one logical field; first match wins."""

    def __init__(self, field_name: str, extractors: list[FieldExtractor]):
        self.field_name = field_name
        self.extractors = extractors

    @classmethod
    def for_keys(cls, field_name: str, *keys: str) -> "FieldChain":
        """Chain of plain key lookups, in the given priority order."""
        return cls(field_name, [KeyExtractor(k) for k in keys])

    @property
    def extractor_names(self) -> list[str]:
        return [e.name for e in self.extractors]

    def first(self, row: dict[str, Any]) -> Any:
        """Return the value from the first extractor that matches, else None."""
        for extractor in self.extractors:
            if extractor.can_extract(row):
                return extractor.extract(row)
        return None
