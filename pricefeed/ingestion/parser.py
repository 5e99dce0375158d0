from __future__ import annotations

import math
import re
from typing import List, Sequence, Tuple

from pricefeed.errors import InvalidHeaderError, RowParseError
from pricefeed.models import INT64_MAX, SYMBOL_MAX_LENGTH, PriceRecord

EXPECTED_HEADER: Tuple[str, ...] = ("UNIX", "SYMBOL", "OPEN", "HIGH", "LOW", "CLOSE")
FIELD_COUNT = len(EXPECTED_HEADER)

_INT_PATTERN = re.compile(r"[+-]?[0-9]+", re.ASCII)


def validate_header(fields: Sequence[str]) -> None:
    """Reject anything but UNIX,SYMBOL,OPEN,HIGH,LOW,CLOSE (case-insensitive, trimmed, in order)."""
    normalized: List[str] = [field.strip().upper() for field in fields]
    if tuple(normalized) != EXPECTED_HEADER:
        raise InvalidHeaderError(f"CSV header must match: {','.join(EXPECTED_HEADER)}")


def _parse_int(text: str) -> int:
    value = text.strip()
    if not _INT_PATTERN.fullmatch(value):
        raise ValueError(f"invalid integer {text!r}")
    number = int(value)
    if not -INT64_MAX - 1 <= number <= INT64_MAX:
        raise ValueError(f"integer out of range {text!r}")
    return number


def _parse_float(text: str) -> float:
    value = text.strip()
    if "_" in value:
        raise ValueError(f"invalid number {text!r}")
    number = float(value)
    if not math.isfinite(number):
        raise ValueError(f"non-finite number {text!r}")
    return number


def parse_row(fields: Sequence[str], line_number: int) -> PriceRecord:
    """Turn one CSV row into a PriceRecord or raise RowParseError explaining why not."""
    if len(fields) != FIELD_COUNT:
        raise RowParseError(line_number, f"expected {FIELD_COUNT} fields, got {len(fields)}")

    symbol = fields[1]
    if not symbol:
        raise RowParseError(line_number, "missing symbol")
    if len(symbol) > SYMBOL_MAX_LENGTH:
        raise RowParseError(line_number, f"symbol longer than {SYMBOL_MAX_LENGTH} characters")

    try:
        timestamp = _parse_int(fields[0])
    except ValueError as exc:
        raise RowParseError(line_number, f"unix: {exc}") from exc

    prices: List[float] = []
    for name, raw in zip(EXPECTED_HEADER[2:], fields[2:]):
        try:
            prices.append(_parse_float(raw))
        except ValueError as exc:
            raise RowParseError(line_number, f"{name.lower()}: {exc}") from exc

    open_, high, low, close = prices
    return PriceRecord(timestamp=timestamp, symbol=symbol, open=open_, high=high, low=low, close=close)
