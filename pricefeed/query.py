"""Read-side query construction: symbol filter, timestamp ordering, offset pagination."""

from __future__ import annotations

import logging
import re
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.sql import Select

from pricefeed.errors import InvalidPaginationError
from pricefeed.models import PageRequest, PageResult
from pricefeed.storage import PriceStore, records_table

logger = logging.getLogger(__name__)

_PAGE_NUMBER = re.compile(r"[+-]?[0-9]+", re.ASCII)


def parse_page_request(
    symbol: Optional[str],
    page: Optional[str],
    limit: Optional[str],
    default_limit: int = 10,
    max_limit: Optional[int] = None,
) -> PageRequest:
    """Validate raw query-string values into a PageRequest.

    Missing page/limit fall back to 1 and ``default_limit``. Values must be plain
    base-10 integers (no spaces, decimals or digit separators). Anything else,
    anything below 1, a limit above ``max_limit``, or an offset past a 64-bit
    integer raises InvalidPaginationError.
    """
    for name, value in (("page", page), ("limit", limit)):
        if value not in (None, "") and not _PAGE_NUMBER.fullmatch(value):
            raise InvalidPaginationError(f"{name} must be an integer, got {value!r}")

    try:
        request = PageRequest(
            symbol=symbol or None,
            page=page if page not in (None, "") else 1,
            limit=limit if limit not in (None, "") else default_limit,
        )
    except ValidationError as exc:
        raise InvalidPaginationError("invalid pagination parameters") from exc

    if max_limit is not None and request.limit > max_limit:
        raise InvalidPaginationError(f"limit must not exceed {max_limit}")
    return request


def _apply_filter(statement: Select, request: PageRequest) -> Select:
    # Exact, case-sensitive symbol match.
    if request.symbol:
        statement = statement.where(records_table.c.symbol == request.symbol)
    return statement


def build_select(request: PageRequest) -> Select:
    statement = select(
        records_table.c.id,
        records_table.c.unix,
        records_table.c.symbol,
        records_table.c.open,
        records_table.c.high,
        records_table.c.low,
        records_table.c.close,
    )
    statement = _apply_filter(statement, request)
    return (
        statement.order_by(records_table.c.unix.asc(), records_table.c.id.asc())
        .limit(request.limit)
        .offset(request.offset)
    )


def build_count(request: PageRequest) -> Select:
    return _apply_filter(select(func.count()).select_from(records_table), request)


class PriceQueryService:
    """Runs a page read plus its total count against a store."""

    def __init__(self, store: PriceStore) -> None:
        self.store = store

    def fetch_page(self, request: PageRequest) -> PageResult:
        results = self.store.fetch(build_select(request))
        total = self.store.scalar(build_count(request))
        logger.debug(
            "Page %s (limit %s, symbol=%s): %s of %s records",
            request.page,
            request.limit,
            request.symbol,
            len(results),
            total,
        )
        return PageResult(page=request.page, limit=request.limit, total=total, results=results)
