from __future__ import annotations

import pytest

from pricefeed.errors import InvalidPaginationError, StorageError
from pricefeed.models import PageRequest, PriceRecord
from pricefeed.query import PriceQueryService, build_count, build_select, parse_page_request


def _records() -> list[PriceRecord]:
    # Inserted out of timestamp order with a duplicate timestamp to exercise ordering.
    rows = [
        (1700000300, "ABC"),
        (1700000100, "XYZ"),
        (1700000000, "ABC"),
        (1700000200, "abc"),
        (1700000100, "ABC"),
        (1700000400, "ABCD"),
        (1700000500, "ABC"),
    ]
    return [PriceRecord(timestamp=ts, symbol=sym, open=1.0, high=2.0, low=0.5, close=1.5) for ts, sym in rows]


@pytest.fixture
def service(sqlite_store):
    sqlite_store.insert_batch(_records())
    return PriceQueryService(sqlite_store)


def test_parse_page_request_defaults():
    request = parse_page_request(None, None, None, default_limit=25)
    assert (request.symbol, request.page, request.limit, request.offset) == (None, 1, 25, 0)


def test_parse_page_request_treats_empty_symbol_as_no_filter():
    assert parse_page_request("", "2", "5").symbol is None


def test_parse_page_request_derives_offset():
    assert parse_page_request("ABC", "3", "20").offset == 40


@pytest.mark.parametrize(
    "page, limit",
    [
        ("0", "10"),
        ("-1", "10"),
        ("1", "0"),
        ("1", "-5"),
        ("abc", "10"),
        ("1", "ten"),
        ("1.5", "10"),
        ("1.0", "10"),
        ("1_0", "10"),
        (" 2 ", "10"),
        ("1", "1e3"),
        ("\u0661", "10"),
    ],
)
def test_parse_page_request_rejects_invalid_values(page, limit):
    with pytest.raises(InvalidPaginationError):
        parse_page_request(None, page, limit)


def test_parse_page_request_accepts_explicit_plus_sign():
    request = parse_page_request(None, "+3", "+10")
    assert (request.page, request.limit) == (3, 10)


@pytest.mark.parametrize(
    "page, limit",
    [(str(2**62), "10"), (str(10**30), "10"), ("2", str(2**63)), ("1", str(10**30))],
)
def test_parse_page_request_rejects_offsets_past_int64(page, limit):
    with pytest.raises(InvalidPaginationError):
        parse_page_request(None, page, limit)


def test_parse_page_request_allows_offsets_within_int64():
    request = parse_page_request(None, str(2**63 - 1), "1")
    assert request.offset == 2**63 - 2


def test_parse_page_request_enforces_max_limit():
    with pytest.raises(InvalidPaginationError):
        parse_page_request(None, "1", "101", max_limit=100)
    assert parse_page_request(None, "1", "100", max_limit=100).limit == 100


def test_build_select_is_bounded_and_ordered():
    sql = str(build_select(PageRequest(symbol="ABC", page=2, limit=5)))
    assert "WHERE records.symbol = " in sql
    assert "ORDER BY records.unix ASC, records.id ASC" in sql
    assert "LIMIT" in sql and "OFFSET" in sql


def test_build_count_has_filter_but_no_bound():
    sql = str(build_count(PageRequest(symbol="ABC", page=3, limit=5)))
    assert "count(*)" in sql
    assert "WHERE records.symbol = " in sql
    assert "LIMIT" not in sql


def test_unfiltered_page_orders_by_timestamp(service):
    result = service.fetch_page(PageRequest(page=1, limit=100))

    timestamps = [r.timestamp for r in result.results]
    assert timestamps == sorted(timestamps)
    assert result.total == 7


def test_symbol_filter_is_exact_and_case_sensitive(service):
    result = service.fetch_page(PageRequest(symbol="ABC", page=1, limit=100))

    assert {r.symbol for r in result.results} == {"ABC"}
    assert [r.timestamp for r in result.results] == [1700000000, 1700000100, 1700000300, 1700000500]
    assert result.total == 4


@pytest.mark.parametrize("limit", [1, 2, 3, 5])
def test_pages_match_slices_of_full_result(service, limit):
    full = service.fetch_page(PageRequest(page=1, limit=1000)).results
    for page in range(1, len(full) // limit + 3):
        result = service.fetch_page(PageRequest(page=page, limit=limit))
        assert result.results == full[(page - 1) * limit : page * limit]
        assert (result.page, result.limit, result.total) == (page, limit, len(full))


def test_page_past_the_end_is_empty_not_an_error(service):
    result = service.fetch_page(PageRequest(symbol="ABC", page=50, limit=10))
    assert result.results == []
    assert result.total == 4


def test_unknown_symbol_returns_empty_page(service):
    result = service.fetch_page(PageRequest(symbol="NOPE"))
    assert result.results == []
    assert result.total == 0


def test_storage_failure_is_distinct_from_empty_result(sqlite_store):
    sqlite_store.engine.dispose()
    with sqlite_store.engine.begin() as conn:
        conn.exec_driver_sql("DROP TABLE records")

    with pytest.raises(StorageError):
        PriceQueryService(sqlite_store).fetch_page(PageRequest())
