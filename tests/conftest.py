"""Pytest configuration and fixtures for pricefeed testing."""

from __future__ import annotations

import io
from pathlib import Path
from typing import Iterator, List, Optional, Sequence

import pytest
from fastapi.testclient import TestClient

from pricefeed.api.main import create_app
from pricefeed.config import Settings
from pricefeed.errors import StorageError
from pricefeed.models import PriceRecord
from pricefeed.storage import SqlPriceStore

HEADER = "UNIX,SYMBOL,OPEN,HIGH,LOW,CLOSE"


def csv_bytes(*rows: str, header: str = HEADER) -> io.BytesIO:
    """Build an in-memory upload from a header and data lines."""
    return io.BytesIO("\n".join([header, *rows]).encode("utf-8") + b"\n")


class RecordingStore:
    """In-memory stand-in that records each flushed batch and can fail on demand."""

    def __init__(self, fail_on_batch: Optional[int] = None) -> None:
        self.batches: List[List[PriceRecord]] = []
        self.fail_on_batch = fail_on_batch

    def ensure_schema(self) -> None:
        pass

    def dispose(self) -> None:
        pass

    def insert_batch(self, records: Sequence[PriceRecord]) -> int:
        if self.fail_on_batch is not None and len(self.batches) + 1 == self.fail_on_batch:
            raise StorageError("simulated insert failure")
        self.batches.append(list(records))
        return len(records)

    @property
    def inserted(self) -> List[PriceRecord]:
        return [r for batch in self.batches for r in batch]


@pytest.fixture
def sqlite_store(tmp_path: Path) -> Iterator[SqlPriceStore]:
    store = SqlPriceStore.from_url(f"sqlite:///{tmp_path / 'prices.db'}")
    store.ensure_schema()
    yield store
    store.dispose()


@pytest.fixture
def test_settings(tmp_path: Path) -> Settings:
    return Settings(
        data_dir=tmp_path,
        ingest_batch_size=3,
        default_page_limit=10,
        max_page_limit=100,
        max_reported_skips=2,
    )


@pytest.fixture
def client(sqlite_store: SqlPriceStore, test_settings: Settings) -> Iterator[TestClient]:
    app = create_app(store=sqlite_store, app_settings=test_settings)
    with TestClient(app) as test_client:
        yield test_client
