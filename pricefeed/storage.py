from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Protocol, Sequence

import pandas as pd
from sqlalchemy import (
    BigInteger,
    Column,
    Double,
    Integer,
    MetaData,
    String,
    Table,
    create_engine,
    insert,
    select,
)
from sqlalchemy.engine import URL, Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.sql import Select

from pricefeed.errors import StorageError
from pricefeed.models import SYMBOL_MAX_LENGTH, PriceRecord, StoredRecord

logger = logging.getLogger(__name__)

TABLE_NAME = "records"

metadata = MetaData()

records_table = Table(
    TABLE_NAME,
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("unix", BigInteger),
    Column("symbol", String(SYMBOL_MAX_LENGTH)),
    Column("open", Double),
    Column("high", Double),
    Column("low", Double),
    Column("close", Double),
)


class PriceStore(Protocol):
    """Storage contract for price records."""

    def ensure_schema(self) -> None: ...

    def insert_batch(self, records: Sequence[PriceRecord]) -> int: ...

    def fetch(self, statement: Select) -> List[StoredRecord]: ...

    def scalar(self, statement: Select) -> int: ...

    def export_csv(self, destination: Path) -> int: ...

    def dispose(self) -> None: ...


class SqlPriceStore:
    """SQLAlchemy-backed store; works against MySQL in production and SQLite locally."""

    def __init__(self, engine: Engine) -> None:
        self.engine = engine

    @classmethod
    def from_url(cls, url: str | URL) -> "SqlPriceStore":
        return cls(create_engine(url, pool_pre_ping=True))

    def ensure_schema(self) -> None:
        """Create the records table if it is absent."""
        try:
            metadata.create_all(self.engine, tables=[records_table], checkfirst=True)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to create table {TABLE_NAME}: {exc}") from exc
        logger.info("Table %s ready on %s", TABLE_NAME, self.engine.url.render_as_string(hide_password=True))

    def insert_batch(self, records: Sequence[PriceRecord]) -> int:
        """Bulk-insert one batch in a single transaction."""
        if not records:
            return 0

        rows = [
            {
                "unix": r.timestamp,
                "symbol": r.symbol,
                "open": r.open,
                "high": r.high,
                "low": r.low,
                "close": r.close,
            }
            for r in records
        ]
        try:
            with self.engine.begin() as conn:
                conn.execute(insert(records_table), rows)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to insert batch of {len(rows)} records: {exc}") from exc

        logger.debug("Persisted %s records to %s", len(rows), TABLE_NAME)
        return len(rows)

    def fetch(self, statement: Select) -> List[StoredRecord]:
        try:
            with self.engine.connect() as conn:
                rows = conn.execute(statement).mappings().all()
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to query {TABLE_NAME}: {exc}") from exc
        return [StoredRecord(**row) for row in rows]

    def scalar(self, statement: Select) -> int:
        try:
            with self.engine.connect() as conn:
                value = conn.execute(statement).scalar_one()
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to query {TABLE_NAME}: {exc}") from exc
        return int(value or 0)

    def export_csv(self, destination: Path) -> int:
        destination.parent.mkdir(parents=True, exist_ok=True)
        statement = select(records_table).order_by(records_table.c.unix, records_table.c.id)
        try:
            with self.engine.connect() as conn:
                df = pd.read_sql(statement, conn)
        except SQLAlchemyError as exc:
            raise StorageError(f"failed to read {TABLE_NAME} for export: {exc}") from exc

        if df.empty:
            logger.warning("Table %s is empty. Nothing to export.", TABLE_NAME)
            return 0

        df.to_csv(destination, index=False)
        logger.info("Exported %s rows to %s", len(df), destination)
        return len(df)

    def dispose(self) -> None:
        self.engine.dispose()
