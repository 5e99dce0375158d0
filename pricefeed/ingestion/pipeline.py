from __future__ import annotations

import csv
import logging
from typing import BinaryIO, Iterable, Iterator, List, Tuple

from pricefeed.config import settings
from pricefeed.errors import InvalidHeaderError, InvalidInputError, RowParseError, StorageError
from pricefeed.ingestion.parser import parse_row, validate_header
from pricefeed.models import PriceRecord, UploadOutcome
from pricefeed.storage import PriceStore, SqlPriceStore

logger = logging.getLogger(__name__)

DEFAULT_BATCH_SIZE = 1000
DEFAULT_MAX_RECORDED_SKIPS = 50


def _decoded_lines(stream: Iterable[bytes]) -> Iterator[str]:
    """Decode an uploaded byte stream line by line; a UTF-8 BOM on the first line is dropped."""
    encoding = "utf-8-sig"
    try:
        for raw in stream:
            yield raw.decode(encoding)
            encoding = "utf-8"
    except UnicodeDecodeError as exc:
        raise InvalidInputError(f"upload is not valid UTF-8 text: {exc}") from exc
    except OSError as exc:
        raise InvalidInputError(f"failed to read upload: {exc}") from exc


def _split_line(text: str, line_number: int) -> List[str]:
    """Split one physical line into fields; quotes never carry over to the next line."""
    try:
        return next(csv.reader([text], strict=True), [])
    except csv.Error as exc:
        raise RowParseError(line_number, f"unparseable CSV: {exc}") from exc


class CsvIngestionPipeline:
    """Parses an uploaded CSV into price records and persists them in fixed-size batches."""

    def __init__(
        self,
        store: PriceStore,
        batch_size: int = DEFAULT_BATCH_SIZE,
        max_recorded_skips: int = DEFAULT_MAX_RECORDED_SKIPS,
    ) -> None:
        if batch_size < 1:
            raise ValueError("batch_size must be at least 1")
        self.store = store
        self.batch_size = batch_size
        self.max_recorded_skips = max_recorded_skips

    def ingest(self, stream: BinaryIO) -> UploadOutcome:
        """Read the whole stream, returning what was inserted and what was skipped.

        Malformed rows are recorded on the outcome and never stop the read. A failed
        flush raises StorageError; batches flushed before it stay persisted. The
        stream is closed on every exit path.
        """
        try:
            return self._ingest(stream)
        finally:
            stream.close()

    def _ingest(self, stream: BinaryIO) -> UploadOutcome:
        lines = enumerate(_decoded_lines(stream), start=1)
        self._read_header(lines)

        outcome = UploadOutcome()
        batch: List[PriceRecord] = []
        for line_number, line in lines:
            text = line.rstrip("\r\n")
            if not text:
                continue

            outcome.rows_read += 1
            try:
                batch.append(parse_row(_split_line(text, line_number), line_number))
            except RowParseError as exc:
                self._skip(outcome, exc)
                continue

            if len(batch) >= self.batch_size:
                self._flush(batch, outcome)
                batch = []

        if batch:
            self._flush(batch, outcome)

        logger.info(
            "Ingested upload: %s rows read, %s inserted in %s batches, %s skipped",
            outcome.rows_read,
            outcome.inserted,
            outcome.batches,
            outcome.skipped_count,
        )
        return outcome

    @staticmethod
    def _read_header(lines: Iterator[Tuple[int, str]]) -> None:
        try:
            line_number, line = next(lines)
        except StopIteration:
            raise InvalidHeaderError("CSV header is missing") from None
        try:
            header = _split_line(line.rstrip("\r\n"), line_number)
        except RowParseError as exc:
            raise InvalidHeaderError(f"CSV header is unreadable: {exc.reason}") from exc
        validate_header(header)

    def _skip(self, outcome: UploadOutcome, exc: RowParseError) -> None:
        logger.warning("Skipping row at line %s: %s", exc.line_number, exc.reason)
        outcome.skip(exc.line_number, exc.reason, keep=self.max_recorded_skips)

    def _flush(self, batch: List[PriceRecord], outcome: UploadOutcome) -> None:
        try:
            inserted = self.store.insert_batch(batch)
        except StorageError:
            logger.exception(
                "Batch flush of %s records failed; %s records already persisted",
                len(batch),
                outcome.inserted,
            )
            raise
        outcome.inserted += inserted
        outcome.batches += 1
        logger.debug("Flushed batch %s (%s records)", outcome.batches, inserted)


def build_pipeline(batch_size: int | None = None) -> CsvIngestionPipeline:
    """Create a pipeline with default settings and store."""
    store = SqlPriceStore.from_url(settings.database_url)
    store.ensure_schema()
    return CsvIngestionPipeline(
        store=store,
        batch_size=batch_size or settings.ingest_batch_size,
        max_recorded_skips=settings.max_reported_skips,
    )
