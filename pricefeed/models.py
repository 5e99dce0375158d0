from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, model_validator
from pydantic.alias_generators import to_camel

SYMBOL_MAX_LENGTH = 20
INT64_MAX = 2**63 - 1


class PriceRecord(BaseModel):
    """One OHLC price point for a symbol at a unix timestamp."""

    model_config = ConfigDict(populate_by_name=True)

    timestamp: int = Field(..., alias="unix", description="Seconds since the unix epoch.")
    symbol: str = Field(..., description="Ticker symbol, taken verbatim from the upload.")
    open: float
    high: float
    low: float
    close: float


class StoredRecord(PriceRecord):
    """A price record as persisted, with its storage-assigned id."""

    id: int = Field(..., description="Auto-incremented surrogate key.")


class SkippedRow(BaseModel):
    line: int
    reason: str


class UploadOutcome(BaseModel):
    """Accumulator for one upload: what was read, inserted and dropped."""

    rows_read: int = 0
    inserted: int = 0
    batches: int = 0
    skipped_count: int = 0
    skipped: List[SkippedRow] = Field(default_factory=list, description="First skipped rows, in line order.")

    def skip(self, line: int, reason: str, keep: int) -> None:
        """Count a skipped row, recording its reason only while fewer than ``keep`` are held."""
        self.skipped_count += 1
        if len(self.skipped) < keep:
            self.skipped.append(SkippedRow(line=line, reason=reason))


class UploadResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    inserted_records: int
    skipped_records: int
    rows_read: int
    skipped: List[SkippedRow] = Field(default_factory=list)
    message: str

    @classmethod
    def from_outcome(cls, outcome: UploadOutcome, max_reported_skips: int) -> "UploadResponse":
        return cls(
            inserted_records=outcome.inserted,
            skipped_records=outcome.skipped_count,
            rows_read=outcome.rows_read,
            skipped=outcome.skipped[:max_reported_skips],
            message=f"Uploaded {outcome.inserted} records",
        )


class PageRequest(BaseModel):
    """Validated read parameters; offset is derived from page and limit."""

    symbol: Optional[str] = None
    page: int = Field(1, ge=1, le=INT64_MAX)
    limit: int = Field(10, ge=1, le=INT64_MAX)

    @model_validator(mode="after")
    def _offset_fits_int64(self) -> "PageRequest":
        if (self.page - 1) * self.limit > INT64_MAX:
            raise ValueError("page and limit put the offset past a 64-bit integer")
        return self

    @computed_field  # type: ignore[misc]
    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit


class PageResult(BaseModel):
    page: int
    limit: int
    total: int
    results: List[StoredRecord]


class ErrorResponse(BaseModel):
    error: str
    details: str
    status: int
