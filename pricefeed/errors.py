"""pricefeed exception hierarchy.

Each error carries the HTTP status and short code the API reports for it,
so handlers can render any of them without a lookup table.
"""

from __future__ import annotations


class PriceFeedError(Exception):
    """Base exception for all pricefeed failures."""

    status_code: int = 500
    code: str = "internal_server_error"

    def __init__(self, details: str) -> None:
        super().__init__(details)
        self.details = details


class InvalidInputError(PriceFeedError):
    """Raised when an upload is missing or cannot be read."""

    status_code = 400
    code = "invalid_input"


class InvalidHeaderError(InvalidInputError):
    """Raised when the first line is not UNIX,SYMBOL,OPEN,HIGH,LOW,CLOSE."""

    code = "invalid_header"


class InvalidPaginationError(InvalidInputError):
    """Raised for non-numeric or out-of-range page/limit values."""

    code = "invalid_pagination"


class RowParseError(PriceFeedError):
    """Raised for a single malformed data row; handled inside the pipeline."""

    status_code = 400
    code = "invalid_row"

    def __init__(self, line_number: int, reason: str) -> None:
        super().__init__(f"line {line_number}: {reason}")
        self.line_number = line_number
        self.reason = reason


class StorageError(PriceFeedError):
    """Raised when the relational store rejects or cannot run a statement."""

    status_code = 500
    code = "storage_error"
