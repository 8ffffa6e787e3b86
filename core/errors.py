# core/errors.py
from dataclasses import dataclass
from enum import Enum


class ExtractionError(Exception):
    """Base class for failures raised by the extraction pipeline."""

    retryable = False
    status_code = 500


class InvalidURL(ExtractionError):
    """Malformed URL, unsupported scheme, or a disallowed host."""

    status_code = 400


class NetworkError(ExtractionError):
    """Fetch, render or inference transport failure."""

    retryable = True


class ParseError(ExtractionError):
    """AI response was not valid JSON in the expected shape."""


class ExtractionTimeout(ExtractionError):
    """The request deadline elapsed before any strategy produced a result."""

    retryable = True
    status_code = 408


class Unconfigured(ExtractionError):
    """A strategy's external capability is missing credentials."""


class NoExtractorAvailable(ExtractionError):
    """Every registered strategy declined the URL."""


class ErrorType(str, Enum):
    NETWORK = "network"
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    DUPLICATE = "duplicate"
    TIMEOUT = "timeout"
    UNKNOWN = "unknown"


@dataclass(eq=False)
class AppError(Exception):
    """
    Client-side error surfaced to the calling application.
    `retryable` tells the UI whether offering a retry makes sense.
    """
    type: ErrorType
    message: str
    retryable: bool = False

    def __post_init__(self):
        super().__init__(self.message)

    def __str__(self) -> str:
        return self.message


class DuplicateEntryError(Exception):
    """A wishlist entry with the same canonical URL already exists."""

    def __init__(self, canonical_url: str):
        super().__init__(f"Item already exists in wishlist: {canonical_url}")
        self.canonical_url = canonical_url
