# agents/errors.py
"""
Error taxonomy for the extraction/search pipeline and the two string-based
classifiers built on top of it.

`is_non_retryable` drives control flow (the retrier asks it whether to try
again). `classify_error` / `classify_user_message` drive presentation. The
two are independent: changing a user-facing text must never change retry
policy.
"""
from __future__ import annotations

from enum import Enum
from typing import Literal, Optional

Domain = Literal["extraction", "search"]

NON_RETRYABLE_PHRASES = ("api key", "unauthorized", "forbidden", "invalid url")
# Validation failures raised by our own code.
NON_RETRYABLE_VALIDATION_PHRASES = ("invalid url format", "missing required")


class DealFinderError(Exception):
    """Base class for pipeline errors."""


class ConfigurationError(DealFinderError):
    """Missing credential or unusable client. Terminal."""


class ValidationError(DealFinderError):
    """Bad URL, bad arguments or an extraction missing required fields. Terminal."""


class TransientServiceError(DealFinderError):
    """Timeouts, network failures, rate limits and unknown vendor failures. Retryable."""


class NoDataError(TransientServiceError):
    """The extraction call returned no structured payload. Retryable."""


class ErrorCategory(str, Enum):
    TIMEOUT = "timeout"
    NETWORK = "network"
    SERVICE_UNAVAILABLE = "service_unavailable"
    INVALID_URL = "invalid_url"
    EXTRACTION_FAILED = "extraction_failed"
    RATE_LIMIT = "rate_limit"
    NO_RESULTS = "no_results"
    UNKNOWN = "unknown"


_MESSAGES = {
    "extraction": {
        ErrorCategory.TIMEOUT: (
            "The product page took too long to load. This might happen with slow websites "
            "or during high traffic. Please try again later."
        ),
        ErrorCategory.NETWORK: "Unable to connect to the website. Please check the URL and try again.",
        ErrorCategory.SERVICE_UNAVAILABLE: "Service temporarily unavailable. Please try again later.",
        ErrorCategory.INVALID_URL: "The provided URL appears to be invalid. Please check the URL and try again.",
        ErrorCategory.EXTRACTION_FAILED: (
            "Unable to extract product information from this page. The page might not be a "
            "product page or may have an unusual format."
        ),
        ErrorCategory.RATE_LIMIT: "Too many requests. Please wait a moment and try again.",
        ErrorCategory.UNKNOWN: "Unable to analyze this product page. Please try a different URL or try again later.",
    },
    "search": {
        ErrorCategory.TIMEOUT: "The search took too long to complete. Please try again later.",
        ErrorCategory.NETWORK: "Unable to connect to search services. Please try again later.",
        ErrorCategory.SERVICE_UNAVAILABLE: "Search service temporarily unavailable. Please try again later.",
        ErrorCategory.RATE_LIMIT: "Too many search requests. Please wait a moment and try again.",
        ErrorCategory.NO_RESULTS: (
            "No similar products found. This might be normal for unique or specialized items."
        ),
        ErrorCategory.UNKNOWN: "Unable to search for similar products. Please try again later.",
    },
}

_UNEXPECTED = {
    "extraction": "An unexpected error occurred while extracting product information.",
    "search": "An unexpected error occurred while searching for similar products.",
}


class ClassifiedError(DealFinderError):
    """
    User-facing error. `str(err)` is safe to show; the raw error stays on
    `__cause__` for logs only.
    """

    def __init__(self, message: str, *, category: ErrorCategory, domain: str, retryable: bool):
        super().__init__(message)
        self.message = message
        self.category = category
        self.domain = domain
        self.retryable = retryable


def as_error(value: object) -> Exception:
    """Coerce anything that was raised/rejected into an Exception."""
    if isinstance(value, Exception):
        return value
    return Exception(str(value))


def _message_of(error: object) -> str:
    return str(as_error(error)).lower()


def is_non_retryable(error: object) -> bool:
    message = _message_of(error)
    if any(phrase in message for phrase in NON_RETRYABLE_PHRASES):
        return True
    if any(phrase in message for phrase in NON_RETRYABLE_VALIDATION_PHRASES):
        return True
    return False


def is_retryable(error: BaseException) -> bool:
    # Only real failures are retried; cancellation and interpreter exits pass straight through.
    return isinstance(error, Exception) and not is_non_retryable(error)


def classify_error(error: object, domain: Domain = "extraction") -> ErrorCategory:
    if not isinstance(error, Exception):
        return ErrorCategory.UNKNOWN

    message = str(error).lower()

    if "timeout" in message or "etimedout" in message:
        return ErrorCategory.TIMEOUT
    if "network" in message or "connection" in message or "econnrefused" in message:
        return ErrorCategory.NETWORK
    if "api key" in message or "unauthorized" in message:
        return ErrorCategory.SERVICE_UNAVAILABLE
    if domain == "extraction":
        if "invalid url" in message or "malformed" in message:
            return ErrorCategory.INVALID_URL
        if "no data" in message or "failed to extract" in message:
            return ErrorCategory.EXTRACTION_FAILED
    if "rate limit" in message or "too many requests" in message:
        return ErrorCategory.RATE_LIMIT
    if domain == "search" and ("no results" in message or "empty" in message):
        return ErrorCategory.NO_RESULTS
    return ErrorCategory.UNKNOWN


def classify_user_message(error: object, domain: Domain = "extraction") -> str:
    if not isinstance(error, Exception):
        return _UNEXPECTED[domain]
    category = classify_error(error, domain)
    return _MESSAGES[domain][category]


def to_classified(error: object, domain: Domain) -> ClassifiedError:
    """Wrap a raw failure into the error we re-raise to callers."""
    if isinstance(error, ClassifiedError):
        return error
    return ClassifiedError(
        classify_user_message(error, domain),
        category=classify_error(error, domain),
        domain=domain,
        retryable=not is_non_retryable(error),
    )


def describe(error: Optional[BaseException]) -> str:
    """Short `Type: message` form for logs."""
    if error is None:
        return ""
    return f"{type(error).__name__}: {error}"
