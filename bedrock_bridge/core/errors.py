from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class FailureCategory(str, Enum):
    RATE_LIMITED = "rate_limited"
    INVALID_REQUEST = "invalid_request"
    ACCESS_DENIED = "access_denied"
    NOT_FOUND = "not_found"
    UNAVAILABLE = "unavailable"
    UNKNOWN = "unknown"


_CATEGORY_STATUS = {
    FailureCategory.RATE_LIMITED: 429,
    FailureCategory.INVALID_REQUEST: 400,
    FailureCategory.ACCESS_DENIED: 401,
    FailureCategory.NOT_FOUND: 404,
    FailureCategory.UNAVAILABLE: 503,
    FailureCategory.UNKNOWN: 500,
}

_CATEGORY_LABEL = {
    FailureCategory.RATE_LIMITED: "Rate limited by the inference backend",
    FailureCategory.INVALID_REQUEST: "Request rejected by the inference backend",
    FailureCategory.ACCESS_DENIED: "Access denied by the inference backend",
    FailureCategory.NOT_FOUND: "Model or resource not found",
    FailureCategory.UNAVAILABLE: "Inference backend unavailable",
    FailureCategory.UNKNOWN: "Inference backend error",
}


class BackendFailure(Exception):
    """A failure reported by the inference backend, already categorized."""

    def __init__(
        self,
        category: FailureCategory,
        message: str,
        *,
        code: str | None = None,
    ) -> None:
        super().__init__(message)
        self.category = category
        self.message = message
        self.code = code

    def __repr__(self) -> str:
        return (
            f"{type(self).__name__}(category={self.category.value!r}, "
            f"code={self.code!r}, message={self.message!r})"
        )


class BackendHandshakeFailure(BackendFailure):
    """Raised before any event of a stream was produced."""


class BackendStreamFailure(BackendFailure):
    """Raised after a stream started producing events."""


@dataclass(frozen=True)
class Classification:
    status_code: int
    message: str
    category: FailureCategory


def status_for_category(category: FailureCategory) -> int:
    return _CATEGORY_STATUS[category]


def classify_failure(exc: BaseException) -> Classification:
    """Map any failure to a transport status and a message safe for clients.

    Only the failure's category and its own message are used; chained causes
    and tracebacks never reach the client.
    """

    if isinstance(exc, BackendFailure):
        label = _CATEGORY_LABEL[exc.category]
        detail = _single_line(exc.message)
        message = f"{label}: {detail}" if detail else f"{label}."
        return Classification(
            status_code=status_for_category(exc.category),
            message=message,
            category=exc.category,
        )

    return Classification(
        status_code=500,
        message="Unexpected server error.",
        category=FailureCategory.UNKNOWN,
    )


def _single_line(text: str) -> str:
    return " ".join(text.split())
