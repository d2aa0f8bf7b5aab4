from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from bedrock_bridge.core.errors import FailureCategory, classify_failure

_CATEGORY_ERRORS = {
    FailureCategory.RATE_LIMITED: ("rate_limit_error", "rate_limited"),
    FailureCategory.INVALID_REQUEST: ("invalid_request_error", "invalid_request"),
    FailureCategory.ACCESS_DENIED: ("authentication_error", "access_denied"),
    FailureCategory.NOT_FOUND: ("invalid_request_error", "model_not_found"),
    FailureCategory.UNAVAILABLE: ("server_error", "model_unavailable"),
    FailureCategory.UNKNOWN: ("server_error", "internal_error"),
}


@dataclass
class OpenAICompatError(Exception):
    """OpenAI-style error wrapper with HTTP metadata."""

    status_code: int
    message: str
    error_type: str = "invalid_request_error"
    code: str | None = None
    param: str | None = None

    def to_error(self) -> dict[str, Any]:
        return {
            "message": self.message,
            "type": self.error_type,
            "param": self.param,
            "code": self.code,
        }


def map_openai_error(exc: Exception) -> OpenAICompatError:
    """Map gateway and inference backend failures to OpenAI-style API errors."""

    if isinstance(exc, OpenAICompatError):
        return exc

    classification = classify_failure(exc)
    error_type, code = _CATEGORY_ERRORS[classification.category]

    return OpenAICompatError(
        status_code=classification.status_code,
        message=classification.message,
        error_type=error_type,
        code=code,
    )
