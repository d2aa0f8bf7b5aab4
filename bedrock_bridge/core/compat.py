from __future__ import annotations

import re

from .model_resolver import ModelResolver

_MAX_HEADER_LENGTH = 2048
_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]+")


def resolve_model(resolver: ModelResolver, model: str) -> tuple[str, list[str]]:
    resolved = resolver.resolve(model)
    warnings: list[str] = []
    if resolved != model:
        warnings.append(f"Mapped model '{model}' to backend model '{resolved}'.")
    return resolved, warnings


def warning_headers(warnings: list[str], header_name: str) -> dict[str, str]:
    if not warnings:
        return {}

    value = header_safe(" | ".join(dedupe_preserve_order(warnings)))
    if len(value) > _MAX_HEADER_LENGTH:
        value = value[: _MAX_HEADER_LENGTH - 3] + "..."
    return {header_name: value}


def stream_headers(warnings: list[str], header_name: str) -> dict[str, str]:
    headers = warning_headers(warnings, header_name)
    headers["Cache-Control"] = "no-cache"
    headers["X-Accel-Buffering"] = "no"
    return headers


def dedupe_preserve_order(items: list[str]) -> list[str]:
    seen: set[str] = set()
    deduped: list[str] = []

    for item in items:
        if item in seen:
            continue
        seen.add(item)
        deduped.append(item)

    return deduped


def header_safe(text: str) -> str:
    """Escape non-ASCII characters and collapse control characters for a header value."""

    escaped = text.encode("ascii", "backslashreplace").decode("ascii")
    return _CONTROL_CHARS.sub(" ", escaped)
