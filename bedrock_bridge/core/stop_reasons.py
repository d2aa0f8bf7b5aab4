from __future__ import annotations

ANTHROPIC_DEFAULT_STOP_REASON = "end_turn"
OPENAI_DEFAULT_FINISH_REASON = "stop"

_ANTHROPIC_STOP_REASONS = {
    "end_turn": "end_turn",
    "max_tokens": "max_tokens",
    "tool_use": "tool_use",
    "stop_sequence": "stop_sequence",
}

_OPENAI_FINISH_REASONS = {
    "end_turn": "stop",
    "max_tokens": "length",
    "tool_use": "tool_calls",
    "stop_sequence": "stop",
    "guardrail_intervened": "content_filter",
    "content_filtered": "content_filter",
}


def to_anthropic_stop_reason(stop_reason: str | None) -> str:
    if stop_reason is None:
        return ANTHROPIC_DEFAULT_STOP_REASON
    return _ANTHROPIC_STOP_REASONS.get(stop_reason, ANTHROPIC_DEFAULT_STOP_REASON)


def to_openai_finish_reason(stop_reason: str | None) -> str:
    if stop_reason is None:
        return OPENAI_DEFAULT_FINISH_REASON
    return _OPENAI_FINISH_REASONS.get(stop_reason, OPENAI_DEFAULT_FINISH_REASON)
