from __future__ import annotations


def estimate_tokens(text: str) -> int:
    return estimate_tokens_for_chars(len(text))


def estimate_tokens_for_chars(char_count: int) -> int:
    # Roughly four characters per token; never report zero.
    return max(1, char_count // 4)
