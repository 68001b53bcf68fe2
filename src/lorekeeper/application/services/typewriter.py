from __future__ import annotations


def revealed_count(text: str, elapsed_ms: float, interval_ms: float) -> int:
    if interval_ms <= 0:
        return len(text)
    steps = int(max(0.0, float(elapsed_ms)) // float(interval_ms))
    return min(len(text), steps)


def revealed_text(text: str, elapsed_ms: float, interval_ms: float) -> str:
    """Prefix of ``text`` visible after ``elapsed_ms`` at one character per interval."""
    return text[: revealed_count(text, elapsed_ms, interval_ms)]


def reveal_duration_ms(text: str, interval_ms: float) -> int:
    return int(len(text) * max(0.0, float(interval_ms)))


def is_fully_revealed(text: str, elapsed_ms: float, interval_ms: float) -> bool:
    return revealed_count(text, elapsed_ms, interval_ms) >= len(text)
