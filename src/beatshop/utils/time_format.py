"""Time formatting helpers for the UI."""

from __future__ import annotations

import math


def format_time_ms(ms: int) -> str:
    """Format milliseconds as M:SS, matching catalog length strings."""
    total_seconds = _coerce_ms(ms) // 1000
    minutes, seconds = divmod(total_seconds, 60)
    return f"{minutes}:{seconds:02d}"


def format_progress(position_ms: int, duration_ms: int) -> str:
    """Return `position/duration`, using a placeholder for unknown duration."""
    position = format_time_ms(position_ms)
    if duration_ms <= 0:
        return f"{position}/-:--"
    return f"{position}/{format_time_ms(duration_ms)}"


def parse_length(text: str) -> int | None:
    """Parse an `M:SS` (or `H:MM:SS`) length string into milliseconds."""
    parts = text.strip().split(":")
    if not 2 <= len(parts) <= 3:
        return None
    try:
        numbers = [int(part) for part in parts]
    except ValueError:
        return None
    if any(number < 0 for number in numbers) or numbers[-1] >= 60:
        return None
    seconds = 0
    for number in numbers:
        seconds = seconds * 60 + number
    return seconds * 1000


def _coerce_ms(value: int) -> int:
    try:
        numeric = float(value)
    except (TypeError, ValueError):
        return 0
    if not math.isfinite(numeric):
        return 0
    return max(0, int(numeric))
