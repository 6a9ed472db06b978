"""Static waveform reduction for catalog previews."""

from __future__ import annotations

import random
from collections.abc import Sequence

PLACEHOLDER_MIN = 0.25
PLACEHOLDER_SPAN = 0.5


def extract_waveform(samples: Sequence[float], width: int) -> list[float]:
    """Reduce samples to `width` buckets of normalized mean absolute amplitude.

    Bucket boundaries are proportional, so the result always has exactly
    `width` values even when there are fewer samples than buckets. The loudest
    bucket is scaled to 1.0; all-silent input yields zeros.
    """
    width = int(width)
    if width <= 0:
        raise ValueError("width must be positive")
    total = len(samples)
    if total == 0:
        return [0.0] * width

    buckets: list[float] = []
    for index in range(width):
        start = (index * total) // width
        end = ((index + 1) * total) // width
        if end <= start:
            # Fewer samples than buckets: reuse the sample under this bucket.
            end = min(total, start + 1)
            start = min(start, total - 1)
        window = samples[start:end]
        buckets.append(sum(abs(float(value)) for value in window) / len(window))

    peak = max(buckets)
    if peak <= 0.0:
        return [0.0] * width
    return [max(0.0, min(1.0, value / peak)) for value in buckets]


def placeholder_waveform(width: int, rng: random.Random | None = None) -> list[float]:
    """Pseudo-random bars in [0.25, 0.75) shown when audio cannot be decoded."""
    width = int(width)
    if width <= 0:
        raise ValueError("width must be positive")
    source = rng or random.Random()
    return [source.random() * PLACEHOLDER_SPAN + PLACEHOLDER_MIN for _ in range(width)]
