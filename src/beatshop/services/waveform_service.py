"""Waveform loading with bounded retry, placeholder fallback and memoization."""

from __future__ import annotations

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol

from beatshop.utils.async_utils import run_blocking

from .audio_decode import (
    AudioFetcher,
    AudioFetchError,
    DecodedAudio,
    decode_audio_bytes,
)
from .waveform import extract_waveform, placeholder_waveform

logger = logging.getLogger(__name__)

WaveformStatus = Literal["ready", "fallback"]
WAVEFORM_UNAVAILABLE_MESSAGE = "Audio preview unavailable."

MAX_ATTEMPTS = 3
BASE_DELAY_S = 1.0
MAX_DELAY_S = 4.0


class AudioSource(Protocol):
    def fetch(self, url: str) -> bytes: ...


class WaveformDecodeError(Exception):
    """Downloaded audio could not be decoded to PCM."""


@dataclass(frozen=True)
class WaveformResult:
    """Buckets for one `(url, width)` request plus the decoded audio, if any."""

    buckets: tuple[float, ...]
    status: WaveformStatus
    error: str | None = None
    audio: DecodedAudio | None = None

    @property
    def is_fallback(self) -> bool:
        return self.status == "fallback"


def backoff_delay_s(
    attempt: int,
    *,
    base_delay_s: float = BASE_DELAY_S,
    max_delay_s: float = MAX_DELAY_S,
) -> float:
    """Delay before retry number `attempt` (1-based), doubling up to the cap."""
    if attempt <= 0:
        return 0.0
    return min(max_delay_s, max(0.0, base_delay_s) * (2 ** (attempt - 1)))


class WaveformService:
    """Fetch, decode and reduce preview audio into waveform buckets.

    Every card asks this service for its buckets, so successful results are
    memoized per `(url, width)`. Failures are not cached and a later request
    retries from scratch.
    """

    def __init__(
        self,
        *,
        fetcher: AudioSource | None = None,
        max_attempts: int = MAX_ATTEMPTS,
        base_delay_s: float = BASE_DELAY_S,
        max_delay_s: float = MAX_DELAY_S,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rng: random.Random | None = None,
    ) -> None:
        self._fetcher = fetcher or AudioFetcher()
        self._max_attempts = max(1, int(max_attempts))
        self._base_delay_s = base_delay_s
        self._max_delay_s = max_delay_s
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._cache: dict[tuple[str, int], WaveformResult] = {}

    async def load(self, url: str, width: int) -> WaveformResult:
        """Return waveform buckets for `url`; never raises except on cancel."""
        if width <= 0:
            raise ValueError("width must be positive")
        key = (url, int(width))
        cached = self._cache.get(key)
        if cached is not None:
            return cached

        last_error: Exception | None = None
        for attempt in range(1, self._max_attempts + 1):
            try:
                audio = await self._fetch_and_decode(url)
            except (AudioFetchError, WaveformDecodeError, OSError) as exc:
                last_error = exc
                logger.warning(
                    "Waveform attempt %d/%d failed for %s: %s",
                    attempt,
                    self._max_attempts,
                    url,
                    exc,
                    extra={"event": "waveform_attempt_failed", "attempt": attempt},
                )
                if attempt < self._max_attempts:
                    await self._sleep(
                        backoff_delay_s(
                            attempt,
                            base_delay_s=self._base_delay_s,
                            max_delay_s=self._max_delay_s,
                        )
                    )
                continue
            buckets = extract_waveform(audio.channels[0], key[1])
            result = WaveformResult(
                buckets=tuple(buckets), status="ready", audio=audio
            )
            self._cache[key] = result
            logger.debug(
                "Waveform ready",
                extra={"event": "waveform_ready", "url": url, "width": key[1]},
            )
            return result

        logger.error(
            "Waveform unavailable for %s after %d attempts: %s",
            url,
            self._max_attempts,
            last_error,
            extra={"event": "waveform_fallback"},
        )
        return WaveformResult(
            buckets=tuple(placeholder_waveform(key[1], self._rng)),
            status="fallback",
            error=WAVEFORM_UNAVAILABLE_MESSAGE,
        )

    def cached(self, url: str, width: int) -> WaveformResult | None:
        return self._cache.get((url, int(width)))

    def clear(self) -> None:
        self._cache.clear()

    async def _fetch_and_decode(self, url: str) -> DecodedAudio:
        payload = await run_blocking(self._fetcher.fetch, url)
        audio = await run_blocking(decode_audio_bytes, payload, source_url=url)
        if audio is None or not audio.channels or not audio.channels[0]:
            raise WaveformDecodeError("Unable to decode audio data")
        return audio
