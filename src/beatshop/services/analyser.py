"""Live frequency analysis for the per-card spectrum display.

`FrequencyAnalyser` mirrors the behaviour of a browser analyser node: a short
FFT over the samples under the play head, exponential time smoothing, and a
decibel range mapped onto byte bins. `LiveAnalyser` drives a redraw loop that
pulls those bins while a card plays.
"""

from __future__ import annotations

import asyncio
import cmath
import logging
import math
from collections.abc import Callable, Sequence
from contextlib import suppress

logger = logging.getLogger(__name__)

DEFAULT_FFT_SIZE = 64
DEFAULT_MIN_DECIBELS = -100.0
DEFAULT_MAX_DECIBELS = -30.0
DEFAULT_SMOOTHING = 0.8

DrawCallback = Callable[[list[int]], None]
PositionProvider = Callable[[], int]


class FrequencyAnalyser:
    """Byte-valued frequency bins for a fixed FFT size."""

    def __init__(
        self,
        *,
        fft_size: int = DEFAULT_FFT_SIZE,
        min_decibels: float = DEFAULT_MIN_DECIBELS,
        max_decibels: float = DEFAULT_MAX_DECIBELS,
        smoothing: float = DEFAULT_SMOOTHING,
    ) -> None:
        if fft_size < 32 or fft_size & (fft_size - 1):
            raise ValueError("fft_size must be a power of two >= 32")
        if max_decibels <= min_decibels:
            raise ValueError("max_decibels must exceed min_decibels")
        if not 0.0 <= smoothing < 1.0:
            raise ValueError("smoothing must be in [0, 1)")
        self.fft_size = fft_size
        self.min_decibels = min_decibels
        self.max_decibels = max_decibels
        self.smoothing = smoothing
        self._previous = [0.0] * self.frequency_bin_count
        self._window = _hann_coefficients(fft_size)

    @property
    def frequency_bin_count(self) -> int:
        return self.fft_size // 2

    def reset(self) -> None:
        self._previous = [0.0] * self.frequency_bin_count

    def get_byte_frequency_data(self, samples: Sequence[float]) -> list[int]:
        """Return `frequency_bin_count` values in 0..255 for the latest window.

        Short input is zero-padded at the front, so silence or an empty window
        decays the smoothed magnitudes towards zero.
        """
        size = self.fft_size
        window = list(samples[-size:])
        if len(window) < size:
            window = [0.0] * (size - len(window)) + window
        weighted = [value * coeff for value, coeff in zip(window, self._window)]
        spectrum = _fft(weighted)
        span = self.max_decibels - self.min_decibels
        out: list[int] = []
        for index in range(self.frequency_bin_count):
            magnitude = abs(spectrum[index]) / size
            smoothed = (self.smoothing * self._previous[index]) + (
                (1.0 - self.smoothing) * magnitude
            )
            self._previous[index] = smoothed
            if smoothed <= 0.0:
                out.append(0)
                continue
            decibels = 20.0 * math.log10(smoothed)
            scaled = 255.0 * (decibels - self.min_decibels) / span
            out.append(int(max(0.0, min(255.0, scaled))))
        return out


class PcmTap:
    """Decoded samples plus the current play-head position."""

    def __init__(
        self,
        samples: Sequence[float],
        sample_rate: int,
        position_ms: PositionProvider,
    ) -> None:
        if sample_rate <= 0:
            raise ValueError("sample_rate must be positive")
        self._samples = samples
        self._sample_rate = sample_rate
        self._position_ms = position_ms

    def window(self, size: int) -> Sequence[float]:
        """Return up to `size` samples ending at the play head."""
        position = max(0, int(self._position_ms()))
        end = min(len(self._samples), (position * self._sample_rate) // 1000)
        start = max(0, end - size)
        return self._samples[start:end]


class LiveAnalyser:
    """Single redraw loop feeding analyser bins into a draw callback."""

    def __init__(
        self,
        draw: DrawCallback,
        *,
        analyser: FrequencyAnalyser | None = None,
        fps: int = 20,
    ) -> None:
        self._draw = draw
        self._analyser = analyser or FrequencyAnalyser()
        self._interval_s = 1.0 / max(1, int(fps))
        self._tap: PcmTap | None = None
        self._task: asyncio.Task[None] | None = None
        self._disposed = False

    @property
    def analyser(self) -> FrequencyAnalyser:
        return self._analyser

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    @property
    def disposed(self) -> bool:
        return self._disposed

    def attach(self, tap: PcmTap | None) -> None:
        """Connect the analyser to a new source; the old one is released."""
        if self._disposed:
            return
        self._tap = tap
        self._analyser.reset()

    def start(self) -> None:
        """Start redrawing; any loop already running is cancelled first."""
        if self._disposed:
            return
        self.stop()
        self._task = asyncio.get_running_loop().create_task(self._run())

    def stop(self) -> None:
        task = self._task
        self._task = None
        if task is not None and not task.done():
            task.cancel()

    async def aclose(self) -> None:
        """Dispose and wait for the loop task to finish unwinding."""
        task = self._task
        self.dispose()
        if task is not None:
            with suppress(asyncio.CancelledError):
                await task

    def dispose(self) -> None:
        """Stop the loop and release the tap; no draw happens afterwards."""
        self.stop()
        self._tap = None
        self._disposed = True

    def draw_once(self) -> list[int]:
        tap = self._tap
        samples: Sequence[float] = () if tap is None else tap.window(
            self._analyser.fft_size
        )
        bins = self._analyser.get_byte_frequency_data(samples)
        if not self._disposed:
            self._draw(bins)
        return bins

    async def _run(self) -> None:
        while not self._disposed:
            try:
                self.draw_once()
            except Exception:
                logger.exception(
                    "Spectrum redraw failed", extra={"event": "spectrum_draw_error"}
                )
                return
            await asyncio.sleep(self._interval_s)


def _hann_coefficients(size: int) -> list[float]:
    return [
        0.5 - (0.5 * math.cos((2.0 * math.pi * idx) / (size - 1)))
        for idx in range(size)
    ]


def _fft(values: list[float]) -> list[complex]:
    """Radix-2 Cooley-Tukey FFT; `len(values)` must be a power of two."""
    size = len(values)
    if size == 1:
        return [complex(values[0])]
    even = _fft(values[0::2])
    odd = _fft(values[1::2])
    out = [0j] * size
    half = size // 2
    for k in range(half):
        twiddle = cmath.exp(-2j * math.pi * k / size) * odd[k]
        out[k] = even[k] + twiddle
        out[k + half] = even[k] - twiddle
    return out
