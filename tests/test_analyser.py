"""Tests for the frequency analyser and its redraw loop."""

from __future__ import annotations

import asyncio
import math

import pytest

from beatshop.services.analyser import FrequencyAnalyser, LiveAnalyser, PcmTap


def _run(coro):
    return asyncio.run(coro)


def _sine(cycles: int, size: int = 64) -> list[float]:
    return [math.sin(2 * math.pi * cycles * idx / size) for idx in range(size)]


def test_default_analyser_has_32_bins() -> None:
    analyser = FrequencyAnalyser()
    assert analyser.fft_size == 64
    assert analyser.frequency_bin_count == 32
    bins = analyser.get_byte_frequency_data(_sine(4))
    assert len(bins) == 32
    assert all(0 <= value <= 255 for value in bins)


def test_invalid_configuration_rejected() -> None:
    with pytest.raises(ValueError):
        FrequencyAnalyser(fft_size=48)
    with pytest.raises(ValueError):
        FrequencyAnalyser(fft_size=16)
    with pytest.raises(ValueError):
        FrequencyAnalyser(min_decibels=-30, max_decibels=-30)
    with pytest.raises(ValueError):
        FrequencyAnalyser(smoothing=1.0)


def test_sine_peaks_at_its_bin() -> None:
    analyser = FrequencyAnalyser(smoothing=0.0, max_decibels=0.0)
    bins = analyser.get_byte_frequency_data(_sine(8))
    assert max(range(len(bins)), key=bins.__getitem__) == 8
    assert bins[8] > bins[20]


def test_silence_and_short_windows() -> None:
    analyser = FrequencyAnalyser()
    assert analyser.get_byte_frequency_data([]) == [0] * 32
    assert len(analyser.get_byte_frequency_data([0.5, -0.5])) == 32


def test_smoothing_decays_after_sound_stops() -> None:
    analyser = FrequencyAnalyser(max_decibels=0.0)
    loud = analyser.get_byte_frequency_data(_sine(8))
    quiet = analyser.get_byte_frequency_data([0.0] * 64)
    assert 0 < quiet[8] < loud[8]
    analyser.reset()
    assert analyser.get_byte_frequency_data([0.0] * 64)[8] == 0


def test_pcm_tap_window_ends_at_play_head() -> None:
    position = {"ms": 50}
    samples = [float(idx) for idx in range(100)]
    tap = PcmTap(samples, 1000, lambda: position["ms"])
    assert list(tap.window(10)) == samples[40:50]
    position["ms"] = 5
    assert list(tap.window(10)) == samples[0:5]
    position["ms"] = 10_000
    assert list(tap.window(4)) == samples[96:100]
    with pytest.raises(ValueError):
        PcmTap(samples, 0, lambda: 0)


def test_live_analyser_draws_until_stopped() -> None:
    frames: list[list[int]] = []

    async def run() -> None:
        live = LiveAnalyser(frames.append, fps=60)
        live.attach(PcmTap(_sine(8, 4096), 44_100, lambda: 50))
        live.start()
        await asyncio.sleep(0.05)
        assert live.running
        live.stop()
        await asyncio.sleep(0)
        assert not live.running
        count = len(frames)
        await asyncio.sleep(0.05)
        assert len(frames) == count

    _run(run())
    assert frames
    assert all(len(frame) == 32 for frame in frames)


def test_start_replaces_running_loop() -> None:
    async def run() -> None:
        live = LiveAnalyser(lambda bins: None, fps=30)
        live.start()
        first = live._task
        live.start()
        await asyncio.sleep(0)
        assert first is not None and first.cancelled()
        assert live.running
        await live.aclose()
        assert not live.running

    _run(run())


def test_no_draw_after_dispose() -> None:
    frames: list[list[int]] = []

    async def run() -> None:
        live = LiveAnalyser(frames.append, fps=60)
        live.start()
        await asyncio.sleep(0.02)
        await live.aclose()
        drawn = len(frames)
        assert live.disposed
        live.draw_once()
        live.start()
        await asyncio.sleep(0.02)
        assert len(frames) == drawn
        assert not live.running

    _run(run())
