"""Audio fetch and decode for waveform and spectrum preview data."""

from __future__ import annotations

import io
import logging
import shutil
import struct
import subprocess
import wave
from dataclasses import dataclass

import requests

from beatshop.media_urls import url_suffix

logger = logging.getLogger(__name__)

_FFMPEG_SAMPLE_RATE = 22_050
_FFMPEG_TIMEOUT_S = 20.0
_WAVE_SUFFIXES = {".wav", ".wave"}
_MAX_DOWNLOAD_BYTES = 64 * 1024 * 1024
_DOWNLOAD_CHUNK_BYTES = 64 * 1024


class AudioFetchError(Exception):
    """Audio resource could not be downloaded."""


@dataclass(frozen=True)
class DecodedAudio:
    """Per-channel float PCM in [-1.0, 1.0]."""

    sample_rate: int
    channels: tuple[list[float], ...]

    @property
    def frame_count(self) -> int:
        return len(self.channels[0]) if self.channels else 0

    @property
    def duration_ms(self) -> int:
        if self.sample_rate <= 0:
            return 0
        return int((self.frame_count * 1000) / self.sample_rate)

    def mono(self) -> list[float]:
        """Channel average, used by the frequency analyser."""
        if len(self.channels) == 1:
            return self.channels[0]
        count = len(self.channels)
        return [sum(frame) / count for frame in zip(*self.channels)]


class AudioFetcher:
    """Download encoded audio over HTTP(S) with a shared `requests` session."""

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_s: float = 15.0,
        max_bytes: int = _MAX_DOWNLOAD_BYTES,
    ) -> None:
        self._session = session or requests.Session()
        self._timeout_s = timeout_s
        self._max_bytes = max_bytes

    def fetch(self, url: str) -> bytes:
        """Return the resource body; raise `AudioFetchError` on any failure.

        The body is streamed so an oversized or endless response is cut off
        once it passes `max_bytes` instead of being buffered in full.
        """
        try:
            with self._session.get(
                url,
                headers={"Accept": "audio/*"},
                timeout=self._timeout_s,
                allow_redirects=True,
                stream=True,
            ) as response:
                if not response.ok:
                    raise AudioFetchError(
                        f"HTTP error! status: {response.status_code}"
                    )
                payload = self._read_capped(response)
        except requests.RequestException as exc:
            raise AudioFetchError(f"Request failed: {exc}") from exc
        if not payload:
            raise AudioFetchError("Empty audio response")
        return payload

    def _read_capped(self, response: requests.Response) -> bytes:
        declared = response.headers.get("Content-Length", "")
        if declared.isdigit() and int(declared) > self._max_bytes:
            raise AudioFetchError(f"Audio response too large ({declared} bytes)")
        buffer = bytearray()
        for chunk in response.iter_content(chunk_size=_DOWNLOAD_CHUNK_BYTES):
            buffer.extend(chunk)
            if len(buffer) > self._max_bytes:
                raise AudioFetchError(
                    f"Audio response too large (over {self._max_bytes} bytes)"
                )
        return bytes(buffer)

    def close(self) -> None:
        self._session.close()


def decode_audio_bytes(payload: bytes, *, source_url: str = "") -> DecodedAudio | None:
    """Decode an encoded audio payload; return `None` when it cannot be decoded.

    WAV is handled in-process; everything else goes through an `ffmpeg` pipe
    when the binary is available.
    """
    if not payload:
        return None
    decoded = _decode_wave(payload)
    if decoded is not None:
        return decoded
    if url_suffix(source_url) in _WAVE_SUFFIXES:
        return None
    return _decode_ffmpeg(payload)


def _decode_wave(payload: bytes) -> DecodedAudio | None:
    try:
        with wave.open(io.BytesIO(payload), "rb") as handle:
            channels = int(handle.getnchannels())
            frame_rate = int(handle.getframerate())
            sample_width = int(handle.getsampwidth())
            if channels <= 0 or frame_rate <= 0 or sample_width <= 0:
                return None
            raw = handle.readframes(handle.getnframes())
    except (wave.Error, EOFError, ValueError):
        return None
    split = _pcm_to_channels(raw, channels=channels, sample_width=sample_width)
    if not split or not split[0]:
        return None
    return DecodedAudio(sample_rate=frame_rate, channels=split)


def _decode_ffmpeg(payload: bytes) -> DecodedAudio | None:
    ffmpeg_bin = shutil.which("ffmpeg")
    if ffmpeg_bin is None:
        logger.debug("ffmpeg not found; cannot decode non-WAV audio")
        return None
    cmd = [
        ffmpeg_bin,
        "-v",
        "error",
        "-i",
        "pipe:0",
        "-vn",
        "-sn",
        "-dn",
        "-f",
        "s16le",
        "-acodec",
        "pcm_s16le",
        "-ac",
        "2",
        "-ar",
        str(_FFMPEG_SAMPLE_RATE),
        "pipe:1",
    ]
    try:
        completed = subprocess.run(
            cmd,
            input=payload,
            stdout=subprocess.PIPE,
            stderr=subprocess.DEVNULL,
            timeout=_FFMPEG_TIMEOUT_S,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        logger.warning("ffmpeg decode failed: %s", exc)
        return None
    if completed.returncode != 0 or not completed.stdout:
        return None
    left: list[float] = []
    right: list[float] = []
    usable = len(completed.stdout) - (len(completed.stdout) % 4)
    for left_raw, right_raw in struct.iter_unpack("<hh", completed.stdout[:usable]):
        left.append(left_raw / 32768.0)
        right.append(right_raw / 32768.0)
    if not left:
        return None
    return DecodedAudio(sample_rate=_FFMPEG_SAMPLE_RATE, channels=(left, right))


def _pcm_to_channels(
    raw: bytes, *, channels: int, sample_width: int
) -> tuple[list[float], ...]:
    bytes_per_frame = channels * sample_width
    frame_count = len(raw) // bytes_per_frame
    out: tuple[list[float], ...] = tuple([] for _ in range(channels))
    if frame_count <= 0:
        return out
    max_value = _sample_max(sample_width)
    if sample_width == 2:
        usable = frame_count * bytes_per_frame
        for frame in struct.iter_unpack("<" + ("h" * channels), raw[:usable]):
            for channel, sample in enumerate(frame):
                out[channel].append(sample / max_value)
        return out
    for frame_idx in range(frame_count):
        offset = frame_idx * bytes_per_frame
        for channel in range(channels):
            sample = _read_sample(raw, offset + channel * sample_width, sample_width)
            out[channel].append(_clamp_sample(sample / max_value))
    return out


def _read_sample(raw: bytes, offset: int, sample_width: int) -> int:
    if sample_width == 1:
        return raw[offset] - 128
    if sample_width == 3:
        value = int.from_bytes(raw[offset : offset + 3], "little", signed=False)
        if value & 0x800000:
            value -= 0x1000000
        return value
    if sample_width == 4:
        return int.from_bytes(raw[offset : offset + 4], "little", signed=True)
    raise ValueError("Unsupported sample width")


def _sample_max(sample_width: int) -> float:
    return float(1 << (8 * sample_width - 1))


def _clamp_sample(value: float) -> float:
    return max(-1.0, min(1.0, float(value)))
