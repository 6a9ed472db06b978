"""Per-card playback session: waveform, transport and live spectrum.

A session lives as long as its catalog card. It owns one playback backend
(created lazily on first play) and one `LiveAnalyser`; both are released in
`dispose`. Coordination with other cards goes through the shared
`ActivePlayerStore`, so starting this session pauses whichever card played
before it.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Literal

from .analyser import DrawCallback, LiveAnalyser, PcmTap
from .audio_decode import DecodedAudio
from .play_coordinator import ActivePlayerStore
from .playback_backend import (
    BackendError,
    BackendEvent,
    MediaChanged,
    PlaybackBackend,
    PositionUpdated,
    StateChanged,
)
from .waveform_service import WaveformResult, WaveformService

logger = logging.getLogger(__name__)

SessionStatus = Literal["idle", "loading", "playing", "paused", "stopped", "error"]
BackendFactory = Callable[[], PlaybackBackend]
ChangeCallback = Callable[["PreviewSession"], None]
PlayRecorder = Callable[[str], Awaitable[None]]

PLAYBACK_UNAVAILABLE_MESSAGE = "Playback unavailable."


class PreviewSession:
    def __init__(
        self,
        entry_id: str,
        url: str,
        *,
        coordinator: ActivePlayerStore,
        waveform_service: WaveformService,
        backend_factory: BackendFactory,
        draw_spectrum: DrawCallback | None = None,
        on_change: ChangeCallback | None = None,
        on_play: PlayRecorder | None = None,
        expected_duration_ms: int | None = None,
        visualizer_fps: int = 20,
    ) -> None:
        self.entry_id = entry_id
        self.url = url
        self.status: SessionStatus = "idle"
        self.position_ms = 0
        self.duration_ms = int(expected_duration_ms or 0)
        self.buckets: tuple[float, ...] = ()
        self.waveform_error: str | None = None
        self.playback_error: str | None = None
        self._expected_duration_ms = expected_duration_ms
        self._coordinator = coordinator
        self._waveform_service = waveform_service
        self._backend_factory = backend_factory
        self._backend: PlaybackBackend | None = None
        self._loaded_url: str | None = None
        self._audio: DecodedAudio | None = None
        self._on_change = on_change
        self._on_play = on_play
        self._waveform_task: asyncio.Task[WaveformResult] | None = None
        self._disposed = False
        self._play_attempt = 0
        self._analyser = LiveAnalyser(
            draw_spectrum or _discard_bins, fps=visualizer_fps
        )
        coordinator.register(entry_id, self._pause_for_handoff)

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def is_playing(self) -> bool:
        return self.status == "playing"

    @property
    def progress(self) -> float:
        """Played fraction in [0, 1]; zero while the duration is unknown."""
        if self.duration_ms <= 0:
            return 0.0
        return max(0.0, min(1.0, self.position_ms / self.duration_ms))

    @property
    def has_error(self) -> bool:
        return self.waveform_error is not None or self.playback_error is not None

    @property
    def analyser(self) -> LiveAnalyser:
        return self._analyser

    async def load_waveform(self, width: int) -> WaveformResult:
        """Load buckets for the current URL.

        Raises `asyncio.CancelledError` when the URL changes or the session is
        disposed before the load finishes; no fallback is applied then.
        """
        if self._disposed:
            raise asyncio.CancelledError()
        self._cancel_waveform()
        url = self.url
        task = asyncio.get_running_loop().create_task(
            self._waveform_service.load(url, width)
        )
        self._waveform_task = task
        try:
            result = await task
        finally:
            if self._waveform_task is task:
                self._waveform_task = None
        if self._disposed or url != self.url:
            raise asyncio.CancelledError()
        self.buckets = result.buckets
        self.waveform_error = result.error
        self._audio = result.audio
        if result.audio is not None:
            if self.duration_ms <= 0:
                self.duration_ms = result.audio.duration_ms
            self._analyser.attach(
                PcmTap(
                    result.audio.mono(),
                    result.audio.sample_rate,
                    lambda: self.position_ms,
                )
            )
        self._changed()
        return result

    async def set_source(self, url: str) -> None:
        """Point the session at a new URL, discarding all per-URL state."""
        if self._disposed or url == self.url:
            return
        self._cancel_waveform()
        if self.status in {"playing", "paused", "loading"}:
            self._analyser.stop()
            await self._coordinator.release(self.entry_id)
        if self._backend is not None and self._loaded_url is not None:
            await self._backend.stop()
        self.url = url
        self._loaded_url = None
        self._audio = None
        self.status = "idle"
        self.position_ms = 0
        self.duration_ms = int(self._expected_duration_ms or 0)
        self.buckets = ()
        self.waveform_error = None
        self.playback_error = None
        self._analyser.attach(None)
        self._changed()

    async def play(self) -> None:
        """Start or resume the preview, handing the active slot to this card.

        The session reports `"loading"` while the backend opens the stream. A
        handoff or pause that lands in that window wins: the stream is paused
        as soon as it opens and the card never reports `"playing"`.
        """
        if self._disposed or self.status in {"playing", "loading"}:
            return
        resume = self.status == "paused" and self._loaded_url == self.url
        self._play_attempt += 1
        attempt = self._play_attempt
        self.status = "loading"
        self._changed()
        await self._coordinator.request_play(self.entry_id)
        try:
            backend = await self._ensure_backend()
            if not self._owns_attempt(attempt):
                await self._abandon_start(attempt, backend, opened=False)
                return
            if resume:
                await backend.resume()
            else:
                start_ms = self.position_ms
                if start_ms >= self.duration_ms:
                    start_ms = 0
                await backend.play(
                    self.url, start_ms, duration_ms=self.duration_ms or None
                )
                self._loaded_url = self.url
        except RuntimeError as exc:
            if self._disposed or attempt != self._play_attempt:
                return
            logger.error(
                "Playback failed for %s: %s",
                self.entry_id,
                exc,
                extra={"event": "playback_failed", "entry_id": self.entry_id},
            )
            self.status = "error"
            self.playback_error = PLAYBACK_UNAVAILABLE_MESSAGE
            await self._coordinator.release(self.entry_id)
            self._changed()
            return
        if not self._owns_attempt(attempt):
            await self._abandon_start(attempt, backend, opened=True)
            return
        self.status = "playing"
        self.playback_error = None
        self._analyser.start()
        self._changed()
        if self._on_play is not None:
            await self._on_play(self.entry_id)

    async def pause(self) -> None:
        await self._pause_for_handoff()
        await self._coordinator.release(self.entry_id)

    async def toggle(self) -> None:
        if self.status in {"playing", "loading"}:
            await self.pause()
        else:
            await self.play()

    async def seek_ratio(self, ratio: float) -> None:
        """Move the play head to `ratio` of the known duration."""
        if self._disposed or self.duration_ms <= 0:
            return
        clamped = max(0.0, min(1.0, float(ratio)))
        await self._seek(int(clamped * self.duration_ms))

    async def skip_ms(self, delta_ms: int) -> None:
        if self._disposed or self.duration_ms <= 0:
            return
        await self._seek(self.position_ms + int(delta_ms))

    async def dispose(self) -> None:
        if self._disposed:
            return
        self._disposed = True
        self._cancel_waveform()
        self._analyser.dispose()
        await self._coordinator.release(self.entry_id)
        self._coordinator.unregister(self.entry_id)
        backend = self._backend
        self._backend = None
        if backend is not None:
            try:
                await backend.shutdown()
            except RuntimeError as exc:
                logger.warning("Backend shutdown failed for %s: %s", self.entry_id, exc)

    async def _seek(self, target_ms: int) -> None:
        target = max(0, min(int(target_ms), self.duration_ms))
        if self._backend is not None and self._loaded_url == self.url:
            await self._backend.seek_ms(target)
        self.position_ms = target
        self._changed()

    async def _pause_for_handoff(self) -> None:
        """Pause without touching the coordinator; used by `request_play`."""
        self._analyser.stop()
        if self.status == "loading":
            # The pending `play` sees it lost the active slot and backs off.
            self.status = "paused" if self._loaded_url == self.url else "idle"
            self._changed()
            return
        if self.status != "playing":
            return
        if self._backend is not None:
            await self._backend.pause()
        self.status = "paused"
        self._changed()

    def _owns_attempt(self, attempt: int) -> bool:
        return (
            not self._disposed
            and attempt == self._play_attempt
            and self._coordinator.is_active(self.entry_id)
        )

    async def _abandon_start(
        self, attempt: int, backend: PlaybackBackend, *, opened: bool
    ) -> None:
        """Back off from a start that lost the active slot while loading."""
        if self._disposed or attempt != self._play_attempt:
            # Disposed, or a newer `play` now owns the session.
            return
        logger.debug(
            "Preview start superseded",
            extra={"event": "play_superseded", "entry_id": self.entry_id},
        )
        if opened:
            await backend.pause()
            self.status = "paused"
        elif self.status == "loading":
            self.status = "paused" if self._loaded_url == self.url else "idle"
        self._changed()

    async def _ensure_backend(self) -> PlaybackBackend:
        if self._backend is None:
            backend = self._backend_factory()
            backend.set_event_handler(self._handle_backend_event)
            await backend.start()
            if self._disposed:
                await backend.shutdown()
                raise RuntimeError("Preview session closed while starting.")
            self._backend = backend
        return self._backend

    async def _handle_backend_event(self, event: BackendEvent) -> None:
        if self._disposed:
            return
        if isinstance(event, PositionUpdated):
            self.position_ms = max(0, event.position_ms)
            if event.duration_ms > 0:
                self.duration_ms = event.duration_ms
        elif isinstance(event, MediaChanged):
            if event.duration_ms > 0:
                self.duration_ms = event.duration_ms
        elif isinstance(event, StateChanged):
            if event.status == "stopped" and self.status == "playing":
                self.status = "stopped"
                self._analyser.stop()
                await self._coordinator.release(self.entry_id)
            elif event.status == "error":
                self.status = "error"
        elif isinstance(event, BackendError):
            logger.error(
                "Playback backend error for %s: %s",
                self.entry_id,
                event.message,
                extra={"event": "backend_error", "entry_id": self.entry_id},
            )
            self.playback_error = PLAYBACK_UNAVAILABLE_MESSAGE
            if self.status in {"playing", "loading"}:
                self.status = "error"
                self._analyser.stop()
                await self._coordinator.release(self.entry_id)
        self._changed()

    def _cancel_waveform(self) -> None:
        task = self._waveform_task
        self._waveform_task = None
        if task is not None and not task.done():
            task.cancel()

    def _changed(self) -> None:
        if self._on_change is not None and not self._disposed:
            self._on_change(self)


def _discard_bins(bins: list[int]) -> None:
    del bins

