"""Clock-driven stand-in for the VLC backend.

Previews "play" without audio hardware: the play head is derived from the
event loop clock and advances in whole tick intervals, so a long tick keeps
the position frozen for tests. URLs listed in `unreachable_urls` fail to open
the way a dead CDN link does under libVLC.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from contextlib import suppress
from dataclasses import dataclass

from .playback_backend import (
    BackendEvent,
    BackendStatus,
    MediaChanged,
    PositionUpdated,
    StateChanged,
)


@dataclass
class _Clip:
    url: str
    duration_ms: int
    offset_ms: int = 0
    anchored_at: float | None = None


class FakePlaybackBackend:
    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        default_duration_ms: int = 180_000,
        unreachable_urls: Iterable[str] = (),
    ) -> None:
        self._tick_ms = max(1, int(tick_interval_ms))
        self._default_duration_ms = default_duration_ms
        self._unreachable = frozenset(unreachable_urls)
        self._clip: _Clip | None = None
        self._status: BackendStatus = "idle"
        self._handler: Callable[[BackendEvent], Awaitable[None]] | None = None
        self._watcher: asyncio.Task[None] | None = None

    @property
    def url(self) -> str:
        return self._clip.url if self._clip is not None else ""

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._watcher is None:
            self._watcher = asyncio.create_task(self._watch())

    async def shutdown(self) -> None:
        watcher, self._watcher = self._watcher, None
        if watcher is None:
            return
        watcher.cancel()
        with suppress(asyncio.CancelledError):
            await watcher

    async def play(
        self,
        url: str,
        start_ms: int = 0,
        *,
        duration_ms: int | None = None,
    ) -> None:
        self._status = "loading"
        await self._emit(StateChanged("loading"))
        if url in self._unreachable:
            self._clip = None
            self._status = "error"
            raise RuntimeError(f"Cannot open preview stream {url}")
        duration = duration_ms or self._default_duration_ms
        clip = _Clip(url, duration, offset_ms=max(0, min(int(start_ms), duration)))
        self._clip = clip
        self._anchor(clip)
        self._status = "playing"
        await self._emit(MediaChanged(duration))
        await self._emit(PositionUpdated(clip.offset_ms, duration))
        await self._emit(StateChanged("playing"))

    async def pause(self) -> None:
        if self._status != "playing" or self._clip is None:
            return
        self._freeze(self._clip)
        self._status = "paused"
        await self._emit(StateChanged("paused"))

    async def resume(self) -> None:
        if self._status != "paused" or self._clip is None:
            return
        self._anchor(self._clip)
        self._status = "playing"
        await self._emit(StateChanged("playing"))

    async def stop(self) -> None:
        clip = self._clip
        duration = 0
        if clip is not None:
            clip.offset_ms = 0
            clip.anchored_at = None
            duration = clip.duration_ms
        self._status = "stopped"
        await self._emit(PositionUpdated(0, duration))
        await self._emit(StateChanged("stopped"))

    async def seek_ms(self, position_ms: int) -> None:
        clip = self._clip
        if clip is None:
            return
        clip.offset_ms = max(0, min(int(position_ms), clip.duration_ms))
        if clip.anchored_at is not None:
            self._anchor(clip)
        await self._emit(PositionUpdated(clip.offset_ms, clip.duration_ms))

    async def get_position_ms(self) -> int:
        return self._position_ms()

    async def get_duration_ms(self) -> int:
        return self._clip.duration_ms if self._clip is not None else 0

    async def get_state(self) -> BackendStatus:
        return self._status

    def _position_ms(self) -> int:
        clip = self._clip
        if clip is None:
            return 0
        if clip.anchored_at is None:
            return clip.offset_ms
        elapsed_ms = (asyncio.get_running_loop().time() - clip.anchored_at) * 1000
        steps = int(elapsed_ms // self._tick_ms)
        return min(clip.duration_ms, clip.offset_ms + steps * self._tick_ms)

    def _anchor(self, clip: _Clip) -> None:
        clip.anchored_at = asyncio.get_running_loop().time()

    def _freeze(self, clip: _Clip) -> None:
        clip.offset_ms = self._position_ms()
        clip.anchored_at = None

    async def _watch(self) -> None:
        while True:
            await asyncio.sleep(self._tick_ms / 1000)
            clip = self._clip
            if self._status != "playing" or clip is None:
                continue
            position = self._position_ms()
            if position < clip.duration_ms:
                await self._emit(PositionUpdated(position, clip.duration_ms))
                continue
            self._freeze(clip)
            self._status = "stopped"
            await self._emit(PositionUpdated(clip.duration_ms, clip.duration_ms))
            await self._emit(StateChanged("stopped"))

    async def _emit(self, event: BackendEvent) -> None:
        if self._handler is not None:
            await self._handler(event)
