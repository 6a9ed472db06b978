"""VLC playback backend streaming preview URLs through python-vlc.

libVLC objects are only touched on one worker thread. Async callers hand it
small job functions through a queue and await a future that the thread
resolves on the event loop. Between jobs the thread samples the player and
turns changes into backend events.
"""

from __future__ import annotations

import asyncio
import logging
import queue
import threading
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, cast

from .playback_backend import (
    BackendError,
    BackendEvent,
    BackendStatus,
    MediaChanged,
    PositionUpdated,
    StateChanged,
)

logger = logging.getLogger(__name__)

_SHUTDOWN_TIMEOUT_S = 2.0
STREAM_FAILED_MESSAGE = "VLC could not open the stream."

Job = Callable[[Any, Any], Any]


@dataclass(frozen=True)
class PlayerSnapshot:
    status: BackendStatus = "idle"
    position_ms: int = 0
    duration_ms: int = 0


def snapshot_events(
    previous: PlayerSnapshot, current: PlayerSnapshot
) -> list[BackendEvent]:
    """Events describing the change between two player samples."""
    events: list[BackendEvent] = []
    if current.status != previous.status:
        events.append(StateChanged(current.status))
        if current.status == "error":
            events.append(BackendError(STREAM_FAILED_MESSAGE))
    if current.status not in {"playing", "paused"}:
        return events
    if current.duration_ms != previous.duration_ms and current.duration_ms > 0:
        events.append(MediaChanged(current.duration_ms))
    if current.position_ms != previous.position_ms:
        events.append(PositionUpdated(current.position_ms, current.duration_ms))
    return events


def sample_player(player: Any) -> PlayerSnapshot:
    status = _map_state(player)
    if status not in {"playing", "paused"}:
        return PlayerSnapshot(status=status)
    return PlayerSnapshot(
        status=status,
        position_ms=max(player.get_time(), 0),
        duration_ms=max(player.get_length(), 0),
    )


def open_stream(url: str, start_ms: int) -> Job:
    def job(instance: Any, player: Any) -> None:
        if "://" in url:
            media = instance.media_new(url)
        else:
            media = instance.media_new_path(url)
        player.set_media(media)
        player.play()
        if start_ms:
            player.set_time(int(start_ms))

    return job


def _set_pause(flag: int) -> Job:
    return lambda _instance, player: player.set_pause(flag)


def _seek(position_ms: int) -> Job:
    return lambda _instance, player: player.set_time(int(position_ms))


def _read_position(_instance: Any, player: Any) -> int:
    return max(player.get_time(), 0)


def _read_duration(_instance: Any, player: Any) -> int:
    return max(player.get_length(), 0)


def _read_state(_instance: Any, player: Any) -> BackendStatus:
    return _map_state(player)


class VLCPlaybackBackend:
    def __init__(self, *, poll_interval_ms: int = 200) -> None:
        self._poll_interval_s = poll_interval_ms / 1000
        self._handler: Callable[[BackendEvent], Awaitable[None]] | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._jobs: queue.Queue[tuple[Job, asyncio.Future[Any]] | None] = (
            queue.Queue()
        )
        self._thread: threading.Thread | None = None
        self._stopping = threading.Event()

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None:
        self._handler = handler

    async def start(self) -> None:
        if self._thread is not None:
            return
        loop = asyncio.get_running_loop()
        self._loop = loop
        ready: asyncio.Future[None] = loop.create_future()
        self._stopping.clear()
        thread = threading.Thread(
            target=self._run, args=(ready,), name="VLCPreviewThread", daemon=True
        )
        self._thread = thread
        thread.start()
        try:
            await ready
        except RuntimeError:
            self._thread = None
            raise

    async def shutdown(self) -> None:
        thread = self._thread
        if thread is None:
            return
        self._stopping.set()
        self._jobs.put(None)
        thread.join(timeout=_SHUTDOWN_TIMEOUT_S)
        if thread.is_alive():
            raise RuntimeError(
                f"VLC thread did not stop within {_SHUTDOWN_TIMEOUT_S} seconds"
            )
        self._thread = None

    async def play(
        self,
        url: str,
        start_ms: int = 0,
        *,
        duration_ms: int | None = None,
    ) -> None:
        del duration_ms
        await self._call(open_stream(url, start_ms))

    async def pause(self) -> None:
        await self._call(_set_pause(1))

    async def resume(self) -> None:
        await self._call(_set_pause(0))

    async def stop(self) -> None:
        await self._call(lambda _instance, player: player.stop())

    async def seek_ms(self, position_ms: int) -> None:
        await self._call(_seek(position_ms))

    async def get_position_ms(self) -> int:
        return int(await self._call(_read_position))

    async def get_duration_ms(self) -> int:
        return int(await self._call(_read_duration))

    async def get_state(self) -> BackendStatus:
        return cast(BackendStatus, await self._call(_read_state))

    async def _call(self, job: Job) -> Any:
        thread = self._thread
        if self._loop is None or thread is None or not thread.is_alive():
            raise RuntimeError("VLC backend not started.")
        future: asyncio.Future[Any] = self._loop.create_future()
        self._jobs.put((job, future))
        return await future

    def _run(self, ready: asyncio.Future[None]) -> None:
        try:
            import vlc

            instance = vlc.Instance("--no-video", "--quiet")
            player = instance.media_player_new()
        except Exception as exc:  # pragma: no cover - depends on VLC install
            logger.error("Failed to initialize libVLC: %s", exc)
            self._settle(
                ready,
                error=RuntimeError(
                    "VLC backend unavailable. Ensure VLC/libVLC is installed."
                ),
            )
            self._emit_event(BackendError(str(exc)))
            return

        self._settle(ready, value=None)
        last = PlayerSnapshot()
        try:
            while not self._stopping.is_set():
                try:
                    item = self._jobs.get(timeout=self._poll_interval_s)
                except queue.Empty:
                    item = None
                if item is not None:
                    job, future = item
                    try:
                        self._settle(future, value=job(instance, player))
                    except Exception as exc:  # pragma: no cover - libVLC safety net
                        self._settle(future, error=exc)
                        self._emit_event(BackendError(str(exc)))
                current = sample_player(player)
                for event in snapshot_events(last, current):
                    self._emit_event(event)
                last = current
        finally:
            player.stop()
            player.release()
            instance.release()

    def _emit_event(self, event: BackendEvent) -> None:
        loop = self._loop
        if self._handler is None or loop is None:
            return
        asyncio.run_coroutine_threadsafe(_await(self._handler(event)), loop)

    def _settle(
        self,
        future: asyncio.Future[Any],
        *,
        value: Any = None,
        error: Exception | None = None,
    ) -> None:
        if self._loop is None:
            return
        self._loop.call_soon_threadsafe(_settle_future, future, value, error)


async def _await(awaitable: Awaitable[None]) -> None:
    await awaitable


def _settle_future(
    future: asyncio.Future[Any], value: Any, error: Exception | None
) -> None:
    if future.done():
        return
    if error is not None:
        future.set_exception(error)
    else:
        future.set_result(value)


_STATE_NAMES: dict[str, BackendStatus] = {
    "playing": "playing",
    "paused": "paused",
    "stopped": "stopped",
    "ended": "stopped",
    "opening": "loading",
    "buffering": "loading",
    "error": "error",
}


def _map_state(player: Any) -> BackendStatus:
    """Translate a libVLC `State` (e.g. `State.Playing`) into a backend status."""
    try:
        state = player.get_state()
    except Exception:
        return "error"
    name = getattr(state, "name", None) or str(state).rsplit(".", 1)[-1]
    return _STATE_NAMES.get(str(name).lower(), "idle")
