"""Playback backend contracts and event payloads.

`PreviewSession` depends on this protocol to stay backend-agnostic. Concrete
implementations (fake/VLC) translate engine-specific behavior into these
shared commands and events.
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol

BackendStatus = Literal["idle", "loading", "playing", "paused", "stopped", "error"]


@dataclass(frozen=True)
class BackendEvent:
    """Marker base type for backend-originated events."""

    pass


@dataclass(frozen=True)
class PositionUpdated(BackendEvent):
    """Periodic transport position update in milliseconds."""

    position_ms: int
    duration_ms: int


@dataclass(frozen=True)
class StateChanged(BackendEvent):
    status: BackendStatus


@dataclass(frozen=True)
class MediaChanged(BackendEvent):
    """Loaded media metadata update (duration only)."""

    duration_ms: int


@dataclass(frozen=True)
class BackendError(BackendEvent):
    """Backend-reported playback failure."""

    message: str


class PlaybackBackend(Protocol):
    """Playback engine protocol; one instance per preview session."""

    def set_event_handler(
        self, handler: Callable[[BackendEvent], Awaitable[None]]
    ) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def play(
        self,
        url: str,
        start_ms: int = 0,
        *,
        duration_ms: int | None = None,
    ) -> None: ...

    async def pause(self) -> None: ...

    async def resume(self) -> None: ...

    async def stop(self) -> None: ...

    async def seek_ms(self, position_ms: int) -> None: ...

    async def get_position_ms(self) -> int: ...

    async def get_duration_ms(self) -> int: ...

    async def get_state(self) -> BackendStatus: ...
