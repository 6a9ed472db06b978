"""Catalog card: metadata, waveform, transport, live spectrum and actions."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass

from textual.app import ComposeResult
from textual.containers import Horizontal
from textual.widget import Widget
from textual.widgets import Static

from beatshop.catalog import CatalogEntry, is_new
from beatshop.events import (
    FavoriteToggleRequested,
    PlaylistAddRequested,
    PurchaseRequested,
)
from beatshop.runtime_config import clamp_waveform_width
from beatshop.services.play_coordinator import ActivePlayerStore
from beatshop.services.preview_session import (
    BackendFactory,
    PlayRecorder,
    PreviewSession,
)
from beatshop.services.waveform_service import WaveformService
from beatshop.ui.control_button import ControlButton, ControlPressed
from beatshop.ui.spectrum_view import SpectrumView
from beatshop.ui.waveform_view import WaveformSeek, WaveformView
from beatshop.utils.time_format import format_progress

logger = logging.getLogger(__name__)

SKIP_MS = 10_000


@dataclass(frozen=True)
class CardServices:
    """Shared collaborators injected into every card."""

    coordinator: ActivePlayerStore
    waveform_service: WaveformService
    backend_factory: BackendFactory
    on_play: PlayRecorder | None = None
    waveform_width: int = 96
    visualizer_fps: int = 20


def card_dom_id(entry_id: str) -> str:
    safe = "".join(ch if ch.isalnum() or ch in "-_" else "-" for ch in entry_id)
    return f"card-{safe}"


def meta_line(entry: CatalogEntry, *, favorite: bool) -> str:
    parts = [entry.title, entry.genre, f"{entry.bpm} BPM", entry.length]
    parts.append(f"${entry.price:.2f}")
    line = " · ".join(parts)
    if is_new(entry):
        line = f"{line}  [NEW]"
    if entry.is_featured:
        line = f"{line}  [FEATURED]"
    return f"{'★' if favorite else '☆'} {line}"


class BeatCard(Widget):
    DEFAULT_CSS = """
    BeatCard {
        height: auto;
        border: round $primary;
        padding: 0 1;
        margin-bottom: 1;
    }

    BeatCard.-playing {
        border: round $accent;
    }

    BeatCard .card-meta {
        height: 1;
        text-style: bold;
    }

    BeatCard .card-controls {
        height: 1;
    }

    BeatCard .card-time {
        width: auto;
        color: $text-muted;
    }
    """

    def __init__(
        self,
        entry: CatalogEntry,
        services: CardServices,
        *,
        favorite: bool = False,
        **kwargs,
    ) -> None:
        kwargs.setdefault("id", card_dom_id(entry.id))
        super().__init__(**kwargs)
        self.entry = entry
        self.favorite = favorite
        self._services = services
        self._meta = Static(meta_line(entry, favorite=favorite), classes="card-meta")
        self._waveform = WaveformView()
        self._spectrum = SpectrumView()
        self._time = Static(
            format_progress(0, entry.length_ms or 0), classes="card-time"
        )
        self._play_button = ControlButton("▶ Play", action="toggle_play")
        self._favorite_button = ControlButton(
            "♥" if favorite else "♡", action="favorite"
        )
        self.session = PreviewSession(
            entry.id,
            entry.audio_url,
            coordinator=services.coordinator,
            waveform_service=services.waveform_service,
            backend_factory=services.backend_factory,
            draw_spectrum=self._spectrum.set_bins,
            on_change=self._session_changed,
            on_play=services.on_play,
            expected_duration_ms=entry.length_ms,
            visualizer_fps=services.visualizer_fps,
        )

    def compose(self) -> ComposeResult:
        yield self._meta
        yield self._waveform
        yield Horizontal(
            ControlButton("⏪ 10s", action="skip_back"),
            self._play_button,
            ControlButton("10s ⏩", action="skip_forward"),
            self._favorite_button,
            ControlButton("+ Playlist", action="playlist"),
            ControlButton("Buy", action="buy"),
            self._time,
            classes="card-controls",
        )
        yield self._spectrum

    def on_mount(self) -> None:
        # Bucket count follows the laid-out strip width, known after refresh.
        self.call_after_refresh(self._start_waveform_load)

    async def on_unmount(self) -> None:
        await self.session.dispose()

    async def change_source(self, url: str) -> None:
        """Swap the preview URL; any in-flight waveform load is abandoned."""
        await self.session.set_source(url)
        self._waveform.loading = True
        self._waveform.refresh()
        self._start_waveform_load()

    def set_favorite(self, favorite: bool) -> None:
        self.favorite = favorite
        self._meta.update(meta_line(self.entry, favorite=favorite))
        self._favorite_button.set_label("♥" if favorite else "♡", on=favorite)

    async def on_control_pressed(self, event: ControlPressed) -> None:
        event.stop()
        action = event.action
        if action == "toggle_play":
            await self.session.toggle()
        elif action == "skip_back":
            await self.session.skip_ms(-SKIP_MS)
        elif action == "skip_forward":
            await self.session.skip_ms(SKIP_MS)
        elif action == "favorite":
            self.post_message(FavoriteToggleRequested(self.entry.id))
        elif action == "playlist":
            self.post_message(PlaylistAddRequested(self.entry.id))
        elif action == "buy":
            self.post_message(PurchaseRequested(self.entry.id))

    async def on_waveform_seek(self, event: WaveformSeek) -> None:
        event.stop()
        await self.session.seek_ratio(event.fraction)

    def waveform_columns(self) -> int:
        """Buckets to request: the strip's laid-out width, else the setting."""
        width = self._waveform.size.width
        if width <= 0:
            return self._services.waveform_width
        return clamp_waveform_width(width)

    def _start_waveform_load(self) -> None:
        if not self.is_mounted or self.session.disposed:
            return
        columns = self.waveform_columns()
        # Cards are rebuilt on every filter change; paint known buckets at once.
        cached = self._services.waveform_service.cached(self.session.url, columns)
        if cached is not None and cached.buckets:
            self._waveform.set_buckets(cached.buckets, error=cached.error)
        self.run_worker(
            self._load_waveform(columns),
            group="waveform",
            exclusive=True,
            exit_on_error=False,
        )

    async def _load_waveform(self, columns: int) -> None:
        try:
            await self.session.load_waveform(columns)
        except asyncio.CancelledError:
            logger.debug("Waveform load cancelled for %s", self.entry.id)
            raise

    def _session_changed(self, session: PreviewSession) -> None:
        if not self.is_mounted:
            return
        if session.buckets:
            self._waveform.set_buckets(session.buckets, error=session.waveform_error)
        elif session.playback_error:
            self._waveform.error = session.playback_error
            self._waveform.refresh()
        self._waveform.set_progress(session.progress)
        self._time.update(format_progress(session.position_ms, session.duration_ms))
        playing = session.is_playing
        self._play_button.set_label("⏸ Pause" if playing else "▶ Play", on=playing)
        self.set_class(playing, "-playing")
        if not playing:
            self._spectrum.clear()
