"""Textual TUI app for the beatshop storefront."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import webbrowser
from dataclasses import replace
from pathlib import Path

from textual import work
from textual.app import App, ComposeResult
from textual.screen import ModalScreen
from textual.widgets import Footer, Header, Input, TabbedContent, TabPane

from . import __version__
from .catalog import DEFAULT_CATALOG, CatalogEntry, find_entry, load_catalog
from .commerce import (
    discount_percentage,
    generate_chat_session_id,
    plan_by_name,
    plans_with_links,
)
from .events import (
    CheckoutStarted,
    CustomBeatRequested,
    FavoriteToggleRequested,
    PlanChosen,
    PlaylistAddRequested,
    PurchaseRequested,
    RegistrationRequested,
)
from .logging_utils import setup_logging
from .paths import log_dir, preferences_path, session_path, settings_path
from .preferences_store import (
    UserPreferences,
    add_to_playlist,
    create_playlist,
    delete_playlist,
    increment_plays,
    load_preferences_with_notice,
    remove_from_playlist,
    save_preferences,
    toggle_favorite,
)
from .runtime_config import (
    PLAYBACK_BACKENDS,
    clamp_visualizer_fps,
    clamp_waveform_width,
    resolve_backend_name,
    resolve_log_level,
)
from .services.audio_decode import AudioFetcher
from .services.chat_service import ChatService
from .services.checkout_service import (
    BuyerInfo,
    CheckoutError,
    CheckoutRedirect,
    CheckoutService,
)
from .services.fake_backend import FakePlaybackBackend
from .services.play_coordinator import ActivePlayerStore
from .services.vlc_backend import VLCPlaybackBackend
from .services.waveform_service import WaveformService
from .services.webhook_client import WebhookClient
from .session_store import (
    FORM_FIELDS,
    SessionState,
    clear_session,
    load_session,
    save_session,
)
from .settings import StoreSettings, load_settings_with_notice
from .ui.beat_card import CardServices
from .ui.catalog_pane import CatalogPane
from .ui.chat_pane import ChatPane, ChatSubmitted
from .ui.favorites_pane import (
    FavoritesPane,
    PlaylistCreateRequested,
    PlaylistDeleteRequested,
    PlaylistEntryRemoveRequested,
)
from .ui.modals.buyer_info import BuyerInfoModal
from .ui.modals.custom_request import CustomRequestModal
from .ui.modals.error import ErrorModal
from .ui.modals.license import LicenseModal
from .ui.modals.playlist_picker import PlaylistPickerModal
from .ui.plans_pane import PlansPane
from .utils.async_utils import run_blocking

logger = logging.getLogger(__name__)


class StorefrontApp(App):
    TITLE = "Maxy Electa Studio"
    SUB_TITLE = "beats"
    CSS = """
    Screen {
        layout: vertical;
    }

    #tabs {
        height: 1fr;
    }

    ModalScreen {
        align: center middle;
    }

    #modal-body {
        padding: 1 2;
        border: solid white;
        width: 60%;
        height: auto;
    }

    #modal-body .modal-title {
        text-style: bold;
        margin-bottom: 1;
    }

    #custom-details {
        height: 6;
    }
    """
    BINDINGS = [
        ("escape", "dismiss_modal", "Dismiss"),
        ("slash", "focus_search", "Search"),
        ("x", "stop_active", "Stop"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        *,
        auto_init: bool = True,
        backend_name: str | None = None,
        catalog_path: Path | None = None,
        reset_session: bool = False,
    ) -> None:
        super().__init__()
        self._auto_init = auto_init
        self._backend_name = backend_name
        self._catalog_path = catalog_path
        self._reset_session = reset_session
        self.settings = StoreSettings()
        self.entries: tuple[CatalogEntry, ...] = DEFAULT_CATALOG
        self.preferences = UserPreferences()
        self.session_state = SessionState()
        self.backend_name = "fake"
        self.coordinator = ActivePlayerStore()
        self.waveform_service: WaveformService | None = None
        self.webhook_client: WebhookClient | None = None
        self.chat_service: ChatService | None = None
        self.checkout_service: CheckoutService | None = None
        self._audio_fetcher: AudioFetcher | None = None
        self.last_checkout: CheckoutStarted | None = None

    def compose(self) -> ComposeResult:
        yield Header()
        with TabbedContent(initial="tab-beats", id="tabs"):
            with TabPane("Beats", id="tab-beats"):
                yield CatalogPane(id="catalog-pane")
            with TabPane("Favorites", id="tab-favorites"):
                yield FavoritesPane(id="favorites-pane")
            with TabPane("Plans", id="tab-plans"):
                yield PlansPane(id="plans-pane")
            with TabPane("Chat", id="tab-chat"):
                yield ChatPane(id="chat-pane")
        yield Footer()

    def on_mount(self) -> None:
        if self._auto_init:
            asyncio.create_task(self._initialize_state())

    async def _initialize_state(self) -> None:
        try:
            settings, notice = await run_blocking(
                load_settings_with_notice, settings_path()
            )
            self.settings = settings
            if notice:
                await self.push_screen(ErrorModal(notice, title="Settings"))
            self.entries = await self._load_entries()
            preferences, prefs_notice = await run_blocking(
                load_preferences_with_notice, preferences_path()
            )
            self.preferences = preferences
            if prefs_notice:
                self.notify(prefs_notice, severity="warning", timeout=8)
            if self._reset_session:
                await run_blocking(clear_session, session_path())
            self.session_state = await run_blocking(load_session, session_path())

            self.backend_name = await self._select_backend(
                resolve_backend_name(self._backend_name, settings.playback_backend)
            )
            self._build_services()
            await self._configure_panes()
        except Exception as exc:
            logger.exception("Failed to initialize app: %s", exc)
            await self.push_screen(
                ErrorModal(
                    "Failed to initialize the storefront.\n"
                    "Likely cause: settings, catalog or data directory failure.\n"
                    "Next step: check file permissions and review the log file."
                )
            )

    async def _load_entries(self) -> tuple[CatalogEntry, ...]:
        if self._catalog_path is None:
            return DEFAULT_CATALOG
        try:
            entries = await run_blocking(load_catalog, self._catalog_path)
        except (OSError, ValueError) as exc:
            logger.warning("Catalog %s unusable: %s", self._catalog_path, exc)
            self.notify(
                f"Could not load catalog '{self._catalog_path}'. "
                "Showing the built-in beats instead.",
                severity="warning",
                timeout=8,
            )
            return DEFAULT_CATALOG
        if not entries:
            self.notify(
                "Catalog file has no usable beats. Showing the built-in beats.",
                severity="warning",
            )
            return DEFAULT_CATALOG
        return entries

    async def _select_backend(self, name: str) -> str:
        """Probe the real backend once; fall back to fake if it cannot start."""
        if name != "vlc":
            return name
        probe = VLCPlaybackBackend()
        try:
            await probe.start()
        except Exception as exc:
            logger.exception("Failed to start backend %s: %s", name, exc)
            await self.push_screen(
                ErrorModal(
                    "VLC backend unavailable; previews use the fake backend.\n"
                    "Cause: VLC/libVLC runtime is not available.\n"
                    "Next step: install VLC/libVLC, then restart with --backend vlc.",
                    title="Playback",
                )
            )
            return "fake"
        await probe.shutdown()
        return name

    def _build_backend(self) -> FakePlaybackBackend | VLCPlaybackBackend:
        if self.backend_name == "vlc":
            return VLCPlaybackBackend()
        return FakePlaybackBackend()

    def _build_services(self) -> None:
        settings = self.settings
        self._audio_fetcher = AudioFetcher(timeout_s=settings.request_timeout_s)
        self.waveform_service = WaveformService(fetcher=self._audio_fetcher)
        self.webhook_client = WebhookClient(timeout_s=settings.request_timeout_s)
        session = self.session_state
        session_id = session.chat_session_id or generate_chat_session_id()
        if session.chat_session_id is None:
            self.session_state = replace(session, chat_session_id=session_id)
        self.chat_service = ChatService(
            transport=self.webhook_client,
            webhook_url=settings.chat_webhook_url,
            session_id=session_id,
            transcript=list(session.transcript),
            offline_notice_shown=session.offline_notice_shown,
        )
        self.checkout_service = CheckoutService(
            client=self.webhook_client,
            purchase_url=settings.purchase_webhook_url,
            subscription_url=settings.subscription_webhook_url,
            custom_request_url=settings.custom_request_webhook_url,
            registration_url=settings.registration_webhook_url,
        )
        logger.info(
            "Storefront services ready",
            extra={
                "event": "services_ready",
                "backend": self.backend_name,
                "entries": len(self.entries),
            },
        )

    async def _configure_panes(self) -> None:
        assert self.waveform_service is not None
        assert self.chat_service is not None
        services = CardServices(
            coordinator=self.coordinator,
            waveform_service=self.waveform_service,
            backend_factory=self._build_backend,
            on_play=self._record_play,
            waveform_width=clamp_waveform_width(self.settings.waveform_width),
            visualizer_fps=clamp_visualizer_fps(self.settings.visualizer_fps),
        )
        await self.query_one(CatalogPane).configure(
            self.entries, services, favorites=self.preferences.favorites
        )
        await self.query_one(FavoritesPane).show(self.preferences, self.entries)
        await self._refresh_plans()
        await self.query_one(ChatPane).show(self.chat_service.messages)
        self.query_one(ChatPane).set_status(
            typing=False, offline=self.chat_service.offline
        )

    async def _refresh_plans(self) -> None:
        plans = plans_with_links(self.settings.plan_payment_links)
        await self.query_one(PlansPane).show(plans, self.settings.profile)

    async def on_unmount(self) -> None:
        if self.webhook_client is not None:
            self.webhook_client.close()
        if self._audio_fetcher is not None:
            self._audio_fetcher.close()

    def action_dismiss_modal(self) -> None:
        if isinstance(self.screen, ModalScreen):
            self.pop_screen()

    def action_focus_search(self) -> None:
        self.query_one(TabbedContent).active = "tab-beats"
        self.query_one("#catalog-search", Input).focus()

    async def action_stop_active(self) -> None:
        active_id = self.coordinator.active_id
        if active_id is None:
            return
        card = self.query_one(CatalogPane).card(active_id)
        if card is not None:
            await card.session.pause()

    async def _record_play(self, entry_id: str) -> None:
        self.preferences = increment_plays(self.preferences, entry_id)
        await self._persist_preferences()

    async def _persist_preferences(self) -> None:
        try:
            await run_blocking(save_preferences, preferences_path(), self.preferences)
        except OSError as exc:
            logger.warning("Failed to save preferences: %s", exc)
            self.notify(
                "Could not save favorites and playlists.", severity="warning"
            )
        await self.query_one(FavoritesPane).show(self.preferences, self.entries)

    async def _persist_session(self) -> None:
        try:
            await run_blocking(save_session, session_path(), self.session_state)
        except OSError as exc:
            logger.warning("Failed to save session state: %s", exc)

    async def on_favorite_toggle_requested(
        self, event: FavoriteToggleRequested
    ) -> None:
        event.stop()
        self.preferences = toggle_favorite(self.preferences, event.entry_id)
        self.query_one(CatalogPane).set_favorite(
            event.entry_id, self.preferences.is_favorite(event.entry_id)
        )
        await self._persist_preferences()

    async def on_playlist_create_requested(
        self, event: PlaylistCreateRequested
    ) -> None:
        event.stop()
        try:
            self.preferences, playlist = create_playlist(self.preferences, event.name)
        except ValueError:
            return
        self.notify(f"Created playlist '{playlist.name}'.")
        await self._persist_preferences()

    async def on_playlist_delete_requested(
        self, event: PlaylistDeleteRequested
    ) -> None:
        event.stop()
        self.preferences = delete_playlist(self.preferences, event.playlist_id)
        await self._persist_preferences()

    async def on_playlist_entry_remove_requested(
        self, event: PlaylistEntryRemoveRequested
    ) -> None:
        event.stop()
        try:
            self.preferences = remove_from_playlist(
                self.preferences, event.playlist_id, event.entry_id
            )
        except KeyError:
            return
        await self._persist_preferences()

    def on_playlist_add_requested(self, event: PlaylistAddRequested) -> None:
        event.stop()
        self._add_to_playlist_flow(event.entry_id)

    def on_purchase_requested(self, event: PurchaseRequested) -> None:
        event.stop()
        self._purchase_flow(event.entry_id)

    def on_plan_chosen(self, event: PlanChosen) -> None:
        event.stop()
        self._subscribe_flow(event.plan_name)

    def on_custom_beat_requested(self, event: CustomBeatRequested) -> None:
        event.stop()
        self._custom_request_flow()

    def on_registration_requested(self, event: RegistrationRequested) -> None:
        event.stop()
        self._registration_flow()

    def on_chat_submitted(self, event: ChatSubmitted) -> None:
        event.stop()
        self._chat_flow(event.text)

    @work(group="chat")
    async def _chat_flow(self, text: str) -> None:
        if self.chat_service is None:
            return
        pane = self.query_one(ChatPane)
        pane.set_status(typing=True, offline=self.chat_service.offline)
        try:
            appended = await self.chat_service.send(text)
        finally:
            pane.set_status(typing=False, offline=self.chat_service.offline)
        await pane.append(appended)
        self.session_state = replace(
            self.session_state,
            chat_session_id=self.chat_service.session_id,
            transcript=tuple(self.chat_service.messages),
            offline_notice_shown=self.chat_service.offline_notice_shown,
        )
        await self._persist_session()

    @work(exclusive=True, group="playlist")
    async def _add_to_playlist_flow(self, entry_id: str) -> None:
        entry = find_entry(self.entries, entry_id)
        if entry is None:
            return
        if not self.preferences.playlists:
            self.notify(
                "Create a playlist on the Favorites tab first.", severity="warning"
            )
            return
        playlist_id = await self.push_screen_wait(
            PlaylistPickerModal(entry.title, self.preferences.playlists)
        )
        if playlist_id is None:
            return
        try:
            self.preferences = add_to_playlist(self.preferences, playlist_id, entry_id)
        except KeyError:
            return
        playlist = self.preferences.playlist(playlist_id)
        if playlist is not None:
            self.notify(f"Added '{entry.title}' to '{playlist.name}'.")
        await self._persist_preferences()

    @work(exclusive=True, group="checkout")
    async def _purchase_flow(self, entry_id: str) -> None:
        entry = find_entry(self.entries, entry_id)
        if entry is None or self.checkout_service is None:
            return
        profile = self.settings.profile
        license_type = await self.push_screen_wait(
            LicenseModal(entry, discount_percent=discount_percentage(profile))
        )
        if license_type is None:
            return
        buyer = await self.push_screen_wait(
            BuyerInfoModal(f"Buy '{entry.title}'", prefill=self._buyer_prefill())
        )
        if buyer is None:
            return
        try:
            redirect = await self.checkout_service.purchase_beat(
                buyer,
                entry,
                license_type,
                profile,
                tracking_id=self.session_state.payment_session_id,
            )
        except CheckoutError as exc:
            self.notify(str(exc), severity="error", timeout=8)
            return
        await self._open_checkout("purchase", buyer, redirect)

    @work(exclusive=True, group="checkout")
    async def _subscribe_flow(self, plan_name: str) -> None:
        if self.checkout_service is None:
            return
        plan = next(
            (
                candidate
                for candidate in plans_with_links(self.settings.plan_payment_links)
                if candidate.name == plan_name
            ),
            plan_by_name(plan_name),
        )
        if plan is None:
            return
        buyer = await self.push_screen_wait(
            BuyerInfoModal(
                f"Subscribe to {plan.name} (${plan.monthly_price:.2f}/month)",
                prefill=self._buyer_prefill(),
                submit_label="Continue to payment",
            )
        )
        if buyer is None:
            return
        try:
            redirect = await self.checkout_service.subscribe(
                buyer, plan, tracking_id=self.session_state.payment_session_id
            )
        except CheckoutError as exc:
            self.notify(str(exc), severity="error", timeout=8)
            return
        await self._open_checkout("subscription", buyer, redirect)

    @work(exclusive=True, group="checkout")
    async def _custom_request_flow(self) -> None:
        if self.checkout_service is None:
            return
        prefill = self._buyer_prefill()
        parts = (prefill.get("first_name", ""), prefill.get("last_name", ""))
        name = " ".join(part for part in parts if part)
        form = await self.push_screen_wait(
            CustomRequestModal(name=name, email=prefill.get("email", ""))
        )
        if form is None:
            return
        try:
            await self.checkout_service.request_custom_beat(form)
        except CheckoutError as exc:
            self.notify(str(exc), severity="error", timeout=8)
            return
        self.notify("Request sent! We'll get back to you by email.")

    @work(exclusive=True, group="checkout")
    async def _registration_flow(self) -> None:
        if self.checkout_service is None:
            return
        buyer = await self.push_screen_wait(
            BuyerInfoModal(
                "Create an account",
                prefill=self._buyer_prefill(),
                submit_label="Register",
            )
        )
        if buyer is None:
            return
        try:
            await self.checkout_service.register(buyer)
        except CheckoutError as exc:
            self.notify(str(exc), severity="error", timeout=8)
            return
        await self._remember_buyer(buyer)
        self.notify("Registration received. Check your email to continue.")

    def _buyer_prefill(self) -> dict[str, str]:
        prefill: dict[str, str] = {}
        profile = self.settings.profile
        if profile is not None:
            prefill = {
                "first_name": profile.first_name,
                "last_name": profile.last_name,
                "email": profile.email,
            }
        for key, value in self.session_state.form_fields.items():
            if value:
                prefill[key] = value
        return prefill

    async def _remember_buyer(
        self, buyer: BuyerInfo, *, payment_session_id: str | None = None
    ) -> None:
        fields = {key: getattr(buyer, key) for key in FORM_FIELDS}
        self.session_state = replace(
            self.session_state,
            form_fields=fields,
            payment_session_id=(
                payment_session_id or self.session_state.payment_session_id
            ),
        )
        await self._persist_session()

    async def _open_checkout(
        self, kind: str, buyer: BuyerInfo, redirect: CheckoutRedirect
    ) -> None:
        started = CheckoutStarted(redirect.tracking_id, redirect.url, kind)
        self.last_checkout = started
        await self._remember_buyer(buyer, payment_session_id=started.tracking_id)
        logger.info(
            "Opening checkout page",
            extra={
                "event": "checkout_redirect",
                "kind": started.kind,
                "tracking_id": started.tracking_id,
            },
        )
        opened = await run_blocking(webbrowser.open, started.url)
        if opened:
            amount = "" if redirect.price is None else f" (${redirect.price:.2f})"
            self.notify(f"Checkout opened in your browser{amount}.")
        else:
            self.notify(
                f"Open this link to finish checkout: {started.url}", timeout=15
            )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beatshop", description="Browse, preview and buy beats in the terminal."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    parser.add_argument(
        "--backend",
        choices=PLAYBACK_BACKENDS,
        help="Playback backend to use (fake or vlc).",
    )
    parser.add_argument(
        "--catalog",
        help="Load beats from a JSON catalog file instead of the built-in list.",
    )
    parser.add_argument(
        "--reset-session",
        action="store_true",
        help="Forget the chat transcript and cached checkout form before starting.",
    )
    return parser


def main() -> int:
    parser = build_parser()
    args = parser.parse_args()
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logging.getLogger(__name__).info("Starting beatshop TUI")
        StorefrontApp(
            backend_name=args.backend,
            catalog_path=Path(args.catalog) if args.catalog else None,
            reset_session=args.reset_session,
        ).run()
        return 0
    except Exception as exc:  # pragma: no cover - top-level safety net
        logging.getLogger(__name__).exception("Fatal startup error: %s", exc)
        print(
            "Startup failed. Check settings, catalog and log paths, "
            "then re-run with --verbose.",
            file=sys.stderr,
        )
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
