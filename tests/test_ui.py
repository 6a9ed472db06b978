"""Minimal UI tests for the Textual app."""

from __future__ import annotations

import asyncio
from pathlib import Path

from textual.app import App, ComposeResult
from textual.screen import ModalScreen
from textual.widgets import Input

import beatshop.paths as paths
from beatshop.app import StorefrontApp
from beatshop.catalog import DEFAULT_CATALOG
from beatshop.services.chat_service import ChatMessage
from beatshop.services.checkout_service import BuyerInfo, CheckoutRedirect
from beatshop.services.fake_backend import FakePlaybackBackend
from beatshop.services.play_coordinator import ActivePlayerStore
from beatshop.services.waveform_service import WaveformResult, WaveformService
from beatshop.ui.beat_card import BeatCard, CardServices, meta_line
from beatshop.ui.catalog_pane import CatalogPane
from beatshop.ui.chat_pane import ChatPane, ChatSubmitted, format_message
from beatshop.ui.favorites_pane import FavoritesPane
from beatshop.ui.modals.buyer_info import BuyerInfoModal
from beatshop.ui.modals.error import ErrorModal
from beatshop.ui.modals.license import LicenseModal, license_label
from beatshop.ui.plans_pane import PlansPane
from beatshop.ui.waveform_view import WaveformView


class FakeAppDirs:
    def __init__(self, root: Path) -> None:
        self.user_data_dir = str(root / "data")
        self.user_config_dir = str(root / "config")
        self.user_cache_dir = str(root / "cache")


class _OfflineFetcher:
    def fetch(self, url: str) -> bytes:
        raise OSError("offline")


async def _no_sleep(_delay: float) -> None:
    return None


def _run(coro):
    return asyncio.run(coro)


def _setup_dirs(tmp_path, monkeypatch) -> None:
    def fake_app_dirs(app_name: str, appauthor: bool | None = None) -> FakeAppDirs:
        return FakeAppDirs(tmp_path)

    monkeypatch.setattr(paths, "AppDirs", fake_app_dirs)
    paths.get_app_dirs.cache_clear()


def _card_services() -> CardServices:
    return CardServices(
        coordinator=ActivePlayerStore(),
        waveform_service=WaveformService(fetcher=_OfflineFetcher(), sleep=_no_sleep),
        backend_factory=lambda: FakePlaybackBackend(tick_interval_ms=60_000),
        waveform_width=32,
    )


class _ModalHost(App):
    def __init__(self, modal: ModalScreen) -> None:
        super().__init__()
        self.modal = modal
        self.results: list[object] = []

    def on_mount(self) -> None:
        self.push_screen(self.modal, self.results.append)


def test_app_mounts(tmp_path, monkeypatch) -> None:
    _setup_dirs(tmp_path, monkeypatch)
    app = StorefrontApp(auto_init=False)

    async def run_app() -> None:
        async with app.run_test():
            await asyncio.sleep(0)
            assert app.query_one(CatalogPane)
            assert app.query_one(FavoritesPane)
            assert app.query_one(PlansPane)
            assert app.query_one(ChatPane)
            assert app.backend_name == "fake"
            app.exit()

    _run(run_app())


def test_catalog_pane_filters_and_searches_cards() -> None:
    pane = CatalogPane()

    class PaneApp(App):
        def compose(self) -> ComposeResult:
            yield pane

    async def run_app() -> None:
        app = PaneApp()
        async with app.run_test() as pilot:
            await pane.configure(
                DEFAULT_CATALOG, _card_services(), favorites=("instr-003",)
            )
            await pilot.pause()
            assert len(app.query(BeatCard)) == len(DEFAULT_CATALOG)
            assert set(pane.visible_ids) == {entry.id for entry in DEFAULT_CATALOG}

            pane.filter_id = "TRAP"
            pane.apply_view()
            assert pane.visible_ids == ["instr-003"]

            pane.filter_id = "all"
            pane.query_text = "street"
            pane.apply_view()
            assert pane.visible_ids == ["instr-002"]

            card = pane.card("instr-003")
            assert card is not None
            assert card.favorite is True
            pane.set_favorite("instr-003", False)
            assert card.favorite is False
            app.exit()

    _run(run_app())


def test_meta_line_marks_favorites_and_featured() -> None:
    walk = DEFAULT_CATALOG[0]
    line = meta_line(walk, favorite=True)
    assert line.startswith("★ walk · DRILL · 144 BPM · 2:15 · $24.99")
    assert "[FEATURED]" in line
    assert meta_line(walk, favorite=False).startswith("☆ ")


def test_error_modal_dismisses_on_escape() -> None:
    async def run_app() -> None:
        app = _ModalHost(ErrorModal("Audio preview unavailable."))
        async with app.run_test() as pilot:
            await pilot.pause()
            assert isinstance(app.screen, ErrorModal)
            await pilot.press("escape")
            await pilot.pause()
            assert app.results == [None]
            app.exit()

    _run(run_app())


def test_license_modal_returns_chosen_license() -> None:
    entry = DEFAULT_CATALOG[0]

    async def run_app() -> None:
        app = _ModalHost(LicenseModal(entry, discount_percent=20))
        async with app.run_test() as pilot:
            await pilot.pause()
            await pilot.click("#license-exclusive")
            await pilot.pause()
            assert app.results == ["exclusive"]
            app.exit()

    _run(run_app())


def test_license_modal_hides_exclusive_when_unavailable() -> None:
    entry = DEFAULT_CATALOG[1]

    async def run_app() -> None:
        modal = LicenseModal(entry)
        app = _ModalHost(modal)
        async with app.run_test() as pilot:
            await pilot.pause()
            assert modal.licenses == ("commercial",)
            assert not modal.query("#license-exclusive")
            app.exit()

    _run(run_app())


def test_license_label_includes_discount() -> None:
    entry = DEFAULT_CATALOG[0]
    assert license_label(entry, "commercial", 0).startswith("Commercial · $")
    assert license_label(entry, "commercial", 20).endswith("(20% off)")


def test_buyer_modal_blocks_invalid_then_accepts_valid_details() -> None:
    async def run_app() -> None:
        modal = BuyerInfoModal("Buy 'walk'", prefill={"first_name": "Ada"})
        app = _ModalHost(modal)
        async with app.run_test() as pilot:
            await pilot.pause()
            modal.action_submit()
            await pilot.pause()
            assert app.results == []
            assert isinstance(app.screen, BuyerInfoModal)

            modal.query_one("#buyer-last_name", Input).value = "Lovelace"
            modal.query_one("#buyer-email", Input).value = "ada@example.com"
            modal.action_submit()
            await pilot.pause()
            assert app.results == [
                BuyerInfo(
                    first_name="Ada", last_name="Lovelace", email="ada@example.com"
                )
            ]
            app.exit()

    _run(run_app())


def test_chat_pane_posts_submission_and_ignores_while_busy() -> None:
    pane = ChatPane()
    submitted: list[str] = []

    class PaneApp(App):
        def compose(self) -> ComposeResult:
            yield pane

        def on_chat_submitted(self, event: ChatSubmitted) -> None:
            submitted.append(event.text)

    async def run_app() -> None:
        app = PaneApp()
        async with app.run_test() as pilot:
            chat_input = pane.query_one("#chat-input", Input)
            chat_input.focus()
            chat_input.value = "  how much is a license?  "
            await pilot.press("enter")
            await pilot.pause()
            assert submitted == ["how much is a license?"]
            assert chat_input.value == ""

            pane.set_status(typing=True, offline=False)
            chat_input.value = "second"
            await pilot.press("enter")
            await pilot.pause()
            assert submitted == ["how much is a license?"]
            assert pane.busy is True

            await pane.append(
                [ChatMessage(id="1", text="hello", is_user=False, timestamp_ms=0)]
            )
            await pilot.pause()
            assert len(pane.query(".chat-bot")) == 1
            app.exit()

    _run(run_app())


def test_format_message_labels_speaker() -> None:
    user = ChatMessage(id="1", text="hi", is_user=True, timestamp_ms=0)
    assert format_message(user).startswith("You · ")
    assert format_message(user).endswith("\nhi")


class _RecordingCheckout:
    def __init__(self) -> None:
        self.tracking_ids: list[str | None] = []

    async def subscribe(self, buyer, plan, *, tracking_id=None) -> CheckoutRedirect:
        self.tracking_ids.append(tracking_id)
        return CheckoutRedirect(
            url="https://pay.example.com/checkout",
            tracking_id=tracking_id or "sess_first",
            price=plan.monthly_price,
        )


def test_checkouts_reuse_the_stored_payment_session_id(tmp_path, monkeypatch) -> None:
    _setup_dirs(tmp_path, monkeypatch)
    opened: list[str] = []
    monkeypatch.setattr(
        "beatshop.app.webbrowser.open", lambda url: opened.append(url) or True
    )
    app = StorefrontApp(auto_init=False)
    checkout = _RecordingCheckout()

    async def subscribe_once(pilot) -> None:
        worker = app._subscribe_flow("PRO")
        await pilot.pause()
        modal = app.screen
        assert isinstance(modal, BuyerInfoModal)
        modal.query_one("#buyer-first_name", Input).value = "Ada"
        modal.query_one("#buyer-last_name", Input).value = "Lovelace"
        modal.query_one("#buyer-email", Input).value = "ada@example.com"
        modal.action_submit()
        await worker.wait()

    async def run_app() -> None:
        async with app.run_test() as pilot:
            app.checkout_service = checkout
            await subscribe_once(pilot)
            assert app.session_state.payment_session_id == "sess_first"
            await subscribe_once(pilot)
            assert checkout.tracking_ids == [None, "sess_first"]
            assert app.session_state.payment_session_id == "sess_first"
            assert app.last_checkout is not None
            assert app.last_checkout.tracking_id == "sess_first"
            app.exit()

    _run(run_app())
    assert len(opened) == 2


class _RecordingWaveforms:
    def __init__(self) -> None:
        self.widths: list[int] = []

    def cached(self, url: str, width: int) -> WaveformResult | None:
        return None

    async def load(self, url: str, width: int) -> WaveformResult:
        self.widths.append(width)
        return WaveformResult(buckets=(0.5,) * width, status="ready")


def test_card_requests_one_bucket_per_rendered_column() -> None:
    waveforms = _RecordingWaveforms()
    services = CardServices(
        coordinator=ActivePlayerStore(),
        waveform_service=waveforms,
        backend_factory=lambda: FakePlaybackBackend(tick_interval_ms=60_000),
        waveform_width=96,
    )
    card = BeatCard(DEFAULT_CATALOG[0], services)

    class CardApp(App):
        def compose(self) -> ComposeResult:
            yield card

    async def run_app() -> None:
        app = CardApp()
        async with app.run_test(size=(60, 24)) as pilot:
            await pilot.pause()
            await app.workers.wait_for_complete()
            await pilot.pause()
            strip = card.query_one(WaveformView)
            assert 0 < strip.size.width < 60
            assert waveforms.widths == [strip.size.width]
            assert card.session.buckets == (0.5,) * strip.size.width
            assert not strip.loading
            app.exit()

    _run(run_app())
