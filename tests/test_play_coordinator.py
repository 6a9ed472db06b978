"""Tests for single-active-player coordination."""

from __future__ import annotations

import asyncio

from beatshop.services.play_coordinator import ActivePlayerStore, PlayStateChanged


def _run(coro):
    return asyncio.run(coro)


class _Card:
    def __init__(self, entry_id: str, log: list[str]) -> None:
        self.entry_id = entry_id
        self.log = log
        self.paused = 0

    async def pause(self) -> None:
        self.paused += 1
        self.log.append(f"pause:{self.entry_id}")


def test_second_play_pauses_first_before_publishing() -> None:
    log: list[str] = []

    async def run() -> None:
        store = ActivePlayerStore()
        first = _Card("a", log)
        second = _Card("b", log)
        store.register("a", first.pause)
        store.register("b", second.pause)

        async def listener(event: PlayStateChanged) -> None:
            log.append(f"{event.entry_id}:{'on' if event.playing else 'off'}")

        store.subscribe(listener)
        await store.request_play("a")
        await store.request_play("b")

        assert store.active_id == "b"
        assert store.is_active("b")
        assert first.paused == 1
        assert second.paused == 0

    _run(run())
    assert log == ["a:on", "pause:a", "a:off", "b:on"]


def test_request_play_for_active_card_is_noop() -> None:
    events: list[PlayStateChanged] = []

    async def run() -> None:
        store = ActivePlayerStore()
        card = _Card("a", [])
        store.register("a", card.pause)

        async def listener(event: PlayStateChanged) -> None:
            events.append(event)

        store.subscribe(listener)
        await store.request_play("a")
        await store.request_play("a")
        assert card.paused == 0

    _run(run())
    assert events == [PlayStateChanged("a", True)]


def test_release_only_clears_matching_id() -> None:
    async def run() -> None:
        store = ActivePlayerStore()
        await store.request_play("a")
        await store.release("b")
        assert store.active_id == "a"
        await store.release("a")
        assert store.active_id is None

    _run(run())


def test_failing_pause_is_logged_and_handoff_continues(caplog) -> None:
    async def broken_pause() -> None:
        raise RuntimeError("device gone")

    async def run() -> None:
        store = ActivePlayerStore()
        store.register("a", broken_pause)
        await store.request_play("a")
        await store.request_play("b")
        assert store.active_id == "b"

    _run(run())
    assert any("Failed to pause previous player" in r.message for r in caplog.records)


def test_unregister_and_unsubscribe() -> None:
    events: list[PlayStateChanged] = []

    async def run() -> None:
        store = ActivePlayerStore()

        async def listener(event: PlayStateChanged) -> None:
            events.append(event)

        unsubscribe = store.subscribe(listener)
        await store.request_play("a")
        store.unregister("a")
        assert store.active_id is None
        unsubscribe()
        unsubscribe()
        await store.request_play("b")

    _run(run())
    assert events == [PlayStateChanged("a", True)]
