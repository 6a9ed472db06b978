"""Cross-module event/message models for service and UI communication.

Dataclass events are used for app/service signaling, while `textual.message`
types are used for widget-level interaction routing.
"""

from __future__ import annotations

from dataclasses import dataclass

from textual.message import Message


@dataclass(frozen=True)
class CheckoutStarted:
    """Service event: a webhook accepted an order and returned a redirect."""

    tracking_id: str
    url: str
    kind: str


class FavoriteToggleRequested(Message):
    """UI message asking the app to flip favorite membership of an entry."""

    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id


class PurchaseRequested(Message):
    """UI message to start the license/buyer flow for an entry."""

    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id


class PlanChosen(Message):
    def __init__(self, plan_name: str) -> None:
        super().__init__()
        self.plan_name = plan_name


class CustomBeatRequested(Message):
    """UI message to open the custom beat request form."""


class PlaylistAddRequested(Message):
    def __init__(self, entry_id: str) -> None:
        super().__init__()
        self.entry_id = entry_id


class RegistrationRequested(Message):
    """UI message to open the account registration form."""
