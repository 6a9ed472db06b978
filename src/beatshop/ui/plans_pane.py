"""Plans tab: subscription tiers and the viewer's current discount."""

from __future__ import annotations

from collections.abc import Sequence

from textual.app import ComposeResult
from textual.containers import Vertical, VerticalScroll
from textual.widget import Widget
from textual.widgets import Static

from beatshop.commerce import SubscriptionPlan, UserProfile, discount_percentage
from beatshop.events import CustomBeatRequested, PlanChosen, RegistrationRequested
from beatshop.ui.control_button import ControlButton, ControlPressed


def profile_summary(profile: UserProfile | None) -> str:
    if profile is None:
        return "Not signed in · standard pricing"
    discount = discount_percentage(profile)
    status = profile.subscription_status.replace("_", " ")
    line = f"{profile.subscription_plan} plan ({status})"
    if discount:
        return f"{line} · {discount}% off every beat"
    return f"{line} · standard pricing"


def plan_text(plan: SubscriptionPlan, *, current: bool) -> str:
    price = "Free" if not plan.is_paid else f"${plan.monthly_price:.2f}/month"
    header = f"{plan.name} · {price}"
    if current:
        header = f"{header}  [current]"
    features = "\n".join(f"  ✓ {feature}" for feature in plan.features)
    return f"{header}\n{features}"


class PlansPane(Widget):
    DEFAULT_CSS = """
    PlansPane .plan {
        height: auto;
        border: round $primary;
        padding: 0 1;
        margin-bottom: 1;
    }

    #profile-summary {
        height: 1;
        text-style: bold;
        margin-bottom: 1;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._summary = Static("", id="profile-summary")
        self._body = VerticalScroll(id="plans-body")

    def compose(self) -> ComposeResult:
        yield self._summary
        yield self._body

    async def show(
        self, plans: Sequence[SubscriptionPlan], profile: UserProfile | None
    ) -> None:
        self._summary.update(profile_summary(profile))
        current = profile.subscription_plan if profile is not None else "FREE"
        await self._body.remove_children()
        blocks: list[Widget] = []
        for plan in plans:
            children: list[Widget] = [
                Static(plan_text(plan, current=plan.name == current))
            ]
            if plan.is_paid and plan.name != current:
                children.append(
                    ControlButton(
                        f"Choose {plan.name}", action="choose_plan", target_id=plan.name
                    )
                )
            blocks.append(Vertical(*children, classes="plan"))
        blocks.append(
            ControlButton("Request a custom beat", action="custom_request")
        )
        if profile is None:
            blocks.append(ControlButton("Create an account", action="register"))
        await self._body.mount_all(blocks)

    def on_control_pressed(self, event: ControlPressed) -> None:
        event.stop()
        if event.action == "choose_plan" and event.target_id:
            self.post_message(PlanChosen(event.target_id))
        elif event.action == "custom_request":
            self.post_message(CustomBeatRequested())
        elif event.action == "register":
            self.post_message(RegistrationRequested())
