"""Subscription plans, license pricing and checkout tracking ids."""

from __future__ import annotations

import random
import string
import time
from dataclasses import dataclass
from typing import Literal, cast, get_args

from .catalog import CatalogEntry

PlanName = Literal["FREE", "BASIC", "PRO", "PREMIUM"]
SubscriptionStatus = Literal["active", "cancelled", "past_due", "incomplete"]
LicenseType = Literal["commercial", "exclusive"]

EXCLUSIVE_MULTIPLIER = 2
_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class SubscriptionPlan:
    name: PlanName
    discount_percent: int
    monthly_price: float
    features: tuple[str, ...]
    payment_link: str | None = None

    @property
    def is_paid(self) -> bool:
        return self.monthly_price > 0


PLANS: tuple[SubscriptionPlan, ...] = (
    SubscriptionPlan(
        name="FREE",
        discount_percent=0,
        monthly_price=0.0,
        features=(
            "Full catalog access",
            "Preview all beats",
            "Standard pricing",
            "Basic support",
        ),
    ),
    SubscriptionPlan(
        name="BASIC",
        discount_percent=20,
        monthly_price=9.99,
        features=(
            "20% off all beats",
            "Priority support",
            "Extended previews",
            "Beat recommendations",
        ),
    ),
    SubscriptionPlan(
        name="PRO",
        discount_percent=30,
        monthly_price=19.99,
        features=(
            "30% off all beats",
            "Premium support",
            "Early access to new beats",
            "Custom beat requests",
        ),
    ),
    SubscriptionPlan(
        name="PREMIUM",
        discount_percent=40,
        monthly_price=29.99,
        features=(
            "40% off all beats",
            "VIP support",
            "Exclusive beats access",
            "Custom beat priority",
        ),
    ),
)


def plan_by_name(name: str) -> SubscriptionPlan | None:
    wanted = name.strip().upper()
    for plan in PLANS:
        if plan.name == wanted:
            return plan
    return None


def plans_with_links(links: dict[str, str]) -> tuple[SubscriptionPlan, ...]:
    """Attach configured payment links (keyed by plan name) to paid plans."""
    return tuple(
        SubscriptionPlan(
            name=plan.name,
            discount_percent=plan.discount_percent,
            monthly_price=plan.monthly_price,
            features=plan.features,
            payment_link=links.get(plan.name) if plan.is_paid else None,
        )
        for plan in PLANS
    )


@dataclass(frozen=True)
class UserProfile:
    """Profile row supplied by the external auth/profile store."""

    id: str
    email: str
    first_name: str = ""
    last_name: str = ""
    subscription_plan: PlanName = "FREE"
    subscription_status: SubscriptionStatus = "incomplete"


def profile_from_dict(data: object) -> UserProfile | None:
    """Build a profile from a settings/profile-store row; `None` if unusable."""
    if not isinstance(data, dict):
        return None
    user_id = data.get("id")
    email = data.get("email")
    if not isinstance(user_id, str) or not isinstance(email, str):
        return None
    plan = str(data.get("subscription_plan") or "FREE").strip().upper()
    status = str(data.get("subscription_status") or "incomplete").strip().lower()
    if plan not in get_args(PlanName):
        plan = "FREE"
    if status not in get_args(SubscriptionStatus):
        status = "incomplete"
    return UserProfile(
        id=user_id,
        email=email,
        first_name=str(data.get("first_name") or ""),
        last_name=str(data.get("last_name") or ""),
        subscription_plan=cast(PlanName, plan),
        subscription_status=cast(SubscriptionStatus, status),
    )


def discount_percentage(profile: UserProfile | None) -> int:
    """Discount for the profile; only an active paid subscription counts."""
    if profile is None or profile.subscription_status != "active":
        return 0
    plan = plan_by_name(profile.subscription_plan)
    return 0 if plan is None else plan.discount_percent


def apply_discount(price: float, percent: int) -> float:
    bounded = max(0, min(100, int(percent)))
    return round(price * (100 - bounded) / 100, 2)


def license_price(
    entry: CatalogEntry, license_type: LicenseType, *, discount_percent: int = 0
) -> float:
    base = entry.price
    if license_type == "exclusive":
        base = entry.price * EXCLUSIVE_MULTIPLIER
    return apply_discount(base, discount_percent)


def available_licenses(entry: CatalogEntry) -> tuple[LicenseType, ...]:
    if entry.exclusive_available:
        return ("commercial", "exclusive")
    return ("commercial",)


def generate_tracking_id(
    *, now_ms: int | None = None, rng: random.Random | None = None
) -> str:
    """Checkout tracking id in the form `sess_<ms>_<8 base36 chars>`."""
    return _timestamped_id("sess", 8, now_ms=now_ms, rng=rng)


def generate_chat_session_id(
    *, now_ms: int | None = None, rng: random.Random | None = None
) -> str:
    """Chat session id in the form `session_<ms>_<9 base36 chars>`."""
    return _timestamped_id("session", 9, now_ms=now_ms, rng=rng)


def _timestamped_id(
    prefix: str,
    length: int,
    *,
    now_ms: int | None,
    rng: random.Random | None,
) -> str:
    stamp = int(time.time() * 1000) if now_ms is None else int(now_ms)
    source = rng or random.SystemRandom()
    suffix = "".join(source.choice(_BASE36) for _ in range(length))
    return f"{prefix}_{stamp}_{suffix}"
