"""Tests for plans, discounts, license pricing and ids."""

from __future__ import annotations

import random
import re
from dataclasses import replace

from beatshop.catalog import DEFAULT_CATALOG
from beatshop.commerce import (
    PLANS,
    UserProfile,
    apply_discount,
    available_licenses,
    discount_percentage,
    generate_chat_session_id,
    generate_tracking_id,
    license_price,
    plan_by_name,
    plans_with_links,
    profile_from_dict,
)


def test_plans_table() -> None:
    assert [(p.name, p.discount_percent, p.monthly_price) for p in PLANS] == [
        ("FREE", 0, 0.0),
        ("BASIC", 20, 9.99),
        ("PRO", 30, 19.99),
        ("PREMIUM", 40, 29.99),
    ]
    assert plan_by_name(" pro ") is PLANS[2]
    assert plan_by_name("gold") is None


def test_plans_with_links_only_for_paid_plans() -> None:
    plans = plans_with_links({"FREE": "https://x/free", "PRO": "https://pay/pro"})
    by_name = {plan.name: plan for plan in plans}
    assert by_name["FREE"].payment_link is None
    assert by_name["PRO"].payment_link == "https://pay/pro"
    assert by_name["BASIC"].payment_link is None


def test_discount_requires_active_paid_subscription() -> None:
    active = UserProfile(
        id="u1",
        email="a@b.co",
        subscription_plan="PRO",
        subscription_status="active",
    )
    assert discount_percentage(None) == 0
    assert discount_percentage(active) == 30
    assert discount_percentage(replace(active, subscription_status="past_due")) == 0
    assert discount_percentage(replace(active, subscription_plan="FREE")) == 0


def test_license_prices() -> None:
    entry = replace(DEFAULT_CATALOG[0], price=25.0)
    assert license_price(entry, "commercial") == 25.0
    assert license_price(entry, "exclusive") == 50.0
    assert license_price(entry, "exclusive", discount_percent=40) == 30.0
    assert apply_discount(24.99, 20) == 19.99
    assert apply_discount(10.0, 150) == 0.0


def test_available_licenses_respects_exclusive_flag() -> None:
    entry = DEFAULT_CATALOG[0]
    assert available_licenses(entry) == ("commercial", "exclusive")
    locked = replace(entry, exclusive_available=False)
    assert available_licenses(locked) == ("commercial",)


def test_profile_from_dict_normalizes_values() -> None:
    profile = profile_from_dict(
        {
            "id": "u1",
            "email": "a@b.co",
            "first_name": "Ada",
            "subscription_plan": "premium",
            "subscription_status": "ACTIVE",
        }
    )
    assert profile is not None
    assert profile.subscription_plan == "PREMIUM"
    assert profile.subscription_status == "active"
    assert profile.first_name == "Ada"

    odd = profile_from_dict(
        {"id": "u2", "email": "c@d.co", "subscription_plan": "gold"}
    )
    assert odd is not None
    assert odd.subscription_plan == "FREE"
    assert odd.subscription_status == "incomplete"
    assert profile_from_dict({"email": "x@y.z"}) is None
    assert profile_from_dict(["not", "a", "dict"]) is None


def test_generated_ids_have_expected_shape() -> None:
    rng = random.Random(5)
    tracking = generate_tracking_id(now_ms=1_700_000_000_000, rng=rng)
    chat = generate_chat_session_id(now_ms=42, rng=rng)
    assert re.fullmatch(r"sess_1700000000000_[0-9a-z]{8}", tracking)
    assert re.fullmatch(r"session_42_[0-9a-z]{9}", chat)
    assert generate_tracking_id() != generate_tracking_id()
