"""Purchase, subscription, custom-request and registration webhooks.

All order logic lives in the external automation tool; this module only builds
the payloads, posts them and extracts the checkout redirect URL. A failure
never changes local state, so the user can simply retry.
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from typing import Any, Protocol

from beatshop.catalog import CatalogEntry
from beatshop.commerce import (
    LicenseType,
    SubscriptionPlan,
    UserProfile,
    available_licenses,
    discount_percentage,
    generate_tracking_id,
    license_price,
)

from .webhook_client import WebhookError, error_message_for_status

logger = logging.getLogger(__name__)

_REDIRECT_KEYS = ("checkout_url", "url", "redirect_url")


class CheckoutError(Exception):
    """Checkout step failed; `str(exc)` is the toast text."""


class JsonPoster(Protocol):
    async def post_json(self, url: str, payload: dict[str, Any]) -> Any: ...


@dataclass(frozen=True)
class BuyerInfo:
    first_name: str
    last_name: str
    email: str

    def validate(self) -> None:
        if not self.first_name.strip() or not self.last_name.strip():
            raise CheckoutError("Please enter your first and last name.")
        if not _looks_like_email(self.email):
            raise CheckoutError("Please enter a valid email address.")


@dataclass(frozen=True)
class CustomBeatRequest:
    name: str
    email: str
    custom_beat_details: str
    reference_links: str = ""
    budget: str = ""
    additional_message: str = ""

    def validate(self) -> None:
        if not self.name.strip():
            raise CheckoutError("Please enter your name.")
        if not _looks_like_email(self.email):
            raise CheckoutError("Please enter a valid email address.")
        if not self.custom_beat_details.strip():
            raise CheckoutError("Please describe the beat you have in mind.")


@dataclass(frozen=True)
class CheckoutRedirect:
    """Where to send the buyer next, plus the id the webhook was given."""

    url: str
    tracking_id: str
    price: float | None = None


def extract_redirect_url(body: Any) -> str | None:
    """Find the redirect URL in a webhook reply (keyed object or bare string)."""
    if isinstance(body, list) and len(body) == 1:
        body = body[0]
    candidate: Any = body
    if isinstance(body, dict):
        candidate = next(
            (body[key] for key in _REDIRECT_KEYS if isinstance(body.get(key), str)),
            None,
        )
    if not isinstance(candidate, str):
        return None
    candidate = candidate.strip()
    if candidate.startswith(("http://", "https://")):
        return candidate
    return None


class CheckoutService:
    def __init__(
        self,
        *,
        client: JsonPoster,
        purchase_url: str,
        subscription_url: str,
        custom_request_url: str = "",
        registration_url: str = "",
    ) -> None:
        self._client = client
        self._purchase_url = purchase_url
        self._subscription_url = subscription_url
        self._custom_request_url = custom_request_url
        self._registration_url = registration_url

    async def purchase_beat(
        self,
        buyer: BuyerInfo,
        entry: CatalogEntry,
        license_type: LicenseType,
        profile: UserProfile | None = None,
        *,
        tracking_id: str | None = None,
    ) -> CheckoutRedirect:
        buyer.validate()
        if license_type not in available_licenses(entry):
            raise CheckoutError(
                f"The {license_type} license is not available for '{entry.title}'."
            )
        discount = discount_percentage(profile)
        price = license_price(entry, license_type, discount_percent=discount)
        tracking = tracking_id or generate_tracking_id()
        payload = {
            **asdict(buyer),
            "beat_id": entry.id,
            "beat_title": entry.title,
            "license": license_type,
            "price": price,
            "discount_percent": discount,
            "tracking_id": tracking,
        }
        body = await self._post("purchase", self._purchase_url, payload)
        url = extract_redirect_url(body)
        if url is None:
            logger.warning(
                "Purchase webhook reply had no redirect URL",
                extra={"event": "checkout_no_redirect", "tracking_id": tracking},
            )
            raise CheckoutError("Failed to process request. Please try again.")
        logger.info(
            "Purchase checkout started",
            extra={
                "event": "checkout_started",
                "beat_id": entry.id,
                "license": license_type,
                "tracking_id": tracking,
            },
        )
        return CheckoutRedirect(url=url, tracking_id=tracking, price=price)

    async def subscribe(
        self,
        buyer: BuyerInfo,
        plan: SubscriptionPlan,
        *,
        tracking_id: str | None = None,
    ) -> CheckoutRedirect:
        buyer.validate()
        if not plan.is_paid:
            raise CheckoutError("The FREE plan does not need a checkout.")
        tracking = tracking_id or generate_tracking_id()
        payload = {
            **asdict(buyer),
            "plan_id": plan.name.lower(),
            "plan_name": plan.name,
            "price": plan.monthly_price,
            "tracking_id": tracking,
        }
        body = await self._post("subscription", self._subscription_url, payload)
        url = extract_redirect_url(body) or plan.payment_link
        if not url:
            raise CheckoutError("Failed to process subscription. Please try again.")
        logger.info(
            "Subscription checkout started",
            extra={
                "event": "subscription_started",
                "plan": plan.name,
                "tracking_id": tracking,
            },
        )
        return CheckoutRedirect(
            url=url, tracking_id=tracking, price=plan.monthly_price
        )

    async def request_custom_beat(self, form: CustomBeatRequest) -> None:
        form.validate()
        await self._post("request", self._custom_request_url, asdict(form))
        logger.info("Custom beat request sent", extra={"event": "custom_request"})

    async def register(self, buyer: BuyerInfo) -> None:
        buyer.validate()
        await self._post("registration", self._registration_url, asdict(buyer))
        logger.info("Registration submitted", extra={"event": "registration"})

    async def _post(self, action: str, url: str, payload: dict[str, Any]) -> Any:
        if not url:
            raise CheckoutError(
                f"{action.capitalize()} is not configured.\n"
                "Likely cause: the webhook URL is missing from settings.json.\n"
                "Next step: add it and restart."
            )
        try:
            return await self._client.post_json(url, payload)
        except WebhookError as exc:
            if exc.status_code is None:
                raise CheckoutError(str(exc)) from exc
            raise CheckoutError(
                error_message_for_status(
                    exc.status_code, action=action, detail=exc.detail
                )
            ) from exc


def _looks_like_email(value: str) -> bool:
    local, sep, domain = value.strip().partition("@")
    return bool(local) and bool(sep) and "." in domain and not domain.startswith(".")
