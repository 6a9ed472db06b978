"""JSON webhook client used by chat, checkout and registration flows."""

from __future__ import annotations

import logging
from typing import Any

import requests

from beatshop.utils.async_utils import run_blocking

logger = logging.getLogger(__name__)

DEFAULT_TIMEOUT_S = 15.0
USER_AGENT = "beatshop"


class WebhookError(Exception):
    """Webhook call failed; `str(exc)` is safe to show to the user."""

    def __init__(
        self,
        message: str,
        *,
        status_code: int | None = None,
        detail: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.detail = detail


def error_message_for_status(
    status_code: int, *, action: str = "request", detail: str | None = None
) -> str:
    """User-facing text for a failed webhook call, e.g. for `registration`."""
    if status_code == 429:
        return f"Too many {action} attempts. Please try again later."
    if status_code == 403:
        return "Access denied. Please check your connection and try again."
    if detail:
        return detail
    return f"{action.capitalize()} failed ({status_code}). Please try again."


class WebhookClient:
    """POST JSON bodies to automation webhooks and decode the JSON reply."""

    def __init__(
        self,
        *,
        session: requests.Session | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._session = session or requests.Session()
        self._session.headers.setdefault("User-Agent", USER_AGENT)
        self._timeout_s = timeout_s

    async def post_json(self, url: str, payload: dict[str, Any]) -> Any:
        """POST `payload` and return the decoded body.

        A body that is not JSON is returned as stripped text, so webhooks that
        answer with a bare string or URL still work.
        """
        if not url:
            raise WebhookError("Service is not configured.")
        return await run_blocking(self._post_json_sync, url, payload)

    def close(self) -> None:
        self._session.close()

    def _post_json_sync(self, url: str, payload: dict[str, Any]) -> Any:
        try:
            response = self._session.post(
                url,
                json=payload,
                headers={"Accept": "application/json"},
                timeout=self._timeout_s,
            )
        except requests.RequestException as exc:
            logger.warning(
                "Webhook request failed: %s",
                exc,
                extra={"event": "webhook_transport_error"},
            )
            raise WebhookError(
                "Network error. Please check your connection and try again."
            ) from exc
        if not response.ok:
            logger.warning(
                "Webhook returned HTTP %s",
                response.status_code,
                extra={"event": "webhook_http_error", "status": response.status_code},
            )
            detail = _error_detail(response)
            raise WebhookError(
                error_message_for_status(response.status_code, detail=detail),
                status_code=response.status_code,
                detail=detail,
            )
        text = response.text
        if not text.strip():
            return None
        try:
            return response.json()
        except ValueError:
            return text.strip()


def _error_detail(response: requests.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, str) and error.strip():
            return error.strip()
    return None
