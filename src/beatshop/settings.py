"""JSON-backed storefront settings.

Webhook endpoints and payment links are deployment details, so they live in a
user-editable `settings.json` rather than in code. Loading is tolerant of
missing, corrupt or partially typed files: bad values degrade to defaults and
the caller gets a notice to show once.
"""

from __future__ import annotations

import json
import logging
import math
from contextlib import suppress
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any
from uuid import uuid4

from .commerce import UserProfile, profile_from_dict

logger = logging.getLogger(__name__)

DEFAULT_REQUEST_TIMEOUT_S = 15.0
DEFAULT_WAVEFORM_WIDTH = 96
DEFAULT_VISUALIZER_FPS = 20


@dataclass(frozen=True)
class StoreSettings:
    """Deployment and runtime settings loaded at startup."""

    chat_webhook_url: str = ""
    purchase_webhook_url: str = ""
    subscription_webhook_url: str = ""
    custom_request_webhook_url: str = ""
    registration_webhook_url: str = ""
    plan_payment_links: dict[str, str] = field(default_factory=dict)
    request_timeout_s: float = DEFAULT_REQUEST_TIMEOUT_S
    waveform_width: int = DEFAULT_WAVEFORM_WIDTH
    visualizer_fps: int = DEFAULT_VISUALIZER_FPS
    playback_backend: str = "vlc"
    log_level: str = "INFO"
    profile: UserProfile | None = None


def _coerce_settings(data: dict[str, Any]) -> StoreSettings:
    def _str_or_default(value: Any, default: str) -> str:
        return value.strip() if isinstance(value, str) else default

    def _positive_float(value: Any, default: float) -> float:
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            return default
        numeric = float(value)
        if not math.isfinite(numeric) or numeric <= 0:
            return default
        return numeric

    def _positive_int(value: Any, default: int) -> int:
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return default
        return value

    links = data.get("plan_payment_links")
    plan_links = (
        {
            str(name).upper(): url.strip()
            for name, url in links.items()
            if isinstance(url, str) and url.strip()
        }
        if isinstance(links, dict)
        else {}
    )
    defaults = StoreSettings()
    return StoreSettings(
        chat_webhook_url=_str_or_default(data.get("chat_webhook_url"), ""),
        purchase_webhook_url=_str_or_default(data.get("purchase_webhook_url"), ""),
        subscription_webhook_url=_str_or_default(
            data.get("subscription_webhook_url"), ""
        ),
        custom_request_webhook_url=_str_or_default(
            data.get("custom_request_webhook_url"), ""
        ),
        registration_webhook_url=_str_or_default(
            data.get("registration_webhook_url"), ""
        ),
        plan_payment_links=plan_links,
        request_timeout_s=_positive_float(
            data.get("request_timeout_s"), defaults.request_timeout_s
        ),
        waveform_width=_positive_int(
            data.get("waveform_width"), defaults.waveform_width
        ),
        visualizer_fps=_positive_int(
            data.get("visualizer_fps"), defaults.visualizer_fps
        ),
        playback_backend=_str_or_default(
            data.get("playback_backend"), defaults.playback_backend
        ),
        log_level=_str_or_default(data.get("log_level"), defaults.log_level),
        profile=profile_from_dict(data.get("profile")),
    )


def load_settings_with_notice(path: Path) -> tuple[StoreSettings, str | None]:
    """Load settings and return an optional user-facing notice."""
    try:
        raw = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        logger.info("Settings file missing at %s; using defaults.", path)
        return StoreSettings(), None
    except OSError as exc:
        logger.warning("Failed to read settings %s: %s; using defaults.", path, exc)
        return (
            StoreSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is unreadable.\n"
            f"Next step: verify access to '{path}' and restart.",
        )

    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        logger.warning("Settings file at %s is invalid JSON; using defaults.", path)
        return (
            StoreSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is corrupt or partially written.\n"
            f"Next step: repair or remove '{path}' and restart.",
        )

    if not isinstance(data, dict):
        logger.warning("Settings file at %s is not a JSON object.", path)
        return (
            StoreSettings(),
            "Settings were reset to defaults.\n"
            "Likely cause: settings file is not a JSON object.\n"
            f"Next step: remove '{path}' and restart.",
        )
    return _coerce_settings(data), None


def load_settings(path: Path) -> StoreSettings:
    settings, _notice = load_settings_with_notice(path)
    return settings


def save_settings(path: Path, settings: StoreSettings) -> None:
    """Persist settings atomically via write-then-replace."""
    write_json_atomic(path, asdict(settings))


def write_json_atomic(path: Path, data: object) -> None:
    """Write JSON to a sibling temp file, then replace the target in one step."""
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp_path = path.with_name(f"{path.name}.{uuid4().hex}.tmp")
    try:
        tmp_path.write_text(
            json.dumps(data, indent=2, sort_keys=True), encoding="utf-8"
        )
        tmp_path.replace(path)
    finally:
        with suppress(OSError):
            tmp_path.unlink()
