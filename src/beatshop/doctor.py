"""Environment checks: playback runtime, decoder binary and webhook settings."""

from __future__ import annotations

import importlib
import shutil
import subprocess
from dataclasses import dataclass
from typing import Literal
from urllib.parse import urlsplit

from .settings import StoreSettings

CheckStatus = Literal["ok", "missing", "error"]

WEBHOOK_SETTINGS = (
    ("chat", "chat_webhook_url"),
    ("purchase", "purchase_webhook_url"),
    ("subscription", "subscription_webhook_url"),
    ("custom request", "custom_request_webhook_url"),
    ("registration", "registration_webhook_url"),
)


@dataclass(frozen=True)
class DoctorCheck:
    name: str
    status: CheckStatus
    required: bool
    detail: str
    hint: str | None = None


@dataclass(frozen=True)
class DoctorReport:
    backend: str
    checks: list[DoctorCheck]

    @property
    def exit_code(self) -> int:
        """Non-zero when a required check did not pass."""
        if any(check.required and check.status != "ok" for check in self.checks):
            return 2
        return 0


def run_doctor(backend: str, settings: StoreSettings) -> DoctorReport:
    checks = [
        probe_vlc(required=backend == "vlc"),
        probe_ffmpeg(),
        *probe_webhooks(settings),
    ]
    return DoctorReport(backend=backend, checks=checks)


def render_report(report: DoctorReport) -> str:
    lines = [f"beatshop doctor (backend={report.backend})", ""]
    for check in report.checks:
        req = "required" if check.required else "optional"
        lines.append(
            f"{_status_token(check.status)} {check.name:<22} [{req}] {check.detail}"
        )
        if check.hint:
            lines.append(f"      hint: {check.hint}")
    lines.append("")
    lines.append("Result: OK" if report.exit_code == 0 else "Result: FAIL")
    return "\n".join(lines)


def probe_vlc(*, required: bool) -> DoctorCheck:
    """Import python-vlc and create a player to prove libVLC is loadable."""
    name = "vlc/libvlc"
    hint = "Install VLC/libVLC or run previews with --backend fake."
    try:
        vlc = importlib.import_module("vlc")
    except Exception as exc:
        return DoctorCheck(
            name=name,
            status="missing",
            required=required,
            detail=f"python-vlc import failed ({exc.__class__.__name__})",
            hint=hint,
        )
    try:
        instance = vlc.Instance("--no-video", "--quiet")
        instance.media_player_new()
    except Exception as exc:
        return DoctorCheck(
            name=name,
            status="error",
            required=required,
            detail=f"libVLC runtime unavailable ({exc.__class__.__name__})",
            hint=hint,
        )
    version = getattr(vlc, "__version__", "unknown")
    return DoctorCheck(
        name=name, status="ok", required=required, detail=f"python-vlc {version}"
    )


def probe_ffmpeg() -> DoctorCheck:
    """ffmpeg decodes MP3/AAC previews; WAV previews work without it."""
    hint = "Install ffmpeg to draw waveforms for MP3 previews."
    ffmpeg = shutil.which("ffmpeg")
    if ffmpeg is None:
        return DoctorCheck(
            name="ffmpeg",
            status="missing",
            required=False,
            detail="binary not found on PATH",
            hint=hint,
        )
    try:
        proc = subprocess.run(
            [ffmpeg, "-version"],
            capture_output=True,
            text=True,
            timeout=2,
            check=False,
        )
    except (OSError, subprocess.SubprocessError) as exc:
        return DoctorCheck(
            name="ffmpeg",
            status="error",
            required=False,
            detail=f"launch failed ({exc.__class__.__name__})",
            hint=hint,
        )
    if proc.returncode != 0:
        return DoctorCheck(
            name="ffmpeg",
            status="error",
            required=False,
            detail=f"ffmpeg -version failed (exit={proc.returncode})",
            hint=hint,
        )
    first_line = proc.stdout.strip().splitlines()[0] if proc.stdout.strip() else ""
    return DoctorCheck(
        name="ffmpeg",
        status="ok",
        required=False,
        detail=first_line or f"binary found at {ffmpeg}",
    )


def probe_webhooks(settings: StoreSettings) -> list[DoctorCheck]:
    """Report which webhook URLs are configured; none of them is required."""
    checks: list[DoctorCheck] = []
    for label, attr in WEBHOOK_SETTINGS:
        url = getattr(settings, attr)
        name = f"{label} webhook"
        if not url:
            checks.append(
                DoctorCheck(
                    name=name,
                    status="missing",
                    required=False,
                    detail="not configured",
                    hint=f"Set '{attr}' in settings.json.",
                )
            )
            continue
        parts = urlsplit(url)
        if parts.scheme not in {"http", "https"} or not parts.netloc:
            checks.append(
                DoctorCheck(
                    name=name,
                    status="error",
                    required=False,
                    detail=f"not an http(s) URL: {url!r}",
                    hint=f"Fix '{attr}' in settings.json.",
                )
            )
            continue
        checks.append(
            DoctorCheck(name=name, status="ok", required=False, detail=parts.netloc)
        )
    return checks


def _status_token(status: CheckStatus) -> str:
    if status == "ok":
        return "[OK]"
    if status == "missing":
        return "[MISS]"
    return "[ERR]"
