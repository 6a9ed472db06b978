"""Runtime configuration normalization helpers.

These keep CLI flag and persisted-setting interpretation deterministic across
entrypoints.
"""

from __future__ import annotations

PLAYBACK_BACKENDS = ("fake", "vlc")
VISUALIZER_FPS_MIN = 5
VISUALIZER_FPS_MAX = 60
WAVEFORM_WIDTH_MIN = 16
WAVEFORM_WIDTH_MAX = 400


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def resolve_backend_name(cli_backend: str | None, settings_backend: str | None) -> str:
    """CLI choice wins over persisted setting; unknown names fall back to fake."""
    for candidate in (cli_backend, settings_backend):
        normalized = (candidate or "").strip().lower()
        if normalized in PLAYBACK_BACKENDS:
            return normalized
    return "fake"


def clamp_visualizer_fps(value: int) -> int:
    return max(VISUALIZER_FPS_MIN, min(VISUALIZER_FPS_MAX, int(value)))


def clamp_waveform_width(value: int) -> int:
    """Waveform bucket count equals rendered cell width; keep it drawable."""
    return max(WAVEFORM_WIDTH_MIN, min(WAVEFORM_WIDTH_MAX, int(value)))
