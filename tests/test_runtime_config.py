"""Tests for runtime config precedence behavior."""

from __future__ import annotations

from beatshop.app import build_parser as app_build_parser
from beatshop.cli import build_parser as cli_build_parser
from beatshop.runtime_config import (
    clamp_visualizer_fps,
    clamp_waveform_width,
    resolve_backend_name,
    resolve_log_level,
)


def test_resolve_log_level_precedence_matrix() -> None:
    assert resolve_log_level(verbose=False, quiet=False) == "INFO"
    assert resolve_log_level(verbose=True, quiet=False) == "DEBUG"
    assert resolve_log_level(verbose=False, quiet=True) == "WARNING"
    assert resolve_log_level(verbose=True, quiet=True) == "WARNING"


def test_log_flags_parse_consistently_across_entrypoints() -> None:
    app_args = app_build_parser().parse_args(["--verbose", "--quiet"])
    cli_args = cli_build_parser().parse_args(["--verbose", "--quiet", "paths"])
    for args in (app_args, cli_args):
        assert resolve_log_level(verbose=args.verbose, quiet=args.quiet) == "WARNING"


def test_resolve_backend_name_prefers_cli_then_settings() -> None:
    assert resolve_backend_name("fake", "vlc") == "fake"
    assert resolve_backend_name(None, " VLC ") == "vlc"
    assert resolve_backend_name("bogus", "fake") == "fake"
    assert resolve_backend_name(None, "nope") == "fake"


def test_clamps_keep_values_in_range() -> None:
    assert clamp_visualizer_fps(1) == 5
    assert clamp_visualizer_fps(30) == 30
    assert clamp_visualizer_fps(500) == 60
    assert clamp_waveform_width(0) == 16
    assert clamp_waveform_width(96) == 96
    assert clamp_waveform_width(10_000) == 400
