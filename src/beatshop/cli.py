"""Command-line diagnostics for beatshop (no TUI)."""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from . import __version__
from .catalog import (
    DEFAULT_CATALOG,
    FILTER_OPTIONS,
    SORT_OPTIONS,
    browse,
    load_catalog,
)
from .doctor import render_report, run_doctor
from .logging_utils import setup_logging
from .paths import (
    config_dir,
    data_dir,
    log_dir,
    preferences_path,
    session_path,
    settings_path,
)
from .runtime_config import (
    PLAYBACK_BACKENDS,
    clamp_waveform_width,
    resolve_backend_name,
    resolve_log_level,
)
from .services.audio_decode import AudioFetcher
from .services.waveform_service import WaveformService
from .session_store import clear_session
from .settings import load_settings
from .ui.waveform_view import level_char


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="beatshop-cli", description="Diagnostics for the beatshop storefront."
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    commands = parser.add_subparsers(dest="command", required=True)

    commands.add_parser("paths", help="Show settings, data and log locations.")

    doctor = commands.add_parser("doctor", help="Check playback and webhook setup.")
    doctor.add_argument("--backend", choices=PLAYBACK_BACKENDS)

    catalog = commands.add_parser("catalog", help="List beats as the store shows them.")
    catalog.add_argument("--catalog", help="JSON catalog file to read.")
    catalog.add_argument(
        "--filter", choices=[value for value, _label in FILTER_OPTIONS], default="all"
    )
    catalog.add_argument(
        "--sort", choices=[value for value, _label in SORT_OPTIONS], default="date-desc"
    )
    catalog.add_argument("--search", default="")

    waveform = commands.add_parser("waveform", help="Draw a preview's waveform.")
    waveform.add_argument("url")
    waveform.add_argument("--width", type=int, default=64)

    commands.add_parser("reset-session", help="Forget chat and checkout session.")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logger = logging.getLogger(__name__)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
        )
        logger.info("Running beatshop-cli %s", args.command)
        if args.command == "paths":
            return _cmd_paths()
        if args.command == "doctor":
            settings = load_settings(settings_path())
            backend = resolve_backend_name(args.backend, settings.playback_backend)
            report = run_doctor(backend, settings)
            print(render_report(report))
            return report.exit_code
        if args.command == "catalog":
            return _cmd_catalog(args)
        if args.command == "waveform":
            return asyncio.run(_cmd_waveform(args.url, args.width))
        if args.command == "reset-session":
            removed = clear_session(session_path())
            print("Session cleared." if removed else "No session to clear.")
            return 0
        parser.error(f"unknown command {args.command!r}")
        return 2
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


def _cmd_paths() -> int:
    rows = (
        ("config", config_dir()),
        ("settings", settings_path()),
        ("data", data_dir()),
        ("preferences", preferences_path()),
        ("session", session_path()),
        ("logs", log_dir()),
    )
    for label, path in rows:
        print(f"{label:<12} {path}")
    return 0


def _cmd_catalog(args: argparse.Namespace) -> int:
    entries = DEFAULT_CATALOG
    if args.catalog:
        try:
            entries = load_catalog(Path(args.catalog))
        except (OSError, ValueError) as exc:
            print(f"Could not read catalog: {exc}", file=sys.stderr)
            return 1
    rows = browse(entries, filter_id=args.filter, query=args.search, sort=args.sort)
    for entry in rows:
        print(
            f"{entry.id:<10} {entry.title:<28} {entry.genre:<8} "
            f"{entry.bpm:>4} BPM  {entry.length:>5}  ${entry.price:.2f}"
        )
    print(f"{len(rows)} of {len(entries)} beats")
    return 0


async def _cmd_waveform(url: str, width: int) -> int:
    fetcher = AudioFetcher()
    try:
        result = await WaveformService(fetcher=fetcher).load(
            url, clamp_waveform_width(width)
        )
    finally:
        fetcher.close()
    print("".join(level_char(value) for value in result.buckets))
    if result.is_fallback:
        print(f"{result.error} ({result.status})", file=sys.stderr)
        return 1
    if result.audio is not None:
        seconds = result.audio.duration_ms / 1000
        print(f"{result.audio.sample_rate} Hz, {seconds:.1f} s")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
