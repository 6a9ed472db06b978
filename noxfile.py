"""Nox sessions for the beatshop quality gates."""

from __future__ import annotations

import nox

nox.options.sessions = ["lint", "typecheck", "tests"]


@nox.session
def lint(session: nox.Session) -> None:
    """Check lint and formatting without touching files."""
    session.install("ruff")
    session.run("ruff", "check", ".")
    session.run("ruff", "format", "--check", ".")


@nox.session(name="lint-fix")
def lint_fix(session: nox.Session) -> None:
    session.install("ruff")
    session.run("ruff", "check", "--fix", ".")
    session.run("ruff", "format", ".")


@nox.session
def typecheck(session: nox.Session) -> None:
    """Type-check the package with its runtime dependencies installed."""
    session.install("mypy", "types-requests")
    session.install("-e", ".")
    session.run("mypy", "src")


@nox.session
def tests(session: nox.Session) -> None:
    session.install("-e", ".[test]")
    session.run("pytest", *session.posargs)


@nox.session
def doctor(session: nox.Session) -> None:
    """Report VLC, ffmpeg and webhook readiness for this machine."""
    session.install("-e", ".")
    session.run("beatshop-cli", "doctor", success_codes=[0, 2])
