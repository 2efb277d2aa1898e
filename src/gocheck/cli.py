# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Command line entry point running a one-off save check."""

from __future__ import annotations

import json
import logging
from enum import IntEnum
from pathlib import Path
from typing import Annotated

import typer
from rich.logging import RichHandler

from . import __version__
from .config import CheckSettings, load_settings
from .errors import ConfigError
from .logging import fail, get_console, ok, warn
from .models import LintFlavor, MappedDiagnostic
from .publisher import DiagnosticCollection, DiagnosticPublisher
from .severity import Severity
from .watcher import InMemoryDocuments, RunState, SaveWatcher, normalize_file

app = typer.Typer(help="Run go build, vet and lint against a saved Go file.", no_args_is_help=True)


class ExitCode(IntEnum):
    """Process exit codes returned by ``gocheck check``."""

    CLEAN = 0
    ERRORS = 1
    FAILED = 2


class _CollectingNotifier:
    def __init__(self) -> None:
        self.messages: list[str] = []

    def notify(self, message: str) -> None:
        self.messages.append(message)


def _configure_logging(debug: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=get_console(), show_path=False)],
        force=True,
    )


def _load(config: Path | None) -> CheckSettings:
    try:
        return load_settings(config)
    except ConfigError as exc:
        fail(str(exc))
        raise typer.Exit(code=ExitCode.FAILED) from exc


def _format(diagnostic: MappedDiagnostic) -> str:
    return (
        f"{diagnostic.file}:{diagnostic.line_index + 1}:{diagnostic.start_column + 1}: "
        f"{diagnostic.severity.value}: {diagnostic.message}"
    )


@app.command("check")
def check_command(
    file: Annotated[Path, typer.Argument(exists=True, dir_okay=False, help="Go source file to check.")],
    config: Annotated[Path | None, typer.Option("--config", "-c", help="TOML configuration file.")] = None,
    build: Annotated[bool | None, typer.Option("--build/--no-build", help="Override build_on_save.")] = None,
    vet: Annotated[bool | None, typer.Option("--vet/--no-vet", help="Override vet_on_save.")] = None,
    lint: Annotated[LintFlavor | None, typer.Option("--lint", help="Override lint_on_save.")] = None,
    timeout: Annotated[float | None, typer.Option("--timeout", min=0.1, help="Per-tool timeout in seconds.")] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Emit diagnostics as JSON.")] = False,
    debug: Annotated[bool, typer.Option("--debug", help="Log tool commands and run decisions.")] = False,
) -> None:
    """Check FILE once and print its diagnostics."""

    _configure_logging(debug)
    settings = _load(config)
    overrides: dict[str, object] = {}
    if build is not None:
        overrides["build_on_save"] = build
    if vet is not None:
        overrides["vet_on_save"] = vet
    if lint is not None:
        overrides["lint_on_save"] = lint
    if timeout is not None:
        overrides["tool_timeout"] = timeout
    if overrides:
        settings = settings.model_copy(update=overrides)

    target = normalize_file(file)
    notifier = _CollectingNotifier()
    publisher = DiagnosticPublisher(DiagnosticCollection(), notifier)
    documents = InMemoryDocuments({target: file.read_text(encoding="utf-8", errors="replace")})
    with SaveWatcher(settings, publisher, documents) as watcher:
        request = settings.request_for(Path(target))
        state = watcher.run(request, watcher.issue_run(target), settings)

    if state is RunState.FAILED_NOTIFIED:
        for message in notifier.messages:
            fail(message)
        raise typer.Exit(code=ExitCode.FAILED)

    diagnostics = publisher.collection.get(target)
    if as_json:
        typer.echo(json.dumps([diagnostic.model_dump(mode="json") for diagnostic in diagnostics], indent=2))
    else:
        for diagnostic in diagnostics:
            typer.echo(_format(diagnostic))
        if not diagnostics:
            ok(f"No problems found in {file}")
    if any(diagnostic.severity is Severity.ERROR for diagnostic in diagnostics):
        raise typer.Exit(code=ExitCode.ERRORS)


@app.command("config")
def config_command(
    config: Annotated[Path | None, typer.Option("--config", "-c", help="TOML configuration file.")] = None,
) -> None:
    """Print the effective settings as JSON."""

    settings = _load(config)
    typer.echo(json.dumps(settings.to_dict(), indent=2, sort_keys=True))


@app.command("version")
def version_command() -> None:
    """Print the installed gocheck version."""

    typer.echo(__version__)


def main() -> None:  # pragma: no cover - console script shim
    """Run the Typer application."""

    try:
        app()
    except KeyboardInterrupt:
        warn("Interrupted")
        raise SystemExit(130) from None


__all__ = ["app", "main"]
