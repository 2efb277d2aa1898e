# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Parsers for go build, go vet and lint output."""

from __future__ import annotations

from typing import Final

from ..models import Finding, RawToolResult, ToolKind
from ..severity import ERROR_TOKEN, WARNING_TOKEN
from .base import LineParser

BUILD_WARNING_MARKERS: Final[tuple[str, ...]] = ("warning:", "warn:")
VET_PREFIXES: Final[tuple[str, ...]] = ("vet: ",)


def resolve_build_severity(message: str) -> tuple[str, str]:
    """Return ``error`` unless ``message`` opens with a warning marker.

    The marker itself is removed from the returned message.
    """

    lowered = message.lower()
    for marker in BUILD_WARNING_MARKERS:
        if lowered.startswith(marker):
            remainder = message[len(marker) :].strip()
            return WARNING_TOKEN, remainder or message
    return ERROR_TOKEN, message


def resolve_vet_severity(message: str) -> tuple[str, str]:
    """Vet findings are always errors."""

    return ERROR_TOKEN, message


def resolve_lint_severity(message: str) -> tuple[str, str]:
    """Lint findings are always warnings."""

    return WARNING_TOKEN, message


BUILD_PARSER: Final[LineParser] = LineParser(resolve_build_severity)
VET_PARSER: Final[LineParser] = LineParser(resolve_vet_severity, strip_prefixes=VET_PREFIXES)
LINT_PARSER: Final[LineParser] = LineParser(resolve_lint_severity)

_PARSERS: Final[dict[ToolKind, LineParser]] = {
    ToolKind.BUILD: BUILD_PARSER,
    ToolKind.VET: VET_PARSER,
    ToolKind.LINT: LINT_PARSER,
}


def parser_for(tool_kind: ToolKind) -> LineParser:
    """Return the parser registered for ``tool_kind``."""

    return _PARSERS[tool_kind]


def parse_build(text: str) -> list[Finding]:
    """Parse ``go build`` output."""

    return BUILD_PARSER.parse(text)


def parse_vet(text: str) -> list[Finding]:
    """Parse ``go vet`` output."""

    return VET_PARSER.parse(text)


def parse_lint(text: str) -> list[Finding]:
    """Parse golint-style output."""

    return LINT_PARSER.parse(text)


def parse_result(result: RawToolResult) -> list[Finding]:
    """Parse both output streams of ``result`` with the matching parser.

    go build and go vet report on stderr while golint writes to stdout, so both
    streams are parsed; stdout findings come first.

    Args:
        result: Captured output of a tool run.

    Returns:
        list[Finding]: Findings in output order.
    """

    parser = parser_for(result.tool_kind)
    return [*parser.parse(result.stdout), *parser.parse(result.stderr)]


__all__ = [
    "BUILD_PARSER",
    "LINT_PARSER",
    "VET_PARSER",
    "parse_build",
    "parse_lint",
    "parse_result",
    "parse_vet",
    "parser_for",
    "resolve_build_severity",
    "resolve_lint_severity",
    "resolve_vet_severity",
]
