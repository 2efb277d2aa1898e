# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Shared parser infrastructure for ``path:line[:col]: message`` output."""

from __future__ import annotations

import re
from collections.abc import Callable, Iterator, Sequence
from dataclasses import dataclass
from typing import Final, Protocol, runtime_checkable

from ..models import Finding

LOCATION_PATTERN: Final[re.Pattern[str]] = re.compile(
    r"^(?P<file>(?:[A-Za-z]:)?[^:\s][^:]*?):(?P<line>-?\d+)(?::(?P<column>\d+))?:\s*(?P<message>.*\S)\s*$",
)

SeverityResolver = Callable[[str], tuple[str, str]]


@runtime_checkable
class OutputParser(Protocol):
    """Protocol implemented by per-tool output parsers."""

    def parse(self, text: str) -> list[Finding]:
        """Return the findings contained in ``text``."""

        raise NotImplementedError


def _ensure_lines(value: str | Sequence[str]) -> list[str]:
    if isinstance(value, str):
        return value.splitlines()
    return [str(item) for item in value]


def _is_continuation(raw_line: str) -> bool:
    return raw_line[:1].isspace() and bool(raw_line.strip())


@dataclass(slots=True)
class _PendingFinding:
    file: str
    line: int
    severity_token: str
    lines: list[str]

    def build(self) -> Finding:
        return Finding(
            file=self.file,
            line=self.line,
            severity_token=self.severity_token,
            message="\n".join(self.lines),
        )


def _strip_prefixes(line: str, prefixes: Sequence[str]) -> str:
    for prefix in prefixes:
        if line.startswith(prefix):
            return line[len(prefix) :].lstrip()
    return line


def _coerce_line(raw: str) -> int | None:
    try:
        value = int(raw)
    except ValueError:
        return None
    return value if value > 0 else None


def iter_findings(
    lines: Sequence[str],
    resolve: SeverityResolver,
    *,
    strip_prefixes: Sequence[str] = (),
) -> Iterator[Finding]:
    """Yield findings from ``lines``, folding indented continuation lines.

    Lines that do not look like ``path:line[:col]: message`` are skipped. An
    indented line directly following a finding extends that finding's message.
    Every other line, indented or not, is matched on its own, and a line that
    does not match ends the continuation run.

    Args:
        lines: Raw output lines emitted by a tool.
        resolve: Callable returning ``(severity_token, message)`` for a message.
        strip_prefixes: Tool banners removed from the start of a line before matching.

    Yields:
        Finding: Parsed findings in output order.
    """

    pending: _PendingFinding | None = None
    continuing = False
    for raw_line in lines:
        if continuing and pending is not None and _is_continuation(raw_line):
            pending.lines.append(raw_line.strip())
            continue
        match = LOCATION_PATTERN.match(_strip_prefixes(raw_line.strip(), strip_prefixes))
        if match is None:
            continuing = False
            continue
        line_no = _coerce_line(match.group("line"))
        if line_no is None:
            continuing = False
            continue
        if pending is not None:
            yield pending.build()
        severity_token, message = resolve(match.group("message").strip())
        pending = _PendingFinding(
            file=match.group("file").strip(),
            line=line_no,
            severity_token=severity_token,
            lines=[message],
        )
        continuing = True
    if pending is not None:
        yield pending.build()


@dataclass(frozen=True, slots=True)
class LineParser:
    """Parse ``path:line[:col]: message`` output with a severity policy."""

    resolve: SeverityResolver
    strip_prefixes: tuple[str, ...] = ()

    def parse(self, text: str | Sequence[str]) -> list[Finding]:
        """Return the findings contained in ``text``.

        Args:
            text: Raw tool output or its lines.

        Returns:
            list[Finding]: Findings in output order.
        """

        return list(iter_findings(_ensure_lines(text), self.resolve, strip_prefixes=self.strip_prefixes))


__all__ = ["LOCATION_PATTERN", "LineParser", "OutputParser", "SeverityResolver", "iter_findings"]
