# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Map 1-based tool line numbers onto column spans of the live document."""

from __future__ import annotations

import re
from typing import Final

from .models import Finding, MappedDiagnostic
from .severity import severity_from_token

FALLBACK_RANGE: Final[tuple[int, int]] = (0, 1)
_LINE_BREAK: Final[re.Pattern[str]] = re.compile(r"\r\n|\r|\n")


def split_lines(text: str) -> list[str]:
    """Split ``text`` on ``\\n``, ``\\r\\n`` and ``\\r`` without keeping terminators."""

    return _LINE_BREAK.split(text)


def line_text(document_text: str | None, line_number: int) -> str | None:
    """Return the text of 1-based ``line_number`` or ``None`` when out of range."""

    if document_text is None or line_number < 1:
        return None
    lines = split_lines(document_text)
    if line_number > len(lines):
        return None
    return lines[line_number - 1]


def trimmed_span(text: str) -> tuple[int, int]:
    """Return the column span of ``text`` without surrounding whitespace.

    A blank or whitespace-only line yields a zero-width span at its end.
    """

    start = len(text) - len(text.lstrip())
    end = max(start, len(text.rstrip()))
    return start, end


def map_range(document_text: str | None, line_number: int) -> tuple[int, int]:
    """Return ``(start_column, end_column)`` covering the line's content.

    Args:
        document_text: Current in-memory text, or ``None`` when unreadable.
        line_number: 1-based line reported by a tool.

    Returns:
        tuple[int, int]: Span of the non-whitespace content, or ``(0, 1)`` when
        the line does not exist in the current document.
    """

    text = line_text(document_text, line_number)
    if text is None:
        return FALLBACK_RANGE
    return trimmed_span(text)


def map_finding(finding: Finding, document_text: str | None) -> MappedDiagnostic:
    """Position ``finding`` on the live document and classify its severity."""

    start, end = map_range(document_text, finding.line)
    return MappedDiagnostic(
        file=finding.file,
        line_index=finding.line - 1,
        start_column=start,
        end_column=end,
        severity=severity_from_token(finding.severity_token),
        message=finding.message,
    )


__all__ = ["FALLBACK_RANGE", "line_text", "map_finding", "map_range", "split_lines", "trimmed_span"]
