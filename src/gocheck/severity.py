# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Severity related types and helpers."""

from __future__ import annotations

from enum import Enum
from typing import Final


class Severity(str, Enum):
    """Severity levels understood by the diagnostics sink."""

    ERROR = "error"
    WARNING = "warning"


ERROR_TOKEN: Final[str] = "error"
WARNING_TOKEN: Final[str] = "warning"

_TOKEN_TO_SEVERITY: Final[dict[str, Severity]] = {
    ERROR_TOKEN: Severity.ERROR,
    WARNING_TOKEN: Severity.WARNING,
}


def severity_from_token(token: str | None) -> Severity:
    """Map a tool severity token onto a :class:`Severity`.

    Unrecognised tokens resolve to :attr:`Severity.ERROR` so a finding is never
    hidden because its tool used unfamiliar vocabulary.
    """

    if not token:
        return Severity.ERROR
    return _TOKEN_TO_SEVERITY.get(token.strip().lower(), Severity.ERROR)


__all__ = ["ERROR_TOKEN", "WARNING_TOKEN", "Severity", "severity_from_token"]
