# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Exception hierarchy shared by the check pipeline."""

from __future__ import annotations

from collections.abc import Sequence
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .models import ToolFailure


class GoCheckError(Exception):
    """Base class for errors raised by gocheck."""


class ConfigError(GoCheckError):
    """Raised when configuration input is invalid."""


class AggregateFailure(GoCheckError):
    """Raised when every enabled tool failed to run for a check request."""

    def __init__(self, failures: Sequence[ToolFailure]) -> None:
        """Record the failures and build a message naming each tool.

        Args:
            failures: One failure per enabled tool, in merge order.
        """

        self.failures = tuple(failures)
        summary = "; ".join(f"{failure.tool_kind.value}: {failure.error.describe()}" for failure in self.failures)
        super().__init__(f"All enabled tools failed to run ({summary})" if summary else "All enabled tools failed")


__all__ = ["AggregateFailure", "ConfigError", "GoCheckError"]
