# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Public parser exports for converting tool output into findings."""

from __future__ import annotations

from .base import LOCATION_PATTERN, LineParser, OutputParser, iter_findings
from .go import (
    BUILD_PARSER,
    LINT_PARSER,
    VET_PARSER,
    parse_build,
    parse_lint,
    parse_result,
    parse_vet,
    parser_for,
)

__all__ = [
    "BUILD_PARSER",
    "LINT_PARSER",
    "LOCATION_PATTERN",
    "LineParser",
    "OutputParser",
    "VET_PARSER",
    "iter_findings",
    "parse_build",
    "parse_lint",
    "parse_result",
    "parse_vet",
    "parser_for",
]
