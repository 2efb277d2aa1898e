# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Translate check requests into concrete tool invocations."""

from __future__ import annotations

import os
from typing import Final

from .config import CheckSettings
from .models import CheckRequest, LintFlavor, ToolInvocation, ToolKind

TEST_FILE_SUFFIX: Final[str] = "_test.go"
PACKAGE_ARG: Final[str] = "."


def build_invocation(request: CheckRequest, settings: CheckSettings) -> ToolInvocation:
    """Return the ``go build`` (or ``go test -c`` for test files) invocation."""

    if request.target_file.name.endswith(TEST_FILE_SUFFIX):
        args = ("test", "-c", "-o", os.devnull, *settings.build_flags, PACKAGE_ARG)
    else:
        args = ("build", "-o", os.devnull, *settings.build_flags, PACKAGE_ARG)
    return ToolInvocation(
        tool_kind=ToolKind.BUILD,
        command=settings.go_binary,
        args=args,
        working_dir=request.working_dir,
    )


def vet_invocation(request: CheckRequest, settings: CheckSettings) -> ToolInvocation:
    """Return the ``go vet`` invocation for the target's package."""

    return ToolInvocation(
        tool_kind=ToolKind.VET,
        command=settings.go_binary,
        args=("vet", *settings.vet_flags, PACKAGE_ARG),
        working_dir=request.working_dir,
    )


def lint_invocation(request: CheckRequest, settings: CheckSettings) -> ToolInvocation | None:
    """Return the lint invocation for the configured flavour, if any."""

    if request.lint_flavor is LintFlavor.NONE:
        return None
    command = "golint" if request.lint_flavor is LintFlavor.GOLINT else settings.lint_tool
    return ToolInvocation(
        tool_kind=ToolKind.LINT,
        command=command,
        args=(*settings.lint_flags, request.target_file.name),
        working_dir=request.working_dir,
    )


def plan_invocations(request: CheckRequest, settings: CheckSettings) -> list[ToolInvocation]:
    """Return the enabled invocations for ``request`` in merge order.

    Args:
        request: Check request describing the saved file and enabled tools.
        settings: Settings supplying binaries and extra flags.

    Returns:
        list[ToolInvocation]: Build, vet and lint invocations that are enabled.
    """

    planned: list[ToolInvocation] = []
    if request.run_build:
        planned.append(build_invocation(request, settings))
    if request.run_vet:
        planned.append(vet_invocation(request, settings))
    lint = lint_invocation(request, settings)
    if lint is not None:
        planned.append(lint)
    return planned


__all__ = ["build_invocation", "lint_invocation", "plan_invocations", "vet_invocation"]
