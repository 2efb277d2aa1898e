# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Safe wrappers around ``subprocess`` execution of analysis tools."""

from __future__ import annotations

import logging
import shutil

# Bandit: subprocess usage is intentional; tool commands are passed as argument
# lists without shell expansion.
import subprocess  # nosec B404
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol, runtime_checkable

from .models import InvocationError, InvocationErrorKind, RawToolResult, ToolInvocation

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class ToolRunner(Protocol):
    """Callable protocol for executing a single tool invocation."""

    def __call__(self, invocation: ToolInvocation) -> RawToolResult:
        """Run ``invocation`` to completion or timeout.

        Args:
            invocation: Command, arguments and working directory to execute.

        Returns:
            RawToolResult: Captured output, or an invocation error when the tool
            could not be run.
        """

        raise NotImplementedError


def resolve_executable(command: str) -> str | None:
    """Return the absolute executable path for ``command`` or ``None``."""

    path = Path(command)
    if path.is_absolute():
        return str(path) if path.exists() else None
    return shutil.which(command)


def _ensure_text(value: str | bytes | None) -> str:
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    return value.decode(errors="replace")


def run_tool(
    invocation: ToolInvocation,
    *,
    timeout: float | None = None,
    env: Mapping[str, str] | None = None,
) -> RawToolResult:
    """Execute ``invocation`` and capture stdout and stderr separately.

    A missing executable is reported as ``not-found`` with empty output so the
    caller can tell it apart from a tool that ran and reported nothing. A
    non-zero exit status is not an error: tools exit non-zero when they find
    problems.

    Args:
        invocation: Tool command to run.
        timeout: Seconds before the process is killed; ``None`` waits forever.
        env: Optional environment replacing the inherited one.

    Returns:
        RawToolResult: Captured output or the reason the tool did not run.
    """

    executable = resolve_executable(invocation.command)
    if executable is None:
        LOGGER.debug("%s tool %r not found on PATH", invocation.tool_kind.value, invocation.command)
        return RawToolResult(
            tool_kind=invocation.tool_kind,
            exit_code=-1,
            invocation_error=InvocationError(
                kind=InvocationErrorKind.NOT_FOUND,
                detail=f"executable '{invocation.command}' was not found on PATH",
            ),
        )

    argv = [executable, *invocation.args]
    LOGGER.debug("running %s in %s", argv, invocation.working_dir)
    try:
        # Bandit: argument list only, never ``shell=True``.
        completed = subprocess.run(  # nosec B603
            argv,
            cwd=str(invocation.working_dir),
            env=dict(env) if env is not None else None,
            check=False,
            capture_output=True,
            text=True,
            errors="replace",
            timeout=timeout,
            stdin=subprocess.DEVNULL,
        )
    except subprocess.TimeoutExpired as exc:
        LOGGER.debug("%s tool timed out after %ss", invocation.tool_kind.value, timeout)
        return RawToolResult(
            tool_kind=invocation.tool_kind,
            exit_code=-1,
            stdout=_ensure_text(exc.stdout),
            stderr=_ensure_text(exc.stderr),
            invocation_error=InvocationError(
                kind=InvocationErrorKind.TIMEOUT,
                detail=f"'{invocation.command}' timed out after {timeout:.1f}s" if timeout else "timed out",
            ),
        )
    except FileNotFoundError as exc:
        return RawToolResult(
            tool_kind=invocation.tool_kind,
            exit_code=-1,
            invocation_error=InvocationError(kind=InvocationErrorKind.NOT_FOUND, detail=str(exc)),
        )
    except OSError as exc:
        return RawToolResult(
            tool_kind=invocation.tool_kind,
            exit_code=-1,
            invocation_error=InvocationError(kind=InvocationErrorKind.SPAWN_FAILED, detail=str(exc)),
        )

    return RawToolResult(
        tool_kind=invocation.tool_kind,
        exit_code=completed.returncode,
        stdout=completed.stdout or "",
        stderr=completed.stderr or "",
    )


@dataclass(frozen=True, slots=True)
class SubprocessToolRunner:
    """Default :class:`ToolRunner` executing tools as OS processes."""

    timeout: float | None = None
    env: Mapping[str, str] | None = None

    def __call__(self, invocation: ToolInvocation) -> RawToolResult:
        """Run ``invocation`` with the configured timeout and environment."""

        return run_tool(invocation, timeout=self.timeout, env=self.env)


__all__ = ["SubprocessToolRunner", "ToolRunner", "resolve_executable", "run_tool"]
