# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Run the enabled tools for a save and fold their findings into one result."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterable, Sequence
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from .config import CheckSettings
from .errors import AggregateFailure
from .invocations import plan_invocations
from .models import (
    CheckRequest,
    CheckResult,
    Finding,
    InvocationError,
    InvocationErrorKind,
    LintFlavor,
    ToolFailure,
    ToolInvocation,
    ToolOutcome,
    ToolSuccess,
)
from .parsers import parse_result
from .process_utils import SubprocessToolRunner, ToolRunner

LOGGER = logging.getLogger(__name__)


def _resolve_file(raw: str, working_dir: Path) -> str:
    path = Path(raw)
    if not path.is_absolute():
        path = working_dir / path
    return os.path.normpath(path)


def execute_invocation(invocation: ToolInvocation, runner: ToolRunner) -> ToolOutcome:
    """Run ``invocation`` and settle it into a success or a failure.

    Args:
        invocation: Tool command to execute.
        runner: Callable executing the command.

    Returns:
        ToolOutcome: Parsed findings with resolved paths, or the failure reason.
    """

    try:
        result = runner(invocation)
    except OSError as exc:
        return ToolFailure(
            tool_kind=invocation.tool_kind,
            error=InvocationError(kind=InvocationErrorKind.SPAWN_FAILED, detail=str(exc)),
        )
    if result.invocation_error is not None:
        return ToolFailure(tool_kind=invocation.tool_kind, error=result.invocation_error)
    findings = tuple(
        finding.model_copy(update={"file": _resolve_file(finding.file, invocation.working_dir)})
        for finding in parse_result(result)
    )
    return ToolSuccess(tool_kind=invocation.tool_kind, findings=findings)


def merge_findings(successes: Iterable[ToolSuccess]) -> list[Finding]:
    """Merge findings in build, vet, lint order and drop exact duplicates.

    Findings keep their output order within each tool; the first occurrence of a
    duplicate ``(file, line, severity, message)`` wins.
    """

    ordered = sorted(successes, key=lambda outcome: outcome.tool_kind.rank)
    seen: set[tuple[str, int, str, str]] = set()
    merged: list[Finding] = []
    for outcome in ordered:
        for finding in outcome.findings:
            key = finding.dedupe_key()
            if key in seen:
                continue
            seen.add(key)
            merged.append(finding)
    return merged


def fold_outcomes(outcomes: Sequence[ToolOutcome]) -> CheckResult:
    """Fold per-tool outcomes using "succeed if any tool succeeded".

    Args:
        outcomes: One outcome per enabled tool.

    Returns:
        CheckResult: Merged findings plus secondary failures, or an aggregate
        failure when no tool produced output.
    """

    successes = [outcome for outcome in outcomes if isinstance(outcome, ToolSuccess)]
    failures = tuple(
        sorted(
            (outcome for outcome in outcomes if isinstance(outcome, ToolFailure)),
            key=lambda outcome: outcome.tool_kind.rank,
        ),
    )
    if outcomes and not successes:
        return CheckResult(failures=failures, error=AggregateFailure(failures))
    return CheckResult(findings=tuple(merge_findings(successes)), failures=failures)


@dataclass(slots=True)
class Aggregator:
    """Run the tools enabled by a :class:`CheckRequest` concurrently."""

    settings: CheckSettings = field(default_factory=CheckSettings)
    runner: ToolRunner | None = None

    def _runner(self) -> ToolRunner:
        if self.runner is not None:
            return self.runner
        return SubprocessToolRunner(timeout=self.settings.tool_timeout)

    def check(self, request: CheckRequest) -> CheckResult:
        """Run every enabled tool for ``request`` and fold their results.

        Args:
            request: Saved file and the tools enabled for it.

        Returns:
            CheckResult: Folded result; never raises for tool failures.
        """

        invocations = plan_invocations(request, self.settings)
        if not invocations:
            return CheckResult()
        runner = self._runner()
        with ThreadPoolExecutor(max_workers=len(invocations), thread_name_prefix="gocheck-tool") as pool:
            futures = [pool.submit(execute_invocation, invocation, runner) for invocation in invocations]
            outcomes = [future.result() for future in futures]
        result = fold_outcomes(outcomes)
        for failure in result.failures:
            LOGGER.debug("%s failed for %s: %s", failure.tool_kind.value, request.target_file, failure.error.describe())
        LOGGER.debug("%d finding(s) for %s", len(result.findings), request.target_file)
        return result


def check(
    target_file: Path,
    run_build: bool,
    lint_flavor: LintFlavor,
    run_vet: bool,
    *,
    runner: ToolRunner | None = None,
    settings: CheckSettings | None = None,
) -> CheckResult:
    """Run the enabled tools against ``target_file``.

    Args:
        target_file: Saved source file.
        run_build: Whether to run the build step.
        lint_flavor: Lint tool selection.
        run_vet: Whether to run vet.
        runner: Optional tool runner; defaults to subprocess execution.
        settings: Settings supplying binaries, flags and the timeout.

    Returns:
        CheckResult: Success with merged findings, or an aggregate failure.
    """

    request = CheckRequest(
        target_file=target_file,
        run_build=run_build,
        lint_flavor=lint_flavor,
        run_vet=run_vet,
    )
    return Aggregator(settings=settings or CheckSettings(), runner=runner).check(request)


__all__ = ["Aggregator", "check", "execute_invocation", "fold_outcomes", "merge_findings"]
