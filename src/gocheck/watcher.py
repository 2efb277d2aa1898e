# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Save-event orchestration with per-file run supersession."""

from __future__ import annotations

import itertools
import logging
import os
from collections.abc import Callable, Mapping
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from threading import Lock
from types import TracebackType
from typing import Final, Protocol, runtime_checkable

from .aggregator import Aggregator
from .config import CheckSettings, SettingsProvider
from .models import CheckRequest, CheckResult, Finding, MappedDiagnostic
from .process_utils import ToolRunner
from .publisher import DiagnosticPublisher
from .ranges import map_finding

LOGGER = logging.getLogger(__name__)

DEFAULT_MAX_RUNS: Final[int] = 4


class RunState(str, Enum):
    """Lifecycle states of a per-file check run."""

    IDLE = "idle"
    RUNNING = "running"
    PUBLISHED = "published"
    FAILED_NOTIFIED = "failed-notified"
    SUPERSEDED = "superseded"


@dataclass(frozen=True, slots=True)
class SaveEvent:
    """Document-saved trigger carrying the path and a text snapshot."""

    path: Path
    text: str | None = None


@runtime_checkable
class DocumentProvider(Protocol):
    """Access to the live, possibly unsaved, text of open documents."""

    def text_for(self, path: str) -> str | None:
        """Return the current buffer text for ``path`` or ``None``."""

        raise NotImplementedError


class InMemoryDocuments:
    """Simple :class:`DocumentProvider` backed by a dictionary of buffers."""

    def __init__(self, buffers: Mapping[str, str] | None = None) -> None:
        self._lock = Lock()
        self._buffers: dict[str, str] = {normalize_file(key): value for key, value in (buffers or {}).items()}

    def open(self, path: str | Path, text: str) -> None:
        """Track ``path`` with initial ``text``."""

        with self._lock:
            self._buffers[normalize_file(path)] = text

    update = open

    def close(self, path: str | Path) -> None:
        """Stop tracking ``path``."""

        with self._lock:
            self._buffers.pop(normalize_file(path), None)

    def text_for(self, path: str) -> str | None:
        with self._lock:
            return self._buffers.get(normalize_file(path))


def normalize_file(path: str | Path) -> str:
    """Return the identity used to key per-file state."""

    return os.path.normpath(os.path.abspath(path))


def _as_provider(settings: CheckSettings | SettingsProvider) -> SettingsProvider:
    if isinstance(settings, CheckSettings):
        return lambda: settings
    return settings


class SaveWatcher:
    """React to save events by checking the file and publishing diagnostics.

    Each save issues a run id that increases monotonically per file. A run
    publishes only while its id is still the latest issued for its file, so an
    older run finishing late never overwrites the result of a newer save.
    Ids come from one counter shared by every file and are never reused, so a
    run left over from before a close cannot match a run issued after reopening.
    """

    def __init__(
        self,
        settings: CheckSettings | SettingsProvider,
        publisher: DiagnosticPublisher,
        documents: DocumentProvider | None = None,
        *,
        runner: ToolRunner | None = None,
        aggregator_factory: Callable[[CheckSettings], Aggregator] | None = None,
        max_runs: int = DEFAULT_MAX_RUNS,
    ) -> None:
        self._settings = _as_provider(settings)
        self.publisher = publisher
        self.documents = documents
        self._runner = runner
        self._aggregator_factory = aggregator_factory
        self._lock = Lock()
        self._latest: dict[str, int] = {}
        self._completed: dict[str, int] = {}
        self._run_ids = itertools.count(1)
        self._executor = ThreadPoolExecutor(max_workers=max_runs, thread_name_prefix="gocheck-run")

    def __enter__(self) -> SaveWatcher:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        traceback: TracebackType | None,
    ) -> None:
        self.shutdown()

    def shutdown(self, *, wait: bool = True) -> None:
        """Stop accepting saves and release the run executor."""

        self._executor.shutdown(wait=wait)

    def state(self, path: str | Path) -> RunState:
        """Return ``RUNNING`` while the latest run for ``path`` is in flight."""

        file = normalize_file(path)
        with self._lock:
            latest = self._latest.get(file)
            if latest is not None and self._completed.get(file) != latest:
                return RunState.RUNNING
        return RunState.IDLE

    def issue_run(self, path: str | Path) -> int:
        """Return a fresh run id for ``path``, superseding earlier runs."""

        file = normalize_file(path)
        with self._lock:
            run_id = next(self._run_ids)
            self._latest[file] = run_id
        return run_id

    def is_latest(self, path: str | Path, run_id: int) -> bool:
        """Return ``True`` when ``run_id`` is the newest run issued for ``path``."""

        with self._lock:
            return self._latest.get(normalize_file(path)) == run_id

    def on_save(self, event: SaveEvent) -> Future[RunState]:
        """Schedule a check for the saved document.

        Configuration is read once, here, and the run id is issued in event
        order before the run is handed to the executor.
        A configuration that cannot be read is reported like a failed run.

        Args:
            event: Save trigger for the document.

        Returns:
            Future[RunState]: Resolves to the terminal state of this run.
        """

        file = normalize_file(event.path)
        try:
            settings = self._settings()
            request = settings.request_for(Path(file))
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.warning("settings unavailable for save of %s: %s", file, exc)
            failed: Future[RunState] = Future()
            failed.set_result(self._complete(file, self.issue_run(file), error=exc))
            return failed
        run_id = self.issue_run(file)
        LOGGER.debug("save of %s issued run %d", file, run_id)
        return self._executor.submit(self.run, request, run_id, settings, event.text)

    def on_close(self, path: str | Path) -> None:
        """Forget the diagnostics and run history of a closed document."""

        file = normalize_file(path)
        with self._lock:
            self._latest.pop(file, None)
            self._completed.pop(file, None)
        self.publisher.forget(file)

    def run(
        self,
        request: CheckRequest,
        run_id: int,
        settings: CheckSettings,
        snapshot: str | None = None,
    ) -> RunState:
        """Execute one check run and publish it unless superseded.

        Errors never escape: they are logged and surfaced through the
        notification channel.
        """

        file = str(request.target_file)
        if not self.is_latest(file, run_id):
            LOGGER.debug("run %d for %s superseded before start", run_id, file)
            return RunState.SUPERSEDED
        try:
            result = self._aggregator(settings).check(request)
            diagnostics = self._map(result, file, snapshot) if result.ok else ()
        except Exception as exc:  # pylint: disable=broad-exception-caught
            LOGGER.exception("check run %d for %s crashed", run_id, file)
            return self._complete(file, run_id, error=exc)
        if result.error is not None:
            return self._complete(file, run_id, error=result.error)
        return self._complete(file, run_id, result=result, diagnostics=diagnostics)

    def _aggregator(self, settings: CheckSettings) -> Aggregator:
        if self._aggregator_factory is not None:
            return self._aggregator_factory(settings)
        return Aggregator(settings=settings, runner=self._runner)

    def _document_text(self, file: str, snapshot: str | None) -> str | None:
        if self.documents is not None:
            text = self.documents.text_for(file)
            if text is not None:
                return text
        return snapshot

    def _map(self, result: CheckResult, file: str, snapshot: str | None) -> tuple[MappedDiagnostic, ...]:
        text = self._document_text(file, snapshot)
        own: list[Finding] = []
        for finding in result.findings:
            if normalize_file(finding.file) == file:
                own.append(finding)
            else:
                LOGGER.debug("dropping finding for other file %s", finding.file)
        return tuple(map_finding(finding.model_copy(update={"file": file}), text) for finding in own)

    def _complete(
        self,
        file: str,
        run_id: int,
        *,
        result: CheckResult | None = None,
        diagnostics: tuple[MappedDiagnostic, ...] = (),
        error: BaseException | None = None,
    ) -> RunState:
        with self._lock:
            if self._latest.get(file) != run_id:
                LOGGER.debug("discarding superseded run %d for %s", run_id, file)
                return RunState.SUPERSEDED
            self._completed[file] = run_id
            self.publisher.publish(file, diagnostics if error is None else ())
        if error is not None:
            self.publisher.notify(error)
            return RunState.FAILED_NOTIFIED
        if result is not None:
            for failure in result.failures:
                self.publisher.warn(f"{failure.tool_kind.value} did not run: {failure.error.describe()}")
        return RunState.PUBLISHED


__all__ = [
    "DocumentProvider",
    "InMemoryDocuments",
    "RunState",
    "SaveEvent",
    "SaveWatcher",
    "normalize_file",
]
