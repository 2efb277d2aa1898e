# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Behavioural tests for save handling and run supersession."""

from __future__ import annotations

import itertools
import logging
from pathlib import Path
from threading import Event

import pytest

from _fakes import FakeRunner, RecordingNotifier, missing, output
from gocheck.aggregator import Aggregator
from gocheck.config import CheckSettings
from gocheck.errors import ConfigError
from gocheck.models import MappedDiagnostic, ToolInvocation, ToolKind
from gocheck.publisher import DiagnosticCollection, DiagnosticPublisher
from gocheck.severity import Severity
from gocheck.watcher import InMemoryDocuments, RunState, SaveEvent, SaveWatcher, normalize_file

BUILD_ONLY = CheckSettings(build_on_save=True, vet_on_save=False, lint_on_save=False)
WAIT = 10


def _publisher() -> tuple[DiagnosticPublisher, RecordingNotifier]:
    notifier = RecordingNotifier()
    return DiagnosticPublisher(DiagnosticCollection(), notifier), notifier


def _messages(publisher: DiagnosticPublisher, path: Path) -> list[str]:
    return [diag.message for diag in publisher.collection.get(normalize_file(path))]


def test_save_publishes_mapped_diagnostics(go_file: Path) -> None:
    publisher, notifier = _publisher()
    runner = FakeRunner({ToolKind.BUILD: output(ToolKind.BUILD, stderr="./main.go:6:9: undefined: bar\n")})

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        state = watcher.on_save(SaveEvent(go_file, go_file.read_text())).result(WAIT)

    assert state is RunState.PUBLISHED
    assert notifier.messages == []
    diagnostics = publisher.collection.get(normalize_file(go_file))
    assert diagnostics == (
        MappedDiagnostic(
            file=normalize_file(go_file),
            line_index=5,
            start_column=1,
            end_column=len("\tfoo := bar()"),
            severity=Severity.ERROR,
            message="undefined: bar",
        ),
    )


def test_live_buffer_text_wins_over_snapshot(go_file: Path) -> None:
    publisher, _ = _publisher()
    documents = InMemoryDocuments()
    documents.open(go_file, "a\nb\n    edited line   \n")
    runner = FakeRunner({ToolKind.BUILD: output(ToolKind.BUILD, stderr="main.go:3: problem\n")})

    with SaveWatcher(BUILD_ONLY, publisher, documents, runner=runner) as watcher:
        watcher.on_save(SaveEvent(go_file, "stale snapshot")).result(WAIT)

    (diagnostic,) = publisher.collection.get(normalize_file(go_file))
    assert (diagnostic.start_column, diagnostic.end_column) == (4, 15)


def test_missing_document_text_falls_back_to_line_start(go_file: Path) -> None:
    publisher, _ = _publisher()
    runner = FakeRunner({ToolKind.BUILD: output(ToolKind.BUILD, stderr="main.go:3: problem\n")})

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        watcher.on_save(SaveEvent(go_file)).result(WAIT)

    (diagnostic,) = publisher.collection.get(normalize_file(go_file))
    assert (diagnostic.start_column, diagnostic.end_column) == (0, 1)


def test_findings_for_other_files_are_not_published(go_file: Path) -> None:
    publisher, _ = _publisher()
    runner = FakeRunner(
        {ToolKind.BUILD: output(ToolKind.BUILD, stderr="./util.go:2: elsewhere\n./main.go:6: here\n")},
    )

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        watcher.on_save(SaveEvent(go_file, go_file.read_text())).result(WAIT)

    assert _messages(publisher, go_file) == ["here"]
    assert publisher.collection.files() == (normalize_file(go_file),)


def test_newer_run_wins_when_older_finishes_last(go_file: Path) -> None:
    publisher, _ = _publisher()
    gate = Event()
    started = Event()
    counter = itertools.count()

    def _build(invocation: ToolInvocation):
        if next(counter) == 0:
            started.set()
            assert gate.wait(WAIT)
            return output(ToolKind.BUILD, stderr="main.go:6: from first run\n")
        return output(ToolKind.BUILD, stderr="main.go:7: from second run\n")

    with SaveWatcher(BUILD_ONLY, publisher, runner=FakeRunner({ToolKind.BUILD: _build})) as watcher:
        first = watcher.on_save(SaveEvent(go_file, go_file.read_text()))
        assert started.wait(WAIT)
        second = watcher.on_save(SaveEvent(go_file, go_file.read_text()))
        assert second.result(WAIT) is RunState.PUBLISHED
        gate.set()
        assert first.result(WAIT) is RunState.SUPERSEDED

    assert _messages(publisher, go_file) == ["from second run"]


def test_queued_run_is_skipped_once_superseded(go_file: Path) -> None:
    publisher, _ = _publisher()
    gate = Event()
    started = Event()
    counter = itertools.count()

    def _build(invocation: ToolInvocation):
        run = next(counter)
        if run == 0:
            started.set()
            assert gate.wait(WAIT)
        return output(ToolKind.BUILD, stderr=f"main.go:6: run {run}\n")

    runner = FakeRunner({ToolKind.BUILD: _build})
    with SaveWatcher(BUILD_ONLY, publisher, runner=runner, max_runs=1) as watcher:
        first = watcher.on_save(SaveEvent(go_file))
        assert started.wait(WAIT)
        second = watcher.on_save(SaveEvent(go_file))
        third = watcher.on_save(SaveEvent(go_file))
        gate.set()
        states = [future.result(WAIT) for future in (first, second, third)]

    assert states == [RunState.SUPERSEDED, RunState.SUPERSEDED, RunState.PUBLISHED]
    assert len(runner.calls) == 2
    assert _messages(publisher, go_file) == ["run 1"]


def test_runs_for_different_files_do_not_supersede_each_other(tmp_path: Path) -> None:
    publisher, _ = _publisher()
    first_file = tmp_path / "a.go"
    second_file = tmp_path / "b.go"
    runner = FakeRunner(
        {ToolKind.BUILD: output(ToolKind.BUILD, stderr="a.go:1: in a\nb.go:1: in b\n")},
    )

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        states = [watcher.on_save(SaveEvent(path, "x")).result(WAIT) for path in (first_file, second_file)]

    assert states == [RunState.PUBLISHED, RunState.PUBLISHED]
    assert _messages(publisher, first_file) == ["in a"]
    assert _messages(publisher, second_file) == ["in b"]


def test_total_failure_clears_and_notifies_once(go_file: Path) -> None:
    publisher, notifier = _publisher()
    publisher.publish(normalize_file(go_file), [])
    settings = CheckSettings()
    runner = FakeRunner({kind: missing(kind) for kind in ToolKind})

    with SaveWatcher(settings, publisher, runner=runner) as watcher:
        state = watcher.on_save(SaveEvent(go_file, go_file.read_text())).result(WAIT)

    assert state is RunState.FAILED_NOTIFIED
    assert len(notifier.messages) == 1
    assert "All enabled tools failed" in notifier.messages[0]
    assert publisher.collection.get(normalize_file(go_file)) == ()


def test_total_failure_replaces_stale_diagnostics(go_file: Path) -> None:
    publisher, notifier = _publisher()
    runner = FakeRunner({ToolKind.BUILD: output(ToolKind.BUILD, stderr="main.go:6: broken\n")})

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        watcher.on_save(SaveEvent(go_file)).result(WAIT)
        assert _messages(publisher, go_file) == ["broken"]
        runner.results = {ToolKind.BUILD: missing(ToolKind.BUILD)}
        watcher.on_save(SaveEvent(go_file)).result(WAIT)

    assert _messages(publisher, go_file) == []
    assert len(notifier.messages) == 1


def test_partial_failure_publishes_and_warns(go_file: Path, caplog: pytest.LogCaptureFixture) -> None:
    publisher, notifier = _publisher()
    runner = FakeRunner(
        {
            ToolKind.BUILD: output(ToolKind.BUILD, stderr="main.go:6: broken\n"),
            ToolKind.LINT: missing(ToolKind.LINT),
        },
    )
    settings = CheckSettings(vet_on_save=False)

    with caplog.at_level(logging.WARNING, logger="gocheck.publisher"):
        with SaveWatcher(settings, publisher, runner=runner) as watcher:
            state = watcher.on_save(SaveEvent(go_file)).result(WAIT)

    assert state is RunState.PUBLISHED
    assert notifier.messages == []
    assert _messages(publisher, go_file) == ["broken"]
    assert any("lint did not run" in record.getMessage() for record in caplog.records)


def test_crashing_run_is_contained(go_file: Path) -> None:
    publisher, notifier = _publisher()

    def _broken_factory(settings: CheckSettings) -> Aggregator:
        raise RuntimeError("kaboom")

    with SaveWatcher(BUILD_ONLY, publisher, aggregator_factory=_broken_factory) as watcher:
        state = watcher.on_save(SaveEvent(go_file)).result(WAIT)

    assert state is RunState.FAILED_NOTIFIED
    assert notifier.messages == ["kaboom"]


def test_settings_are_read_once_per_save(go_file: Path) -> None:
    publisher, _ = _publisher()
    reads: list[int] = []

    def _settings() -> CheckSettings:
        reads.append(1)
        return BUILD_ONLY

    with SaveWatcher(_settings, publisher, runner=FakeRunner()) as watcher:
        watcher.on_save(SaveEvent(go_file)).result(WAIT)
        watcher.on_save(SaveEvent(go_file)).result(WAIT)

    assert len(reads) == 2


def test_state_tracks_in_flight_run(go_file: Path) -> None:
    publisher, _ = _publisher()
    gate = Event()
    started = Event()

    def _build(invocation: ToolInvocation):
        started.set()
        assert gate.wait(WAIT)
        return output(ToolKind.BUILD)

    with SaveWatcher(BUILD_ONLY, publisher, runner=FakeRunner({ToolKind.BUILD: _build})) as watcher:
        assert watcher.state(go_file) is RunState.IDLE
        future = watcher.on_save(SaveEvent(go_file))
        assert started.wait(WAIT)
        assert watcher.state(go_file) is RunState.RUNNING
        gate.set()
        future.result(WAIT)
        assert watcher.state(go_file) is RunState.IDLE


def test_close_forgets_file_and_discards_in_flight_run(go_file: Path) -> None:
    publisher, _ = _publisher()
    gate = Event()
    started = Event()

    def _build(invocation: ToolInvocation):
        started.set()
        assert gate.wait(WAIT)
        return output(ToolKind.BUILD, stderr="main.go:6: late\n")

    with SaveWatcher(BUILD_ONLY, publisher, runner=FakeRunner({ToolKind.BUILD: _build})) as watcher:
        publisher.publish(normalize_file(go_file), [])
        future = watcher.on_save(SaveEvent(go_file))
        assert started.wait(WAIT)
        watcher.on_close(go_file)
        gate.set()
        assert future.result(WAIT) is RunState.SUPERSEDED

    assert normalize_file(go_file) not in publisher.collection


def test_in_memory_documents_track_buffers(tmp_path: Path) -> None:
    documents = InMemoryDocuments({str(tmp_path / "a.go"): "one"})

    documents.update(tmp_path / "a.go", "two")
    assert documents.text_for(str(tmp_path / "a.go")) == "two"

    documents.close(tmp_path / "a.go")
    assert documents.text_for(str(tmp_path / "a.go")) is None


def test_reopened_file_ignores_run_from_before_close(go_file: Path) -> None:
    publisher, _ = _publisher()
    gate = Event()
    started = Event()
    counter = itertools.count()

    def _build(invocation: ToolInvocation):
        if next(counter) == 0:
            started.set()
            assert gate.wait(WAIT)
            return output(ToolKind.BUILD, stderr="main.go:6: stale from before close\n")
        return output(ToolKind.BUILD, stderr="main.go:6: fresh\n")

    with SaveWatcher(BUILD_ONLY, publisher, runner=FakeRunner({ToolKind.BUILD: _build})) as watcher:
        old = watcher.on_save(SaveEvent(go_file))
        assert started.wait(WAIT)
        watcher.on_close(go_file)
        new = watcher.on_save(SaveEvent(go_file))
        assert new.result(WAIT) is RunState.PUBLISHED
        gate.set()
        assert old.result(WAIT) is RunState.SUPERSEDED

    assert _messages(publisher, go_file) == ["fresh"]


def test_run_ids_are_never_reused_across_files_or_closes(go_file: Path, tmp_path: Path) -> None:
    publisher, _ = _publisher()

    with SaveWatcher(BUILD_ONLY, publisher, runner=FakeRunner()) as watcher:
        first = watcher.issue_run(go_file)
        other = watcher.issue_run(tmp_path / "util.go")
        watcher.on_close(go_file)
        after_close = watcher.issue_run(go_file)

    assert first < other < after_close
    assert watcher.is_latest(go_file, after_close)
    assert not watcher.is_latest(go_file, first)


def test_settings_failure_is_notified_instead_of_raised(go_file: Path) -> None:
    publisher, notifier = _publisher()
    publisher.publish(normalize_file(go_file), [])

    def _settings() -> CheckSettings:
        raise ConfigError("bad config")

    runner = FakeRunner()
    with SaveWatcher(_settings, publisher, runner=runner) as watcher:
        state = watcher.on_save(SaveEvent(go_file)).result(WAIT)
        assert watcher.state(go_file) is RunState.IDLE

    assert state is RunState.FAILED_NOTIFIED
    assert notifier.messages == ["bad config"]
    assert publisher.collection.get(normalize_file(go_file)) == ()
    assert runner.calls == []


def test_notifier_may_query_watcher_state(go_file: Path) -> None:
    observed: list[RunState] = []

    class _QueryingNotifier:
        watcher: SaveWatcher | None = None

        def notify(self, message: str) -> None:
            assert self.watcher is not None
            observed.append(self.watcher.state(go_file))

    notifier = _QueryingNotifier()
    publisher = DiagnosticPublisher(DiagnosticCollection(), notifier)
    runner = FakeRunner({ToolKind.BUILD: missing(ToolKind.BUILD)})

    with SaveWatcher(BUILD_ONLY, publisher, runner=runner) as watcher:
        notifier.watcher = watcher
        state = watcher.on_save(SaveEvent(go_file)).result(WAIT)

    assert state is RunState.FAILED_NOTIFIED
    assert observed == [RunState.IDLE]
