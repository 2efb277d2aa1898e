# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Per-file diagnostic store with atomic replace semantics."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from threading import Lock
from typing import Protocol, runtime_checkable

from .logging import fail
from .models import DiagnosticSet, MappedDiagnostic

LOGGER = logging.getLogger(__name__)


@runtime_checkable
class NotificationSink(Protocol):
    """Single-message channel used to tell the user a check failed."""

    def notify(self, message: str) -> None:
        """Deliver ``message`` to the user."""

        raise NotImplementedError


class ConsoleNotifier:
    """Notification sink rendering messages on the Rich console."""

    def __init__(self, *, use_emoji: bool = False) -> None:
        self._use_emoji = use_emoji

    def notify(self, message: str) -> None:
        """Print ``message`` as an error line."""

        fail(f"Error: {message}", use_emoji=self._use_emoji)


class DiagnosticCollection:
    """Process-wide mapping from file identity to its current diagnostic set.

    Every mutation happens under one lock, so readers observe either the old set
    or the new set for a file and never a mixture.
    """

    def __init__(self, name: str = "go") -> None:
        self.name = name
        self._lock = Lock()
        self._entries: dict[str, DiagnosticSet] = {}

    def get(self, file: str) -> DiagnosticSet:
        """Return the current set for ``file`` (empty when none is installed)."""

        with self._lock:
            return self._entries.get(file, ())

    def set(self, file: str, diagnostics: Iterable[MappedDiagnostic]) -> None:
        """Install ``diagnostics`` as the set for ``file``."""

        snapshot = tuple(diagnostics)
        with self._lock:
            self._entries[file] = snapshot

    def clear(self, file: str) -> None:
        """Empty the set for ``file`` while keeping its entry."""

        with self._lock:
            if file in self._entries:
                self._entries[file] = ()

    def replace(self, file: str, diagnostics: Iterable[MappedDiagnostic]) -> None:
        """Clear the previous set for ``file`` and install ``diagnostics`` in one step."""

        snapshot = tuple(diagnostics)
        with self._lock:
            self._entries.pop(file, None)
            self._entries[file] = snapshot

    def delete(self, file: str) -> None:
        """Forget ``file`` entirely, e.g. when its document is closed."""

        with self._lock:
            self._entries.pop(file, None)

    def files(self) -> tuple[str, ...]:
        """Return the files that currently hold an entry."""

        with self._lock:
            return tuple(self._entries)

    def __contains__(self, file: object) -> bool:
        with self._lock:
            return file in self._entries

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)


class DiagnosticPublisher:
    """Own the diagnostic collection and the failure notification channel."""

    def __init__(
        self,
        collection: DiagnosticCollection | None = None,
        notifier: NotificationSink | None = None,
    ) -> None:
        self.collection = collection if collection is not None else DiagnosticCollection()
        self.notifier = notifier if notifier is not None else ConsoleNotifier()

    def publish(self, file: str, diagnostics: Iterable[MappedDiagnostic]) -> DiagnosticSet:
        """Replace the set for ``file`` with ``diagnostics``.

        Args:
            file: Identity of the saved document.
            diagnostics: Mapped diagnostics of the latest run.

        Returns:
            DiagnosticSet: The installed set.
        """

        snapshot = tuple(diagnostics)
        self.collection.replace(file, snapshot)
        LOGGER.debug("published %d diagnostic(s) for %s", len(snapshot), file)
        return snapshot

    def publish_failure(self, file: str, error: BaseException | str) -> None:
        """Clear stale diagnostics for ``file`` and notify the user once."""

        self.collection.replace(file, ())
        self.notify(error)

    def notify(self, error: BaseException | str) -> None:
        """Send ``error`` to the notification sink."""

        self.notifier.notify(str(error))

    def warn(self, message: str) -> None:
        """Log a secondary, non-fatal problem such as a missing optional tool."""

        LOGGER.warning(message)

    def forget(self, file: str) -> None:
        """Remove the entry for ``file`` from the collection."""

        self.collection.delete(file)


__all__ = ["ConsoleNotifier", "DiagnosticCollection", "DiagnosticPublisher", "NotificationSink"]
