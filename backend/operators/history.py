"""
Undo history for the editor and the latch that coalesces gestures.

ProjectHistory stores snapshots of the project paired with the UI
selection that was current at the time, so undoing a deletion also
restores the selection pointing at the deleted item.

A continuous pointer gesture (dragging a window edge, moving a zoom block)
applies dozens of mutations. InteractionHistoryLatch lets the first one
through to the history, then pauses recording until the gesture ends, so
the whole gesture becomes exactly one undo entry:

    with latch.session():
        for delta in deltas:
            latch.mutate(lambda: apply(delta))
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Callable, Iterator, TypeVar

from models.project_models import Project, UiSelection

logger = logging.getLogger(__name__)

DEFAULT_HISTORY_LIMIT = 50

R = TypeVar("R")


@dataclass(frozen=True)
class HistoryEntry:
    project: Project
    ui: UiSelection


class ProjectHistory:
    """
    Snapshot-based undo/redo stacks.

    record() is called with the state before and after every change. While
    paused nothing is recorded; identical consecutive states never create
    an entry. A new entry clears the redo stack.
    """

    def __init__(self, limit: int = DEFAULT_HISTORY_LIMIT):
        self._limit = limit
        self._past: list[HistoryEntry] = []
        self._future: list[HistoryEntry] = []
        self._paused = False

    @property
    def is_tracking(self) -> bool:
        return not self._paused

    @property
    def past(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._past)

    @property
    def future(self) -> tuple[HistoryEntry, ...]:
        return tuple(self._future)

    def pause(self) -> None:
        self._paused = True

    def resume(self) -> None:
        self._paused = False

    def record(self, previous: HistoryEntry, current: HistoryEntry) -> bool:
        """Push the previous state if tracking and the state actually changed."""
        if self._paused:
            return False
        if previous == current:
            return False

        self._past.append(previous)
        if len(self._past) > self._limit:
            self._past.pop(0)
        self._future.clear()
        return True

    def can_undo(self) -> bool:
        return len(self._past) > 0

    def can_redo(self) -> bool:
        return len(self._future) > 0

    def undo(self, current: HistoryEntry) -> HistoryEntry | None:
        """Step back; the current state moves to the redo stack."""
        if not self._past:
            return None
        entry = self._past.pop()
        self._future.append(current)
        return entry

    def redo(self, current: HistoryEntry) -> HistoryEntry | None:
        if not self._future:
            return None
        entry = self._future.pop()
        self._past.append(current)
        return entry

    def clear(self) -> None:
        self._past.clear()
        self._future.clear()


@dataclass
class InteractionSession:
    depth: int = 0
    latched: bool = False


class InteractionHistoryLatch:
    """
    Reference-counted gesture latch bound to one ProjectHistory.

    Nested start()/end() pairs are allowed; history resumes only when the
    outermost session ends.
    """

    def __init__(self, history: ProjectHistory):
        self._history = history
        self._session = InteractionSession()

    @property
    def depth(self) -> int:
        return self._session.depth

    @property
    def latched(self) -> bool:
        return self._session.latched

    @property
    def active(self) -> bool:
        return self._session.depth > 0

    def start(self) -> None:
        if self._session.depth == 0:
            self._session.latched = False
            self._history.resume()
        self._session.depth += 1

    def mutate(self, action: Callable[[], R]) -> R:
        """Run a mutation; the first one inside a session is recorded, then history pauses."""
        result = action()
        if self._session.depth > 0 and not self._session.latched:
            self._session.latched = True
            self._history.pause()
        return result

    def end(self) -> None:
        if self._session.depth == 0:
            logger.warning("Interaction latch end() called without a matching start()")
            return

        self._session.depth -= 1
        if self._session.depth == 0:
            self._session.latched = False
            self._history.resume()

    @contextmanager
    def session(self) -> Iterator[InteractionHistoryLatch]:
        self.start()
        try:
            yield self
        finally:
            self.end()
