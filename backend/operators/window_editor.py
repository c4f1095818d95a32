"""
Window Editor - structural edits of the output window list.

Every operation returns the complete updated list and keeps it sorted by
start_ms and free of overlaps in source time. Edits that cannot be
satisfied are clamped or turned into a no-op; a no-op returns the input
list object itself so callers can compare identities to detect change:

    updated = split_window(windows, window_id, 4000)
    changed = updated is not windows

Input lists are never mutated.
"""

from __future__ import annotations

import logging
from enum import Enum
from typing import Sequence

from models.timeline_models import OutputWindow, new_id
from operators.time_mapper import NOT_VISIBLE, TimeMapper

logger = logging.getLogger(__name__)

MIN_WINDOW_DURATION_MS = 250.0
MIN_WINDOW_SPEED = 0.25
MAX_WINDOW_SPEED = 4.0


class WindowEdge(str, Enum):
    LEFT = "left"
    RIGHT = "right"


class TimeDomain(str, Enum):
    SOURCE = "source"
    OUTPUT = "output"


def _sorted(windows: Sequence[OutputWindow]) -> list[OutputWindow]:
    return sorted(windows, key=lambda w: w.start_ms)


def _find_index(windows: Sequence[OutputWindow], window_id: str) -> int:
    for i, w in enumerate(windows):
        if w.id == window_id:
            return i
    return -1


def _neighbour_limits(
    windows: Sequence[OutputWindow],
    index: int,
    total_ms: float,
) -> tuple[float, float]:
    """Free source range around the window at index: (min_start, max_end)."""
    min_start = windows[index - 1].end_ms if index > 0 else 0.0
    max_end = windows[index + 1].start_ms if index < len(windows) - 1 else total_ms
    return min_start, max_end


def _replace(
    windows: Sequence[OutputWindow],
    index: int,
    window: OutputWindow,
) -> list[OutputWindow]:
    updated = list(windows)
    updated[index] = window
    return _sorted(updated)


# =============================================================================
# SPLIT
# =============================================================================


def split_window(
    windows: Sequence[OutputWindow],
    window_id: str,
    at_ms: float,
    domain: TimeDomain = TimeDomain.SOURCE,
    time_mapper: TimeMapper | None = None,
) -> Sequence[OutputWindow]:
    """
    Split a window in two at a source (or output) instant.

    [a, b) becomes [a, p) and [p, b); both keep the original speed and the
    second half receives a new id. No-op unless a < p < b.
    """
    index = _find_index(windows, window_id)
    if index == -1:
        return windows

    split_ms = at_ms
    if domain == TimeDomain.OUTPUT:
        mapper = time_mapper or TimeMapper(windows)
        split_ms = mapper.output_to_source(at_ms)
        if split_ms == NOT_VISIBLE:
            return windows

    original = windows[index]
    if not (original.start_ms < split_ms < original.end_ms):
        return windows

    first = original.model_copy(update={"end_ms": split_ms})
    second = OutputWindow(
        id=new_id(),
        start_ms=split_ms,
        end_ms=original.end_ms,
        speed=original.speed,
    )

    updated = list(windows)
    updated[index] = first
    updated.insert(index + 1, second)

    logger.debug("split_window window_id=%s at_ms=%s new_id=%s", window_id, split_ms, second.id)
    return _sorted(updated)


# =============================================================================
# RESIZE / MOVE
# =============================================================================


def resize_window(
    windows: Sequence[OutputWindow],
    window_id: str,
    edge: WindowEdge,
    delta_ms: float,
    total_ms: float,
    min_duration_ms: float = MIN_WINDOW_DURATION_MS,
) -> Sequence[OutputWindow]:
    """
    Move one edge of a window by a source-time delta.

    The left edge is clamped to [previous.end (or 0), end - min_duration];
    the right edge to [start + min_duration, next.start (or total_ms)].
    The neighbour limit wins, so a window already under min_duration may
    only grow.
    """
    index = _find_index(windows, window_id)
    if index == -1:
        return windows

    win = windows[index]
    min_start, max_end = _neighbour_limits(windows, index, total_ms)

    if edge == WindowEdge.LEFT:
        proposed = win.start_ms + delta_ms
        new_start = max(min(max(proposed, min_start), win.end_ms - min_duration_ms), min_start)
        if new_start == win.start_ms:
            return windows
        return _replace(windows, index, win.model_copy(update={"start_ms": new_start}))

    proposed = win.end_ms + delta_ms
    new_end = min(max(min(proposed, max_end), win.start_ms + min_duration_ms), max_end)
    if new_end == win.end_ms:
        return windows
    return _replace(windows, index, win.model_copy(update={"end_ms": new_end}))


def move_window(
    windows: Sequence[OutputWindow],
    window_id: str,
    delta_ms: float,
    total_ms: float,
) -> Sequence[OutputWindow]:
    """Shift both edges of a window together without crossing a neighbour."""
    index = _find_index(windows, window_id)
    if index == -1:
        return windows

    win = windows[index]
    min_start, max_end = _neighbour_limits(windows, index, total_ms)
    duration = win.source_duration_ms

    new_start = win.start_ms + delta_ms
    if new_start < min_start:
        new_start = min_start
    if new_start + duration > max_end:
        new_start = max_end - duration
    new_start = max(new_start, min_start)

    if new_start == win.start_ms:
        return windows
    moved = win.model_copy(update={"start_ms": new_start, "end_ms": new_start + duration})
    return _replace(windows, index, moved)


# =============================================================================
# ADD / REMOVE / SPEED
# =============================================================================


def remove_window(
    windows: Sequence[OutputWindow],
    window_id: str,
) -> Sequence[OutputWindow]:
    """Delete a window; the remaining windows keep their source ranges."""
    if _find_index(windows, window_id) == -1:
        return windows
    return [w for w in windows if w.id != window_id]


def add_window(
    windows: Sequence[OutputWindow],
    window: OutputWindow,
    min_duration_ms: float = MIN_WINDOW_DURATION_MS,
) -> Sequence[OutputWindow]:
    """Insert a window in sort order; no-op if it is too short or overlaps."""
    if window.end_ms - window.start_ms < min_duration_ms:
        return windows
    for other in windows:
        if window.start_ms < other.end_ms and other.start_ms < window.end_ms:
            return windows
    return _sorted([*windows, window])


def set_window_speed(
    windows: Sequence[OutputWindow],
    window_id: str,
    speed: float,
) -> Sequence[OutputWindow]:
    """Change playback speed, clamped to the supported range."""
    index = _find_index(windows, window_id)
    if index == -1:
        return windows

    clamped = min(max(speed, MIN_WINDOW_SPEED), MAX_WINDOW_SPEED)
    win = windows[index]
    if clamped == win.speed:
        return windows
    return _replace(windows, index, win.model_copy(update={"speed": clamped}))
