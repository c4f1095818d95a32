"""
Time Mapper - conversions between source, output and timeline time.

Source time is a position within the immutable recording. Output time is a
position within the edited result, where trimmed gaps are removed and each
window's speed is applied. Timeline time is output time shifted by a
constant leading offset (used for the ruler).

Queries never raise for out-of-range input: an instant that has no
representation in the target domain maps to NOT_VISIBLE.
"""

from __future__ import annotations

from typing import Sequence

from models.timeline_models import OutputWindow

NOT_VISIBLE = -1.0


class TimeMapper:
    """
    Pure converter over an ordered, non-overlapping list of output windows.

    Example:
        windows = [
            OutputWindow(start_ms=0, end_ms=5000),
            OutputWindow(start_ms=5000, end_ms=10000, speed=2.0),
        ]
        mapper = TimeMapper(windows)
        mapper.get_output_duration()   # 7500.0
        mapper.output_to_source(6000)  # 7000.0
    """

    def __init__(
        self,
        windows: Sequence[OutputWindow],
        timeline_offset_ms: float = 0.0,
    ):
        self._windows = tuple(windows)
        self._offset = timeline_offset_ms
        self._output_starts: list[float] = []

        acc = 0.0
        for win in self._windows:
            self._output_starts.append(acc)
            acc += win.output_duration_ms
        self._output_duration = acc

    @property
    def windows(self) -> tuple[OutputWindow, ...]:
        return self._windows

    @property
    def timeline_offset_ms(self) -> float:
        return self._offset

    def get_output_duration(self) -> float:
        """Total duration of the edited result."""
        return self._output_duration

    # -------------------------------------------------------------------------
    # Source <-> Output
    # -------------------------------------------------------------------------

    def source_to_output(self, source_ms: float) -> float:
        """
        Map a source instant to output time.

        Returns NOT_VISIBLE when the instant falls into a trimmed gap or
        outside every window. A window's end instant is still visible.
        """
        for win, output_start in zip(self._windows, self._output_starts):
            if win.contains_source_time(source_ms):
                return output_start + (source_ms - win.start_ms) / win.speed
            if source_ms < win.start_ms:
                return NOT_VISIBLE
        return NOT_VISIBLE

    def output_to_source(self, output_ms: float) -> float:
        """
        Map an output instant back to source time.

        Negative input or input past the output duration returns
        NOT_VISIBLE. Exactly the output duration maps to the end of the
        last window.
        """
        if output_ms < 0:
            return NOT_VISIBLE

        for win, output_start in zip(self._windows, self._output_starts):
            if output_ms < output_start + win.output_duration_ms:
                return win.start_ms + (output_ms - output_start) * win.speed

        if self._windows and output_ms == self._output_duration:
            return self._windows[-1].end_ms
        return NOT_VISIBLE

    # -------------------------------------------------------------------------
    # Output <-> Timeline
    # -------------------------------------------------------------------------

    def output_to_timeline(self, output_ms: float) -> float:
        if output_ms == NOT_VISIBLE:
            return NOT_VISIBLE
        return output_ms + self._offset

    def timeline_to_output(self, timeline_ms: float) -> float:
        output_ms = timeline_ms - self._offset
        if output_ms < 0 or output_ms > self._output_duration:
            return NOT_VISIBLE
        return output_ms

    # -------------------------------------------------------------------------
    # Window lookups
    # -------------------------------------------------------------------------

    def get_window_at_output_time(
        self, output_ms: float
    ) -> tuple[OutputWindow, float] | None:
        """
        Find the window playing at an output instant.

        Returns (window, output_start_ms) or None. Window ends are
        exclusive so a boundary belongs to the following window.
        """
        if output_ms < 0:
            return None
        for win, output_start in zip(self._windows, self._output_starts):
            if output_ms < output_start + win.output_duration_ms:
                return win, output_start
        return None

    def get_window_output_start(self, window_id: str) -> float:
        """Output time at which a window starts, or NOT_VISIBLE if unknown."""
        for win, output_start in zip(self._windows, self._output_starts):
            if win.id == window_id:
                return output_start
        return NOT_VISIBLE

    def source_range_to_output_range(
        self,
        source_start_ms: float,
        source_end_ms: float | None = None,
    ) -> tuple[float, float] | None:
        """
        Map a source range to the visible output range.

        A point (source_end_ms is None) maps to a zero-length range. A range
        spanning gaps maps from the start of its first visible segment to the
        end of its last one. A fully hidden range returns None.
        """
        if source_end_ms is None:
            mapped = self.source_to_output(source_start_ms)
            if mapped == NOT_VISIBLE:
                return None
            return mapped, mapped

        start_output: float | None = None
        end_output: float | None = None
        for win, output_start in zip(self._windows, self._output_starts):
            overlap_start = max(source_start_ms, win.start_ms)
            overlap_end = min(source_end_ms, win.end_ms)
            if overlap_start < overlap_end:
                if start_output is None:
                    start_output = output_start + (overlap_start - win.start_ms) / win.speed
                end_output = output_start + (overlap_end - win.start_ms) / win.speed

        if start_output is None or end_output is None:
            return None
        return start_output, end_output


class TimeMapperCache:
    """
    Keeps the TimeMapper of the current window list.

    The cache is keyed by the identity of the window list: editors always
    produce a new list on structural change, so a new reference (or a new
    offset) rebuilds the mapper and a stale mapper never outlives an edit.
    """

    def __init__(self):
        self._windows: Sequence[OutputWindow] | None = None
        self._offset: float | None = None
        self._mapper: TimeMapper | None = None

    def get(
        self,
        windows: Sequence[OutputWindow],
        timeline_offset_ms: float = 0.0,
    ) -> TimeMapper:
        if (
            self._mapper is None
            or windows is not self._windows
            or timeline_offset_ms != self._offset
        ):
            self._mapper = TimeMapper(windows, timeline_offset_ms)
            self._windows = windows
            self._offset = timeline_offset_ms
        return self._mapper

    def invalidate(self) -> None:
        self._windows = None
        self._offset = None
        self._mapper = None
