"""
Editor Session - the stateful editing context.

Owns the current project snapshot, the UI selection, the recording inputs
(source metadata, user events), the undo history with its interaction
latch and the cached TimeMapper. All edits go through apply(), which
records history and coalesces gestures through the latch.

Drag gestures are context managers:

    with session.resize_window_gesture(window_id, WindowEdge.RIGHT, pixels_per_sec=100) as drag:
        drag.update(12)
        drag.update(40)
    # one undo entry

Each update recomputes the result from the state at gesture start and the
cumulative pointer delta.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping

from models.project_models import Project, SourceMetadata, UiSelection
from models.timeline_models import FrameState, Rect, UserEvents
from operators import timeline_editor
from operators.action_bounds import (
    SPOTLIGHT_RESOLVER,
    ZOOM_RESOLVER,
    ActionEdge,
    ActionInterval,
    TrackKind,
    spotlight_policy,
    zoom_policy,
)
from operators.history import (
    DEFAULT_HISTORY_LIMIT,
    HistoryEntry,
    InteractionHistoryLatch,
    ProjectHistory,
)
from operators.time_mapper import TimeMapper, TimeMapperCache
from operators.timeline_editor import RecordingContext
from operators.window_editor import TimeDomain, WindowEdge
from utils.time_pixel_mapper import TimePixelMapper

logger = logging.getLogger(__name__)

Edit = Callable[[Project], "tuple[Project, bool]"]


def _same_content(a: Project, b: Project) -> bool:
    return a.timeline == b.timeline and a.settings == b.settings and a.name == b.name


class EditorSession:
    def __init__(
        self,
        project: Project,
        sources: Mapping[str, SourceMetadata] | None = None,
        events: UserEvents | None = None,
        history_limit: int = DEFAULT_HISTORY_LIMIT,
    ):
        self.project = project
        self.ui = UiSelection()
        self.recording = RecordingContext(sources=dict(sources or {}), events=events)
        self.history = ProjectHistory(limit=history_limit)
        self.latch = InteractionHistoryLatch(self.history)
        self._mappers = TimeMapperCache()

    # -------------------------------------------------------------------------
    # Derived state
    # -------------------------------------------------------------------------

    @property
    def time_mapper(self) -> TimeMapper:
        timeline = self.project.timeline
        return self._mappers.get(timeline.output_windows, timeline.timeline_offset_ms)

    def pixel_mapper(self, pixels_per_sec: float) -> TimePixelMapper:
        return TimePixelMapper(self.time_mapper, pixels_per_sec)

    @property
    def screen_source(self) -> SourceMetadata | None:
        return self.recording.screen_source(self.project)

    def output_duration(self) -> float:
        return self.time_mapper.get_output_duration()

    def frame_at(self, output_ms: float) -> FrameState:
        return timeline_editor.frame_at(
            self.project, output_ms, self.screen_source, time_mapper=self.time_mapper
        )

    def set_recording(
        self,
        sources: Mapping[str, SourceMetadata] | None = None,
        events: UserEvents | None = None,
    ) -> None:
        self.recording = RecordingContext(
            sources=dict(sources) if sources is not None else self.recording.sources,
            events=events if events is not None else self.recording.events,
        )

    # -------------------------------------------------------------------------
    # Applying edits
    # -------------------------------------------------------------------------

    def _entry(self) -> HistoryEntry:
        return HistoryEntry(project=self.project, ui=self.ui)

    def _commit(self, project: Project, ui: UiSelection | None) -> bool:
        previous = self._entry()
        self.project = project
        if ui is not None:
            self.ui = ui
        self.history.record(previous, self._entry())
        return True

    def replace(self, project: Project, ui: UiSelection | None = None) -> bool:
        """Install a new project state through the latch; False if nothing differs."""
        if _same_content(project, self.project) and (ui is None or ui == self.ui):
            return False
        return self.latch.mutate(lambda: self._commit(project, ui))

    def apply(self, edit: Edit, ui: UiSelection | None = None) -> bool:
        project, changed = edit(self.project)
        if not changed:
            return False
        return self.replace(project, ui)

    def select(self, ui: UiSelection) -> None:
        """Change the UI selection without creating a history entry."""
        self.ui = ui

    def _ui_without(self, **ids: str) -> UiSelection | None:
        cleared = {k: None for k, v in ids.items() if getattr(self.ui, k) == v}
        return self.ui.model_copy(update=cleared) if cleared else None

    # -------------------------------------------------------------------------
    # Window edits
    # -------------------------------------------------------------------------

    def add_window(self, start_ms: float, end_ms: float, speed: float = 1.0) -> bool:
        return self.apply(
            lambda p: timeline_editor.add_window(p, start_ms, end_ms, speed, recording=self.recording)
        )

    def update_window(self, window_id: str, **fields: float) -> bool:
        return self.apply(
            lambda p: timeline_editor.update_window(p, window_id, recording=self.recording, **fields)
        )

    def split_window(
        self,
        window_id: str,
        at_ms: float,
        domain: TimeDomain = TimeDomain.SOURCE,
    ) -> bool:
        return self.apply(
            lambda p: timeline_editor.split_window(p, window_id, at_ms, domain, recording=self.recording)
        )

    def resize_window(self, window_id: str, edge: WindowEdge, delta_ms: float) -> bool:
        return self.apply(
            lambda p: timeline_editor.resize_window(p, window_id, edge, delta_ms, recording=self.recording)
        )

    def move_window(self, window_id: str, delta_ms: float) -> bool:
        return self.apply(
            lambda p: timeline_editor.move_window(p, window_id, delta_ms, recording=self.recording)
        )

    def remove_window(self, window_id: str) -> bool:
        return self.apply(
            lambda p: timeline_editor.remove_window(p, window_id, recording=self.recording),
            ui=self._ui_without(selected_window_id=window_id),
        )

    def set_window_speed(self, window_id: str, speed: float) -> bool:
        return self.apply(
            lambda p: timeline_editor.set_window_speed(p, window_id, speed, recording=self.recording)
        )

    def clear_windows(self) -> bool:
        ui = self.ui.model_copy(update={"selected_window_id": None}) if self.ui.selected_window_id else None
        return self.apply(
            lambda p: timeline_editor.clear_windows(p, recording=self.recording), ui=ui
        )

    def update_settings(self, patch: Mapping[str, Any]) -> bool:
        return self.apply(
            lambda p: timeline_editor.update_settings(p, patch, recording=self.recording)
        )

    # -------------------------------------------------------------------------
    # Track edits
    # -------------------------------------------------------------------------

    def delete_motion(self, motion_id: str) -> bool:
        return self.apply(
            lambda p: timeline_editor.delete_motion(p, motion_id),
            ui=self._ui_without(editing_zoom_id=motion_id),
        )

    def delete_spotlight(self, spotlight_id: str) -> bool:
        return self.apply(
            lambda p: timeline_editor.delete_spotlight(p, spotlight_id),
            ui=self._ui_without(editing_spotlight_id=spotlight_id),
        )

    def hover_placement(self, track: TrackKind, output_ms: float) -> ActionInterval | None:
        """Ghost interval for hover-to-add on a track, or None."""
        settings = self.project.settings
        if track == TrackKind.ZOOM:
            return ZOOM_RESOLVER.hover_placement(
                output_ms,
                self.project.timeline.viewport_motions,
                self.output_duration(),
                zoom_policy(settings),
            )
        return SPOTLIGHT_RESOLVER.hover_placement(
            output_ms,
            self.project.timeline.spotlight_actions,
            self.output_duration(),
            spotlight_policy(settings),
        )

    def add_from_hover(self, track: TrackKind, output_ms: float, rect: Rect) -> bool:
        """Commit the hover ghost at output_ms as a new manual action."""
        placement = self.hover_placement(track, output_ms)
        if placement is None:
            return False

        if track == TrackKind.ZOOM:
            return self.apply(
                lambda p: timeline_editor.add_motion(
                    p, placement.end_ms, placement.duration_ms, rect
                )
            )
        return self.apply(
            lambda p: timeline_editor.add_spotlight(
                p, placement.start_ms, placement.end_ms, rect
            )
        )

    # -------------------------------------------------------------------------
    # Undo / redo
    # -------------------------------------------------------------------------

    def undo(self) -> bool:
        entry = self.history.undo(self._entry())
        if entry is None:
            return False
        self.project, self.ui = entry.project, entry.ui
        logger.debug("undo project_id=%s", self.project.id)
        return True

    def redo(self) -> bool:
        entry = self.history.redo(self._entry())
        if entry is None:
            return False
        self.project, self.ui = entry.project, entry.ui
        logger.debug("redo project_id=%s", self.project.id)
        return True

    # -------------------------------------------------------------------------
    # Gestures
    # -------------------------------------------------------------------------

    def resize_window_gesture(
        self, window_id: str, edge: WindowEdge, pixels_per_sec: float
    ) -> WindowResizeGesture:
        return WindowResizeGesture(self, window_id, edge, self.pixel_mapper(pixels_per_sec))

    def move_window_gesture(self, window_id: str, pixels_per_sec: float) -> WindowMoveGesture:
        return WindowMoveGesture(self, window_id, self.pixel_mapper(pixels_per_sec))

    def action_drag_gesture(
        self,
        track: TrackKind,
        action_id: str,
        pixels_per_sec: float,
        edge: ActionEdge | None = None,
    ) -> ActionDragGesture:
        return ActionDragGesture(self, track, action_id, self.pixel_mapper(pixels_per_sec), edge)


# =============================================================================
# GESTURES
# =============================================================================


class Gesture:
    """
    A pointer gesture bound to the session's history latch.

    begin() opens a latch session, update() applies through the latch and
    release() closes it. release() is idempotent and runs on every exit of
    a with block.
    """

    def __init__(self, session: EditorSession, pixel_mapper: TimePixelMapper):
        self._session = session
        self._pixels = pixel_mapper
        self._origin: Project | None = None
        self._active = False

    @property
    def active(self) -> bool:
        return self._active

    def begin(self) -> Gesture:
        if not self._active:
            self._origin = self._session.project
            self._session.latch.start()
            self._active = True
        return self

    def release(self) -> None:
        if not self._active:
            return
        self._active = False
        self._session.latch.end()

    def __enter__(self):
        return self.begin()

    def __exit__(self, exc_type, exc, tb):
        self.release()
        return False

    def _compute(self, origin: Project, delta_x: float) -> tuple[Project, bool]:
        raise NotImplementedError

    def update(self, delta_x: float) -> bool:
        """Apply the cumulative pointer delta (pixels) since begin()."""
        if not self._active or self._origin is None:
            raise RuntimeError("Gesture is not active")
        project, changed = self._compute(self._origin, delta_x)
        if not changed:
            project = self._origin
        return self._session.replace(project)


class WindowResizeGesture(Gesture):
    def __init__(
        self,
        session: EditorSession,
        window_id: str,
        edge: WindowEdge,
        pixel_mapper: TimePixelMapper,
    ):
        super().__init__(session, pixel_mapper)
        self.window_id = window_id
        self.edge = edge

    def _compute(self, origin: Project, delta_x: float) -> tuple[Project, bool]:
        window = origin.timeline.find_window(self.window_id)
        if window is None:
            return origin, False
        delta_ms = self._pixels.x_delta_to_source_delta(delta_x, window.speed)
        return timeline_editor.resize_window(
            origin, self.window_id, self.edge, delta_ms, recording=self._session.recording
        )


class WindowMoveGesture(Gesture):
    def __init__(self, session: EditorSession, window_id: str, pixel_mapper: TimePixelMapper):
        super().__init__(session, pixel_mapper)
        self.window_id = window_id

    def _compute(self, origin: Project, delta_x: float) -> tuple[Project, bool]:
        window = origin.timeline.find_window(self.window_id)
        if window is None:
            return origin, False
        delta_ms = self._pixels.x_delta_to_source_delta(delta_x, window.speed)
        return timeline_editor.move_window(
            origin, self.window_id, delta_ms, recording=self._session.recording
        )


class ActionDragGesture(Gesture):
    """Move (edge=None) or resize a zoom or spotlight block; deltas are output time."""

    def __init__(
        self,
        session: EditorSession,
        track: TrackKind,
        action_id: str,
        pixel_mapper: TimePixelMapper,
        edge: ActionEdge | None = None,
    ):
        super().__init__(session, pixel_mapper)
        self.track = track
        self.action_id = action_id
        self.edge = edge

    def _compute(self, origin: Project, delta_x: float) -> tuple[Project, bool]:
        return timeline_editor.drag_action(
            origin, self.track, self.action_id, self._pixels.x_to_ms(delta_x), self.edge
        )
