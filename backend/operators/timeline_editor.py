"""
Timeline Editor - edits of the project aggregate.

Every function takes a Project and returns (project, changed). Projects are
treated as immutable snapshots: an edit builds a new Project through
model_copy and never mutates its input, so earlier snapshots held by the
undo history stay valid. When nothing changed the input project is
returned unchanged.

Window edits re-derive the viewport motions (regenerated while auto zoom
is on, pruned otherwise). Manual zoom edits switch auto zoom off for good.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping, Sequence

from pydantic import ValidationError

from models.project_models import Project, ProjectSettings, SourceMetadata, utc_now
from models.timeline_models import (
    ActionType,
    CornerRadii,
    FrameState,
    OutputWindow,
    Rect,
    SpotlightAction,
    UserEvents,
    ViewportMotion,
)
from operators import window_editor
from operators.action_bounds import (
    SPOTLIGHT_RESOLVER,
    ZOOM_RESOLVER,
    ActionBoundsResolver,
    ActionEdge,
    TrackKind,
    spotlight_policy,
    zoom_policy,
)
from operators.auto_zoom import recalculate_auto_zooms, viewport_at
from operators.project_operator import InvalidOperationError
from operators.time_mapper import NOT_VISIBLE, TimeMapper
from operators.window_editor import TimeDomain, WindowEdge
from utils.view_mapper import ViewMapper

logger = logging.getLogger(__name__)

MANUAL_ZOOM_REASON = "Manual Zoom"

# Settings whose change invalidates the zoom schedule
_ZOOM_TRIGGER_PATHS = (
    ("screen", "padding"),
    ("screen", "crop"),
    ("zoom", "max_zoom"),
    ("zoom", "auto_zoom"),
    ("output_size",),
)


@dataclass(frozen=True)
class RecordingContext:
    """Read-only inputs the zoom schedule is derived from."""
    sources: Mapping[str, SourceMetadata] = field(default_factory=dict)
    events: UserEvents | None = None

    def screen_source(self, project: Project) -> SourceMetadata | None:
        return self.sources.get(project.timeline.screen_source_id)


_NO_RECORDING = RecordingContext()


def _with_timeline(project: Project, **updates: Any) -> Project:
    timeline = project.timeline.model_copy(update=updates)
    return project.model_copy(update={"timeline": timeline, "updated_at": utc_now()})


def _with_settings(project: Project, settings: ProjectSettings) -> Project:
    return project.model_copy(update={"settings": settings, "updated_at": utc_now()})


def _mapper(project: Project) -> TimeMapper:
    return TimeMapper(project.timeline.output_windows, project.timeline.timeline_offset_ms)


def refresh_motions(project: Project, recording: RecordingContext) -> Project:
    motions = recalculate_auto_zooms(project, recording.sources, recording.events)
    if motions is project.timeline.viewport_motions:
        return project
    return _with_timeline(project, viewport_motions=list(motions))


# =============================================================================
# OUTPUT WINDOWS
# =============================================================================


def _apply_windows(
    project: Project,
    windows: Sequence[OutputWindow],
    recording: RecordingContext | None,
    operation: str,
) -> tuple[Project, bool]:
    if windows is project.timeline.output_windows:
        return project, False

    updated = _with_timeline(project, output_windows=list(windows))
    updated = refresh_motions(updated, recording or _NO_RECORDING)
    logger.debug(
        "%s project_id=%s windows=%d motions=%d",
        operation,
        project.id,
        len(updated.timeline.output_windows),
        len(updated.timeline.viewport_motions),
    )
    return updated, True


def add_window(
    project: Project,
    start_ms: float,
    end_ms: float,
    speed: float = 1.0,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    if start_ms < 0 or end_ms > project.timeline.duration_ms or end_ms <= start_ms:
        return project, False
    window = OutputWindow(start_ms=start_ms, end_ms=end_ms, speed=speed)
    windows = window_editor.add_window(project.timeline.output_windows, window)
    return _apply_windows(project, windows, recording, "add_window")


def update_window(
    project: Project,
    window_id: str,
    start_ms: float | None = None,
    end_ms: float | None = None,
    speed: float | None = None,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    """Replace window fields; rejected when the result would break window ordering."""
    windows = project.timeline.output_windows
    current = project.timeline.find_window(window_id)
    if current is None:
        return project, False

    updates: dict[str, float] = {}
    if start_ms is not None:
        updates["start_ms"] = start_ms
    if end_ms is not None:
        updates["end_ms"] = end_ms
    if speed is not None:
        updates["speed"] = min(max(speed, window_editor.MIN_WINDOW_SPEED), window_editor.MAX_WINDOW_SPEED)
    candidate = current.model_copy(update=updates)
    if candidate == current:
        return project, False

    others = [w for w in windows if w.id != window_id]
    if (
        candidate.start_ms < 0 or
        candidate.end_ms > project.timeline.duration_ms or
        candidate.source_duration_ms < window_editor.MIN_WINDOW_DURATION_MS or
        window_editor.add_window(others, candidate) is others
    ):
        return project, False

    updated = sorted([*others, candidate], key=lambda w: w.start_ms)
    return _apply_windows(project, updated, recording, "update_window")


def split_window(
    project: Project,
    window_id: str,
    at_ms: float,
    domain: TimeDomain = TimeDomain.SOURCE,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    windows = window_editor.split_window(
        project.timeline.output_windows,
        window_id,
        at_ms,
        domain=domain,
        time_mapper=_mapper(project) if domain == TimeDomain.OUTPUT else None,
    )
    return _apply_windows(project, windows, recording, "split_window")


def resize_window(
    project: Project,
    window_id: str,
    edge: WindowEdge,
    delta_ms: float,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    """Resize by a source-time delta (see TimePixelMapper for pixel drags)."""
    windows = window_editor.resize_window(
        project.timeline.output_windows,
        window_id,
        edge,
        delta_ms,
        project.timeline.duration_ms,
    )
    return _apply_windows(project, windows, recording, "resize_window")


def move_window(
    project: Project,
    window_id: str,
    delta_ms: float,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    windows = window_editor.move_window(
        project.timeline.output_windows,
        window_id,
        delta_ms,
        project.timeline.duration_ms,
    )
    return _apply_windows(project, windows, recording, "move_window")


def remove_window(
    project: Project,
    window_id: str,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    windows = window_editor.remove_window(project.timeline.output_windows, window_id)
    return _apply_windows(project, windows, recording, "remove_window")


def set_window_speed(
    project: Project,
    window_id: str,
    speed: float,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    windows = window_editor.set_window_speed(project.timeline.output_windows, window_id, speed)
    return _apply_windows(project, windows, recording, "set_window_speed")


def clear_windows(
    project: Project,
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    if not project.timeline.output_windows:
        return project, False
    return _apply_windows(project, [], recording, "clear_windows")


# =============================================================================
# VIEWPORT MOTIONS
# =============================================================================


def _manual_zoom(project: Project, motions: list[ViewportMotion]) -> Project:
    """Store a manually edited motion list and switch auto zoom off."""
    updated = _with_timeline(
        project,
        viewport_motions=sorted(motions, key=lambda m: m.output_end_time_ms),
    )
    if updated.settings.zoom.auto_zoom:
        zoom = updated.settings.zoom.model_copy(update={"auto_zoom": False})
        settings = updated.settings.model_copy(update={"zoom": zoom})
        updated = _with_settings(updated, settings)
        logger.debug("auto_zoom disabled by manual zoom edit project_id=%s", project.id)
    return updated


def _anchor_source_time(project: Project, motion: ViewportMotion) -> ViewportMotion:
    source_end = _mapper(project).output_to_source(motion.output_end_time_ms)
    return motion.model_copy(
        update={"source_end_time_ms": source_end if source_end != NOT_VISIBLE else None}
    )


def _motion_fits_duration(project: Project, duration_ms: float) -> bool:
    return duration_ms > 0 and duration_ms >= zoom_policy(project.settings).min_duration_ms


def add_motion(
    project: Project,
    output_end_time_ms: float,
    duration_ms: float,
    rect: Rect,
    reason: str = MANUAL_ZOOM_REASON,
) -> tuple[Project, bool]:
    """Add a manual zoom; rejected if too short or overlapping another motion."""
    motions = project.timeline.viewport_motions
    start_ms = output_end_time_ms - duration_ms
    if not _motion_fits_duration(project, duration_ms):
        return project, False
    if ZOOM_RESOLVER.would_overlap(start_ms, output_end_time_ms, motions):
        return project, False

    motion = ViewportMotion(
        output_end_time_ms=output_end_time_ms,
        duration_ms=duration_ms,
        rect=rect,
        reason=reason,
        type=ActionType.MANUAL,
    )
    motion = _anchor_source_time(project, motion)
    logger.debug("add_motion project_id=%s motion_id=%s", project.id, motion.id)
    return _manual_zoom(project, [*motions, motion]), True


def update_motion(
    project: Project,
    motion_id: str,
    output_end_time_ms: float | None = None,
    duration_ms: float | None = None,
    rect: Rect | None = None,
    reason: str | None = None,
) -> tuple[Project, bool]:
    current = project.timeline.find_motion(motion_id)
    if current is None:
        return project, False

    updates: dict[str, Any] = {}
    if output_end_time_ms is not None:
        updates["output_end_time_ms"] = output_end_time_ms
    if duration_ms is not None:
        if not _motion_fits_duration(project, duration_ms):
            return project, False
        updates["duration_ms"] = duration_ms
    if rect is not None:
        updates["rect"] = rect
    if reason is not None:
        updates["reason"] = reason

    candidate = current.model_copy(update=updates)
    if candidate == current:
        return project, False
    if ZOOM_RESOLVER.would_overlap(
        candidate.output_start_time_ms,
        candidate.output_end_time_ms,
        project.timeline.viewport_motions,
        exclude_id=motion_id,
    ):
        return project, False

    candidate = _anchor_source_time(project, candidate)
    motions = [candidate if m.id == motion_id else m for m in project.timeline.viewport_motions]
    return _manual_zoom(project, motions), True


def delete_motion(project: Project, motion_id: str) -> tuple[Project, bool]:
    motions = project.timeline.viewport_motions
    if project.timeline.find_motion(motion_id) is None:
        return project, False
    return _manual_zoom(project, [m for m in motions if m.id != motion_id]), True


def clear_motions(project: Project) -> tuple[Project, bool]:
    if not project.timeline.viewport_motions:
        return project, False
    return _with_timeline(project, viewport_motions=[]), True


# =============================================================================
# SPOTLIGHTS
# =============================================================================


def _store_spotlights(project: Project, spotlights: list[SpotlightAction]) -> Project:
    return _with_timeline(
        project,
        spotlight_actions=sorted(spotlights, key=lambda s: s.output_start_time_ms),
    )


def _spotlight_fits(
    project: Project,
    spotlight: SpotlightAction,
    exclude_id: str | None = None,
) -> bool:
    if spotlight.output_start_time_ms < 0:
        return False
    if spotlight.duration_ms < project.settings.spotlight.min_duration_ms:
        return False
    return not SPOTLIGHT_RESOLVER.would_overlap(
        spotlight.output_start_time_ms,
        spotlight.output_end_time_ms,
        project.timeline.spotlight_actions,
        exclude_id=exclude_id,
    )


def add_spotlight(
    project: Project,
    output_start_time_ms: float,
    output_end_time_ms: float,
    source_rect: Rect,
    enlarge_scale: float | None = None,
    corner_radii: CornerRadii | None = None,
    reason: str = "",
) -> tuple[Project, bool]:
    spotlight = SpotlightAction(
        output_start_time_ms=output_start_time_ms,
        output_end_time_ms=output_end_time_ms,
        source_rect=source_rect,
        enlarge_scale=enlarge_scale,
        corner_radii=corner_radii or CornerRadii(),
        reason=reason,
    )
    if not _spotlight_fits(project, spotlight):
        return project, False

    logger.debug("add_spotlight project_id=%s spotlight_id=%s", project.id, spotlight.id)
    return _store_spotlights(project, [*project.timeline.spotlight_actions, spotlight]), True


def update_spotlight(
    project: Project,
    spotlight_id: str,
    **updates: Any,
) -> tuple[Project, bool]:
    """
    Replace spotlight fields.

    Accepts output_start_time_ms, output_end_time_ms, source_rect,
    enlarge_scale, corner_radii and reason. The update is rejected if it
    would overlap another spotlight or drop below the minimum duration.
    """
    allowed = {
        "output_start_time_ms",
        "output_end_time_ms",
        "source_rect",
        "enlarge_scale",
        "corner_radii",
        "reason",
    }
    unknown = set(updates) - allowed
    if unknown:
        raise InvalidOperationError(f"Unknown spotlight fields: {sorted(unknown)}")

    current = project.timeline.find_spotlight(spotlight_id)
    if current is None:
        return project, False

    candidate = current.model_copy(update=updates)
    if candidate == current or not _spotlight_fits(project, candidate, exclude_id=spotlight_id):
        return project, False

    spotlights = [
        candidate if s.id == spotlight_id else s for s in project.timeline.spotlight_actions
    ]
    return _store_spotlights(project, spotlights), True


def delete_spotlight(project: Project, spotlight_id: str) -> tuple[Project, bool]:
    if project.timeline.find_spotlight(spotlight_id) is None:
        return project, False
    spotlights = [s for s in project.timeline.spotlight_actions if s.id != spotlight_id]
    return _store_spotlights(project, spotlights), True


def clear_spotlights(project: Project) -> tuple[Project, bool]:
    if not project.timeline.spotlight_actions:
        return project, False
    return _with_timeline(project, spotlight_actions=[]), True


# =============================================================================
# TRACK DRAGS
# =============================================================================


def _resolver(track: TrackKind) -> ActionBoundsResolver:
    return ZOOM_RESOLVER if track == TrackKind.ZOOM else SPOTLIGHT_RESOLVER


def _track_actions(project: Project, track: TrackKind) -> list:
    if track == TrackKind.ZOOM:
        return project.timeline.viewport_motions
    return project.timeline.spotlight_actions


def drag_action(
    project: Project,
    track: TrackKind,
    action_id: str,
    delta_ms: float,
    edge: ActionEdge | None = None,
) -> tuple[Project, bool]:
    """
    Move (edge=None) or resize an action on a track by an output-time delta.

    Pass the project as it was when the drag began together with the
    cumulative delta.
    """
    resolver = _resolver(track)
    actions = _track_actions(project, track)
    track_end = _mapper(project).get_output_duration()

    if edge is None:
        interval = resolver.drag_move(action_id, actions, delta_ms, track_end)
    else:
        policy = zoom_policy(project.settings) if track == TrackKind.ZOOM else spotlight_policy(project.settings)
        interval = resolver.drag_resize(
            action_id, actions, edge, delta_ms, track_end, policy.min_duration_ms
        )
    if interval is None:
        return project, False

    updated_actions = []
    changed = False
    for action in actions:
        if action.id == action_id:
            moved = resolver.apply(action, interval)
            changed = moved != action
            action = moved
        updated_actions.append(action)
    if not changed:
        return project, False

    if track == TrackKind.ZOOM:
        updated_actions = [
            _anchor_source_time(project, m) if m.id == action_id else m for m in updated_actions
        ]
        return _manual_zoom(project, updated_actions), True
    return _store_spotlights(project, updated_actions), True


# =============================================================================
# SETTINGS
# =============================================================================


def _deep_merge(base: dict[str, Any], patch: Mapping[str, Any], path: str = "") -> dict[str, Any]:
    merged = dict(base)
    for key, value in patch.items():
        if key not in base:
            raise InvalidOperationError(f"Unknown setting: {path}{key}")
        if isinstance(value, Mapping) and isinstance(base[key], dict):
            merged[key] = _deep_merge(base[key], value, f"{path}{key}.")
        else:
            merged[key] = value
    return merged


def _get_path(settings: ProjectSettings, path: tuple[str, ...]) -> Any:
    value: Any = settings
    for part in path:
        value = getattr(value, part)
    return value


def update_settings(
    project: Project,
    patch: Mapping[str, Any],
    recording: RecordingContext | None = None,
) -> tuple[Project, bool]:
    """
    Deep-merge a partial settings document into the project settings.

    Changes of padding, crop, max zoom, auto zoom or output size re-derive
    the zoom schedule (a regeneration in auto mode, a prune otherwise).

    Raises:
        InvalidOperationError: If the patch names unknown settings or
            produces invalid values
    """
    current = project.settings
    merged = _deep_merge(current.model_dump(), patch)
    try:
        settings = ProjectSettings.model_validate(merged)
    except ValidationError as e:
        raise InvalidOperationError(f"Invalid settings: {e}") from e

    if settings == current:
        return project, False

    updated = _with_settings(project, settings)
    changed_paths = [
        ".".join(p) for p in _ZOOM_TRIGGER_PATHS if _get_path(current, p) != _get_path(settings, p)
    ]
    if changed_paths:
        updated = refresh_motions(updated, recording or _NO_RECORDING)

    logger.debug(
        "update_settings project_id=%s zoom_triggers=%s",
        project.id,
        ",".join(changed_paths) or "-",
    )
    return updated, True


# =============================================================================
# QUERIES
# =============================================================================


def get_output_duration(project: Project) -> float:
    return _mapper(project).get_output_duration()


def frame_at(
    project: Project,
    output_ms: float,
    source: SourceMetadata | None = None,
    time_mapper: TimeMapper | None = None,
) -> FrameState:
    """Source instant, ruler instant, window and active actions at an output instant."""
    mapper = time_mapper or _mapper(project)
    source_ms = mapper.output_to_source(output_ms)
    visible = source_ms != NOT_VISIBLE
    hit = mapper.get_window_at_output_time(output_ms)

    viewport = None
    if source is not None and visible:
        settings = project.settings
        view_mapper = ViewMapper(
            source.size, settings.output_size, settings.screen.padding, settings.screen.crop
        )
        viewport = viewport_at(project.timeline.viewport_motions, output_ms, view_mapper)

    return FrameState(
        output_ms=output_ms,
        visible=visible,
        source_ms=source_ms,
        timeline_ms=mapper.output_to_timeline(output_ms) if visible else NOT_VISIBLE,
        window_id=hit[0].id if hit else None,
        active_motions=ZOOM_RESOLVER.active_at(output_ms, project.timeline.viewport_motions),
        active_spotlights=SPOTLIGHT_RESOLVER.active_at(output_ms, project.timeline.spotlight_actions),
        viewport=viewport,
    )
