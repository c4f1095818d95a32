"""
Auto Zoom - generates the viewport motion schedule from recorded input.

Pipeline:
1. FocusAreaPolicy walks the recorded events in output time and emits
   focus areas (what should be visible, and from when)
2. calculate_zoom_schedule turns focus areas into end-anchored viewport
   motions bounded by the project's max zoom and the output aspect ratio
3. recalculate_auto_zooms is the entry point used after window or
   settings edits: regenerate while auto mode is on, prune otherwise

Viewport math happens on the output canvas; stored motion rects are
converted back to source-video coordinates.
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Mapping, Sequence

from models.project_models import Project, SourceMetadata, ZoomSettings
from models.timeline_models import (
    ActionType,
    EventType,
    Point,
    Rect,
    Size,
    UserEvent,
    UserEvents,
    ViewportMotion,
    new_id,
)
from operators.time_mapper import NOT_VISIBLE, TimeMapper
from utils.view_mapper import ViewMapper

logger = logging.getLogger(__name__)

# Gap before the next target that counts as inactivity
INACTIVITY_THRESHOLD_MS = 5000.0
# Delay between the last target and the inactivity zoom-out
INACTIVITY_ZOOM_BUFFER_MS = 2000.0
# How long a URL change keeps the full frame before the next target
URL_CHANGE_HOLD_MS = 1000.0
# Events this close to the end of the output are ignored
IGNORE_EVENTS_TAIL_MS = 3000.0

CLICK_BOX_FRACTION = 0.2
HOVER_BOX_FRACTION = 0.2
HOVER_MIN_MOVEMENT_FRACTION = 0.075
HOVER_MIN_DURATION_MS = 1000.0

END_ZOOMOUT_REASON = "end_zoomout"


@dataclass(frozen=True)
class FocusArea:
    """Region (source coordinates) that should be visible at an output instant."""
    timestamp_ms: float
    rect: Rect
    reason: str


# =============================================================================
# HOVER DETECTION
# =============================================================================


class HoverDetector:
    """
    Finds periods where the pointer stays inside a small box for at least
    HOVER_MIN_DURATION_MS. Positions must already be in output time.
    """

    def __init__(self, positions: Sequence[UserEvent], larger_dimension: float):
        self._positions = list(positions)
        self._box_size = larger_dimension * HOVER_BOX_FRACTION
        self._min_movement = larger_dimension * HOVER_MIN_MOVEMENT_FRACTION
        self._idx = 0

    def find_next(self, min_time: float, time_limit: float) -> UserEvent | None:
        while self._idx < len(self._positions):
            start = self._positions[self._idx]
            if start.timestamp < min_time:
                self._idx += 1
                continue
            if start.timestamp >= time_limit:
                break
            if not self._can_start_at(self._idx):
                self._idx += 1
                continue

            found = self._build_hover(self._idx, time_limit)
            if found is not None:
                hover, end_idx = found
                self._idx = end_idx + 1
                return hover
            self._idx += 1
        return None

    def advance_past(self, time_ms: float) -> None:
        while self._idx < len(self._positions) and self._positions[self._idx].timestamp <= time_ms:
            self._idx += 1

    def _can_start_at(self, idx: int) -> bool:
        if idx == 0:
            return True
        current = self._positions[idx].mouse_pos
        previous = self._positions[idx - 1].mouse_pos
        return math.hypot(current.x - previous.x, current.y - previous.y) >= self._min_movement

    def _build_hover(self, start_idx: int, time_limit: float) -> tuple[UserEvent, int] | None:
        start = self._positions[start_idx]
        min_x = max_x = start.mouse_pos.x
        min_y = max_y = start.mouse_pos.y
        last_timestamp = start.timestamp
        best_end_idx = -1
        best_end_time = -1.0

        j = start_idx
        while j < len(self._positions):
            pos = self._positions[j]
            if pos.timestamp - last_timestamp > HOVER_MIN_DURATION_MS:
                break
            if pos.timestamp >= time_limit:
                break

            nx0, nx1 = min(min_x, pos.mouse_pos.x), max(max_x, pos.mouse_pos.x)
            ny0, ny1 = min(min_y, pos.mouse_pos.y), max(max_y, pos.mouse_pos.y)
            if nx1 - nx0 > self._box_size or ny1 - ny0 > self._box_size:
                break
            min_x, max_x, min_y, max_y = nx0, nx1, ny0, ny1

            if pos.timestamp - start.timestamp >= HOVER_MIN_DURATION_MS:
                best_end_idx = j
                best_end_time = pos.timestamp
            last_timestamp = pos.timestamp
            j += 1

        # The hover lasts until the pointer leaves the box (or the limit)
        if j < len(self._positions) and self._positions[j].timestamp < time_limit:
            effective_end = self._positions[j].timestamp
        elif time_limit != math.inf:
            effective_end = time_limit
        else:
            effective_end = None

        if effective_end is not None and effective_end - start.timestamp >= HOVER_MIN_DURATION_MS:
            if best_end_idx == -1 or effective_end > best_end_time:
                best_end_idx = j - 1 if j > start_idx else start_idx
                best_end_time = effective_end

        if best_end_idx == -1:
            return None

        hover = UserEvent(
            type=EventType.HOVER,
            timestamp=start.timestamp,
            end_time=best_end_time,
            mouse_pos=Point(x=(min_x + max_x) / 2, y=(min_y + max_y) / 2),
            target_rect=Rect(x=min_x, y=min_y, width=max_x - min_x, height=max_y - min_y),
        )
        return hover, best_end_idx


# =============================================================================
# FOCUS AREAS
# =============================================================================


class FocusAreaPolicy:
    """
    Default heuristic turning recorded events into focus areas.

    Subclass and override focus_areas() (or the smaller hooks) to plug a
    different clustering strategy into recalculate_auto_zooms().
    """

    def focus_areas(
        self,
        events: UserEvents,
        time_mapper: TimeMapper,
        source_size: Size,
    ) -> list[FocusArea]:
        return list(_FocusWalk(self, events, time_mapper, source_size))

    def remap_event(self, event: UserEvent, time_mapper: TimeMapper) -> UserEvent | None:
        """Move an event to output time; None if it was trimmed away."""
        if event.type == EventType.KEYDOWN:
            return None

        if event.end_time is not None:
            output_range = time_mapper.source_range_to_output_range(event.timestamp, event.end_time)
            if output_range is None:
                return None
            return event.model_copy(update={"timestamp": output_range[0], "end_time": output_range[1]})

        output_ms = time_mapper.source_to_output(event.timestamp)
        if output_ms == NOT_VISIBLE:
            return None
        return event.model_copy(update={"timestamp": output_ms})

    def event_rect(self, event: UserEvent, source_size: Size) -> Rect:
        """Source-space region an event asks to show."""
        full = Rect.full(source_size)
        if event.type == EventType.URLCHANGE:
            return full

        if event.target_rect is not None:
            rect = event.target_rect
        elif event.type == EventType.CLICK:
            box = max(source_size.width, source_size.height) * CLICK_BOX_FRACTION
            rect = Rect(
                x=event.mouse_pos.x - box / 2,
                y=event.mouse_pos.y - box / 2,
                width=box,
                height=box,
            )
        else:
            return full

        return _clamp_rect_to_frame(rect, source_size)


class _FocusWalk:
    """Single pass over the remapped events, advancing an output-time cursor."""

    def __init__(
        self,
        policy: FocusAreaPolicy,
        events: UserEvents,
        time_mapper: TimeMapper,
        source_size: Size,
    ):
        self._policy = policy
        self._source_size = source_size
        self._full = Rect.full(source_size)
        self._output_duration = time_mapper.get_output_duration()

        remapped = (policy.remap_event(e, time_mapper) for e in events.all_events())
        self._events = sorted((e for e in remapped if e is not None), key=lambda e: e.timestamp)

        positions = (policy.remap_event(p, time_mapper) for p in events.mouse_positions)
        self._hovers = HoverDetector(
            sorted((p for p in positions if p is not None), key=lambda p: p.timestamp),
            max(source_size.width, source_size.height),
        )

        self._cursor = 0.0
        self._idx = 0
        self._pending: UserEvent | None = None
        self._closed = False

    def __iter__(self):
        area = self._next_area()
        while area is not None:
            yield area
            area = self._next_area()

    def _next_area(self) -> FocusArea | None:
        if self._pending is not None:
            target = self._pending
            self._pending = None
            return self._process(target)

        target = self._find_next_target()
        if target is None:
            end_ms = max(
                self._cursor,
                min(self._cursor + INACTIVITY_ZOOM_BUFFER_MS, self._output_duration - 500),
            )
            if self._closed or end_ms <= self._cursor:
                return None
            self._cursor = end_ms
            self._closed = True
            return FocusArea(timestamp_ms=end_ms, rect=self._full, reason="final_zoomout")

        target_start = max(target.timestamp, self._cursor)
        if target_start - self._cursor >= INACTIVITY_THRESHOLD_MS:
            self._pending = target
            zoom_out_at = self._cursor + INACTIVITY_ZOOM_BUFFER_MS
            self._cursor = target_start - 1
            return FocusArea(timestamp_ms=zoom_out_at, rect=self._full, reason="inactivity")

        return self._process(target)

    def _find_next_target(self) -> UserEvent | None:
        next_event = self._peek_event()
        limit = next_event.timestamp if next_event is not None else math.inf
        hover = self._hovers.find_next(self._cursor, limit)
        if hover is not None:
            return hover
        if next_event is not None:
            self._idx += 1
        return next_event

    def _peek_event(self) -> UserEvent | None:
        while self._idx < len(self._events):
            event = self._events[self._idx]
            if event.timestamp < self._cursor:
                # Range events still in progress stay relevant
                if event.end_time is not None and event.end_time > self._cursor:
                    return event
                self._idx += 1
                continue
            return event
        return None

    def _process(self, target: UserEvent) -> FocusArea:
        previous_cursor = self._cursor
        if target.type == EventType.URLCHANGE:
            self._cursor = target.timestamp + URL_CHANGE_HOLD_MS
        else:
            self._cursor = target.timestamp + 1
        self._hovers.advance_past(self._cursor)

        return FocusArea(
            timestamp_ms=max(target.timestamp, previous_cursor),
            rect=self._policy.event_rect(target, self._source_size),
            reason=target.type.value,
        )


DEFAULT_FOCUS_POLICY = FocusAreaPolicy()


# =============================================================================
# VIEWPORT GEOMETRY
# =============================================================================


def _clamp_rect_to_frame(rect: Rect, size: Size) -> Rect:
    x = max(0.0, min(rect.x, size.width - 1))
    y = max(0.0, min(rect.y, size.height - 1))
    return Rect(
        x=x,
        y=y,
        width=max(0.0, min(rect.width, size.width - x)),
        height=max(0.0, min(rect.height, size.height - y)),
    )


def clamp_viewport(viewport: Rect, output_size: Size) -> Rect:
    """Slide a viewport back inside the canvas without resizing it."""
    x = min(max(viewport.x, 0.0), output_size.width - viewport.width)
    y = min(max(viewport.y, 0.0), output_size.height - viewport.height)
    return Rect(x=max(x, 0.0), y=max(y, 0.0), width=viewport.width, height=viewport.height)


def get_viewport(must_see: Rect, max_zoom: float, view_mapper: ViewMapper) -> Rect:
    """
    Smallest output-aspect viewport centred on must_see that contains it
    and does not magnify beyond max_zoom.
    """
    output_size = view_mapper.output_size
    aspect = output_size.width / output_size.height

    min_width = output_size.width / max_zoom
    min_height = min_width / aspect

    width_based_height = must_see.width / aspect
    if width_based_height >= must_see.height:
        width, height = must_see.width, width_based_height
    else:
        width, height = must_see.height * aspect, must_see.height

    width = min(max(min_width, width), output_size.width)
    height = min(max(min_height, height), output_size.height)

    center_x = must_see.x + must_see.width / 2
    center_y = must_see.y + must_see.height / 2
    return clamp_viewport(
        Rect(x=center_x - width / 2, y=center_y - height / 2, width=width, height=height),
        output_size,
    )


# =============================================================================
# SCHEDULE
# =============================================================================


@dataclass
class _Motion:
    output_end_time_ms: float
    duration_ms: float
    rect: Rect
    reason: str


def calculate_zoom_schedule(
    zoom: ZoomSettings,
    view_mapper: ViewMapper,
    focus_areas: Sequence[FocusArea],
    output_duration_ms: float,
    time_mapper: TimeMapper | None = None,
) -> list[ViewportMotion]:
    """
    Build auto viewport motions from focus areas.

    A motion is emitted when the area is not already visible or the zoom
    level changes. A motion colliding with its predecessor shrinks into the
    gap when the gap is at least min_zoom_duration_ms, otherwise the two
    areas merge into the predecessor. Areas in the final
    IGNORE_EVENTS_TAIL_MS are ignored and a closing zoom-out is appended
    unless the schedule already ends fully zoomed out.
    """
    if not focus_areas:
        return []

    output_size = view_mapper.output_size
    full_output = Rect.full(output_size)
    input_size = view_mapper.input_size

    motions: list[_Motion] = []
    last_viewport = full_output
    last_must_see = full_output
    zoom_out_start = max(0.0, output_duration_ms - IGNORE_EVENTS_TAIL_MS)

    for area in focus_areas:
        if area.timestamp_ms >= zoom_out_start:
            break

        is_full = (
            abs(area.rect.width - input_size.width) < 1 and
            abs(area.rect.height - input_size.height) < 1
        )
        if is_full:
            must_see = full_output
            target = full_output
        else:
            must_see = view_mapper.input_to_output_rect(area.rect)
            target = get_viewport(must_see, zoom.max_zoom, view_mapper)

        fits = last_viewport.contains_rect(must_see)
        size_changed = abs(target.width - last_viewport.width) > 0.1
        if fits and not size_changed:
            continue

        start_ms = area.timestamp_ms - zoom.max_zoom_duration_ms
        previous = motions[-1] if motions else None

        if previous is not None and start_ms < previous.output_end_time_ms:
            gap = area.timestamp_ms - previous.output_end_time_ms
            if gap >= zoom.min_zoom_duration_ms:
                motions.append(_Motion(area.timestamp_ms, gap, target, area.reason))
                last_viewport, last_must_see = target, must_see
            else:
                bounding = last_must_see.union(must_see)
                merged = get_viewport(bounding, zoom.max_zoom, view_mapper)
                previous.rect = merged
                last_viewport, last_must_see = merged, bounding
            continue

        motions.append(_Motion(area.timestamp_ms, zoom.max_zoom_duration_ms, target, area.reason))
        last_viewport, last_must_see = target, must_see

    if abs(last_viewport.width - output_size.width) >= 1:
        motions.append(
            _Motion(
                min(zoom_out_start + zoom.max_zoom_duration_ms, output_duration_ms),
                zoom.max_zoom_duration_ms,
                full_output,
                END_ZOOMOUT_REASON,
            )
        )

    result = []
    for m in motions:
        source_end = None
        if time_mapper is not None:
            mapped = time_mapper.output_to_source(m.output_end_time_ms)
            source_end = mapped if mapped != NOT_VISIBLE else None
        result.append(
            ViewportMotion(
                id=new_id(),
                output_end_time_ms=m.output_end_time_ms,
                duration_ms=m.duration_ms,
                rect=view_mapper.output_to_input_rect(m.rect),
                reason=m.reason,
                type=ActionType.AUTO,
                source_end_time_ms=source_end,
            )
        )
    return result


# =============================================================================
# PLAYBACK
# =============================================================================


def _ease_in_out(t: float) -> float:
    return 2 * t * t if t < 0.5 else -1 + (4 - 2 * t) * t


def _lerp_rect(a: Rect, b: Rect, t: float) -> Rect:
    return Rect(
        x=a.x + (b.x - a.x) * t,
        y=a.y + (b.y - a.y) * t,
        width=a.width + (b.width - a.width) * t,
        height=a.height + (b.height - a.height) * t,
    )


def viewport_at(
    motions: Sequence[ViewportMotion],
    output_ms: float,
    view_mapper: ViewMapper,
) -> Rect:
    """
    Output-canvas viewport at an output instant.

    Motions are replayed in start order. A motion interrupted by the start
    of the next one hands over its interpolated state at that instant.
    """
    current = view_mapper.full_output_rect()
    ordered = sorted(motions, key=lambda m: m.output_start_time_ms)

    for i, motion in enumerate(ordered):
        if output_ms < motion.output_start_time_ms:
            return current

        interruption = ordered[i + 1].output_start_time_ms if i + 1 < len(ordered) else math.inf
        limit = min(output_ms, interruption)
        progress = max(0.0, min(1.0, (limit - motion.output_start_time_ms) / motion.duration_ms))
        target = view_mapper.input_to_output_rect(motion.rect, clamp=False)
        interpolated = _lerp_rect(current, target, _ease_in_out(progress))

        if output_ms <= interruption:
            return interpolated
        current = interpolated

    return current


# =============================================================================
# RECALCULATION
# =============================================================================


def prune_motions(
    motions: Sequence[ViewportMotion],
    time_mapper: TimeMapper,
) -> Sequence[ViewportMotion]:
    """
    Drop motions whose anchor fell into a trimmed gap or past the output end.

    Returns the input list object when nothing was dropped.
    """
    output_duration = time_mapper.get_output_duration()
    kept = []
    for motion in motions:
        if (
            motion.source_end_time_ms is not None and
            time_mapper.source_to_output(motion.source_end_time_ms) == NOT_VISIBLE
        ):
            continue
        if motion.output_end_time_ms > output_duration:
            continue
        kept.append(motion)

    if len(kept) == len(motions):
        return motions
    logger.debug("prune_motions removed=%d", len(motions) - len(kept))
    return kept


def recalculate_auto_zooms(
    project: Project,
    sources: Mapping[str, SourceMetadata],
    events: UserEvents | None,
    time_mapper: TimeMapper | None = None,
    policy: FocusAreaPolicy | None = None,
) -> Sequence[ViewportMotion]:
    """
    Viewport motions that should follow a window or settings change.

    Auto mode regenerates the schedule from the recorded events (and keeps
    the existing list, with a warning, when the screen source metadata or
    the events are unavailable). Manual mode only prunes.
    """
    timeline = project.timeline
    motions = timeline.viewport_motions
    mapper = time_mapper or TimeMapper(timeline.output_windows, timeline.timeline_offset_ms)

    if not project.settings.zoom.auto_zoom:
        return prune_motions(motions, mapper)

    source = sources.get(timeline.screen_source_id)
    if source is None or events is None:
        logger.warning(
            "Skipping zoom recalculation: missing source metadata or events "
            "project_id=%s screen_source_id=%s",
            project.id,
            timeline.screen_source_id,
        )
        return motions

    settings = project.settings
    view_mapper = ViewMapper(
        source.size,
        settings.output_size,
        settings.screen.padding,
        settings.screen.crop,
    )
    areas = (policy or DEFAULT_FOCUS_POLICY).focus_areas(events, mapper, source.size)
    schedule = calculate_zoom_schedule(
        settings.zoom, view_mapper, areas, mapper.get_output_duration(), mapper
    )
    logger.debug(
        "recalculate_auto_zooms project_id=%s focus_areas=%d motions=%d",
        project.id,
        len(areas),
        len(schedule),
    )
    return schedule
