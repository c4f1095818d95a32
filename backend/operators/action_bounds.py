"""
Action Bounds - placement constraints for the zoom and spotlight tracks.

Both overlay tracks hold timed actions whose [start, end) intervals in
output time must stay pairwise disjoint. The same neighbour-bound, drag and
hover-to-add math serves both tracks; only the way an interval is read from
(and written back to) an action differs:

- Viewport motions are END anchored: the interval is
  [output_end_time_ms - duration_ms, output_end_time_ms]
- Spotlights are INTERVAL anchored: explicit start and end instants

Drag helpers take the action list as it was when the gesture began plus the
cumulative pointer delta, so repeated updates never accumulate drift.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, Sequence, TypeVar

from models.project_models import ProjectSettings
from models.timeline_models import SpotlightAction, ViewportMotion

T = TypeVar("T")


# =============================================================================
# TYPES
# =============================================================================


class TrackKind(str, Enum):
    ZOOM = "zoom"
    SPOTLIGHT = "spotlight"


class TrackAnchor(str, Enum):
    END = "end"
    INTERVAL = "interval"


class ActionEdge(str, Enum):
    START = "start"
    END = "end"


@dataclass(frozen=True)
class TrackPolicy:
    min_duration_ms: float
    default_duration_ms: float
    anchor: TrackAnchor


@dataclass(frozen=True)
class ActionInterval:
    start_ms: float
    end_ms: float
    id: str | None = None

    @property
    def duration_ms(self) -> float:
        return self.end_ms - self.start_ms


@dataclass(frozen=True)
class ActionBounds:
    """Free room around an action: end of its predecessor, start of its successor."""
    prev_end_ms: float
    next_start_ms: float


def zoom_policy(settings: ProjectSettings) -> TrackPolicy:
    return TrackPolicy(
        min_duration_ms=settings.zoom.min_zoom_duration_ms,
        default_duration_ms=settings.zoom.max_zoom_duration_ms,
        anchor=TrackAnchor.END,
    )


def spotlight_policy(settings: ProjectSettings) -> TrackPolicy:
    min_duration = settings.spotlight.min_duration_ms
    return TrackPolicy(
        min_duration_ms=min_duration,
        default_duration_ms=min_duration * 2,
        anchor=TrackAnchor.INTERVAL,
    )


# =============================================================================
# RESOLVER
# =============================================================================


class ActionBoundsResolver(Generic[T]):
    """
    Bounds, drag and hover placement for one kind of timed action.

    Args:
        get_interval: Reads the output-time interval of an action
        apply_interval: Returns a copy of an action moved to an interval
    """

    def __init__(
        self,
        get_interval: Callable[[T], ActionInterval],
        apply_interval: Callable[[T, ActionInterval], T],
    ):
        self._get_interval = get_interval
        self._apply_interval = apply_interval

    def interval(self, action: T) -> ActionInterval:
        return self._get_interval(action)

    def apply(self, action: T, interval: ActionInterval) -> T:
        return self._apply_interval(action, interval)

    def _find(self, target_id: str | None, actions: Sequence[T]) -> ActionInterval | None:
        if target_id is None:
            return None
        for action in actions:
            interval = self._get_interval(action)
            if interval.id == target_id:
                return interval
        return None

    def _bounds_around(
        self,
        reference_start: float,
        reference_end: float,
        actions: Sequence[T],
        track_end_ms: float,
        exclude_id: str | None = None,
    ) -> ActionBounds:
        prev_end = 0.0
        next_start = track_end_ms
        for action in actions:
            other = self._get_interval(action)
            if exclude_id is not None and other.id == exclude_id:
                continue
            if other.end_ms <= reference_start:
                prev_end = max(prev_end, other.end_ms)
            if other.start_ms >= reference_end:
                next_start = min(next_start, other.start_ms)
        return ActionBounds(prev_end_ms=prev_end, next_start_ms=next_start)

    def get_bounds(
        self,
        target_id: str | None,
        actions: Sequence[T],
        track_end_ms: float,
    ) -> ActionBounds:
        """
        Neighbour bounds of an action.

        prev_end is the latest end at or before the action's start (0 if
        none), next_start the earliest start at or after its end (track end
        if none). An unknown or missing id behaves like a zero-length
        action at 0.
        """
        target = self._find(target_id, actions)
        if target is None:
            return self._bounds_around(0.0, 0.0, actions, track_end_ms)
        return self._bounds_around(
            target.start_ms, target.end_ms, actions, track_end_ms, exclude_id=target.id
        )

    # -------------------------------------------------------------------------
    # Drag
    # -------------------------------------------------------------------------

    def drag_move(
        self,
        target_id: str,
        actions: Sequence[T],
        delta_ms: float,
        track_end_ms: float,
    ) -> ActionInterval | None:
        """Shift both edges by delta, keeping the duration and staying between neighbours."""
        target = self._find(target_id, actions)
        if target is None:
            return None

        bounds = self.get_bounds(target_id, actions, track_end_ms)
        duration = target.duration_ms

        new_start = target.start_ms + delta_ms
        if new_start < bounds.prev_end_ms:
            new_start = bounds.prev_end_ms
        if new_start + duration > bounds.next_start_ms:
            new_start = bounds.next_start_ms - duration
        new_start = max(new_start, bounds.prev_end_ms, 0.0)

        return ActionInterval(start_ms=new_start, end_ms=new_start + duration, id=target.id)

    def drag_resize(
        self,
        target_id: str,
        actions: Sequence[T],
        edge: ActionEdge,
        delta_ms: float,
        track_end_ms: float,
        min_duration_ms: float,
    ) -> ActionInterval | None:
        """
        Move one edge by delta, clamped by the minimum duration and then the neighbour.

        An action already shorter than min_duration_ms may only grow.
        """
        target = self._find(target_id, actions)
        if target is None:
            return None

        bounds = self.get_bounds(target_id, actions, track_end_ms)

        if edge == ActionEdge.START:
            proposed = target.start_ms + delta_ms
            new_start = max(
                min(max(proposed, bounds.prev_end_ms), target.end_ms - min_duration_ms),
                bounds.prev_end_ms,
            )
            return ActionInterval(start_ms=new_start, end_ms=target.end_ms, id=target.id)

        proposed = target.end_ms + delta_ms
        new_end = min(
            max(min(proposed, bounds.next_start_ms), target.start_ms + min_duration_ms),
            bounds.next_start_ms,
        )
        return ActionInterval(start_ms=target.start_ms, end_ms=new_end, id=target.id)

    # -------------------------------------------------------------------------
    # Hover to add
    # -------------------------------------------------------------------------

    def hover_placement(
        self,
        time_ms: float,
        actions: Sequence[T],
        track_end_ms: float,
        policy: TrackPolicy,
    ) -> ActionInterval | None:
        """
        Ghost interval offered when the pointer hovers an empty spot of the track.

        Returns None when the pointer is off the track, over an existing
        action or in a gap shorter than the minimum duration.
        """
        if time_ms < 0 or time_ms > track_end_ms:
            return None
        if self.active_at(time_ms, actions):
            return None

        bounds = self._bounds_around(time_ms, time_ms, actions, track_end_ms)
        gap = bounds.next_start_ms - bounds.prev_end_ms
        if gap < policy.min_duration_ms:
            return None

        if policy.anchor == TrackAnchor.END:
            duration = min(policy.default_duration_ms, time_ms - bounds.prev_end_ms)
            end = time_ms
            if duration < policy.min_duration_ms:
                duration = policy.min_duration_ms
                end = bounds.prev_end_ms + policy.min_duration_ms
            return ActionInterval(start_ms=end - duration, end_ms=end)

        duration = min(policy.default_duration_ms, gap)
        start = time_ms - duration / 2
        start = max(bounds.prev_end_ms, min(start, bounds.next_start_ms - duration))
        return ActionInterval(start_ms=start, end_ms=start + duration)

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def active_at(self, time_ms: float, actions: Sequence[T]) -> list[T]:
        """Actions whose [start, end) interval contains the instant."""
        active = []
        for action in actions:
            interval = self._get_interval(action)
            if interval.start_ms <= time_ms < interval.end_ms:
                active.append(action)
        return active

    def would_overlap(
        self,
        start_ms: float,
        end_ms: float,
        actions: Sequence[T],
        exclude_id: str | None = None,
    ) -> bool:
        for action in actions:
            other = self._get_interval(action)
            if exclude_id is not None and other.id == exclude_id:
                continue
            if start_ms < other.end_ms and other.start_ms < end_ms:
                return True
        return False


# =============================================================================
# TRACK INSTANCES
# =============================================================================


def _motion_interval(motion: ViewportMotion) -> ActionInterval:
    return ActionInterval(
        start_ms=motion.output_start_time_ms,
        end_ms=motion.output_end_time_ms,
        id=motion.id,
    )


def _apply_motion_interval(motion: ViewportMotion, interval: ActionInterval) -> ViewportMotion:
    return motion.model_copy(
        update={
            "output_end_time_ms": interval.end_ms,
            "duration_ms": interval.duration_ms,
        }
    )


def _spotlight_interval(spotlight: SpotlightAction) -> ActionInterval:
    return ActionInterval(
        start_ms=spotlight.output_start_time_ms,
        end_ms=spotlight.output_end_time_ms,
        id=spotlight.id,
    )


def _apply_spotlight_interval(
    spotlight: SpotlightAction, interval: ActionInterval
) -> SpotlightAction:
    return spotlight.model_copy(
        update={
            "output_start_time_ms": interval.start_ms,
            "output_end_time_ms": interval.end_ms,
        }
    )


ZOOM_RESOLVER: ActionBoundsResolver[ViewportMotion] = ActionBoundsResolver(
    _motion_interval, _apply_motion_interval
)
SPOTLIGHT_RESOLVER: ActionBoundsResolver[SpotlightAction] = ActionBoundsResolver(
    _spotlight_interval, _apply_spotlight_interval
)
