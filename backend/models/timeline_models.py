"""
Pydantic models for the editor timeline.

The edited video is never produced by cutting media files. Instead the
timeline stores:
- Output windows: kept slices of the immutable source recording, each with
  an optional playback speed
- Viewport motions: end-anchored zoom/pan instructions on the zoom track
- Spotlight actions: interval-anchored highlights on the spotlight track

Three time domains are involved:
- Source time: position within the original recording
- Output time: position within the edited result (gaps removed, speed applied)
- Timeline time: output time shifted by a constant leading offset

All time values are milliseconds. Ids are opaque strings.
"""

from __future__ import annotations

from enum import Enum
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


def new_id() -> str:
    """Generate an opaque identifier for windows and actions."""
    return str(uuid4())


# =============================================================================
# ENUMS
# =============================================================================


class ActionType(str, Enum):
    """How a timed action was created."""
    AUTO = "auto"
    MANUAL = "manual"


class EventType(str, Enum):
    """Kinds of recorded user input."""
    CLICK = "click"
    MOUSEPOS = "mousepos"
    URLCHANGE = "urlchange"
    KEYDOWN = "keydown"
    HOVER = "hover"
    MOUSEDRAG = "mousedrag"
    SCROLL = "scroll"
    TYPING = "typing"
    HOVERED_CARD = "hoveredCard"


# =============================================================================
# GEOMETRY
# =============================================================================


class Point(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    width: float = Field(gt=0)
    height: float = Field(gt=0)


class Rect(BaseModel):
    """Axis-aligned rectangle; (x, y) is the top-left corner."""
    x: float = 0.0
    y: float = 0.0
    width: float = Field(default=0.0, ge=0)
    height: float = Field(default=0.0, ge=0)

    @property
    def right(self) -> float:
        return self.x + self.width

    @property
    def bottom(self) -> float:
        return self.y + self.height

    def contains_rect(self, other: Rect) -> bool:
        """Check if another rectangle lies entirely inside this one."""
        return (
            other.x >= self.x and
            other.y >= self.y and
            other.right <= self.right and
            other.bottom <= self.bottom
        )

    def union(self, other: Rect) -> Rect:
        """Return the bounding rectangle of both rectangles."""
        x = min(self.x, other.x)
        y = min(self.y, other.y)
        return Rect(
            x=x,
            y=y,
            width=max(self.right, other.right) - x,
            height=max(self.bottom, other.bottom) - y,
        )

    @classmethod
    def full(cls, size: Size) -> Rect:
        """Rectangle covering a whole frame of the given size."""
        return cls(x=0, y=0, width=size.width, height=size.height)


class CornerRadii(BaseModel):
    """Per-corner radii of a spotlight cut-out."""
    top_left: float = Field(default=0.0, ge=0)
    top_right: float = Field(default=0.0, ge=0)
    bottom_right: float = Field(default=0.0, ge=0)
    bottom_left: float = Field(default=0.0, ge=0)

    @classmethod
    def uniform(cls, radius: float) -> CornerRadii:
        return cls(
            top_left=radius,
            top_right=radius,
            bottom_right=radius,
            bottom_left=radius,
        )


# =============================================================================
# OUTPUT WINDOWS
# =============================================================================


class OutputWindow(BaseModel):
    """
    A kept slice of source time.

    start_ms/end_ms are positions in the source recording. speed scales how
    much output time the slice consumes:

        output_duration = (end_ms - start_ms) / speed

    Windows on a timeline are sorted by start_ms and never overlap in
    source time.
    """
    id: str = Field(default_factory=new_id)
    start_ms: float = Field(ge=0, description="Source time where the slice starts")
    end_ms: float = Field(ge=0, description="Source time where the slice ends")
    speed: float = Field(
        default=1.0,
        gt=0,
        description="Playback speed multiplier (2.0 = twice as fast)"
    )

    @property
    def source_duration_ms(self) -> float:
        return self.end_ms - self.start_ms

    @property
    def output_duration_ms(self) -> float:
        return (self.end_ms - self.start_ms) / self.speed

    def contains_source_time(self, source_ms: float) -> bool:
        """Check if a source instant falls within this window (end inclusive)."""
        return self.start_ms <= source_ms <= self.end_ms


# =============================================================================
# TIMED ACTIONS
# =============================================================================


class ViewportMotion(BaseModel):
    """
    A zoom/pan instruction on the zoom track.

    Anchored by its end instant; duration extends backward:

        [output_end_time_ms - duration_ms, output_end_time_ms]

    The target rectangle is expressed in source-video coordinates.
    """
    id: str = Field(default_factory=new_id)
    output_end_time_ms: float = Field(description="Output time the motion completes at")
    duration_ms: float = Field(gt=0, description="Length of the motion")
    rect: Rect = Field(description="Target viewport in source-video coordinates")
    reason: str = Field(default="", description="Why the motion exists (event type or 'Manual Zoom')")
    type: ActionType = Field(default=ActionType.AUTO)
    source_end_time_ms: float | None = Field(
        default=None,
        description="Anchor in source time, used to prune motions that fall into a trimmed gap"
    )

    @property
    def output_start_time_ms(self) -> float:
        return self.output_end_time_ms - self.duration_ms


class SpotlightAction(BaseModel):
    """
    A highlight on the spotlight track.

    Dims the background and enlarges source_rect between explicit
    start and end instants in output time.
    """
    id: str = Field(default_factory=new_id)
    output_start_time_ms: float = Field(description="Output time the spotlight starts")
    output_end_time_ms: float = Field(description="Output time the spotlight ends")
    source_rect: Rect = Field(description="Highlighted region in source-video coordinates")
    enlarge_scale: float | None = Field(
        default=None,
        gt=0,
        description="Per-action enlargement (None = project setting)"
    )
    corner_radii: CornerRadii = Field(default_factory=CornerRadii)
    reason: str = Field(default="")
    type: ActionType = Field(default=ActionType.MANUAL)

    @property
    def duration_ms(self) -> float:
        return self.output_end_time_ms - self.output_start_time_ms


# =============================================================================
# USER EVENTS (read-only recording input)
# =============================================================================


class UserEvent(BaseModel):
    """A single recorded input, stamped in source time."""
    model_config = ConfigDict(frozen=True)

    type: EventType
    timestamp: float = Field(description="Source time of the event")
    mouse_pos: Point = Field(default_factory=Point)
    target_rect: Rect | None = Field(
        default=None,
        description="Bounding box of the element the event targeted"
    )
    end_time: float | None = Field(
        default=None,
        description="Source time a range event (drag, scroll, typing) ends"
    )


class UserEvents(BaseModel):
    """All recorded input of a screen source, grouped by category."""
    model_config = ConfigDict(frozen=True)

    mouse_clicks: tuple[UserEvent, ...] = ()
    mouse_positions: tuple[UserEvent, ...] = ()
    keyboard_events: tuple[UserEvent, ...] = ()
    drags: tuple[UserEvent, ...] = ()
    scrolls: tuple[UserEvent, ...] = ()
    typing_events: tuple[UserEvent, ...] = ()
    url_changes: tuple[UserEvent, ...] = ()
    hovered_cards: tuple[UserEvent, ...] = ()

    def all_events(self) -> list[UserEvent]:
        """Every non-mouse-position event sorted by timestamp."""
        combined = [
            *self.mouse_clicks,
            *self.typing_events,
            *self.drags,
            *self.scrolls,
            *self.url_changes,
            *self.hovered_cards,
        ]
        return sorted(combined, key=lambda e: e.timestamp)

    @property
    def is_empty(self) -> bool:
        return not self.all_events()


# =============================================================================
# QUERIES
# =============================================================================


class FrameState(BaseModel):
    """Everything known about one output instant."""
    output_ms: float
    visible: bool = Field(description="Whether the instant lies inside the output")
    source_ms: float = Field(description="Mapped source instant, -1 when not visible")
    timeline_ms: float = Field(description="Instant on the ruler, -1 when not visible")
    window_id: str | None = None
    active_motions: list[ViewportMotion] = Field(default_factory=list)
    active_spotlights: list[SpotlightAction] = Field(default_factory=list)
    viewport: Rect | None = Field(
        default=None,
        description="Output-canvas viewport, when source metadata is known"
    )


# =============================================================================
# TIMELINE
# =============================================================================


class Timeline(BaseModel):
    """
    The editable timeline of a project.

    Holds one screen recording (optionally paired with a camera), the
    output windows cut from it and the two overlay tracks.
    """
    id: str = Field(default_factory=new_id)
    duration_ms: float = Field(
        default=0.0,
        ge=0,
        description="Length of the source recording"
    )
    timeline_offset_ms: float = Field(
        default=0.0,
        description="Constant leading offset between capture timeline and first window"
    )
    screen_source_id: str = Field(default="", description="Id of the screen source")
    camera_source_id: str | None = Field(default=None)
    output_windows: list[OutputWindow] = Field(default_factory=list)
    viewport_motions: list[ViewportMotion] = Field(default_factory=list)
    spotlight_actions: list[SpotlightAction] = Field(default_factory=list)

    def find_window(self, window_id: str) -> OutputWindow | None:
        return next((w for w in self.output_windows if w.id == window_id), None)

    def find_motion(self, motion_id: str) -> ViewportMotion | None:
        return next((m for m in self.viewport_motions if m.id == motion_id), None)

    def find_spotlight(self, spotlight_id: str) -> SpotlightAction | None:
        return next((s for s in self.spotlight_actions if s.id == spotlight_id), None)

    @classmethod
    def for_recording(
        cls,
        screen_source_id: str,
        duration_ms: float,
        camera_source_id: str | None = None,
    ) -> Timeline:
        """Create a timeline with one window covering the whole recording."""
        return cls(
            duration_ms=duration_ms,
            screen_source_id=screen_source_id,
            camera_source_id=camera_source_id,
            output_windows=[OutputWindow(start_ms=0, end_ms=duration_ms)],
        )
