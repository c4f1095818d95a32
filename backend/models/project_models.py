"""
Pydantic models for projects, their settings and source metadata.

A Project is the persisted aggregate: settings plus the Timeline. Source
media and recorded events are referenced by id and loaded separately.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, Field

from models.timeline_models import Rect, Size, Timeline, new_id


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


# =============================================================================
# SETTINGS
# =============================================================================


class ZoomSettings(BaseModel):
    """Zoom track configuration."""
    max_zoom: float = Field(
        default=2.0,
        ge=1.0,
        description="Largest magnification an automatic motion may use"
    )
    auto_zoom: bool = Field(
        default=True,
        description="Whether the motion list is generated from recorded events"
    )
    min_zoom_duration_ms: float = Field(default=500.0, gt=0)
    max_zoom_duration_ms: float = Field(default=1500.0, gt=0)


class SpotlightSettings(BaseModel):
    """Spotlight track configuration."""
    dim_opacity: float = Field(
        default=0.5,
        ge=0.0,
        le=1.0,
        description="Background dim (0 = none, 1 = black)"
    )
    enlarge_scale: float = Field(
        default=1.1,
        gt=0,
        description="Scale applied to the highlighted region"
    )
    transition_duration_ms: float = Field(
        default=300.0,
        ge=0,
        description="Fade in/out duration"
    )

    @property
    def min_duration_ms(self) -> float:
        """Shortest spotlight that still fits both transitions."""
        return self.transition_duration_ms * 2 + 100


class ScreenSettings(BaseModel):
    """Placement of the screen recording on the output canvas."""
    padding: float = Field(
        default=0.03,
        ge=0.0,
        lt=0.5,
        description="Padding as a fraction of the output size on each side"
    )
    crop: Rect | None = Field(
        default=None,
        description="Crop applied to the source video (source coordinates)"
    )


class ProjectSettings(BaseModel):
    output_size: Size = Field(default_factory=lambda: Size(width=1920, height=1080))
    frame_rate: float = Field(default=30.0, gt=0)
    zoom: ZoomSettings = Field(default_factory=ZoomSettings)
    spotlight: SpotlightSettings = Field(default_factory=SpotlightSettings)
    screen: ScreenSettings = Field(default_factory=ScreenSettings)


# =============================================================================
# SOURCES
# =============================================================================


class SourceMetadata(BaseModel):
    """Metadata of an immutable imported media asset."""
    id: str = Field(default_factory=new_id)
    type: Literal["video", "audio", "image"] = "video"
    name: str = ""
    duration_ms: float = Field(ge=0)
    size: Size
    fps: float | None = None
    has_audio: bool = False


# =============================================================================
# PROJECT
# =============================================================================


class Project(BaseModel):
    """Root entity of the editor: settings plus the timeline."""
    id: str = Field(default_factory=new_id)
    name: str = Field(default="Untitled Project")
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    settings: ProjectSettings = Field(default_factory=ProjectSettings)
    timeline: Timeline = Field(default_factory=Timeline)

    def referenced_source_ids(self) -> list[str]:
        ids = [self.timeline.screen_source_id]
        if self.timeline.camera_source_id:
            ids.append(self.timeline.camera_source_id)
        return [i for i in ids if i]


class UiSelection(BaseModel):
    """
    UI focus restored together with the project on undo/redo.

    Stored next to each history entry so undoing a deletion also
    brings back the selection that pointed at the deleted item.
    """
    selected_window_id: str | None = None
    editing_zoom_id: str | None = None
    editing_spotlight_id: str | None = None
