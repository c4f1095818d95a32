from typing import Any

from pydantic import BaseModel, Field

from models.project_models import Project, ProjectSettings, SourceMetadata
from models.timeline_models import CornerRadii, FrameState, Rect, UserEvents
from operators.action_bounds import ActionEdge
from operators.window_editor import TimeDomain, WindowEdge


# =============================================================================
# PROJECTS
# =============================================================================


class ProjectCreateRequest(BaseModel):
    name: str = "Untitled Project"
    source: SourceMetadata
    events: UserEvents | None = None
    settings: ProjectSettings | None = None


class ProjectSummary(BaseModel):
    project_id: str
    project_name: str
    screen_source_id: str | None = None


class ProjectListResponse(BaseModel):
    ok: bool
    projects: list[ProjectSummary]


class ProjectResponse(BaseModel):
    ok: bool
    project: Project
    output_duration_ms: float


class ProjectDeleteResponse(BaseModel):
    ok: bool


class EventsUploadRequest(BaseModel):
    events: UserEvents


class FrameResponse(BaseModel):
    ok: bool
    frame: FrameState


class MutationResponse(BaseModel):
    """Response of every timeline mutation; the project is persisted only when changed."""
    ok: bool
    changed: bool
    project: Project


# =============================================================================
# WINDOWS
# =============================================================================


class AddWindowRequest(BaseModel):
    start_ms: float = Field(ge=0)
    end_ms: float = Field(gt=0)
    speed: float = Field(default=1.0, gt=0)


class UpdateWindowRequest(BaseModel):
    start_ms: float | None = None
    end_ms: float | None = None
    speed: float | None = Field(default=None, gt=0)


class SplitWindowRequest(BaseModel):
    at_ms: float
    domain: TimeDomain = TimeDomain.SOURCE


class ResizeWindowRequest(BaseModel):
    edge: WindowEdge
    delta_ms: float = Field(description="Delta in source time")


class MoveWindowRequest(BaseModel):
    delta_ms: float = Field(description="Delta in source time")


class WindowSpeedRequest(BaseModel):
    speed: float = Field(gt=0)


# =============================================================================
# TRACKS
# =============================================================================


class AddMotionRequest(BaseModel):
    output_end_time_ms: float
    duration_ms: float = Field(gt=0)
    rect: Rect


class UpdateMotionRequest(BaseModel):
    output_end_time_ms: float | None = None
    duration_ms: float | None = Field(default=None, gt=0)
    rect: Rect | None = None
    reason: str | None = None


class AddSpotlightRequest(BaseModel):
    output_start_time_ms: float = Field(ge=0)
    output_end_time_ms: float
    source_rect: Rect
    enlarge_scale: float | None = Field(default=None, gt=0)
    corner_radii: CornerRadii | None = None
    reason: str = ""


class UpdateSpotlightRequest(BaseModel):
    output_start_time_ms: float | None = None
    output_end_time_ms: float | None = None
    source_rect: Rect | None = None
    enlarge_scale: float | None = Field(default=None, gt=0)
    corner_radii: CornerRadii | None = None
    reason: str | None = None


class DragActionRequest(BaseModel):
    delta_ms: float = Field(description="Delta in output time")
    edge: ActionEdge | None = Field(default=None, description="None moves the whole action")


class SettingsPatchRequest(BaseModel):
    patch: dict[str, Any] = Field(description="Partial ProjectSettings document, deep-merged")
