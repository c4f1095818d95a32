"""
Timeline Handler - REST API endpoints for timeline edits and queries.

Every mutating endpoint answers with:
{
    "ok": true,
    "changed": <bool>,
    "project": <Project>
}

Edits that cannot be satisfied (overlaps, too short, unknown ids) are not
errors: they return changed=false and the unchanged project. The project is
persisted only when changed.
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from database.base import get_db
from dependencies.project import require_project
from models.api_models import (
    AddMotionRequest,
    AddSpotlightRequest,
    AddWindowRequest,
    DragActionRequest,
    FrameResponse,
    MoveWindowRequest,
    MutationResponse,
    ResizeWindowRequest,
    SettingsPatchRequest,
    SplitWindowRequest,
    UpdateMotionRequest,
    UpdateSpotlightRequest,
    UpdateWindowRequest,
    WindowSpeedRequest,
)
from models.project_models import Project
from operators import timeline_editor
from operators.action_bounds import TrackKind
from operators.project_operator import (
    InvalidOperationError,
    ProjectNotFoundError,
    SourceNotFoundError,
    TimelineError,
    load_events,
    load_sources,
    save_project,
)
from operators.timeline_editor import RecordingContext


router = APIRouter(prefix="/projects/{project_id}/timeline", tags=["timeline"])


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================


def handle_timeline_error(e: Exception):
    """Convert editor exceptions to HTTP exceptions."""
    if isinstance(e, (ProjectNotFoundError, SourceNotFoundError)):
        raise HTTPException(status_code=404, detail=str(e))
    elif isinstance(e, InvalidOperationError):
        raise HTTPException(status_code=400, detail=str(e))
    else:
        raise HTTPException(status_code=500, detail=f"Internal error: {str(e)}")


def get_recording(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
) -> RecordingContext:
    """Source metadata and recorded events the zoom schedule is derived from."""
    sources = load_sources(db, project.referenced_source_ids())
    events = None
    if project.timeline.screen_source_id:
        events = load_events(db, project.timeline.screen_source_id)
    return RecordingContext(sources=sources, events=events)


def commit(db: Session, result: tuple[Project, bool]) -> MutationResponse:
    project, changed = result
    if changed:
        save_project(db, project)
    return MutationResponse(ok=True, changed=changed, project=project)


# =============================================================================
# QUERIES
# =============================================================================


@router.get("/frame", response_model=FrameResponse)
async def frame_get(
    output_ms: float = Query(...),
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
):
    """Mapped source instant, ruler instant and active actions at an output instant."""
    frame = timeline_editor.frame_at(project, output_ms, recording.screen_source(project))
    return FrameResponse(ok=True, frame=frame)


# =============================================================================
# WINDOWS
# =============================================================================


@router.post("/windows", response_model=MutationResponse)
async def window_add(
    request: AddWindowRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.add_window(
            project, request.start_ms, request.end_ms, request.speed, recording=recording
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.delete("/windows", response_model=MutationResponse)
async def window_clear(
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.clear_windows(project, recording=recording))
    except TimelineError as e:
        handle_timeline_error(e)


@router.patch("/windows/{window_id}", response_model=MutationResponse)
async def window_update(
    window_id: str,
    request: UpdateWindowRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.update_window(
            project,
            window_id,
            start_ms=request.start_ms,
            end_ms=request.end_ms,
            speed=request.speed,
            recording=recording,
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/windows/{window_id}/split", response_model=MutationResponse)
async def window_split(
    window_id: str,
    request: SplitWindowRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    """Split a window at a source (or output) instant."""
    try:
        return commit(db, timeline_editor.split_window(
            project, window_id, request.at_ms, request.domain, recording=recording
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/windows/{window_id}/resize", response_model=MutationResponse)
async def window_resize(
    window_id: str,
    request: ResizeWindowRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.resize_window(
            project, window_id, request.edge, request.delta_ms, recording=recording
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/windows/{window_id}/move", response_model=MutationResponse)
async def window_move(
    window_id: str,
    request: MoveWindowRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.move_window(
            project, window_id, request.delta_ms, recording=recording
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/windows/{window_id}/speed", response_model=MutationResponse)
async def window_speed(
    window_id: str,
    request: WindowSpeedRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.set_window_speed(
            project, window_id, request.speed, recording=recording
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.delete("/windows/{window_id}", response_model=MutationResponse)
async def window_remove(
    window_id: str,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.remove_window(project, window_id, recording=recording))
    except TimelineError as e:
        handle_timeline_error(e)


# =============================================================================
# ZOOM TRACK
# =============================================================================


@router.post("/motions", response_model=MutationResponse)
async def motion_add(
    request: AddMotionRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    """Add a manual zoom. Switches automatic zoom off."""
    try:
        return commit(db, timeline_editor.add_motion(
            project, request.output_end_time_ms, request.duration_ms, request.rect
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.patch("/motions/{motion_id}", response_model=MutationResponse)
async def motion_update(
    motion_id: str,
    request: UpdateMotionRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.update_motion(
            project,
            motion_id,
            output_end_time_ms=request.output_end_time_ms,
            duration_ms=request.duration_ms,
            rect=request.rect,
            reason=request.reason,
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/motions/{motion_id}/drag", response_model=MutationResponse)
async def motion_drag(
    motion_id: str,
    request: DragActionRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.drag_action(
            project, TrackKind.ZOOM, motion_id, request.delta_ms, request.edge
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.delete("/motions/{motion_id}", response_model=MutationResponse)
async def motion_delete(
    motion_id: str,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.delete_motion(project, motion_id))
    except TimelineError as e:
        handle_timeline_error(e)


# =============================================================================
# SPOTLIGHT TRACK
# =============================================================================


@router.post("/spotlights", response_model=MutationResponse)
async def spotlight_add(
    request: AddSpotlightRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.add_spotlight(
            project,
            request.output_start_time_ms,
            request.output_end_time_ms,
            request.source_rect,
            enlarge_scale=request.enlarge_scale,
            corner_radii=request.corner_radii,
            reason=request.reason,
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.patch("/spotlights/{spotlight_id}", response_model=MutationResponse)
async def spotlight_update(
    spotlight_id: str,
    request: UpdateSpotlightRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    updates = {
        key: getattr(request, key)
        for key in request.model_fields_set
        if getattr(request, key) is not None
    }
    try:
        return commit(db, timeline_editor.update_spotlight(project, spotlight_id, **updates))
    except TimelineError as e:
        handle_timeline_error(e)


@router.post("/spotlights/{spotlight_id}/drag", response_model=MutationResponse)
async def spotlight_drag(
    spotlight_id: str,
    request: DragActionRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.drag_action(
            project, TrackKind.SPOTLIGHT, spotlight_id, request.delta_ms, request.edge
        ))
    except TimelineError as e:
        handle_timeline_error(e)


@router.delete("/spotlights/{spotlight_id}", response_model=MutationResponse)
async def spotlight_delete(
    spotlight_id: str,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    try:
        return commit(db, timeline_editor.delete_spotlight(project, spotlight_id))
    except TimelineError as e:
        handle_timeline_error(e)


# =============================================================================
# SETTINGS
# =============================================================================


@router.patch("/settings", response_model=MutationResponse)
async def settings_update(
    request: SettingsPatchRequest,
    project: Project = Depends(require_project),
    recording: RecordingContext = Depends(get_recording),
    db: Session = Depends(get_db),
):
    """Deep-merge a partial settings document; zoom-relevant changes re-derive the schedule."""
    try:
        return commit(db, timeline_editor.update_settings(project, request.patch, recording=recording))
    except TimelineError as e:
        handle_timeline_error(e)
