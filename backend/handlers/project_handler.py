import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from database.base import get_db
from dependencies.project import require_project
from models.api_models import (
    EventsUploadRequest,
    MutationResponse,
    ProjectCreateRequest,
    ProjectDeleteResponse,
    ProjectListResponse,
    ProjectResponse,
    ProjectSummary,
)
from models.project_models import Project
from operators import timeline_editor
from operators.project_operator import (
    SourceNotFoundError,
    create_project_from_source,
    delete_project,
    list_projects,
    load_sources,
    save_events,
    save_project,
)
from operators.timeline_editor import RecordingContext, get_output_duration


router = APIRouter(prefix="/projects", tags=["projects"])
logger = logging.getLogger(__name__)


@router.post("/", response_model=ProjectResponse)
async def project_create(
    request: ProjectCreateRequest,
    db: Session = Depends(get_db),
):
    try:
        project = create_project_from_source(
            db,
            request.source,
            events=request.events,
            name=request.name,
            settings=request.settings,
        )
    except Exception:
        db.rollback()
        logger.exception("Failed to create project")
        raise HTTPException(status_code=500, detail="Failed to create project")

    return ProjectResponse(
        ok=True,
        project=project,
        output_duration_ms=get_output_duration(project),
    )


@router.get("/", response_model=ProjectListResponse)
async def project_list(db: Session = Depends(get_db)):
    records = list_projects(db)
    return ProjectListResponse(
        ok=True,
        projects=[
            ProjectSummary(
                project_id=r.project_id,
                project_name=r.project_name,
                screen_source_id=r.screen_source_id,
            )
            for r in records
        ],
    )


@router.get("/{project_id}", response_model=ProjectResponse)
async def project_get(project: Project = Depends(require_project)):
    return ProjectResponse(
        ok=True,
        project=project,
        output_duration_ms=get_output_duration(project),
    )


@router.delete("/{project_id}", response_model=ProjectDeleteResponse)
async def project_delete(
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    return ProjectDeleteResponse(ok=delete_project(db, project.id))


@router.put("/{project_id}/events", response_model=MutationResponse)
async def project_events_upload(
    request: EventsUploadRequest,
    project: Project = Depends(require_project),
    db: Session = Depends(get_db),
):
    """Store the recorded events of the screen source and regenerate automatic zooms."""
    source_id = project.timeline.screen_source_id
    try:
        save_events(db, source_id, request.events)
    except SourceNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    recording = RecordingContext(
        sources=load_sources(db, project.referenced_source_ids()),
        events=request.events,
    )
    updated = timeline_editor.refresh_motions(project, recording)
    changed = updated is not project
    if changed:
        save_project(db, updated)
    return MutationResponse(ok=True, changed=changed, project=updated)
