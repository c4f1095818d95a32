"""
Project Operator - persistence of projects, sources and recorded events.

Projects are stored as a JSON snapshot of the pydantic Project document.
Source metadata and the recorded user events of a screen source live in
their own tables and are loaded next to the project when editing.
"""

from __future__ import annotations

import logging

from sqlalchemy.orm import Session as DBSession

from database.models import ProjectRecord, RecordingEventsRecord, SourceRecord
from models.project_models import Project, ProjectSettings, SourceMetadata, utc_now
from models.timeline_models import Timeline, UserEvents
from operators.auto_zoom import recalculate_auto_zooms

logger = logging.getLogger(__name__)


# =============================================================================
# EXCEPTIONS
# =============================================================================


class TimelineError(Exception):
    """Base exception for editor operations."""
    pass


class ProjectNotFoundError(TimelineError):
    """Raised when a project is not found."""
    def __init__(self, project_id: str | None = None):
        self.project_id = project_id
        if project_id:
            super().__init__(f"Project not found: {project_id}")
        else:
            super().__init__("Project not found")


class SourceNotFoundError(TimelineError):
    """Raised when source metadata is not found."""
    def __init__(self, source_id: str):
        self.source_id = source_id
        super().__init__(f"Source not found: {source_id}")


class InvalidOperationError(TimelineError):
    """Raised when a request is malformed."""
    pass


# =============================================================================
# PROJECTS
# =============================================================================


def load_project(db: DBSession, project_id: str) -> Project:
    """
    Load a project snapshot.

    Raises:
        ProjectNotFoundError: If no project with this id exists
    """
    record = db.get(ProjectRecord, project_id)
    if record is None:
        raise ProjectNotFoundError(project_id)
    return Project.model_validate(record.snapshot)


def save_project(db: DBSession, project: Project) -> ProjectRecord:
    """Insert or replace the snapshot of a project."""
    snapshot = project.model_dump(mode="json")
    record = db.get(ProjectRecord, project.id)
    if record is None:
        record = ProjectRecord(
            project_id=project.id,
            created_at=project.created_at,
        )
        db.add(record)

    record.project_name = project.name
    record.screen_source_id = project.timeline.screen_source_id or None
    record.snapshot = snapshot
    record.updated_at = project.updated_at
    db.commit()
    db.refresh(record)

    logger.debug("save_project project_id=%s", project.id)
    return record


def list_projects(db: DBSession) -> list[ProjectRecord]:
    return db.query(ProjectRecord).order_by(ProjectRecord.updated_at.desc()).all()


def delete_project(db: DBSession, project_id: str) -> bool:
    record = db.get(ProjectRecord, project_id)
    if record is None:
        return False
    db.delete(record)
    db.commit()
    return True


# =============================================================================
# SOURCES & EVENTS
# =============================================================================


def save_source(db: DBSession, source: SourceMetadata) -> SourceRecord:
    record = db.get(SourceRecord, source.id)
    if record is None:
        record = SourceRecord(source_id=source.id)
        db.add(record)
    record.source_type = source.type
    record.source_metadata = source.model_dump(mode="json")
    db.commit()
    return record


def load_sources(db: DBSession, source_ids: list[str]) -> dict[str, SourceMetadata]:
    """Metadata of the given sources; unknown ids are skipped with a warning."""
    sources: dict[str, SourceMetadata] = {}
    for source_id in source_ids:
        record = db.get(SourceRecord, source_id)
        if record is None:
            logger.warning("Source %s not found", source_id)
            continue
        sources[source_id] = SourceMetadata.model_validate(record.source_metadata)
    return sources


def save_events(db: DBSession, source_id: str, events: UserEvents) -> RecordingEventsRecord:
    if db.get(SourceRecord, source_id) is None:
        raise SourceNotFoundError(source_id)
    record = db.get(RecordingEventsRecord, source_id)
    if record is None:
        record = RecordingEventsRecord(source_id=source_id)
        db.add(record)
    record.events = events.model_dump(mode="json")
    db.commit()
    return record


def load_events(db: DBSession, source_id: str) -> UserEvents | None:
    record = db.get(RecordingEventsRecord, source_id)
    if record is None:
        return None
    return UserEvents.model_validate(record.events)


# =============================================================================
# CREATION
# =============================================================================


def create_project_from_source(
    db: DBSession,
    source: SourceMetadata,
    events: UserEvents | None = None,
    name: str = "Untitled Project",
    settings: ProjectSettings | None = None,
    camera_source: SourceMetadata | None = None,
) -> Project:
    """
    Create and persist a project for a screen recording.

    The timeline starts with one window covering the whole recording and,
    when events are available, the initial automatic zoom schedule.
    """
    save_source(db, source)
    if camera_source is not None:
        save_source(db, camera_source)
    if events is not None:
        save_events(db, source.id, events)

    now = utc_now()
    project = Project(
        name=name,
        created_at=now,
        updated_at=now,
        settings=settings or ProjectSettings(),
        timeline=Timeline.for_recording(
            screen_source_id=source.id,
            duration_ms=source.duration_ms,
            camera_source_id=camera_source.id if camera_source else None,
        ),
    )

    motions = recalculate_auto_zooms(project, {source.id: source}, events)
    if motions is not project.timeline.viewport_motions:
        project = project.model_copy(
            update={"timeline": project.timeline.model_copy(update={"viewport_motions": list(motions)})}
        )

    save_project(db, project)
    logger.info(
        "Created project project_id=%s source_id=%s motions=%d",
        project.id,
        source.id,
        len(project.timeline.viewport_motions),
    )
    return project
