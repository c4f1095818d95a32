from sqlalchemy import JSON, Column, DateTime, ForeignKey, Index, String
from sqlalchemy.sql import func

from database.base import Base


class ProjectRecord(Base):
    __tablename__ = "projects"

    project_id = Column(String(36), primary_key=True, index=True)
    project_name = Column(String, nullable=False)
    screen_source_id = Column(String(36), nullable=True)
    # Full Project document (settings + timeline) as dumped by pydantic
    snapshot = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    __table_args__ = (Index("ix_projects_updated_at", updated_at),)

    def __repr__(self):
        return f"<ProjectRecord project_id={self.project_id} project_name={self.project_name} updated_at={self.updated_at}>"


class SourceRecord(Base):
    __tablename__ = "sources"

    source_id = Column(String(36), primary_key=True, index=True)
    source_type = Column(String(16), nullable=False)
    # SourceMetadata document
    source_metadata = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<SourceRecord source_id={self.source_id} source_type={self.source_type}>"


class RecordingEventsRecord(Base):
    __tablename__ = "recording_events"

    source_id = Column(
        String(36), ForeignKey("sources.source_id", ondelete="CASCADE"), primary_key=True
    )
    # UserEvents document, timestamps in source time
    events = Column(JSON, nullable=False)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    def __repr__(self):
        return f"<RecordingEventsRecord source_id={self.source_id}>"
