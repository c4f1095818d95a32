from fastapi import Depends, HTTPException, Path
from sqlalchemy.orm import Session

from database.base import get_db
from models.project_models import Project
from operators.project_operator import ProjectNotFoundError, load_project


def require_project(
    project_id: str = Path(...),
    db: Session = Depends(get_db),
) -> Project:
    try:
        return load_project(db, project_id)
    except ProjectNotFoundError:
        raise HTTPException(status_code=404, detail="Project not found")
