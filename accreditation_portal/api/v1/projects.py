"""
Accreditation project APIs.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ...core.auth import ALL_ROLES, ROLE_ADMIN, UserContext, require_roles
from ...core.db import get_db
from ...core.errors import PortalError
from ...core.pagination import DEFAULT_PAGE_SIZE, clamp_page_size, page_response
from ...schemas.project import ProjectCreate, ProjectOut, ProjectReportOut, ProjectStatsOut, ProjectUpdate
from ...services import projects as project_service
from .errors import to_http


router = APIRouter(prefix="/api/v1/accreditation/projects", tags=["accreditation-projects"])

WINDOW_FIELDS = ("bump_in_start", "bump_in_end", "live_start", "live_end", "bump_out_start", "bump_out_end")


@router.get("")
def list_projects(
    response: Response,
    is_active: Optional[bool] = Query(None),
    q: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    page_size = clamp_page_size(page_size)
    items, total = project_service.list_projects(db, is_active=is_active, query=q, page=page, page_size=page_size)
    return page_response(
        response,
        items,
        total=total,
        page=page,
        page_size=page_size,
        serialize=lambda p: ProjectOut.model_validate(p).model_dump(),
    )


@router.post("", status_code=201)
def create_project(
    payload: ProjectCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    try:
        project = project_service.create_project(
            db,
            name=payload.name,
            code=payload.code,
            windows={key: getattr(payload, key) for key in WINDOW_FIELDS},
            access_groups=payload.access_groups,
            is_active=payload.is_active,
            actor=user.actor,
        )
    except PortalError as exc:
        raise to_http(exc)
    return ProjectOut.model_validate(project).model_dump()


@router.get("/{project_id}")
def get_project(
    project_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    project = project_service.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectOut.model_validate(project).model_dump()


@router.patch("/{project_id}")
def update_project(
    project_id: str,
    payload: ProjectUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(ROLE_ADMIN)),
) -> dict:
    project = project_service.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    try:
        project = project_service.update_project(db, project, payload.model_dump(exclude_unset=True))
    except PortalError as exc:
        raise to_http(exc)
    return ProjectOut.model_validate(project).model_dump()


@router.get("/{project_id}/stats")
def get_project_stats(
    project_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    project = project_service.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectStatsOut(**project_service.project_stats(db, project)).model_dump()


@router.get("/{project_id}/reports")
def get_project_report(
    project_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    project = project_service.get_project(db, project_id)
    if not project:
        raise HTTPException(status_code=404, detail="Project not found")
    return ProjectReportOut(**project_service.project_report(db, project)).model_dump()
