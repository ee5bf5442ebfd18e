"""
Accreditation record APIs: CRUD, approval workflow, history, badge QR,
CSV export and autocomplete.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from ...core.auth import ALL_ROLES, APPROVER_ROLES, EDITOR_ROLES, ROLE_ADMIN, UserContext, require_roles
from ...core.db import get_db
from ...core.errors import PortalError
from ...core.pagination import DEFAULT_PAGE_SIZE, clamp_page_size, page_response
from ...schemas.accreditation import (
    AccreditationCreate,
    AccreditationOut,
    AccreditationUpdate,
    ApproveRequest,
    HistoryOut,
    RejectRequest,
    RevokeRequest,
)
from ...services import accreditations as accreditation_service
from ...services import lifecycle
from ...services.badges import badge_qr_png
from .errors import to_http


router = APIRouter(prefix="/api/v1/accreditation/records", tags=["accreditation-records"])


def _load(db: Session, record_id: str):
    record = accreditation_service.get_accreditation(db, record_id)
    if not record:
        raise HTTPException(status_code=404, detail="Accreditation not found")
    return record


def _out(record) -> dict:
    return AccreditationOut.model_validate(record).model_dump()


@router.get("")
def list_records(
    response: Response,
    project_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    organization: Optional[str] = Query(None),
    q: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    page_size = clamp_page_size(page_size)
    items, total = accreditation_service.list_accreditations(
        db,
        project_id=project_id,
        status=status,
        organization=organization,
        query=q,
        page=page,
        page_size=page_size,
    )
    return page_response(response, items, total=total, page=page, page_size=page_size, serialize=_out)


@router.post("", status_code=201)
def create_record(
    payload: AccreditationCreate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
) -> dict:
    try:
        record = accreditation_service.create_accreditation(db, payload.model_dump(), actor=user.actor)
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.get("/export")
def export_records(
    project_id: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(ROLE_ADMIN)),
) -> Response:
    content = accreditation_service.export_accreditations_csv(db, project_id=project_id, status=status)
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="accreditations.csv"'},
    )


@router.get("/autocomplete/organizations")
def autocomplete_organizations(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    return {"organizations": accreditation_service.suggest_organizations(db, q)}


@router.get("/autocomplete/jobtitles")
def autocomplete_job_titles(
    q: Optional[str] = Query(None),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    return {"job_titles": accreditation_service.suggest_job_titles(db, q)}


@router.get("/{record_id}")
def get_record(
    record_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    return _out(_load(db, record_id))


@router.patch("/{record_id}")
def update_record(
    record_id: str,
    payload: AccreditationUpdate,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
) -> dict:
    record = _load(db, record_id)
    try:
        record = accreditation_service.update_accreditation(
            db, record, payload.model_dump(exclude_unset=True), actor=user.actor
        )
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.post("/{record_id}/submit")
def submit_record(
    record_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
) -> dict:
    record = _load(db, record_id)
    try:
        record = lifecycle.submit(db, record, actor=user.actor)
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.post("/{record_id}/approve")
def approve_record(
    record_id: str,
    payload: Optional[ApproveRequest] = None,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*APPROVER_ROLES)),
) -> dict:
    record = _load(db, record_id)
    try:
        record = lifecycle.approve(db, record, actor=user.actor, notes=payload.notes if payload else None)
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.post("/{record_id}/reject")
def reject_record(
    record_id: str,
    payload: RejectRequest,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*APPROVER_ROLES)),
) -> dict:
    record = _load(db, record_id)
    try:
        record = lifecycle.reject(db, record, actor=user.actor, reason=payload.reason)
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.post("/{record_id}/revoke")
def revoke_record(
    record_id: str,
    payload: RevokeRequest,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*APPROVER_ROLES)),
) -> dict:
    record = _load(db, record_id)
    try:
        record = lifecycle.revoke(db, record, actor=user.actor, reason=payload.reason)
    except PortalError as exc:
        raise to_http(exc)
    return _out(record)


@router.get("/{record_id}/history")
def get_record_history(
    record_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    record = _load(db, record_id)
    entries = accreditation_service.list_history(db, record)
    return {"items": [HistoryOut.model_validate(e).model_dump() for e in entries]}


@router.get("/{record_id}/qr")
def get_record_qr(
    record_id: str,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> Response:
    record = _load(db, record_id)
    try:
        png = badge_qr_png(record)
    except PortalError as exc:
        raise to_http(exc)
    return Response(content=png, media_type="image/png")
