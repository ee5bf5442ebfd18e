"""
Scan log APIs (read-only).
"""

from __future__ import annotations

from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, Query, Response
from sqlalchemy.orm import Session

from ...core.auth import ALL_ROLES, UserContext, require_roles
from ...core.db import get_db
from ...core.pagination import DEFAULT_PAGE_SIZE, clamp_page_size, page_response
from ...schemas.verification import ScanOut
from ...services import verification as verification_service


router = APIRouter(prefix="/api/v1/accreditation/scans", tags=["accreditation-scans"])


@router.get("")
def list_scans(
    response: Response,
    accreditation_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    was_valid: Optional[bool] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(DEFAULT_PAGE_SIZE, ge=1),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> dict:
    page_size = clamp_page_size(page_size)
    items, total = verification_service.list_scans(
        db,
        accreditation_id=accreditation_id,
        project_id=project_id,
        was_valid=was_valid,
        date_from=date_from,
        date_to=date_to,
        page=page,
        page_size=page_size,
    )
    return page_response(
        response,
        items,
        total=total,
        page=page,
        page_size=page_size,
        serialize=lambda s: ScanOut.model_validate(s).model_dump(),
    )


@router.get("/export")
def export_scans(
    accreditation_id: Optional[str] = Query(None),
    project_id: Optional[str] = Query(None),
    was_valid: Optional[bool] = Query(None),
    date_from: Optional[datetime] = Query(None),
    date_to: Optional[datetime] = Query(None),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*ALL_ROLES)),
) -> Response:
    content = verification_service.export_scans_csv(
        db,
        accreditation_id=accreditation_id,
        project_id=project_id,
        was_valid=was_valid,
        date_from=date_from,
        date_to=date_to,
    )
    return Response(
        content=content,
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="accreditation-scans.csv"'},
    )
