"""
Bulk CSV import APIs.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, File, Form, Response, UploadFile
from sqlalchemy.orm import Session

from ...core.auth import EDITOR_ROLES, UserContext, require_roles
from ...core.db import get_db
from ...core.errors import PortalError
from ...core.request_limits import enforce_upload_limit, read_upload_text
from ...schemas.imports import ImportCommitRequest, ImportPreviewOut, ImportResultOut, ImportRowOut
from ...services import csv_import
from .errors import to_http


router = APIRouter(prefix="/api/v1/accreditation/import", tags=["accreditation-import"])


@router.get("/template")
def download_template(
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
) -> Response:
    return Response(
        content=csv_import.template_csv(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="accreditation-import-template.csv"'},
    )


@router.post("/preview")
def preview_import(
    project_id: str = Form(...),
    file: UploadFile = File(...),
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
    request=Depends(enforce_upload_limit),
) -> dict:
    text = read_upload_text(file)
    try:
        preview = csv_import.preview_import(db, project_id, text)
    except PortalError as exc:
        raise to_http(exc)
    return ImportPreviewOut(
        project_id=project_id,
        rows=[
            ImportRowOut(
                line_number=row.line_number,
                record={**row.record.as_dict(), "line_number": row.line_number},
                errors=row.errors,
                is_duplicate=row.is_duplicate,
                is_valid=row.is_valid,
            )
            for row in preview.rows
        ],
        total=preview.total,
        valid_count=preview.valid_count,
        invalid_count=preview.invalid_count,
        duplicate_count=preview.duplicate_count,
    ).model_dump()


@router.post("")
def commit_import(
    payload: ImportCommitRequest,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*EDITOR_ROLES)),
) -> dict:
    try:
        result = csv_import.commit_import(
            db,
            payload.project_id,
            [r.model_dump() for r in payload.records],
            skip_duplicates=payload.skip_duplicates,
            actor=user.actor,
        )
    except PortalError as exc:
        raise to_http(exc)
    return ImportResultOut(
        imported=result.imported,
        skipped=result.skipped,
        failed=result.failed,
        total=result.total,
        errors=result.errors,
    ).model_dump()
