"""
Badge verification APIs used by gate scanners.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session

from ...core.auth import SCANNER_ROLES, UserContext, require_roles
from ...core.db import get_db
from ...core.errors import PortalError
from ...schemas.accreditation import AccreditationSummary
from ...schemas.verification import ScanRequest, VerificationOut
from ...services.verification import ScanContext, VerificationResult, verify_token
from .errors import to_http


router = APIRouter(prefix="/api/v1/accreditation/verify", tags=["accreditation-verify"])


def _client_ip(request: Request) -> Optional[str]:
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip() or None
    return request.client.host if request.client else None


def _context(request: Request, user: UserContext, location=None, notes=None) -> ScanContext:
    return ScanContext(
        scanned_by=user.actor,
        device=request.headers.get("user-agent"),
        ip_address=_client_ip(request),
        location=location,
        notes=notes,
    )


def _verify(db: Session, payload: str, context: ScanContext) -> dict:
    try:
        result: Optional[VerificationResult] = verify_token(db, payload, context)
    except PortalError as exc:
        raise to_http(exc)
    if result is None:
        raise HTTPException(status_code=404, detail="NOT_FOUND")
    return VerificationOut(
        accreditation=AccreditationSummary.model_validate(result.record),
        project_name=result.project.name if result.project else None,
        was_valid=result.decision.was_valid,
        valid_phases=result.decision.valid_phases,
        reason=result.decision.reason,
        scan_id=result.scan.id,
        scanned_at=result.scan.scanned_at,
    ).model_dump()


@router.post("/scan")
def scan_badge(
    payload: ScanRequest,
    request: Request,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*SCANNER_ROLES)),
) -> dict:
    return _verify(db, payload.payload, _context(request, user, payload.location, payload.notes))


@router.get("/{token}")
def verify_badge(
    token: str,
    request: Request,
    db: Session = Depends(get_db),
    user: UserContext = Depends(require_roles(*SCANNER_ROLES)),
) -> dict:
    return _verify(db, token, _context(request, user))
