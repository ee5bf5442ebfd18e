"""
Approval workflow for accreditation records.

DRAFT -> PENDING -> APPROVED | REJECTED. An approved record may later be
revoked; revocation is stamped on the record and leaves the status as
APPROVED. Rejected and revoked records are terminal.
"""

from __future__ import annotations

import logging
import secrets
from typing import Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ConflictError, InvalidTransitionError, RecordValidationError
from ..core.timeutil import utc_now
from ..models.accreditation import Accreditation, AccreditationStatus
from .accreditations import add_history

_logger = logging.getLogger("lifecycle")

TOKEN_ATTEMPTS = 10

DRAFT = AccreditationStatus.DRAFT.value
PENDING = AccreditationStatus.PENDING.value
APPROVED = AccreditationStatus.APPROVED.value
REJECTED = AccreditationStatus.REJECTED.value


def generate_qr_token(db: Session) -> str:
    for _ in range(TOKEN_ATTEMPTS):
        token = secrets.token_hex(16)
        exists = db.query(Accreditation.id).filter(Accreditation.qr_token == token).first()
        if not exists:
            return token
    raise ConflictError("Could not generate a unique QR token")


def _require_status(record: Accreditation, action: str, *allowed: str) -> None:
    if record.status not in allowed:
        raise InvalidTransitionError(action, record.status)


def _require_reason(reason: Optional[str], message: str) -> str:
    cleaned = (reason or "").strip()
    if not cleaned:
        raise RecordValidationError([message])
    return cleaned


def _commit_transition(
    db: Session,
    record: Accreditation,
    *,
    action: str,
    old_status: str,
    actor: Optional[str],
    notes: Optional[str] = None,
) -> Accreditation:
    add_history(
        db,
        record,
        action=action,
        old_status=old_status,
        new_status=record.status,
        actor=actor,
        notes=notes,
    )
    db.add(record)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Could not {action.lower()} accreditation {record.accreditation_number}")
    db.refresh(record)
    _logger.info(
        "Accreditation %s number=%s %s->%s by=%s",
        action.lower(),
        record.accreditation_number,
        old_status,
        record.status,
        actor,
    )
    return record


def submit(db: Session, record: Accreditation, *, actor: Optional[str]) -> Accreditation:
    _require_status(record, "submit", DRAFT)
    old_status = record.status
    record.status = PENDING
    record.submitted_by = actor
    record.submitted_at = utc_now()
    return _commit_transition(db, record, action="SUBMITTED", old_status=old_status, actor=actor)


def approve(
    db: Session,
    record: Accreditation,
    *,
    actor: Optional[str],
    notes: Optional[str] = None,
) -> Accreditation:
    _require_status(record, "approve", PENDING)
    old_status = record.status
    if not record.qr_token:
        record.qr_token = generate_qr_token(db)
    record.status = APPROVED
    record.approved_by = actor
    record.approved_at = utc_now()
    return _commit_transition(
        db, record, action="APPROVED", old_status=old_status, actor=actor, notes=(notes or "").strip() or None
    )


def reject(db: Session, record: Accreditation, *, actor: Optional[str], reason: Optional[str]) -> Accreditation:
    _require_status(record, "reject", PENDING)
    reason = _require_reason(reason, "Rejection reason is required")
    old_status = record.status
    record.status = REJECTED
    record.rejected_by = actor
    record.rejected_at = utc_now()
    record.rejection_reason = reason
    return _commit_transition(db, record, action="REJECTED", old_status=old_status, actor=actor, notes=reason)


def revoke(db: Session, record: Accreditation, *, actor: Optional[str], reason: Optional[str]) -> Accreditation:
    _require_status(record, "revoke", APPROVED)
    if record.is_revoked:
        raise InvalidTransitionError("revoke", record.status, "Accreditation is already revoked")
    reason = _require_reason(reason, "Revocation reason is required")
    record.revoked_by = actor
    record.revoked_at = utc_now()
    record.revocation_reason = reason
    # Status stays APPROVED; history still records the revocation.
    return _commit_transition(db, record, action="REVOKED", old_status=APPROVED, actor=actor, notes=reason)
