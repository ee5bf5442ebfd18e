"""
Badge verification at the gate.

A scan payload is either the full QR URL (".../verify/<token>") or a
token / accreditation number typed by hand. Resolution tries the QR
token first, then the accreditation number. Every resolved scan appends
exactly one row to the scan log; unknown tokens log nothing.
"""

from __future__ import annotations

import csv
import datetime
import io
import logging
import re
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from ..core.errors import ScanInputError
from ..core.pagination import paginate
from ..core.timeutil import ensure_utc, utc_now
from ..models.accreditation import PHASES, Accreditation, AccreditationStatus
from ..models.project import AccreditationProject
from ..models.scan import AccreditationScan

_logger = logging.getLogger("verification")

VERIFY_URL_PATTERN = re.compile(r"/verify/([A-Za-z0-9-]+)$")
MANUAL_TOKEN_PATTERN = re.compile(r"^[A-Za-z0-9-]+$")
MAX_MANUAL_LENGTH = 50

REASON_VALID = "VALID"
REASON_NOT_APPROVED = "NOT_APPROVED"
REASON_REJECTED = "REJECTED"
REASON_REVOKED = "REVOKED"
REASON_NO_ACCESS_PHASES = "NO_ACCESS_PHASES"
REASON_OUTSIDE_WINDOW = "OUTSIDE_ACCESS_WINDOW"


@dataclass(frozen=True)
class ScanLookup:
    token: str
    accreditation_number: str


@dataclass(frozen=True)
class AccessDecision:
    was_valid: bool
    valid_phases: list[str]
    reason: str


@dataclass
class ScanContext:
    scanned_by: Optional[str] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None


@dataclass
class VerificationResult:
    record: Accreditation
    project: AccreditationProject
    decision: AccessDecision
    scan: AccreditationScan


def interpret_scan_payload(raw: Optional[str]) -> ScanLookup:
    text = (raw or "").strip()
    if not text:
        raise ScanInputError("Scan input is empty")
    match = VERIFY_URL_PATTERN.search(text)
    if match:
        candidate = match.group(1)
    else:
        if text.lower().startswith(("http://", "https://")):
            raise ScanInputError("QR code does not contain a verification link")
        if len(text) > MAX_MANUAL_LENGTH:
            raise ScanInputError("Scan input is too long")
        if not MANUAL_TOKEN_PATTERN.match(text):
            raise ScanInputError("Scan input may only contain letters, digits and dashes")
        candidate = text
    return ScanLookup(token=candidate, accreditation_number=candidate.upper())


def evaluate_access(
    record: Accreditation,
    project: AccreditationProject,
    now: datetime.datetime,
) -> AccessDecision:
    """Decide whether a badge grants access at `now`.

    Valid phases are reported whatever the record status, so a scan in a
    gap between phases still says which phases the badge covers.
    """
    now = ensure_utc(now)
    granted = [phase for phase in PHASES if record.has_phase_access(phase)]
    valid_phases: list[str] = []
    for phase in granted:
        start, end = record.phase_override(phase)
        if start is None or end is None:
            start, end = project.phase_window(phase)
        if start is None or end is None:
            continue
        if ensure_utc(start) <= now <= ensure_utc(end):
            valid_phases.append(phase)

    if record.status == AccreditationStatus.REJECTED.value:
        reason = REASON_REJECTED
    elif record.status != AccreditationStatus.APPROVED.value:
        reason = REASON_NOT_APPROVED
    elif record.is_revoked:
        reason = REASON_REVOKED
    elif not granted:
        reason = REASON_NO_ACCESS_PHASES
    elif not valid_phases:
        reason = REASON_OUTSIDE_WINDOW
    else:
        reason = REASON_VALID
    return AccessDecision(was_valid=reason == REASON_VALID, valid_phases=valid_phases, reason=reason)


def resolve_record(db: Session, lookup: ScanLookup) -> Optional[Accreditation]:
    record = db.query(Accreditation).filter(Accreditation.qr_token == lookup.token).first()
    if record is not None:
        return record
    return (
        db.query(Accreditation)
        .filter(Accreditation.accreditation_number == lookup.accreditation_number)
        .first()
    )


def verify_token(
    db: Session,
    token: Optional[str],
    context: Optional[ScanContext] = None,
    now: Optional[datetime.datetime] = None,
) -> Optional[VerificationResult]:
    lookup = interpret_scan_payload(token)
    record = resolve_record(db, lookup)
    if record is None:
        _logger.debug("Scan lookup miss token_len=%s", len(lookup.token))
        return None

    context = context or ScanContext()
    scanned_at = ensure_utc(now) if now is not None else utc_now()
    project = record.project
    decision = evaluate_access(record, project, scanned_at)
    scan = AccreditationScan(
        accreditation_id=record.id,
        scanned_at=scanned_at,
        was_valid=decision.was_valid,
        valid_phases=list(decision.valid_phases),
        reason=decision.reason,
        scanned_by=context.scanned_by,
        device=(context.device or "")[:512] or None,
        ip_address=context.ip_address,
        location=context.location,
        notes=context.notes,
    )
    db.add(scan)
    db.commit()
    db.refresh(scan)
    _logger.info(
        "Badge scanned number=%s valid=%s reason=%s phases=%s by=%s",
        record.accreditation_number,
        decision.was_valid,
        decision.reason,
        ",".join(decision.valid_phases) or "-",
        context.scanned_by,
    )
    return VerificationResult(record=record, project=project, decision=decision, scan=scan)


def _scan_query(
    db: Session,
    *,
    accreditation_id: Optional[str] = None,
    project_id: Optional[str] = None,
    was_valid: Optional[bool] = None,
    date_from: Optional[datetime.datetime] = None,
    date_to: Optional[datetime.datetime] = None,
):
    q = db.query(AccreditationScan).join(Accreditation, Accreditation.id == AccreditationScan.accreditation_id)
    if accreditation_id:
        q = q.filter(AccreditationScan.accreditation_id == accreditation_id)
    if project_id:
        q = q.filter(Accreditation.project_id == project_id)
    if was_valid is not None:
        q = q.filter(AccreditationScan.was_valid == was_valid)
    if date_from:
        q = q.filter(AccreditationScan.scanned_at >= ensure_utc(date_from))
    if date_to:
        q = q.filter(AccreditationScan.scanned_at <= ensure_utc(date_to))
    return q


def list_scans(
    db: Session,
    *,
    page: int = 1,
    page_size: int = 20,
    **filters,
) -> tuple[list[AccreditationScan], int]:
    return paginate(_scan_query(db, **filters), AccreditationScan.scanned_at.desc(), page=page, page_size=page_size)


EXPORT_HEADERS = [
    "scanned_at",
    "accreditation_number",
    "first_name",
    "last_name",
    "organization",
    "access_group",
    "was_valid",
    "valid_phases",
    "reason",
    "scanned_by",
    "location",
    "device",
    "ip_address",
    "notes",
]


def export_scans_csv(db: Session, **filters) -> str:
    scans = _scan_query(db, **filters).order_by(AccreditationScan.scanned_at.desc()).all()
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for scan in scans:
        record = scan.accreditation
        writer.writerow(
            [
                ensure_utc(scan.scanned_at).isoformat(),
                record.accreditation_number,
                record.first_name,
                record.last_name,
                record.organization,
                record.access_group,
                "yes" if scan.was_valid else "no",
                " ".join(scan.valid_phases or []),
                scan.reason,
                scan.scanned_by or "",
                scan.location or "",
                scan.device or "",
                scan.ip_address or "",
                scan.notes or "",
            ]
        )
    return buffer.getvalue()
