"""
Accreditation record services: validation, number allocation, CRUD.

Field rules here are shared by single-entry create/edit and by the bulk
importer so a row that previews clean will also commit clean.
"""

from __future__ import annotations

import csv
import datetime
import io
import logging
import re
from typing import Any, Mapping, Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ConflictError, InvalidTransitionError, NotFoundError, RecordValidationError
from ..core.pagination import paginate
from ..core.timeutil import ensure_utc, parse_boundary, parse_date, portal_tz
from ..models.accreditation import (
    PASSPORT_FIELDS,
    PHASES,
    QID_FIELDS,
    Accreditation,
    AccreditationStatus,
    IdentificationType,
)
from ..models.history import AccreditationHistory
from ..models.project import AccreditationProject
from .projects import PHASE_LABELS

_logger = logging.getLogger("accreditations")

NUMBER_PREFIX = "ACC-"
NUMBER_ATTEMPTS = 5
EDITABLE_STATUSES = (AccreditationStatus.DRAFT.value, AccreditationStatus.PENDING.value)

QID_PATTERN = re.compile(r"^\d{11}$")
PASSPORT_PATTERN = re.compile(r"^[A-Za-z0-9]{6,12}$")
_NUMBER_PATTERN = re.compile(r"^ACC-(\d+)$")

PERSON_FIELDS = (
    ("first_name", "First name"),
    ("last_name", "Last name"),
    ("organization", "Organization"),
    ("job_title", "Job title"),
    ("access_group", "Access group"),
)
QID_REQUIRED = (("qid_number", "QID number"), ("qid_expiry", "QID expiry"))
PASSPORT_REQUIRED = (
    ("passport_number", "Passport number"),
    ("passport_country", "Passport country"),
    ("passport_expiry", "Passport expiry"),
    ("hayya_visa_number", "Hayya visa number"),
    ("hayya_visa_expiry", "Hayya visa expiry"),
)
EXPIRY_LABELS = {
    "qid_expiry": "QID expiry",
    "passport_expiry": "Passport expiry",
    "hayya_visa_expiry": "Hayya visa expiry",
}


def clean(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def field_errors(values: Mapping[str, Any], access_groups: Optional[list[str]] = None) -> list[str]:
    """Person and identification rules, in the order they are reported."""
    errors: list[str] = []
    for key, label in PERSON_FIELDS:
        if not clean(values.get(key)):
            errors.append(f"{label} is required")

    id_type = clean(values.get("identification_type")).lower()
    if id_type == IdentificationType.QID.value:
        required = QID_REQUIRED
    elif id_type == IdentificationType.PASSPORT.value:
        required = PASSPORT_REQUIRED
    else:
        errors.append('Identification type must be "qid" or "passport"')
        required = ()
    for key, label in required:
        if not clean(values.get(key)):
            errors.append(f"{label} is required")

    qid = clean(values.get("qid_number"))
    if id_type == IdentificationType.QID.value and qid and not QID_PATTERN.match(qid):
        errors.append("QID must be exactly 11 digits")

    for key, _ in required:
        label = EXPIRY_LABELS.get(key)
        raw = clean(values.get(key))
        if label and raw and parse_date(raw) is None:
            errors.append(f"{label} must be a valid date (YYYY-MM-DD)")

    group = clean(values.get("access_group"))
    if access_groups is not None and group and group not in access_groups:
        errors.append(f'Access group "{group}" is not allowed for this project')
    return errors


def build_record_values(
    project: AccreditationProject,
    data: Mapping[str, Any],
    *,
    require_phase: bool = True,
) -> dict:
    """Validate input against the project and return model column values.

    Raises RecordValidationError with every failure found.
    """
    errors = field_errors(data, access_groups=list(project.access_groups or []))
    values: dict[str, Any] = {key: clean(data.get(key)) for key, _ in PERSON_FIELDS}

    id_type = clean(data.get("identification_type")).lower()
    for key in QID_FIELDS + PASSPORT_FIELDS:
        values[key] = None
    if id_type == IdentificationType.QID.value:
        values["qid_number"] = clean(data.get("qid_number")) or None
        values["qid_expiry"] = parse_date(clean(data.get("qid_expiry")))
    elif id_type == IdentificationType.PASSPORT.value:
        passport = clean(data.get("passport_number")).upper()
        if passport and not PASSPORT_PATTERN.match(passport):
            errors.append("Passport number must be 6-12 letters or digits")
        values["passport_number"] = passport or None
        values["passport_country"] = clean(data.get("passport_country")) or None
        values["passport_expiry"] = parse_date(clean(data.get("passport_expiry")))
        values["hayya_visa_number"] = clean(data.get("hayya_visa_number")) or None
        values["hayya_visa_expiry"] = parse_date(clean(data.get("hayya_visa_expiry")))

    any_phase = False
    for phase in PHASES:
        prefix = phase.lower()
        flag = bool(data.get(f"has_{prefix}_access"))
        values[f"has_{prefix}_access"] = flag
        values[f"{prefix}_start"] = None
        values[f"{prefix}_end"] = None
        if not flag:
            continue
        any_phase = True
        start, end = _override_range(project, phase, data, errors)
        values[f"{prefix}_start"] = start
        values[f"{prefix}_end"] = end
    if require_phase and not any_phase:
        errors.append("At least one access phase is required")

    if errors:
        raise RecordValidationError(errors)
    return values


def _override_range(project, phase: str, data: Mapping[str, Any], errors: list[str]):
    prefix = phase.lower()
    label = PHASE_LABELS[phase]
    try:
        start = parse_boundary(data.get(f"{prefix}_start"))
        end = parse_boundary(data.get(f"{prefix}_end"), end_of_day=True)
    except ValueError:
        errors.append(f"{label} access dates must be valid dates")
        return None, None
    if start is None and end is None:
        return None, None
    if start is None or end is None:
        errors.append(f"{label} access dates must include both start and end")
        return None, None
    if start > end:
        errors.append(f"{label} access start must be on or before end")
        return None, None
    window_start, window_end = project.phase_window(phase)
    if start < ensure_utc(window_start) or end > ensure_utc(window_end):
        errors.append(f"{label} access dates must fall within the project's {label.lower()} window")
        return None, None
    return start, end


def next_accreditation_number(db: Session) -> str:
    # Zero-padded numbers sort correctly once longer numbers sort first.
    top = (
        db.query(Accreditation.accreditation_number)
        .filter(Accreditation.accreditation_number.like(f"{NUMBER_PREFIX}%"))
        .order_by(func.length(Accreditation.accreditation_number).desc(), Accreditation.accreditation_number.desc())
        .first()
    )
    match = _NUMBER_PATTERN.match(top[0]) if top else None
    highest = int(match.group(1)) if match else 0
    return f"{NUMBER_PREFIX}{highest + 1:04d}"


def add_history(
    db: Session,
    record: Accreditation,
    *,
    action: str,
    old_status: Optional[str],
    new_status: Optional[str],
    actor: Optional[str],
    notes: Optional[str] = None,
    changes: Optional[dict] = None,
) -> AccreditationHistory:
    entry = AccreditationHistory(
        accreditation_id=record.id,
        action=action,
        old_status=old_status,
        new_status=new_status,
        notes=notes,
        changes=changes,
        performed_by=actor,
    )
    db.add(entry)
    return entry


def insert_record(
    db: Session,
    project: AccreditationProject,
    values: dict,
    *,
    actor: Optional[str],
    action: str = "CREATED",
) -> Accreditation:
    """Insert a DRAFT record with a freshly allocated number and commit it."""
    last_exc: Optional[Exception] = None
    for attempt in range(1, NUMBER_ATTEMPTS + 1):
        record = Accreditation(
            project_id=project.id,
            accreditation_number=next_accreditation_number(db),
            status=AccreditationStatus.DRAFT.value,
            created_by=actor,
            **values,
        )
        db.add(record)
        try:
            db.flush()
            add_history(
                db,
                record,
                action=action,
                old_status=None,
                new_status=AccreditationStatus.DRAFT.value,
                actor=actor,
            )
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            last_exc = exc
            _logger.warning(
                "Accreditation number collision number=%s attempt=%s", record.accreditation_number, attempt
            )
            continue
        db.refresh(record)
        return record
    raise ConflictError("Could not allocate a unique accreditation number") from last_exc


def create_accreditation(db: Session, payload: Mapping[str, Any], *, actor: Optional[str]) -> Accreditation:
    project_id = clean(payload.get("project_id"))
    project = db.get(AccreditationProject, project_id) if project_id else None
    if project is None:
        raise NotFoundError("Project", project_id)
    # New records always start in DRAFT whatever status the caller sends.
    values = build_record_values(project, payload)
    record = insert_record(db, project, values, actor=actor, action="CREATED")
    _logger.info("Accreditation created number=%s project=%s by=%s", record.accreditation_number, project.code, actor)
    return record


def record_values(record: Accreditation) -> dict:
    data: dict[str, Any] = {key: getattr(record, key) for key, _ in PERSON_FIELDS}
    data["identification_type"] = record.identification_type
    for key in QID_FIELDS + PASSPORT_FIELDS:
        data[key] = getattr(record, key)
    for phase in PHASES:
        prefix = phase.lower()
        data[f"has_{prefix}_access"] = record.has_phase_access(phase)
        for suffix in ("start", "end"):
            value = getattr(record, f"{prefix}_{suffix}")
            data[f"{prefix}_{suffix}"] = ensure_utc(value) if value is not None else None
    return data


def _jsonable(value: Any) -> Any:
    if isinstance(value, (datetime.date, datetime.datetime)):
        return value.isoformat()
    return value


def update_accreditation(
    db: Session,
    record: Accreditation,
    changes: Mapping[str, Any],
    *,
    actor: Optional[str],
) -> Accreditation:
    if record.status not in EDITABLE_STATUSES:
        raise InvalidTransitionError("edit", record.status)
    before = record_values(record)
    merged = dict(before)
    merged.update(changes)
    # Values for the unused identification variant are always dropped.
    values = build_record_values(record.project, merged)

    diff: dict[str, list] = {}
    for key, new_value in values.items():
        old_value = before.get(key)
        if old_value != new_value:
            diff[key] = [_jsonable(old_value), _jsonable(new_value)]
            setattr(record, key, new_value)
    if not diff:
        return record
    add_history(
        db,
        record,
        action="UPDATED",
        old_status=record.status,
        new_status=record.status,
        actor=actor,
        changes=diff,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    _logger.info("Accreditation updated number=%s fields=%s by=%s", record.accreditation_number, sorted(diff), actor)
    return record


def get_accreditation(db: Session, accreditation_id: str) -> Optional[Accreditation]:
    return db.get(Accreditation, accreditation_id)


def list_accreditations(
    db: Session,
    *,
    project_id: Optional[str] = None,
    status: Optional[str] = None,
    organization: Optional[str] = None,
    query: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[Accreditation], int]:
    q = db.query(Accreditation)
    if project_id:
        q = q.filter(Accreditation.project_id == project_id)
    if status:
        q = q.filter(Accreditation.status == status.strip().upper())
    if organization:
        q = q.filter(Accreditation.organization.ilike(f"%{organization.strip()}%"))
    if query:
        like = f"%{query.strip()}%"
        q = q.filter(
            or_(
                Accreditation.first_name.ilike(like),
                Accreditation.last_name.ilike(like),
                Accreditation.accreditation_number.ilike(like),
                Accreditation.qid_number.ilike(like),
                Accreditation.passport_number.ilike(like),
            )
        )
    return paginate(
        q,
        Accreditation.created_at.desc(),
        Accreditation.accreditation_number.desc(),
        page=page,
        page_size=page_size,
    )


def list_history(db: Session, record: Accreditation) -> list[AccreditationHistory]:
    return (
        db.query(AccreditationHistory)
        .filter(AccreditationHistory.accreditation_id == record.id)
        .order_by(AccreditationHistory.created_at.asc())
        .all()
    )


EXPORT_HEADERS = [
    "ID",
    "Accreditation Number",
    "Project Code",
    "Project Name",
    "First Name",
    "Last Name",
    "Organization",
    "Job Title",
    "Access Group",
    "QID Number",
    "QID Expiry",
    "Passport Number",
    "Passport Country",
    "Passport Expiry",
    "Hayya Visa Number",
    "Hayya Visa Expiry",
    "Status",
    "Has Bump-In Access",
    "Bump-In Start",
    "Bump-In End",
    "Has Live Access",
    "Live Start",
    "Live End",
    "Has Bump-Out Access",
    "Bump-Out Start",
    "Bump-Out End",
    "Created By",
    "Created At",
    "Approved By",
    "Approved At",
    "Revoked By",
    "Revoked At",
    "Revocation Reason",
]


def _local_day(value: Optional[datetime.datetime]) -> str:
    if value is None:
        return ""
    return ensure_utc(value).astimezone(portal_tz()).date().isoformat()


def _timestamp(value: Optional[datetime.datetime]) -> str:
    return ensure_utc(value).isoformat() if value is not None else ""


def export_accreditations_csv(db: Session, *, project_id: Optional[str] = None, status: Optional[str] = None) -> str:
    """Every matching record, newest first, one CSV row each."""
    q = db.query(Accreditation)
    if project_id:
        q = q.filter(Accreditation.project_id == project_id)
    if status:
        q = q.filter(Accreditation.status == status.strip().upper())
    records = q.order_by(Accreditation.created_at.desc(), Accreditation.accreditation_number.desc()).all()

    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(EXPORT_HEADERS)
    for record in records:
        row = [
            record.id,
            record.accreditation_number,
            record.project.code,
            record.project.name,
            record.first_name,
            record.last_name,
            record.organization,
            record.job_title,
            record.access_group,
            record.qid_number or "",
            record.qid_expiry.isoformat() if record.qid_expiry else "",
            record.passport_number or "",
            record.passport_country or "",
            record.passport_expiry.isoformat() if record.passport_expiry else "",
            record.hayya_visa_number or "",
            record.hayya_visa_expiry.isoformat() if record.hayya_visa_expiry else "",
            record.status,
        ]
        for phase in PHASES:
            start, end = record.phase_override(phase)
            row.extend(["Yes" if record.has_phase_access(phase) else "No", _local_day(start), _local_day(end)])
        row.extend(
            [
                record.created_by or "",
                _timestamp(record.created_at),
                record.approved_by or "",
                _timestamp(record.approved_at),
                record.revoked_by or "",
                _timestamp(record.revoked_at),
                record.revocation_reason or "",
            ]
        )
        writer.writerow(row)
    _logger.info("Accreditations exported rows=%s project=%s status=%s", len(records), project_id, status)
    return buffer.getvalue()


SUGGESTION_MIN_CHARS = 2
SUGGESTION_LIMIT = 10


def _suggest(db: Session, column, q: Optional[str], limit: int) -> list[str]:
    term = clean(q)
    if len(term) < SUGGESTION_MIN_CHARS:
        return []
    rows = (
        db.query(column)
        .filter(column.ilike(f"%{term}%"))
        .distinct()
        .order_by(column.asc())
        .limit(limit)
        .all()
    )
    return [value for (value,) in rows if value]


def suggest_organizations(db: Session, q: Optional[str], limit: int = SUGGESTION_LIMIT) -> list[str]:
    return _suggest(db, Accreditation.organization, q, limit)


def suggest_job_titles(db: Session, q: Optional[str], limit: int = SUGGESTION_LIMIT) -> list[str]:
    return _suggest(db, Accreditation.job_title, q, limit)
