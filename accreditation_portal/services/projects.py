"""
Accreditation project management.

Projects carry the three phase windows that badge scans are checked
against, and the access groups records may be assigned to. Code and name
are fixed once a project exists.
"""

from __future__ import annotations

import datetime
import logging
from typing import Optional

from sqlalchemy import func, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..core.errors import ConflictError, RecordValidationError
from ..core.pagination import paginate
from ..core.timeutil import ensure_utc, parse_boundary, portal_tz, utc_now
from ..models.accreditation import PHASES, Accreditation, AccreditationStatus, IdentificationType
from ..models.history import AccreditationHistory
from ..models.project import AccreditationProject
from ..models.scan import AccreditationScan

_logger = logging.getLogger("projects")

PHASE_LABELS = {"BUMP_IN": "Bump-in", "LIVE": "Live", "BUMP_OUT": "Bump-out"}


def _normalize_groups(groups) -> list[str]:
    seen: list[str] = []
    for raw in groups or []:
        name = str(raw or "").strip()
        if name and name not in seen:
            seen.append(name)
    return seen


def _parse_windows(values: dict, errors: list[str]) -> dict:
    parsed: dict = {}
    for phase in PHASES:
        prefix = phase.lower()
        for suffix in ("start", "end"):
            key = f"{prefix}_{suffix}"
            if key not in values:
                continue
            try:
                parsed[key] = parse_boundary(values[key], end_of_day=suffix == "end")
            except ValueError:
                errors.append(f"{PHASE_LABELS[phase]} {suffix} must be a valid date")
                parsed[key] = None
    return parsed


def _check_windows(project: AccreditationProject, errors: list[str]) -> None:
    for phase in PHASES:
        start, end = project.phase_window(phase)
        label = PHASE_LABELS[phase]
        if start is None or end is None:
            errors.append(f"{label} start and end are required")
            continue
        if ensure_utc(start) > ensure_utc(end):
            errors.append(f"{label} start must be on or before {label.lower()} end")


def create_project(
    db: Session,
    *,
    name: str,
    code: str,
    windows: dict,
    access_groups: list[str],
    is_active: bool = True,
    actor: Optional[str] = None,
) -> AccreditationProject:
    errors: list[str] = []
    name = (name or "").strip()
    code = (code or "").strip().upper()
    if not name:
        errors.append("Project name is required")
    if not code:
        errors.append("Project code is required")
    elif len(code) > 20:
        errors.append("Project code must be at most 20 characters")
    groups = _normalize_groups(access_groups)
    if not groups:
        errors.append("At least one access group is required")

    project = AccreditationProject(
        name=name,
        code=code,
        access_groups=groups,
        is_active=is_active,
        created_by=actor,
        **_parse_windows(windows, errors),
    )
    _check_windows(project, errors)
    if errors:
        raise RecordValidationError(errors)

    if db.query(AccreditationProject.id).filter(AccreditationProject.code == code).first():
        raise ConflictError(f"Project code {code} already exists")
    db.add(project)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError(f"Project code {code} already exists")
    db.refresh(project)
    _logger.info("Project created code=%s id=%s by=%s", project.code, project.id, actor)
    return project


def _records_in_conflict(db: Session, project: AccreditationProject, errors: list[str]) -> None:
    records = (
        db.query(Accreditation)
        .filter(
            Accreditation.project_id == project.id,
            Accreditation.status != AccreditationStatus.REJECTED.value,
        )
        .order_by(Accreditation.accreditation_number.asc())
        .all()
    )
    groups = set(project.access_groups or [])
    stray_groups = [r.accreditation_number for r in records if r.access_group not in groups]
    if stray_groups:
        errors.append(f"Records use access groups no longer allowed: {', '.join(stray_groups)}")
    for phase in PHASES:
        window_start, window_end = project.phase_window(phase)
        outside = []
        for record in records:
            start, end = record.phase_override(phase)
            if not record.has_phase_access(phase) or start is None or end is None:
                continue
            if ensure_utc(start) < ensure_utc(window_start) or ensure_utc(end) > ensure_utc(window_end):
                outside.append(record.accreditation_number)
        if outside:
            errors.append(f"{PHASE_LABELS[phase]} window no longer covers the access dates of: {', '.join(outside)}")


def update_project(db: Session, project: AccreditationProject, updates: dict) -> AccreditationProject:
    errors: list[str] = []
    # Name and code never change after creation.
    updates = {k: v for k, v in updates.items() if k not in {"name", "code"}}
    window_updates = {k: v for k, v in updates.items() if k.endswith(("_start", "_end")) and v is not None}
    for key, value in _parse_windows(window_updates, errors).items():
        setattr(project, key, value)
    if updates.get("access_groups") is not None:
        groups = _normalize_groups(updates["access_groups"])
        if not groups:
            errors.append("At least one access group is required")
        project.access_groups = groups
    if updates.get("is_active") is not None:
        project.is_active = bool(updates["is_active"])
    _check_windows(project, errors)
    if not errors and (window_updates or updates.get("access_groups") is not None):
        # Existing records must stay valid under the new windows and groups.
        _records_in_conflict(db, project, errors)
    if errors:
        db.rollback()
        raise RecordValidationError(errors)
    db.add(project)
    db.commit()
    db.refresh(project)
    _logger.info("Project updated code=%s id=%s", project.code, project.id)
    return project


def get_project(db: Session, project_id: str) -> Optional[AccreditationProject]:
    return db.get(AccreditationProject, project_id)


def list_projects(
    db: Session,
    *,
    is_active: Optional[bool] = None,
    query: Optional[str] = None,
    page: int = 1,
    page_size: int = 20,
) -> tuple[list[AccreditationProject], int]:
    q = db.query(AccreditationProject)
    if is_active is not None:
        q = q.filter(AccreditationProject.is_active == is_active)
    if query:
        like = f"%{query.strip()}%"
        q = q.filter(or_(AccreditationProject.name.ilike(like), AccreditationProject.code.ilike(like)))
    return paginate(q, AccreditationProject.created_at.desc(), page=page, page_size=page_size)


def project_stats(db: Session, project: AccreditationProject) -> dict:
    by_status = {status.value: 0 for status in AccreditationStatus}
    rows = (
        db.query(Accreditation.status, func.count(Accreditation.id))
        .filter(Accreditation.project_id == project.id)
        .group_by(Accreditation.status)
        .all()
    )
    for status, count in rows:
        by_status[status] = int(count)
    revoked = (
        db.query(func.count(Accreditation.id))
        .filter(Accreditation.project_id == project.id, Accreditation.revoked_at.isnot(None))
        .scalar()
    )
    scans = (
        db.query(AccreditationScan.was_valid, func.count(AccreditationScan.id))
        .join(Accreditation, Accreditation.id == AccreditationScan.accreditation_id)
        .filter(Accreditation.project_id == project.id)
        .group_by(AccreditationScan.was_valid)
        .all()
    )
    scans_total = sum(int(count) for _, count in scans)
    scans_valid = sum(int(count) for valid, count in scans if valid)
    return {
        "project_id": project.id,
        "total": sum(by_status.values()),
        "by_status": by_status,
        "revoked": int(revoked or 0),
        "scans_total": scans_total,
        "scans_valid": scans_valid,
    }


RECENT_ACTIVITY_LIMIT = 10


def _scan_count(db: Session, project: AccreditationProject, since: Optional[datetime.datetime] = None) -> int:
    q = (
        db.query(func.count(AccreditationScan.id))
        .join(Accreditation, Accreditation.id == AccreditationScan.accreditation_id)
        .filter(Accreditation.project_id == project.id)
    )
    if since is not None:
        q = q.filter(AccreditationScan.scanned_at >= since)
    return int(q.scalar() or 0)


def project_report(db: Session, project: AccreditationProject, now: Optional[datetime.datetime] = None) -> dict:
    """Breakdowns for the project dashboard.

    "today" and "this_week" count scans since local midnight today and
    since local midnight six days earlier, in the portal timezone.
    """
    records = db.query(Accreditation).filter(Accreditation.project_id == project.id).all()

    by_status = {status.value: 0 for status in AccreditationStatus}
    by_access_group: dict[str, int] = {}
    by_phase = {phase: 0 for phase in PHASES}
    id_types = {kind.value: 0 for kind in IdentificationType}
    for record in records:
        by_status[record.status] = by_status.get(record.status, 0) + 1
        by_access_group[record.access_group] = by_access_group.get(record.access_group, 0) + 1
        for phase in PHASES:
            if record.has_phase_access(phase):
                by_phase[phase] += 1
        if record.identification_type:
            id_types[record.identification_type] += 1

    local_now = ensure_utc(now or utc_now()).astimezone(portal_tz())
    midnight = local_now.replace(hour=0, minute=0, second=0, microsecond=0)
    today_start = midnight.astimezone(datetime.timezone.utc)
    week_start = (midnight - datetime.timedelta(days=6)).astimezone(datetime.timezone.utc)

    activity = (
        db.query(AccreditationHistory, Accreditation)
        .join(Accreditation, Accreditation.id == AccreditationHistory.accreditation_id)
        .filter(Accreditation.project_id == project.id)
        .order_by(AccreditationHistory.created_at.desc())
        .limit(RECENT_ACTIVITY_LIMIT)
        .all()
    )
    return {
        "project_id": project.id,
        "total": len(records),
        "by_status": by_status,
        "by_access_group": by_access_group,
        "by_phase": by_phase,
        "id_types": id_types,
        "scans": {
            "total": _scan_count(db, project),
            "today": _scan_count(db, project, since=today_start),
            "this_week": _scan_count(db, project, since=week_start),
        },
        "recent_activity": [
            {
                "accreditation_number": record.accreditation_number,
                "first_name": record.first_name,
                "last_name": record.last_name,
                "action": entry.action,
                "performed_by": entry.performed_by,
                "created_at": ensure_utc(entry.created_at),
            }
            for entry, record in activity
        ],
    }
