from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from accreditation_portal.core.errors import ConflictError, RecordValidationError
from accreditation_portal.core.timeutil import ensure_utc
from accreditation_portal.models import Base
from accreditation_portal.services import lifecycle
from accreditation_portal.services.accreditations import create_accreditation
from accreditation_portal.services.projects import (
    create_project,
    list_projects,
    project_report,
    project_stats,
    update_project,
)
from accreditation_portal.services.verification import verify_token


WINDOWS = {
    "bump_in_start": "2025-01-01",
    "bump_in_end": "2025-01-04",
    "live_start": "2025-01-05",
    "live_end": "2025-01-10",
    "bump_out_start": "2025-01-11",
    "bump_out_end": "2025-01-12",
}


def _make_session():
    engine = create_engine("sqlite+pysqlite:///:memory:", future=True)
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
    return SessionLocal()


def _create(db, code="expo25", **overrides):
    kwargs = {
        "name": "Expo 2025",
        "code": code,
        "windows": dict(WINDOWS),
        "access_groups": ["VIP", "Crew"],
        "actor": "admin",
    }
    kwargs.update(overrides)
    return create_project(db, **kwargs)


def test_create_normalizes_code_and_reads_dates_in_portal_timezone():
    db = _make_session()
    project = _create(db, code=" expo25 ")
    assert project.code == "EXPO25"
    assert project.is_active is True
    assert ensure_utc(project.live_start) == datetime(2025, 1, 4, 21, 0, 0, tzinfo=timezone.utc)
    assert ensure_utc(project.live_end) == datetime(2025, 1, 10, 20, 59, 59, tzinfo=timezone.utc)


def test_duplicate_code_conflicts():
    db = _make_session()
    _create(db)
    with pytest.raises(ConflictError):
        _create(db, code="EXPO25")


def test_access_groups_required():
    db = _make_session()
    with pytest.raises(RecordValidationError) as exc:
        _create(db, access_groups=["  ", ""])
    assert exc.value.errors == ["At least one access group is required"]


def test_phase_start_must_not_follow_end():
    db = _make_session()
    windows = dict(WINDOWS, live_start="2025-01-11", live_end="2025-01-10")
    with pytest.raises(RecordValidationError) as exc:
        _create(db, windows=windows)
    assert exc.value.errors == ["Live start must be on or before live end"]


def test_invalid_window_date():
    db = _make_session()
    windows = dict(WINDOWS, bump_out_end="2025-13-40")
    with pytest.raises(RecordValidationError) as exc:
        _create(db, windows=windows)
    assert "Bump-out end must be a valid date" in exc.value.errors


def test_update_keeps_name_and_code():
    db = _make_session()
    project = _create(db)
    update_project(
        db,
        project,
        {"name": "Renamed", "code": "NEW", "access_groups": ["VIP", "Press"], "live_end": "2025-01-09"},
    )
    assert project.name == "Expo 2025"
    assert project.code == "EXPO25"
    assert project.access_groups == ["VIP", "Press"]
    assert ensure_utc(project.live_end) == datetime(2025, 1, 9, 20, 59, 59, tzinfo=timezone.utc)


def test_update_rechecks_windows():
    db = _make_session()
    project = _create(db)
    with pytest.raises(RecordValidationError):
        update_project(db, project, {"bump_in_start": "2025-01-06"})
    db.refresh(project)
    assert ensure_utc(project.bump_in_start) == datetime(2024, 12, 31, 21, 0, 0, tzinfo=timezone.utc)


RECORD = {
    "first_name": "Lina",
    "last_name": "Haddad",
    "organization": "Media",
    "job_title": "Reporter",
    "access_group": "VIP",
    "identification_type": "qid",
    "qid_number": "29135640969",
    "qid_expiry": "2027-01-01",
    "has_live_access": True,
}


def test_update_refuses_window_that_strands_record_override():
    db = _make_session()
    project = _create(db)
    create_accreditation(
        db, dict(RECORD, project_id=project.id, live_start="2025-01-06", live_end="2025-01-09"), actor="adder"
    )

    with pytest.raises(RecordValidationError) as exc:
        update_project(db, project, {"live_end": "2025-01-08"})

    assert exc.value.errors == ["Live window no longer covers the access dates of: ACC-0001"]
    db.refresh(project)
    assert ensure_utc(project.live_end) == datetime(2025, 1, 10, 20, 59, 59, tzinfo=timezone.utc)


def test_update_refuses_dropping_group_in_use():
    db = _make_session()
    project = _create(db)
    create_accreditation(db, dict(RECORD, project_id=project.id), actor="adder")

    with pytest.raises(RecordValidationError) as exc:
        update_project(db, project, {"access_groups": ["Crew"]})

    assert exc.value.errors == ["Records use access groups no longer allowed: ACC-0001"]
    db.refresh(project)
    assert project.access_groups == ["VIP", "Crew"]


def test_update_window_without_overrides_or_rejected_records():
    db = _make_session()
    project = _create(db)
    create_accreditation(db, dict(RECORD, project_id=project.id), actor="adder")
    rejected = create_accreditation(
        db,
        dict(RECORD, project_id=project.id, qid_number="29135640970", live_start="2025-01-09", live_end="2025-01-10"),
        actor="adder",
    )
    lifecycle.submit(db, rejected, actor="adder")
    lifecycle.reject(db, rejected, actor="approver", reason="Wrong person")

    update_project(db, project, {"live_end": "2025-01-08"})

    assert ensure_utc(project.live_end) == datetime(2025, 1, 8, 20, 59, 59, tzinfo=timezone.utc)


def test_list_filters_by_active_flag_and_search():
    db = _make_session()
    _create(db, code="EXPO25")
    inactive = _create(db, code="CUP24", name="Cup 2024")
    update_project(db, inactive, {"is_active": False})

    items, total = list_projects(db, is_active=True)
    assert total == 1
    assert items[0].code == "EXPO25"

    items, total = list_projects(db, query="cup")
    assert [p.code for p in items] == ["CUP24"]


def test_stats_count_statuses_revocations_and_scans():
    db = _make_session()
    project = _create(db)
    base = {
        "project_id": project.id,
        "first_name": "Lina",
        "last_name": "Haddad",
        "organization": "Media",
        "job_title": "Reporter",
        "access_group": "VIP",
        "identification_type": "qid",
        "qid_expiry": "2027-01-01",
        "has_live_access": True,
    }
    create_accreditation(db, dict(base, qid_number="29135640969"), actor="adder")
    approved = create_accreditation(db, dict(base, qid_number="29135640970"), actor="adder")
    lifecycle.submit(db, approved, actor="adder")
    lifecycle.approve(db, approved, actor="approver")
    verify_token(db, approved.qr_token, now=datetime(2025, 1, 6, 12, tzinfo=timezone.utc))
    lifecycle.revoke(db, approved, actor="approver", reason="Duplicate badge")
    verify_token(db, approved.qr_token, now=datetime(2025, 1, 6, 13, tzinfo=timezone.utc))

    stats = project_stats(db, project)

    assert stats["total"] == 2
    assert stats["by_status"] == {"DRAFT": 1, "PENDING": 0, "APPROVED": 1, "REJECTED": 0}
    assert stats["revoked"] == 1
    assert stats["scans_total"] == 2
    assert stats["scans_valid"] == 1


def test_report_breaks_down_records_and_recent_scans():
    db = _make_session()
    project = _create(db)
    approved = create_accreditation(db, dict(RECORD, project_id=project.id), actor="adder")
    create_accreditation(
        db,
        {
            "project_id": project.id,
            "first_name": "Jane",
            "last_name": "Smith",
            "organization": "XYZ Corp",
            "job_title": "Director",
            "access_group": "Crew",
            "identification_type": "passport",
            "passport_number": "AB123456",
            "passport_country": "USA",
            "passport_expiry": "2027-06-30",
            "hayya_visa_number": "HV987654",
            "hayya_visa_expiry": "2027-12-31",
            "has_bump_in_access": True,
            "has_live_access": True,
        },
        actor="adder",
    )
    lifecycle.submit(db, approved, actor="adder")
    lifecycle.approve(db, approved, actor="approver")
    for scanned in (
        datetime(2024, 12, 30, 10, tzinfo=timezone.utc),
        datetime(2025, 1, 4, 10, tzinfo=timezone.utc),
        datetime(2025, 1, 6, 12, tzinfo=timezone.utc),
    ):
        verify_token(db, approved.qr_token, now=scanned)

    # 21:00 on 6 January in Doha.
    report = project_report(db, project, now=datetime(2025, 1, 6, 18, tzinfo=timezone.utc))

    assert report["total"] == 2
    assert report["by_status"] == {"DRAFT": 1, "PENDING": 0, "APPROVED": 1, "REJECTED": 0}
    assert report["by_access_group"] == {"VIP": 1, "Crew": 1}
    assert report["by_phase"] == {"BUMP_IN": 1, "LIVE": 2, "BUMP_OUT": 0}
    assert report["id_types"] == {"qid": 1, "passport": 1}
    assert report["scans"] == {"total": 3, "today": 1, "this_week": 2}
    assert len(report["recent_activity"]) == 4
    assert report["recent_activity"][0]["action"] == "APPROVED"
    assert report["recent_activity"][0]["accreditation_number"] == "ACC-0001"
