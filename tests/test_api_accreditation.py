import csv
import io
import os
import uuid
from datetime import date, timedelta

# Lightweight DB setup; conftest.py points DATABASE_URL at a temp file.
os.environ.setdefault("AUTO_CREATE_DB", "true")
os.environ.setdefault("AUTO_RUN_MIGRATIONS", "false")
os.environ.setdefault("PORTAL_AUTH_DISABLED", "true")

from fastapi.testclient import TestClient

from accreditation_portal.main import create_app
from accreditation_portal.services.csv_import import template_csv


ADMIN = {"X-User-Role": "ADMIN", "X-User-Id": "admin-1"}
ADDER = {"X-User-Role": "ACCREDITATION_ADDER", "X-User-Id": "adder-1"}
APPROVER = {"X-User-Role": "ACCREDITATION_APPROVER", "X-User-Id": "approver-1"}
VALIDATOR = {"X-User-Role": "VALIDATOR", "X-User-Id": "gate-1"}


def _client() -> TestClient:
    app = create_app()
    return TestClient(app)


def _day(offset: int) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def _create_project(client: TestClient) -> dict:
    resp = client.post(
        "/api/v1/accreditation/projects",
        json={
            "name": "Live Event",
            "code": f"T{uuid.uuid4().hex[:8].upper()}",
            "bump_in_start": _day(-10),
            "bump_in_end": _day(-3),
            "live_start": _day(-2),
            "live_end": _day(5),
            "bump_out_start": _day(6),
            "bump_out_end": _day(8),
            "access_groups": ["VIP", "Organiser", "Crew"],
        },
        headers=ADMIN,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _unique_qid() -> str:
    return str(uuid.uuid4().int)[:11].rjust(11, "1")


def _create_record(client: TestClient, project_id: str) -> dict:
    resp = client.post(
        "/api/v1/accreditation/records",
        json={
            "project_id": project_id,
            "first_name": "Noor",
            "last_name": "Al-Sulaiti",
            "organization": "Stage Crew LLC",
            "job_title": "Rigger",
            "access_group": "Crew",
            "identification_type": "qid",
            "qid_number": _unique_qid(),
            "qid_expiry": "2030-01-01",
            "has_live_access": True,
        },
        headers=ADDER,
    )
    assert resp.status_code == 201, resp.text
    return resp.json()


def _approved_record(client: TestClient) -> dict:
    project = _create_project(client)
    record = _create_record(client, project["id"])
    assert client.post(f"/api/v1/accreditation/records/{record['id']}/submit", headers=ADDER).status_code == 200
    resp = client.post(f"/api/v1/accreditation/records/{record['id']}/approve", json={}, headers=APPROVER)
    assert resp.status_code == 200, resp.text
    return resp.json()


def test_health():
    with _client() as client:
        resp = client.get("/api/v1/health")
        assert resp.status_code == 200
        assert resp.json()["database"] is True


def test_workflow_transitions_over_http():
    with _client() as client:
        project = _create_project(client)
        record = _create_record(client, project["id"])
        rid = record["id"]
        assert record["status"] == "DRAFT"
        assert record["accreditation_number"].startswith("ACC-")

        resp = client.post(f"/api/v1/accreditation/records/{rid}/approve", headers=APPROVER)
        assert resp.status_code == 409

        resp = client.post(f"/api/v1/accreditation/records/{rid}/submit", headers=ADDER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "PENDING"

        resp = client.post(f"/api/v1/accreditation/records/{rid}/submit", headers=ADDER)
        assert resp.status_code == 409

        resp = client.post(f"/api/v1/accreditation/records/{rid}/approve", json={"notes": "ok"}, headers=APPROVER)
        assert resp.status_code == 200
        body = resp.json()
        assert body["status"] == "APPROVED"
        assert body["qr_token"]
        assert body["approved_by"] == "approver-1"

        resp = client.patch(f"/api/v1/accreditation/records/{rid}", json={"job_title": "Lead"}, headers=ADDER)
        assert resp.status_code == 409

        resp = client.get(f"/api/v1/accreditation/records/{rid}/history", headers=ADMIN)
        assert [h["action"] for h in resp.json()["items"]] == ["CREATED", "SUBMITTED", "APPROVED"]


def test_reject_needs_pending_and_reason():
    with _client() as client:
        project = _create_project(client)
        rid = _create_record(client, project["id"])["id"]
        client.post(f"/api/v1/accreditation/records/{rid}/submit", headers=ADDER)
        resp = client.post(f"/api/v1/accreditation/records/{rid}/reject", json={"reason": " "}, headers=APPROVER)
        assert resp.status_code == 400
        resp = client.post(f"/api/v1/accreditation/records/{rid}/reject", json={"reason": "Expired QID"}, headers=APPROVER)
        assert resp.status_code == 200
        assert resp.json()["status"] == "REJECTED"
        assert resp.json()["qr_token"] is None


def test_validation_errors_are_listed():
    with _client() as client:
        project = _create_project(client)
        resp = client.post(
            "/api/v1/accreditation/records",
            json={"project_id": project["id"], "identification_type": "qid", "qid_number": "2913564096A"},
            headers=ADDER,
        )
        assert resp.status_code == 400
        errors = resp.json()["detail"]
        assert "First name is required" in errors
        assert "QID must be exactly 11 digits" in errors
        assert "At least one access phase is required" in errors


def test_create_record_for_unknown_project():
    with _client() as client:
        resp = client.post(
            "/api/v1/accreditation/records",
            json={"project_id": "missing"},
            headers=ADDER,
        )
        assert resp.status_code == 404


def test_verify_and_scan_log():
    with _client() as client:
        record = _approved_record(client)
        token = record["qr_token"]

        resp = client.get(f"/api/v1/accreditation/verify/{token}", headers=VALIDATOR)
        assert resp.status_code == 200
        body = resp.json()
        assert body["was_valid"] is True
        assert body["valid_phases"] == ["LIVE"]
        assert body["reason"] == "VALID"
        assert body["accreditation"]["id"] == record["id"]

        resp = client.post(
            "/api/v1/accreditation/verify/scan",
            json={"payload": f"http://localhost:3000/verify/{token}", "location": "Gate B"},
            headers=VALIDATOR,
        )
        assert resp.status_code == 200

        resp = client.get(
            "/api/v1/accreditation/scans",
            params={"accreditation_id": record["id"]},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["total"] == 2
        assert resp.headers["X-Total-Count"] == "2"
        assert {s["scanned_by"] for s in resp.json()["items"]} == {"gate-1"}

        resp = client.get("/api/v1/accreditation/scans/export", params={"accreditation_id": record["id"]}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert len(resp.text.strip().splitlines()) == 3


def test_verify_unknown_and_malformed_input():
    with _client() as client:
        resp = client.get(f"/api/v1/accreditation/verify/{uuid.uuid4().hex}", headers=VALIDATOR)
        assert resp.status_code == 404
        assert resp.json()["detail"] == "NOT_FOUND"

        resp = client.post(
            "/api/v1/accreditation/verify/scan",
            json={"payload": "https://example.com/not-a-badge"},
            headers=VALIDATOR,
        )
        assert resp.status_code == 400


def test_revoked_badge_is_invalid_at_the_gate():
    with _client() as client:
        record = _approved_record(client)
        resp = client.post(
            f"/api/v1/accreditation/records/{record['id']}/revoke",
            json={"reason": "Badge reported lost"},
            headers=APPROVER,
        )
        assert resp.status_code == 200
        assert resp.json()["is_revoked"] is True
        assert resp.json()["status"] == "APPROVED"

        resp = client.get(f"/api/v1/accreditation/verify/{record['qr_token']}", headers=VALIDATOR)
        assert resp.json()["was_valid"] is False
        assert resp.json()["reason"] == "REVOKED"

        resp = client.get(f"/api/v1/accreditation/records/{record['id']}/qr", headers=ADMIN)
        assert resp.status_code == 409


def test_badge_qr_png():
    with _client() as client:
        record = _approved_record(client)
        resp = client.get(f"/api/v1/accreditation/records/{record['id']}/qr", headers=ADMIN)
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "image/png"
        assert resp.content.startswith(b"\x89PNG")


def test_role_gates():
    with _client() as client:
        project = _create_project(client)
        record = _create_record(client, project["id"])
        client.post(f"/api/v1/accreditation/records/{record['id']}/submit", headers=ADDER)

        assert client.post(f"/api/v1/accreditation/records/{record['id']}/approve", headers=ADDER).status_code == 403
        assert (
            client.post("/api/v1/accreditation/records", json={"project_id": project["id"]}, headers=VALIDATOR).status_code
            == 403
        )
        assert client.get(f"/api/v1/accreditation/verify/{uuid.uuid4().hex}", headers=ADDER).status_code == 403
        assert client.post("/api/v1/accreditation/projects", json={}, headers=ADDER).status_code == 403


def test_import_preview_and_commit():
    with _client() as client:
        project = _create_project(client)

        resp = client.get("/api/v1/accreditation/import/template", headers=ADDER)
        assert resp.status_code == 200
        assert resp.text.startswith("First Name,Last Name,Organization")

        resp = client.post(
            "/api/v1/accreditation/import/preview",
            data={"project_id": project["id"]},
            files={"file": ("import.csv", template_csv().encode("utf-8"), "text/csv")},
            headers=ADDER,
        )
        assert resp.status_code == 200, resp.text
        preview = resp.json()
        assert preview["valid_count"] == 2
        assert preview["duplicate_count"] == 0

        records = [row["record"] for row in preview["rows"]]
        resp = client.post(
            "/api/v1/accreditation/import",
            json={"project_id": project["id"], "records": records, "skip_duplicates": True},
            headers=ADDER,
        )
        assert resp.status_code == 200
        assert resp.json() == {"imported": 2, "skipped": 0, "failed": 0, "total": 2, "errors": []}

        resp = client.post(
            "/api/v1/accreditation/import",
            json={"project_id": project["id"], "records": records, "skip_duplicates": True},
            headers=ADDER,
        )
        assert resp.json()["skipped"] == 2

        resp = client.get(f"/api/v1/accreditation/projects/{project['id']}/stats", headers=ADMIN)
        assert resp.json()["by_status"]["DRAFT"] == 2


def test_import_preview_rejects_empty_file():
    with _client() as client:
        project = _create_project(client)
        resp = client.post(
            "/api/v1/accreditation/import/preview",
            data={"project_id": project["id"]},
            files={"file": ("import.csv", b"First Name,Last Name\n", "text/csv")},
            headers=ADDER,
        )
        assert resp.status_code == 400
        assert resp.json()["detail"] == "CSV file is empty or has no data rows"


def test_project_code_conflict_and_immutable_fields():
    with _client() as client:
        project = _create_project(client)
        payload = {
            "name": "Copy",
            "code": project["code"],
            "bump_in_start": _day(1),
            "bump_in_end": _day(2),
            "live_start": _day(3),
            "live_end": _day(4),
            "bump_out_start": _day(5),
            "bump_out_end": _day(6),
            "access_groups": ["VIP"],
        }
        assert client.post("/api/v1/accreditation/projects", json=payload, headers=ADMIN).status_code == 409

        resp = client.patch(
            f"/api/v1/accreditation/projects/{project['id']}",
            json={"access_groups": ["VIP"], "is_active": False},
            headers=ADMIN,
        )
        assert resp.status_code == 200
        assert resp.json()["code"] == project["code"]
        assert resp.json()["access_groups"] == ["VIP"]
        assert resp.json()["is_active"] is False


def test_records_export_is_admin_only_csv():
    with _client() as client:
        project = _create_project(client)
        record = _create_record(client, project["id"])

        resp = client.get("/api/v1/accreditation/records/export", params={"project_id": project["id"]}, headers=ADDER)
        assert resp.status_code == 403

        resp = client.get("/api/v1/accreditation/records/export", params={"project_id": project["id"]}, headers=ADMIN)
        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert "accreditations.csv" in resp.headers["content-disposition"]
        rows = list(csv.DictReader(io.StringIO(resp.text)))
        assert len(rows) == 1
        assert rows[0]["Accreditation Number"] == record["accreditation_number"]
        assert rows[0]["Project Code"] == project["code"]
        assert rows[0]["Status"] == "DRAFT"
        assert rows[0]["Has Live Access"] == "Yes"
        assert rows[0]["Has Bump-In Access"] == "No"


def test_autocomplete_needs_two_characters_and_dedupes():
    with _client() as client:
        project = _create_project(client)
        _create_record(client, project["id"])
        _create_record(client, project["id"])

        resp = client.get("/api/v1/accreditation/records/autocomplete/organizations", params={"q": "S"}, headers=ADDER)
        assert resp.status_code == 200
        assert resp.json() == {"organizations": []}

        resp = client.get(
            "/api/v1/accreditation/records/autocomplete/organizations", params={"q": "stage crew"}, headers=ADDER
        )
        organizations = resp.json()["organizations"]
        assert organizations.count("Stage Crew LLC") == 1
        assert organizations == sorted(organizations)
        assert len(organizations) <= 10

        resp = client.get("/api/v1/accreditation/records/autocomplete/jobtitles", params={"q": "rig"}, headers=ADDER)
        assert resp.status_code == 200
        assert "Rigger" in resp.json()["job_titles"]


def test_project_report_over_http():
    with _client() as client:
        record = _approved_record(client)
        client.get(f"/api/v1/accreditation/verify/{record['qr_token']}", headers=VALIDATOR)

        resp = client.get(f"/api/v1/accreditation/projects/{record['project_id']}/reports", headers=ADMIN)
        assert resp.status_code == 200
        body = resp.json()
        assert body["by_access_group"] == {"Crew": 1}
        assert body["by_phase"] == {"BUMP_IN": 0, "LIVE": 1, "BUMP_OUT": 0}
        assert body["id_types"] == {"qid": 1, "passport": 0}
        assert body["scans"] == {"total": 1, "today": 1, "this_week": 1}
        assert [a["action"] for a in body["recent_activity"]] == ["APPROVED", "SUBMITTED", "CREATED"]

        assert client.get("/api/v1/accreditation/projects/missing/reports", headers=ADMIN).status_code == 404
