"""
Bulk CSV import of accreditation records.

Import is two-step: `preview_import` parses and validates an uploaded
file without touching the database, and `commit_import` creates the
rows the operator chose to keep. Commit is best-effort per row: each row
is its own transaction, so a failure on one row never undoes another.

Columns are positional (see TEMPLATE_HEADERS); the header line is
informational only.
"""

from __future__ import annotations

import csv
import logging
from dataclasses import asdict, dataclass, field, fields
from typing import Any, Iterable, Mapping, Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ..core.config import settings
from ..core.errors import ConflictError, CsvStructureError, NotFoundError, RecordValidationError, log_exception
from ..models.accreditation import Accreditation, AccreditationStatus, IdentificationType
from ..models.project import AccreditationProject
from .accreditations import build_record_values, clean, field_errors, insert_record

_logger = logging.getLogger("csv_import")

TEMPLATE_HEADERS = [
    "First Name",
    "Last Name",
    "Organization",
    "Job Title",
    "Access Group",
    "Identification Type",
    "QID Number",
    "QID Expiry",
    "Passport Number",
    "Passport Country",
    "Passport Expiry",
    "Hayya Visa Number",
    "Hayya Visa Expiry",
]

TEMPLATE_SAMPLE_ROWS = [
    ["John", "Doe", "ABC Company", "Manager", "VIP", "qid", "12345678901", "2025-12-31", "", "", "", "", ""],
    [
        "Jane",
        "Smith",
        "XYZ Corp",
        "Director",
        "Organiser",
        "passport",
        "",
        "",
        "AB123456",
        "USA",
        "2026-06-30",
        "HV987654",
        "2025-12-31",
    ],
]


@dataclass(frozen=True)
class ImportRecordDraft:
    first_name: str = ""
    last_name: str = ""
    organization: str = ""
    job_title: str = ""
    access_group: str = ""
    identification_type: str = ""
    qid_number: str = ""
    qid_expiry: str = ""
    passport_number: str = ""
    passport_country: str = ""
    passport_expiry: str = ""
    hayya_visa_number: str = ""
    hayya_visa_expiry: str = ""

    @classmethod
    def from_cells(cls, cells: list[str]) -> "ImportRecordDraft":
        names = [f.name for f in fields(cls)]
        values = {name: (cells[i].strip() if i < len(cells) else "") for i, name in enumerate(names)}
        values["identification_type"] = values["identification_type"].lower()
        return cls(**values)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ImportRecordDraft":
        values = {f.name: clean(data.get(f.name)) for f in fields(cls)}
        values["identification_type"] = values["identification_type"].lower()
        return cls(**values)

    def as_dict(self) -> dict:
        return asdict(self)

    def identity(self) -> Optional[tuple[str, str]]:
        """(label, identifier) used for duplicate detection, or None when blank."""
        if self.identification_type == IdentificationType.QID.value:
            return ("QID", self.qid_number) if self.qid_number else None
        passport = self.passport_number.upper()
        return ("Passport", passport) if passport else None


@dataclass
class ImportRow:
    line_number: int
    record: ImportRecordDraft
    errors: list[str] = field(default_factory=list)
    is_duplicate: bool = False

    @property
    def is_valid(self) -> bool:
        return not self.errors


@dataclass
class ImportPreview:
    rows: list[ImportRow]

    @property
    def total(self) -> int:
        return len(self.rows)

    @property
    def valid_count(self) -> int:
        return sum(1 for row in self.rows if row.is_valid)

    @property
    def invalid_count(self) -> int:
        return sum(1 for row in self.rows if not row.is_valid)

    @property
    def duplicate_count(self) -> int:
        return sum(1 for row in self.rows if row.is_duplicate)


@dataclass
class ImportResult:
    imported: int = 0
    skipped: int = 0
    failed: int = 0
    total: int = 0
    errors: list[dict] = field(default_factory=list)

    def add_error(self, row: int, message: str) -> None:
        self.failed += 1
        self.errors.append({"row": row, "message": message})


def template_csv() -> str:
    lines = [",".join(TEMPLATE_HEADERS)]
    lines.extend(",".join(row) for row in TEMPLATE_SAMPLE_ROWS)
    return "\n".join(lines) + "\n"


def parse_import_csv(
    text: str,
    access_groups: Optional[list[str]] = None,
    *,
    max_rows: Optional[int] = None,
) -> ImportPreview:
    lines = [line for line in (text or "").splitlines() if line.strip()]
    if len(lines) < 2:
        raise CsvStructureError("CSV file is empty or has no data rows")
    limit = max_rows if max_rows is not None else settings.import_max_rows
    if limit and len(lines) - 1 > limit:
        raise CsvStructureError(f"CSV file has more than {limit} data rows")

    rows: list[ImportRow] = []
    first_seen: dict[tuple[str, str], int] = {}
    # Line 1 is the header; data rows are numbered from 2. Each line is
    # parsed on its own; a stray quote only damages its own row.
    for line_number, line in enumerate(lines[1:], start=2):
        errors: list[str] = []
        if line.count('"') % 2:
            errors.append("Row has an unbalanced quote character")
        try:
            cells = next(csv.reader([line]), [])
        except csv.Error as exc:
            cells = []
            errors.append(f"Row could not be parsed: {exc}")
        draft = ImportRecordDraft.from_cells(cells)
        errors.extend(field_errors(draft.as_dict(), access_groups=access_groups))
        is_duplicate = False
        key = draft.identity()
        if key is not None:
            if key in first_seen:
                is_duplicate = True
                errors.append(f"Duplicate {key[0]} number (also found in row {first_seen[key]})")
            else:
                first_seen[key] = line_number
        rows.append(ImportRow(line_number=line_number, record=draft, errors=errors, is_duplicate=is_duplicate))
    return ImportPreview(rows=rows)


def preview_import(db: Session, project_id: str, text: str) -> ImportPreview:
    project = db.get(AccreditationProject, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    preview = parse_import_csv(text, access_groups=list(project.access_groups or []))
    _logger.info(
        "Import preview project=%s rows=%s valid=%s duplicates=%s",
        project.code,
        preview.total,
        preview.valid_count,
        preview.duplicate_count,
    )
    return preview


def _existing_identities(db: Session, project_id: str) -> set[tuple[str, str]]:
    """QID and passport identities already held by non-rejected records."""
    rows = db.query(Accreditation.qid_number, Accreditation.passport_number).filter(
        Accreditation.project_id == project_id,
        Accreditation.status != AccreditationStatus.REJECTED.value,
    )
    keys: set[tuple[str, str]] = set()
    for qid, passport in rows:
        if qid:
            keys.add(("QID", qid))
        if passport:
            keys.add(("Passport", passport.upper()))
    return keys


def commit_import(
    db: Session,
    project_id: str,
    records: Iterable[Union[ImportRecordDraft, Mapping[str, Any]]],
    *,
    skip_duplicates: bool = True,
    actor: Optional[str] = None,
) -> ImportResult:
    project = db.get(AccreditationProject, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)

    result = ImportResult()
    seen: set[tuple[str, str]] = _existing_identities(db, project.id) if skip_duplicates else set()
    for index, raw in enumerate(records):
        result.total += 1
        if isinstance(raw, ImportRecordDraft):
            draft, row_number = raw, index + 2
        else:
            draft = ImportRecordDraft.from_mapping(raw)
            # Rows carry their preview line number; fall back to file order.
            row_number = raw.get("line_number") or index + 2
        key = draft.identity()
        if skip_duplicates and key is not None and key in seen:
            result.skipped += 1
            continue
        try:
            values = build_record_values(project, draft.as_dict(), require_phase=False)
            insert_record(db, project, values, actor=actor, action="IMPORTED")
        except RecordValidationError as exc:
            result.add_error(row_number, "; ".join(exc.errors))
            _logger.warning("Import row rejected project=%s row=%s errors=%s", project.code, row_number, exc.errors)
            continue
        except (SQLAlchemyError, ConflictError) as exc:
            db.rollback()
            result.add_error(row_number, "Failed to save record")
            log_exception(
                _logger,
                "Import row failed",
                extra={"project": project.code, "row": row_number},
                exc=exc,
            )
            continue
        result.imported += 1
        if key is not None:
            seen.add(key)

    _logger.info(
        "Import committed project=%s imported=%s skipped=%s failed=%s total=%s by=%s",
        project.code,
        result.imported,
        result.skipped,
        result.failed,
        result.total,
        actor,
    )
    return result
