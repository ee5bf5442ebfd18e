"""
Pydantic schemas for bulk CSV import (preview and commit).
"""

from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel


class ImportRecordIn(BaseModel):
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
    # Preview line number, echoed back on commit so errors cite the same row.
    line_number: Optional[int] = None


class ImportRowOut(BaseModel):
    line_number: int
    record: ImportRecordIn
    errors: List[str] = []
    is_duplicate: bool = False
    is_valid: bool = True


class ImportPreviewOut(BaseModel):
    project_id: str
    rows: List[ImportRowOut] = []
    total: int
    valid_count: int
    invalid_count: int
    duplicate_count: int


class ImportCommitRequest(BaseModel):
    project_id: str
    records: List[ImportRecordIn]
    skip_duplicates: bool = True


class ImportRowError(BaseModel):
    row: int
    message: str


class ImportResultOut(BaseModel):
    imported: int
    skipped: int
    failed: int
    total: int
    errors: List[ImportRowError] = []
