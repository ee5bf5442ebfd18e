"""
Pydantic schemas for accreditation records and lifecycle actions.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict


class AccreditationCreate(BaseModel):
    project_id: str
    first_name: str = ""
    last_name: str = ""
    organization: str = ""
    job_title: str = ""
    access_group: str = ""
    identification_type: str = ""
    qid_number: Optional[str] = None
    qid_expiry: Optional[str] = None
    passport_number: Optional[str] = None
    passport_country: Optional[str] = None
    passport_expiry: Optional[str] = None
    hayya_visa_number: Optional[str] = None
    hayya_visa_expiry: Optional[str] = None
    has_bump_in_access: bool = False
    bump_in_start: Optional[str] = None
    bump_in_end: Optional[str] = None
    has_live_access: bool = False
    live_start: Optional[str] = None
    live_end: Optional[str] = None
    has_bump_out_access: bool = False
    bump_out_start: Optional[str] = None
    bump_out_end: Optional[str] = None


class AccreditationUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    organization: Optional[str] = None
    job_title: Optional[str] = None
    access_group: Optional[str] = None
    identification_type: Optional[str] = None
    qid_number: Optional[str] = None
    qid_expiry: Optional[str] = None
    passport_number: Optional[str] = None
    passport_country: Optional[str] = None
    passport_expiry: Optional[str] = None
    hayya_visa_number: Optional[str] = None
    hayya_visa_expiry: Optional[str] = None
    has_bump_in_access: Optional[bool] = None
    bump_in_start: Optional[str] = None
    bump_in_end: Optional[str] = None
    has_live_access: Optional[bool] = None
    live_start: Optional[str] = None
    live_end: Optional[str] = None
    has_bump_out_access: Optional[bool] = None
    bump_out_start: Optional[str] = None
    bump_out_end: Optional[str] = None


class AccreditationSummary(BaseModel):
    id: str
    accreditation_number: str
    project_id: str
    first_name: str
    last_name: str
    organization: str
    job_title: str
    access_group: str
    status: str
    is_revoked: bool = False

    model_config = ConfigDict(from_attributes=True)


class AccreditationOut(AccreditationSummary):
    identification_type: Optional[str] = None
    qid_number: Optional[str] = None
    qid_expiry: Optional[date] = None
    passport_number: Optional[str] = None
    passport_country: Optional[str] = None
    passport_expiry: Optional[date] = None
    hayya_visa_number: Optional[str] = None
    hayya_visa_expiry: Optional[date] = None
    has_bump_in_access: bool = False
    bump_in_start: Optional[datetime] = None
    bump_in_end: Optional[datetime] = None
    has_live_access: bool = False
    live_start: Optional[datetime] = None
    live_end: Optional[datetime] = None
    has_bump_out_access: bool = False
    bump_out_start: Optional[datetime] = None
    bump_out_end: Optional[datetime] = None
    qr_token: Optional[str] = None
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_by: Optional[str] = None
    submitted_at: Optional[datetime] = None
    approved_by: Optional[str] = None
    approved_at: Optional[datetime] = None
    rejected_by: Optional[str] = None
    rejected_at: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    revoked_by: Optional[str] = None
    revoked_at: Optional[datetime] = None
    revocation_reason: Optional[str] = None


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class RejectRequest(BaseModel):
    reason: str


class RevokeRequest(BaseModel):
    reason: str


class HistoryOut(BaseModel):
    id: str
    accreditation_id: str
    action: str
    old_status: Optional[str] = None
    new_status: Optional[str] = None
    notes: Optional[str] = None
    changes: Optional[dict[str, Any]] = None
    performed_by: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
