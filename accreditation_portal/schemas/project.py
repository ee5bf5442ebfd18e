"""
Pydantic schemas for accreditation projects.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ProjectCreate(BaseModel):
    name: str
    code: str = Field(..., max_length=20)
    # Date-only values ("2025-01-10") are read in the portal timezone.
    bump_in_start: str
    bump_in_end: str
    live_start: str
    live_end: str
    bump_out_start: str
    bump_out_end: str
    access_groups: List[str]
    is_active: bool = True


class ProjectUpdate(BaseModel):
    bump_in_start: Optional[str] = None
    bump_in_end: Optional[str] = None
    live_start: Optional[str] = None
    live_end: Optional[str] = None
    bump_out_start: Optional[str] = None
    bump_out_end: Optional[str] = None
    access_groups: Optional[List[str]] = None
    is_active: Optional[bool] = None


class ProjectOut(BaseModel):
    id: str
    name: str
    code: str
    bump_in_start: datetime
    bump_in_end: datetime
    live_start: datetime
    live_end: datetime
    bump_out_start: datetime
    bump_out_end: datetime
    access_groups: List[str] = []
    is_active: bool
    created_by: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ProjectStatsOut(BaseModel):
    project_id: str
    total: int
    by_status: dict[str, int]
    revoked: int
    scans_total: int
    scans_valid: int


class ScanCountsOut(BaseModel):
    total: int
    today: int
    this_week: int


class ActivityOut(BaseModel):
    accreditation_number: str
    first_name: str
    last_name: str
    action: str
    performed_by: Optional[str] = None
    created_at: datetime


class ProjectReportOut(BaseModel):
    project_id: str
    total: int
    by_status: dict[str, int]
    by_access_group: dict[str, int]
    by_phase: dict[str, int]
    id_types: dict[str, int]
    scans: ScanCountsOut
    recent_activity: List[ActivityOut] = []
