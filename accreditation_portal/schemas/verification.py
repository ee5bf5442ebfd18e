"""
Pydantic schemas for badge verification and the scan log.
"""

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict

from .accreditation import AccreditationSummary


class ScanRequest(BaseModel):
    payload: str
    location: Optional[str] = None
    notes: Optional[str] = None


class VerificationOut(BaseModel):
    accreditation: AccreditationSummary
    project_name: Optional[str] = None
    was_valid: bool
    valid_phases: List[str] = []
    reason: str
    scan_id: str
    scanned_at: datetime


class ScanOut(BaseModel):
    id: str
    accreditation_id: str
    scanned_at: datetime
    was_valid: bool
    valid_phases: List[str] = []
    reason: str
    scanned_by: Optional[str] = None
    device: Optional[str] = None
    ip_address: Optional[str] = None
    location: Optional[str] = None
    notes: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)
