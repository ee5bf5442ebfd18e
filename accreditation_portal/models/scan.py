"""
Scan log for badge verification attempts.

Rows are written exactly once per resolved scan and never updated.
"""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from .accreditation import Accreditation
from ..core.timeutil import utc_now


class AccreditationScan(Base):
    __tablename__ = "accreditation_scans"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    accreditation_id: Mapped[str] = mapped_column(String(36), ForeignKey("accreditations.id"), index=True)
    scanned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, index=True)
    was_valid: Mapped[bool] = mapped_column(Boolean, index=True)
    valid_phases: Mapped[list[str]] = mapped_column(JSON, default=list)
    reason: Mapped[str] = mapped_column(String(32))
    scanned_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    device: Mapped[str | None] = mapped_column(String(512), nullable=True)
    ip_address: Mapped[str | None] = mapped_column(String(64), nullable=True)
    location: Mapped[str | None] = mapped_column(String(256), nullable=True)
    notes: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    accreditation: Mapped[Accreditation] = relationship("Accreditation")
