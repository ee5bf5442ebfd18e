"""
ORM model for accreditation (badge) records.

One row per person per project. Identification is either a QID or a
passport plus Hayya visa; the fields of the unused variant stay null.
Revocation is recorded as metadata on an APPROVED row.
"""

from __future__ import annotations

import enum
import uuid
from datetime import date, datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ..core.timeutil import utc_now

if TYPE_CHECKING:
    from .project import AccreditationProject


class AccreditationStatus(str, enum.Enum):
    DRAFT = "DRAFT"
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class IdentificationType(str, enum.Enum):
    QID = "qid"
    PASSPORT = "passport"


QID_FIELDS = ("qid_number", "qid_expiry")
PASSPORT_FIELDS = (
    "passport_number",
    "passport_country",
    "passport_expiry",
    "hayya_visa_number",
    "hayya_visa_expiry",
)

PHASES = ("BUMP_IN", "LIVE", "BUMP_OUT")


class Accreditation(Base):
    __tablename__ = "accreditations"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    accreditation_number: Mapped[str] = mapped_column(String(32), unique=True, index=True)
    project_id: Mapped[str] = mapped_column(String(36), ForeignKey("accreditation_projects.id"), index=True)

    first_name: Mapped[str] = mapped_column(String(128))
    last_name: Mapped[str] = mapped_column(String(128))
    organization: Mapped[str] = mapped_column(String(256), index=True)
    job_title: Mapped[str] = mapped_column(String(256))
    access_group: Mapped[str] = mapped_column(String(128))

    qid_number: Mapped[str | None] = mapped_column(String(11), nullable=True, index=True)
    qid_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    passport_number: Mapped[str | None] = mapped_column(String(32), nullable=True, index=True)
    passport_country: Mapped[str | None] = mapped_column(String(64), nullable=True)
    passport_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)
    hayya_visa_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    hayya_visa_expiry: Mapped[date | None] = mapped_column(Date, nullable=True)

    has_bump_in_access: Mapped[bool] = mapped_column(Boolean, default=False)
    bump_in_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    bump_in_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    has_live_access: Mapped[bool] = mapped_column(Boolean, default=False)
    live_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    live_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    has_bump_out_access: Mapped[bool] = mapped_column(Boolean, default=False)
    bump_out_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    bump_out_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    status: Mapped[str] = mapped_column(String(16), default=AccreditationStatus.DRAFT.value, index=True)
    qr_token: Mapped[str | None] = mapped_column(String(64), unique=True, nullable=True)

    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)
    submitted_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    revoked_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    revoked_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    revocation_reason: Mapped[str | None] = mapped_column(String(1024), nullable=True)

    project: Mapped[AccreditationProject] = relationship("AccreditationProject", back_populates="accreditations")

    @property
    def identification_type(self) -> str | None:
        if self.qid_number:
            return IdentificationType.QID.value
        if self.passport_number:
            return IdentificationType.PASSPORT.value
        return None

    @property
    def is_revoked(self) -> bool:
        return self.revoked_at is not None

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def has_phase_access(self, phase: str) -> bool:
        return bool(getattr(self, f"has_{phase.lower()}_access"))

    def phase_override(self, phase: str) -> tuple[datetime | None, datetime | None]:
        prefix = phase.lower()
        return getattr(self, f"{prefix}_start"), getattr(self, f"{prefix}_end")
