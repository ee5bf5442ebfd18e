"""
ORM model for accreditation projects.

A project is an event with three access phases (bump-in, live, bump-out)
and the set of access groups its badges may carry.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import Boolean, DateTime, JSON, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from . import Base
from ..core.timeutil import utc_now

if TYPE_CHECKING:
    from .accreditation import Accreditation


class AccreditationProject(Base):
    __tablename__ = "accreditation_projects"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid.uuid4()))
    name: Mapped[str] = mapped_column(String(256))
    code: Mapped[str] = mapped_column(String(20), unique=True, index=True)

    bump_in_start: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    bump_in_end: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    live_start: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    live_end: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    bump_out_start: Mapped[datetime] = mapped_column(DateTime(timezone=True))
    bump_out_end: Mapped[datetime] = mapped_column(DateTime(timezone=True))

    access_groups: Mapped[list[str]] = mapped_column(JSON, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_by: Mapped[str | None] = mapped_column(String(128), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utc_now, onupdate=utc_now)

    accreditations: Mapped[list[Accreditation]] = relationship("Accreditation", back_populates="project")

    def phase_window(self, phase: str) -> tuple[datetime, datetime]:
        prefix = phase.lower()
        return getattr(self, f"{prefix}_start"), getattr(self, f"{prefix}_end")
