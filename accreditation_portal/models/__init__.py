"""
SQLAlchemy model base class for the accreditation portal.

This package defines ORM models for accreditation projects, badge records,
their lifecycle history, and the append-only scan log. All models inherit
from the declarative `Base` defined here.
"""

from __future__ import annotations

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """Base class for all SQLAlchemy ORM models."""

    pass


from .project import AccreditationProject  # noqa: E402,F401
from .accreditation import Accreditation, AccreditationStatus, IdentificationType  # noqa: E402,F401
from .history import AccreditationHistory  # noqa: E402,F401
from .scan import AccreditationScan  # noqa: E402,F401

__all__ = [
    "Base",
    "AccreditationProject",
    "Accreditation",
    "AccreditationStatus",
    "IdentificationType",
    "AccreditationHistory",
    "AccreditationScan",
]
