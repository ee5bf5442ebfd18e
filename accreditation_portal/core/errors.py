"""
Domain errors and logging helpers shared by services and routers.

Services raise the exceptions below; API routers translate them into
HTTP responses. Expected negative outcomes (an unknown QR token, a badge
scanned outside its access window) are return values, not exceptions.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Optional


class PortalError(Exception):
    """Base class for accreditation portal domain errors."""


class NotFoundError(PortalError):
    def __init__(self, entity: str, ident: str) -> None:
        super().__init__(f"{entity} not found")
        self.entity = entity
        self.ident = ident


class RecordValidationError(PortalError):
    """One or more field-level validation failures."""

    def __init__(self, errors: Iterable[str]) -> None:
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Validation failed")


class CsvStructureError(PortalError):
    """The uploaded file cannot be treated as an import at all."""


class InvalidTransitionError(PortalError):
    """A lifecycle action is not allowed from the record's current state."""

    def __init__(self, action: str, current: str, detail: Optional[str] = None) -> None:
        self.action = action
        self.current = current
        message = detail or f"Cannot {action} accreditation with status {current}"
        super().__init__(message)


class ConflictError(PortalError):
    """A uniqueness rule would be violated."""


class ScanInputError(PortalError):
    """Scanned or typed input is not an acceptable token."""


def log_exception(
    logger: logging.Logger,
    message: str,
    *,
    extra: Optional[dict[str, Any]] = None,
    exc: Optional[BaseException] = None,
) -> None:
    """Log a caught exception with structured context and traceback."""
    details = ""
    if extra:
        details = " " + " ".join(f"{key}={value}" for key, value in sorted(extra.items()))
    if exc is not None:
        logger.error("%s%s: %s", message, details, exc, exc_info=(type(exc), exc, exc.__traceback__))
    else:
        logger.exception("%s%s", message, details)
