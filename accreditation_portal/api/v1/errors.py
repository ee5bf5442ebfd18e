"""
Translate domain errors into HTTP responses.
"""

from __future__ import annotations

from fastapi import HTTPException

from ...core.errors import (
    ConflictError,
    CsvStructureError,
    InvalidTransitionError,
    NotFoundError,
    PortalError,
    RecordValidationError,
    ScanInputError,
)


def to_http(exc: PortalError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, RecordValidationError):
        return HTTPException(status_code=400, detail=exc.errors)
    if isinstance(exc, (CsvStructureError, ScanInputError)):
        return HTTPException(status_code=400, detail=str(exc))
    if isinstance(exc, (InvalidTransitionError, ConflictError)):
        return HTTPException(status_code=409, detail=str(exc))
    return HTTPException(status_code=400, detail=str(exc))
