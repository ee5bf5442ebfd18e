"""
Service layer for the accreditation portal.

Plain functions that take a SQLAlchemy `Session` plus explicit caller
context. Routers translate the domain errors they raise into HTTP
responses.
"""

from .csv_import import commit_import, parse_import_csv, preview_import
from .lifecycle import approve, reject, revoke, submit
from .verification import evaluate_access, interpret_scan_payload, verify_token

__all__ = [
    "parse_import_csv",
    "preview_import",
    "commit_import",
    "submit",
    "approve",
    "reject",
    "revoke",
    "interpret_scan_payload",
    "evaluate_access",
    "verify_token",
]
