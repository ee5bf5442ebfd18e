"""Request size limits for CSV uploads."""

from __future__ import annotations

import os
from typing import Optional

from fastapi import HTTPException, Request, UploadFile


def _max_upload_bytes() -> int:
    raw = os.getenv("MAX_UPLOAD_BYTES", "2097152")
    try:
        val = int(raw)
    except ValueError:
        val = 2097152
    return max(val, 1024)


def enforce_upload_limit(request: Request) -> None:
    length = request.headers.get("content-length")
    if not length:
        return
    try:
        too_large = int(length) > _max_upload_bytes()
    except ValueError:
        return
    if too_large:
        raise HTTPException(status_code=413, detail="Payload too large")


def read_upload_text(upload: UploadFile, *, max_bytes: Optional[int] = None) -> str:
    limit = max_bytes or _max_upload_bytes()
    data = upload.file.read(limit + 1)
    if len(data) > limit:
        raise HTTPException(status_code=413, detail="Upload too large")
    try:
        # utf-8-sig drops the BOM spreadsheet tools prepend
        return data.decode("utf-8-sig")
    except UnicodeDecodeError:
        raise HTTPException(status_code=400, detail="CSV file must be UTF-8 encoded")
