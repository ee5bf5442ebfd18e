"""
Badge QR code rendering.
"""

from __future__ import annotations

import io

import qrcode

from ..core.config import settings
from ..core.errors import InvalidTransitionError
from ..models.accreditation import Accreditation, AccreditationStatus


def verification_url(token: str) -> str:
    base = (settings.public_base_url or "").rstrip("/")
    return f"{base}/verify/{token}"


def _make_qr_png(data: str) -> bytes:
    qr = qrcode.QRCode(
        version=None,
        error_correction=qrcode.constants.ERROR_CORRECT_M,
        box_size=10,
        border=4,
    )
    qr.add_data(data)
    qr.make(fit=True)
    img = qr.make_image(fill_color="black", back_color="white")
    buf = io.BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


def badge_qr_png(record: Accreditation) -> bytes:
    if record.status != AccreditationStatus.APPROVED.value or not record.qr_token:
        raise InvalidTransitionError("print a badge for", record.status)
    if record.is_revoked:
        raise InvalidTransitionError("print a badge for", record.status, "Accreditation has been revoked")
    return _make_qr_png(verification_url(record.qr_token))
