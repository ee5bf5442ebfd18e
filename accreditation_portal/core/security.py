"""
HS256 bearer tokens for portal callers.

The portal's identity layer issues these tokens; this service verifies them
on every protected request. `create_access_token` mints compatible tokens
for tooling and tests. Claims carried: `sub` (username), `role`,
`user_id`, `iat`, `exp`.
"""

from __future__ import annotations

import base64
import hashlib
import hmac
import json
import os
import secrets
import time
from typing import Any

DEV_FALLBACK_SECRET = "dev-jwt-secret-change-me"
_HEADER = {"alg": "HS256", "typ": "JWT"}


def _segment(data: dict[str, Any]) -> str:
    raw = json.dumps(data, separators=(",", ":")).encode("utf-8")
    return base64.urlsafe_b64encode(raw).rstrip(b"=").decode("ascii")


def _unsegment(value: str) -> Any:
    padded = value + "=" * (-len(value) % 4)
    try:
        return json.loads(base64.urlsafe_b64decode(padded).decode("utf-8"))
    except (ValueError, UnicodeDecodeError):
        raise ValueError("Malformed token")


def _signature(secret: str, signing_input: str) -> str:
    digest = hmac.new(secret.encode("utf-8"), signing_input.encode("ascii"), hashlib.sha256).digest()
    return base64.urlsafe_b64encode(digest).rstrip(b"=").decode("ascii")


def jwt_secret() -> str:
    """Configured signing secret; empty in prod when none is set."""
    secret = (os.getenv("PORTAL_JWT_SECRET") or "").strip()
    if secret:
        return secret
    env = (os.getenv("PORTAL_ENV") or os.getenv("APP_ENV") or "dev").strip().lower()
    return "" if env == "prod" else DEV_FALLBACK_SECRET


def token_ttl_seconds() -> int:
    try:
        minutes = int(os.getenv("PORTAL_JWT_EXP_MIN", "720"))
    except ValueError:
        minutes = 720
    return max(1, minutes) * 60


def create_access_token(*, sub: str, role: str, user_id: str) -> str:
    secret = jwt_secret()
    if not secret:
        raise RuntimeError("PORTAL_JWT_SECRET is required when auth is enabled")
    issued = int(time.time())
    claims = {"sub": sub, "role": role, "user_id": user_id, "iat": issued, "exp": issued + token_ttl_seconds()}
    signing_input = f"{_segment(_HEADER)}.{_segment(claims)}"
    return f"{signing_input}.{_signature(secret, signing_input)}"


def decode_access_token(token: str) -> dict[str, Any]:
    """Verify signature, algorithm and expiry; return the claims.

    Raises ValueError for anything that is not a live token signed with
    the configured secret.
    """
    secret = jwt_secret()
    if not secret:
        raise ValueError("JWT secret not configured")
    try:
        header_b64, claims_b64, signature = token.split(".")
    except ValueError:
        raise ValueError("Malformed token")

    header = _unsegment(header_b64)
    if not isinstance(header, dict) or header.get("alg") != "HS256":
        raise ValueError("Unsupported token algorithm")
    if not secrets.compare_digest(_signature(secret, f"{header_b64}.{claims_b64}"), signature):
        raise ValueError("Invalid signature")

    claims = _unsegment(claims_b64)
    if not isinstance(claims, dict):
        raise ValueError("Invalid payload")
    try:
        expires = int(claims.get("exp") or 0)
    except (TypeError, ValueError):
        expires = 0
    if expires <= 0:
        raise ValueError("Missing exp")
    if time.time() >= expires:
        raise ValueError("Token expired")
    return claims
