"""
Caller context and role checks for the accreditation API.

The portal's session layer sits in front of this service. Requests carry
either a bearer JWT, or (when auth is disabled for local use) plain
X-User-* headers that describe the acting user.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional

from fastapi import Depends, Header, HTTPException

from .security import decode_access_token

ROLE_ADMIN = "ADMIN"
ROLE_ADDER = "ACCREDITATION_ADDER"
ROLE_APPROVER = "ACCREDITATION_APPROVER"
ROLE_VALIDATOR = "VALIDATOR"

EDITOR_ROLES = (ROLE_ADMIN, ROLE_ADDER)
APPROVER_ROLES = (ROLE_ADMIN, ROLE_APPROVER)
SCANNER_ROLES = (ROLE_ADMIN, ROLE_VALIDATOR)
ALL_ROLES = (ROLE_ADMIN, ROLE_ADDER, ROLE_APPROVER, ROLE_VALIDATOR)


@dataclass
class UserContext:
    role: str
    user_id: Optional[str] = None
    username: Optional[str] = None

    @property
    def actor(self) -> str:
        return self.user_id or self.username or "anonymous"


def _auth_disabled() -> bool:
    return os.getenv("PORTAL_AUTH_DISABLED", "true").lower() in {"1", "true", "yes"}


def _extract_bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    if not authorization.lower().startswith("bearer "):
        return None
    token = authorization.split(" ", 1)[1].strip()
    return token or None


def get_current_user(
    authorization: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
    x_user_name: Optional[str] = Header(None, alias="X-User-Name"),
    x_user_role: Optional[str] = Header(None, alias="X-User-Role"),
) -> UserContext:
    if _auth_disabled():
        return UserContext(
            role=(x_user_role or ROLE_ADMIN).strip().upper(),
            user_id=x_user_id,
            username=x_user_name,
        )
    token = _extract_bearer_token(authorization)
    if not token:
        raise HTTPException(status_code=401, detail="Missing bearer token")
    try:
        claims = decode_access_token(token)
    except ValueError:
        raise HTTPException(status_code=401, detail="Invalid token")
    role = str(claims.get("role") or "").strip().upper()
    username = str(claims.get("sub") or "").strip() or None
    user_id = str(claims.get("user_id") or "").strip() or None
    if not role or not username or not user_id:
        raise HTTPException(status_code=401, detail="Invalid token claims")
    return UserContext(role=role, user_id=user_id, username=username)


def require_roles(*roles: str):
    def _dep(user: UserContext = Depends(get_current_user)):
        allowed = {r.strip().upper() for r in roles if r and r.strip()}
        if allowed and user.role.upper() not in allowed:
            raise HTTPException(status_code=403, detail="Insufficient permissions")
        return user

    return _dep
