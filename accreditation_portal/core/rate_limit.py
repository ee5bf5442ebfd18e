"""Per-caller request throttling for the accreditation API.

Each (caller, resource) pair gets its own token bucket held in process
memory. Idle buckets are swept after `idle_ttl_sec`.
"""

from __future__ import annotations

import hashlib
import os
import threading
import time
from dataclasses import dataclass
from typing import Optional

from fastapi import Header, HTTPException, Request


@dataclass(frozen=True)
class RateLimitPolicy:
    enabled: bool
    rps: float
    burst: int

    @classmethod
    def from_env(cls) -> "RateLimitPolicy":
        raw = (os.getenv("RATE_LIMIT_ENABLED") or "").strip().lower()
        if raw in {"1", "true", "yes"}:
            enabled = True
        elif raw in {"0", "false", "no"}:
            enabled = False
        else:
            enabled = (os.getenv("PORTAL_ENV") or "dev").strip().lower() == "prod"
        try:
            rps = float(os.getenv("RATE_LIMIT_RPS", "5"))
        except ValueError:
            rps = 5.0
        try:
            burst = int(os.getenv("RATE_LIMIT_BURST", "20"))
        except ValueError:
            burst = 20
        return cls(enabled=enabled, rps=max(rps, 0.1), burst=max(burst, 1))


def _path_group(path: str) -> str:
    # /api/v1/accreditation/<resource>/... shares one bucket per resource
    parts = [p for p in path.split("/") if p]
    if len(parts) >= 4 and parts[:3] == ["api", "v1", "accreditation"]:
        return "/" + "/".join(parts[:4])
    return "/" + "/".join(parts[:3])


def _caller_key(request: Request, authorization: Optional[str], user_id: Optional[str]) -> str:
    if authorization:
        return "auth:" + hashlib.sha256(authorization.encode("utf-8")).hexdigest()[:16]
    if user_id:
        return f"user:{user_id.strip()}"
    return "ip:" + (request.client.host if request.client else "unknown")


class TokenBucketLimiter:
    """Thread-safe token buckets keyed by caller and resource."""

    def __init__(self, idle_ttl_sec: float = 600.0) -> None:
        self._lock = threading.Lock()
        self._buckets: dict[str, tuple[float, float]] = {}
        self._idle_ttl = idle_ttl_sec
        self._last_sweep = time.monotonic()

    def allow(self, key: str, *, rps: float, burst: int) -> tuple[bool, float]:
        now = time.monotonic()
        with self._lock:
            self._sweep(now)
            tokens, last = self._buckets.get(key, (float(burst), now))
            tokens = min(float(burst), tokens + max(0.0, now - last) * rps)
            if tokens >= 1.0:
                self._buckets[key] = (tokens - 1.0, now)
                return True, 0.0
            self._buckets[key] = (tokens, now)
            return False, max((1.0 - tokens) / rps, 0.1)

    def _sweep(self, now: float) -> None:
        if now - self._last_sweep < self._idle_ttl:
            return
        cutoff = now - self._idle_ttl
        for key in [k for k, (_, last) in self._buckets.items() if last < cutoff]:
            del self._buckets[key]
        self._last_sweep = now


_limiter = TokenBucketLimiter()


def rate_limit_dependency(
    request: Request,
    authorization: Optional[str] = Header(None),
    x_user_id: Optional[str] = Header(None, alias="X-User-Id"),
) -> None:
    policy = RateLimitPolicy.from_env()
    if not policy.enabled:
        return
    key = f"{_caller_key(request, authorization, x_user_id)}:{_path_group(request.url.path)}"
    allowed, retry_after = _limiter.allow(key, rps=policy.rps, burst=policy.burst)
    if not allowed:
        raise HTTPException(
            status_code=429,
            detail="Too Many Requests",
            headers={"Retry-After": str(max(1, int(retry_after)))},
        )
