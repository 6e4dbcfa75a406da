"""SyncBoard authentication endpoints."""

import time
import threading
from collections import defaultdict

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel

from app.api.deps import get_current_admin
from app.config import get_settings
from app.services.auth_service import create_access_token, verify_password

router = APIRouter(prefix="/auth", tags=["auth"])

# ---------- Rate limiting ----------

_LOGIN_ATTEMPTS: dict[str, list[float]] = defaultdict(list)
_LOGIN_LOCK = threading.Lock()
_MAX_ATTEMPTS = 5  # max attempts per window
_WINDOW_SECONDS = 300  # 5 minute window


def _check_rate_limit(key: str) -> bool:
    """Return True if the request is allowed, False if rate-limited.

    Only checks the counter. Call _record_failed_attempt() after a failed login.
    Keys whose attempts have all expired are dropped.
    """
    now = time.time()
    with _LOGIN_LOCK:
        attempts = [t for t in _LOGIN_ATTEMPTS.get(key, []) if now - t < _WINDOW_SECONDS]
        if attempts:
            _LOGIN_ATTEMPTS[key] = attempts
        else:
            _LOGIN_ATTEMPTS.pop(key, None)
        return len(attempts) < _MAX_ATTEMPTS


def _record_failed_attempt(key: str) -> None:
    """Record a failed login attempt for rate limiting."""
    with _LOGIN_LOCK:
        _LOGIN_ATTEMPTS[key].append(time.time())


# ---------- Schemas ----------

class AuthStatusResponse(BaseModel):
    auth_enabled: bool
    password_configured: bool


class LoginRequest(BaseModel):
    password: str


class LoginResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"
    expires_in_hours: int


# ---------- Endpoints ----------

@router.get("/status", response_model=AuthStatusResponse)
async def auth_status():
    """Check if auth is enabled and whether a SyncBoard password is set."""
    settings = get_settings()
    return AuthStatusResponse(
        auth_enabled=settings.auth_enabled,
        password_configured=bool(settings.syncboard_password_hash),
    )


@router.post("/login", response_model=LoginResponse)
async def login(body: LoginRequest, request: Request):
    """Exchange the SyncBoard password for an access token."""
    client_ip = request.client.host if request.client else "unknown"
    if not _check_rate_limit(client_ip):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many login attempts. Please try again later.",
        )

    settings = get_settings()
    if not verify_password(body.password, settings.syncboard_password_hash):
        _record_failed_attempt(client_ip)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid password",
        )

    token = create_access_token(
        settings.effective_jwt_secret,
        settings.jwt_access_token_expire_hours,
    )
    return LoginResponse(
        access_token=token,
        expires_in_hours=settings.jwt_access_token_expire_hours,
    )


@router.get("/me")
async def me(admin: str = Depends(get_current_admin)):
    """Return the authenticated subject."""
    return {"subject": admin, "role": "admin"}
