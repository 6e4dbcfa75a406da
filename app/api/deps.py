"""FastAPI dependencies for authentication and tool dispatch."""

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from app.agent.context import ToolContext, build_tool_context
from app.config import get_settings
from app.db.database import AsyncSessionLocal
from app.services.auth_service import ADMIN_SUBJECT, decode_token

security = HTTPBearer(auto_error=False)


async def get_current_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> str:
    """Validate the SyncBoard JWT and return the admin subject.

    When auth is disabled, every request is treated as the admin.
    """
    settings = get_settings()

    if not settings.auth_enabled:
        return ADMIN_SUBJECT

    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
        )

    try:
        payload = decode_token(credentials.credentials, settings.effective_jwt_secret)
    except Exception:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
        )

    if payload.get("type") != "access" or payload.get("role") != "admin":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token type",
        )
    return payload["sub"]


def get_tool_context(request: Request) -> ToolContext:
    """Tool context shared by the app; built lazily from settings."""
    ctx = getattr(request.app.state, "tool_context", None)
    if ctx is None:
        ctx = build_tool_context(get_settings(), AsyncSessionLocal)
        request.app.state.tool_context = ctx
    return ctx
