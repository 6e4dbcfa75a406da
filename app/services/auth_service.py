"""Authentication service for the SyncBoard admin: password hashing and JWT tokens."""

from datetime import datetime, timedelta, timezone

import bcrypt
import jwt

ADMIN_SUBJECT = "syncboard-admin"


# ---------- Password ----------

def hash_password(password: str) -> str:
    """Hash a password using bcrypt."""
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    """Verify a password against a bcrypt hash. An empty hash never matches."""
    if not password_hash:
        return False
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed hash in configuration
        return False


# ---------- JWT ----------

def create_access_token(secret: str, expire_hours: int = 24) -> str:
    """Create a JWT access token for the SyncBoard admin."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": ADMIN_SUBJECT,
        "role": "admin",
        "type": "access",
        "exp": now + timedelta(hours=expire_hours),
        "iat": now,
    }
    return jwt.encode(payload, secret, algorithm="HS256")


def decode_token(token: str, secret: str) -> dict:
    """Decode and validate a JWT token. Raises jwt.PyJWTError on failure."""
    return jwt.decode(token, secret, algorithms=["HS256"])
