from datetime import datetime, timedelta, timezone
import jwt
from typing import Optional
from .core_settings import get_settings
from .application.schemas import SessionInfo


def create_session_token(session: SessionInfo, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    now = datetime.now(timezone.utc)
    ttl = settings.SESSION_TTL_MINUTES if expires_minutes is None else expires_minutes
    payload = {
        "sub": session.user_id,
        "email": session.email,
        "name": session.full_name,
        "role": session.role,
        "gat": session.access_token,
        "iat": now,
        "exp": now + timedelta(minutes=ttl),
    }
    return jwt.encode(payload, settings.SESSION_SECRET, algorithm=settings.SESSION_ALG)


def decode_session_token(token: str) -> Optional[SessionInfo]:
    settings = get_settings()
    try:
        claims = jwt.decode(token, settings.SESSION_SECRET, algorithms=[settings.SESSION_ALG])
    except jwt.PyJWTError:
        return None
    if not claims.get("sub") or not claims.get("gat"):
        return None
    return SessionInfo(
        user_id=claims["sub"],
        email=claims.get("email") or "",
        full_name=claims.get("name"),
        role=claims.get("role"),
        access_token=claims["gat"],
    )
