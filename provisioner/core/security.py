"""Session helpers for tokens issued by the OAuth sign-in collaborator."""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from provisioner.config import settings
from provisioner.core.logger import get_logger

ALGORITHM = "HS256"
TOKEN_TTL_MINUTES = 60 * 12
AUTH_SCHEME = HTTPBearer(auto_error=False)

logger = get_logger(__name__)


@dataclass(frozen=True)
class SessionContext:
    """Caller identity plus the delegated GitHub token, if the sign-in granted one."""

    actor: str
    access_token: str | None = None


def now_utc() -> datetime:
    return datetime.now(timezone.utc)


def _secret_key() -> str:
    return settings.secret_key.get_secret_value()


def create_session_token(
    subject: str,
    access_token: str | None = None,
    extra: Dict[str, Any] | None = None,
) -> str:
    payload: Dict[str, Any] = {
        "sub": subject,
        "iat": int(now_utc().timestamp()),
        "exp": int((now_utc() + timedelta(minutes=TOKEN_TTL_MINUTES)).timestamp()),
    }
    if access_token:
        payload["access_token"] = access_token
    if extra:
        payload.update(extra)
    return jwt.encode(payload, _secret_key(), algorithm=ALGORITHM)


def decode_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, _secret_key(), algorithms=[ALGORITHM])


def get_optional_session(
    creds: HTTPAuthorizationCredentials | None = Depends(AUTH_SCHEME),
) -> SessionContext | None:
    """Resolve the bearer session, or None; the pipeline decides how to reject it."""
    if creds is None or not creds.credentials:
        return None
    try:
        payload = decode_token(creds.credentials)
    except jwt.PyJWTError as exc:
        logger.info("Rejected session token: %s", exc)
        return None

    actor = str(payload.get("sub", "")).strip()
    if not actor:
        return None
    access_token = payload.get("access_token") or None
    return SessionContext(actor=actor, access_token=access_token)
