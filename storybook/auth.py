"""
Admin authentication: bcrypt password hashes and signed bearer tokens.
"""

from __future__ import annotations

import logging
import time
from typing import Optional

import bcrypt
import jwt
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from storybook.config import Settings, get_settings
from storybook.db import DbClient
from storybook.errors import AuthError, ConfigurationError

logger = logging.getLogger(__name__)

TOKEN_ALGORITHM = "HS256"

_bearer = HTTPBearer(auto_error=False)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return bcrypt.checkpw(password.encode("utf-8"), password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


def _require_secret(settings: Settings) -> str:
    if not settings.jwt_secret:
        logger.error("JWT_SECRET is not set")
        raise ConfigurationError("Server configuration error: JWT_SECRET missing")
    return settings.jwt_secret


def issue_token(username: str, settings: Settings) -> str:
    now = int(time.time())
    claims = {
        "username": username,
        "iat": now,
        "exp": now + settings.jwt_expires_seconds,
    }
    return jwt.encode(claims, _require_secret(settings), algorithm=TOKEN_ALGORITHM)


def decode_token(token: str, settings: Settings) -> dict:
    try:
        return jwt.decode(
            token, _require_secret(settings), algorithms=[TOKEN_ALGORITHM]
        )
    except jwt.PyJWTError as exc:
        raise AuthError("Not authorized, token invalid") from exc


def login(db: DbClient, username: str, password: str, settings: Settings) -> str:
    """Check credentials and return a signed token."""
    _require_secret(settings)
    admin = db.get_admin(username)
    if admin is None:
        logger.info("Login rejected: unknown user %s", username)
        raise AuthError("Invalid credentials")
    if not verify_password(password, admin.password_hash):
        logger.info("Login rejected: password mismatch for %s", username)
        raise AuthError("Invalid credentials")
    logger.info("Login succeeded for %s", username)
    return issue_token(username, settings)


def require_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(_bearer),
    settings: Settings = Depends(get_settings),
) -> Optional[str]:
    """FastAPI dependency returning the authenticated admin's username.

    Returns None without checking anything when auth is disabled.
    """
    if not settings.auth_enabled:
        return None
    if credentials is None:
        raise AuthError("Not authorized, no token provided")
    claims = decode_token(credentials.credentials, settings)
    username = claims.get("username")
    if not username:
        raise AuthError("Not authorized, token invalid")
    return username
