"""Password hashing, bearer tokens and the per-request viewer context.

Tokens are opaque random strings. Only their SHA-256 digest is stored, in
the ``sessions`` table, together with an expiry. Handlers never look at
headers themselves: they receive a ``Viewer`` from the ``get_viewer`` /
``require_user`` dependencies.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import os
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from fastapi import Depends, HTTPException, Request

from kintree.accounts import db as adb

logger = logging.getLogger("kintree.accounts.security")

TOKEN_TTL_DAYS = int(os.environ.get("KT_TOKEN_TTL_DAYS", "30"))
PBKDF2_ITERATIONS = int(os.environ.get("KT_PBKDF2_ITERATIONS", "240000"))

_HASH_SCHEME = "pbkdf2_sha256"


# ---------------------------------------------------------------------------
# Passwords
# ---------------------------------------------------------------------------

def hash_password(password: str, iterations: int | None = None) -> str:
    """Return ``scheme$iterations$salt$digest`` for storage."""
    iterations = iterations or PBKDF2_ITERATIONS
    salt = secrets.token_hex(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), iterations)
    return f"{_HASH_SCHEME}${iterations}${salt}${digest.hex()}"


def verify_password(password: str, stored: str) -> bool:
    try:
        scheme, iterations, salt, expected = stored.split("$")
    except ValueError:
        return False
    if scheme != _HASH_SCHEME:
        return False
    digest = hashlib.pbkdf2_hmac("sha256", password.encode(), salt.encode(), int(iterations))
    return hmac.compare_digest(digest.hex(), expected)


# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------

def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode()).hexdigest()


async def issue_token(user_id: str) -> str:
    """Create a session for the user and return the raw bearer token."""
    swept = await adb.delete_expired_sessions()
    if swept:
        logger.info("Removed %d expired sessions", swept)
    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(days=TOKEN_TTL_DAYS)
    await adb.create_session(hash_token(token), user_id, expires_at)
    return token


def bearer_token(request: Request) -> str | None:
    header = request.headers.get("authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


# ---------------------------------------------------------------------------
# Viewer context
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Viewer:
    """Who is asking. ``user_id`` is None for anonymous requests."""
    user_id: str | None = None
    token: str | None = None

    @property
    def authenticated(self) -> bool:
        return self.user_id is not None


ANONYMOUS = Viewer()


async def get_viewer(request: Request) -> Viewer:
    """Resolve the bearer token, if any. A bad token is an error, not anonymity."""
    token = bearer_token(request)
    if token is None:
        return ANONYMOUS
    session = await adb.get_session(hash_token(token))
    if session is None:
        raise HTTPException(401, "Not authorized, token failed")
    if session["expires_at"] <= datetime.now(timezone.utc):
        await adb.delete_session(session["token_hash"])
        logger.info("Rejected expired token for user %s", session["user_id"])
        raise HTTPException(401, "Not authorized, token expired")
    return Viewer(user_id=str(session["user_id"]), token=token)


async def require_user(viewer: Viewer = Depends(get_viewer)) -> Viewer:
    if not viewer.authenticated:
        raise HTTPException(401, "Not authorized, no token")
    return viewer
