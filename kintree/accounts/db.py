"""Database query helpers for users and sessions."""

from __future__ import annotations

import uuid
from datetime import datetime

import asyncpg

from kintree.db import get_pool

_USER_COLUMNS = "id, name, email, avatar, bio, reminder_notes, created_at, updated_at"

PROFILE_FIELDS = {"name", "avatar", "bio", "reminder_notes"}


# ---------------------------------------------------------------------------
# Users
# ---------------------------------------------------------------------------

async def create_user(name: str, email: str, password_hash: str) -> asyncpg.Record | None:
    """Insert a user. Returns None when the email is already registered."""
    p = get_pool()
    uid = uuid.uuid4()
    try:
        return await p.fetchrow(
            "INSERT INTO users (id, name, email, password_hash) VALUES ($1, $2, $3, $4) "
            f"RETURNING {_USER_COLUMNS}",
            uid, name, email, password_hash,
        )
    except asyncpg.UniqueViolationError:
        return None


async def get_user(user_id: str) -> asyncpg.Record | None:
    p = get_pool()
    return await p.fetchrow(f"SELECT {_USER_COLUMNS} FROM users WHERE id = $1", user_id)


async def get_user_credentials(email: str) -> asyncpg.Record | None:
    """Return id + password hash for login."""
    p = get_pool()
    return await p.fetchrow(
        "SELECT id, password_hash FROM users WHERE email = $1",
        email,
    )


async def update_user(user_id: str, **kwargs) -> asyncpg.Record | None:
    p = get_pool()
    sets: list[str] = []
    params: list = []
    idx = 1

    for key, val in kwargs.items():
        if key not in PROFILE_FIELDS:
            continue
        sets.append(f"{key} = ${idx}")
        params.append(val)
        idx += 1

    if not sets:
        return await get_user(user_id)

    params.append(user_id)
    sql = (
        f"UPDATE users SET {', '.join(sets)}, updated_at = now() "
        f"WHERE id = ${idx} "
        f"RETURNING {_USER_COLUMNS}"
    )
    return await p.fetchrow(sql, *params)


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------

async def create_session(token_hash: str, user_id: str, expires_at: datetime) -> None:
    p = get_pool()
    await p.execute(
        "INSERT INTO sessions (token_hash, user_id, expires_at) VALUES ($1, $2, $3)",
        token_hash, user_id, expires_at,
    )


async def get_session(token_hash: str) -> asyncpg.Record | None:
    p = get_pool()
    return await p.fetchrow(
        "SELECT token_hash, user_id, expires_at FROM sessions WHERE token_hash = $1",
        token_hash,
    )


async def delete_session(token_hash: str) -> bool:
    p = get_pool()
    result = await p.execute("DELETE FROM sessions WHERE token_hash = $1", token_hash)
    return result == "DELETE 1"


async def delete_expired_sessions() -> int:
    """Remove every session past its expiry. Returns the number removed."""
    p = get_pool()
    result = await p.execute("DELETE FROM sessions WHERE expires_at <= now()")
    return int(result.split()[-1])
