"""Database pool management, schema and stats helpers for kintree."""

from __future__ import annotations

import logging
import os

import asyncpg

from kintree.trees.engine import count_by_category

logger = logging.getLogger("kintree.db")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_DB_HOST = os.environ.get("KT_DB_HOST", "localhost")
_DB_PORT = os.environ.get("KT_DB_PORT", "5432")
_DB_USER = os.environ.get("KT_DB_USER", "postgres")
_DB_PASSWORD = os.environ.get("KT_DB_PASSWORD", "postgres")
_DB_NAME = os.environ.get("KT_DB_NAME", "kintree")

DATABASE_URL = os.environ.get(
    "KT_DATABASE_URL",
    f"postgresql://{_DB_USER}:{_DB_PASSWORD}@{_DB_HOST}:{_DB_PORT}/{_DB_NAME}",
)

APPLY_SCHEMA = os.environ.get("KT_APPLY_SCHEMA", "true").lower() in ("1", "true", "yes")

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

# Membership lives only on members.tree_id; trees carry no member array.
SCHEMA = """
CREATE TABLE IF NOT EXISTS users (
    id              uuid PRIMARY KEY,
    name            text NOT NULL,
    email           text NOT NULL UNIQUE,
    password_hash   text NOT NULL,
    avatar          text,
    bio             text,
    reminder_notes  text,
    created_at      timestamptz NOT NULL DEFAULT now(),
    updated_at      timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS sessions (
    token_hash  text PRIMARY KEY,
    user_id     uuid NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    expires_at  timestamptz NOT NULL,
    created_at  timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS trees (
    id            uuid PRIMARY KEY,
    owner_id      uuid NOT NULL REFERENCES users (id) ON DELETE CASCADE,
    name          text NOT NULL,
    description   text,
    is_public     boolean NOT NULL DEFAULT false,
    memory_notes  text,
    created_at    timestamptz NOT NULL DEFAULT now(),
    updated_at    timestamptz NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS members (
    id                 uuid PRIMARY KEY,
    tree_id            uuid NOT NULL REFERENCES trees (id) ON DELETE CASCADE,
    name               text NOT NULL,
    relation           text NOT NULL,
    birth_date         date,
    death_date         date,
    email              text,
    phone              text,
    bio                text,
    profile_photo_url  text,
    memory_notes       text,
    created_at         timestamptz NOT NULL DEFAULT now(),
    updated_at         timestamptz NOT NULL DEFAULT now()
);

CREATE INDEX IF NOT EXISTS members_tree_id_idx ON members (tree_id, created_at);
CREATE INDEX IF NOT EXISTS trees_owner_id_idx ON trees (owner_id);
"""

# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

_pool: asyncpg.Pool | None = None


async def init_pool() -> asyncpg.Pool:
    """Create the global asyncpg connection pool."""
    global _pool
    _pool = await asyncpg.create_pool(
        DATABASE_URL,
        min_size=2,
        max_size=10,
    )
    return _pool


async def close_pool() -> None:
    """Gracefully close the connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    """Return the pool, raising if not initialized."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized")
    return _pool


async def apply_schema() -> None:
    """Create tables and indexes if they do not exist yet."""
    p = get_pool()
    async with p.acquire() as conn:
        async with conn.transaction():
            await conn.execute(SCHEMA)
    logger.info("Schema applied")


# ---------------------------------------------------------------------------
# Stats
# ---------------------------------------------------------------------------

async def get_stats() -> dict:
    """Aggregate stats for the metrics endpoint."""
    p = get_pool()
    total_users = await p.fetchval("SELECT COUNT(*) FROM users")
    total_trees = await p.fetchval("SELECT COUNT(*) FROM trees")
    public_trees = await p.fetchval("SELECT COUNT(*) FROM trees WHERE is_public")
    total_members = await p.fetchval("SELECT COUNT(*) FROM members")

    relation_counts = await p.fetch(
        "SELECT relation, COUNT(*) AS cnt FROM members GROUP BY relation ORDER BY relation"
    )

    return {
        "total_users": total_users,
        "total_trees": total_trees,
        "public_trees": public_trees,
        "total_members": total_members,
        "members_by_category": {
            c.value: n
            for c, n in count_by_category({r["relation"]: r["cnt"] for r in relation_counts}).items()
        },
    }
