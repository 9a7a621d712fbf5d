"""Database query helpers for the tree and member tables."""

from __future__ import annotations

import uuid

import asyncpg

from kintree.db import get_pool

_TREE_COLUMNS = (
    "t.id, t.owner_id, t.name, t.description, t.is_public, t.memory_notes, "
    "t.created_at, t.updated_at, "
    "COALESCE((SELECT array_agg(m.id ORDER BY m.created_at, m.id) "
    "          FROM members m WHERE m.tree_id = t.id), '{}') AS member_ids"
)

_MEMBER_COLUMNS = (
    "id, tree_id, name, relation, birth_date, death_date, email, phone, bio, "
    "profile_photo_url, memory_notes, created_at, updated_at"
)

TREE_FIELDS = {"name", "description", "is_public", "memory_notes"}
MEMBER_FIELDS = {
    "name", "relation", "birth_date", "death_date", "email", "phone", "bio",
    "profile_photo_url", "memory_notes",
}


def _update_sql(fields: dict, allowed: set[str]) -> tuple[list[str], list]:
    sets: list[str] = []
    params: list = []
    idx = 1
    for key, val in fields.items():
        if key not in allowed:
            continue
        sets.append(f"{key} = ${idx}")
        params.append(val)
        idx += 1
    return sets, params


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

async def create_tree(
    owner_id: str,
    name: str,
    description: str | None = None,
    is_public: bool = False,
    memory_notes: str | None = None,
) -> asyncpg.Record:
    p = get_pool()
    tid = uuid.uuid4()
    await p.execute(
        "INSERT INTO trees (id, owner_id, name, description, is_public, memory_notes) "
        "VALUES ($1, $2, $3, $4, $5, $6)",
        tid, owner_id, name, description, is_public, memory_notes,
    )
    return await get_tree(str(tid))


async def get_tree(tree_id: str) -> asyncpg.Record | None:
    p = get_pool()
    return await p.fetchrow(
        f"SELECT {_TREE_COLUMNS} FROM trees t WHERE t.id = $1",
        tree_id,
    )


async def list_trees_for_owner(owner_id: str) -> list[asyncpg.Record]:
    p = get_pool()
    return await p.fetch(
        f"SELECT {_TREE_COLUMNS} FROM trees t WHERE t.owner_id = $1 ORDER BY t.created_at DESC",
        owner_id,
    )


async def list_public_trees() -> list[asyncpg.Record]:
    p = get_pool()
    return await p.fetch(
        f"SELECT {_TREE_COLUMNS} FROM trees t WHERE t.is_public ORDER BY t.created_at DESC"
    )


async def update_tree(tree_id: str, **kwargs) -> asyncpg.Record | None:
    """Apply the given fields; keys outside TREE_FIELDS are ignored."""
    p = get_pool()
    sets, params = _update_sql(kwargs, TREE_FIELDS)
    if sets:
        params.append(tree_id)
        await p.execute(
            f"UPDATE trees SET {', '.join(sets)}, updated_at = now() WHERE id = ${len(params)}",
            *params,
        )
    return await get_tree(tree_id)


async def delete_tree(tree_id: str) -> bool:
    """Delete a tree; its members go with it (cascade)."""
    p = get_pool()
    result = await p.execute("DELETE FROM trees WHERE id = $1", tree_id)
    return result == "DELETE 1"


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

async def create_member(tree_id: str, **fields) -> asyncpg.Record:
    p = get_pool()
    mid = uuid.uuid4()
    values = {k: v for k, v in fields.items() if k in MEMBER_FIELDS}
    columns = ["id", "tree_id", *values]
    placeholders = ", ".join(f"${i}" for i in range(1, len(columns) + 1))
    return await p.fetchrow(
        f"INSERT INTO members ({', '.join(columns)}) VALUES ({placeholders}) "
        f"RETURNING {_MEMBER_COLUMNS}",
        mid, tree_id, *values.values(),
    )


async def get_member(member_id: str) -> asyncpg.Record | None:
    p = get_pool()
    return await p.fetchrow(
        f"SELECT {_MEMBER_COLUMNS} FROM members WHERE id = $1",
        member_id,
    )


async def update_member(member_id: str, **kwargs) -> asyncpg.Record | None:
    """Apply the given fields; keys outside MEMBER_FIELDS are ignored."""
    p = get_pool()
    sets, params = _update_sql(kwargs, MEMBER_FIELDS)
    if not sets:
        return await get_member(member_id)
    params.append(member_id)
    sql = (
        f"UPDATE members SET {', '.join(sets)}, updated_at = now() "
        f"WHERE id = ${len(params)} "
        f"RETURNING {_MEMBER_COLUMNS}"
    )
    return await p.fetchrow(sql, *params)


async def delete_member(member_id: str) -> bool:
    p = get_pool()
    result = await p.execute("DELETE FROM members WHERE id = $1", member_id)
    return result == "DELETE 1"


async def list_members(tree_id: str) -> list[asyncpg.Record]:
    """All members of a tree in insertion order."""
    p = get_pool()
    return await p.fetch(
        f"SELECT {_MEMBER_COLUMNS} FROM members WHERE tree_id = $1 ORDER BY created_at, id",
        tree_id,
    )
