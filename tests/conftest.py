"""Pytest fixtures: an in-memory stand-in for the asyncpg-backed stores."""

import uuid
from datetime import datetime, timezone

import pytest
from fastapi.testclient import TestClient

from kintree.accounts import db as adb
from kintree.accounts import security
from kintree.app import app
from kintree.trees import db as tdb


def _now():
    return datetime.now(timezone.utc)


class InMemoryStore:
    """Implements the store functions the routes call, over plain dicts."""

    def __init__(self):
        self.users: dict[str, dict] = {}
        self.sessions: dict[str, dict] = {}
        self.trees: dict[str, dict] = {}
        self.members: list[dict] = []

    # -- users ---------------------------------------------------------------

    async def create_user(self, name, email, password_hash):
        if any(u["email"] == email for u in self.users.values()):
            return None
        uid = uuid.uuid4()
        row = {
            "id": uid, "name": name, "email": email, "password_hash": password_hash,
            "avatar": None, "bio": None, "reminder_notes": None,
            "created_at": _now(), "updated_at": _now(),
        }
        self.users[str(uid)] = row
        return row

    async def get_user(self, user_id):
        return self.users.get(str(user_id))

    async def get_user_credentials(self, email):
        return next((u for u in self.users.values() if u["email"] == email), None)

    async def update_user(self, user_id, **kwargs):
        row = self.users.get(str(user_id))
        if row is None:
            return None
        row.update({k: v for k, v in kwargs.items() if k in adb.PROFILE_FIELDS})
        return row

    async def create_session(self, token_hash, user_id, expires_at):
        self.sessions[token_hash] = {
            "token_hash": token_hash, "user_id": uuid.UUID(user_id), "expires_at": expires_at,
        }

    async def get_session(self, token_hash):
        return self.sessions.get(token_hash)

    async def delete_session(self, token_hash):
        return self.sessions.pop(token_hash, None) is not None

    async def delete_expired_sessions(self):
        now = _now()
        expired = [h for h, s in self.sessions.items() if s["expires_at"] <= now]
        for h in expired:
            del self.sessions[h]
        return len(expired)

    # -- trees ---------------------------------------------------------------

    def _tree_row(self, tree):
        ids = [m["id"] for m in self.members if m["tree_id"] == tree["id"]]
        return {**tree, "member_ids": ids}

    async def create_tree(self, owner_id, name, description=None, is_public=False, memory_notes=None):
        tid = uuid.uuid4()
        self.trees[str(tid)] = {
            "id": tid, "owner_id": uuid.UUID(owner_id), "name": name,
            "description": description, "is_public": is_public, "memory_notes": memory_notes,
            "created_at": _now(), "updated_at": _now(),
        }
        return self._tree_row(self.trees[str(tid)])

    async def get_tree(self, tree_id):
        tree = self.trees.get(str(tree_id))
        return self._tree_row(tree) if tree else None

    async def list_trees_for_owner(self, owner_id):
        return [self._tree_row(t) for t in self.trees.values() if str(t["owner_id"]) == owner_id]

    async def list_public_trees(self):
        return [self._tree_row(t) for t in self.trees.values() if t["is_public"]]

    async def update_tree(self, tree_id, **kwargs):
        tree = self.trees.get(str(tree_id))
        if tree is None:
            return None
        tree.update({k: v for k, v in kwargs.items() if k in tdb.TREE_FIELDS})
        tree["updated_at"] = _now()
        return self._tree_row(tree)

    async def delete_tree(self, tree_id):
        tree = self.trees.pop(str(tree_id), None)
        if tree is None:
            return False
        self.members = [m for m in self.members if m["tree_id"] != tree["id"]]
        return True

    # -- members -------------------------------------------------------------

    async def create_member(self, tree_id, **fields):
        row = {f: None for f in tdb.MEMBER_FIELDS}
        row.update({k: v for k, v in fields.items() if k in tdb.MEMBER_FIELDS})
        row.update({
            "id": uuid.uuid4(), "tree_id": uuid.UUID(tree_id),
            "created_at": _now(), "updated_at": _now(),
        })
        self.members.append(row)
        return row

    async def get_member(self, member_id):
        return next((m for m in self.members if str(m["id"]) == str(member_id)), None)

    async def update_member(self, member_id, **kwargs):
        row = await self.get_member(member_id)
        if row is None:
            return None
        row.update({k: v for k, v in kwargs.items() if k in tdb.MEMBER_FIELDS})
        row["updated_at"] = _now()
        return row

    async def delete_member(self, member_id):
        before = len(self.members)
        self.members = [m for m in self.members if str(m["id"]) != str(member_id)]
        return len(self.members) < before

    async def list_members(self, tree_id):
        return [m for m in self.members if str(m["tree_id"]) == str(tree_id)]


_ACCOUNT_FUNCS = (
    "create_user", "get_user", "get_user_credentials", "update_user",
    "create_session", "get_session", "delete_session", "delete_expired_sessions",
)
_TREE_FUNCS = (
    "create_tree", "get_tree", "list_trees_for_owner", "list_public_trees",
    "update_tree", "delete_tree", "create_member", "get_member", "update_member",
    "delete_member", "list_members",
)


@pytest.fixture
def store(monkeypatch):
    """Swap the asyncpg store functions for an in-memory store."""
    s = InMemoryStore()
    for name in _ACCOUNT_FUNCS:
        monkeypatch.setattr(adb, name, getattr(s, name))
    for name in _TREE_FUNCS:
        monkeypatch.setattr(tdb, name, getattr(s, name))
    monkeypatch.setattr(security, "PBKDF2_ITERATIONS", 1_000)
    return s


@pytest.fixture
def client(store):
    return TestClient(app)


def _signup(client, name, email):
    resp = client.post(
        "/api/v1/auth/signup",
        json={"name": name, "email": email, "password": "secret123"},
    )
    assert resp.status_code == 201, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def owner_headers(client):
    return _signup(client, "Olive Owner", "olive@example.com")


@pytest.fixture
def other_headers(client):
    return _signup(client, "Victor Visitor", "victor@example.com")
