"""Tree ownership and visibility rules."""

from __future__ import annotations

from fastapi import HTTPException

from kintree.accounts.security import Viewer

PRIVATE_FIELDS = ("memory_notes",)


def is_owner(tree, viewer: Viewer) -> bool:
    return viewer.authenticated and str(tree["owner_id"]) == viewer.user_id


def can_read(tree, viewer: Viewer) -> bool:
    return bool(tree["is_public"]) or is_owner(tree, viewer)


def can_write(tree, viewer: Viewer) -> bool:
    return is_owner(tree, viewer)


def check_read(tree, viewer: Viewer) -> None:
    """Raise 404/401/403 unless the viewer may read the tree."""
    if tree is None:
        raise HTTPException(404, "Tree not found")
    if can_read(tree, viewer):
        return
    if not viewer.authenticated:
        raise HTTPException(401, "Not authorized, no token")
    raise HTTPException(403, "Not authorized to access this tree")


def check_write(tree, viewer: Viewer, action: str = "modify this tree") -> None:
    if tree is None:
        raise HTTPException(404, "Tree not found")
    if not viewer.authenticated:
        raise HTTPException(401, "Not authorized, no token")
    if not can_write(tree, viewer):
        raise HTTPException(403, f"Not authorized to {action}")


def redact(record: dict, owner: bool) -> dict:
    """Drop private notes unless the viewer owns the tree."""
    if owner:
        return record
    return {k: v for k, v in record.items() if k not in PRIVATE_FIELDS}
