"""Family tree, member and relationship-graph API endpoints."""

from __future__ import annotations

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException

from kintree.accounts.security import Viewer, get_viewer, require_user
from kintree.trees import access
from kintree.trees import db as tdb
from kintree.trees import engine
from kintree.trees.models import (
    CreateMemberIn,
    CreateTreeIn,
    EdgeOut,
    GraphOut,
    MemberOut,
    NodeOut,
    PositionOut,
    RelationOptionOut,
    RelationOptionsOut,
    TreeOut,
    UpdateMemberIn,
    UpdateTreeIn,
)

logger = logging.getLogger("kintree.trees.routes")

router = APIRouter(prefix="/api/v1", tags=["trees"])

# Columns that may not be cleared with an explicit null.
_REQUIRED_TREE_FIELDS = ("name", "is_public")
_REQUIRED_MEMBER_FIELDS = ("name", "relation")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

def _tree_out(row, viewer: Viewer) -> TreeOut:
    member_ids = list(row["member_ids"] or [])
    return TreeOut(
        id=row["id"],
        name=row["name"],
        description=row["description"],
        is_public=row["is_public"],
        owner_id=row["owner_id"],
        memory_notes=row["memory_notes"] if access.is_owner(row, viewer) else None,
        member_ids=member_ids,
        member_count=len(member_ids),
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _member_out(row, owner: bool) -> MemberOut:
    return MemberOut(
        id=row["id"],
        tree_id=row["tree_id"],
        name=row["name"],
        relation=row["relation"],
        birth_date=row["birth_date"],
        death_date=row["death_date"],
        email=row["email"],
        phone=row["phone"],
        bio=row["bio"],
        profile_photo_url=row["profile_photo_url"],
        memory_notes=row["memory_notes"] if owner else None,
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _engine_member(member: MemberOut, owner: bool) -> engine.Member:
    data = access.redact(
        member.model_dump(mode="json", exclude={"id", "name", "relation"}), owner
    )
    return engine.Member(
        id=str(member.id),
        relation=member.relation,
        name=member.name,
        details=data,
    )


def _graph_out(tree_id: UUID, graph: engine.Graph) -> GraphOut:
    return GraphOut(
        tree_id=tree_id,
        nodes=[
            NodeOut(
                id=n.id,
                type=n.type,
                category=n.category.value,
                position=PositionOut(x=n.position.x, y=n.position.y),
                color=n.color,
                data=n.data,
            )
            for n in graph.nodes
        ],
        edges=[
            EdgeOut(
                id=e.id,
                source=e.source,
                target=e.target,
                kind=e.kind.value,
                type=e.line,
                dashed=e.dashed,
            )
            for e in graph.edges
        ],
    )


def _reject_nulls(fields: dict, required: tuple[str, ...]) -> None:
    for key in required:
        if key in fields and fields[key] is None:
            raise HTTPException(400, f"{key} cannot be null")


async def _member_tree(member_id: UUID):
    """Load a member and the tree it belongs to, or 404."""
    member = await tdb.get_member(str(member_id))
    if member is None:
        raise HTTPException(404, "Member not found")
    tree = await tdb.get_tree(str(member["tree_id"]))
    if tree is None:
        raise HTTPException(404, "Associated tree not found")
    return member, tree


# ---------------------------------------------------------------------------
# Trees
# ---------------------------------------------------------------------------

@router.get("/trees")
async def list_trees(viewer: Viewer = Depends(require_user)) -> list[TreeOut]:
    """List the caller's own trees."""
    rows = await tdb.list_trees_for_owner(viewer.user_id)
    return [_tree_out(r, viewer) for r in rows]


@router.get("/trees/public")
async def list_public_trees(viewer: Viewer = Depends(get_viewer)) -> list[TreeOut]:
    rows = await tdb.list_public_trees()
    return [_tree_out(r, viewer) for r in rows]


@router.post("/trees", status_code=201)
async def create_tree(body: CreateTreeIn, viewer: Viewer = Depends(require_user)) -> TreeOut:
    """Create a new tree owned by the caller."""
    row = await tdb.create_tree(
        owner_id=viewer.user_id,
        name=body.name,
        description=body.description,
        is_public=body.is_public,
        memory_notes=body.memory_notes,
    )
    logger.info("User %s created tree %s", viewer.user_id, row["id"])
    return _tree_out(row, viewer)


@router.get("/trees/{tree_id}")
async def get_tree(tree_id: UUID, viewer: Viewer = Depends(get_viewer)) -> TreeOut:
    tree = await tdb.get_tree(str(tree_id))
    access.check_read(tree, viewer)
    return _tree_out(tree, viewer)


@router.patch("/trees/{tree_id}")
async def update_tree(
    tree_id: UUID, body: UpdateTreeIn, viewer: Viewer = Depends(get_viewer)
) -> TreeOut:
    """Update tree metadata (owner only)."""
    tree = await tdb.get_tree(str(tree_id))
    access.check_write(tree, viewer, "update this tree")
    fields = body.model_dump(exclude_unset=True)
    _reject_nulls(fields, _REQUIRED_TREE_FIELDS)
    row = await tdb.update_tree(str(tree_id), **fields)
    if row is None:
        raise HTTPException(404, "Tree not found")
    return _tree_out(row, viewer)


@router.delete("/trees/{tree_id}")
async def delete_tree(tree_id: UUID, viewer: Viewer = Depends(get_viewer)) -> dict:
    """Delete a tree and all of its members (owner only)."""
    tree = await tdb.get_tree(str(tree_id))
    access.check_write(tree, viewer, "delete this tree")
    deleted = await tdb.delete_tree(str(tree_id))
    if not deleted:
        raise HTTPException(404, "Tree not found")
    logger.info("User %s deleted tree %s", viewer.user_id, tree_id)
    return {"deleted": True}


# ---------------------------------------------------------------------------
# Members
# ---------------------------------------------------------------------------

@router.get("/trees/{tree_id}/members")
async def list_members(tree_id: UUID, viewer: Viewer = Depends(get_viewer)) -> list[MemberOut]:
    """List a tree's members in insertion order."""
    tree = await tdb.get_tree(str(tree_id))
    access.check_read(tree, viewer)
    owner = access.is_owner(tree, viewer)
    rows = await tdb.list_members(str(tree_id))
    return [_member_out(r, owner) for r in rows]


@router.post("/trees/{tree_id}/members", status_code=201)
async def create_member(
    tree_id: UUID, body: CreateMemberIn, viewer: Viewer = Depends(get_viewer)
) -> MemberOut:
    """Add a member to a tree (owner only)."""
    tree = await tdb.get_tree(str(tree_id))
    access.check_write(tree, viewer, "add members to this tree")
    row = await tdb.create_member(str(tree_id), **body.model_dump())
    return _member_out(row, owner=True)


@router.get("/members/{member_id}")
async def get_member(member_id: UUID, viewer: Viewer = Depends(get_viewer)) -> MemberOut:
    member, tree = await _member_tree(member_id)
    access.check_read(tree, viewer)
    return _member_out(member, access.is_owner(tree, viewer))


@router.patch("/members/{member_id}")
async def update_member(
    member_id: UUID, body: UpdateMemberIn, viewer: Viewer = Depends(get_viewer)
) -> MemberOut:
    """Update a member's details (tree owner only)."""
    member, tree = await _member_tree(member_id)
    access.check_write(tree, viewer, "update this member")
    fields = body.model_dump(exclude_unset=True)
    _reject_nulls(fields, _REQUIRED_MEMBER_FIELDS)

    born = fields.get("birth_date", member["birth_date"])
    died = fields.get("death_date", member["death_date"])
    if born and died and died < born:
        raise HTTPException(422, "death_date must not be before birth_date")

    row = await tdb.update_member(str(member_id), **fields)
    if row is None:
        raise HTTPException(404, "Member not found")
    return _member_out(row, owner=True)


@router.delete("/members/{member_id}")
async def delete_member(member_id: UUID, viewer: Viewer = Depends(get_viewer)) -> dict:
    """Delete a member (tree owner only)."""
    _, tree = await _member_tree(member_id)
    access.check_write(tree, viewer, "delete this member")
    deleted = await tdb.delete_member(str(member_id))
    if not deleted:
        raise HTTPException(404, "Member not found")
    return {"deleted": True}


# ---------------------------------------------------------------------------
# Relationship graph
# ---------------------------------------------------------------------------

@router.get("/trees/{tree_id}/graph")
async def get_graph(tree_id: UUID, viewer: Viewer = Depends(get_viewer)) -> GraphOut:
    """Positioned nodes and inferred edges for the tree, rebuilt on every call."""
    tree = await tdb.get_tree(str(tree_id))
    access.check_read(tree, viewer)
    owner = access.is_owner(tree, viewer)
    rows = await tdb.list_members(str(tree_id))
    members = [_engine_member(_member_out(r, owner), owner) for r in rows]
    graph = engine.build_graph(members)
    logger.debug(
        "Built graph for tree %s: %d nodes, %d edges",
        tree_id, len(graph.nodes), len(graph.edges),
    )
    return _graph_out(tree_id, graph)


@router.get("/relations")
async def list_relations() -> RelationOptionsOut:
    """Suggested relation labels and the category each one maps to."""
    return RelationOptionsOut(
        relations=[
            RelationOptionOut(label=label, category=engine.classify_relation(label).value)
            for label in engine.RELATION_OPTIONS
        ]
    )
