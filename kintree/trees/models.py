"""Pydantic models for trees, members and the relationship graph."""

from __future__ import annotations

from datetime import date, datetime
from uuid import UUID

from pydantic import BaseModel, Field, model_validator


# ---------------------------------------------------------------------------
# Tree CRUD
# ---------------------------------------------------------------------------

class CreateTreeIn(BaseModel):
    name: str = Field(min_length=1)
    description: str | None = None
    is_public: bool = False
    memory_notes: str | None = None


class UpdateTreeIn(BaseModel):
    name: str | None = Field(default=None, min_length=1)
    description: str | None = None
    is_public: bool | None = None
    memory_notes: str | None = None


class TreeOut(BaseModel):
    id: UUID
    name: str
    description: str | None = None
    is_public: bool
    owner_id: UUID
    memory_notes: str | None = None  # owner only
    member_ids: list[UUID]
    member_count: int
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Member CRUD
# ---------------------------------------------------------------------------

class _DateRangeMixin(BaseModel):
    @model_validator(mode="after")
    def check_dates(self):
        born = getattr(self, "birth_date", None)
        died = getattr(self, "death_date", None)
        if born and died and died < born:
            raise ValueError("death_date must not be before birth_date")
        return self


class CreateMemberIn(_DateRangeMixin):
    name: str = Field(min_length=1)
    relation: str = Field(min_length=1)
    birth_date: date | None = None
    death_date: date | None = None
    email: str | None = None
    phone: str | None = None
    bio: str | None = None
    profile_photo_url: str | None = None
    memory_notes: str | None = None


class UpdateMemberIn(_DateRangeMixin):
    name: str | None = Field(default=None, min_length=1)
    relation: str | None = Field(default=None, min_length=1)
    birth_date: date | None = None
    death_date: date | None = None
    email: str | None = None
    phone: str | None = None
    bio: str | None = None
    profile_photo_url: str | None = None
    memory_notes: str | None = None


class MemberOut(BaseModel):
    id: UUID
    tree_id: UUID
    name: str
    relation: str
    birth_date: date | None = None
    death_date: date | None = None
    email: str | None = None
    phone: str | None = None
    bio: str | None = None
    profile_photo_url: str | None = None
    memory_notes: str | None = None  # owner only
    created_at: datetime
    updated_at: datetime


# ---------------------------------------------------------------------------
# Relationship graph
# ---------------------------------------------------------------------------

class PositionOut(BaseModel):
    x: int
    y: int


class NodeOut(BaseModel):
    id: str
    type: str
    category: str  # parent, child, spouse, other
    position: PositionOut
    color: str
    data: dict


class EdgeOut(BaseModel):
    id: str
    source: str
    target: str
    kind: str  # parent_child, spousal
    type: str  # smoothstep, straight
    animated: bool = False
    dashed: bool = False


class GraphOut(BaseModel):
    tree_id: UUID
    nodes: list[NodeOut]
    edges: list[EdgeOut]


class RelationOptionOut(BaseModel):
    label: str
    category: str


class RelationOptionsOut(BaseModel):
    relations: list[RelationOptionOut]
