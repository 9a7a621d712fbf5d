"""Relationship graph engine: pure Python layout and edge inference.

Takes the flat member list of one tree and produces a positioned
node-and-edge diagram for a rendering client:

- every member's relation label is classified into a semantic category,
- every member gets a grid position from its index in the list,
- parent/child and spousal edges are inferred from the categories alone.

No DB, no I/O, pure functions on in-memory data. Same input list (same
members, same order) always yields the same graph.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Sequence


class Category(str, Enum):
    PARENT = "parent"
    CHILD = "child"
    SPOUSE = "spouse"
    OTHER = "other"


class EdgeKind(str, Enum):
    PARENT_CHILD = "parent_child"
    SPOUSAL = "spousal"


# Suggestions offered by clients; labels are free text and never validated
# against this list.
RELATION_OPTIONS: tuple[str, ...] = (
    "Father",
    "Mother",
    "Son",
    "Daughter",
    "Brother",
    "Sister",
    "Grandparent",
    "Grandchild",
    "Aunt",
    "Uncle",
    "Cousin",
    "Spouse",
    "Other",
)

_CATEGORY_BY_LABEL: dict[str, Category] = {
    "Father": Category.PARENT,
    "Mother": Category.PARENT,
    "Son": Category.CHILD,
    "Daughter": Category.CHILD,
    "Spouse": Category.SPOUSE,
}

CATEGORY_COLORS: dict[Category, str] = {
    Category.PARENT: "#A8D5BA",
    Category.CHILD: "#FFD6C4",
    Category.SPOUSE: "#FFDEE2",
    Category.OTHER: "#E5DEFF",
}

GRID_COLUMNS = 3
GRID_ORIGIN = 100
GRID_SPACING = 200


@dataclass
class Member:
    """A family member as handed over by the member store.

    ``details`` holds every other public field (dates, contact, bio, photo,
    and the private note when the viewer owns the tree). It is copied
    shallowly into the node data.
    """
    id: str
    relation: str
    name: str = ""
    details: dict = field(default_factory=dict)


@dataclass
class Position:
    x: int
    y: int


@dataclass
class Node:
    id: str
    category: Category
    position: Position
    data: dict
    type: str = "person"

    @property
    def color(self) -> str:
        return CATEGORY_COLORS[self.category]


@dataclass
class Edge:
    id: str
    source: str
    target: str
    kind: EdgeKind

    @property
    def line(self) -> str:
        return "smoothstep" if self.kind is EdgeKind.PARENT_CHILD else "straight"

    @property
    def dashed(self) -> bool:
        return self.kind is EdgeKind.SPOUSAL


@dataclass
class Graph:
    nodes: list[Node] = field(default_factory=list)
    edges: list[Edge] = field(default_factory=list)


# ---------------------------------------------------------------------------
# Classifier
# ---------------------------------------------------------------------------

def classify_relation(label: str | None) -> Category:
    """Map a free-text relation label to its category; unknown labels are OTHER."""
    if not label:
        return Category.OTHER
    return _CATEGORY_BY_LABEL.get(label, Category.OTHER)


# ---------------------------------------------------------------------------
# Layout
# ---------------------------------------------------------------------------

def grid_position(index: int) -> Position:
    row, col = divmod(index, GRID_COLUMNS)
    return Position(
        x=GRID_ORIGIN + col * GRID_SPACING,
        y=GRID_ORIGIN + row * GRID_SPACING,
    )


def assign_positions(members: Sequence[Member]) -> list[Position]:
    """Place members on a 3-column grid by their index in the list.

    Positions depend only on list order, not on relationships, so a
    different fetch order moves people around.
    """
    return [grid_position(i) for i in range(len(members))]


# ---------------------------------------------------------------------------
# Graph building
# ---------------------------------------------------------------------------

def edge_id(kind: EdgeKind, source: str, target: str) -> str:
    return f"e-{kind.value}-{source}-{target}"


def _make_edge(kind: EdgeKind, source: str, target: str) -> Edge:
    return Edge(id=edge_id(kind, source, target), source=source, target=target, kind=kind)


def _node_data(member: Member) -> dict:
    return {"id": member.id, "name": member.name, "relation": member.relation, **member.details}


def infer_parent_edges(members: Sequence[Member], categories: Sequence[Category]) -> list[Edge]:
    """Link every child to the first parent in list order.

    A child never gets more than one inferred parent, even when the list
    holds both a father and a mother.
    """
    first_parent = next(
        (m for m, c in zip(members, categories) if c is Category.PARENT), None
    )
    if first_parent is None:
        return []
    return [
        _make_edge(EdgeKind.PARENT_CHILD, first_parent.id, m.id)
        for m, c in zip(members, categories)
        if c is Category.CHILD
    ]


def infer_spouse_edges(members: Sequence[Member], categories: Sequence[Category]) -> list[Edge]:
    """Pair spouses two at a time in list order; an odd one out stays unlinked."""
    spouses = [m for m, c in zip(members, categories) if c is Category.SPOUSE]
    return [
        _make_edge(EdgeKind.SPOUSAL, spouses[i].id, spouses[i + 1].id)
        for i in range(0, len(spouses) - 1, 2)
    ]


def build_graph(members: Sequence[Member]) -> Graph:
    """Build the positioned node/edge graph for one tree's members."""
    categories = [classify_relation(m.relation) for m in members]
    positions = assign_positions(members)

    nodes = [
        Node(id=m.id, category=c, position=pos, data=_node_data(m))
        for m, c, pos in zip(members, categories, positions)
    ]
    edges = infer_parent_edges(members, categories) + infer_spouse_edges(members, categories)
    return Graph(nodes=nodes, edges=edges)


def count_by_category(label_counts: dict[str, int]) -> dict[Category, int]:
    """Fold per-label member counts into per-category counts."""
    counts = {c: 0 for c in Category}
    for label, n in label_counts.items():
        counts[classify_relation(label)] += n
    return counts
