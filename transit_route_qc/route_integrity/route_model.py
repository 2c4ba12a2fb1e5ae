"""Host data model consumed by the route integrity checks.

A :class:`Relation` is an OSM-style relation: tags plus an ordered list of typed,
role-carrying members. Track members (edges and lines) hold a point sequence;
point-like members hold a single location; relation members point at a nested
:class:`Relation` when it could be resolved.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from enum import Enum
from typing import Iterable, Mapping, Optional

from transit_route_qc.route_integrity.geometry import Location

ROUTE = "route"
ROUTE_MASTER = "route_master"


class MemberType(Enum):
    """Kind of entity a relation member resolves to."""

    EDGE = "edge"
    LINE = "line"
    NODE = "node"
    POINT = "point"
    RELATION = "relation"


@dataclass(frozen=True)
class RouteMember:
    """One member of a relation."""

    identifier: int
    member_type: MemberType
    role: str = ""
    locations: tuple[Location, ...] = ()
    # False for the reverse twin of a bidirectional edge
    is_main: bool = True
    relation: Optional["Relation"] = None

    @property
    def is_track(self) -> bool:
        return self.member_type in (MemberType.EDGE, MemberType.LINE)

    @property
    def single_location(self) -> Optional[Location]:
        """The member's location if it resolves to exactly one point."""
        if self.member_type is MemberType.RELATION or len(self.locations) != 1:
            return None
        return self.locations[0]


@dataclass(frozen=True)
class Relation:
    """A relation with tags and members."""

    identifier: int
    # Identity is the relation id alone.
    tags: Mapping[str, str] = field(default_factory=dict, compare=False)
    members: tuple[RouteMember, ...] = field(default=(), compare=False)

    @property
    def relation_type(self) -> Optional[str]:
        return self.tags.get("type")

    @property
    def is_route(self) -> bool:
        return self.relation_type == ROUTE

    @property
    def is_route_master(self) -> bool:
        return self.relation_type == ROUTE_MASTER

    @property
    def name(self) -> str:
        return self.tags.get("name", "")

    def member_routes(self) -> list["Relation"]:
        """Distinct nested route relations, in member order."""
        routes = [
            m.relation
            for m in self.members
            if m.member_type is MemberType.RELATION
            and m.relation is not None
            and m.relation.is_route
        ]
        return list(dict.fromkeys(routes))


class RelationCatalog:
    """All relations of one dataset, indexed for route-master lookups."""

    def __init__(self, relations: Iterable[Relation]):
        self._by_id: dict[int, Relation] = {}
        self._masters_by_route: dict[int, set[int]] = defaultdict(set)
        for rel in relations:
            self._by_id[rel.identifier] = rel
            if rel.is_route_master:
                for route in rel.member_routes():
                    self._masters_by_route[route.identifier].add(rel.identifier)

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self):
        return iter(self._by_id.values())

    def get(self, identifier: int) -> Optional[Relation]:
        return self._by_id.get(identifier)

    def route_masters_of(self, route_id: int) -> set[int]:
        """Ids of the route masters that list *route_id* as a member route."""
        return set(self._masters_by_route.get(route_id, ()))
