"""Finding types produced by the route integrity checks, and the processed-id registry."""

from __future__ import annotations

import threading
from dataclasses import dataclass
from enum import Enum
from typing import Iterable


class FindingKind(Enum):
    """What was wrong with a relation. Values are the English instruction templates."""

    EMPTY_ROUTE = "The route in relation {id} is empty. Add its track segments (edges or lines)."
    MIXED_ROUTE = "The route in relation {id} contains both lines and edges; use one kind only."
    GAP = "The route in relation {id} has gaps in the track."
    STOPS_TOO_FAR = "The stops in route relation {id} are too far from the track."
    PLATFORMS_TOO_FAR = "The platforms in route relation {id} are too far from the track."
    NON_ROUTE_MEMBER = "The route master relation {id} contains a non-route member."
    NOT_IN_ROUTE_MASTER = (
        "The relation {id} is a public transport route of type {detail} "
        "and should be contained in a route master relation."
    )
    MISSING_GROUP_TAGS = (
        "The relation {id} is missing some of the network, operator, ref, colour tags: {detail}."
    )
    INCONSISTENT_NETWORK = "The relation {id} has a network tag inconsistent with its route master."
    INCONSISTENT_OPERATOR = (
        "The relation {id} has an operator tag inconsistent with its route master."
    )
    INCONSISTENT_REF = "The relation {id} has a ref tag inconsistent with its route master."
    INCONSISTENT_COLOUR = "The relation {id} has a colour tag inconsistent with its route master."


@dataclass(frozen=True)
class Finding:
    """One problem found on one relation."""

    kind: FindingKind
    relation_id: int
    detail: str = ""

    def message(self) -> str:
        return self.kind.value.format(id=self.relation_id, detail=self.detail)


class ProcessedRegistry:
    """Relation ids already evaluated in this run.

    Shared across threads; ``claim`` is atomic so a route reached both on its own
    and through its route master is evaluated once.
    """

    def __init__(self, initial: Iterable[int] = ()):
        self._ids: set[int] = set(initial)
        self._lock = threading.Lock()

    def __contains__(self, identifier: int) -> bool:
        with self._lock:
            return identifier in self._ids

    def __len__(self) -> int:
        with self._lock:
            return len(self._ids)

    def claim(self, identifier: int) -> bool:
        """Mark *identifier*; return False if it was already marked."""
        with self._lock:
            if identifier in self._ids:
                return False
            self._ids.add(identifier)
            return True
