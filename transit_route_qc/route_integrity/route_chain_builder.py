"""Rebuild one continuous route path from an unordered set of track segments.

Route relations store their ways in arbitrary order, so the chain is grown
greedily from a seed segment: a segment joins at the tail when its first point
equals the chain's last point, or at the head when its last point equals the
chain's first point. One scan over the working order is made per starting
segment. When the scan stalls the working order is rotated by one and the chain
is rebuilt from the new seed, at most once per segment. A chain shorter than the
input after every starting segment has been tried means the track has a gap.

The working state is an index-addressed arena:

    arena   tuple of distinct segments, never mutated
    order   list of arena indices, rotated left after each failed attempt
    chain   deque of arena indices, cleared before each attempt

Cost is bounded by n attempts of n endpoint comparisons each.
"""

from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Iterable

from transit_route_qc.route_integrity.geometry import Segment, SegmentSet, as_segment_set

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteChain:
    """Segments ordered head to tail.

    Attributes:
        segments: The chain; consecutive segments share an endpoint.
        expected: Number of distinct segments that were offered.
        attempts: Starting orders tried before returning.
    """

    segments: SegmentSet
    expected: int
    attempts: int = 0

    @property
    def has_gap(self) -> bool:
        return len(self.segments) < self.expected

    def __len__(self) -> int:
        return len(self.segments)


def _grow_chain(arena: SegmentSet, order: list[int]) -> deque[int]:
    """Seed with ``order[0]`` and make one pass over *order*."""
    chain: deque[int] = deque([order[0]])
    placed = {order[0]}
    for idx in order:
        if idx in placed:
            continue
        seg = arena[idx]
        if seg.first() == arena[chain[-1]].last():
            chain.append(idx)
            placed.add(idx)
        elif seg.last() == arena[chain[0]].first():
            chain.appendleft(idx)
            placed.add(idx)
    return chain


def build_route_chain(segments: Iterable[Segment]) -> RouteChain:
    """Order *segments* into one continuous chain when possible.

    Duplicate segments are collapsed first. Zero or one segment is returned as
    is. Otherwise the returned chain either holds every segment (no gap) or is
    the partial chain of the last attempt (gap). Never raises on a gap.
    """
    arena = as_segment_set(segments)
    n = len(arena)
    if n <= 1:
        return RouteChain(segments=arena, expected=n)

    order = list(range(n))
    chain: deque[int] = deque()
    failures = 0
    while failures < n:
        chain = _grow_chain(arena, order)
        if len(chain) == n:
            LOGGER.debug("Chained %d segment(s) after %d rotation(s).", n, failures)
            break
        failures += 1
        LOGGER.debug(
            "Attempt %d stalled at %d of %d segment(s); rotating.", failures, len(chain), n
        )
        order.append(order.pop(0))

    return RouteChain(
        segments=tuple(arena[i] for i in chain),
        expected=n,
        attempts=min(failures + 1, n),
    )


def has_gap(segments: Iterable[Segment]) -> bool:
    """True when *segments* cannot be joined into one continuous chain."""
    return build_route_chain(segments).has_gap
