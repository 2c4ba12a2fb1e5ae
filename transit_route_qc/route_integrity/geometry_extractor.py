"""Split a route relation's members into track segments, stops and platforms."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from transit_route_qc.route_integrity.geometry import (
    Location,
    Segment,
    SegmentSet,
    as_segment_set,
)
from transit_route_qc.route_integrity.route_model import MemberType, Relation

# =============================================================================
# CONFIGURATION
# =============================================================================

STOP_ROLE = "stop"
PLATFORM_ROLE = "platform"

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteGeometry:
    """Geometry pulled out of one route relation."""

    segments: SegmentSet
    stops: frozenset[Location]
    platforms: frozenset[Location]
    edge_count: int = 0
    line_count: int = 0

    @property
    def has_track(self) -> bool:
        return bool(self.edge_count or self.line_count)


def _track_segments(relation: Relation) -> tuple[SegmentSet, int, int]:
    """Collect main-direction edges and lines of two or more points as segments.

    Members carrying a stop or platform role are not track, whatever their type.
    """
    segments: list[Segment] = []
    edges = lines = 0
    for member in relation.members:
        if not member.is_track or member.role in (STOP_ROLE, PLATFORM_ROLE):
            continue
        if member.member_type is MemberType.EDGE and not member.is_main:
            continue
        if len(member.locations) < 2:
            LOGGER.debug(
                "Relation %s: track member %s has %d point(s); skipped.",
                relation.identifier,
                member.identifier,
                len(member.locations),
            )
            continue
        if member.member_type is MemberType.EDGE:
            edges += 1
        else:
            lines += 1
        segments.append(Segment(member.locations))
    return as_segment_set(segments), edges, lines


def role_locations(relation: Relation, role: str) -> frozenset[Location]:
    """Locations of every member with *role* that resolves to a single point."""
    found = set()
    for member in relation.members:
        if member.role != role:
            continue
        loc = member.single_location
        if loc is not None:
            found.add(loc)
    return frozenset(found)


def extract_route_geometry(relation: Relation) -> RouteGeometry:
    """Return the track segments and the stop / platform locations of *relation*."""
    segments, edges, lines = _track_segments(relation)
    geometry = RouteGeometry(
        segments=segments,
        stops=role_locations(relation, STOP_ROLE),
        platforms=role_locations(relation, PLATFORM_ROLE),
        edge_count=edges,
        line_count=lines,
    )
    LOGGER.debug(
        "Relation %s: %d segment(s), %d stop(s), %d platform(s).",
        relation.identifier,
        len(geometry.segments),
        len(geometry.stops),
        len(geometry.platforms),
    )
    return geometry
