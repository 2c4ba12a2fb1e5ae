"""Flag stop / platform locations that sit too far from a route's track.

Each point is snapped to every segment of the track and keeps its closest snap.
A point passes as soon as one snap is closer than the threshold. The set fails
when any point's closest snap is at or beyond the threshold. Every point is
visited so the verdict can report how many points failed.

Points are visited in ascending ``(lat_dm7, lon_dm7)`` order and segments in the
order given, so on equal distances the first segment encountered wins.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional, Sequence

from transit_route_qc.route_integrity.geometry import (
    Location,
    Segment,
    SnapResult,
    snap_to_segment,
)

# =============================================================================
# CONFIGURATION
# =============================================================================

PROXIMITY_THRESHOLD_M = 1.5

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProximityVerdict:
    """Outcome of one proximity evaluation."""

    too_far: bool
    checked: int = 0
    offenders: int = 0
    offending: Optional[Location] = None
    nearest: Optional[SnapResult] = None

    @property
    def distance(self) -> Optional[float]:
        return None if self.nearest is None else self.nearest.distance


def nearest_snap(
    location: Location,
    segments: Sequence[Segment],
    threshold: Optional[float] = None,
) -> Optional[SnapResult]:
    """Closest snap of *location* over *segments*.

    With a *threshold*, stops at the first snap closer than it.
    """
    best: Optional[SnapResult] = None
    for segment in segments:
        snap = snap_to_segment(location, segment)
        if best is None or snap < best:
            best = snap
        if threshold is not None and best.distance < threshold:
            break
    return best


def evaluate_proximity(
    points: Iterable[Location],
    segments: Sequence[Segment],
    threshold: float = PROXIMITY_THRESHOLD_M,
) -> ProximityVerdict:
    """Return whether any of *points* is at least *threshold* meters from the track."""
    if threshold < 0:
        raise ValueError(f"threshold must be non-negative, got {threshold}")

    ordered = sorted(set(points), key=lambda p: (p.lat_dm7, p.lon_dm7))
    if not ordered or not segments:
        return ProximityVerdict(too_far=False)

    first_offender: Optional[tuple[Location, SnapResult]] = None
    offenders = 0
    for point in ordered:
        best = nearest_snap(point, segments, threshold)
        if best is None or best.distance < threshold:
            continue
        offenders += 1
        LOGGER.debug(
            "Point %s is %.3f m from the track (threshold %.3f m).",
            point,
            best.distance,
            threshold,
        )
        if first_offender is None:
            first_offender = (point, best)

    if first_offender is None:
        return ProximityVerdict(too_far=False, checked=len(ordered))
    point, best = first_offender
    return ProximityVerdict(
        too_far=True,
        checked=len(ordered),
        offenders=offenders,
        offending=point,
        nearest=best,
    )


def too_far(
    points: Iterable[Location],
    segments: Sequence[Segment],
    threshold: float = PROXIMITY_THRESHOLD_M,
) -> bool:
    """True when at least one point is *threshold* meters or more from every segment."""
    return evaluate_proximity(points, segments, threshold).too_far
