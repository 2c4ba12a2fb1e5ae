"""Geometry primitives shared by the route integrity checks.

Locations are held at OSM fixed precision (dm7, degrees x 10^7) so that two
endpoints are "the same point" only when their integer coordinates match. Snap
distances are measured on a local equirectangular plane in meters centered on the
query point, which is accurate well below a meter at the distances these checks
care about.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, Sequence

from shapely.geometry import LineString, Point

# =============================================================================
# CONFIGURATION
# =============================================================================

DM7_PER_DEGREE = 10_000_000
EARTH_RADIUS_M = 6_371_000.0

_MAX_LAT_DM7 = 90 * DM7_PER_DEGREE
_MAX_LON_DM7 = 180 * DM7_PER_DEGREE

# =============================================================================
# TYPES
# =============================================================================


@dataclass(frozen=True)
class Location:
    """A WGS84 point stored as integer dm7 coordinates."""

    lat_dm7: int
    lon_dm7: int

    def __post_init__(self) -> None:
        if not -_MAX_LAT_DM7 <= self.lat_dm7 <= _MAX_LAT_DM7:
            raise ValueError(f"Latitude out of range: {self.lat_dm7 / DM7_PER_DEGREE}")
        if not -_MAX_LON_DM7 <= self.lon_dm7 <= _MAX_LON_DM7:
            raise ValueError(f"Longitude out of range: {self.lon_dm7 / DM7_PER_DEGREE}")

    @classmethod
    def from_degrees(cls, latitude: float, longitude: float) -> "Location":
        """Round decimal degrees to the nearest dm7."""
        return cls(round(latitude * DM7_PER_DEGREE), round(longitude * DM7_PER_DEGREE))

    @property
    def latitude(self) -> float:
        return self.lat_dm7 / DM7_PER_DEGREE

    @property
    def longitude(self) -> float:
        return self.lon_dm7 / DM7_PER_DEGREE

    def __str__(self) -> str:
        return f"({self.latitude:.7f}, {self.longitude:.7f})"


@dataclass(frozen=True)
class Segment:
    """An immutable polyline of two or more locations."""

    points: tuple[Location, ...]

    def __post_init__(self) -> None:
        if len(self.points) < 2:
            raise ValueError(f"A segment needs at least two points, got {len(self.points)}")

    @classmethod
    def from_degrees(cls, coords: Iterable[tuple[float, float]]) -> "Segment":
        """Build a segment from ``(lat, lon)`` pairs in decimal degrees."""
        return cls(tuple(Location.from_degrees(lat, lon) for lat, lon in coords))

    def first(self) -> Location:
        return self.points[0]

    def last(self) -> Location:
        return self.points[-1]

    def __len__(self) -> int:
        return len(self.points)


@dataclass(frozen=True)
class SnapResult:
    """Closest point on one segment to a query location."""

    distance: float  # meters
    location: Location
    segment: Segment

    def __lt__(self, other: "SnapResult") -> bool:
        return self.distance < other.distance


SegmentSet = tuple[Segment, ...]

# =============================================================================
# FUNCTIONS
# =============================================================================


def as_segment_set(segments: Iterable[Segment]) -> SegmentSet:
    """Drop duplicate segments, keeping first-seen order."""
    return tuple(dict.fromkeys(segments))


def _wrap_degrees(delta: float) -> float:
    """Fold a longitude difference into [-180, 180)."""
    return (delta + 180.0) % 360.0 - 180.0


def _to_local_xy(
    location: Location, origin: Location, cos_lat0: float
) -> tuple[float, float]:
    """Project *location* to meters on a plane tangent at *origin*."""
    dlon = _wrap_degrees(location.longitude - origin.longitude)
    dlat = location.latitude - origin.latitude
    x_m = math.radians(dlon) * cos_lat0 * EARTH_RADIUS_M
    y_m = math.radians(dlat) * EARTH_RADIUS_M
    return x_m, y_m


def _from_local_xy(x_m: float, y_m: float, origin: Location, cos_lat0: float) -> Location:
    """Inverse of :func:`_to_local_xy`."""
    lat = origin.latitude + math.degrees(y_m / EARTH_RADIUS_M)
    lon = origin.longitude
    if cos_lat0 > 0.0:
        lon = _wrap_degrees(lon + math.degrees(x_m / (EARTH_RADIUS_M * cos_lat0)))
    lat = max(-90.0, min(90.0, lat))
    return Location.from_degrees(lat, lon)


def snap_to_segment(location: Location, segment: Segment) -> SnapResult:
    """Project *location* onto *segment* and return the distance and snapped point."""
    cos_lat0 = math.cos(math.radians(location.latitude))
    line = LineString([_to_local_xy(p, location, cos_lat0) for p in segment.points])
    origin = Point(0.0, 0.0)
    nearest = line.interpolate(line.project(origin))
    return SnapResult(
        distance=origin.distance(nearest),
        location=_from_local_xy(nearest.x, nearest.y, location, cos_lat0),
        segment=segment,
    )


def segment_coords(segments: Sequence[Segment]) -> list[list[tuple[float, float]]]:
    """Return ``(lon, lat)`` coordinate lists, the axis order shapely and GIS expect."""
    return [[(p.longitude, p.latitude) for p in seg.points] for seg in segments]
