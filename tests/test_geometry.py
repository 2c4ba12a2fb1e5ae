from __future__ import annotations

import math

import pytest

from transit_route_qc.route_integrity.geometry import (
    EARTH_RADIUS_M,
    Location,
    Segment,
    as_segment_set,
    snap_to_segment,
)


def test_location_equality_is_exact_at_dm7() -> None:
    """Degrees round to dm7; equal integers mean the same point, nothing else does."""
    assert Location.from_degrees(0.1, 0.2) == Location(1_000_000, 2_000_000)
    # Differences below 1e-7 degree collapse to the same point
    assert Location.from_degrees(1.00000001, 2.0) == Location.from_degrees(1.0, 2.0)
    assert Location.from_degrees(1.0000001, 2.0) != Location.from_degrees(1.0, 2.0)
    assert len({Location.from_degrees(1.0, 2.0), Location(10_000_000, 20_000_000)}) == 1


@pytest.mark.parametrize("lat, lon", [(90.5, 0.0), (-91.0, 0.0), (0.0, 180.1), (0.0, -200.0)])
def test_location_out_of_range_raises(lat: float, lon: float) -> None:
    with pytest.raises(ValueError):
        Location.from_degrees(lat, lon)


def test_segment_needs_two_points() -> None:
    """A single-point polyline is rejected when the segment is built."""
    with pytest.raises(ValueError):
        Segment((Location.from_degrees(0.0, 0.0),))
    with pytest.raises(ValueError):
        Segment(())


def test_segment_endpoints_and_value_equality() -> None:
    seg = Segment.from_degrees([(0.0, 0.0), (0.0, 0.5), (1.0, 1.0)])
    assert seg.first() == Location.from_degrees(0.0, 0.0)
    assert seg.last() == Location.from_degrees(1.0, 1.0)
    assert len(seg) == 3
    assert seg == Segment.from_degrees([(0.0, 0.0), (0.0, 0.5), (1.0, 1.0)])


def test_as_segment_set_keeps_first_seen_order() -> None:
    a = Segment.from_degrees([(0.0, 0.0), (0.0, 1.0)])
    b = Segment.from_degrees([(0.0, 1.0), (0.0, 2.0)])
    assert as_segment_set([b, a, b, a]) == (b, a)


def test_snap_onto_segment_interior() -> None:
    """Perpendicular drop from a point north of an equator segment."""
    seg = Segment.from_degrees([(0.0, 0.0), (0.0, 0.001)])
    point = Location.from_degrees(0.0001, 0.0005)
    snap = snap_to_segment(point, seg)

    expected = math.radians(0.0001) * EARTH_RADIUS_M  # ~11.1 m
    assert snap.distance == pytest.approx(expected, rel=1e-6)
    assert snap.location == Location.from_degrees(0.0, 0.0005)
    assert snap.segment is seg


def test_snap_beyond_end_uses_endpoint() -> None:
    seg = Segment.from_degrees([(0.0, 0.0), (0.0, 0.001)])
    point = Location.from_degrees(0.0, 0.002)
    snap = snap_to_segment(point, seg)
    assert snap.location == seg.last()
    assert snap.distance == pytest.approx(math.radians(0.001) * EARTH_RADIUS_M, rel=1e-6)


def test_snap_point_on_vertex_is_zero() -> None:
    seg = Segment.from_degrees([(0.0, 0.0), (1.0, 0.0), (2.0, 0.0)])
    snap = snap_to_segment(Location.from_degrees(1.0, 0.0), seg)
    assert snap.distance == pytest.approx(0.0, abs=1e-9)


def test_snap_across_antimeridian() -> None:
    """Longitudes either side of 180 are treated as neighbors."""
    seg = Segment.from_degrees([(0.0, 179.99999), (0.0, -179.99999)])
    point = Location.from_degrees(0.00001, 180.0)
    snap = snap_to_segment(point, seg)
    assert snap.distance == pytest.approx(math.radians(0.00001) * EARTH_RADIUS_M, abs=0.01)


def test_snap_results_order_by_distance() -> None:
    near = Segment.from_degrees([(0.0, 0.0), (0.0, 0.001)])
    far = Segment.from_degrees([(0.01, 0.0), (0.01, 0.001)])
    point = Location.from_degrees(0.0001, 0.0005)
    assert snap_to_segment(point, near) < snap_to_segment(point, far)
    assert not snap_to_segment(point, far) < snap_to_segment(point, near)
