from __future__ import annotations

import pytest

from transit_route_qc.route_integrity.geometry import Segment
from transit_route_qc.route_integrity.route_chain_builder import (
    RouteChain,
    build_route_chain,
    has_gap,
)


def _seg(*coords: tuple[float, float]) -> Segment:
    return Segment.from_degrees(coords)


# A straight path of four pieces along the equator: A -> B -> C -> D
A = _seg((0.0, 0.0), (0.0, 1.0))
B = _seg((0.0, 1.0), (0.0, 2.0))
C = _seg((0.0, 2.0), (0.0, 3.0))
D = _seg((0.0, 3.0), (0.0, 4.0))


def _rotations(items: list[Segment]) -> list[list[Segment]]:
    return [items[i:] + items[:i] for i in range(len(items))]


def _assert_contiguous(chain: RouteChain) -> None:
    for prev, nxt in zip(chain.segments, chain.segments[1:]):
        assert prev.last() == nxt.first()


def test_empty_input_is_not_gapped() -> None:
    chain = build_route_chain([])
    assert chain.segments == ()
    assert not chain.has_gap


def test_single_segment_is_not_gapped() -> None:
    chain = build_route_chain([A])
    assert chain.segments == (A,)
    assert not chain.has_gap


def test_true_break_is_a_gap() -> None:
    """[(0,0)-(1,0)] and [(2,0)-(3,0)] share no endpoint."""
    first = _seg((0.0, 0.0), (1.0, 0.0))
    second = _seg((2.0, 0.0), (3.0, 0.0))
    chain = build_route_chain([first, second])

    assert len(chain) < 2
    assert chain.has_gap
    assert chain.expected == 2
    # Every starting segment was tried before giving up
    assert chain.attempts == 2


def test_closed_loop_is_gap_free() -> None:
    """A triangle whose last segment returns to the first segment's start."""
    a = _seg((0.0, 0.0), (1.0, 0.0))
    b = _seg((1.0, 0.0), (1.0, 1.0))
    c = _seg((1.0, 1.0), (0.0, 0.0))
    chain = build_route_chain([a, b, c])

    assert len(chain) == 3
    assert not chain.has_gap
    _assert_contiguous(chain)


@pytest.mark.parametrize(
    "ordering",
    [
        [A, B, C, D],
        [D, C, B, A],
        [C, A, D, B],
    ],
    ids=["sorted", "reversed", "shuffled"],
)
def test_connected_path_is_complete_for_every_rotation(ordering: list[Segment]) -> None:
    """The gap verdict does not depend on which segment is stored first."""
    for rotated in _rotations(ordering):
        chain = build_route_chain(rotated)
        assert len(chain) == 4, rotated
        assert chain.segments == (A, B, C, D)
        _assert_contiguous(chain)


# A closed square: (0,0) -> (0,1) -> (1,1) -> (1,0) -> (0,0)
S1 = _seg((0.0, 0.0), (0.0, 1.0))
S2 = _seg((0.0, 1.0), (1.0, 1.0))
S3 = _seg((1.0, 1.0), (1.0, 0.0))
S4 = _seg((1.0, 0.0), (0.0, 0.0))


@pytest.mark.parametrize(
    "ordering",
    [
        [S1, S2, S3, S4],
        [S4, S3, S2, S1],
        [S1, S3, S2, S4],
    ],
    ids=["travel", "reversed", "interleaved"],
)
def test_closed_loop_is_complete_for_every_rotation(ordering: list[Segment]) -> None:
    """A loop has no natural start; every rotation still chains all four sides."""
    for rotated in _rotations(ordering):
        chain = build_route_chain(rotated)
        assert not chain.has_gap, rotated
        assert len(chain) == 4
        _assert_contiguous(chain)


def test_prepend_builds_in_travel_order() -> None:
    """Segments found before the seed are placed at the head."""
    chain = build_route_chain([C, B, A])
    assert chain.segments == (A, B, C)
    assert chain.attempts == 1


def test_rotation_recovers_a_stalled_scan() -> None:
    """[C, A, D, B] stalls from C, A and D; the fourth start (B) succeeds."""
    chain = build_route_chain([C, A, D, B])
    assert not chain.has_gap
    assert chain.attempts == 4


def test_gap_in_the_middle_returns_partial_chain() -> None:
    chain = build_route_chain([A, B, D])
    assert chain.has_gap
    assert 0 < len(chain) < 3
    _assert_contiguous(chain)


def test_direction_matters_for_endpoint_matching() -> None:
    """A reversed piece meets its neighbor at last/last, which is not a join."""
    b_reversed = _seg((0.0, 2.0), (0.0, 1.0))
    assert has_gap([A, b_reversed])


def test_duplicate_segments_are_collapsed() -> None:
    chain = build_route_chain([A, B, A, B])
    assert chain.expected == 2
    assert chain.segments == (A, B)
    assert not chain.has_gap


def test_disjoint_groups_report_a_single_gap_verdict() -> None:
    """Two separate pieces of track of two segments each."""
    far_a = _seg((5.0, 0.0), (5.0, 1.0))
    far_b = _seg((5.0, 1.0), (5.0, 2.0))
    chain = build_route_chain([A, B, far_a, far_b])
    assert chain.has_gap
    assert len(chain) == 2
