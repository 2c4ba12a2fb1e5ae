"""Run the route integrity checks over route and route master relations.

Per route: track gap detection, stop and platform proximity, empty and mixed
track. Per route master: the per-route checks for each member route not yet
processed, then membership and tag consistency across the group.

The checker exposes two calls to a host loop: :meth:`RouteIntegrityChecker.is_in_scope`
and :meth:`RouteIntegrityChecker.evaluate`. Which relations were already handled
lives in a :class:`ProcessedRegistry` the caller may share between checkers.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from transit_route_qc.route_integrity.findings import Finding, FindingKind, ProcessedRegistry
from transit_route_qc.route_integrity.geometry_extractor import (
    RouteGeometry,
    extract_route_geometry,
)
from transit_route_qc.route_integrity.proximity_evaluator import (
    PROXIMITY_THRESHOLD_M,
    ProximityVerdict,
    evaluate_proximity,
)
from transit_route_qc.route_integrity.route_chain_builder import RouteChain, build_route_chain
from transit_route_qc.route_integrity.route_model import Relation, RelationCatalog
from transit_route_qc.route_integrity.tag_consistency import (
    check_group_tags,
    check_in_route_master,
    check_non_route_members,
)

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class RouteVerdicts:
    """Raw outcomes of the geometric checks on one route."""

    geometry: RouteGeometry
    chain: RouteChain
    stops: ProximityVerdict
    platforms: ProximityVerdict

    @property
    def has_gap(self) -> bool:
        return self.chain.has_gap


def evaluate_route_geometry(
    route: Relation, threshold: float = PROXIMITY_THRESHOLD_M
) -> RouteVerdicts:
    """Extract *route*'s geometry and run the gap and proximity checks on it."""
    geometry = extract_route_geometry(route)
    return RouteVerdicts(
        geometry=geometry,
        chain=build_route_chain(geometry.segments),
        stops=evaluate_proximity(geometry.stops, geometry.segments, threshold),
        platforms=evaluate_proximity(geometry.platforms, geometry.segments, threshold),
    )


def _proximity_detail(verdict: ProximityVerdict) -> str:
    return (
        f"{verdict.offenders} of {verdict.checked} beyond threshold; "
        f"first at {verdict.offending}, {verdict.distance:.2f} m"
    )


def route_findings(route: Relation, verdicts: RouteVerdicts) -> list[Finding]:
    """Translate *verdicts* into findings for *route*."""
    findings: list[Finding] = []
    geometry = verdicts.geometry
    if not geometry.has_track:
        findings.append(Finding(FindingKind.EMPTY_ROUTE, route.identifier))
    if geometry.edge_count and geometry.line_count:
        findings.append(
            Finding(
                FindingKind.MIXED_ROUTE,
                route.identifier,
                f"{geometry.edge_count} edge(s), {geometry.line_count} line(s)",
            )
        )
    if verdicts.has_gap:
        findings.append(
            Finding(
                FindingKind.GAP,
                route.identifier,
                f"chained {len(verdicts.chain)} of {verdicts.chain.expected} segments",
            )
        )
    if verdicts.stops.too_far:
        findings.append(
            Finding(FindingKind.STOPS_TOO_FAR, route.identifier, _proximity_detail(verdicts.stops))
        )
    if verdicts.platforms.too_far:
        findings.append(
            Finding(
                FindingKind.PLATFORMS_TOO_FAR,
                route.identifier,
                _proximity_detail(verdicts.platforms),
            )
        )
    return findings


class RouteIntegrityChecker:
    """Evaluate route and route master relations.

    Args:
        catalog: Every relation of the dataset; needed to tell whether a public
            transport route belongs to a route master. Without it that check is
            skipped.
        registry: Ids already processed. A fresh one is created if omitted.
        threshold: Proximity threshold in meters.
    """

    def __init__(
        self,
        catalog: Optional[RelationCatalog] = None,
        registry: Optional[ProcessedRegistry] = None,
        threshold: float = PROXIMITY_THRESHOLD_M,
    ):
        if threshold < 0:
            raise ValueError(f"threshold must be non-negative, got {threshold}")
        self.catalog = catalog
        self.registry = registry if registry is not None else ProcessedRegistry()
        self.threshold = threshold

    def is_in_scope(self, relation: Relation) -> bool:
        """True for route and route master relations not yet processed."""
        return (relation.is_route or relation.is_route_master) and (
            relation.identifier not in self.registry
        )

    def evaluate(self, relation: Relation) -> list[Finding]:
        """Run every applicable check on *relation* and mark it processed.

        A relation already in the registry yields no findings.
        """
        if not self.registry.claim(relation.identifier):
            LOGGER.debug("Relation %s already processed.", relation.identifier)
            return []

        findings: list[Finding] = []
        if relation.is_route_master:
            findings.extend(self._evaluate_route_master(relation))
        elif relation.is_route:
            findings.extend(self._evaluate_route(relation))
            if self.catalog is not None:
                findings.extend(check_in_route_master(relation, self.catalog))

        LOGGER.info(
            "Relation %s (%s): %d finding(s).",
            relation.identifier,
            relation.relation_type,
            len(findings),
        )
        return findings

    def _evaluate_route(self, route: Relation) -> list[Finding]:
        verdicts = evaluate_route_geometry(route, self.threshold)
        LOGGER.debug(
            "Route %s: gap=%s stops_too_far=%s platforms_too_far=%s",
            route.identifier,
            verdicts.has_gap,
            verdicts.stops.too_far,
            verdicts.platforms.too_far,
        )
        return route_findings(route, verdicts)

    def _evaluate_route_master(self, master: Relation) -> list[Finding]:
        findings: list[Finding] = []
        routes = master.member_routes()
        for route in routes:
            if self.registry.claim(route.identifier):
                findings.extend(self._evaluate_route(route))
            else:
                LOGGER.debug(
                    "Route %s already processed; skipped under route master %s.",
                    route.identifier,
                    master.identifier,
                )
        findings.extend(check_non_route_members(master))
        findings.extend(check_group_tags(master))
        return findings

    def check_relations(self, relations: Iterable[Relation]) -> dict[int, list[Finding]]:
        """Evaluate every in-scope relation; return findings keyed by relation id."""
        results: dict[int, list[Finding]] = {}
        for relation in relations:
            if not self.is_in_scope(relation):
                continue
            findings = self.evaluate(relation)
            if findings:
                results[relation.identifier] = findings
        return results
