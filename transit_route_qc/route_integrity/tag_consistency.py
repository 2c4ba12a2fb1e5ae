"""Route-group (route master) membership and tag consistency checks."""

from __future__ import annotations

from typing import Optional

from transit_route_qc.route_integrity.findings import Finding, FindingKind
from transit_route_qc.route_integrity.route_model import Relation, RelationCatalog

# =============================================================================
# CONFIGURATION
# =============================================================================

GROUP_TAG_KEYS: tuple[str, ...] = ("network", "operator", "ref", "colour")

_INCONSISTENT_KIND = {
    "network": FindingKind.INCONSISTENT_NETWORK,
    "operator": FindingKind.INCONSISTENT_OPERATOR,
    "ref": FindingKind.INCONSISTENT_REF,
    "colour": FindingKind.INCONSISTENT_COLOUR,
}

PUBLIC_TRANSPORT_TYPES = frozenset(
    {"train", "bus", "railway", "rail", "tram", "aircraft", "ferry"}
)


def count_route_members(master: Relation) -> tuple[int, int]:
    """Return ``(route_members, total_members)`` of a route master."""
    return len(master.member_routes()), len(master.members)


def check_non_route_members(master: Relation) -> list[Finding]:
    routes, total = count_route_members(master)
    if routes < total:
        return [
            Finding(
                FindingKind.NON_ROUTE_MEMBER,
                master.identifier,
                f"{total - routes} of {total} members are not routes",
            )
        ]
    return []


def _missing_keys(relation: Relation) -> list[str]:
    return [key for key in GROUP_TAG_KEYS if not relation.tags.get(key)]


def check_group_tags(master: Relation) -> list[Finding]:
    """Missing group tags on the master and its routes, and per-key disagreements.

    A key is only compared when both the master and the route carry it.
    """
    findings: list[Finding] = []
    missing = _missing_keys(master)
    if missing:
        findings.append(
            Finding(FindingKind.MISSING_GROUP_TAGS, master.identifier, ", ".join(missing))
        )

    for route in master.member_routes():
        missing = _missing_keys(route)
        if missing:
            findings.append(
                Finding(FindingKind.MISSING_GROUP_TAGS, route.identifier, ", ".join(missing))
            )
        for key in GROUP_TAG_KEYS:
            master_value = master.tags.get(key)
            route_value = route.tags.get(key)
            if master_value and route_value and master_value != route_value:
                findings.append(
                    Finding(
                        _INCONSISTENT_KIND[key],
                        route.identifier,
                        f"{key}={route_value!r} vs route master {key}={master_value!r}",
                    )
                )
    return findings


def public_transport_type(route: Relation) -> Optional[str]:
    """The route's ``route=*`` value when it is a public transport mode."""
    mode = route.tags.get("route")
    return mode if mode in PUBLIC_TRANSPORT_TYPES else None


def check_in_route_master(route: Relation, catalog: RelationCatalog) -> list[Finding]:
    mode = public_transport_type(route)
    if mode is None or catalog.route_masters_of(route.identifier):
        return []
    return [Finding(FindingKind.NOT_IN_ROUTE_MASTER, route.identifier, mode)]
