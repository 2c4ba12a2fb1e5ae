"""OSM public transport route integrity QC.

Reads route and route_master relations from an Overpass API JSON export made with
``out geom`` and flags:

  - routes whose track has gaps (ways that cannot be chained end to end);
  - routes whose stops or platforms lie 1.5 m or more from the track;
  - empty routes and routes mixing edges with lines;
  - route masters with non-route members, or whose network / operator / ref /
    colour tags are missing or disagree with their routes;
  - public transport routes that no route master contains.

Outputs (in OUTPUT_DIR):
- route_integrity_findings.csv : one row per finding
- route_integrity_flagged.gpkg : track of every flagged relation (optional)
- plots/<relation_id>.png      : track, stops and platforms per flagged route (optional)
- route_integrity_qc.log

Example Overpass query::

    [out:json];
    relation["type"~"^route(_master)?$"]["route"="bus"](area:3600062422);
    (._; rel(r);); out geom;
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Iterable, Mapping, Optional, Sequence

import geopandas as gpd
import matplotlib.pyplot as plt
import pandas as pd
from shapely.geometry import MultiLineString

from transit_route_qc.route_integrity.findings import Finding
from transit_route_qc.route_integrity.geometry import Location, segment_coords
from transit_route_qc.route_integrity.geometry_extractor import extract_route_geometry
from transit_route_qc.route_integrity.route_integrity_checker import (
    RouteIntegrityChecker,
    evaluate_route_geometry,
)
from transit_route_qc.route_integrity.route_model import (
    MemberType,
    Relation,
    RelationCatalog,
    RouteMember,
)
from transit_route_qc.utils.logging_helper import setup_logging

# =============================================================================
# CONFIGURATION
# =============================================================================

INPUT_JSON: Path = Path(r"Path\To\Your\overpass_routes.json")
OUTPUT_DIR: Path = Path(r"Path\To\Your\Output_Folder")

THRESHOLD_M: float = 1.5  # stop / platform to track

EXPORT_GPKG: bool = True
PLOT_FLAGGED: bool = False
PLOT_DPI: int = 150
PLOT_FIGSIZE: tuple[int, int] = (8, 8)

FINDINGS_CSV: str = "route_integrity_findings.csv"
FLAGGED_GPKG: str = "route_integrity_flagged.gpkg"
LOG_FILE: str = "route_integrity_qc.log"

LOG_LEVEL: str = "INFO"  # DEBUG | INFO | WARNING

OSM_CRS = "EPSG:4326"

LOGGER = logging.getLogger(__name__)

FINDING_COLUMNS = [
    "relation_id",
    "relation_type",
    "name",
    "subject_id",
    "finding",
    "message",
    "detail",
]

# =============================================================================
# OVERPASS LOADING
# =============================================================================


def load_overpass_elements(path: Path) -> list[dict[str, Any]]:
    """Return the ``elements`` list of an Overpass JSON export."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Missing Overpass export: {path}")
    try:
        with path.open("r", encoding="utf-8") as fh:
            payload = json.load(fh)
    except json.JSONDecodeError as err:
        raise ValueError(f"{path} is not valid JSON: {err}") from err

    elements = payload.get("elements") if isinstance(payload, dict) else None
    if not isinstance(elements, list):
        raise ValueError(f"{path} has no 'elements' list; is it an Overpass JSON export?")
    LOGGER.info("Loaded %s -> %d elements", path.name, len(elements))
    return elements


def _location(raw: Mapping[str, Any]) -> Location:
    return Location.from_degrees(float(raw["lat"]), float(raw["lon"]))


def _way_member(raw: Mapping[str, Any]) -> Optional[RouteMember]:
    geometry = raw.get("geometry")
    if not geometry:
        LOGGER.warning(
            "Way %s has no geometry (export with 'out geom'); skipped.", raw.get("ref")
        )
        return None
    try:
        locations = tuple(_location(pt) for pt in geometry)
    except (KeyError, TypeError, ValueError):
        LOGGER.warning("Way %s has malformed geometry; skipped.", raw.get("ref"))
        return None
    if len(locations) < 2:
        LOGGER.warning("Way %s has %d point(s); skipped.", raw.get("ref"), len(locations))
        return None
    return RouteMember(
        identifier=int(raw["ref"]),
        member_type=MemberType.LINE,
        role=raw.get("role", ""),
        locations=locations,
    )


def _node_member(raw: Mapping[str, Any]) -> Optional[RouteMember]:
    try:
        location = _location(raw)
    except (KeyError, TypeError, ValueError):
        LOGGER.warning("Node %s has no usable lat/lon; skipped.", raw.get("ref"))
        return None
    return RouteMember(
        identifier=int(raw["ref"]),
        member_type=MemberType.NODE,
        role=raw.get("role", ""),
        locations=(location,),
    )


def build_relations(elements: Iterable[Mapping[str, Any]]) -> list[Relation]:
    """Turn Overpass relation elements into :class:`Relation` objects.

    Relation members are resolved against the other relations in the export;
    unresolved or cyclic references become members without a nested relation.
    """
    raw_by_id = {
        int(el["id"]): el for el in elements if el.get("type") == "relation" and "id" in el
    }
    built: dict[int, Relation] = {}
    in_progress: set[int] = set()

    def build(rel_id: int) -> Relation:
        if rel_id in built:
            return built[rel_id]
        in_progress.add(rel_id)
        raw = raw_by_id[rel_id]
        members: list[RouteMember] = []
        for m in raw.get("members", []):
            kind = m.get("type")
            member: Optional[RouteMember] = None
            if kind == "way":
                member = _way_member(m)
            elif kind == "node":
                member = _node_member(m)
            elif kind == "relation":
                ref = int(m["ref"])
                nested = None
                if ref in raw_by_id and ref not in in_progress:
                    nested = build(ref)
                elif ref in in_progress:
                    LOGGER.warning("Relation %s refers back to %s; cycle cut.", rel_id, ref)
                member = RouteMember(
                    identifier=ref,
                    member_type=MemberType.RELATION,
                    role=m.get("role", ""),
                    relation=nested,
                )
            if member is not None:
                members.append(member)
        in_progress.discard(rel_id)
        rel = Relation(
            identifier=rel_id,
            tags=dict(raw.get("tags", {})),
            members=tuple(members),
        )
        built[rel_id] = rel
        return rel

    return [build(rel_id) for rel_id in raw_by_id]


# =============================================================================
# REPORTING
# =============================================================================


def findings_to_dataframe(
    results: Mapping[int, Sequence[Finding]], catalog: RelationCatalog
) -> pd.DataFrame:
    """One row per finding, keyed by the relation that was evaluated."""
    rows = []
    for rel_id, findings in results.items():
        rel = catalog.get(rel_id)
        for f in findings:
            rows.append(
                {
                    "relation_id": rel_id,
                    "relation_type": rel.relation_type if rel else None,
                    "name": rel.name if rel else "",
                    "subject_id": f.relation_id,
                    "finding": f.kind.name,
                    "message": f.message(),
                    "detail": f.detail,
                }
            )
    return pd.DataFrame(rows, columns=FINDING_COLUMNS)


def _track_lines(relation: Relation) -> list[list[tuple[float, float]]]:
    routes = relation.member_routes() if relation.is_route_master else [relation]
    coords: list[list[tuple[float, float]]] = []
    for route in routes:
        coords.extend(segment_coords(extract_route_geometry(route).segments))
    return coords


def flagged_routes_gdf(
    results: Mapping[int, Sequence[Finding]], catalog: RelationCatalog
) -> gpd.GeoDataFrame:
    """Track geometry (EPSG:4326) of every flagged relation that has one."""
    rows = []
    for rel_id, findings in results.items():
        rel = catalog.get(rel_id)
        if rel is None:
            continue
        lines = _track_lines(rel)
        if not lines:
            continue
        rows.append(
            {
                "relation_id": rel_id,
                "relation_type": rel.relation_type,
                "name": rel.name,
                "findings": ";".join(sorted({f.kind.name for f in findings})),
                "geometry": MultiLineString(lines),
            }
        )
    columns = ["relation_id", "relation_type", "name", "findings", "geometry"]
    return gpd.GeoDataFrame(rows, columns=columns, geometry="geometry", crs=OSM_CRS)


def plot_route(route: Relation, output_path: Path, threshold: float = THRESHOLD_M) -> None:
    """Plot a route's track with its stops and platforms and save it as PNG."""
    verdicts = evaluate_route_geometry(route, threshold)
    geometry = verdicts.geometry

    fig, ax = plt.subplots(figsize=PLOT_FIGSIZE)
    for line in segment_coords(geometry.segments):
        xs, ys = zip(*line)
        ax.plot(xs, ys, color="blue", linewidth=1.5, alpha=0.8)
    if geometry.stops:
        ax.scatter(
            [p.longitude for p in geometry.stops],
            [p.latitude for p in geometry.stops],
            color="green",
            marker="o",
            label="Stops",
            zorder=3,
        )
    if geometry.platforms:
        ax.scatter(
            [p.longitude for p in geometry.platforms],
            [p.latitude for p in geometry.platforms],
            color="orange",
            marker="s",
            label="Platforms",
            zorder=3,
        )
    for verdict in (verdicts.stops, verdicts.platforms):
        if verdict.offending is not None:
            ax.scatter(
                [verdict.offending.longitude],
                [verdict.offending.latitude],
                color="red",
                marker="x",
                s=80,
                zorder=4,
            )

    gap_note = " (gap)" if verdicts.has_gap else ""
    ax.set_title(f"Route {route.identifier} {route.name}{gap_note}")
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    if geometry.stops or geometry.platforms:
        ax.legend()
    ax.set_aspect("equal", adjustable="datalim")

    output_path.parent.mkdir(parents=True, exist_ok=True)
    fig.savefig(output_path, dpi=PLOT_DPI, bbox_inches="tight")
    plt.close(fig)


# =============================================================================
# MAIN
# =============================================================================


def run_qc(
    input_json: Path,
    output_dir: Path,
    threshold: float = THRESHOLD_M,
    export_gpkg: bool = EXPORT_GPKG,
    plot_flagged: bool = PLOT_FLAGGED,
) -> pd.DataFrame:
    """Run the checks on *input_json* and write outputs; return the findings table."""
    output_dir.mkdir(parents=True, exist_ok=True)

    relations = build_relations(load_overpass_elements(input_json))
    catalog = RelationCatalog(relations)
    LOGGER.info("Built %d relation(s).", len(catalog))

    checker = RouteIntegrityChecker(catalog=catalog, threshold=threshold)
    results = checker.check_relations(catalog)

    table = findings_to_dataframe(results, catalog)
    csv_path = output_dir / FINDINGS_CSV
    table.to_csv(csv_path, index=False)
    LOGGER.info(
        "Wrote %s (%d finding(s) on %d relation(s))", csv_path.name, len(table), len(results)
    )

    if export_gpkg and results:
        gdf = flagged_routes_gdf(results, catalog)
        if not gdf.empty:
            gdf.to_file(output_dir / FLAGGED_GPKG, driver="GPKG")
            LOGGER.info("Wrote %s", FLAGGED_GPKG)

    if plot_flagged:
        for rel_id in results:
            rel = catalog.get(rel_id)
            routes = rel.member_routes() if rel.is_route_master else [rel]
            for route in routes:
                plot_route(route, output_dir / "plots" / f"{route.identifier}.png", threshold)

    return table


def build_argparser() -> argparse.ArgumentParser:
    """Create the CLI argument parser; defaults come from the CONFIGURATION block."""
    p = argparse.ArgumentParser(
        description="Flag gaps and detached stops/platforms in OSM public transport routes."
    )
    p.add_argument("-i", "--input", default=str(INPUT_JSON), help="Overpass JSON export.")
    p.add_argument("-d", "--outdir", default=str(OUTPUT_DIR), help="Folder for outputs.")
    p.add_argument(
        "-t",
        "--threshold",
        type=float,
        default=THRESHOLD_M,
        help="Maximum stop/platform distance to the track, in meters.",
    )
    p.add_argument(
        "--plots", action="store_true", default=PLOT_FLAGGED, help="Plot flagged routes."
    )
    p.add_argument(
        "--no-gpkg",
        dest="gpkg",
        action="store_false",
        default=EXPORT_GPKG,
        help="Skip the GeoPackage of flagged routes.",
    )
    p.add_argument("--log-level", default=LOG_LEVEL, help="DEBUG | INFO | WARNING")
    return p


def main(argv: Optional[Sequence[str]] = None) -> None:
    """Entry-point guarded by ``if __name__ == "__main__"``."""
    args = build_argparser().parse_args(argv)
    output_dir = Path(args.outdir)
    level = getattr(logging, str(args.log_level).upper(), logging.INFO)
    setup_logging(level, output_dir / LOG_FILE)

    try:
        run_qc(
            Path(args.input),
            output_dir,
            threshold=args.threshold,
            export_gpkg=args.gpkg,
            plot_flagged=args.plots,
        )
    except (OSError, ValueError) as err:
        LOGGER.error("Route integrity QC failed: %s", err)
        sys.exit(1)


if __name__ == "__main__":
    main()
