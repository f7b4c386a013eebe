"""
Site evaluation tables.

- SiteEvaluationPipeline: attach TN/TP/DO criteria to site evaluations
  (flowing waters get all three, lakes DO only, aquifers none).
- remove_sites(): drop wells that left the target population.
- partition_sites(): keep sites co-located with a list frame coverage. The
  geometry work (projection, distance, intersection) is done by geopandas;
  apply_site_partition() accepts a partition computed anywhere else.
"""

import logging
import pathlib
import typing

import geopandas as gpd
import numpy as np
import pandas as pd
from stairval.notepad import Notepad, create_notepad

from .audit import AuditEntry, add_entry
from .criteria import CriteriaAnnotator
from .errors import MissingInputError
from .pipeline import ExportBundle

logger = logging.getLogger(__name__)

SITE_KEY = "PK_RANDOM_SAMPLE_LOCATION"
LATITUDE_COLUMN = "RANDOM_LATITUDE"
LONGITUDE_COLUMN = "RANDOM_LONGITUDE"

# NAD83 geographic input, Florida Albers (metres) for distance work
DEFAULT_SITES_CRS = 4269
ANALYSIS_CRS = 3087
DEFAULT_DISTANCE_M = 50

WITHIN_DISTANCE = "within_distance"
INTERSECTS = "intersects"

# resource kind -> criteria groups
RESOURCE_CRITERIA = {
    "fw": ("nutrients", "do"),
    "lake": ("do",),
    "aq": (),
}


class SiteEvaluationPipeline:
    def __init__(self, criteria: typing.Iterable[str] = ("nutrients", "do"), annotator: CriteriaAnnotator | None = None):
        self.criteria = tuple(criteria)
        unknown = set(self.criteria) - {"nutrients", "do"}
        if unknown:
            raise ValueError(f"Unknown criteria groups: {sorted(unknown)}")
        self.annotator = annotator or CriteriaAnnotator()

    @classmethod
    def for_resource(cls, kind: str) -> "SiteEvaluationPipeline":
        try:
            return cls(RESOURCE_CRITERIA[kind])
        except KeyError:
            raise ValueError(f"Unknown resource kind: {kind!r}")

    def run(self, evaluations: pd.DataFrame, notepad: Notepad | None = None) -> ExportBundle:
        if evaluations is None:
            raise MissingInputError("No site evaluations supplied")
        if notepad is None:
            notepad = create_notepad("site-evaluations")
        audit: list[AuditEntry] = []
        annotated = evaluations.copy()
        if "nutrients" in self.criteria:
            annotated = self.annotator.annotate_nutrients(annotated, notepad)
        if "do" in self.criteria:
            annotated = self.annotator.annotate_dissolved_oxygen(annotated, notepad)
        add_entry(audit, "site-evaluations", "Sites", f"{len(annotated)} site evaluations", "info", logger)
        return ExportBundle(tables={"Sites": annotated}, audit=audit, notepad=notepad)


def remove_sites(evaluations: pd.DataFrame, removals: pd.DataFrame, key: str = SITE_KEY) -> pd.DataFrame:
    """Evaluations whose `key` does not appear in `removals`."""
    for name, frame in (("site evaluations", evaluations), ("removals", removals)):
        if key not in frame.columns:
            raise MissingInputError(f"Column {key!r} missing from {name}")
    return evaluations[~evaluations[key].isin(removals[key])]


def well_removal_bundle(evaluations: pd.DataFrame, removals: pd.DataFrame, key: str = SITE_KEY) -> ExportBundle:
    audit: list[AuditEntry] = []
    remaining = remove_sites(evaluations, removals, key)
    add_entry(
        audit,
        "well-removals",
        "SiteEvaluations",
        f"{len(evaluations) - len(remaining)} of {len(evaluations)} evaluated wells are no longer in the list frame",
        "info",
        logger,
    )
    return ExportBundle(
        tables={"Sites": evaluations, "well_removals": removals, "SiteEvaluations": remaining},
        audit=audit,
    )


def dms_to_decimal(values: pd.Series) -> pd.Series:
    """DDMMSS.SSS packed numbers to decimal degrees (e.g. 293015.5 -> 29.504305...)."""
    values = pd.to_numeric(values)
    degrees = np.floor(values / 10000)
    minutes = np.floor((values - degrees * 10000) / 100)
    seconds = values - degrees * 10000 - minutes * 100
    return degrees + minutes / 60 + seconds / 3600


def water_resource_codes(frame: pd.DataFrame, column: str = SITE_KEY) -> list[str]:
    """Sorted distinct two-letter resource codes (characters 4-5 of the location key)."""
    if column not in frame.columns:
        raise MissingInputError(f"Column {column!r} missing from site evaluations")
    return sorted({str(v)[3:5] for v in frame[column].dropna()})


def site_points(
    sites: pd.DataFrame,
    sites_crs: typing.Any = DEFAULT_SITES_CRS,
    target_crs: typing.Any = ANALYSIS_CRS,
) -> gpd.GeoDataFrame:
    """
    Point layer for the sites, projected to `target_crs`. Keeps latdd/londd
    (longitude negated, Florida is west of Greenwich) and the projected
    xcoord/ycoord as plain columns.
    """
    missing = [c for c in (LATITUDE_COLUMN, LONGITUDE_COLUMN) if c not in sites.columns]
    if missing:
        raise MissingInputError(f"Site evaluations lack coordinate columns {missing}")
    working = sites.copy()
    working["latdd"] = dms_to_decimal(working[LATITUDE_COLUMN])
    working["londd"] = -dms_to_decimal(working[LONGITUDE_COLUMN])
    points = gpd.GeoDataFrame(
        working,
        geometry=gpd.points_from_xy(working["londd"], working["latdd"]),
        crs=sites_crs,
    ).to_crs(target_crs)
    points["xcoord"] = points.geometry.x
    points["ycoord"] = points.geometry.y
    return points


def read_listframe(listframe: typing.Any, directory: str | pathlib.Path = ".") -> gpd.GeoDataFrame:
    """A GeoDataFrame passes through; a name is read as <directory>/<name>[.shp]."""
    if listframe is None or (isinstance(listframe, str) and not listframe.strip()):
        raise MissingInputError("Missing input: list frame layer")
    if isinstance(listframe, gpd.GeoDataFrame):
        return listframe
    path = pathlib.Path(directory) / str(listframe)
    if not path.suffix and not path.exists():
        path = path.with_suffix(".shp")
    return gpd.read_file(path)


def apply_site_partition(frame: pd.DataFrame, retain: typing.Sequence[bool]) -> tuple[pd.DataFrame, pd.DataFrame]:
    """Split `frame` by an externally computed boolean retain/remove flag per row."""
    if len(retain) != len(frame):
        raise ValueError(f"Partition has {len(retain)} flags for {len(frame)} sites")
    if not isinstance(retain, pd.Series):
        retain = pd.Series(list(retain), index=frame.index)
    flags = retain.reindex(frame.index).fillna(False).astype(bool)
    return frame[flags], frame[~flags]


def partition_sites(
    sites: pd.DataFrame,
    listframe: typing.Any,
    predicate: str = WITHIN_DISTANCE,
    distance: float = DEFAULT_DISTANCE_M,
    sites_crs: typing.Any = DEFAULT_SITES_CRS,
    target_crs: typing.Any = ANALYSIS_CRS,
    listframe_directory: str | pathlib.Path = ".",
) -> tuple[gpd.GeoDataFrame, gpd.GeoDataFrame]:
    """
    (retained, removed) sites.

    within_distance: retained when within `distance` metres of any list frame feature (flowing waters lines).
    intersects: retained when the point intersects a list frame feature (lake polygons).
    """
    if sites is None or len(sites) == 0:
        raise MissingInputError("Missing input: site evaluations")
    points = site_points(sites, sites_crs, target_crs)
    coverage = read_listframe(listframe, listframe_directory).to_crs(target_crs).geometry.union_all()

    if predicate == WITHIN_DISTANCE:
        retain = points.geometry.distance(coverage) <= distance
    elif predicate == INTERSECTS:
        retain = points.geometry.intersects(coverage)
    else:
        raise ValueError(f"Unknown predicate {predicate!r}; use {WITHIN_DISTANCE!r} or {INTERSECTS!r}")
    retained, removed = apply_site_partition(points, retain)
    logger.info(f"{len(retained)} sites retained, {len(removed)} removed ({predicate})")
    return retained, removed


def removal_label(predicate: str, distance: float = DEFAULT_DISTANCE_M) -> str:
    if predicate == WITHIN_DISTANCE:
        return f"SITES_NOT_WITHIN_{distance:g}M"
    return "SITES_NOT_INTERSECTS"


def site_removal_bundle(
    sites: pd.DataFrame,
    listframe: typing.Any,
    predicate: str = WITHIN_DISTANCE,
    distance: float = DEFAULT_DISTANCE_M,
    **kwargs: typing.Any,
) -> tuple[ExportBundle, gpd.GeoDataFrame, list[str]]:
    """
    Run partition_sites() and package the removed sites for export.
    Returns (bundle, retained, water resource codes for the file name).
    """
    retained, removed = partition_sites(sites, listframe, predicate, distance, **kwargs)
    label = removal_label(predicate, distance)
    audit: list[AuditEntry] = []
    add_entry(audit, "site-removals", label, f"{len(retained)} sites retained, {len(removed)} removed", "info", logger)
    notepad = create_notepad("site-removals")
    if len(removed):
        notepad.add_warning(f"{len(removed)} sites fail the {predicate} test and are listed in {label}")
    return ExportBundle(tables={label: removed}, audit=audit, notepad=notepad), retained, water_resource_codes(sites)
