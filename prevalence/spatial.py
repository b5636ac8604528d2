"""Spatial view model: projection, Voronoi cells, quantile colours, legend.

Everything here is pure and drawing-surface agnostic; :mod:`prevalence.charts`
turns a :class:`SpatialView` into an Altair chart.
"""

from __future__ import annotations

import math
from bisect import bisect_right
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Tuple

import numpy as np
from pyproj import CRS, Transformer
from shapely.geometry import MultiPoint, Point, Polygon, box, mapping
from shapely.ops import voronoi_diagram
from shapely.strtree import STRtree

from prevalence.config import DashboardSettings
from prevalence.features import Feature
from prevalence.formatting import format_decimal, format_number, format_range


class MercatorProjection:
    """Spherical Mercator with d3-style centre, scale and translate.

    Pixel y grows downwards. The same instance is reused for every
    condition so the frame of reference stays put.
    """

    def __init__(self, center: Tuple[float, float], scale: float, width: float, height: float):
        lon0, lat0 = center
        self.center = (float(lon0), float(lat0))
        self.scale = float(scale)
        self.translate = (width / 2.0, height / 2.0)
        self._transformer = Transformer.from_crs(
            CRS.from_proj4("+proj=longlat +R=1 +no_defs"),
            CRS.from_proj4(f"+proj=merc +R=1 +lon_0={lon0} +no_defs"),
            always_xy=True,
        )
        self._cx, self._cy = self._transformer.transform(lon0, lat0)

    @classmethod
    def from_settings(cls, settings: DashboardSettings) -> "MercatorProjection":
        return cls(settings.center, settings.scale, settings.width, settings.height)

    def project(self, lons: Sequence[float], lats: Sequence[float]) -> np.ndarray:
        x, y = self._transformer.transform(np.asarray(lons, dtype=float), np.asarray(lats, dtype=float))
        px = self.translate[0] + self.scale * (np.asarray(x) - self._cx)
        py = self.translate[1] - self.scale * (np.asarray(y) - self._cy)
        return np.column_stack([px, py])

    def __call__(self, lon: float, lat: float) -> Tuple[float, float]:
        px, py = self.project([lon], [lat])[0]
        return float(px), float(py)


def tessellate(points: np.ndarray, width: float, height: float) -> List[Optional[Polygon]]:
    """Voronoi cell per point, clipped to the ``width`` x ``height`` surface.

    Coincident points share a site: the first one owns the cell and the
    rest get ``None``.
    """
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    surface = box(0.0, 0.0, width, height)
    if len(points) == 0:
        return []

    first_owner: Dict[Tuple[float, float], int] = {}
    for i, (x, y) in enumerate(points):
        first_owner.setdefault((x, y), i)
    sites = list(first_owner.keys())

    cells: List[Optional[Polygon]] = [None] * len(points)
    if len(sites) == 1:
        cells[first_owner[sites[0]]] = surface
        return cells

    minx, miny = points.min(axis=0)
    maxx, maxy = points.max(axis=0)
    envelope = box(min(0.0, minx), min(0.0, miny), max(width, maxx), max(height, maxy))
    diagram = voronoi_diagram(MultiPoint(sites), envelope=envelope)
    polygons = list(diagram.geoms)
    tree = STRtree(polygons)

    claimed = set()
    for site in sites:
        owner = first_owner[site]
        for idx in tree.query(Point(site), predicate="intersects"):
            idx = int(idx)
            if idx in claimed:
                continue
            claimed.add(idx)
            clipped = polygons[idx].intersection(surface)
            cells[owner] = clipped if not clipped.is_empty else None
            break
    return cells


def region_outline(points: np.ndarray) -> Optional[Polygon]:
    """Convex hull of the projected points, or None when it would be degenerate."""
    points = np.asarray(points, dtype=float).reshape(-1, 2)
    if len(points) < 3:
        return None
    hull = MultiPoint([tuple(p) for p in points]).convex_hull
    if hull.geom_type != "Polygon" or hull.area <= 0:
        return None
    return hull


@dataclass(frozen=True)
class LegendBin:
    colour: str
    low: float
    high: float

    @property
    def label(self) -> str:
        return format_range(self.low, self.high)


@dataclass(frozen=True)
class QuantileScale:
    domain: Tuple[float, ...]
    palette: Tuple[str, ...]
    thresholds: Tuple[float, ...]
    unknown: str = "#d9d9d9"

    @classmethod
    def from_values(cls, values: Sequence[Optional[float]], palette: Sequence[str], unknown: str = "#d9d9d9") -> "QuantileScale":
        domain = tuple(sorted(float(v) for v in values if v is not None and math.isfinite(v)))
        palette = tuple(palette)
        thresholds: Tuple[float, ...] = ()
        if domain and len(palette) > 1:
            probs = np.arange(1, len(palette)) / len(palette)
            thresholds = tuple(float(q) for q in np.quantile(np.asarray(domain), probs))
        return cls(domain=domain, palette=palette, thresholds=thresholds, unknown=unknown)

    def colour(self, value: Optional[float]) -> str:
        if value is None or not math.isfinite(value) or not self.domain:
            return self.unknown
        return self.palette[bisect_right(self.thresholds, value)]

    def legend_bins(self) -> List[LegendBin]:
        if not self.domain:
            return []
        lo, hi = self.domain[0], self.domain[-1]
        bins: List[LegendBin] = []
        for i, colour in enumerate(self.palette):
            low = lo if i == 0 else self.thresholds[i - 1]
            high = self.thresholds[i] if i < len(self.thresholds) else hi
            bins.append(LegendBin(colour=colour, low=low, high=high))
        return bins


def tooltip_lines(feature: Feature) -> List[str]:
    return [
        feature.name,
        f"Patients: {format_number(feature.patients)}",
        f"Prevalence per 1,000: {format_decimal(feature.prevalence)}",
        f"Prevalence per 1,000 (50+): {format_decimal(feature.prevalence50)}",
    ]


@dataclass(frozen=True)
class SpatialCell:
    feature: Feature
    x: float
    y: float
    colour: str
    polygon: Optional[Polygon] = None

    def properties(self) -> Dict[str, Any]:
        f = self.feature
        return {
            "id": f.id,
            "name": f.name,
            "colour": self.colour,
            "patients": format_number(f.patients),
            "prevalence": format_decimal(f.prevalence),
            "prevalence50": format_decimal(f.prevalence50),
        }


@dataclass(frozen=True)
class SpatialView:
    width: int
    height: int
    cells: List[SpatialCell] = field(default_factory=list)
    legend: List[LegendBin] = field(default_factory=list)
    outline: Optional[Polygon] = None

    @property
    def is_empty(self) -> bool:
        return not self.cells

    def cell_geojson(self) -> List[Dict[str, Any]]:
        return [
            {"type": "Feature", "geometry": mapping(c.polygon), "properties": c.properties()}
            for c in self.cells
            if c.polygon is not None
        ]

    def outline_geojson(self) -> Optional[Dict[str, Any]]:
        if self.outline is None:
            return None
        return {"type": "Feature", "geometry": mapping(self.outline), "properties": {}}

    def cell_at(self, x: float, y: float) -> Optional[SpatialCell]:
        """Cell under the pointer; None off the surface or between cells."""
        if not (0 <= x <= self.width and 0 <= y <= self.height):
            return None
        pointer = Point(x, y)
        for cell in self.cells:
            if cell.polygon is not None and cell.polygon.covers(pointer):
                return cell
        return None

    def tooltip_at(self, x: float, y: float) -> Optional[List[str]]:
        cell = self.cell_at(x, y)
        return tooltip_lines(cell.feature) if cell is not None else None


def build_spatial_view(
    features: Sequence[Feature],
    settings: DashboardSettings,
    projection: Optional[MercatorProjection] = None,
) -> SpatialView:
    if not features:
        return SpatialView(width=settings.width, height=settings.height)

    projection = projection or MercatorProjection.from_settings(settings)
    points = projection.project([f.longitude for f in features], [f.latitude for f in features])
    polygons = tessellate(points, settings.width, settings.height)
    scale = QuantileScale.from_values([f.prevalence for f in features], settings.palette, settings.unknown_colour)

    cells = [
        SpatialCell(feature=f, x=float(x), y=float(y), colour=scale.colour(f.prevalence), polygon=poly)
        for f, (x, y), poly in zip(features, points, polygons)
    ]
    return SpatialView(
        width=settings.width,
        height=settings.height,
        cells=cells,
        legend=scale.legend_bins(),
        outline=region_outline(points),
    )
