"""Farm boundary partitioning into field polygons.

The boundary's bounding box is cut into a ``ceil(sqrt(n)) x ceil(sqrt(n))``
grid of equal cells.  Cells are visited row by row, north to south and west
to east; each cell is clipped to the boundary and kept when the clipped
piece has a geodesic area above the minimum threshold.  Visiting stops as
soon as ``n`` fields exist, so a boundary whose shape leaves too many cells
empty yields fewer fields than requested.

Coordinates are GeoJSON order (longitude, latitude) on WGS84.  Everything
here is a pure function of its inputs.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any, Generic, TypeVar

from pyproj import Geod
from shapely.errors import GEOSException
from shapely.geometry import GeometryCollection, MultiPolygon, Polygon, box, mapping, shape
from shapely.geometry.base import BaseGeometry

_logger = logging.getLogger("cropplan.partition")

ACRE_M2 = 4046.8564224
DEFAULT_MIN_AREA_ACRES = 0.01

_GEOD = Geod(ellps="WGS84")

T = TypeVar("T")


def geodesic_area_acres(geometry: BaseGeometry) -> float:
	area_m2, _perimeter = _GEOD.geometry_area_perimeter(geometry)
	return abs(area_m2) / ACRE_M2


def format_acres(acres: float) -> str:
	text = f"{round(acres, 2):.2f}".rstrip("0").rstrip(".")
	return f"{text} acres"


def coerce_boundary(boundary: Any) -> Polygon | None:
	"""Return the boundary as a valid, non-empty polygon, or ``None``.

	Accepts a shapely polygon, a GeoJSON geometry, a Feature, or a
	FeatureCollection (its first feature is used).
	"""
	if boundary is None:
		return None

	geometry: Any = boundary
	if isinstance(boundary, Mapping):
		kind = boundary.get("type")
		if kind == "FeatureCollection":
			features = boundary.get("features") or []
			geometry = features[0].get("geometry") if features and isinstance(features[0], Mapping) else None
		elif kind == "Feature":
			geometry = boundary.get("geometry")
		if not isinstance(geometry, Mapping):
			return None
		try:
			geometry = shape(geometry)
		except (GEOSException, ValueError, TypeError, KeyError, IndexError, AttributeError) as exc:
			_logger.warning("boundary_unreadable", extra={"error": str(exc)})
			return None

	if not isinstance(geometry, Polygon) or geometry.is_empty or not geometry.is_valid:
		return None
	return geometry


def _polygonal(geometry: BaseGeometry) -> Polygon | MultiPolygon | None:
	if isinstance(geometry, (Polygon, MultiPolygon)):
		return None if geometry.is_empty else geometry
	if isinstance(geometry, GeometryCollection):
		polygons: list[Polygon] = []
		for part in geometry.geoms:
			if isinstance(part, Polygon) and not part.is_empty:
				polygons.append(part)
			elif isinstance(part, MultiPolygon):
				polygons.extend(p for p in part.geoms if not p.is_empty)
		if not polygons:
			return None
		return polygons[0] if len(polygons) == 1 else MultiPolygon(polygons)
	return None


@dataclass(frozen=True, slots=True)
class FieldPolygon:
	"""One field carved out of a farm boundary."""

	position: int
	name: str
	geometry: Polygon | MultiPolygon
	area_acres: float

	@property
	def area(self) -> str:
		return format_acres(self.area_acres)

	def to_feature(self) -> dict[str, Any]:
		return {
			"type": "Feature",
			"properties": {
				"type": "field",
				"name": self.name,
				"area": self.area,
				"area_acres": self.area_acres,
			},
			"geometry": mapping(self.geometry),
		}


@dataclass
class Repartition(Generic[T]):
	"""New polygons paired, by position, with the fields they replace."""

	assignments: list[tuple[T, FieldPolygon]] = field(default_factory=list)
	added: list[FieldPolygon] = field(default_factory=list)
	dropped: list[T] = field(default_factory=list)


class GeometryPartitioner:
	"""Grid-based subdivision of a farm boundary."""

	def __init__(self, min_area_acres: float = DEFAULT_MIN_AREA_ACRES):
		self.min_area_acres = min_area_acres

	def partition(self, boundary: Any, target_count: int) -> list[FieldPolygon] | None:
		"""Split ``boundary`` into at most ``target_count`` fields.

		Returns ``None`` when the boundary is missing or not a valid polygon.
		"""
		polygon = coerce_boundary(boundary)
		if polygon is None:
			_logger.info("partition_without_boundary")
			return None
		if target_count < 1:
			return []

		grid_dim = math.ceil(math.sqrt(target_count))
		min_x, min_y, max_x, max_y = polygon.bounds
		cell_w = (max_x - min_x) / grid_dim
		cell_h = (max_y - min_y) / grid_dim

		fields: list[FieldPolygon] = []
		for row in range(grid_dim):
			top = max_y - row * cell_h
			bottom = min_y if row == grid_dim - 1 else max_y - (row + 1) * cell_h
			for col in range(grid_dim):
				if len(fields) >= target_count:
					return fields
				left = min_x + col * cell_w
				right = max_x if col == grid_dim - 1 else min_x + (col + 1) * cell_w
				piece = self._clip(polygon, box(left, bottom, right, top), row, col)
				if piece is None:
					continue
				acres = round(geodesic_area_acres(piece), 2)
				if acres <= self.min_area_acres:
					continue
				position = len(fields)
				fields.append(
					FieldPolygon(
						position=position,
						name=f"Field {position + 1}",
						geometry=piece,
						area_acres=acres,
					)
				)

		if len(fields) < target_count:
			_logger.info(
				"partition_shortfall",
				extra={"requested": target_count, "created": len(fields), "grid_dim": grid_dim},
			)
		return fields

	def repartition(
		self,
		boundary: Any,
		existing: Sequence[T],
		target_count: int | None = None,
	) -> Repartition[T] | None:
		"""Re-run the partition for an edited boundary, keeping field identities.

		``existing`` must be in partition order; the k-th new polygon goes to
		the k-th existing field.  ``target_count`` defaults to the number of
		existing fields.  Polygons beyond the existing fields are returned in
		``added``, fields left without a polygon in ``dropped``.
		"""
		count = len(existing) if target_count is None else target_count
		polygons = self.partition(boundary, count)
		if polygons is None:
			return None
		result: Repartition[T] = Repartition()
		for index, item in enumerate(existing):
			if index < len(polygons):
				result.assignments.append((item, polygons[index]))
			else:
				result.dropped.append(item)
		result.added.extend(polygons[len(existing):])
		if result.dropped:
			_logger.warning(
				"repartition_dropped_fields",
				extra={"previous": len(existing), "created": len(polygons)},
			)
		return result

	@staticmethod
	def _clip(polygon: Polygon, cell: Polygon, row: int, col: int) -> Polygon | MultiPolygon | None:
		try:
			return _polygonal(polygon.intersection(cell))
		except (GEOSException, ValueError) as exc:
			_logger.warning(
				"partition_cell_failed",
				extra={"row": row, "col": col, "error": str(exc)},
			)
			return None
