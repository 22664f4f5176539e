from __future__ import annotations

import pytest
from shapely.geometry import Polygon, mapping

from cropplan.services.partition import (
	GeometryPartitioner,
	coerce_boundary,
	format_acres,
	geodesic_area_acres,
)

# Roughly 100 m x 100 m at the equator.
DX = 100 / 111_319.49
DY = 100 / 110_574.27
SQUARE = Polygon([(0, 0), (DX, 0), (DX, DY), (0, DY), (0, 0)])

# Lower-left half of a ~1.1 km box; the north-east grid cell only touches it.
TRIANGLE = Polygon([(0, 0), (0.01, 0), (0, 0.01), (0, 0)])


def test_square_splits_into_four_quadrants() -> None:
	fields = GeometryPartitioner().partition(mapping(SQUARE), 4)

	assert fields is not None
	assert [f.name for f in fields] == ["Field 1", "Field 2", "Field 3", "Field 4"]
	assert [f.position for f in fields] == [0, 1, 2, 3]
	total = geodesic_area_acres(SQUARE)
	assert total == pytest.approx(2.47, abs=0.02)
	for f in fields:
		assert f.area_acres == pytest.approx(total / 4, abs=0.02)
		assert f.area == format_acres(f.area_acres)

	# Row-major, north to south, west to east.
	centroids = [f.geometry.centroid for f in fields]
	assert centroids[0].x < centroids[1].x
	assert centroids[0].y > centroids[2].y
	assert centroids[2].x < centroids[3].x


@pytest.mark.parametrize("count", [1, 2, 3, 5, 7, 10])
def test_never_more_than_requested(count: int) -> None:
	fields = GeometryPartitioner().partition(SQUARE, count)
	assert fields is not None
	assert len(fields) == count
	assert all(f.area_acres > 0.01 for f in fields)


def test_shortfall_when_cells_miss_the_boundary() -> None:
	fields = GeometryPartitioner().partition(TRIANGLE, 4)
	assert fields is not None
	assert len(fields) == 3
	assert [f.name for f in fields] == ["Field 1", "Field 2", "Field 3"]


def test_slivers_below_threshold_are_skipped() -> None:
	tiny = Polygon([(0, 0), (0.00001, 0), (0.00001, 0.00001), (0, 0.00001)])
	assert GeometryPartitioner().partition(tiny, 4) == []


def test_partition_is_deterministic() -> None:
	partitioner = GeometryPartitioner()
	first = partitioner.partition(TRIANGLE, 9)
	second = partitioner.partition(TRIANGLE, 9)
	assert first is not None and second is not None
	assert [f.geometry.wkb for f in first] == [f.geometry.wkb for f in second]
	assert [f.area_acres for f in first] == [f.area_acres for f in second]


@pytest.mark.parametrize(
	"boundary",
	[
		None,
		{"type": "Point", "coordinates": [0, 0]},
		{"type": "Polygon", "coordinates": [[[0, 0], [1, 1], [1, 0], [0, 1], [0, 0]]]},
		{"type": "FeatureCollection", "features": []},
		{"type": "Polygon"},
		"not geojson",
	],
)
def test_invalid_boundary_gives_no_result(boundary: object) -> None:
	assert GeometryPartitioner().partition(boundary, 4) is None


def test_non_positive_count_gives_empty_list() -> None:
	assert GeometryPartitioner().partition(SQUARE, 0) == []


def test_feature_wrappers_are_unwrapped() -> None:
	feature = {"type": "Feature", "properties": {}, "geometry": mapping(SQUARE)}
	collection = {"type": "FeatureCollection", "features": [feature]}
	assert coerce_boundary(feature) == coerce_boundary(collection)
	assert coerce_boundary(collection) is not None


def test_field_feature_properties() -> None:
	fields = GeometryPartitioner().partition(SQUARE, 1)
	assert fields is not None
	feature = fields[0].to_feature()
	assert feature["properties"]["name"] == "Field 1"
	assert feature["properties"]["area"].endswith(" acres")
	assert feature["geometry"]["type"] == "Polygon"


@pytest.mark.parametrize(
	("acres", "text"),
	[(12.5, "12.5 acres"), (2.0, "2 acres"), (0.004, "0 acres"), (3.456, "3.46 acres")],
)
def test_format_acres(acres: float, text: str) -> None:
	assert format_acres(acres) == text


def test_repartition_same_boundary_keeps_identities() -> None:
	partitioner = GeometryPartitioner()
	existing = ["north-west", "north-east", "south-west", "south-east"]
	result = partitioner.repartition(SQUARE, existing)

	assert result is not None
	assert [item for item, _polygon in result.assignments] == existing
	fresh = partitioner.partition(SQUARE, 4)
	assert fresh is not None
	assert [p.geometry.wkb for _item, p in result.assignments] == [p.geometry.wkb for p in fresh]
	assert result.added == []
	assert result.dropped == []


def test_repartition_reports_dropped_fields() -> None:
	result = GeometryPartitioner().repartition(TRIANGLE, ["a", "b", "c", "d"])
	assert result is not None
	assert [item for item, _polygon in result.assignments] == ["a", "b", "c"]
	assert result.dropped == ["d"]


def test_repartition_with_larger_count_adds_fields() -> None:
	result = GeometryPartitioner().repartition(SQUARE, ["a", "b"], target_count=4)
	assert result is not None
	assert [item for item, _polygon in result.assignments] == ["a", "b"]
	assert [p.name for p in result.added] == ["Field 3", "Field 4"]


def test_repartition_without_boundary() -> None:
	assert GeometryPartitioner().repartition(None, ["a"]) is None
