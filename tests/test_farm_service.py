from __future__ import annotations

import uuid
from types import SimpleNamespace
from typing import Any

import pytest
from geoalchemy2.shape import from_shape, to_shape
from shapely.geometry import Polygon, mapping

from cropplan.models.farm import Field
from cropplan.schemas.farm import FarmCreate, FieldUpdate
from cropplan.services.crop_service import CropService
from cropplan.services.farm_service import FarmService

DX = 100 / 111_319.49
DY = 100 / 110_574.27
SQUARE = Polygon([(0, 0), (DX, 0), (DX, DY), (0, DY), (0, 0)])


def _existing(count: int) -> list[SimpleNamespace]:
	return [
		SimpleNamespace(
			id=uuid.uuid4(),
			name=f"Block {chr(65 + n)}",
			position=n,
			crop_id=uuid.uuid4(),
			boundary=None,
			area_acres=0.0,
			area="0 acres",
		)
		for n in range(count)
	]


def _farm(fields: list[Any], boundary: Polygon | None = SQUARE) -> SimpleNamespace:
	return SimpleNamespace(
		id=uuid.uuid4(),
		boundary=from_shape(boundary, srid=4326) if boundary is not None else None,
		fields=list(fields),
	)


@pytest.fixture
def patched_farm(monkeypatch: pytest.MonkeyPatch) -> dict[str, Any]:
	holder: dict[str, Any] = {}

	async def fake_get(self: FarmService, farm_id: uuid.UUID) -> Any:
		return holder["farm"]

	monkeypatch.setattr(FarmService, "get_farm", fake_get)
	return holder


@pytest.mark.asyncio
async def test_partition_keeps_identities_and_drops_the_rest(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	existing = _existing(4)
	patched_farm["farm"] = farm = _farm(existing)

	outcome = await FarmService(fake_db_session).partition_farm(farm.id, 2)

	assert [record.name for record in outcome.fields] == ["Block A", "Block B"]
	assert [record.crop_id for record in outcome.fields] == [existing[0].crop_id, existing[1].crop_id]
	assert all(record.boundary is not None for record in outcome.fields)
	assert all(record.area.endswith(" acres") for record in outcome.fields)
	assert outcome.dropped_field_ids == [existing[2].id, existing[3].id]
	assert farm.fields == existing[:2]
	fake_db_session.flush.assert_awaited()


@pytest.mark.asyncio
async def test_partition_adds_new_fields(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	existing = _existing(1)
	patched_farm["farm"] = farm = _farm(existing)

	outcome = await FarmService(fake_db_session).partition_farm(farm.id, 3)

	assert outcome.fields[0] is existing[0]
	added = outcome.fields[1:]
	assert [type(record) for record in added] == [Field, Field]
	assert [record.name for record in added] == ["Field 2", "Field 3"]
	assert [record.position for record in added] == [1, 2]
	assert all(record.farm_id == farm.id for record in added)
	assert len(farm.fields) == 3


@pytest.mark.asyncio
async def test_partition_requires_a_boundary(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	patched_farm["farm"] = farm = _farm([], boundary=None)
	with pytest.raises(ValueError, match="boundary"):
		await FarmService(fake_db_session).partition_farm(farm.id, 2)


@pytest.mark.asyncio
async def test_boundary_edit_recuts_existing_fields(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	existing = _existing(4)
	patched_farm["farm"] = farm = _farm(existing)
	smaller = Polygon([(0, 0), (DX / 2, 0), (DX / 2, DY / 2), (0, DY / 2), (0, 0)])

	outcome = await FarmService(fake_db_session).set_boundary(farm.id, mapping(smaller))

	assert outcome.requested_count == 4
	assert [record.name for record in outcome.fields] == ["Block A", "Block B", "Block C", "Block D"]
	assert to_shape(farm.boundary).equals(smaller)
	assert sum(record.area_acres for record in outcome.fields) == pytest.approx(0.62, abs=0.03)


@pytest.mark.asyncio
async def test_boundary_edit_without_repartition(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	existing = _existing(2)
	patched_farm["farm"] = farm = _farm(existing)

	outcome = await FarmService(fake_db_session).set_boundary(farm.id, mapping(SQUARE), repartition=False)

	assert outcome.fields == existing
	assert all(record.boundary is None for record in existing)


@pytest.mark.asyncio
async def test_invalid_boundary_is_rejected(fake_db_session: Any, patched_farm: dict[str, Any]) -> None:
	patched_farm["farm"] = _farm([])
	with pytest.raises(ValueError):
		await FarmService(fake_db_session).set_boundary(uuid.uuid4(), {"type": "Point", "coordinates": [0, 0]})
	with pytest.raises(ValueError):
		await FarmService(fake_db_session).create_farm(FarmCreate(name="X", boundary={"type": "Point", "coordinates": [0, 0]}))


@pytest.mark.asyncio
async def test_update_field_stores_ph_as_text(fake_db_session: Any, monkeypatch: pytest.MonkeyPatch) -> None:
	record = SimpleNamespace(id=uuid.uuid4(), soil_ph=None, crop_stage=None, name="Field 1")

	async def fake_get_field(self: FarmService, field_id: uuid.UUID) -> Any:
		return record

	monkeypatch.setattr(FarmService, "get_field", fake_get_field)
	await FarmService(fake_db_session).update_field(record.id, FieldUpdate(soil_ph=6.5, crop_stage="Seeding"))

	assert record.soil_ph == "6.5"
	assert record.crop_stage == "Seeding"
	assert record.name == "Field 1"


@pytest.mark.asyncio
async def test_rank_recipes_for_field(
	fake_db_session: Any,
	monkeypatch: pytest.MonkeyPatch,
	wheat_recipe: dict[str, Any],
) -> None:
	record = SimpleNamespace(soil_type="Sandy", soil_ph="6.5", weather=None, attributes=None)
	loam_only = {"id": "loam-only", "recipeRules": {"environmentalConditions": {"soilType": {"allowed": ["Loam"]}}}}
	crop = SimpleNamespace(recipes=[loam_only, wheat_recipe])

	async def fake_get_field(self: FarmService, field_id: uuid.UUID) -> Any:
		return record

	async def fake_get_crop(self: CropService, crop_id: uuid.UUID) -> Any:
		return crop

	monkeypatch.setattr(FarmService, "get_field", fake_get_field)
	monkeypatch.setattr(CropService, "get_crop", fake_get_crop)

	conditions, ranking = await FarmService(fake_db_session).rank_recipes_for_field(uuid.uuid4(), uuid.uuid4())

	assert conditions.ph == pytest.approx(6.5)
	# wheat: (0.3 * 0 + 0.3 * 1) / 0.6; loam-only: unlisted soil
	assert [(recipe.id, score) for recipe, score in ranking] == [
		("wheat-dryland", pytest.approx(0.5)),
		("loam-only", pytest.approx(0.2)),
	]
