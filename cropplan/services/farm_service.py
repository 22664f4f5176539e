"""Farm boundary, field partitioning and field agronomy service."""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from typing import Any

from geoalchemy2.shape import from_shape, to_shape
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from cropplan.config import get_settings
from cropplan.models.farm import Farm, Field
from cropplan.schemas.crop import Recipe
from cropplan.schemas.farm import FarmCreate, FieldUpdate
from cropplan.services.compatibility import CompatibilityScorer, FieldConditions, rank_recipes
from cropplan.services.crop_service import CropService
from cropplan.services.partition import FieldPolygon, GeometryPartitioner, coerce_boundary

_logger = logging.getLogger("cropplan.farms")

SRID = 4326


@dataclass
class PartitionOutcome:
	farm: Farm
	requested_count: int
	fields: list[Field]
	dropped_field_ids: list[uuid.UUID] = field(default_factory=list)


class FarmService:
	"""Service for farms, their boundary-derived fields, and recipe fit."""

	def __init__(
		self,
		db: AsyncSession,
		partitioner: GeometryPartitioner | None = None,
		scorer: CompatibilityScorer | None = None,
	):
		self.db = db
		settings = get_settings()
		self.partitioner = partitioner or GeometryPartitioner(settings.partition_min_area_acres)
		self.scorer = scorer or CompatibilityScorer(settings.scoring_config())

	async def create_farm(self, payload: FarmCreate) -> Farm:
		boundary = None
		if payload.boundary is not None:
			polygon = coerce_boundary(payload.boundary)
			if polygon is None:
				raise ValueError("boundary must be a valid GeoJSON polygon")
			boundary = from_shape(polygon, srid=SRID)
		farm = Farm(name=payload.name, boundary=boundary, attributes=payload.attributes)
		self.db.add(farm)
		await self.db.flush()
		await self.db.refresh(farm)
		return farm

	async def list_farms(self) -> list[Farm]:
		stmt = select(Farm).options(selectinload(Farm.fields)).order_by(Farm.created_at.desc())
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_farm(self, farm_id: uuid.UUID) -> Farm:
		stmt = select(Farm).where(Farm.id == farm_id).options(selectinload(Farm.fields))
		row = await self.db.execute(stmt)
		farm = row.scalar_one_or_none()
		if farm is None:
			raise LookupError(f"Farm {farm_id} not found")
		return farm

	async def set_boundary(
		self,
		farm_id: uuid.UUID,
		boundary: dict[str, Any],
		repartition: bool = True,
	) -> PartitionOutcome:
		"""Replace the farm boundary; existing fields are re-cut to fit it."""
		farm = await self.get_farm(farm_id)
		polygon = coerce_boundary(boundary)
		if polygon is None:
			raise ValueError("boundary must be a valid GeoJSON polygon")
		farm.boundary = from_shape(polygon, srid=SRID)

		existing = self._ordered_fields(farm)
		if not repartition or not existing:
			await self.db.flush()
			await self.db.refresh(farm)
			return PartitionOutcome(farm=farm, requested_count=0, fields=existing)
		return await self._apply_partition(farm, polygon, len(existing))

	async def partition_farm(self, farm_id: uuid.UUID, field_count: int) -> PartitionOutcome:
		"""Divide the farm boundary into ``field_count`` fields.

		Fields that already exist keep their identity, by position.
		"""
		farm = await self.get_farm(farm_id)
		if farm.boundary is None:
			raise ValueError("draw a farm boundary before dividing it into fields")
		return await self._apply_partition(farm, to_shape(farm.boundary), field_count)

	async def list_fields(self, farm_id: uuid.UUID) -> list[Field]:
		farm = await self.get_farm(farm_id)
		return self._ordered_fields(farm)

	async def get_field(self, field_id: uuid.UUID) -> Field:
		row = await self.db.execute(select(Field).where(Field.id == field_id))
		record = row.scalar_one_or_none()
		if record is None:
			raise LookupError(f"Field {field_id} not found")
		return record

	async def update_field(self, field_id: uuid.UUID, payload: FieldUpdate) -> Field:
		record = await self.get_field(field_id)
		for key, value in payload.model_dump(exclude_unset=True).items():
			if key == "soil_ph" and value is not None:
				value = str(value)
			setattr(record, key, value)
		await self.db.flush()
		await self.db.refresh(record)
		return record

	async def rank_recipes_for_field(
		self,
		field_id: uuid.UUID,
		crop_id: uuid.UUID,
	) -> tuple[FieldConditions, list[tuple[Recipe, float]]]:
		record = await self.get_field(field_id)
		crop = await CropService(self.db).get_crop(crop_id)
		conditions = FieldConditions.from_record(record)
		return conditions, rank_recipes(conditions, crop.recipes or [], self.scorer)

	async def _apply_partition(self, farm: Farm, boundary: Any, field_count: int) -> PartitionOutcome:
		existing = self._ordered_fields(farm)
		result = self.partitioner.repartition(boundary, existing, target_count=field_count)
		if result is None:
			raise ValueError("draw a farm boundary before dividing it into fields")

		fields: list[Field] = []
		for record, polygon in result.assignments:
			self._apply_polygon(record, polygon)
			fields.append(record)
		for polygon in result.added:
			record = Field(farm_id=farm.id, name=polygon.name)
			self._apply_polygon(record, polygon)
			farm.fields.append(record)
			fields.append(record)

		dropped_ids = [record.id for record in result.dropped]
		for record in result.dropped:
			# delete-orphan cascade removes the row on flush
			farm.fields.remove(record)

		await self.db.flush()
		await self.db.refresh(farm)
		for record in fields:
			await self.db.refresh(record)
		_logger.info(
			"farm_partitioned",
			extra={
				"farm_id": str(farm.id),
				"requested": field_count,
				"created": len(fields),
				"dropped": len(dropped_ids),
			},
		)
		return PartitionOutcome(
			farm=farm,
			requested_count=field_count,
			fields=fields,
			dropped_field_ids=dropped_ids,
		)

	@staticmethod
	def _apply_polygon(record: Field, polygon: FieldPolygon) -> None:
		record.position = polygon.position
		record.boundary = from_shape(polygon.geometry, srid=SRID)
		record.area_acres = polygon.area_acres
		record.area = polygon.area

	@staticmethod
	def _ordered_fields(farm: Farm) -> list[Field]:
		return sorted(farm.fields or [], key=lambda record: record.position)
