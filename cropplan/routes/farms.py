"""Farm boundary and field partition routes."""

from __future__ import annotations

import uuid
from collections.abc import Mapping
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, status
from geoalchemy2.shape import to_shape
from shapely.geometry import mapping
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.database import get_db
from cropplan.schemas.farm import (
	BoundaryUpdate,
	FarmCreate,
	FarmListRead,
	FarmRead,
	FieldListRead,
	FieldRead,
	PartitionRead,
	PartitionRequest,
)
from cropplan.services.farm_service import FarmService, PartitionOutcome

router = APIRouter(prefix="/farms", tags=["farms"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected farm service failure",
	)


def geojson(value: Any) -> dict[str, Any] | None:
	if value is None:
		return None
	if isinstance(value, Mapping):
		return dict(value)
	return dict(mapping(to_shape(value)))


def to_field_read(record: Any) -> FieldRead:
	return FieldRead(
		id=record.id,
		farm_id=record.farm_id,
		name=record.name,
		position=record.position,
		area=record.area,
		area_acres=record.area_acres,
		geometry=geojson(record.boundary),
		crop_id=record.crop_id,
		crop_stage=record.crop_stage,
		soil_type=record.soil_type,
		soil_ph=record.soil_ph,
		weather=record.weather,
		attributes=record.attributes,
		created_at=record.created_at,
		updated_at=record.updated_at,
	)


def _to_farm_read(farm: Any) -> FarmRead:
	return FarmRead(
		id=farm.id,
		name=farm.name,
		boundary=geojson(farm.boundary),
		attributes=farm.attributes,
		created_at=farm.created_at,
		updated_at=farm.updated_at,
		fields=[to_field_read(record) for record in sorted(farm.fields, key=lambda r: r.position)],
	)


def _to_partition_read(outcome: PartitionOutcome) -> PartitionRead:
	return PartitionRead(
		farm_id=outcome.farm.id,
		requested_count=outcome.requested_count,
		created_count=len(outcome.fields),
		fields=[to_field_read(record) for record in outcome.fields],
		dropped_field_ids=outcome.dropped_field_ids,
	)


@router.post("", response_model=FarmRead, status_code=status.HTTP_201_CREATED)
async def create_farm(
	payload: FarmCreate,
	db: AsyncSession = Depends(get_db),
) -> FarmRead:
	service = FarmService(db)
	try:
		farm = await service.create_farm(payload)
		farm = await service.get_farm(farm.id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_farm_read(farm)


@router.get("", response_model=FarmListRead)
async def list_farms(db: AsyncSession = Depends(get_db)) -> FarmListRead:
	service = FarmService(db)
	try:
		farms = await service.list_farms()
	except Exception as exc:
		raise _map_error(exc) from exc
	return FarmListRead(items=[_to_farm_read(farm) for farm in farms])


@router.get("/{farm_id}", response_model=FarmRead)
async def get_farm(farm_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> FarmRead:
	service = FarmService(db)
	try:
		farm = await service.get_farm(farm_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_farm_read(farm)


@router.put("/{farm_id}/boundary", response_model=PartitionRead)
async def set_boundary(
	farm_id: uuid.UUID,
	payload: BoundaryUpdate,
	db: AsyncSession = Depends(get_db),
) -> PartitionRead:
	"""Replace the boundary; existing fields are re-cut unless ``repartition`` is false."""
	service = FarmService(db)
	try:
		outcome = await service.set_boundary(farm_id, payload.boundary, repartition=payload.repartition)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_partition_read(outcome)


@router.post("/{farm_id}/partition", response_model=PartitionRead)
async def partition_farm(
	farm_id: uuid.UUID,
	payload: PartitionRequest,
	db: AsyncSession = Depends(get_db),
) -> PartitionRead:
	service = FarmService(db)
	try:
		outcome = await service.partition_farm(farm_id, payload.field_count)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_partition_read(outcome)


@router.get("/{farm_id}/fields", response_model=FieldListRead)
async def list_fields(farm_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> FieldListRead:
	service = FarmService(db)
	try:
		fields = await service.list_fields(farm_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return FieldListRead(items=[to_field_read(record) for record in fields])
