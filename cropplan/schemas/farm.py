"""Pydantic request/response schemas for farms, boundaries and fields."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field


class FarmCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	boundary: dict[str, Any] | None = None
	attributes: dict[str, Any] | None = None


class BoundaryUpdate(BaseModel):
	boundary: dict[str, Any]
	repartition: bool = True


class PartitionRequest(BaseModel):
	field_count: int = Field(ge=1, le=400)


class FieldUpdate(BaseModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	crop_id: uuid.UUID | None = None
	crop_stage: str | None = Field(default=None, max_length=64)
	soil_type: str | None = Field(default=None, max_length=100)
	soil_ph: str | float | None = None
	weather: dict[str, Any] | None = None
	attributes: dict[str, Any] | None = None


class FieldRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	farm_id: uuid.UUID
	name: str
	position: int
	area: str
	area_acres: float
	geometry: dict[str, Any] | None = None
	crop_id: uuid.UUID | None = None
	crop_stage: str | None = None
	soil_type: str | None = None
	soil_ph: str | None = None
	weather: dict[str, Any] | None = None
	attributes: dict[str, Any] | None = None
	created_at: datetime
	updated_at: datetime


class FarmRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	boundary: dict[str, Any] | None = None
	attributes: dict[str, Any] | None = None
	created_at: datetime
	updated_at: datetime
	fields: list[FieldRead] = Field(default_factory=list)


class FarmListRead(BaseModel):
	items: list[FarmRead]


class FieldListRead(BaseModel):
	items: list[FieldRead]


class PartitionRead(BaseModel):
	farm_id: uuid.UUID
	requested_count: int
	created_count: int
	fields: list[FieldRead]
	dropped_field_ids: list[uuid.UUID] = Field(default_factory=list)
