"""Pydantic schemas for crops and their recipe documents.

Recipe documents keep their stored camelCase names (``recipeInfo``,
``recipeRules.environmentalConditions.soilPH``, ``recipeWorkflows`` ...);
Python code uses the snake_case attribute names.  Dump with
``by_alias=True`` whenever a document leaves the process.

Stored recipes are free-form JSON, so every recipe field is read leniently:
a value that cannot be parsed becomes ``None`` (or an empty list) instead of
invalidating the whole document.
"""

from __future__ import annotations

import math
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Annotated, Any

from pydantic import BaseModel, BeforeValidator, ConfigDict, Field, ValidationError, WrapValidator, model_validator
from pydantic.alias_generators import to_camel


def _none_on_error(value: Any, handler) -> Any:
	try:
		return handler(value)
	except ValidationError:
		return None


def _lenient_number(value: Any) -> float | None:
	if value is None or isinstance(value, bool):
		return None
	try:
		number = float(value)
	except (TypeError, ValueError, OverflowError):
		return None
	return number if math.isfinite(number) else None


def _as_id(value: Any) -> str | None:
	if value is None or isinstance(value, (Mapping, list)):
		return None
	return str(value)


def _document_or_empty(value: Any) -> Any:
	if isinstance(value, (Mapping, BaseModel)):
		return value
	return {}


def _names(value: Any) -> list[str] | None:
	if isinstance(value, str):
		return [value]
	if isinstance(value, list):
		return [item for item in value if isinstance(item, str)]
	return None


def _list_or_empty(value: Any) -> list[Any]:
	return value if isinstance(value, list) else []


Number = Annotated[float | None, BeforeValidator(_lenient_number)]
DocumentId = Annotated[str | None, BeforeValidator(_as_id)]
Text = Annotated[str | None, WrapValidator(_none_on_error)]
Flag = Annotated[bool | None, WrapValidator(_none_on_error)]
Timestamp = Annotated[datetime | None, WrapValidator(_none_on_error)]
Names = Annotated[list[str] | None, BeforeValidator(_names)]
# a sub-document stored as a scalar reads as absent
Lenient = WrapValidator(_none_on_error)


class RecipeDocument(BaseModel):
	model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# ── Recipe rules ────────────────────────────────────────────────────────────


class ValueRange(RecipeDocument):
	min: Number = None
	max: Number = None
	optimal: Number = None
	unit: Text = None


class SoilTypeRule(RecipeDocument):
	allowed: Names = None
	preferred: Names = None
	excluded: Names = None


class EnvironmentalConditions(RecipeDocument):
	soil_ph: Annotated[ValueRange | None, Lenient] = Field(default=None, alias="soilPH")
	temperature: Annotated[ValueRange | None, Lenient] = None
	humidity: Annotated[ValueRange | None, Lenient] = None
	rainfall: Annotated[ValueRange | None, Lenient] = None
	soil_type: Annotated[SoilTypeRule | None, Lenient] = None


class TemporalConstraints(RecipeDocument):
	seed_date_range_start: Timestamp = None
	seed_date_range_end: Timestamp = None
	harvest_date_range_start: Timestamp = None
	harvest_date_range_end: Timestamp = None


class CropRotation(RecipeDocument):
	avoid_previous_crops: Names = None
	preferred_previous_crops: Names = None
	min_rotation_interval: Number = None
	max_consecutive_years: Number = None


class FieldRestPeriod(RecipeDocument):
	min: Number = None
	unit: Text = None


class PreviousCropHarvestDate(RecipeDocument):
	min_days_before_sowing: Number = None
	max_days_before_sowing: Number = None


class HistoricalConstraints(RecipeDocument):
	crop_rotation: Annotated[CropRotation | None, Lenient] = None
	field_rest_period: Annotated[FieldRestPeriod | None, Lenient] = None
	previous_crop_harvest_date: Annotated[PreviousCropHarvestDate | None, Lenient] = None


class RecipeRules(RecipeDocument):
	temporal_constraints: Annotated[TemporalConstraints | None, Lenient] = None
	environmental_conditions: Annotated[EnvironmentalConditions | None, Lenient] = None
	historical_constraints: Annotated[HistoricalConstraints | None, Lenient] = None


# ── Recipe info & workflow ──────────────────────────────────────────────────


class ExpectedYield(RecipeDocument):
	value: Number = None
	unit: Text = None
	area_basis: Text = None
	notes: Text = None


class RecipeInfo(RecipeDocument):
	description: Text = None
	created_by: Text = None
	created_at: Timestamp = None
	updated_at: Timestamp = None
	expected_yield: Annotated[ExpectedYield | None, Lenient] = None


class EquipmentItem(RecipeDocument):
	name: Text = None
	quantity: Number = None
	optional: Flag = None

	@model_validator(mode="before")
	@classmethod
	def _mapping_or_empty(cls, data: Any) -> Any:
		if isinstance(data, str):
			return {"name": data}
		return _document_or_empty(data)


class WorkflowStep(RecipeDocument):
	id: DocumentId = None
	step_name: Text = None
	sequence: Number = None
	duration: Number = None
	equipment_required: Annotated[list[EquipmentItem], BeforeValidator(_list_or_empty)] = Field(default_factory=list)

	@model_validator(mode="before")
	@classmethod
	def _mapping_or_empty(cls, data: Any) -> Any:
		if isinstance(data, str):
			return {"stepName": data}
		return _document_or_empty(data)


class Recipe(RecipeDocument):
	id: DocumentId = None
	db_id: DocumentId = Field(default=None, alias="_id")
	recipe_info: Annotated[RecipeInfo | None, Lenient] = None
	recipe_rules: Annotated[RecipeRules | None, Lenient] = None
	recipe_workflows: Annotated[list[WorkflowStep], BeforeValidator(_list_or_empty)] = Field(default_factory=list)

	@model_validator(mode="before")
	@classmethod
	def _mapping_or_empty(cls, data: Any) -> Any:
		return _document_or_empty(data)

	@property
	def key(self) -> str | None:
		return self.id or self.db_id

	@property
	def description(self) -> str | None:
		return self.recipe_info.description if self.recipe_info else None

	@property
	def environment(self) -> EnvironmentalConditions | None:
		if self.recipe_rules is None:
			return None
		return self.recipe_rules.environmental_conditions


# ── Crop CRUD ───────────────────────────────────────────────────────────────


class CropCreate(BaseModel):
	name: str = Field(min_length=1, max_length=255)
	icon: str = Field(default="", max_length=64)
	actual_yield: float | None = None
	recipes: list[Recipe] = Field(default_factory=list)


class CropUpdate(BaseModel):
	name: str | None = Field(default=None, min_length=1, max_length=255)
	icon: str | None = Field(default=None, max_length=64)
	actual_yield: float | None = None


class CropRead(BaseModel):
	model_config = ConfigDict(from_attributes=True)

	id: uuid.UUID
	name: str
	icon: str
	actual_yield: float | None = None
	recipes: list[Recipe] = Field(default_factory=list)
	created_at: datetime
	updated_at: datetime


class CropListRead(BaseModel):
	items: list[CropRead]


# ── Recipe ranking ──────────────────────────────────────────────────────────


class RankedRecipe(BaseModel):
	recipe: Recipe
	similarity_score: float = Field(ge=0.0, le=1.0)


class RecipeRankingRead(BaseModel):
	field_id: uuid.UUID
	crop_id: uuid.UUID
	items: list[RankedRecipe]
	field_conditions: dict[str, Any] = Field(default_factory=dict)
