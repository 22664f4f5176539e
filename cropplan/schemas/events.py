"""Pydantic schemas for lifecycle events and scheduling requests.

Event documents serialize with the event-stream field names
(``Feature_Type``, ``Module_Action``, ``Date``, ``State``, ``Meta_Data``,
``RelationIds``) shared with the timeline UI.
"""

from __future__ import annotations

import uuid
from datetime import date, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from cropplan.models.enums import EventStateEnum, ModuleActionEnum


class EventRelationIds(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	crop_id: str | None = Field(default=None, alias="Crop_id")
	field_id: str | None = Field(default=None, alias="Field_id")
	recipe_id: str | None = Field(default=None, alias="Recipe_id")
	workflow_step_id: str | None = Field(default=None, alias="Workflow_step_id")


class LifecycleEventPayload(BaseModel):
	"""An event ready to be appended to the event stream."""

	model_config = ConfigDict(populate_by_name=True)

	feature_type: str = Field(alias="Feature_Type")
	module_action: ModuleActionEnum = Field(
		default=ModuleActionEnum.RecipeWorkflow, alias="Module_Action"
	)
	event_date: date = Field(alias="Date")
	state: EventStateEnum = Field(default=EventStateEnum.Pending, alias="State")
	meta_data: dict[str, Any] = Field(default_factory=dict, alias="Meta_Data")
	relation_ids: EventRelationIds = Field(
		default_factory=EventRelationIds, alias="RelationIds"
	)


class LifecycleEventRead(BaseModel):
	model_config = ConfigDict(populate_by_name=True)

	id: uuid.UUID
	feature_type: str = Field(alias="Feature_Type")
	module_action: ModuleActionEnum = Field(alias="Module_Action")
	event_date: datetime = Field(alias="Date")
	state: EventStateEnum = Field(alias="State")
	meta_data: dict[str, Any] | None = Field(default=None, alias="Meta_Data")
	relation_ids: dict[str, Any] | None = Field(default=None, alias="RelationIds")
	created_at: datetime
	updated_at: datetime


class ScheduleRequest(BaseModel):
	crop_id: str | None = None
	recipe_id: str | None = None
	field_id: str | None = None
	baseline_date: date
	selected_stage: str | None = None
	persist: bool = True


class ScheduleRead(BaseModel):
	crop_id: str
	recipe_id: str
	field_id: str
	persisted: bool
	events: list[LifecycleEventPayload]
	event_ids: list[uuid.UUID] = Field(default_factory=list)


class EventListRead(BaseModel):
	items: list[LifecycleEventRead]


class EventStateUpdate(BaseModel):
	state: EventStateEnum


class StageListRead(BaseModel):
	stages: list[str]
