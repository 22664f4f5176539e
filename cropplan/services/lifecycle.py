"""Lifecycle scheduling: expands a recipe workflow into dated field events.

Scheduling itself is pure: workflow steps are ordered by ``sequence``
(stable on ties), dated by accumulating step durations from a baseline
date, and marked ``Completed`` or ``Pending`` relative to an optional
current crop stage.  Persisting the result is a separate, optional phase
that appends events to an ``EventStore`` one at a time, in order.

A failed append stops the loop and re-raises the store's exception
unchanged; events appended before the failure are not removed.  Whether
those earlier writes become durable is decided by the store's own
transaction handling.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping, Sequence
from datetime import date, timedelta
from typing import Any, Protocol

from cropplan.models.enums import CropStage, EventStateEnum, ModuleActionEnum
from cropplan.schemas.crop import Recipe, WorkflowStep
from cropplan.schemas.events import EventRelationIds, LifecycleEventPayload
from cropplan.utils.payload import prune_empty

_logger = logging.getLogger("cropplan.lifecycle")

STAGES: tuple[CropStage, ...] = tuple(CropStage)


class MissingIdentifiers(ValueError):
	"""Raised when crop, recipe or field id is absent."""


class CropNotFound(LookupError):
	"""Raised when the crop id does not resolve."""


class RecipeNotFound(LookupError):
	"""Raised when the crop has no recipe with the requested id."""


class EmptyWorkflow(ValueError):
	"""Raised when the resolved recipe has no workflow steps."""


class ScheduleOutOfRange(ValueError):
	"""Raised when accumulated step durations run past the last representable date."""


class CropLookup(Protocol):
	async def find_crop_by_id(self, crop_id: str) -> Any | None: ...


class EventStore(Protocol):
	async def append_event(self, event: LifecycleEventPayload) -> Any: ...


# ── Stage resolution ────────────────────────────────────────────────────────


def _squash(name: str) -> str:
	return "".join(ch for ch in name if ch not in "_- \t").lower()


def match_stage(name: str | None) -> CropStage | None:
	"""Resolve a step or stage name to a canonical stage.

	Tries an exact match, then a case-insensitive one, then containment
	(either direction) once underscores, hyphens and spaces are removed.
	"""
	if not name:
		return None
	for stage in STAGES:
		if name == stage.value:
			return stage

	lowered = name.strip().lower()
	for stage in STAGES:
		if lowered == stage.value.lower():
			return stage

	token = _squash(name)
	if not token:
		return None
	for stage in STAGES:
		canonical = _squash(stage.value)
		if canonical in token or token in canonical:
			return stage
	return None


def step_stage_position(step_name: str | None, position: int, total_steps: int) -> int:
	"""Stage index of a step; unmatched names are spread proportionally."""
	stage = match_stage(step_name)
	if stage is not None:
		return stage.position
	estimate = math.floor(position / (total_steps / len(STAGES)))
	return min(estimate, len(STAGES) - 1)


# ── Pure scheduling ─────────────────────────────────────────────────────────


def _number_or_zero(value: float | None) -> float:
	if value is None or not math.isfinite(value):
		return 0.0
	return value


def order_steps(steps: Sequence[WorkflowStep]) -> list[WorkflowStep]:
	return sorted(steps, key=lambda step: _number_or_zero(step.sequence))


def step_duration_days(step: WorkflowStep) -> int:
	return max(0, int(_number_or_zero(step.duration)))


def _document_ids(raw: Recipe | Mapping[str, Any]) -> tuple[str | None, str | None]:
	if isinstance(raw, Recipe):
		return raw.id, raw.db_id
	if not isinstance(raw, Mapping):
		return None, None
	recipe_id, db_id = raw.get("id"), raw.get("_id")
	return (
		str(recipe_id) if recipe_id is not None else None,
		str(db_id) if db_id is not None else None,
	)


def resolve_recipe(recipes: Sequence[Recipe | Mapping[str, Any]], recipe_id: str) -> Recipe:
	"""Find a recipe by ``id``, then by ``_id``, matching the stored documents before parsing."""
	candidates = [(raw, _document_ids(raw)) for raw in recipes or []]
	for slot in (0, 1):
		for raw, ids in candidates:
			if ids[slot] == recipe_id:
				return raw if isinstance(raw, Recipe) else Recipe.model_validate(raw)
	raise RecipeNotFound(f"Recipe {recipe_id} not found in crop")


def build_events(
	*,
	crop_id: str,
	crop_name: str | None,
	recipe_id: str,
	recipe: Recipe,
	field_id: str,
	baseline_date: date,
	selected_stage: CropStage | str | None = None,
) -> list[LifecycleEventPayload]:
	"""Expand a recipe's workflow into ordered, dated lifecycle events."""
	steps = order_steps(recipe.recipe_workflows)
	if not steps:
		raise EmptyWorkflow(f"Recipe {recipe_id} has no workflow steps")

	selected: CropStage | None = None
	if selected_stage:
		selected = match_stage(str(selected_stage))
		if selected is None:
			_logger.warning(
				"selected_stage_unresolved",
				extra={"selected_stage": str(selected_stage), "recipe_id": recipe_id},
			)

	events: list[LifecycleEventPayload] = []
	cursor = baseline_date
	for position, step in enumerate(steps):
		if position > 0:
			cursor = _advance(cursor, steps[position - 1], position - 1)
		state = EventStateEnum.Pending
		if selected is not None:
			step_position = step_stage_position(step.step_name, position, len(steps))
			if step_position < selected.position:
				state = EventStateEnum.Completed

		meta_data = prune_empty(
			{
				"cropName": crop_name,
				"recipeDescription": recipe.description,
				"sequence": step.sequence,
				"duration": step.duration,
				"equipmentRequired": [
					item.model_dump(mode="json", by_alias=True) for item in step.equipment_required
				],
			}
		)
		events.append(
			LifecycleEventPayload(
				feature_type=step.step_name or f"Workflow Step {position + 1}",
				module_action=ModuleActionEnum.RecipeWorkflow,
				event_date=cursor,
				state=state,
				meta_data=meta_data,
				relation_ids=EventRelationIds(
					crop_id=crop_id,
					field_id=field_id,
					recipe_id=recipe_id,
					workflow_step_id=step.id or f"{recipe_id}:{position + 1}",
				),
			)
		)
	return events


def _advance(cursor: date, step: WorkflowStep, position: int) -> date:
	try:
		return cursor + timedelta(days=step_duration_days(step))
	except OverflowError as exc:
		name = step.step_name or f"Workflow Step {position + 1}"
		raise ScheduleOutOfRange(
			f"Step {name!r} (duration {step.duration:g} days) pushes the schedule past {date.max.isoformat()}"
		) from exc


# ── Scheduler ───────────────────────────────────────────────────────────────


class LifecycleScheduler:
	"""Resolves a crop recipe and schedules (and optionally stores) its events."""

	def __init__(self, crops: CropLookup, events: EventStore | None = None):
		self.crops = crops
		self.events = events

	async def schedule_events(
		self,
		crop_id: str | None,
		recipe_id: str | None,
		field_id: str | None,
		baseline_date: date,
		selected_stage: CropStage | str | None = None,
	) -> list[LifecycleEventPayload]:
		missing = [
			name
			for (name, value) in (("crop_id", crop_id), ("recipe_id", recipe_id), ("field_id", field_id))
			if not value
		]
		if missing:
			raise MissingIdentifiers(f"Missing required identifiers: {', '.join(missing)}")

		crop = await self.crops.find_crop_by_id(str(crop_id))
		if crop is None:
			raise CropNotFound(f"Crop {crop_id} not found")

		recipe = resolve_recipe(getattr(crop, "recipes", None) or [], str(recipe_id))
		return build_events(
			crop_id=str(crop_id),
			crop_name=getattr(crop, "name", None),
			recipe_id=str(recipe_id),
			recipe=recipe,
			field_id=str(field_id),
			baseline_date=baseline_date,
			selected_stage=selected_stage,
		)

	async def persist_events(self, events: Sequence[LifecycleEventPayload]) -> list[Any]:
		"""Append events one at a time; the first failure stops the loop."""
		if self.events is None:
			raise RuntimeError("no event store configured for persistence")

		persisted: list[Any] = []
		for index, event in enumerate(events):
			try:
				persisted.append(await self.events.append_event(event))
			except Exception as exc:
				_logger.error(
					"lifecycle_persist_failed",
					extra={
						"persisted_count": len(persisted),
						"total_count": len(events),
						"failed_step": event.feature_type,
						"error": str(exc),
					},
				)
				exc.add_note(
					f"{len(persisted)} of {len(events)} lifecycle events were stored "
					f"before step {index + 1} ({event.feature_type!r}) failed"
				)
				raise
		_logger.info("lifecycle_persisted", extra={"persisted_count": len(persisted)})
		return persisted

	async def schedule_and_persist(
		self,
		crop_id: str | None,
		recipe_id: str | None,
		field_id: str | None,
		baseline_date: date,
		selected_stage: CropStage | str | None = None,
	) -> tuple[list[LifecycleEventPayload], list[Any]]:
		events = await self.schedule_events(crop_id, recipe_id, field_id, baseline_date, selected_stage)
		return events, await self.persist_events(events)
