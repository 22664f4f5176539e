"""Lifecycle scheduling and event-stream routes."""

from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.config import get_settings
from cropplan.database import get_db
from cropplan.schemas.events import (
	EventListRead,
	EventStateUpdate,
	LifecycleEventRead,
	ScheduleRead,
	ScheduleRequest,
	StageListRead,
)
from cropplan.services.crop_service import CropService
from cropplan.services.event_service import EventService
from cropplan.services.lifecycle import STAGES, LifecycleScheduler

router = APIRouter(prefix="/events", tags=["events"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected lifecycle service failure",
	)


def _to_event_read(event: Any) -> LifecycleEventRead:
	return LifecycleEventRead(
		id=event.id,
		feature_type=event.feature_type,
		module_action=event.module_action,
		event_date=event.date,
		state=event.state,
		meta_data=event.meta_data,
		relation_ids=event.relation_ids,
		created_at=event.created_at,
		updated_at=event.updated_at,
	)


def _event_service(request: Request, db: AsyncSession) -> EventService:
	redis_client = None
	if get_settings().event_publish_enabled:
		redis_client = getattr(request.app.state, "redis", None)
	return EventService(db, redis_client)


@router.post("/schedule", response_model=ScheduleRead)
async def schedule_lifecycle(
	payload: ScheduleRequest,
	request: Request,
	db: AsyncSession = Depends(get_db),
) -> ScheduleRead:
	"""Expand a crop recipe into dated events for a field, optionally storing them."""
	scheduler = LifecycleScheduler(CropService(db), _event_service(request, db))
	args = (payload.crop_id, payload.recipe_id, payload.field_id, payload.baseline_date, payload.selected_stage)
	try:
		if payload.persist:
			events, rows = await scheduler.schedule_and_persist(*args)
		else:
			events, rows = await scheduler.schedule_events(*args), []
	except Exception as exc:
		raise _map_error(exc) from exc
	return ScheduleRead(
		crop_id=str(payload.crop_id),
		recipe_id=str(payload.recipe_id),
		field_id=str(payload.field_id),
		persisted=payload.persist,
		events=events,
		event_ids=[row.id for row in rows],
	)


@router.get("/stages", response_model=StageListRead)
async def list_stages() -> StageListRead:
	return StageListRead(stages=[stage.value for stage in STAGES])


@router.get("", response_model=EventListRead)
async def list_events(
	field_id: str | None = Query(default=None),
	crop_id: str | None = Query(default=None),
	db: AsyncSession = Depends(get_db),
) -> EventListRead:
	service = EventService(db)
	try:
		events = await service.list_events(field_id=field_id, crop_id=crop_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return EventListRead(items=[_to_event_read(event) for event in events])


@router.get("/{event_id}", response_model=LifecycleEventRead)
async def get_event(event_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> LifecycleEventRead:
	service = EventService(db)
	try:
		event = await service.get_event(event_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_event_read(event)


@router.patch("/{event_id}/state", response_model=LifecycleEventRead)
async def update_event_state(
	event_id: uuid.UUID,
	payload: EventStateUpdate,
	db: AsyncSession = Depends(get_db),
) -> LifecycleEventRead:
	service = EventService(db)
	try:
		event = await service.update_state(event_id, payload.state)
	except Exception as exc:
		raise _map_error(exc) from exc
	return _to_event_read(event)
