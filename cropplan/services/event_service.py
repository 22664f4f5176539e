"""Event-stream storage, queries and live notifications."""

from __future__ import annotations

import json
import logging
import uuid
from datetime import UTC, datetime, time

from redis.asyncio import Redis
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.models.enums import EventStateEnum
from cropplan.models.events import LifecycleEvent
from cropplan.schemas.events import LifecycleEventPayload
from cropplan.utils.payload import prune_empty, to_jsonable

_logger = logging.getLogger("cropplan.events")


class EventService:
	"""Single-event writes plus timeline reads for fields and crops."""

	def __init__(self, db: AsyncSession, redis_client: Redis | None = None):
		self.db = db
		self.redis_client = redis_client

	async def append_event(self, event: LifecycleEventPayload) -> LifecycleEvent:
		relation_ids = prune_empty(event.relation_ids.model_dump(by_alias=True))
		row = LifecycleEvent(
			feature_type=event.feature_type,
			module_action=event.module_action,
			date=datetime.combine(event.event_date, time.min, tzinfo=UTC),
			state=event.state,
			meta_data=to_jsonable(event.meta_data) or None,
			relation_ids=relation_ids or None,
		)
		self.db.add(row)
		await self.db.flush()
		await self.db.refresh(row)
		await self._publish_event(row)
		return row

	async def list_events(
		self,
		field_id: str | None = None,
		crop_id: str | None = None,
	) -> list[LifecycleEvent]:
		stmt = select(LifecycleEvent).order_by(LifecycleEvent.date.asc(), LifecycleEvent.created_at.asc())
		if field_id:
			stmt = stmt.where(LifecycleEvent.relation_ids["Field_id"].astext == str(field_id))
		if crop_id:
			stmt = stmt.where(LifecycleEvent.relation_ids["Crop_id"].astext == str(crop_id))
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_event(self, event_id: uuid.UUID) -> LifecycleEvent:
		row = await self.db.execute(select(LifecycleEvent).where(LifecycleEvent.id == event_id))
		event = row.scalar_one_or_none()
		if event is None:
			raise LookupError(f"Event {event_id} not found")
		return event

	async def update_state(self, event_id: uuid.UUID, state: EventStateEnum) -> LifecycleEvent:
		event = await self.get_event(event_id)
		event.state = state
		await self.db.flush()
		await self.db.refresh(event)
		return event

	async def _publish_event(self, row: LifecycleEvent) -> None:
		if self.redis_client is None:
			return
		field_id = (row.relation_ids or {}).get("Field_id")
		if not field_id:
			return
		payload = {
			"event_type": "lifecycle_event",
			"event_id": str(row.id),
			"feature_type": row.feature_type,
			"module_action": row.module_action.value,
			"state": row.state.value,
			"date": row.date.isoformat(),
			"published_at": datetime.now(UTC).isoformat(),
		}
		await self.redis_client.publish(f"field:{field_id}:events", json.dumps(payload))
		_logger.debug("event_published", extra={"event_id": str(row.id), "field_id": field_id})
