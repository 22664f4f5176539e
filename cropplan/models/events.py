"""LifecycleEvent ORM model: the farm event stream.

Events scheduled from a recipe workflow carry ``module_action =
RecipeWorkflow``; other producers (watering, spraying, API fetches) share
the same table.  ``relation_ids`` links an event to its crop, field, recipe
and workflow step without foreign keys, since steps are not rows.
"""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import DateTime, Enum, Index, String
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cropplan.models.base import Base, RecordMixin
from cropplan.models.enums import EventStateEnum, ModuleActionEnum


class LifecycleEvent(Base, RecordMixin):
    """A dated event on a field's timeline."""

    __tablename__ = "lifecycle_events"
    __table_args__ = (
        Index("ix_lifecycle_events_date", "date"),
        Index(
            "ix_lifecycle_events_relation_ids_gin",
            "relation_ids",
            postgresql_using="gin",
        ),
    )

    feature_type: Mapped[str] = mapped_column(String(255), nullable=False)
    module_action: Mapped[ModuleActionEnum] = mapped_column(
        Enum(
            ModuleActionEnum,
            name="module_action",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
    )
    date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    state: Mapped[EventStateEnum] = mapped_column(
        Enum(
            EventStateEnum,
            name="event_state",
            create_constraint=False,
            native_enum=True,
        ),
        nullable=False,
        default=EventStateEnum.Pending,
        server_default=EventStateEnum.Pending.value,
    )
    meta_data: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    relation_ids: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    def __repr__(self) -> str:
        return (
            f"<LifecycleEvent id={self.id} type={self.feature_type!r} "
            f"date={self.date} state={self.state}>"
        )
