"""Farm and Field ORM models: boundaries and the fields partitioned from them.

A farm owns exactly one boundary polygon.  A field owns exactly one polygon
plus its derived area; its identity (name, crop assignment, attributes)
lives in plain columns so it survives re-partitioning of the farm boundary.
"""

from __future__ import annotations

import uuid
from typing import Any

from geoalchemy2 import Geography
from sqlalchemy import Float, ForeignKey, Index, Integer, String
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from cropplan.models.base import Base, RecordMixin

# ═══════════════════════════════════════════════════════════════════════════
# Farm
# ═══════════════════════════════════════════════════════════════════════════


class Farm(Base, RecordMixin):
    """A physical farm: the boundary that fields are carved out of.

    ``boundary`` is nullable: a farm record may exist before the boundary
    has been drawn.
    """

    __tablename__ = "farms"

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    boundary: Mapped[Any] = mapped_column(
        Geography(geometry_type="POLYGON", srid=4326),
        nullable=True,
    )
    attributes: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # ── Relationships ────────────────────────────────────────────────────
    fields: Mapped[list[Field]] = relationship(
        back_populates="farm",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="Field.position",
    )

    def __repr__(self) -> str:
        return f"<Farm id={self.id} name={self.name!r}>"


# ═══════════════════════════════════════════════════════════════════════════
# Field
# ═══════════════════════════════════════════════════════════════════════════


class Field(Base, RecordMixin):
    """A field polygon inside a farm, with its agronomic snapshot.

    ``position`` is the field's slot in the most recent partition; it is
    what re-partitioning uses to hand a new polygon to an existing field.
    ``boundary`` is a generic geography because a grid cell clipped by a
    concave farm boundary can come out as a MultiPolygon.
    """

    __tablename__ = "fields"
    __table_args__ = (Index("ix_fields_farm_position", "farm_id", "position"),)

    farm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("farms.id", ondelete="CASCADE"),
        nullable=False,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    position: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    boundary: Mapped[Any] = mapped_column(
        Geography(geometry_type="GEOMETRY", srid=4326),
        nullable=True,
    )
    area_acres: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    area: Mapped[str] = mapped_column(String(64), nullable=False, default="0 acres")
    crop_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("crops.id", ondelete="SET NULL"),
        nullable=True,
    )
    crop_stage: Mapped[str | None] = mapped_column(String(64), nullable=True)
    soil_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    soil_ph: Mapped[str | None] = mapped_column(String(64), nullable=True)
    weather: Mapped[dict | None] = mapped_column(JSONB, nullable=True)
    attributes: Mapped[dict | None] = mapped_column(JSONB, nullable=True)

    # ── Relationships ────────────────────────────────────────────────────
    farm: Mapped[Farm] = relationship(back_populates="fields")

    def __repr__(self) -> str:
        return (
            f"<Field id={self.id} name={self.name!r} farm={self.farm_id} "
            f"position={self.position}>"
        )
