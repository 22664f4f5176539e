"""initial_schema

Revision ID: 3c7e91a0b5d2
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates farms, fields, crops and lifecycle_events plus the two event enum
types.  Enables the uuid-ossp and postgis extensions if they are missing.
"""

from collections.abc import Sequence

import geoalchemy2
import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "3c7e91a0b5d2"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

ENUM_MODULE_ACTION = postgresql.ENUM(
    "Watering",
    "Pesticide",
    "Fungisite",
    "Weedisite",
    "API_Fetch",
    "RecipeWorkflow",
    name="module_action",
    create_type=False,
)
ENUM_EVENT_STATE = postgresql.ENUM(
    "Pending", "Completed", name="event_state", create_type=False
)


def _audit_columns() -> list[sa.Column]:
    return [
        sa.Column(
            "id",
            postgresql.UUID(as_uuid=True),
            server_default=sa.text("uuid_generate_v4()"),
            nullable=False,
        ),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("now()"),
            nullable=False,
        ),
    ]


def upgrade() -> None:
    op.execute('CREATE EXTENSION IF NOT EXISTS "uuid-ossp"')
    op.execute("CREATE EXTENSION IF NOT EXISTS postgis")

    ENUM_MODULE_ACTION.create(op.get_bind(), checkfirst=True)
    ENUM_EVENT_STATE.create(op.get_bind(), checkfirst=True)

    # farms
    op.create_table(
        "farms",
        *_audit_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column(
            "boundary",
            geoalchemy2.types.Geography(
                geometry_type="POLYGON", srid=4326, from_text="ST_GeogFromText"
            ),
            nullable=True,
        ),
        sa.Column("attributes", postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_farms"),
    )

    # crops
    op.create_table(
        "crops",
        *_audit_columns(),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("icon", sa.String(64), server_default=sa.text("''"), nullable=False),
        sa.Column("actual_yield", sa.Float(), nullable=True),
        sa.Column(
            "recipes",
            postgresql.JSONB(),
            server_default=sa.text("'[]'::jsonb"),
            nullable=False,
        ),
        sa.PrimaryKeyConstraint("id", name="pk_crops"),
    )
    op.create_index("ix_crops_name", "crops", ["name"])

    # fields
    op.create_table(
        "fields",
        *_audit_columns(),
        sa.Column("farm_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column(
            "boundary",
            geoalchemy2.types.Geography(
                geometry_type="GEOMETRY", srid=4326, from_text="ST_GeogFromText"
            ),
            nullable=True,
        ),
        sa.Column("area_acres", sa.Float(), nullable=False),
        sa.Column("area", sa.String(64), nullable=False),
        sa.Column("crop_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("crop_stage", sa.String(64), nullable=True),
        sa.Column("soil_type", sa.String(100), nullable=True),
        sa.Column("soil_ph", sa.String(64), nullable=True),
        sa.Column("weather", postgresql.JSONB(), nullable=True),
        sa.Column("attributes", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(
            ["farm_id"], ["farms.id"], name="fk_fields_farm_id_farms", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["crop_id"], ["crops.id"], name="fk_fields_crop_id_crops", ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id", name="pk_fields"),
    )
    op.create_index("ix_fields_farm_position", "fields", ["farm_id", "position"])

    # lifecycle_events
    op.create_table(
        "lifecycle_events",
        *_audit_columns(),
        sa.Column("feature_type", sa.String(255), nullable=False),
        sa.Column("module_action", ENUM_MODULE_ACTION, nullable=False),
        sa.Column("date", sa.DateTime(timezone=True), nullable=False),
        sa.Column(
            "state",
            ENUM_EVENT_STATE,
            server_default=sa.text("'Pending'"),
            nullable=False,
        ),
        sa.Column("meta_data", postgresql.JSONB(), nullable=True),
        sa.Column("relation_ids", postgresql.JSONB(), nullable=True),
        sa.PrimaryKeyConstraint("id", name="pk_lifecycle_events"),
    )
    op.create_index("ix_lifecycle_events_date", "lifecycle_events", ["date"])
    op.create_index(
        "ix_lifecycle_events_relation_ids_gin",
        "lifecycle_events",
        ["relation_ids"],
        postgresql_using="gin",
    )


def downgrade() -> None:
    op.drop_table("lifecycle_events")
    op.drop_table("fields")
    op.drop_table("crops")
    op.drop_table("farms")

    ENUM_EVENT_STATE.drop(op.get_bind(), checkfirst=True)
    ENUM_MODULE_ACTION.drop(op.get_bind(), checkfirst=True)
