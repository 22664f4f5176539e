"""Enumerated types shared by the ORM, the wire schemas and the engines.

Each StrEnum persisted in a column maps 1:1 to a PostgreSQL
CREATE TYPE ... AS ENUM.  ``CropStage`` is the single source of truth for
the canonical growth-stage order used by the lifecycle scheduler and the
stage-selection endpoint.
"""

from enum import StrEnum

# ── Agronomy ────────────────────────────────────────────────────────────────


class CropStage(StrEnum):
    """Canonical crop stages, declared in lifecycle order."""

    Land_Prep = "Land_Prep"
    Seeding = "Seeding"
    Irrigation = "Irrigation"
    Disease = "Disease"
    Fertilizer = "Fertilizer"
    Harvesting = "Harvesting"

    @property
    def position(self) -> int:
        return list(CropStage).index(self)


# ── Event stream ────────────────────────────────────────────────────────────


class EventStateEnum(StrEnum):
    """Completion state of a lifecycle event."""

    Pending = "Pending"
    Completed = "Completed"


class ModuleActionEnum(StrEnum):
    """Origin tag of an event in the stream."""

    Watering = "Watering"
    Pesticide = "Pesticide"
    Fungisite = "Fungisite"
    Weedisite = "Weedisite"
    API_Fetch = "API_Fetch"
    RecipeWorkflow = "RecipeWorkflow"
