"""ORM model registry; importing this package registers every table on ``Base.metadata``.

Alembic ``env.py`` imports ``Base`` from here (not from ``base.py``) so that
autogenerate sees all tables.
"""

from cropplan.models.base import Base, RecordMixin
from cropplan.models.crops import Crop
from cropplan.models.enums import CropStage, EventStateEnum, ModuleActionEnum
from cropplan.models.events import LifecycleEvent
from cropplan.models.farm import Farm, Field

__all__ = [
    "Base",
    "Crop",
    "CropStage",
    "EventStateEnum",
    "Farm",
    "Field",
    "LifecycleEvent",
    "ModuleActionEnum",
    "RecordMixin",
]
