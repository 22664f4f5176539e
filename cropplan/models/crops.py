"""Crop ORM model: a crop and its ordered list of growing recipes.

``recipes`` (JSONB) holds the Recipe documents verbatim, in insertion order:

    [
        {
            "id": "wheat-dryland",
            "_id": "6650c1...",
            "recipeInfo": {"description": "...", "expectedYield": {...}},
            "recipeRules": {
                "temporalConstraints": {...},
                "environmentalConditions": {
                    "soilPH": {"min": 6.0, "max": 7.5, "optimal": 6.5},
                    "temperature": {...},
                    "humidity": {...},
                    "rainfall": {...},
                    "soilType": {"allowed": [...], "preferred": [...], "excluded": [...]}
                },
                "historicalConstraints": {...}
            },
            "recipeWorkflows": [
                {"stepName": "Seeding", "sequence": 1, "duration": 5,
                 "equipmentRequired": [{"name": "Seed drill", "quantity": 1, "optional": false}]},
                ...
            ]
        },
        ...
    ]
"""

from __future__ import annotations

from sqlalchemy import Float, String, text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from cropplan.models.base import Base, RecordMixin


class Crop(Base, RecordMixin):
    """A crop with its growing recipes."""

    __tablename__ = "crops"

    name: Mapped[str] = mapped_column(String(255), nullable=False, index=True)
    icon: Mapped[str] = mapped_column(
        String(64), nullable=False, default="", server_default=text("''")
    )
    actual_yield: Mapped[float | None] = mapped_column(Float, nullable=True)
    recipes: Mapped[list] = mapped_column(
        JSONB, nullable=False, default=list, server_default=text("'[]'::jsonb")
    )

    def __repr__(self) -> str:
        n = len(self.recipes) if self.recipes else 0
        return f"<Crop id={self.id} name={self.name!r} recipes={n}>"
