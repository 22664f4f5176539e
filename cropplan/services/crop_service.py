"""Crop and recipe CRUD service."""

from __future__ import annotations

import uuid
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.models.crops import Crop
from cropplan.schemas.crop import CropCreate, CropUpdate, Recipe
from cropplan.utils.payload import prune_empty


class CropService:
	"""Service for crops and their ordered recipe documents."""

	def __init__(self, db: AsyncSession):
		self.db = db

	async def create_crop(self, payload: CropCreate) -> Crop:
		documents: list[dict[str, Any]] = []
		for recipe in payload.recipes:
			documents.append(self._recipe_document(recipe, documents))
		crop = Crop(
			name=payload.name.strip(),
			icon=payload.icon,
			actual_yield=payload.actual_yield,
			recipes=documents,
		)
		self.db.add(crop)
		await self.db.flush()
		await self.db.refresh(crop)
		return crop

	async def list_crops(self, name: str | None = None) -> list[Crop]:
		stmt = select(Crop).order_by(Crop.created_at.desc())
		if name:
			stmt = stmt.where(Crop.name.ilike(f"%{name}%"))
		rows = await self.db.execute(stmt)
		return list(rows.scalars().all())

	async def get_crop(self, crop_id: uuid.UUID) -> Crop:
		row = await self.db.execute(select(Crop).where(Crop.id == crop_id))
		crop = row.scalar_one_or_none()
		if crop is None:
			raise LookupError(f"Crop {crop_id} not found")
		return crop

	async def find_crop_by_id(self, crop_id: str) -> Crop | None:
		try:
			key = uuid.UUID(str(crop_id))
		except ValueError:
			return None
		row = await self.db.execute(select(Crop).where(Crop.id == key))
		return row.scalar_one_or_none()

	async def update_crop(self, crop_id: uuid.UUID, payload: CropUpdate) -> Crop:
		crop = await self.get_crop(crop_id)
		for key, value in payload.model_dump(exclude_unset=True).items():
			setattr(crop, key, value.strip() if key == "name" else value)
		await self.db.flush()
		await self.db.refresh(crop)
		return crop

	async def delete_crop(self, crop_id: uuid.UUID) -> None:
		crop = await self.get_crop(crop_id)
		await self.db.delete(crop)
		await self.db.flush()

	async def add_recipe(self, crop_id: uuid.UUID, recipe: Recipe) -> Crop:
		crop = await self.get_crop(crop_id)
		existing = list(crop.recipes or [])
		# JSONB columns only track reassignment, never in-place mutation.
		crop.recipes = [*existing, self._recipe_document(recipe, existing)]
		await self.db.flush()
		await self.db.refresh(crop)
		return crop

	@staticmethod
	def _recipe_document(recipe: Recipe, existing: list[dict[str, Any]]) -> dict[str, Any]:
		taken = {doc.get("id") for doc in existing if doc.get("id")}
		if recipe.id and recipe.id in taken:
			raise ValueError(f"Recipe id {recipe.id!r} already exists for this crop")

		document = prune_empty(recipe.model_dump(mode="json", by_alias=True))
		document.setdefault("_id", uuid.uuid4().hex)
		document.setdefault("recipeWorkflows", [])
		return document
