"""Field detail, agronomy updates and recipe ranking routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.database import get_db
from cropplan.routes.farms import to_field_read
from cropplan.schemas.crop import RankedRecipe, RecipeRankingRead
from cropplan.schemas.farm import FieldRead, FieldUpdate
from cropplan.services.farm_service import FarmService

router = APIRouter(prefix="/fields", tags=["fields"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected field service failure",
	)


@router.get("/{field_id}", response_model=FieldRead)
async def get_field(field_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> FieldRead:
	service = FarmService(db)
	try:
		record = await service.get_field(field_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return to_field_read(record)


@router.patch("/{field_id}", response_model=FieldRead)
async def update_field(
	field_id: uuid.UUID,
	payload: FieldUpdate,
	db: AsyncSession = Depends(get_db),
) -> FieldRead:
	service = FarmService(db)
	try:
		record = await service.update_field(field_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return to_field_read(record)


@router.get("/{field_id}/recipes", response_model=RecipeRankingRead)
async def rank_recipes(
	field_id: uuid.UUID,
	crop_id: uuid.UUID = Query(...),
	db: AsyncSession = Depends(get_db),
) -> RecipeRankingRead:
	"""Rank the crop's recipes by how well the field's conditions suit them."""
	service = FarmService(db)
	try:
		conditions, ranking = await service.rank_recipes_for_field(field_id, crop_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return RecipeRankingRead(
		field_id=field_id,
		crop_id=crop_id,
		items=[RankedRecipe(recipe=recipe, similarity_score=score) for recipe, score in ranking],
		field_conditions=conditions.as_dict(),
	)
