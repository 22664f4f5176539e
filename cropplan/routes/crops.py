"""Crop and recipe routes."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.ext.asyncio import AsyncSession

from cropplan.database import get_db
from cropplan.schemas.crop import CropCreate, CropListRead, CropRead, CropUpdate, Recipe
from cropplan.services.crop_service import CropService

router = APIRouter(prefix="/crops", tags=["crops"])


def _map_error(exc: Exception) -> HTTPException:
	if isinstance(exc, LookupError):
		return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc))
	if isinstance(exc, ValueError):
		return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))
	return HTTPException(
		status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
		detail="Unexpected crop service failure",
	)


@router.post("", response_model=CropRead, status_code=status.HTTP_201_CREATED)
async def create_crop(payload: CropCreate, db: AsyncSession = Depends(get_db)) -> CropRead:
	service = CropService(db)
	try:
		crop = await service.create_crop(payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return CropRead.model_validate(crop)


@router.get("", response_model=CropListRead)
async def list_crops(
	name: str | None = Query(default=None, max_length=255),
	db: AsyncSession = Depends(get_db),
) -> CropListRead:
	service = CropService(db)
	try:
		crops = await service.list_crops(name)
	except Exception as exc:
		raise _map_error(exc) from exc
	return CropListRead(items=[CropRead.model_validate(crop) for crop in crops])


@router.get("/{crop_id}", response_model=CropRead)
async def get_crop(crop_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> CropRead:
	service = CropService(db)
	try:
		crop = await service.get_crop(crop_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return CropRead.model_validate(crop)


@router.patch("/{crop_id}", response_model=CropRead)
async def update_crop(
	crop_id: uuid.UUID,
	payload: CropUpdate,
	db: AsyncSession = Depends(get_db),
) -> CropRead:
	service = CropService(db)
	try:
		crop = await service.update_crop(crop_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return CropRead.model_validate(crop)


@router.delete("/{crop_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_crop(crop_id: uuid.UUID, db: AsyncSession = Depends(get_db)) -> Response:
	service = CropService(db)
	try:
		await service.delete_crop(crop_id)
	except Exception as exc:
		raise _map_error(exc) from exc
	return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/{crop_id}/recipes", response_model=CropRead, status_code=status.HTTP_201_CREATED)
async def add_recipe(
	crop_id: uuid.UUID,
	payload: Recipe,
	db: AsyncSession = Depends(get_db),
) -> CropRead:
	service = CropService(db)
	try:
		crop = await service.add_recipe(crop_id, payload)
	except Exception as exc:
		raise _map_error(exc) from exc
	return CropRead.model_validate(crop)
