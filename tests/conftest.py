"""Shared pytest fixtures: async test client, fake DB session, fake Redis."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager
from typing import Any
from unittest.mock import AsyncMock, Mock

import pytest
from httpx import ASGITransport, AsyncClient

from cropplan.database import get_db
from cropplan.main import app


class FakeAsyncSession:
	def __init__(self) -> None:
		self.commit = AsyncMock()
		self.rollback = AsyncMock()
		self.close = AsyncMock()
		self.execute = AsyncMock()
		self.flush = AsyncMock()
		self.refresh = AsyncMock()
		self.add = Mock()
		self.delete = AsyncMock()


class FakeRedis:
	def __init__(self) -> None:
		self.publish = AsyncMock()
		self.ping = AsyncMock(return_value=True)


@pytest.fixture
def fake_db_session() -> FakeAsyncSession:
	"""A lightweight async-session stub for dependency overrides in API tests."""
	return FakeAsyncSession()


@pytest.fixture
def fake_redis() -> FakeRedis:
	return FakeRedis()


@pytest.fixture
def wheat_recipe() -> dict[str, Any]:
	"""A recipe document in its stored camelCase shape."""
	return {
		"id": "wheat-dryland",
		"_id": "6650c1a2b3",
		"recipeInfo": {"description": "Dryland winter wheat"},
		"recipeRules": {
			"environmentalConditions": {
				"soilPH": {"min": 6.0, "max": 7.5, "optimal": 6.5},
				"soilType": {"preferred": ["Loam"], "allowed": ["Loam", "Silt-loam"], "excluded": ["Sandy"]},
			},
		},
		"recipeWorkflows": [
			{"stepName": "Seeding", "sequence": 1, "duration": 5},
			{"stepName": "Harvesting", "sequence": 2, "duration": 3},
		],
	}


@pytest.fixture
async def client(fake_db_session: FakeAsyncSession) -> AsyncGenerator[AsyncClient, None]:
	"""HTTPX async client with lifespan disabled and DB dependency mocked."""

	async def override_get_db() -> AsyncGenerator[Any, None]:
		yield fake_db_session

	app.dependency_overrides[get_db] = override_get_db
	original_lifespan = app.router.lifespan_context

	@asynccontextmanager
	async def noop_lifespan(_: Any) -> AsyncGenerator[None, None]:
		yield

	app.router.lifespan_context = noop_lifespan

	transport = ASGITransport(app=app)
	async with AsyncClient(transport=transport, base_url="http://test") as test_client:
		yield test_client

	app.router.lifespan_context = original_lifespan
	app.dependency_overrides.clear()
