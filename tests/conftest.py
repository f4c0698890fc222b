"""Shared pytest fixtures: in-memory stores, fake queue, and an API client.

Nothing here talks to a live Redis, PostgreSQL or Kafka; the HTTP client runs
the FastAPI app in-process with its dependencies overridden.
"""

import logging
from collections.abc import AsyncGenerator
from types import SimpleNamespace
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from linkrouter.actors import ActorNamespace, ClickTracker, ClickTrackerClient, build_click_tracker_namespace
from linkrouter.click_dispatcher import ClickEventDispatcher
from linkrouter.config import Settings
from linkrouter.database import get_db
from linkrouter.dependencies import get_click_dispatcher, get_resolution_service, get_service_manager
from linkrouter.errors import TransientStoreError
from linkrouter.main import app
from linkrouter.route_service import LinkResolutionService
from linkrouter.schemas import LinkClickMessage, LinkRecord


class InMemoryCacheStore:
    """Dict-backed CacheStore that records every call."""

    def __init__(self) -> None:
        self.entries: dict[str, Any] = {}
        self.gets: list[str] = []
        self.puts: list[tuple[str, Any, int]] = []
        self.fail_reads = False
        self.fail_writes = False

    async def get(self, key: str) -> Any | None:
        self.gets.append(key)
        if self.fail_reads:
            raise TransientStoreError(f"GET {key} failed: connection refused")
        return self.entries.get(key)

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        self.puts.append((key, value, ttl_seconds))
        if self.fail_writes:
            raise TransientStoreError(f"SET {key} failed: connection refused")
        self.entries[key] = value

    async def ping(self) -> bool:
        return True


class InMemoryRecordStore:
    def __init__(self, records: list[LinkRecord]) -> None:
        self.records = {record.id: record for record in records}
        self.lookups: list[str] = []

    async def get(self, link_id: str) -> LinkRecord | None:
        self.lookups.append(link_id)
        return self.records.get(link_id)


class RecordingQueue:
    def __init__(self) -> None:
        self.sent: list[LinkClickMessage] = []
        self.error: Exception | None = None

    async def send(self, message: LinkClickMessage) -> None:
        if self.error is not None:
            raise self.error
        self.sent.append(message)


@pytest.fixture
def settings() -> Settings:
    return Settings()


@pytest.fixture
def mock_logger() -> MagicMock:
    return MagicMock()


@pytest.fixture
def sample_record() -> LinkRecord:
    return LinkRecord(
        id="abc123",
        account_id="acct-1",
        destinations={"default": "https://example.com", "FR": "https://example.fr"},
    )


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def record_store(sample_record: LinkRecord) -> InMemoryRecordStore:
    return InMemoryRecordStore([sample_record])


@pytest.fixture
def queue() -> RecordingQueue:
    return RecordingQueue()


@pytest.fixture
def click_trackers(settings: Settings) -> ActorNamespace[ClickTracker]:
    return build_click_tracker_namespace(settings)


@pytest.fixture
def resolution_service(cache_store, record_store, settings, mock_logger) -> LinkResolutionService:
    return LinkResolutionService(cache_store, record_store, settings, mock_logger)


@pytest.fixture
def dispatcher(queue, click_trackers, mock_logger) -> ClickEventDispatcher:
    return ClickEventDispatcher(queue, ClickTrackerClient(click_trackers), mock_logger)


@pytest_asyncio.fixture
async def client(settings, cache_store, resolution_service, dispatcher) -> AsyncGenerator[AsyncClient, None]:
    session = AsyncMock(spec=AsyncSession)
    manager = SimpleNamespace(
        settings=settings,
        logger=logging.getLogger("linkrouter"),
        cache_store=cache_store,
    )

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield session

    async def override_get_service_manager() -> SimpleNamespace:
        return manager

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_service_manager] = override_get_service_manager
    app.dependency_overrides[get_resolution_service] = lambda: resolution_service
    app.dependency_overrides[get_click_dispatcher] = lambda: dispatcher

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
