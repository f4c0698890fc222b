"""Dependency injection with a singleton service manager.

This module provides a centralized way to inject database, cache, queue and
actor dependencies into the routes, using a singleton for shared resources to
minimize per-request overhead.
"""

import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from linkrouter.actors import ActorNamespace, ClickTracker, ClickTrackerClient, build_click_tracker_namespace
from linkrouter.click_dispatcher import ClickEventDispatcher
from linkrouter.config import Settings, get_settings
from linkrouter.database import get_db
from linkrouter.kafka import KafkaClickQueue
from linkrouter.record_store import SqlRecordStore
from linkrouter.redis import RedisCacheStore, close_redis, get_redis, get_redis_read
from linkrouter.route_service import LinkResolutionService


# ============================================================================
# SINGLETON SERVICE MANAGER
# ============================================================================


class ServiceManager:
    """Singleton service manager for shared resources.

    Holds everything that outlives a request: settings, the logger, the Redis
    cache adapter, the Kafka queue adapter and the click tracker namespace.
    """

    _instance: Optional["ServiceManager"] = None
    _initialized: bool = False

    def __new__(cls) -> "ServiceManager":
        """Implement singleton pattern."""
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    async def initialize(self) -> None:
        """Initialize shared resources once at startup."""
        if not self._initialized:
            self.settings = get_settings()
            self.logger = self._setup_logger()
            self.cache_store = RedisCacheStore(await get_redis(), await get_redis_read())
            self.click_queue = KafkaClickQueue()
            self.click_trackers: ActorNamespace[ClickTracker] = build_click_tracker_namespace(self.settings)
            self._initialized = True

    def _setup_logger(self) -> logging.Logger:
        """Setup logger once."""
        logger = logging.getLogger("linkrouter")
        if not logger.handlers:
            handler = logging.StreamHandler()
            formatter = logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s")
            handler.setFormatter(formatter)
            logger.addHandler(handler)
            logger.setLevel(self.settings.LOG_LEVEL)
        return logger

    async def cleanup(self) -> None:
        """Cleanup shared resources at shutdown."""
        await close_redis()
        self._initialized = False


# Global singleton instance
_service_manager = ServiceManager()


# ============================================================================
# LIGHTWEIGHT REQUEST CONTEXT
# ============================================================================


@dataclass
class RequestContext:
    """Per-request context with tracking and shared resource access.

    Attributes:
        database: Async database session (only per-request resource)
        service_manager: Singleton service manager with shared resources
        request_id: Unique identifier for this request
        user_agent: Client user agent string
        client_ip: Client IP address
        start_time: Request start timestamp
    """

    database: AsyncSession
    service_manager: ServiceManager
    request_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    user_agent: Optional[str] = None
    client_ip: Optional[str] = None
    start_time: float = field(default_factory=lambda: time.time())

    @property
    def settings(self) -> Settings:
        return self.service_manager.settings

    @property
    def logger(self) -> logging.LoggerAdapter:
        """Shared logger with the request context attached."""
        return logging.LoggerAdapter(
            self.service_manager.logger,
            {
                "request_id": self.request_id,
                "client_ip": self.client_ip,
                "user_agent": self.user_agent,
            },
        )

    def get_duration(self) -> float:
        """Get request duration in milliseconds."""
        return (time.time() - self.start_time) * 1000


# ============================================================================
# DEPENDENCY FUNCTIONS
# ============================================================================


async def get_service_manager() -> ServiceManager:
    if not _service_manager._initialized:
        await _service_manager.initialize()
    return _service_manager


async def get_request_context(
    request: Request,
    db: AsyncSession = Depends(get_db),
    manager: ServiceManager = Depends(get_service_manager),
) -> RequestContext:
    return RequestContext(
        database=db,
        service_manager=manager,
        user_agent=request.headers.get("user-agent"),
        client_ip=request.client.host if request.client else None,
    )


def get_resolution_service(ctx: RequestContext = Depends(get_request_context)) -> LinkResolutionService:
    return LinkResolutionService(
        ctx.service_manager.cache_store,
        SqlRecordStore(ctx.database),
        ctx.settings,
        ctx.logger,
    )


def get_click_dispatcher(ctx: RequestContext = Depends(get_request_context)) -> ClickEventDispatcher:
    return ClickEventDispatcher(
        ctx.service_manager.click_queue,
        ClickTrackerClient(ctx.service_manager.click_trackers),
        ctx.logger,
    )
