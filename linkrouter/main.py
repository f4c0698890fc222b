"""FastAPI application entry point for the link routing service.

How to Use
===========
**Step 1 — Run with uvicorn**::
    uvicorn linkrouter.main:app --host 0.0.0.0 --port 8000

**Step 2 — Follow a link**::
    curl -i -H "cf-ipcountry: FR" http://localhost:8000/abc123

Key Behaviours
===============
- Database tables are created automatically on startup.
- The Kafka producer is started on startup; if Kafka is down the service still
  redirects and click queue sends are logged as failures.
- Prometheus metrics are exposed at /metrics.
"""

__all__ = ["app"]

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from prometheus_fastapi_instrumentator import Instrumentator

from linkrouter.config import get_settings
from linkrouter.database import close_db, init_db
from linkrouter.dependencies import _service_manager
from linkrouter.kafka import close_kafka, init_kafka
from linkrouter.routes import router

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # Startup
    await init_db()
    await init_kafka()
    await _service_manager.initialize()
    yield
    # Shutdown
    await _service_manager.cleanup()
    await close_kafka()
    await close_db()


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    description="Country-aware short link routing",
    lifespan=lifespan,
)

Instrumentator(
    should_group_status_codes=True,
    should_ignore_untemplated=False,
    should_respect_env_var=False,
).instrument(app).expose(app)

app.include_router(router)
