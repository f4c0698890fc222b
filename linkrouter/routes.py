"""FastAPI route definitions for the link routing service.

API Endpoint Overview
=====================
::
    GET  /health
    GET  /{link_id}    307 → destination for the visitor's country

Request Flow Diagram
====================
::
    ┌─────────────┐
    │ GET /abc123 │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ resolve()   │── LinkNotFoundError ──► 404
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ select_     │── no default ──► 500
    │ destination │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ 307 redirect│
    └──────┬──────┘
           ▼ (background task, after the response is sent)
    ┌─────────────┐
    │ dispatch()  │
    └─────────────┘

Key Behaviours
===============
- Visitor country and coordinates come from headers set by the edge proxy
  (names configurable in Settings). Unparseable coordinates count as absent.
- Click fan-out runs as a background task so it never delays the redirect,
  while still finishing inside the request's lifetime.
- Cache, queue and actor failures never change the response.
- Fixed paths are matched before ``/{link_id}``: ``health`` and ``metrics``
  (plus FastAPI's ``docs``, ``redoc`` and ``openapi.json``) can never be
  redirected, so the service that creates links must not hand out those ids.

Endpoints:
    /health:  Health check for monitoring.
    /{link_id}:  Redirect to the routed destination.
"""

from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from fastapi.responses import RedirectResponse
from sqlalchemy import text

from linkrouter.click_dispatcher import ClickEventDispatcher
from linkrouter.dependencies import (
    RequestContext,
    get_click_dispatcher,
    get_request_context,
    get_resolution_service,
)
from linkrouter.enums import HealthStatus
from linkrouter.errors import LinkNotFoundError
from linkrouter.route_service import LinkResolutionService, select_destination
from linkrouter.schemas import ClickEvent, HealthResponse

__all__ = ["router"]

router = APIRouter()

# Country codes edge proxies send when the visitor could not be located.
UNLOCATED_COUNTRY_CODES = frozenset({"XX", "T1"})


def _visitor_country(request: Request, header: str) -> Optional[str]:
    value = (request.headers.get(header) or "").strip()
    if not value or value in UNLOCATED_COUNTRY_CODES:
        return None
    return value


def _coordinate(request: Request, header: str) -> Optional[float]:
    value = request.headers.get(header)
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


@router.get("/health", response_model=HealthResponse, tags=["health"])
async def health_check(ctx: RequestContext = Depends(get_request_context)) -> HealthResponse:
    db_status = HealthStatus.HEALTHY
    cache_status = HealthStatus.HEALTHY

    try:
        await ctx.database.execute(text("SELECT 1"))
    except Exception as e:
        ctx.logger.error(f"Database health check failed: {e}")
        db_status = HealthStatus.UNHEALTHY

    try:
        await ctx.service_manager.cache_store.ping()
    except Exception as e:
        ctx.logger.error(f"Cache health check failed: {e}")
        cache_status = HealthStatus.UNHEALTHY

    status = (
        HealthStatus.HEALTHY
        if db_status is HealthStatus.HEALTHY and cache_status is HealthStatus.HEALTHY
        else HealthStatus.UNHEALTHY
    )
    return HealthResponse(status=status, database=db_status, cache=cache_status)


@router.get("/{link_id}", tags=["redirect"])
async def redirect_link(
    link_id: str,
    request: Request,
    background_tasks: BackgroundTasks,
    ctx: RequestContext = Depends(get_request_context),
    service: LinkResolutionService = Depends(get_resolution_service),
    dispatcher: ClickEventDispatcher = Depends(get_click_dispatcher),
) -> RedirectResponse:
    try:
        record = await service.resolve(link_id)
    except LinkNotFoundError as exc:
        ctx.logger.info(f"Redirect failed - link not found: {link_id}")
        raise HTTPException(status_code=404, detail="Link not found") from exc

    settings = ctx.settings
    country = _visitor_country(request, settings.COUNTRY_HEADER)
    destination = select_destination(record, country)
    if not destination:
        ctx.logger.error(f"Link {link_id} has no default destination")
        raise HTTPException(status_code=500, detail="Link has no usable destination")

    if record.account_id:
        event = ClickEvent(
            account_id=record.account_id,
            id=link_id,
            destination=destination,
            country=country,
            latitude=_coordinate(request, settings.LATITUDE_HEADER),
            longitude=_coordinate(request, settings.LONGITUDE_HEADER),
        )
        background_tasks.add_task(dispatcher.dispatch, event)
    else:
        ctx.logger.warning(f"Link {link_id} has no account; click not recorded")

    ctx.logger.debug(
        f"Redirect {link_id} -> {destination}",
        extra={"operation": "redirect", "link_id": link_id, "duration_ms": ctx.get_duration()},
    )
    return RedirectResponse(url=destination, status_code=307)
