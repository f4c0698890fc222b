"""Click fan-out: queue publish, click tracker update, evaluation trigger.

Flow Diagram — dispatch()
=========================
::
    ┌─────────────┐
    │ ClickEvent  │  (after the 307 has been sent)
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Attach UTC  │
    │ timestamp   │
    └──────┬──────┘
           ├──────────────────────────┐   asyncio.gather
           ▼                          ▼
    ┌─────────────┐          ┌─────────────────┐
    │ Queue send  │          │ lat+lon+country?│── no ──► skip
    │ LINK_CLICK  │          └────────┬────────┘
    └──────┬──────┘                   ▼ yes
           │                 ┌─────────────────┐
           │                 │ ClickTracker    │
           │                 │ [account_id]    │
           │                 │ .add_click()    │
           │                 └────────┬────────┘
           ▼                          ▼
       failure → log + metric, never raised, never retried here

Flow Diagram — schedule_evaluation()
====================================
::
    LinkClickMessage (queue consumer)
           │
           ▼
    EvaluationScheduler["<link id>:<destination>"]
           .collect_link_click(account, link, destination, country or "UNKNOWN")

Key Behaviours
===============
- The two dispatch steps share nothing: a queue failure never prevents the
  tracker call and the other way round.
- Partial geolocation is not recorded.
- The evaluation trigger is safe under duplicate delivery because the
  scheduler actor starts its workflow once per key.
"""

import asyncio
import datetime
import logging
from collections.abc import Awaitable
from typing import Optional, Protocol

from prometheus_client import Counter

from linkrouter.actors import ClickTrackerClient, EvaluationSchedulerClient
from linkrouter.enums import DispatchStep, EvaluationState
from linkrouter.schemas import UNKNOWN_COUNTRY, ClickEvent, LinkClickMessage

__all__ = ["ClickQueue", "ClickEventDispatcher", "schedule_evaluation"]

DISPATCH_ATTEMPTS_TOTAL = Counter(
    "linkrouter_dispatch_attempts_total",
    "Click fan-out steps attempted",
    ["step"],
)
DISPATCH_FAILURES_TOTAL = Counter(
    "linkrouter_dispatch_failures_total",
    "Click fan-out steps that failed and were dropped",
    ["step"],
)
GEOLOCATION_SKIPPED_TOTAL = Counter(
    "linkrouter_geolocation_skipped_total",
    "Clicks not sent to the click tracker because geolocation was incomplete",
)
EVALUATION_TRIGGERS_TOTAL = Counter(
    "linkrouter_evaluation_triggers_total",
    "Clicks forwarded to evaluation scheduler actors",
)


class ClickQueue(Protocol):
    async def send(self, message: LinkClickMessage) -> None: ...


class ClickEventDispatcher:
    def __init__(
        self,
        queue: ClickQueue,
        click_tracker: ClickTrackerClient,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
    ):
        self._queue = queue
        self._click_tracker = click_tracker
        self._logger = logger or logging.getLogger("linkrouter")

    async def dispatch(self, event: ClickEvent) -> None:
        """Fan ``event`` out to every sink. Never raises."""
        if event.timestamp is None:
            event = event.model_copy(update={"timestamp": datetime.datetime.now(datetime.timezone.utc)})

        steps = [self._attempt(DispatchStep.QUEUE, event, self._enqueue(event))]
        if event.has_geolocation:
            steps.append(self._attempt(DispatchStep.CLICK_TRACKER, event, self._track(event)))
        else:
            GEOLOCATION_SKIPPED_TOTAL.inc()
            self._logger.debug(f"Incomplete geolocation for click on {event.id}; click tracker skipped")

        await asyncio.gather(*steps)

    async def _enqueue(self, event: ClickEvent) -> None:
        await self._queue.send(LinkClickMessage(data=event))

    async def _track(self, event: ClickEvent) -> None:
        assert event.latitude is not None and event.longitude is not None and event.country
        await self._click_tracker.add_click(
            event.account_id,
            event.latitude,
            event.longitude,
            event.country,
            event.timestamp_ms,
        )

    async def _attempt(self, step: DispatchStep, event: ClickEvent, operation: Awaitable[None]) -> None:
        DISPATCH_ATTEMPTS_TOTAL.labels(step=step).inc()
        try:
            await operation
        except Exception as exc:
            DISPATCH_FAILURES_TOTAL.labels(step=step).inc()
            self._logger.error(
                f"Click dispatch step '{step}' failed for {event.id}: {exc}",
                extra={"operation": "dispatch", "step": str(step), "link_id": event.id},
            )


async def schedule_evaluation(scheduler: EvaluationSchedulerClient, event: ClickEvent) -> EvaluationState:
    """Notify the evaluation scheduler for the event's (link, destination) pair."""
    EVALUATION_TRIGGERS_TOTAL.inc()
    return await scheduler.collect_link_click(
        event.evaluation_key,
        event.account_id,
        event.id,
        event.destination,
        event.country or UNKNOWN_COUNTRY,
    )
