"""In-process actor runtime plus the click tracker and evaluation scheduler actors.

An actor is a stateful object addressed by a stable key. The same key always
resolves to the same instance, and every call into an instance runs under that
instance's lock, so its state mutations are serialized without any cross-key
coordination.

Addressing
==========
::
    key ("acct-1" or "abc123:https://example.com")
           │
           ▼  sha256(namespace + ":" + key)
    ┌─────────────┐
    │   ActorId   │
    └──────┬──────┘
           ▼  int(hex[:8]) % shard_count
    ┌─────────────┐     miss      ┌─────────────┐
    │ shard dict  │──────────────►│ factory(id) │
    └──────┬──────┘               └─────────────┘
           ▼
    ┌─────────────┐
    │  ActorRef   │  invoke(fn) → fn(actor) under asyncio.Lock
    └─────────────┘

How to Use
===========
**Step 1 — Build a namespace**::
    trackers = build_click_tracker_namespace(settings)

**Step 2 — Talk to an instance through its client**::
    client = ClickTrackerClient(trackers)
    await client.add_click("acct-1", 48.85, 2.35, "FR", 1700000000000)

Key Behaviours
===============
- Instances are created lazily. Each namespace holds about
  ACTOR_MAX_INSTANCES of them; the least recently addressed idle instance is
  dropped first, so a long-idle evaluation scheduler may start one more
  evaluation if its link is clicked again.
- Nothing is atomic across two instances.
- The evaluation scheduler starts its workflow once per instance; a failed
  start leaves it ACCUMULATING so the next click retries.

Classes:
    ActorId, ActorRef, ActorNamespace:  The runtime.
    ClickTracker, EvaluationScheduler:  The actors.
    ClickTrackerClient, EvaluationSchedulerClient:  Key-based callers.
"""

import asyncio
import hashlib
import logging
from collections import OrderedDict, deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Generic, TypeVar

from linkrouter.config import Settings
from linkrouter.enums import EvaluationState
from linkrouter.schemas import EvaluationRequest

__all__ = [
    "ActorId",
    "ActorRef",
    "ActorNamespace",
    "TrackedClick",
    "ClickTracker",
    "EvaluationScheduler",
    "ClickTrackerClient",
    "EvaluationSchedulerClient",
    "WorkflowStarter",
    "build_click_tracker_namespace",
    "build_evaluation_scheduler_namespace",
]

A = TypeVar("A")
T = TypeVar("T")

WorkflowStarter = Callable[[EvaluationRequest], Awaitable[None]]

logger = logging.getLogger(__name__)


# ============================================================================
# RUNTIME
# ============================================================================


@dataclass(frozen=True)
class ActorId:
    namespace: str
    name: str
    hex: str


class ActorRef(Generic[A]):
    def __init__(self, actor_id: ActorId, actor: A):
        self.id = actor_id
        self._actor = actor
        self._lock = asyncio.Lock()

    @property
    def busy(self) -> bool:
        return self._lock.locked()

    async def invoke(self, call: Callable[[A], Awaitable[T]]) -> T:
        async with self._lock:
            return await call(self._actor)


class ActorNamespace(Generic[A]):
    """Sharded map of lazily created actor instances.

    With ``max_instances`` set, each shard keeps at most its share of that
    many instances and drops the least recently addressed idle one when full.
    An evicted key gets a fresh instance the next time it is addressed.
    """

    def __init__(
        self,
        name: str,
        factory: Callable[[ActorId], A],
        shard_count: int = 16,
        max_instances: int | None = None,
    ):
        assert name, "namespace name must be non-empty"
        assert shard_count > 0, f"shard_count must be positive, got {shard_count!r}"
        assert max_instances is None or max_instances > 0, f"max_instances must be positive, got {max_instances!r}"
        self.name = name
        self._factory = factory
        self._shards: list[OrderedDict[str, ActorRef[A]]] = [OrderedDict() for _ in range(shard_count)]
        self._shard_capacity = None if max_instances is None else max(1, -(-max_instances // shard_count))

    def id_from_name(self, key: str) -> ActorId:
        digest = hashlib.sha256(f"{self.name}:{key}".encode("utf-8")).hexdigest()
        return ActorId(namespace=self.name, name=key, hex=digest)

    def get(self, actor_id: ActorId) -> ActorRef[A]:
        if actor_id.namespace != self.name:
            raise ValueError(f"ActorId belongs to '{actor_id.namespace}', not '{self.name}'")

        shard = self._shards[int(actor_id.hex[:8], 16) % len(self._shards)]
        ref = shard.get(actor_id.hex)
        if ref is None:
            self._evict_idle(shard)
            ref = ActorRef(actor_id, self._factory(actor_id))
            shard[actor_id.hex] = ref
        else:
            shard.move_to_end(actor_id.hex)
        return ref

    def _evict_idle(self, shard: OrderedDict[str, ActorRef[A]]) -> None:
        if self._shard_capacity is None:
            return
        # Oldest first; instances with a call in flight are never dropped.
        for hex_id in list(shard):
            if len(shard) < self._shard_capacity:
                return
            if not shard[hex_id].busy:
                del shard[hex_id]
                logger.debug(f"Evicted idle actor {self.name}/{hex_id[:12]}")

    def __len__(self) -> int:
        return sum(len(shard) for shard in self._shards)


# ============================================================================
# ACTORS
# ============================================================================


@dataclass(frozen=True)
class TrackedClick:
    latitude: float
    longitude: float
    country: str
    timestamp_ms: int


class ClickTracker:
    """Per-account window of recent geotagged clicks."""

    def __init__(self, actor_id: ActorId, max_clicks: int = 1000):
        self.id = actor_id
        self.total_clicks = 0
        self._clicks: deque[TrackedClick] = deque(maxlen=max_clicks)

    async def add_click(self, latitude: float, longitude: float, country: str, timestamp_ms: int) -> None:
        self._clicks.append(TrackedClick(latitude, longitude, country, timestamp_ms))
        self.total_clicks += 1

    async def recent_clicks(self, limit: int | None = None) -> list[TrackedClick]:
        """Return tracked clicks, newest first."""
        clicks = list(reversed(self._clicks))
        return clicks if limit is None else clicks[:limit]


class EvaluationScheduler:
    """Starts one evaluation workflow per (link, destination) pair.

    NEW → ACCUMULATING on the first click, ACCUMULATING → SCHEDULED once the
    workflow starter accepted the request. Later clicks only bump the counter.
    """

    def __init__(self, actor_id: ActorId, start_workflow: WorkflowStarter):
        self.id = actor_id
        self.state = EvaluationState.NEW
        self.click_count = 0
        self.request: EvaluationRequest | None = None
        self._start_workflow = start_workflow

    async def collect_link_click(
        self, account_id: str, link_id: str, destination: str, country: str
    ) -> EvaluationState:
        self.click_count += 1
        if self.state is EvaluationState.NEW:
            self.request = EvaluationRequest(
                account_id=account_id,
                link_id=link_id,
                destination=destination,
                country=country,
            )
            self.state = EvaluationState.ACCUMULATING

        if self.state is EvaluationState.ACCUMULATING:
            assert self.request is not None
            await self._start_workflow(self.request)
            self.state = EvaluationState.SCHEDULED
            logger.info(f"Evaluation scheduled for {link_id} -> {destination}")

        return self.state


# ============================================================================
# CLIENTS
# ============================================================================


class ClickTrackerClient:
    def __init__(self, namespace: ActorNamespace[ClickTracker]):
        self._namespace = namespace

    def ref(self, account_id: str) -> ActorRef[ClickTracker]:
        return self._namespace.get(self._namespace.id_from_name(account_id))

    async def add_click(
        self, account_id: str, latitude: float, longitude: float, country: str, timestamp_ms: int
    ) -> None:
        await self.ref(account_id).invoke(
            lambda tracker: tracker.add_click(latitude, longitude, country, timestamp_ms)
        )


class EvaluationSchedulerClient:
    def __init__(self, namespace: ActorNamespace[EvaluationScheduler]):
        self._namespace = namespace

    def ref(self, key: str) -> ActorRef[EvaluationScheduler]:
        return self._namespace.get(self._namespace.id_from_name(key))

    async def collect_link_click(
        self, key: str, account_id: str, link_id: str, destination: str, country: str
    ) -> EvaluationState:
        return await self.ref(key).invoke(
            lambda scheduler: scheduler.collect_link_click(account_id, link_id, destination, country)
        )


def build_click_tracker_namespace(settings: Settings) -> ActorNamespace[ClickTracker]:
    return ActorNamespace(
        "click_tracker",
        lambda actor_id: ClickTracker(actor_id, max_clicks=settings.CLICK_TRACKER_MAX_CLICKS),
        shard_count=settings.ACTOR_SHARD_COUNT,
        max_instances=settings.ACTOR_MAX_INSTANCES,
    )


def build_evaluation_scheduler_namespace(
    settings: Settings, start_workflow: WorkflowStarter
) -> ActorNamespace[EvaluationScheduler]:
    return ActorNamespace(
        "evaluation_scheduler",
        lambda actor_id: EvaluationScheduler(actor_id, start_workflow),
        shard_count=settings.ACTOR_SHARD_COUNT,
        max_instances=settings.ACTOR_MAX_INSTANCES,
    )
