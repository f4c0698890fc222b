"""Link resolution service layer - cache-aside lookup and destination policy.

This module answers the hot-path question "where should this link send this
visitor": it resolves a LinkRecord through Redis with a PostgreSQL fallback,
then picks the destination for the visitor's country.

Architecture Overview
==================
::
    ┌─────────────────────────────────────────────────────────────┐
    │                    Service Layer                            │
    │  ┌──────────────────────────┐   ┌────────────────────────┐  │
    │  │  LinkResolutionService   │   │  select_destination()  │  │
    │  │                          │   │                        │  │
    │  │ • Cache-aside resolve    │   │ • Exact country match  │  │
    │  │ • Corruption tolerance   │   │ • "default" fallback   │  │
    │  │ • Best-effort refill     │   │ • Pure, no I/O         │  │
    │  └──────────────────────────┘   └────────────────────────┘  │
    └─────────────────────────────────────────────────────────────┘
                │                    │
                ▼                    ▼
    ┌─────────────────┐  ┌─────────────────┐
    │     Redis       │  │   PostgreSQL    │
    │ (CacheStore)    │  │ (RecordStore)   │
    └─────────────────┘  └─────────────────┘

Resolve Flow
------------
::
    ┌─────────────┐
    │ resolve(id) │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ Cache GET   │── error / invalid payload ──┐ (logged, treated as miss)
    └──────┬──────┘                             │
    HIT?   │                                    │
    ┌─────┴─────┐                               │
    │ YES        │ NO ◄─────────────────────────┘
    ▼            ▼
┌─────────┐  ┌─────────────┐
│ Return  │  │ RecordStore │── absent ──► LinkNotFoundError (no cache write)
│ cached  │  │ GET         │
└─────────┘  └──────┬──────┘
                    ▼
             ┌─────────────┐
             │ Cache PUT   │── error ──► logged, ignored
             │ (TTL 1 day) │
             └──────┬──────┘
                    ▼
             ┌─────────────┐
             │ Return DB   │
             │ record      │
             └─────────────┘

Usage Examples
=============
```python
service = LinkResolutionService(cache, records, settings, logger)
record = await service.resolve("abc123")
url = select_destination(record, "FR")
```
"""

import logging
import time
from typing import Any, Optional, Protocol

from prometheus_client import Counter, Histogram
from pydantic import ValidationError

from linkrouter.config import Settings
from linkrouter.enums import CacheStatus, RequestStatus
from linkrouter.errors import DataIntegrityError, LinkNotFoundError, TransientStoreError
from linkrouter.schemas import DEFAULT_DESTINATION_KEY, LinkRecord

__all__ = ["CacheStore", "RecordStore", "LinkResolutionService", "select_destination"]


# ============================================================================
# PROMETHEUS METRICS
# ============================================================================

LINK_RESOLUTIONS_TOTAL = Counter(
    "linkrouter_resolutions_total",
    "Total link resolutions",
    ["status", "cache_hit"],
)
LINK_RESOLUTION_DURATION = Histogram(
    "linkrouter_resolution_duration_seconds",
    "Time taken to resolve a link",
    buckets=[0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25],
)
CACHE_ERRORS_TOTAL = Counter(
    "linkrouter_cache_errors_total",
    "Cache failures absorbed during resolution",
    ["operation", "kind"],
)
RECORD_STORE_READS_TOTAL = Counter(
    "linkrouter_record_store_reads_total",
    "Total authoritative record store reads",
)


# ============================================================================
# STORE CONTRACTS
# ============================================================================


class CacheStore(Protocol):
    async def get(self, key: str) -> Any | None: ...

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None: ...


class RecordStore(Protocol):
    async def get(self, link_id: str) -> LinkRecord | None: ...


# ============================================================================
# DESTINATION POLICY
# ============================================================================


def select_destination(record: LinkRecord, country_code: Optional[str] = None) -> Optional[str]:
    """Pick the destination for a visitor country.

    Exact key match on ``country_code``, otherwise the ``"default"`` entry.
    Returns None instead of raising when a record has no default.
    """
    destinations = record.destinations
    if country_code and country_code in destinations:
        return destinations[country_code]
    return destinations.get(DEFAULT_DESTINATION_KEY)


# ============================================================================
# CORE SERVICE CLASS
# ============================================================================


class LinkResolutionService:
    """Cache-aside resolver for link routing records.

    The record store is the source of truth; the cache is an optimization.
    Every cache failure is logged and absorbed, record store failures
    propagate to the caller.
    """

    def __init__(
        self,
        cache: CacheStore,
        records: RecordStore,
        settings: Settings,
        logger: Optional[logging.Logger | logging.LoggerAdapter] = None,
    ):
        self._cache = cache
        self._records = records
        self._settings = settings
        self._logger = logger or logging.getLogger("linkrouter")

    def cache_key(self, link_id: str) -> str:
        return f"{self._settings.LINK_CACHE_KEY_PREFIX}:{link_id}"

    async def resolve(self, link_id: str) -> LinkRecord:
        """Return the routing record for ``link_id``.

        Raises:
            LinkNotFoundError: If the record store has no such link.
        """
        assert isinstance(link_id, str) and link_id, f"link_id must be a non-empty string, got {link_id!r}"
        start_time = time.perf_counter()

        cached = await self._read_from_cache(link_id)
        if cached is not None:
            LINK_RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
            LINK_RESOLUTIONS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.HIT).inc()
            self._logger.debug(f"Cache hit for {link_id}")
            return cached

        try:
            record = await self._records.get(link_id)
            RECORD_STORE_READS_TOTAL.inc()
        except Exception as exc:
            LINK_RESOLUTIONS_TOTAL.labels(status=RequestStatus.ERROR, cache_hit=CacheStatus.MISS).inc()
            self._logger.error(f"Record store lookup failed for {link_id}: {exc}")
            raise

        if record is None:
            LINK_RESOLUTIONS_TOTAL.labels(status=RequestStatus.NOT_FOUND, cache_hit=CacheStatus.MISS).inc()
            raise LinkNotFoundError(link_id)

        await self._write_to_cache(link_id, record)

        LINK_RESOLUTION_DURATION.observe(time.perf_counter() - start_time)
        LINK_RESOLUTIONS_TOTAL.labels(status=RequestStatus.SUCCESS, cache_hit=CacheStatus.MISS).inc()
        return record

    async def _read_from_cache(self, link_id: str) -> Optional[LinkRecord]:
        key = self.cache_key(link_id)
        try:
            payload = await self._cache.get(key)
            if payload is None:
                return None
            try:
                return LinkRecord.model_validate(payload)
            except ValidationError as exc:
                raise DataIntegrityError(f"Cached payload for {key} failed validation: {exc}") from exc
        except DataIntegrityError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get", kind="integrity").inc()
            self._logger.error(f"Ignoring corrupt cache entry: {exc}")
        except TransientStoreError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get", kind="transient").inc()
            self._logger.warning(f"Cache read failed for {link_id}: {exc}")
        except Exception as exc:
            CACHE_ERRORS_TOTAL.labels(operation="get", kind="unexpected").inc()
            self._logger.error(f"Unexpected cache read error for {link_id}: {exc}")
        return None

    async def _write_to_cache(self, link_id: str, record: LinkRecord) -> None:
        try:
            await self._cache.put(
                self.cache_key(link_id),
                record.model_dump(mode="json"),
                ttl_seconds=self._settings.LINK_CACHE_TTL_SECONDS,
            )
        except TransientStoreError as exc:
            CACHE_ERRORS_TOTAL.labels(operation="put", kind="transient").inc()
            self._logger.warning(f"Cache write failed for {link_id}: {exc}")
        except Exception as exc:
            CACHE_ERRORS_TOTAL.labels(operation="put", kind="unexpected").inc()
            self._logger.error(f"Unexpected cache write error for {link_id}: {exc}")
