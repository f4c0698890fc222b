"""Redis client management and the link cache adapter.

This module provides lazily created Redis clients (primary for writes, replica
for hot-path reads) and ``RedisCacheStore``, the JSON get/put-with-TTL adapter
the resolver uses as its ephemeral store.

Flow Diagram — RedisCacheStore.get()
====================================
::
    ┌─────────────┐
    │  get(key)   │
    └──────┬──────┘
           ▼
    ┌─────────────┐
    │ GET replica │──── RedisError ───► TransientStoreError
    └──────┬──────┘
    FOUND?  │
    ┌─────┴─────┐
    │ NO         │ YES
    ▼            ▼
┌─────────┐  ┌─────────┐
│ Return  │  │ Decode  │──── bad JSON ───► DataIntegrityError
│ None    │  │ JSON    │
└─────────┘  └─────────┘

How to Use
===========
**Step 1 — Build the adapter**::
    store = RedisCacheStore(await get_redis(), await get_redis_read())

**Step 2 — Read and write**::
    payload = await store.get("link:abc123")
    await store.put("link:abc123", {"id": "abc123", ...}, ttl_seconds=86400)

**Step 3 — Cleanup on shutdown**::
    await close_redis()

Key Behaviours
===============
- Clients are created lazily on first access and reused across requests.
- Every Redis failure surfaces as TransientStoreError so callers can absorb
  cache problems without catching driver exceptions.
- No read-modify-write and no locking: concurrent puts are last-write-wins.
- Reads go to the replica and writes to the primary. Until replication
  catches up, a link cached a moment ago still reads as a miss, so the
  resolver may fetch it from the record store a second time and rewrite the
  same entry. Leave REDIS_REPLICA_URL empty to read from the primary.

Functions:
    get_redis():  Primary Redis client.
    get_redis_read():  Replica Redis client.
    close_redis():  Cleanup function for shutdown.
"""

import json
from typing import Any

import redis.asyncio as redis
from redis.exceptions import RedisError

from linkrouter.config import get_settings
from linkrouter.errors import DataIntegrityError, TransientStoreError

__all__ = ["RedisCacheStore", "close_redis", "get_redis", "get_redis_read"]

settings = get_settings()

# Write client — always points to the Redis primary.
redis_client: redis.Redis | None = None

# Read-only client — points to the Redis replica.
# Falls back to primary URL if REDIS_REPLICA_URL is not configured.
redis_read_client: redis.Redis | None = None


async def get_redis() -> redis.Redis:
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(
            settings.REDIS_URL,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_client


async def get_redis_read() -> redis.Redis:
    global redis_read_client
    if redis_read_client is None:
        replica_url = settings.REDIS_REPLICA_URL or settings.REDIS_URL
        redis_read_client = redis.from_url(
            replica_url,
            encoding="utf-8",
            decode_responses=True,
        )
    return redis_read_client


async def close_redis() -> None:
    global redis_client, redis_read_client
    if redis_client is not None:
        await redis_client.aclose()
        redis_client = None
    if redis_read_client is not None:
        await redis_read_client.aclose()
        redis_read_client = None


class RedisCacheStore:
    """JSON cache on top of Redis with per-entry TTL."""

    def __init__(self, writer: redis.Redis, reader: redis.Redis | None = None):
        self._writer = writer
        self._reader = reader or writer

    async def get(self, key: str) -> Any | None:
        try:
            raw = await self._reader.get(key)
        except RedisError as exc:
            raise TransientStoreError(f"GET {key} failed: {exc}") from exc

        if raw is None:
            return None
        try:
            return json.loads(raw)
        except ValueError as exc:
            raise DataIntegrityError(f"Cached value for {key} is not JSON") from exc

    async def put(self, key: str, value: Any, ttl_seconds: int) -> None:
        assert ttl_seconds > 0, f"ttl_seconds must be positive, got {ttl_seconds!r}"
        try:
            await self._writer.set(key, json.dumps(value), ex=ttl_seconds)
        except RedisError as exc:
            raise TransientStoreError(f"SET {key} failed: {exc}") from exc

    async def ping(self) -> bool:
        return bool(await self._writer.ping())
