"""Configuration management for the link routing service.

This module provides centralized configuration management using Pydantic BaseSettings
with environment variable support and caching for performance.

How to Use
===========
**Step 1 — Import**::
    from linkrouter.config import get_settings

**Step 2 — Hand the settings to a service**::
    settings = get_settings()
    service = LinkResolutionService(cache, records, settings)

**Step 3 — Access values**::
    print(f"App: {settings.APP_NAME}")
    print(f"Cache TTL: {settings.LINK_CACHE_TTL_SECONDS}s")

Key Behaviours
===============
- Settings are cached after first access for performance.
- Environment variables override defaults automatically.
- Services receive the Settings instance at construction; nothing reads
  module-level globals on the hot path.

Classes:
    Settings:  Pydantic model for all configuration values.

"""

__all__ = ["Settings", "get_settings"]

from functools import lru_cache

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    APP_NAME: str = "linkrouter"
    APP_ENV: str = "development"
    LOG_LEVEL: str = "INFO"

    # PostgreSQL (authoritative link records)
    DATABASE_URL: str = "postgresql+asyncpg://linkrouter:linkrouter@db:5432/linkrouter"

    # Redis (ephemeral link cache)
    REDIS_URL: str = "redis://redis:6379/0"
    REDIS_REPLICA_URL: str = "redis://redis-replica:6379/0"
    LINK_CACHE_KEY_PREFIX: str = "link"
    LINK_CACHE_TTL_SECONDS: int = 60 * 60 * 24  # 1 day

    # Visitor geolocation headers set by the edge proxy
    COUNTRY_HEADER: str = "cf-ipcountry"
    LATITUDE_HEADER: str = "x-geo-latitude"
    LONGITUDE_HEADER: str = "x-geo-longitude"

    # Kafka queue
    KAFKA_BOOTSTRAP_SERVERS: str = "kafka:9092"
    KAFKA_CLICK_TOPIC: str = "link_clicks"
    KAFKA_EVALUATION_TOPIC: str = "link_evaluations"
    CONSUMER_GROUP: str = "link_click_evaluation_group"
    CONSUMER_NAME: str = "evaluation-consumer-1"
    CONSUMER_BATCH_SIZE: int = 500
    CONSUMER_BLOCK_MS: int = 1000
    CONSUMER_METRICS_PORT: int = 9200

    # Actor runtime
    ACTOR_SHARD_COUNT: int = 16
    ACTOR_MAX_INSTANCES: int = 100_000
    CLICK_TRACKER_MAX_CLICKS: int = 1000

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=True,
    )


@lru_cache()
def get_settings() -> Settings:
    return Settings()
