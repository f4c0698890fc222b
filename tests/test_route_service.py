"""Tests for the cache-aside LinkResolutionService."""

from unittest.mock import AsyncMock

import pytest

from linkrouter.errors import LinkNotFoundError
from linkrouter.route_service import LinkResolutionService, select_destination


class TestLinkResolutionService:
    @pytest.mark.asyncio
    async def test_cache_miss_reads_record_store_and_fills_cache(
        self, resolution_service, cache_store, record_store, sample_record, settings
    ):
        record = await resolution_service.resolve("abc123")

        assert record == sample_record
        assert record_store.lookups == ["abc123"]
        assert cache_store.puts == [
            ("link:abc123", sample_record.model_dump(mode="json"), settings.LINK_CACHE_TTL_SECONDS)
        ]

    @pytest.mark.asyncio
    async def test_second_resolve_is_served_from_cache(self, resolution_service, cache_store, record_store):
        first = await resolution_service.resolve("abc123")
        second = await resolution_service.resolve("abc123")

        assert first == second
        assert record_store.lookups == ["abc123"]
        assert len(cache_store.puts) == 1

    @pytest.mark.asyncio
    async def test_cache_ttl_is_one_day(self, resolution_service, cache_store):
        await resolution_service.resolve("abc123")
        _, _, ttl = cache_store.puts[0]
        assert ttl == 86400

    @pytest.mark.asyncio
    async def test_unknown_link_raises_not_found_without_cache_write(self, resolution_service, cache_store):
        with pytest.raises(LinkNotFoundError) as exc_info:
            await resolution_service.resolve("missing-id")

        assert exc_info.value.link_id == "missing-id"
        assert cache_store.puts == []

    @pytest.mark.asyncio
    async def test_corrupt_cache_entry_falls_back_to_record_store(
        self, resolution_service, cache_store, record_store, sample_record, mock_logger
    ):
        cache_store.entries["link:abc123"] = {"id": "abc123", "destinations": {"FR": "https://example.fr"}}

        record = await resolution_service.resolve("abc123")

        assert record == sample_record
        assert record_store.lookups == ["abc123"]
        mock_logger.error.assert_called_once()
        # The corrupt entry is overwritten with the authoritative record.
        assert cache_store.entries["link:abc123"] == sample_record.model_dump(mode="json")

    @pytest.mark.asyncio
    async def test_non_object_cache_payload_is_treated_as_miss(self, resolution_service, cache_store, sample_record):
        cache_store.entries["link:abc123"] = "garbage"

        assert await resolution_service.resolve("abc123") == sample_record

    @pytest.mark.asyncio
    async def test_cache_read_failure_is_absorbed(self, resolution_service, cache_store, record_store, sample_record):
        cache_store.fail_reads = True

        record = await resolution_service.resolve("abc123")

        assert record == sample_record
        assert record_store.lookups == ["abc123"]

    @pytest.mark.asyncio
    async def test_cache_write_failure_still_returns_record(
        self, resolution_service, cache_store, sample_record, mock_logger
    ):
        cache_store.fail_writes = True

        record = await resolution_service.resolve("abc123")

        assert record == sample_record
        assert cache_store.entries == {}
        mock_logger.warning.assert_called_once()

    @pytest.mark.asyncio
    async def test_record_store_errors_propagate(self, cache_store, settings, mock_logger):
        records = AsyncMock()
        records.get.side_effect = ConnectionError("database unavailable")
        service = LinkResolutionService(cache_store, records, settings, mock_logger)

        with pytest.raises(ConnectionError):
            await service.resolve("abc123")
        assert cache_store.puts == []

    @pytest.mark.asyncio
    async def test_cache_key_uses_configured_prefix(self, cache_store, record_store, settings, mock_logger):
        custom = settings.model_copy(update={"LINK_CACHE_KEY_PREFIX": "routes"})
        service = LinkResolutionService(cache_store, record_store, custom, mock_logger)

        await service.resolve("abc123")

        assert cache_store.gets == ["routes:abc123"]
        assert cache_store.puts[0][0] == "routes:abc123"


@pytest.mark.asyncio
async def test_resolve_then_select_scenario(resolution_service):
    record = await resolution_service.resolve("abc123")

    assert select_destination(record, "FR") == "https://example.fr"
    assert select_destination(record, "DE") == "https://example.com"
    assert select_destination(record, None) == "https://example.com"
