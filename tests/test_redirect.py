"""Redirect endpoint behavior tests."""

import pytest
from httpx import AsyncClient

from linkrouter.schemas import LinkRecord


@pytest.mark.asyncio
async def test_redirect_uses_country_destination(client: AsyncClient) -> None:
    response = await client.get("/abc123", headers={"cf-ipcountry": "FR"}, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://example.fr"


@pytest.mark.asyncio
@pytest.mark.parametrize("headers", [{"cf-ipcountry": "DE"}, {"cf-ipcountry": "XX"}, {}])
async def test_redirect_falls_back_to_default(client: AsyncClient, headers) -> None:
    response = await client.get("/abc123", headers=headers, follow_redirects=False)
    assert response.status_code == 307
    assert response.headers["location"] == "https://example.com"


@pytest.mark.asyncio
async def test_redirect_unknown_link(client: AsyncClient, cache_store) -> None:
    response = await client.get("/missing-id", follow_redirects=False)
    assert response.status_code == 404
    assert cache_store.puts == []


@pytest.mark.asyncio
async def test_redirect_dispatches_click(client: AsyncClient, queue, click_trackers) -> None:
    response = await client.get(
        "/abc123",
        headers={"cf-ipcountry": "FR", "x-geo-latitude": "48.8566", "x-geo-longitude": "2.3522"},
        follow_redirects=False,
    )
    assert response.status_code == 307

    assert len(queue.sent) == 1
    event = queue.sent[0].data
    assert (event.account_id, event.id, event.destination, event.country) == (
        "acct-1",
        "abc123",
        "https://example.fr",
        "FR",
    )
    assert len(click_trackers) == 1


@pytest.mark.asyncio
async def test_unparseable_coordinates_skip_click_tracker(client: AsyncClient, queue, click_trackers) -> None:
    await client.get(
        "/abc123",
        headers={"cf-ipcountry": "FR", "x-geo-latitude": "north", "x-geo-longitude": "2.3522"},
        follow_redirects=False,
    )

    assert len(queue.sent) == 1
    assert queue.sent[0].data.latitude is None
    assert len(click_trackers) == 0


@pytest.mark.asyncio
async def test_redirect_survives_dispatch_and_cache_failures(client: AsyncClient, queue, cache_store) -> None:
    queue.error = RuntimeError("broker down")
    cache_store.fail_reads = True
    cache_store.fail_writes = True

    response = await client.get("/abc123", headers={"cf-ipcountry": "FR"}, follow_redirects=False)

    assert response.status_code == 307
    assert response.headers["location"] == "https://example.fr"


@pytest.mark.asyncio
async def test_second_redirect_is_served_from_cache(client: AsyncClient, record_store) -> None:
    for _ in range(2):
        response = await client.get("/abc123", follow_redirects=False)
        assert response.status_code == 307

    assert record_store.lookups == ["abc123"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["health", "metrics"])
async def test_fixed_paths_shadow_link_ids(client: AsyncClient, record_store, path) -> None:
    record_store.records[path] = LinkRecord(id=path, account_id="acct-1", destinations={"default": "https://example.com"})

    response = await client.get(f"/{path}", follow_redirects=False)

    assert response.status_code == 200
    assert "location" not in response.headers
    assert record_store.lookups == []
