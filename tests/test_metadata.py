"""Tests for best-effort GitHub metadata lookups and enrichment."""

import time
from datetime import datetime, timezone

import httpx
import pytest

from cloudagents.metadata import GitHubMetadataClient, enrich_pushed_at
from cloudagents.testing import BASE_TIME, create_mock_repository


def make_client(handler) -> GitHubMetadataClient:
    http_client = httpx.AsyncClient(
        base_url="https://api.github.test", transport=httpx.MockTransport(handler)
    )
    return GitHubMetadataClient(base_url="https://api.github.test", http_client=http_client)


@pytest.mark.asyncio
async def test_pushed_at_parses_github_timestamp() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"pushed_at": "2024-01-10T08:00:00Z"})

    async with make_client(handler) as client:
        pushed = await client.pushed_at("acme", "widgets")

    assert seen == ["/repos/acme/widgets"]
    assert pushed == datetime(2024, 1, 10, 8, tzinfo=timezone.utc)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(404, json={"message": "Not Found"}),
        httpx.Response(403, json={"message": "API rate limit exceeded"}),
        httpx.Response(200, content=b"not json"),
        httpx.Response(200, json={"pushed_at": None}),
        httpx.Response(200, json={"pushed_at": "last tuesday"}),
        httpx.Response(200, json=["unexpected"]),
    ],
)
async def test_pushed_at_never_raises(response: httpx.Response) -> None:
    async with make_client(lambda request: response) as client:
        assert await client.pushed_at("acme", "widgets") is None


@pytest.mark.asyncio
async def test_pushed_at_swallows_network_errors() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("offline", request=request)

    async with make_client(handler) as client:
        assert await client.pushed_at("acme", "widgets") is None


@pytest.mark.asyncio
async def test_enrich_fills_only_missing_values() -> None:
    known = create_mock_repository("acme", "known", pushed_at=BASE_TIME)
    missing = create_mock_repository("acme", "missing")
    unknown = create_mock_repository("acme", "unknown")
    asked: list[str] = []

    async def lookup(owner: str, name: str) -> datetime | None:
        asked.append(name)
        return BASE_TIME if name == "missing" else None

    enriched = await enrich_pushed_at([known, missing, unknown], lookup)

    assert asked == ["missing", "unknown"]
    assert [r.name for r in enriched] == ["known", "missing", "unknown"]
    assert enriched[1].pushed_at == BASE_TIME
    assert enriched[2].pushed_at is None
    assert missing.pushed_at is None


@pytest.mark.asyncio
async def test_enrich_survives_failing_lookup() -> None:
    async def lookup(owner: str, name: str) -> datetime | None:
        raise RuntimeError("lookup exploded")

    repos = [create_mock_repository("acme", "widgets")]
    assert await enrich_pushed_at(repos, lookup) == repos


@pytest.mark.asyncio
async def test_enrich_works_in_batches() -> None:
    repos = [create_mock_repository("acme", f"r{i}") for i in range(5)]
    calls = 0

    async def lookup(owner: str, name: str) -> datetime | None:
        nonlocal calls
        calls += 1
        return None

    started = time.monotonic()
    await enrich_pushed_at(repos, lookup, batch_size=2, batch_delay=0.02)
    elapsed = time.monotonic() - started

    assert calls == 5
    # Three batches, two pauses between them
    assert elapsed >= 0.04 - 0.005
