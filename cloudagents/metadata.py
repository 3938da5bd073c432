"""
Best-effort repository metadata from the GitHub API.

Only the last-pushed timestamp is used, to order repositories the agent API
lists without one. Lookups never raise: any failure yields None.
"""

import asyncio
import dataclasses
from collections.abc import Awaitable, Callable, Sequence
from datetime import datetime
from typing import Any

import httpx

from cloudagents.decoding import parse_timestamp
from cloudagents.exceptions import MalformedResponseError
from cloudagents.logging import get_logger
from cloudagents.types.repos import Repository

logger = get_logger("http")

PushedAtLookup = Callable[[str, str], Awaitable[datetime | None]]


class GitHubMetadataClient:
    """Unauthenticated GitHub repository lookups."""

    DEFAULT_BASE_URL = "https://api.github.com"
    DEFAULT_TIMEOUT = 10.0

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = http_client or httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout,
            headers={"Accept": "application/vnd.github.v3+json"},
        )

    async def pushed_at(self, owner: str, name: str) -> datetime | None:
        """
        Look up when a repository was last pushed to.

        Args:
            owner: Repository owner
            name: Repository name

        Returns:
            The push time, or None if it could not be determined
        """
        try:
            response = await self._client.get(f"/repos/{owner}/{name}")
        except httpx.HTTPError as e:
            logger.debug("GitHub lookup for %s/%s failed: %s", owner, name, e)
            return None

        if response.status_code != 200:
            logger.debug(
                "GitHub lookup for %s/%s returned %d", owner, name, response.status_code
            )
            return None

        try:
            data: Any = response.json()
        except ValueError:
            return None
        if not isinstance(data, dict) or data.get("pushed_at") is None:
            return None
        try:
            return parse_timestamp(data["pushed_at"])
        except MalformedResponseError:
            return None

    async def close(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "GitHubMetadataClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()


async def enrich_pushed_at(
    repositories: Sequence[Repository],
    lookup: PushedAtLookup,
    batch_size: int = 10,
    batch_delay: float = 0.1,
) -> list[Repository]:
    """
    Fill in ``pushed_at`` for repositories that lack it.

    Lookups run concurrently within a batch, with a short pause between
    batches. Failed lookups leave the repository unchanged and are not
    retried.

    Args:
        repositories: Repositories as listed by the agent API
        lookup: Async (owner, name) -> datetime | None
        batch_size: Lookups per batch
        batch_delay: Seconds to wait between batches

    Returns:
        A new list in the same order as the input
    """
    result = list(repositories)
    missing = [i for i, repo in enumerate(result) if repo.pushed_at is None]

    for start in range(0, len(missing), batch_size):
        batch = missing[start:start + batch_size]
        found = await asyncio.gather(
            *(_safe_lookup(lookup, result[i]) for i in batch)
        )
        for index, pushed_at in zip(batch, found):
            if pushed_at is not None:
                result[index] = dataclasses.replace(result[index], pushed_at=pushed_at)

        if start + batch_size < len(missing):
            await asyncio.sleep(batch_delay)

    return result


async def _safe_lookup(lookup: PushedAtLookup, repo: Repository) -> datetime | None:
    try:
        return await lookup(repo.owner, repo.name)
    except Exception as e:  # noqa: BLE001 - enrichment must never fail the listing
        logger.debug("pushed_at lookup for %s failed: %s", repo.repository, e)
        return None
