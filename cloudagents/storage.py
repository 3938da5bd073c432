"""Local preferences: last selected repository and the repository cache.

Stored as a single JSON file, or only in memory when no path is given.
A missing or corrupt file is treated as empty; write failures are logged
and otherwise ignored so a read-only home directory never breaks a session.
"""

import json
import time
from collections.abc import Callable, Sequence
from pathlib import Path
from typing import Any

from cloudagents.decoding import format_timestamp, parse_timestamp
from cloudagents.exceptions import MalformedResponseError
from cloudagents.logging import get_logger
from cloudagents.types.repos import Repository

logger = get_logger()

# Cached repositories expire after an hour to stay within rate limits
REPO_CACHE_TTL = 60 * 60.0


class PreferenceStore:
    """Persists the user's repository choice and a TTL-bound repository list."""

    def __init__(
        self,
        path: Path | None = None,
        ttl: float = REPO_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ) -> None:
        """
        Args:
            path: JSON file to persist to (None keeps everything in memory)
            ttl: Seconds before cached repositories count as stale
            clock: Wall-clock source, in seconds
        """
        self.path = path
        self.ttl = ttl
        self._clock = clock
        self._data: dict[str, Any] = self._load()

    @property
    def last_selected_repository(self) -> str | None:
        value = self._data.get("last_selected_repository")
        return value if isinstance(value, str) else None

    def set_last_selected_repository(self, repository: str | None) -> None:
        self._data["last_selected_repository"] = repository
        self._save()

    def cached_repositories(self, ignore_expiry: bool = False) -> list[Repository] | None:
        """
        Return the cached repository list.

        Args:
            ignore_expiry: Return the list even if it is older than the TTL

        Returns:
            The cached repositories, or None if absent, expired or corrupt
        """
        fetched_at = self._data.get("repositories_fetched_at")
        if not isinstance(fetched_at, (int, float)):
            return None
        if not ignore_expiry and self._clock() - fetched_at > self.ttl:
            return None

        raw = self._data.get("repositories")
        if not isinstance(raw, list):
            return None
        try:
            return [_repository_from_json(item) for item in raw]
        except (MalformedResponseError, KeyError, TypeError):
            logger.warning("Discarding corrupt repository cache")
            self.clear_repositories()
            return None

    def cache_repositories(self, repositories: Sequence[Repository]) -> None:
        self._data["repositories"] = [_repository_to_json(r) for r in repositories]
        self._data["repositories_fetched_at"] = self._clock()
        self._save()

    def clear_repositories(self) -> None:
        self._data.pop("repositories", None)
        self._data.pop("repositories_fetched_at", None)
        self._save()

    def clear(self) -> None:
        """Forget everything (used on logout)."""
        self._data = {}
        self._save()

    def _load(self) -> dict[str, Any]:
        if self.path is None:
            return {}
        try:
            if self.path.exists():
                data = json.loads(self.path.read_text())
                if isinstance(data, dict):
                    logger.debug("Loaded preferences from %s", self.path)
                    return data
                logger.warning("Preferences at %s are not an object; using defaults", self.path)
        except (OSError, ValueError):
            logger.warning("Failed to load preferences from %s; using defaults", self.path)
        return {}

    def _save(self) -> None:
        if self.path is None:
            return
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            self.path.write_text(json.dumps(self._data, indent=2))
        except OSError:
            logger.debug("Failed to save preferences to %s", self.path)


def _repository_to_json(repo: Repository) -> dict[str, Any]:
    return {
        "owner": repo.owner,
        "name": repo.name,
        "repository": repo.repository,
        "pushedAt": format_timestamp(repo.pushed_at) if repo.pushed_at else None,
    }


def _repository_from_json(data: dict[str, Any]) -> Repository:
    pushed_at = data.get("pushedAt")
    return Repository(
        owner=data["owner"],
        name=data["name"],
        repository=data["repository"],
        pushed_at=parse_timestamp(pushed_at) if pushed_at else None,
    )
