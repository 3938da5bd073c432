"""
Repository and run registry.

Joins the repository catalog with agent run history: which repository each
run belongs to, when each repository was last used, how repositories are
ordered for selection, and which one is selected by default.

Repository strings come in several shapes ("github.com/owner/repo",
"https://github.com/owner/repo", "owner/repo", "repo"); everything here
compares them through normalize_repository().
"""

from collections.abc import Callable, Iterable, Sequence
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING

from cloudagents.exceptions import AuthError, CloudAgentsError
from cloudagents.logging import get_logger
from cloudagents.metadata import PushedAtLookup, enrich_pushed_at
from cloudagents.types.agents import Agent
from cloudagents.types.repos import Repository

if TYPE_CHECKING:
    from cloudagents.gateway import AgentGateway
    from cloudagents.storage import PreferenceStore

logger = get_logger()

_HOST_SEGMENT = "github.com"


@dataclass(frozen=True)
class NormalizedRepository:
    """Comparable forms of a repository string."""

    full: str
    name: str
    owner_and_name: str


def normalize_repository(repository: str) -> NormalizedRepository:
    """
    Normalize a repository string for comparison.

    Lowercases, trims whitespace and strips trailing slashes. ``owner_and_name``
    falls back to the bare name when there is no owner segment (or the only
    segment before the name is the host).

    Example:
        >>> normalize_repository("github.com/Acme/Widgets/").owner_and_name
        'acme/widgets'
    """
    full = repository.strip().lower().rstrip("/")
    parts = [part for part in full.split("/") if part]
    name = parts[-1] if parts else full

    owner_and_name = name
    if len(parts) >= 2 and parts[-2] != _HOST_SEGMENT:
        owner_and_name = f"{parts[-2]}/{name}"

    return NormalizedRepository(full=full, name=name, owner_and_name=owner_and_name)


def repository_key(repository: str) -> str:
    """Key used by the last-used index."""
    return normalize_repository(repository).owner_and_name


def repositories_match(a: str, b: str) -> bool:
    """
    Decide whether two repository strings name the same repository.

    Tries, in order: full match, owner/name match, bare-name match (names
    longer than 2 characters only), then a path-suffix match either way.
    """
    left = normalize_repository(a)
    right = normalize_repository(b)

    if left.full == right.full:
        return True
    if left.owner_and_name == right.owner_and_name:
        return True
    if len(left.name) > 2 and left.name == right.name:
        return True
    if left.full.endswith(f"/{right.name}"):
        return True
    return right.full.endswith(f"/{left.name}")


def agent_matches_repository(agent: Agent, repository: Repository) -> bool:
    return repositories_match(agent.source.repository, repository.repository)


def build_last_used_index(agents: Iterable[Agent]) -> dict[str, datetime]:
    """Map each repository key to the newest ``created_at`` among its agents."""
    index: dict[str, datetime] = {}
    for agent in agents:
        key = repository_key(agent.source.repository)
        current = index.get(key)
        if current is None or agent.created_at > current:
            index[key] = agent.created_at
    return index


def sort_repositories(
    repositories: Iterable[Repository], last_used: dict[str, datetime]
) -> list[Repository]:
    """
    Order repositories for selection.

    Repositories with agent activity come first, newest activity first; the
    rest follow by most recent push, then by name (case-insensitive).
    """

    def sort_key(repo: Repository) -> tuple[int, float, float, str]:
        used = last_used.get(repository_key(repo.repository))
        used_ts = used.timestamp() if used is not None else 0.0
        pushed_ts = repo.pushed_at.timestamp() if repo.pushed_at is not None else 0.0
        return (0 if used is not None else 1, -used_ts, -pushed_ts, repo.name.casefold())

    return sorted(repositories, key=sort_key)


def select_default_repository(
    repositories: Sequence[Repository], persisted: str | None
) -> Repository | None:
    """Prefer the persisted selection if still listed, else the first repository."""
    if persisted:
        wanted = normalize_repository(persisted).full
        for repo in repositories:
            if normalize_repository(repo.repository).full == wanted:
                return repo
    return repositories[0] if repositories else None


def agents_for_repository(
    repository: Repository, agents: Iterable[Agent], limit: int | None = None
) -> list[Agent]:
    """Agents launched against ``repository``, newest first."""
    matching = [a for a in agents if agent_matches_repository(a, repository)]
    matching.sort(key=lambda a: a.created_at, reverse=True)
    return matching if limit is None else matching[:limit]


def infer_repositories(agents: Iterable[Agent]) -> list[Repository]:
    """
    Build a repository catalog from run history alone.

    Used when the repository listing is unavailable. Order follows the
    first appearance of each repository in ``agents``.
    """
    seen: set[str] = set()
    repositories: list[Repository] = []
    for agent in agents:
        raw = agent.source.repository.strip().rstrip("/")
        key = repository_key(raw)
        if not raw or key in seen:
            continue
        seen.add(key)

        parts = [part for part in raw.split("/") if part]
        name = parts[-1]
        owner = ""
        if len(parts) >= 2 and parts[-2].lower() != _HOST_SEGMENT:
            owner = parts[-2]
        repositories.append(Repository(owner=owner, name=name, repository=raw))
    return repositories


@dataclass
class RegistryConfig:
    """Registry fetch settings."""

    agent_limit: int = 50
    enrich_batch_size: int = 10
    enrich_batch_delay: float = 0.1


class RepositoryRegistry:
    """
    Holds the repository catalog and run history for one session.

    Handles:
    - Cached repository listing with stale-cache and run-history fallbacks
    - Best-effort pushed_at enrichment
    - Ordering, default selection and persisted selection
    """

    def __init__(
        self,
        gateway: "AgentGateway",
        store: "PreferenceStore | None" = None,
        metadata: PushedAtLookup | None = None,
        config: RegistryConfig | None = None,
        on_auth_failure: Callable[[AuthError], None] | None = None,
    ) -> None:
        """
        Args:
            gateway: Agent API (real client or mock)
            store: Preference store for the repository cache and selection
            metadata: pushed_at lookup used for repositories that lack one
            config: Fetch settings
            on_auth_failure: Called when a fetch fails with AuthError
        """
        self.gateway = gateway
        self.store = store
        self.metadata = metadata
        self.config = config or RegistryConfig()
        self.on_auth_failure = on_auth_failure

        self.repositories: list[Repository] = []
        self.agents: list[Agent] = []
        self.selected: Repository | None = None
        self.error: CloudAgentsError | None = None
        self._agents_in_flight = False

    @property
    def last_used(self) -> dict[str, datetime]:
        return build_last_used_index(self.agents)

    @property
    def sorted_repositories(self) -> list[Repository]:
        return sort_repositories(self.repositories, self.last_used)

    async def load_repositories(self) -> list[Repository]:
        """
        Load the repository catalog.

        A fresh cache is used as is. Otherwise the API is asked and the result
        enriched and cached. If the API fails, a stale cache or the
        repositories seen in run history are used instead.

        Raises:
            AuthError: If the API rejects the credential
        """
        cached = self.store.cached_repositories() if self.store else None
        if cached:
            self.repositories = cached
            return self.repositories

        try:
            repositories = await self.gateway.list_repositories()
        except AuthError as e:
            self._fail(e)
            raise
        except CloudAgentsError as e:
            self.error = e
            stale = self.store.cached_repositories(ignore_expiry=True) if self.store else None
            if stale:
                logger.warning("Repository listing failed (%s); using stale cache", e.code)
                self.repositories = stale
            elif self.agents:
                logger.warning("Repository listing failed (%s); using run history", e.code)
                self.repositories = infer_repositories(self.agents)
            return self.repositories

        if self.metadata is not None:
            repositories = await enrich_pushed_at(
                repositories,
                self.metadata,
                batch_size=self.config.enrich_batch_size,
                batch_delay=self.config.enrich_batch_delay,
            )

        self.error = None
        self.repositories = repositories
        if self.store is not None:
            self.store.cache_repositories(repositories)
        return self.repositories

    async def refresh_agents(self, limit: int | None = None) -> list[Agent]:
        """
        Reload recent runs. A call made while one is in flight returns the
        current list without fetching again.

        Raises:
            AuthError: If the API rejects the credential
        """
        if self._agents_in_flight:
            return self.agents

        self._agents_in_flight = True
        try:
            self.agents = await self.gateway.list_agents(limit or self.config.agent_limit)
            self.error = None
        except AuthError as e:
            self._fail(e)
            raise
        except CloudAgentsError as e:
            logger.warning("Failed to refresh runs: %s", e)
            self.error = e
        finally:
            self._agents_in_flight = False
        return self.agents

    def default_repository(self) -> Repository | None:
        persisted = self.store.last_selected_repository if self.store else None
        return select_default_repository(self.sorted_repositories, persisted)

    @property
    def selected_repository(self) -> Repository | None:
        return self.selected or self.default_repository()

    def select(self, repository: Repository) -> None:
        """Select a repository and remember the choice."""
        self.selected = repository
        if self.store is not None:
            self.store.set_last_selected_repository(repository.repository)

    def agents_for(self, repository: Repository, limit: int | None = None) -> list[Agent]:
        return agents_for_repository(repository, self.agents, limit)

    def prefetch_candidates(self, repo_count: int, per_repo: int) -> list[Agent]:
        """Latest agents of the most recently active repositories, in picker order."""
        last_used = self.last_used
        active = [
            repo
            for repo in sort_repositories(self.repositories, last_used)
            if repository_key(repo.repository) in last_used
        ][:repo_count]

        candidates: list[Agent] = []
        for repo in active:
            candidates.extend(self.agents_for(repo, per_repo))
        return candidates

    def reset(self) -> None:
        self.repositories = []
        self.agents = []
        self.selected = None
        self.error = None

    def _fail(self, error: AuthError) -> None:
        self.error = error
        if self.on_auth_failure is not None:
            self.on_auth_failure(error)
