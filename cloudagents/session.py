"""
Session orchestration.

AgentSession wires one gateway to the registry, the prefetch cache and the
open conversation, and owns the credential lifecycle. An AuthError from any
component clears the credential and resets all session state.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from cloudagents.continuation import launch_continuation, try_follow_up
from cloudagents.exceptions import AuthError, CloudAgentsError, ConfigurationError
from cloudagents.logging import get_logger, truncate_secret
from cloudagents.metadata import PushedAtLookup
from cloudagents.prefetch import PrefetchCache, PrefetchConfig
from cloudagents.registry import RegistryConfig, RepositoryRegistry
from cloudagents.synchronizer import ConversationSynchronizer, PollConfig
from cloudagents.types.agents import Agent
from cloudagents.types.messages import Message
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo

if TYPE_CHECKING:
    from cloudagents.gateway import AgentGateway, CredentialStore
    from cloudagents.storage import PreferenceStore

logger = get_logger()


@dataclass
class SessionConfig:
    """Background behavior of a signed-in session."""

    runs_refresh_interval: float | None = 30.0  # None disables the background refresh


@dataclass(frozen=True)
class ConversationTurn:
    """An earlier agent's exchange, kept when a continuation agent takes over."""

    prompt: str
    messages: list[Message] = field(default_factory=list)
    summary: str | None = None


class AgentSession:
    """
    One signed-in user's view of their agents.

    Example:
        ```python
        session = AgentSession(CloudAgentsClient(), credentials=keychain)
        if not await session.restore():
            await session.login(input("API key: "))
        await session.refresh_runs()
        await session.load_repositories()
        session.warm_cache()
        agent = await session.submit("fix the flaky test")
        ...
        await session.close()
        ```
    """

    def __init__(
        self,
        gateway: "AgentGateway",
        *,
        credentials: "CredentialStore | None" = None,
        preferences: "PreferenceStore | None" = None,
        metadata: PushedAtLookup | None = None,
        config: SessionConfig | None = None,
        poll_config: PollConfig | None = None,
        prefetch_config: PrefetchConfig | None = None,
        registry_config: RegistryConfig | None = None,
        on_change: Callable[[ConversationSynchronizer], None] | None = None,
        on_auth_failure: Callable[[AuthError], None] | None = None,
    ) -> None:
        """
        Args:
            gateway: Agent API (real client or mock)
            credentials: Where the API key is kept between runs
            preferences: Repository cache and last selection
            metadata: pushed_at lookup for repository ordering
            config: Background refresh of the run list
            poll_config: Polling behavior for opened conversations
            prefetch_config: How many conversations warm_cache() fetches
            registry_config: Registry fetch settings
            on_change: Forwarded to the conversation synchronizer
            on_auth_failure: Called after the session has been reset
        """
        self.gateway = gateway
        self.credentials = credentials
        self.config = config or SessionConfig()
        self.poll_config = poll_config
        self.on_change = on_change
        self.on_auth_failure = on_auth_failure

        self.cache = PrefetchCache(
            gateway, prefetch_config, on_auth_failure=self._handle_auth_failure
        )
        self.registry = RepositoryRegistry(
            gateway,
            store=preferences,
            metadata=metadata,
            config=registry_config,
            on_auth_failure=self._handle_auth_failure,
        )
        self.conversation: ConversationSynchronizer | None = None
        self.user: UserInfo | None = None
        # Earlier agents of the open conversation's continuation chain, oldest first
        self.turns: list[ConversationTurn] = []

        self._active_prompt: str | None = None
        self._runs_task: asyncio.Task[None] | None = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.gateway.api_key)

    @property
    def is_refreshing_runs(self) -> bool:
        return self._runs_task is not None and not self._runs_task.done()

    async def login(self, api_key: str) -> UserInfo:
        """
        Validate an API key and adopt it.

        Nothing changes if validation fails. On success the run list starts
        refreshing in the background.

        Raises:
            AuthError: If the key is empty or rejected
            CloudAgentsError: If validation could not be completed
        """
        key = api_key.strip()
        if not key:
            raise AuthError("MISSING_API_KEY", "An API key is required.")

        user = await self.gateway.validate_credential(key)
        self.gateway.api_key = key
        if self.credentials is not None:
            self.credentials.save(key)
        self.user = user
        logger.debug("Signed in with key %s", truncate_secret(key))
        self.start_runs_refresh()
        return user

    async def restore(self) -> bool:
        """
        Adopt a previously stored API key.

        The key is dropped only if the API rejects it; a network or server
        failure keeps it, and the user info simply stays unknown.

        Returns:
            True if a key is now in use
        """
        key = self.credentials.load() if self.credentials is not None else None
        if not key:
            return False

        self.gateway.api_key = key
        try:
            self.user = await self.gateway.validate_credential(key)
        except AuthError as e:
            self._handle_auth_failure(e)
            return False
        except CloudAgentsError as e:
            logger.warning("Could not validate stored API key (non-fatal): %s", e)
        self.start_runs_refresh()
        return True

    async def logout(self) -> None:
        """Forget the API key and everything loaded with it."""
        await self.close()
        self._reset()

    async def close(self) -> None:
        """Stop all background work and wait for it. The key is kept."""
        runs_task = self._runs_task
        self.stop_runs_refresh()
        if self.conversation is not None:
            await self.conversation.close()
        await self.cache.close()
        if runs_task is not None:
            await asyncio.gather(runs_task, return_exceptions=True)

    async def refresh_runs(self) -> list[Agent]:
        """Reload recent runs. Returns an empty list if the session ended."""
        try:
            return await self.registry.refresh_agents()
        except AuthError:
            return []

    def start_runs_refresh(self) -> None:
        """
        (Re)start reloading the run list every ``runs_refresh_interval``
        seconds, so runs started elsewhere show up.
        """
        interval = self.config.runs_refresh_interval
        if interval is None or not self.is_authenticated:
            return
        self.stop_runs_refresh()
        self._runs_task = asyncio.create_task(self._refresh_runs_periodically(interval))

    def stop_runs_refresh(self) -> None:
        """Cancel the background run refresh. Safe to call any number of times."""
        task, self._runs_task = self._runs_task, None
        if task is not None and not task.done():
            task.cancel()

    async def load_repositories(self) -> list[Repository]:
        """Load the repository catalog, sorted for selection."""
        try:
            await self.registry.load_repositories()
        except AuthError:
            return []
        return self.registry.sorted_repositories

    def select_repository(self, repository: Repository) -> None:
        self.registry.select(repository)
        config = self.cache.config
        self.cache.schedule(
            self.registry.agents_for(repository, config.selected_repo_count),
            config.selected_repo_stagger,
        )

    def warm_cache(self) -> list["asyncio.Task[None]"]:
        """
        Prefetch the conversations most likely to be opened next.

        Covers the most recent runs, the latest run of each recently active
        repository, and the latest runs of the selected repository.

        Returns:
            The scheduled prefetch tasks
        """
        if not self.is_authenticated:
            return []

        config = self.cache.config
        agents = self.registry.agents
        tasks = self.cache.schedule(agents[:config.recent_count], config.recent_stagger)
        tasks += self.cache.schedule(
            self.registry.prefetch_candidates(config.repo_count, config.agents_per_repo),
            config.repo_stagger,
        )

        selected = self.registry.selected_repository
        if selected is not None:
            tasks += self.cache.schedule(
                self.registry.agents_for(selected, config.selected_repo_count),
                config.selected_repo_stagger,
            )
        return tasks

    async def open_conversation(self, agent_id: str) -> ConversationSynchronizer:
        """
        Start tracking an agent, seeded from the cache.

        Only one conversation is tracked at a time; switching cancels the
        previous agent's poll loop and ends its continuation chain.
        """
        sync = self.conversation
        if sync is None or sync.agent_id != agent_id:
            self.turns = []
            self._active_prompt = None
        return await self._track(agent_id)

    async def close_conversation(self) -> None:
        self.turns = []
        self._active_prompt = None
        if self.conversation is not None:
            await self.conversation.close()
            self.conversation = None

    async def submit(self, prompt: str, model: str | None = None) -> Agent:
        """
        Act on a prompt from the composer.

        With no open conversation, launches a new agent on the selected
        repository. With one open, sends a follow-up; if a finished agent
        rejects it, launches a continuation agent instead and moves the
        finished agent's exchange to ``turns``.

        Returns:
            The agent the prompt went to (the open conversation tracks it)

        Raises:
            ConfigurationError: If no repository is available to launch on
            CloudAgentsError: If the prompt could not be delivered
        """
        text = prompt.strip()
        if not text:
            raise ValueError("Prompt must not be empty")

        sync = self.conversation
        if sync is None or sync.agent is None:
            repository = self.registry.selected_repository
            if repository is None:
                raise ConfigurationError("Select a repository to launch an agent.")
            agent = await self._call(self.gateway.launch_agent(text, repository.repository, model))
            self.turns = []
            return await self._adopt(agent, text)

        previous = sync.agent
        outcome = await try_follow_up(sync, text)
        if outcome.accepted:
            return sync.agent or previous
        if not outcome.should_continue:
            raise outcome.error or CloudAgentsError(
                "FOLLOW_UP_FAILED", "The follow-up could not be sent."
            )

        logger.debug("Follow-up to %s rejected, launching continuation", previous.id)
        previous = sync.agent or previous
        turn = ConversationTurn(
            prompt=self._active_prompt or previous.name,
            messages=list(sync.messages),
            summary=previous.summary,
        )
        self.turns.append(turn)
        try:
            agent = await self._call(launch_continuation(self.gateway, previous, text, model))
        except CloudAgentsError:
            # An auth failure has already reset the chain
            if self.turns and self.turns[-1] is turn:
                self.turns.pop()
            raise
        return await self._adopt(agent, text)

    async def _track(self, agent_id: str) -> ConversationSynchronizer:
        if self.conversation is None:
            self.conversation = ConversationSynchronizer(
                self.gateway,
                cache=self.cache,
                config=self.poll_config,
                on_change=self.on_change,
                on_auth_failure=self._handle_auth_failure,
            )
        await self.conversation.load_conversation(agent_id)
        return self.conversation

    async def _adopt(self, agent: Agent, prompt: str) -> Agent:
        agents = self.registry.agents
        self.registry.agents = [agent] + [a for a in agents if a.id != agent.id]
        self._active_prompt = prompt
        await self._track(agent.id)
        return agent

    async def _call(self, awaitable: Awaitable[Agent]) -> Agent:
        try:
            return await awaitable
        except AuthError as e:
            self._handle_auth_failure(e)
            raise

    async def _refresh_runs_periodically(self, interval: float) -> None:
        try:
            while self.is_authenticated:
                await asyncio.sleep(interval)
                await self.refresh_runs()
        finally:
            if self._runs_task is asyncio.current_task():
                self._runs_task = None

    def _handle_auth_failure(self, error: AuthError) -> None:
        if not self.is_authenticated:
            return
        logger.warning("API key rejected (%s); signing out", error.code)
        if self.conversation is not None:
            self.conversation.cancel()
        self.cache.cancel()
        self._reset()
        if self.on_auth_failure is not None:
            self.on_auth_failure(error)

    def _reset(self) -> None:
        self.stop_runs_refresh()
        self.gateway.api_key = None
        if self.credentials is not None:
            self.credentials.clear()
        self.user = None
        self.conversation = None
        self.turns = []
        self._active_prompt = None
        self.cache.clear()
        self.registry.reset()
