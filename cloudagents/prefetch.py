"""
Background warming of agent conversations.

The PrefetchCache holds the last known agent and messages per agent id and
fetches conversations ahead of time so opening one shows content at once.
Prefetches are fire-and-forget; failures are logged and dropped.
"""

import asyncio
from collections.abc import Callable, Coroutine, Iterable, Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from cloudagents.exceptions import AuthError, CloudAgentsError
from cloudagents.governor import Priority
from cloudagents.logging import get_logger
from cloudagents.types.agents import Agent
from cloudagents.types.messages import Message

if TYPE_CHECKING:
    from cloudagents.gateway import AgentGateway

logger = get_logger("sync")


@dataclass
class CacheEntry:
    """Last known state of one agent."""

    agent: Agent
    messages: list[Message] = field(default_factory=list)


@dataclass
class PrefetchConfig:
    """How many conversations to warm and how far apart to start them."""

    recent_count: int = 5
    recent_stagger: float = 0.5
    repo_count: int = 6
    agents_per_repo: int = 1
    repo_stagger: float = 0.45
    selected_repo_count: int = 3
    selected_repo_stagger: float = 0.35


class PrefetchCache:
    """
    Keyed store of (agent, messages) with deduplicated background fetches.

    At most one fetch per agent id is in flight, and a finished fetch never
    overwrites an entry that appeared while it was running.
    """

    def __init__(
        self,
        gateway: "AgentGateway",
        config: PrefetchConfig | None = None,
        on_auth_failure: Callable[[AuthError], None] | None = None,
    ) -> None:
        self.gateway = gateway
        self.config = config or PrefetchConfig()
        self.on_auth_failure = on_auth_failure

        self._entries: dict[str, CacheEntry] = {}
        # Agent id -> the task currently fetching it
        self._pending: dict[str, asyncio.Task[None]] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        # Bumped by clear(); fetches started before a clear are discarded
        self._generation = 0

    def __contains__(self, agent_id: object) -> bool:
        return agent_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def is_pending(self, agent_id: str) -> bool:
        return agent_id in self._pending

    def get(self, agent_id: str) -> CacheEntry | None:
        return self._entries.get(agent_id)

    def put(self, agent: Agent, messages: Sequence[Message]) -> None:
        """Store the latest known state of an agent, replacing any entry."""
        self._entries[agent.id] = CacheEntry(agent=agent, messages=list(messages))

    def invalidate(self, agent_id: str) -> None:
        self._entries.pop(agent_id, None)

    def clear(self) -> None:
        """Drop all entries and disown in-flight fetches."""
        self._entries.clear()
        self._generation += 1

    def prefetch(self, agent: Agent) -> "asyncio.Task[None] | None":
        """
        Start fetching an agent's conversation in the background.

        Does nothing if the agent is already cached or being fetched.

        Args:
            agent: Agent whose conversation to warm

        Returns:
            The fetch task, or None if no fetch was started
        """
        if agent.id in self._entries or agent.id in self._pending:
            return None

        task = self._spawn(self._fetch(agent, self._generation))
        # Marked before the task first runs, so a second call in the same tick is a no-op
        self._pending[agent.id] = task
        return task

    def schedule(
        self, agents: Iterable[Agent], stagger: float
    ) -> list["asyncio.Task[None]"]:
        """
        Prefetch agents one after another, ``stagger`` seconds apart.

        Staggering only smooths bursts; the governor bounds load either way.

        Returns:
            One task per agent; each starts its prefetch after its delay
        """
        return [
            self._spawn(self._prefetch_later(agent, index * stagger))
            for index, agent in enumerate(agents)
        ]

    async def join(self) -> None:
        """Wait until every scheduled and in-flight prefetch has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    def cancel(self) -> None:
        """Cancel all scheduled and in-flight prefetches without waiting."""
        for task in list(self._tasks):
            task.cancel()
        governor = self.gateway.governor
        if governor is not None:
            governor.clear_low_priority()
        # Tasks cancelled before their first step never reach their cleanup
        self._pending.clear()

    async def close(self) -> None:
        """Cancel all scheduled and in-flight prefetches and wait for them."""
        tasks = list(self._tasks)
        self.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> "asyncio.Task[None]":
        task = asyncio.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _prefetch_later(self, agent: Agent, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        self.prefetch(agent)

    async def _fetch(self, agent: Agent, generation: int) -> None:
        try:
            messages = await self.gateway.get_conversation(
                agent.id, priority=Priority.PREFETCH
            )
        except AuthError as e:
            logger.debug("Prefetch of %s rejected: %s", agent.id, e)
            if self.on_auth_failure is not None:
                self.on_auth_failure(e)
        except CloudAgentsError as e:
            # Expected for agents whose conversation is not ready yet
            logger.debug("Prefetch of %s failed: %s", agent.id, e)
        else:
            if generation == self._generation and agent.id not in self._entries:
                self._entries[agent.id] = CacheEntry(agent=agent, messages=list(messages))
                logger.debug("Prefetched %d messages for %s", len(messages), agent.id)
        finally:
            # A newer fetch may own the id after cancel()
            if self._pending.get(agent.id) is asyncio.current_task():
                del self._pending[agent.id]
