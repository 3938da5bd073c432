"""
Conversation synchronization for a single agent.

A ConversationSynchronizer loads one agent and its conversation, polls while
the agent is active, merges incoming messages append-only, and shows a
follow-up optimistically until the server echoes it back.

Handles:
- Adaptive poll interval (slower after a failed refresh)
- Stopping as soon as the agent reaches a terminal status
- Optimistic follow-ups with rollback on failure
- Discarding results that arrive after an agent switch or close()
"""

import asyncio
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TYPE_CHECKING, Any

from cloudagents.exceptions import AuthError, CloudAgentsError, NotFoundError
from cloudagents.logging import get_logger
from cloudagents.types.agents import Agent
from cloudagents.types.messages import Message, MessageType

if TYPE_CHECKING:
    from cloudagents.gateway import AgentGateway
    from cloudagents.prefetch import PrefetchCache

logger = get_logger("sync")


class SyncState(str, Enum):
    """Lifecycle of a synchronizer for its tracked agent."""

    IDLE = "idle"
    LOADING = "loading"
    ACTIVE = "active"
    TERMINAL = "terminal"
    FAILED = "failed"


@dataclass
class PollConfig:
    """Polling behavior for a synchronizer."""

    interval: float = 1.5  # Seconds between refreshes
    error_interval: float = 3.0  # Seconds between refreshes after a failed one
    max_duration: float | None = 1800.0  # Give up polling after this long
    max_messages: int | None = None  # Keep only the newest N messages


@dataclass(frozen=True)
class PendingFollowUp:
    """A follow-up shown before the server has confirmed it."""

    text: str
    # Message ids held when the follow-up was sent; an older message with the
    # same text does not confirm this one.
    known_ids: frozenset[str] = field(default_factory=frozenset)


def merge_messages(
    held: Sequence[Message],
    fetched: Sequence[Message],
    limit: int | None = None,
) -> list[Message]:
    """
    Merge a freshly fetched conversation into the held one.

    An empty held sequence is replaced by the fetched one. Otherwise only
    messages with unseen ids are appended, in fetched order. Held messages
    are never removed or reordered, except that ``limit`` drops the oldest
    ones once the conversation grows past it.

    Args:
        held: Messages already shown
        fetched: Conversation as returned by the server
        limit: Maximum number of messages to keep (None for unbounded)

    Returns:
        The merged message list
    """
    if not held:
        merged = list(fetched)
    else:
        held_ids = {m.id for m in held}
        candidates: Sequence[Message] = fetched
        if limit is not None:
            # Trimmed messages come back from the server; ignore everything
            # older than the oldest message still held.
            first_held = next(
                (i for i, m in enumerate(fetched) if m.id in held_ids), None
            )
            if first_held is not None:
                candidates = fetched[first_held:]
        merged = list(held) + [m for m in candidates if m.id not in held_ids]

    if limit is not None and len(merged) > limit:
        merged = merged[len(merged) - limit:]
    return merged


class ConversationSynchronizer:
    """
    Tracks one agent's lifecycle and conversation.

    Example:
        ```python
        sync = ConversationSynchronizer(client, on_change=render)
        await sync.load_conversation("bc_123")
        await sync.send_follow_up("add tests")
        ...
        await sync.close()
        ```
    """

    def __init__(
        self,
        gateway: "AgentGateway",
        *,
        cache: "PrefetchCache | None" = None,
        config: PollConfig | None = None,
        on_change: Callable[["ConversationSynchronizer"], None] | None = None,
        on_auth_failure: Callable[[AuthError], None] | None = None,
    ) -> None:
        """
        Initialize the synchronizer.

        Args:
            gateway: Agent API (real client or mock)
            cache: Prefetch cache used to seed state and to write results back
            config: Polling behavior
            on_change: Called after every state change
            on_auth_failure: Called when any operation fails with AuthError
        """
        self.gateway = gateway
        self.cache = cache
        self.config = config or PollConfig()
        self.on_change = on_change
        self.on_auth_failure = on_auth_failure

        self.agent_id: str | None = None
        self.agent: Agent | None = None
        self.messages: list[Message] = []
        self.error: CloudAgentsError | None = None
        self.pending_follow_up: PendingFollowUp | None = None
        self.is_loading = False
        self.is_sending_follow_up = False
        self.state = SyncState.IDLE

        self._poll_task: asyncio.Task[None] | None = None
        # Bumped on every agent switch and by cancel(); results fetched under
        # an older epoch are dropped.
        self._epoch = 0

    @property
    def is_polling(self) -> bool:
        return self._poll_task is not None and not self._poll_task.done()

    async def __aenter__(self) -> "ConversationSynchronizer":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()

    async def load_conversation(self, agent_id: str) -> None:
        """
        Load an agent and its conversation, then poll if it is active.

        Switching to a different agent drops the previous agent's messages,
        error and pending follow-up before anything is fetched.

        Args:
            agent_id: Agent to track
        """
        if agent_id != self.agent_id:
            self._switch_to(agent_id)
        else:
            self.stop_polling()

        epoch = self._epoch
        self.is_loading = True
        self.state = SyncState.LOADING
        self._notify()

        try:
            agent = await self.gateway.get_agent(agent_id)
        except CloudAgentsError as e:
            if not self._is_current(epoch):
                return
            self.is_loading = False
            self.state = SyncState.FAILED
            self._record_error(e)
            if self._is_current(epoch):
                self._notify()
            return
        if not self._is_current(epoch):
            return
        self.agent = agent

        fetched: list[Message] | None = None
        conversation_error: CloudAgentsError | None = None
        try:
            fetched = await self.gateway.get_conversation(agent_id)
        except NotFoundError:
            # Conversation not created yet
            logger.debug("Conversation for %s not ready yet", agent_id)
        except CloudAgentsError as e:
            conversation_error = e
        if not self._is_current(epoch):
            return

        if fetched is not None:
            self.messages = merge_messages(
                self.messages, fetched, self.config.max_messages
            )
            self._resolve_pending()

        self.is_loading = False
        if conversation_error is not None:
            self._record_error(conversation_error)
            if not self._is_current(epoch):
                return
        else:
            self.error = None
            self._write_back()

        if isinstance(self.error, AuthError):
            self.state = SyncState.FAILED
        elif agent.is_active:
            self.state = SyncState.ACTIVE
            self.start_polling()
        else:
            self.state = SyncState.TERMINAL
        self._notify()

    async def refresh(self) -> bool:
        """
        Re-fetch the agent and its conversation once.

        Returns:
            True if both fetches succeeded (a missing conversation counts as
            success)
        """
        return await self._refresh(self._epoch)

    def start_polling(self) -> None:
        """(Re)start the poll loop for the tracked agent."""
        if self.agent_id is None:
            return
        self.stop_polling()
        self._poll_task = asyncio.create_task(self._poll(self._epoch))

    def stop_polling(self) -> None:
        """Cancel the poll loop. Safe to call any number of times."""
        task, self._poll_task = self._poll_task, None
        if task is not None and not task.done():
            task.cancel()

    def cancel(self) -> None:
        """Stop polling and disown every in-flight result. Idempotent."""
        self._epoch += 1
        self.stop_polling()

    async def close(self) -> None:
        """Cancel, then wait for the poll loop to finish unwinding."""
        task = self._poll_task
        self.cancel()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)

    async def send_follow_up(self, text: str) -> bool:
        """
        Send a follow-up message to the tracked agent.

        The text is shown as ``pending_follow_up`` right away. On failure it
        is withdrawn before the error is recorded.

        Args:
            text: Message text (surrounding whitespace is ignored)

        Returns:
            True if the server accepted the follow-up
        """
        agent_id = self.agent_id
        trimmed = text.strip()
        if agent_id is None or not trimmed:
            return False

        epoch = self._epoch
        self.pending_follow_up = PendingFollowUp(
            text=trimmed, known_ids=frozenset(m.id for m in self.messages)
        )
        self.is_sending_follow_up = True
        self.error = None
        self._notify()

        try:
            await self.gateway.add_follow_up(agent_id, trimmed)
        except CloudAgentsError as e:
            if self._is_current(epoch):
                self.pending_follow_up = None
                self.is_sending_follow_up = False
                self._record_error(e)
                if self._is_current(epoch):
                    self._notify()
            return False
        except asyncio.CancelledError:
            if self._is_current(epoch):
                self.pending_follow_up = None
                self.is_sending_follow_up = False
            raise

        if not self._is_current(epoch):
            return True

        self.is_sending_follow_up = False
        # Keep refreshes sequential: no poll cycle may overlap this one
        self.stop_polling()
        await self._refresh(epoch)
        if self._is_current(epoch) and self.agent is not None and self.agent.is_active:
            self.start_polling()
        return True

    async def _refresh(self, epoch: int) -> bool:
        agent_id = self.agent_id
        if agent_id is None:
            return False

        try:
            agent = await self.gateway.get_agent(agent_id)
        except CloudAgentsError as e:
            if self._is_current(epoch):
                self._record_error(e)
                if self._is_current(epoch):
                    self._notify()
            return False
        if not self._is_current(epoch):
            return False
        self.agent = agent

        fetched: list[Message] | None = None
        try:
            fetched = await self.gateway.get_conversation(agent_id)
        except NotFoundError:
            pass
        except CloudAgentsError as e:
            if self._is_current(epoch):
                self._record_error(e)
                if self._is_current(epoch):
                    self._notify()
            return False
        if not self._is_current(epoch):
            return False

        if fetched is not None:
            self.messages = merge_messages(
                self.messages, fetched, self.config.max_messages
            )
        self.error = None
        self._resolve_pending()
        self.state = SyncState.ACTIVE if agent.is_active else SyncState.TERMINAL
        self._write_back()
        self._notify()
        return True

    async def _poll(self, epoch: int) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        interval = self.config.interval
        try:
            while True:
                await asyncio.sleep(interval)
                await self._refresh(epoch)
                if not self._is_current(epoch):
                    return

                if self.agent is not None and self.agent.is_terminal:
                    logger.debug(
                        "Agent %s is %s, polling stopped",
                        self.agent_id,
                        self.agent.status.value,
                    )
                    break

                if isinstance(self.error, AuthError):
                    self.state = SyncState.FAILED
                    self._notify()
                    break

                max_duration = self.config.max_duration
                if max_duration is not None and loop.time() - started >= max_duration:
                    logger.warning(
                        "Polling for agent %s stopped after %.0fs", self.agent_id, max_duration
                    )
                    self._notify()
                    break

                interval = (
                    self.config.error_interval if self.error is not None else self.config.interval
                )
        finally:
            if self._poll_task is asyncio.current_task():
                self._poll_task = None

    def _switch_to(self, agent_id: str) -> None:
        self.stop_polling()
        self._epoch += 1
        self.agent_id = agent_id
        self.agent = None
        self.messages = []
        self.error = None
        self.pending_follow_up = None
        self.is_sending_follow_up = False
        self.state = SyncState.IDLE

        if self.cache is not None:
            entry = self.cache.get(agent_id)
            if entry is not None:
                self.agent = entry.agent
                self.messages = list(entry.messages)

    def _resolve_pending(self) -> None:
        pending = self.pending_follow_up
        if pending is None:
            return
        for message in self.messages:
            if (
                message.type is MessageType.USER_MESSAGE
                and message.text == pending.text
                and message.id not in pending.known_ids
            ):
                self.pending_follow_up = None
                return

    def _record_error(self, error: CloudAgentsError) -> None:
        # on_auth_failure may cancel this synchronizer; callers re-check the epoch
        logger.debug("Sync error for agent %s: %s", self.agent_id, error)
        self.error = error
        if isinstance(error, AuthError) and self.on_auth_failure is not None:
            self.on_auth_failure(error)

    def _write_back(self) -> None:
        if self.cache is not None and self.agent is not None:
            self.cache.put(self.agent, self.messages)

    def _is_current(self, epoch: int) -> bool:
        return epoch == self._epoch

    def _notify(self) -> None:
        if self.on_change is not None:
            self.on_change(self)
