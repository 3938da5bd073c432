"""Agents resource client."""

from typing import TYPE_CHECKING, Any

from cloudagents.decoding import (
    decode_agent,
    decode_agent_list,
    decode_conversation,
    decode_follow_up,
    decode_model_list,
)
from cloudagents.exceptions import NotFoundError
from cloudagents.governor import Priority
from cloudagents.logging import get_logger
from cloudagents.types.agents import Agent
from cloudagents.types.messages import FollowUpReceipt, Message

if TYPE_CHECKING:
    from cloudagents.transport import AsyncHTTPTransport

logger = get_logger("http")


class AgentsClient:
    """Client for agent lifecycle and conversation operations."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        """
        Initialize the agents client.

        Args:
            transport: Async HTTP transport for making requests
        """
        self.transport = transport

    async def get(self, agent_id: str) -> Agent:
        """
        Get the current snapshot of an agent.

        Raises:
            NotFoundError: If the agent does not exist
        """
        response = await self.transport.request("GET", f"/agents/{agent_id}")
        return decode_agent(response)

    async def get_conversation(
        self, agent_id: str, priority: Priority = Priority.NORMAL
    ) -> list[Message]:
        """
        Get an agent's conversation.

        A NotFoundError here usually means the conversation has not been
        created yet, not that the agent is gone.
        """
        response = await self.transport.request(
            "GET", f"/agents/{agent_id}/conversation", priority=priority
        )
        return decode_conversation(response)

    async def launch(
        self,
        prompt: str,
        repository: str,
        model: str | None = None,
        ref: str | None = None,
    ) -> Agent:
        """
        Launch a new agent against a repository.

        A pull request is always requested for the agent's branch.

        Args:
            prompt: Task description for the agent
            repository: Repository URL or "owner/name"
            model: Model to run (server default if omitted)
            ref: Branch or commit to start from (server default if omitted)

        Returns:
            The newly created Agent
        """
        source: dict[str, Any] = {"repository": repository}
        if ref:
            source["ref"] = ref

        body: dict[str, Any] = {
            "prompt": {"text": prompt},
            "source": source,
            "target": {"autoCreatePr": True},
        }
        if model:
            body["model"] = model

        response = await self.transport.request(
            "POST", "/agents", body=body, priority=Priority.USER_ACTION
        )
        return decode_agent(response)

    async def add_follow_up(self, agent_id: str, prompt: str) -> FollowUpReceipt:
        """
        Append a user message to an agent's conversation.

        Failure is recoverable: the agent may simply not accept follow-ups in
        its current state.
        """
        response = await self.transport.request(
            "POST",
            f"/agents/{agent_id}/followup",
            body={"prompt": {"text": prompt}},
            priority=Priority.USER_ACTION,
        )
        return decode_follow_up(response)

    async def stop(self, agent_id: str) -> None:
        """
        Stop a running agent.

        Stopping an agent that is already stopped or gone (404/409) is
        treated as success.
        """
        try:
            await self.transport.request(
                "POST", f"/agents/{agent_id}/stop", priority=Priority.USER_ACTION
            )
        except NotFoundError:
            logger.debug("Agent %s already stopped", agent_id)

    async def delete(self, agent_id: str) -> None:
        """Delete an agent. Deleting an agent that no longer exists is a no-op."""
        try:
            await self.transport.request(
                "DELETE", f"/agents/{agent_id}", priority=Priority.USER_ACTION
            )
        except NotFoundError:
            logger.debug("Agent %s already deleted", agent_id)

    async def list_models(self) -> list[str]:
        """List model names available for new agents."""
        response = await self.transport.request("GET", "/models")
        return decode_model_list(response)

    # Kept last: the name shadows the builtin for the rest of the class body
    async def list(self, limit: int = 20) -> list[Agent]:
        """
        List the most recent agents.

        Args:
            limit: Maximum number of agents to return

        Returns:
            Agents, newest first as ordered by the server
        """
        response = await self.transport.request(
            "GET", "/agents", params={"limit": limit}
        )
        return decode_agent_list(response)
