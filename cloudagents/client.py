"""
Cloud Agents SDK client.

Provides the main interface for interacting with the Cloud Agents API.
"""

import os
from typing import Any

import httpx

from cloudagents.clients import AgentsClient, MeClient, ReposClient
from cloudagents.exceptions import ConfigurationError
from cloudagents.governor import Priority, RequestGovernor
from cloudagents.transport import AsyncHTTPTransport, RetryConfig
from cloudagents.types.agents import Agent
from cloudagents.types.messages import FollowUpReceipt, Message
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo


class CloudAgentsClient:
    """
    Async client for the Cloud Agents API.

    Aggregates the resource clients behind one transport and one request
    governor, and exposes the flat AgentGateway operations used by the
    synchronization engine.

    Example:
        ```python
        import asyncio
        from cloudagents import CloudAgentsClient

        async def main():
            async with CloudAgentsClient(api_key="key_...") as client:
                agents = await client.list_agents(limit=5)
                for agent in agents:
                    print(agent.name, agent.status.value)

        asyncio.run(main())
        ```
    """

    DEFAULT_BASE_URL = "https://api.cursor.com/v0"
    DEFAULT_TIMEOUT = 15.0

    def __init__(
        self,
        api_key: str | None = None,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = DEFAULT_TIMEOUT,
        retry_config: RetryConfig | None = None,
        governor: RequestGovernor | None = None,
        http_client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the client.

        Args:
            api_key: API key (may be set later via the api_key property)
            base_url: Base URL for API requests (default: https://api.cursor.com/v0)
            timeout: Request timeout in seconds (default: 15.0)
            retry_config: Configuration for retry behavior (optional, off by default)
            governor: Request governor to share with other clients (optional)
            http_client: Preconfigured httpx client (optional)
        """
        self.base_url = base_url
        self.timeout = timeout
        self.governor = governor or RequestGovernor()

        self._transport = AsyncHTTPTransport(
            base_url=base_url,
            api_key=api_key,
            governor=self.governor,
            timeout=timeout,
            retry_config=retry_config,
            http_client=http_client,
        )

        # Initialize resource clients
        self.me = MeClient(self._transport)
        self.repos = ReposClient(self._transport)
        self.agents = AgentsClient(self._transport)

    @classmethod
    def from_env(
        cls,
        retry_config: RetryConfig | None = None,
        governor: RequestGovernor | None = None,
    ) -> "CloudAgentsClient":
        """
        Create a client from environment variables.

        Environment variables:
            CLOUD_AGENTS_API_KEY: API key (required)
            CLOUD_AGENTS_BASE_URL: Base URL for API (optional)
            CLOUD_AGENTS_TIMEOUT: Request timeout in seconds (optional, default: 15)

        Raises:
            ConfigurationError: If a variable is missing or invalid
        """
        api_key = os.environ.get("CLOUD_AGENTS_API_KEY")
        base_url = os.environ.get("CLOUD_AGENTS_BASE_URL", cls.DEFAULT_BASE_URL)
        timeout_str = os.environ.get("CLOUD_AGENTS_TIMEOUT")

        if not api_key:
            raise ConfigurationError("CLOUD_AGENTS_API_KEY environment variable not set")

        timeout = cls.DEFAULT_TIMEOUT
        if timeout_str:
            try:
                timeout = float(timeout_str)
            except ValueError:
                raise ConfigurationError(
                    f"Invalid CLOUD_AGENTS_TIMEOUT: {timeout_str!r}. Must be a number"
                ) from None
            if timeout <= 0:
                raise ConfigurationError("CLOUD_AGENTS_TIMEOUT must be positive")

        return cls(
            api_key=api_key,
            base_url=base_url,
            timeout=timeout,
            retry_config=retry_config,
            governor=governor,
        )

    @property
    def api_key(self) -> str | None:
        return self._transport.api_key

    @api_key.setter
    def api_key(self, value: str | None) -> None:
        self._transport.api_key = value

    async def validate_credential(self, api_key: str) -> UserInfo:
        return await self.me.validate(api_key)

    async def list_repositories(self) -> list[Repository]:
        return await self.repos.list()

    async def list_agents(self, limit: int = 20) -> list[Agent]:
        return await self.agents.list(limit)

    async def get_agent(self, agent_id: str) -> Agent:
        return await self.agents.get(agent_id)

    async def get_conversation(
        self, agent_id: str, priority: Priority = Priority.NORMAL
    ) -> list[Message]:
        return await self.agents.get_conversation(agent_id, priority)

    async def launch_agent(
        self, prompt: str, repository: str, model: str | None = None
    ) -> Agent:
        return await self.agents.launch(prompt, repository, model)

    async def add_follow_up(self, agent_id: str, prompt: str) -> FollowUpReceipt:
        return await self.agents.add_follow_up(agent_id, prompt)

    async def stop_agent(self, agent_id: str) -> None:
        await self.agents.stop(agent_id)

    async def delete_agent(self, agent_id: str) -> None:
        await self.agents.delete(agent_id)

    async def list_models(self) -> list[str]:
        return await self.agents.list_models()

    async def close(self) -> None:
        """Close the client and release resources."""
        await self._transport.close()

    async def __aenter__(self) -> "CloudAgentsClient":
        return self

    async def __aexit__(self, *args: Any) -> None:
        await self.close()
