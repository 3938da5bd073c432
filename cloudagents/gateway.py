"""
The agent gateway contract.

Both the HTTP client (CloudAgentsClient) and the in-memory mock
(cloudagents.testing.MockCloudAgentsClient) satisfy AgentGateway, so the
synchronizer, prefetch cache, registry and session accept either.
"""

from typing import Protocol

from cloudagents.governor import Priority, RequestGovernor
from cloudagents.types.agents import Agent
from cloudagents.types.messages import FollowUpReceipt, Message
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo


class AgentGateway(Protocol):
    """Typed operations against the agent API."""

    # Ambient credential used by every call except validate_credential
    api_key: str | None

    @property
    def governor(self) -> RequestGovernor | None: ...

    async def validate_credential(self, api_key: str) -> UserInfo: ...

    async def list_repositories(self) -> list[Repository]: ...

    async def list_agents(self, limit: int = 20) -> list[Agent]: ...

    async def get_agent(self, agent_id: str) -> Agent: ...

    async def get_conversation(
        self, agent_id: str, priority: Priority = Priority.NORMAL
    ) -> list[Message]: ...

    async def launch_agent(
        self, prompt: str, repository: str, model: str | None = None
    ) -> Agent: ...

    async def add_follow_up(self, agent_id: str, prompt: str) -> FollowUpReceipt: ...

    async def stop_agent(self, agent_id: str) -> None: ...

    async def delete_agent(self, agent_id: str) -> None: ...

    async def list_models(self) -> list[str]: ...


class CredentialStore(Protocol):
    """Persists the API key between sessions (keychain, file, ...)."""

    def load(self) -> str | None: ...

    def save(self, api_key: str) -> None: ...

    def clear(self) -> None: ...
