"""
Pytest fixtures for Cloud Agents SDK testing.

Provides common fixtures and factory helpers for testing applications that
use the Cloud Agents SDK.
"""

from collections.abc import Generator
from datetime import datetime, timedelta, timezone
from pathlib import Path
from typing import Any

import pytest

from cloudagents.governor import GovernorConfig, RequestGovernor
from cloudagents.storage import PreferenceStore
from cloudagents.synchronizer import PollConfig
from cloudagents.testing.mock import MemoryCredentialStore, MockCloudAgentsClient
from cloudagents.types.agents import Agent, AgentSource, AgentStatus, AgentTarget
from cloudagents.types.messages import Message, MessageType
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo

# Fixed reference time so ordering in tests is deterministic
BASE_TIME = datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


# ============================================================================
# Factory Helpers
# ============================================================================


def create_mock_agent(
    agent_id: str = "a1",
    status: AgentStatus = AgentStatus.RUNNING,
    repository: str = "github.com/acme/widgets",
    created_at: datetime | None = None,
    **kwargs: Any,
) -> Agent:
    """
    Create an Agent with customizable fields.

    Args:
        agent_id: Agent ID
        status: Lifecycle status
        repository: Source repository
        created_at: Creation time (default: BASE_TIME)
        **kwargs: Additional fields to override (name, summary, model, target)

    Returns:
        Agent object
    """
    defaults: dict[str, Any] = {
        "name": f"Agent {agent_id}",
        "target": AgentTarget(
            branch_name=f"cursor/{agent_id}",
            url=f"https://cursor.com/agents/{agent_id}",
            pr_url=None,
            auto_create_pr=True,
        ),
        "summary": None,
        "model": None,
    }
    defaults.update(kwargs)
    return Agent(
        id=agent_id,
        status=status,
        source=AgentSource(repository=repository, ref="main"),
        created_at=created_at or BASE_TIME,
        **defaults,
    )


def create_mock_message(
    message_id: str,
    text: str = "hello",
    type: MessageType = MessageType.ASSISTANT_MESSAGE,
) -> Message:
    """Create a Message."""
    return Message(id=message_id, type=type, text=text)


def create_mock_repository(
    owner: str = "acme",
    name: str = "widgets",
    pushed_at: datetime | None = None,
    repository: str | None = None,
) -> Repository:
    """Create a Repository; ``repository`` defaults to "github.com/{owner}/{name}"."""
    return Repository(
        owner=owner,
        name=name,
        repository=repository or f"github.com/{owner}/{name}",
        pushed_at=pushed_at,
    )


# ============================================================================
# Mock Client Fixtures
# ============================================================================


@pytest.fixture
def mock_client() -> Generator[MockCloudAgentsClient, None, None]:
    """
    Provide a MockCloudAgentsClient for testing.

    Example:
        ```python
        async def test_my_feature(mock_client):
            mock_client.add_agent(create_mock_agent("a1"), messages=[])
            await my_function(mock_client)
            assert mock_client.was_called("get_agent")
        ```
    """
    client = MockCloudAgentsClient()
    yield client
    client.reset()


@pytest.fixture
def mock_client_with_agent(
    mock_client: MockCloudAgentsClient, sample_agent: Agent, sample_conversation: list[Message]
) -> MockCloudAgentsClient:
    """Provide a mock client holding one running agent with a short conversation."""
    mock_client.add_agent(sample_agent, messages=sample_conversation)
    return mock_client


@pytest.fixture
def memory_credentials() -> MemoryCredentialStore:
    """Provide an empty in-memory credential store."""
    return MemoryCredentialStore()


@pytest.fixture
def preference_store(tmp_path: Path) -> PreferenceStore:
    """Provide a PreferenceStore backed by a temporary file."""
    return PreferenceStore(tmp_path / "preferences.json")


# ============================================================================
# Timing Fixtures
# ============================================================================


@pytest.fixture
def fast_governor() -> RequestGovernor:
    """Provide a governor with short spacing so tests run quickly."""
    return RequestGovernor(GovernorConfig(max_concurrent=3, min_spacing=0.01, poll_interval=0.005))


@pytest.fixture
def fast_poll_config() -> PollConfig:
    """Provide a PollConfig with millisecond intervals."""
    return PollConfig(interval=0.01, error_interval=0.02, max_duration=5.0)


# ============================================================================
# Sample Data Fixtures
# ============================================================================


@pytest.fixture
def sample_agent() -> Agent:
    """Provide a running sample Agent."""
    return create_mock_agent("a1")


@pytest.fixture
def sample_finished_agent() -> Agent:
    """Provide a finished sample Agent with a summary."""
    return create_mock_agent(
        "a2",
        status=AgentStatus.FINISHED,
        created_at=BASE_TIME - timedelta(hours=1),
        summary="Added input validation to the widget form.",
    )


@pytest.fixture
def sample_conversation() -> list[Message]:
    """Provide a two-message conversation."""
    return [
        create_mock_message("m1", "Fix the flaky test", MessageType.USER_MESSAGE),
        create_mock_message("m2", "Looking into it."),
    ]


@pytest.fixture
def sample_repository() -> Repository:
    """Provide a sample Repository."""
    return create_mock_repository()


@pytest.fixture
def sample_user() -> UserInfo:
    """Provide sample UserInfo."""
    return UserInfo(api_key_name="test-key", created_at=BASE_TIME, user_email="dev@example.com")
