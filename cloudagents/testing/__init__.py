"""Cloud Agents SDK testing utilities.

Provides a mock gateway and fixtures for testing applications that use the
Cloud Agents SDK.
"""

from cloudagents.testing.fixtures import (
    BASE_TIME,
    create_mock_agent,
    create_mock_message,
    create_mock_repository,
)
from cloudagents.testing.mock import (
    MemoryCredentialStore,
    MockCall,
    MockCloudAgentsClient,
    MockConfig,
    MockFailureMode,
)

__all__ = [
    # Mock client
    "MockCloudAgentsClient",
    "MockCall",
    "MockConfig",
    "MockFailureMode",
    "MemoryCredentialStore",
    # Helper functions
    "BASE_TIME",
    "create_mock_agent",
    "create_mock_message",
    "create_mock_repository",
]
