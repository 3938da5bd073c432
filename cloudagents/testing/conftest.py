"""
Pytest plugin for Cloud Agents SDK testing fixtures.

This module re-exports all fixtures from fixtures.py so they can be
automatically discovered by pytest when this package is installed.

To use these fixtures in your tests, add this to your conftest.py:

    pytest_plugins = ["cloudagents.testing.conftest"]
"""

# Re-export all fixtures for pytest auto-discovery
from cloudagents.testing.fixtures import (
    fast_governor,
    fast_poll_config,
    memory_credentials,
    mock_client,
    mock_client_with_agent,
    preference_store,
    sample_agent,
    sample_conversation,
    sample_finished_agent,
    sample_repository,
    sample_user,
)

__all__ = [
    "mock_client",
    "mock_client_with_agent",
    "memory_credentials",
    "preference_store",
    "fast_governor",
    "fast_poll_config",
    "sample_agent",
    "sample_finished_agent",
    "sample_conversation",
    "sample_repository",
    "sample_user",
]
