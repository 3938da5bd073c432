"""Shared pytest configuration for the Cloud Agents SDK tests."""

from cloudagents.testing.conftest import (  # noqa: F401
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
