#!/usr/bin/env python3
"""
Basic Cloud Agents SDK usage example.

Runs offline against the in-memory mock gateway.
Run with: python examples/basic_usage.py
"""

import asyncio

from cloudagents import (
    CloudAgentsError,
    ConfigurationError,
    ConversationSynchronizer,
    PollConfig,
    normalize_repository,
    repositories_match,
)
from cloudagents.testing import MockCloudAgentsClient, create_mock_agent, create_mock_message
from cloudagents.types.agents import AgentStatus


async def main() -> None:
    print("=== Cloud Agents SDK Basic Usage Example ===\n")

    # 1. Exception hierarchy
    print("1. Testing exception classes...")
    try:
        raise ConfigurationError("CLOUD_AGENTS_API_KEY environment variable not set")
    except CloudAgentsError as e:
        print(f"   Caught CloudAgentsError: {e}")
        print(f"   Code: {e.code}, Message: {e.message}")
    print("\n   OK: Exception classes working\n")

    # 2. Repository normalization
    print("2. Testing repository normalization...")
    for raw in ("github.com/Acme/Widgets/", "https://github.com/acme/widgets", "acme/widgets"):
        print(f"   {raw!r:40} -> {normalize_repository(raw).owner_and_name}")
    assert repositories_match("github.com/acme/widgets", "ACME/Widgets")
    print("\n   OK: Normalization working\n")

    # 3. Synchronizing a conversation
    print("3. Following an agent until it finishes...")
    mock = MockCloudAgentsClient()
    mock.add_agent(
        create_mock_agent("a1"),
        messages=[create_mock_message("m1", "Looking at the failing test.")],
    )

    def render(sync: ConversationSynchronizer) -> None:
        pending = f" (sending: {sync.pending_follow_up.text!r})" if sync.pending_follow_up else ""
        print(f"   [{sync.state.value}] {len(sync.messages)} messages{pending}")

    async with ConversationSynchronizer(
        mock, config=PollConfig(interval=0.05), on_change=render
    ) as sync:
        await sync.load_conversation("a1")
        await sync.send_follow_up("add tests")

        mock.append_message("a1", "Tests added.")
        mock.set_status("a1", AgentStatus.FINISHED, summary="Fixed the race and added tests.")
        while sync.is_polling:
            await asyncio.sleep(0.05)

        for message in sync.messages:
            print(f"   {message.type.value:18} {message.text}")

    print(f"\n   Requests made: get_agent x{mock.call_count('get_agent')}, "
          f"get_conversation x{mock.call_count('get_conversation')}")
    print("\n   OK: Synchronizer working\n")


if __name__ == "__main__":
    asyncio.run(main())
