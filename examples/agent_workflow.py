#!/usr/bin/env python3
"""
Cloud Agents SDK - Complete Session Example

This example walks through a full session against the live API:
1. Restore or validate the API key
2. Load runs and repositories, and warm the conversation cache
3. Launch an agent on the selected repository and follow it
4. Send a follow-up (or continue the agent if it already finished)

Requires CLOUD_AGENTS_API_KEY. Launching is skipped unless
CLOUD_AGENTS_EXAMPLE_PROMPT is set.
"""

import asyncio
import logging
import os
import sys
from pathlib import Path

from cloudagents import (
    AgentSession,
    CloudAgentsClient,
    CloudAgentsError,
    ConversationSynchronizer,
    GitHubMetadataClient,
    PreferenceStore,
    configure_logging,
)
from cloudagents.testing import MemoryCredentialStore


def render(sync: ConversationSynchronizer) -> None:
    status = sync.agent.status.value if sync.agent else "?"
    print(f"   [{sync.state.value}/{status}] {len(sync.messages)} messages")


async def main() -> int:
    """Run the complete session example."""
    print("=== Cloud Agents Python SDK Example ===\n")
    configure_logging(level=logging.WARNING)

    try:
        client = CloudAgentsClient.from_env()
    except CloudAgentsError as e:
        print(f"Configuration error: {e}")
        return 1

    prefs = PreferenceStore(Path.home() / ".cloudagents" / "preferences.json")
    async with client, GitHubMetadataClient() as github:
        key = client.api_key
        client.api_key = None
        session = AgentSession(
            client,
            credentials=MemoryCredentialStore(key),
            preferences=prefs,
            metadata=github.pushed_at,
            on_change=render,
            on_auth_failure=lambda e: print(f"   Signed out: {e}"),
        )

        # Step 1: Credentials
        print("1. Validating API key...")
        if not await session.restore():
            print("   API key was rejected.")
            return 1
        if session.user is not None:
            print(f"   Signed in as {session.user.user_email}")

        # Step 2: Runs and repositories
        print("\n2. Loading runs and repositories...")
        runs = await session.refresh_runs()
        repos = await session.load_repositories()
        print(f"   {len(runs)} recent runs, {len(repos)} repositories")
        for repo in repos[:5]:
            print(f"   - {repo.owner}/{repo.name}")
        session.warm_cache()

        selected = session.registry.selected_repository
        prompt = os.environ.get("CLOUD_AGENTS_EXAMPLE_PROMPT")
        if selected is None or not prompt:
            print("\nSet CLOUD_AGENTS_EXAMPLE_PROMPT to launch an agent.")
            await session.close()
            return 0

        # Step 3: Launch
        print(f"\n3. Launching on {selected.repository}...")
        agent = await session.submit(prompt)
        print(f"   Agent {agent.id}: {agent.target.url}")
        await asyncio.sleep(10)

        # Step 4: Follow-up or continuation
        print("\n4. Sending a follow-up...")
        followed = await session.submit("Please also summarize what you changed.")
        if followed.id != agent.id:
            print(f"   Agent had finished; continued as {followed.id}")
            print(f"   Earlier turns kept: {len(session.turns)}")

        await session.close_conversation()
        await session.close()

    print("\n=== Example completed successfully! ===")
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
