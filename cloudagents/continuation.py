"""
Continuation protocol.

When a follow-up to a finished agent is rejected, the caller may launch a
new "continuation" agent on the same repository, seeded with the previous
agent's summary. The two steps are separate so each can fail on its own:

    outcome = await try_follow_up(sync, text)
    if outcome.should_continue:
        agent = await launch_continuation(client, sync.agent, text, model)
"""

from dataclasses import dataclass
from typing import TYPE_CHECKING

from cloudagents.exceptions import AuthError, CloudAgentsError
from cloudagents.logging import get_logger
from cloudagents.types.agents import Agent

if TYPE_CHECKING:
    from cloudagents.gateway import AgentGateway
    from cloudagents.synchronizer import ConversationSynchronizer

logger = get_logger("sync")

CONTINUATION_TEMPLATE = (
    "[Continuing from previous work]\n"
    "Previous task completed: {summary}\n\n"
    "New request: {prompt}"
)


@dataclass(frozen=True)
class FollowUpOutcome:
    """Result of the first step of the protocol."""

    accepted: bool
    error: CloudAgentsError | None = None
    agent_terminal: bool = False

    @property
    def should_continue(self) -> bool:
        """True when a continuation agent is the right fallback."""
        return (
            not self.accepted
            and self.error is not None
            and not isinstance(self.error, AuthError)
            and self.agent_terminal
        )


async def try_follow_up(
    synchronizer: "ConversationSynchronizer", text: str
) -> FollowUpOutcome:
    """
    Send a follow-up through the synchronizer.

    The optimistic message is already rolled back when this returns a
    rejected outcome.
    """
    accepted = await synchronizer.send_follow_up(text)
    agent = synchronizer.agent
    terminal = agent is not None and agent.is_terminal
    if accepted:
        return FollowUpOutcome(accepted=True, agent_terminal=terminal)

    if synchronizer.error is not None:
        logger.debug(
            "Follow-up to %s rejected: %s", synchronizer.agent_id, synchronizer.error
        )
    return FollowUpOutcome(accepted=False, error=synchronizer.error, agent_terminal=terminal)


def build_continuation_prompt(prompt: str, previous: Agent | None) -> str:
    """Prefix ``prompt`` with the previous agent's summary, when there is one."""
    if previous is None or not previous.summary:
        return prompt
    return CONTINUATION_TEMPLATE.format(summary=previous.summary, prompt=prompt)


async def launch_continuation(
    gateway: "AgentGateway",
    previous: Agent,
    prompt: str,
    model: str | None = None,
    repository: str | None = None,
) -> Agent:
    """
    Launch a new agent that carries on from ``previous``.

    Args:
        gateway: Agent API
        previous: The finished agent being continued
        prompt: The user's new request
        model: Model for the new agent (defaults to the previous agent's)
        repository: Repository to launch on (defaults to the previous agent's)

    Returns:
        The continuation agent
    """
    target = repository or previous.source.repository
    logger.debug("Launching continuation of %s on %s", previous.id, target)
    return await gateway.launch_agent(
        build_continuation_prompt(prompt, previous),
        target,
        model or previous.model,
    )
