"""Agent-related data models."""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum


class AgentStatus(str, Enum):
    """Lifecycle status reported by the server."""

    CREATING = "CREATING"
    RUNNING = "RUNNING"
    FINISHED = "FINISHED"
    ERROR = "ERROR"
    EXPIRED = "EXPIRED"
    STOPPED = "STOPPED"

    @property
    def is_active(self) -> bool:
        return self in (AgentStatus.CREATING, AgentStatus.RUNNING)

    @property
    def is_terminal(self) -> bool:
        return not self.is_active


@dataclass(frozen=True)
class AgentSource:
    """Where the agent reads code from."""

    repository: str  # e.g. "github.com/owner/repo"
    ref: str


@dataclass(frozen=True)
class AgentTarget:
    """Where the agent writes its work."""

    branch_name: str
    url: str
    pr_url: str | None
    auto_create_pr: bool


@dataclass(frozen=True)
class Agent:
    """A server-managed agent run."""

    id: str
    name: str
    status: AgentStatus
    source: AgentSource
    target: AgentTarget
    summary: str | None
    created_at: datetime
    model: str | None = None

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    @property
    def is_terminal(self) -> bool:
        return self.status.is_terminal
