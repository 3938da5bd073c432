"""Cloud Agents SDK resource clients."""

from cloudagents.clients.agents import AgentsClient
from cloudagents.clients.me import MeClient
from cloudagents.clients.repos import ReposClient

__all__ = [
    "AgentsClient",
    "MeClient",
    "ReposClient",
]
