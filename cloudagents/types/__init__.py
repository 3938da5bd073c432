"""Cloud Agents SDK type definitions.

This module exports all data model types used by the SDK.
"""

from cloudagents.types.agents import Agent, AgentSource, AgentStatus, AgentTarget
from cloudagents.types.messages import FollowUpReceipt, Message, MessageType
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo

__all__ = [
    # Agent types
    "Agent",
    "AgentSource",
    "AgentStatus",
    "AgentTarget",
    # Conversation types
    "Message",
    "MessageType",
    "FollowUpReceipt",
    # Repository types
    "Repository",
    # User types
    "UserInfo",
]
