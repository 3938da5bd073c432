"""Conversation message models."""

from dataclasses import dataclass
from enum import Enum


class MessageType(str, Enum):
    USER_MESSAGE = "user_message"
    ASSISTANT_MESSAGE = "assistant_message"


@dataclass(frozen=True)
class Message:
    """One entry of an agent conversation. ``id`` is unique per conversation."""

    id: str
    type: MessageType
    text: str


@dataclass(frozen=True)
class FollowUpReceipt:
    """Response from a follow-up submission. ``id`` is None for an empty acknowledgement."""

    id: str | None = None
