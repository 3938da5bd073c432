"""
Strict response decoding for the Cloud Agents API.

Every payload is decoded into an explicit result type. Any shape mismatch
(missing key, wrong type, unknown enum value, unparseable timestamp) raises
MalformedResponseError instead of producing partial data.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Any

from cloudagents.exceptions import MalformedResponseError
from cloudagents.types.agents import Agent, AgentSource, AgentStatus, AgentTarget
from cloudagents.types.messages import FollowUpReceipt, Message, MessageType
from cloudagents.types.repos import Repository
from cloudagents.types.users import UserInfo

_TIMESTAMP_RE = re.compile(
    r"^(\d{4})-(\d{2})-(\d{2})T(\d{2}):(\d{2}):(\d{2})"
    r"(?:\.(\d+))?"
    r"(Z|[+-]\d{2}:?\d{2})$"
)


def parse_timestamp(value: Any) -> datetime:
    """
    Parse an ISO-8601 timestamp with or without fractional seconds.

    Accepts "2024-01-15T10:30:00Z" and "2024-01-15T10:30:00.123Z" (and
    numeric offsets). Returns an aware datetime.

    Raises:
        MalformedResponseError: If the value matches neither encoding
    """
    if not isinstance(value, str):
        raise MalformedResponseError(f"Expected timestamp string, got {type(value).__name__}")

    match = _TIMESTAMP_RE.match(value)
    if match is None:
        raise MalformedResponseError(f"Unparseable timestamp: {value!r}")

    year, month, day, hour, minute, second, fraction, zone = match.groups()
    # datetime carries microseconds; extra precision is dropped
    microsecond = int((fraction or "0")[:6].ljust(6, "0"))

    if zone == "Z":
        tz = timezone.utc
    else:
        sign = 1 if zone[0] == "+" else -1
        digits = zone[1:].replace(":", "")
        offset = timedelta(hours=int(digits[:2]), minutes=int(digits[2:]))
        tz = timezone(sign * offset)

    try:
        return datetime(
            int(year), int(month), int(day),
            int(hour), int(minute), int(second),
            microsecond, tzinfo=tz,
        )
    except ValueError as e:
        raise MalformedResponseError(f"Invalid timestamp: {value!r}") from e


def format_timestamp(value: datetime) -> str:
    """Format a datetime the way the API sends it (UTC, millisecond precision)."""
    utc = value.astimezone(timezone.utc)
    return utc.strftime("%Y-%m-%dT%H:%M:%S.") + f"{utc.microsecond // 1000:03d}Z"


def _require_object(data: Any, what: str) -> dict[str, Any]:
    if not isinstance(data, dict):
        raise MalformedResponseError(f"Expected {what} object, got {type(data).__name__}")
    return data


def _require_str(data: dict[str, Any], key: str) -> str:
    value = data.get(key)
    if not isinstance(value, str):
        raise MalformedResponseError(f"Missing or invalid string field {key!r}")
    return value


def _optional_str(data: dict[str, Any], key: str) -> str | None:
    value = data.get(key)
    if value is None:
        return None
    if not isinstance(value, str):
        raise MalformedResponseError(f"Invalid string field {key!r}")
    return value


def _require_list(data: dict[str, Any], key: str) -> list[Any]:
    value = data.get(key)
    if not isinstance(value, list):
        raise MalformedResponseError(f"Missing or invalid list field {key!r}")
    return value


def decode_user_info(data: Any) -> UserInfo:
    data = _require_object(data, "user")
    return UserInfo(
        api_key_name=_require_str(data, "apiKeyName"),
        created_at=parse_timestamp(data.get("createdAt")),
        user_email=_require_str(data, "userEmail"),
    )


def decode_repository(data: Any) -> Repository:
    data = _require_object(data, "repository")
    pushed_at = data.get("pushedAt")
    return Repository(
        owner=_require_str(data, "owner"),
        name=_require_str(data, "name"),
        repository=_require_str(data, "repository"),
        pushed_at=parse_timestamp(pushed_at) if pushed_at is not None else None,
    )


def decode_agent(data: Any) -> Agent:
    data = _require_object(data, "agent")
    source = _require_object(data.get("source"), "agent source")
    target = _require_object(data.get("target"), "agent target")

    try:
        status = AgentStatus(data.get("status"))
    except ValueError as e:
        raise MalformedResponseError(f"Unknown agent status: {data.get('status')!r}") from e

    auto_create_pr = target.get("autoCreatePr")
    if not isinstance(auto_create_pr, bool):
        raise MalformedResponseError("Missing or invalid boolean field 'autoCreatePr'")

    return Agent(
        id=_require_str(data, "id"),
        name=_require_str(data, "name"),
        status=status,
        source=AgentSource(
            repository=_require_str(source, "repository"),
            ref=_require_str(source, "ref"),
        ),
        target=AgentTarget(
            branch_name=_require_str(target, "branchName"),
            url=_require_str(target, "url"),
            pr_url=_optional_str(target, "prUrl"),
            auto_create_pr=auto_create_pr,
        ),
        summary=_optional_str(data, "summary"),
        created_at=parse_timestamp(data.get("createdAt")),
        model=_optional_str(data, "model"),
    )


def decode_message(data: Any) -> Message:
    data = _require_object(data, "message")
    try:
        message_type = MessageType(data.get("type"))
    except ValueError as e:
        raise MalformedResponseError(f"Unknown message type: {data.get('type')!r}") from e
    return Message(
        id=_require_str(data, "id"),
        type=message_type,
        text=_require_str(data, "text"),
    )


def decode_repository_list(data: Any) -> list[Repository]:
    data = _require_object(data, "repository list")
    return [decode_repository(item) for item in _require_list(data, "repositories")]


def decode_agent_list(data: Any) -> list[Agent]:
    data = _require_object(data, "agent list")
    return [decode_agent(item) for item in _require_list(data, "agents")]


def decode_conversation(data: Any) -> list[Message]:
    data = _require_object(data, "conversation")
    return [decode_message(item) for item in _require_list(data, "messages")]


def decode_follow_up(data: Any) -> FollowUpReceipt:
    # The endpoint may acknowledge with an empty body
    if data is None:
        return FollowUpReceipt()
    data = _require_object(data, "follow-up")
    return FollowUpReceipt(id=_optional_str(data, "id"))


def decode_model_list(data: Any) -> list[str]:
    data = _require_object(data, "model list")
    models = _require_list(data, "models")
    if not all(isinstance(m, str) for m in models):
        raise MalformedResponseError("Invalid entry in 'models'")
    return models
