"""
Tests for strict response decoding.

Feature: response decoding
"""

from datetime import datetime, timedelta, timezone
from typing import Any

import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cloudagents.decoding import (
    decode_agent,
    decode_agent_list,
    decode_conversation,
    decode_follow_up,
    decode_model_list,
    decode_repository,
    decode_repository_list,
    decode_user_info,
    format_timestamp,
    parse_timestamp,
)
from cloudagents.exceptions import MalformedResponseError
from cloudagents.types.agents import AgentStatus
from cloudagents.types.messages import MessageType

utc_datetimes = st.datetimes(
    min_value=datetime(2000, 1, 1),
    max_value=datetime(2099, 12, 31),
    timezones=st.just(timezone.utc),
)


def agent_payload(**overrides: Any) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": "bc_123",
        "name": "Fix flaky test",
        "status": "RUNNING",
        "source": {"repository": "github.com/acme/widgets", "ref": "main"},
        "target": {
            "branchName": "cursor/fix-flaky-test",
            "url": "https://cursor.com/agents?id=bc_123",
            "autoCreatePr": True,
        },
        "createdAt": "2024-01-15T10:30:00Z",
    }
    payload.update(overrides)
    return payload


@given(dt=utc_datetimes)
@settings(max_examples=100)
def test_timestamps_parse_without_fraction(dt: datetime) -> None:
    text = dt.strftime("%Y-%m-%dT%H:%M:%SZ")
    assert parse_timestamp(text) == dt.replace(microsecond=0)


@given(dt=utc_datetimes)
@settings(max_examples=100)
def test_formatted_timestamps_parse_back_to_millisecond_precision(dt: datetime) -> None:
    parsed = parse_timestamp(format_timestamp(dt))
    assert parsed == dt.replace(microsecond=dt.microsecond // 1000 * 1000)


def test_timestamp_encodings_agree() -> None:
    assert parse_timestamp("2024-01-15T10:30:00Z") == parse_timestamp("2024-01-15T10:30:00.000Z")
    assert parse_timestamp("2024-01-15T10:30:00.123Z").microsecond == 123000


def test_timestamp_with_offset() -> None:
    parsed = parse_timestamp("2024-01-15T12:30:00+02:00")
    assert parsed.utcoffset() == timedelta(hours=2)
    assert parsed == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize(
    "value",
    ["", "yesterday", "2024-01-15", "2024-01-15 10:30:00Z", "2024-13-40T10:30:00Z", 1705314600, None],
)
def test_bad_timestamps_are_malformed(value: Any) -> None:
    with pytest.raises(MalformedResponseError):
        parse_timestamp(value)


def test_decode_agent_full() -> None:
    agent = decode_agent(
        agent_payload(
            status="FINISHED",
            summary="Fixed it",
            model="gpt-5",
            target={
                "branchName": "cursor/x",
                "url": "https://cursor.com/agents?id=bc_123",
                "prUrl": "https://github.com/acme/widgets/pull/7",
                "autoCreatePr": True,
            },
        )
    )
    assert agent.id == "bc_123"
    assert agent.status is AgentStatus.FINISHED
    assert agent.is_terminal
    assert agent.summary == "Fixed it"
    assert agent.model == "gpt-5"
    assert agent.source.repository == "github.com/acme/widgets"
    assert agent.target.pr_url == "https://github.com/acme/widgets/pull/7"
    assert agent.created_at == datetime(2024, 1, 15, 10, 30, tzinfo=timezone.utc)


def test_decode_agent_optional_fields_absent() -> None:
    agent = decode_agent(agent_payload())
    assert agent.summary is None
    assert agent.model is None
    assert agent.target.pr_url is None
    assert agent.is_active


@pytest.mark.parametrize(
    "overrides",
    [
        {"status": "PAUSED"},
        {"id": 42},
        {"name": None},
        {"source": "github.com/acme/widgets"},
        {"target": {"branchName": "b", "url": "u", "autoCreatePr": "yes"}},
        {"createdAt": "not a date"},
        {"summary": ["not", "text"]},
    ],
)
def test_decode_agent_rejects_bad_shapes(overrides: dict[str, Any]) -> None:
    with pytest.raises(MalformedResponseError):
        decode_agent(agent_payload(**overrides))


def test_decode_agent_list() -> None:
    agents = decode_agent_list({"agents": [agent_payload(id="a1"), agent_payload(id="a2")]})
    assert [a.id for a in agents] == ["a1", "a2"]

    with pytest.raises(MalformedResponseError):
        decode_agent_list({"items": []})
    with pytest.raises(MalformedResponseError):
        decode_agent_list([agent_payload()])


def test_decode_conversation() -> None:
    messages = decode_conversation(
        {
            "id": "bc_123",
            "messages": [
                {"id": "m1", "type": "user_message", "text": "add tests"},
                {"id": "m2", "type": "assistant_message", "text": "On it"},
            ],
        }
    )
    assert [m.id for m in messages] == ["m1", "m2"]
    assert messages[0].type is MessageType.USER_MESSAGE
    assert messages[1].type is MessageType.ASSISTANT_MESSAGE


def test_decode_conversation_rejects_unknown_message_type() -> None:
    with pytest.raises(MalformedResponseError):
        decode_conversation({"messages": [{"id": "m1", "type": "tool_call", "text": "x"}]})


def test_decode_repository_variants() -> None:
    repo = decode_repository(
        {"owner": "acme", "name": "widgets", "repository": "https://github.com/acme/widgets"}
    )
    assert repo.pushed_at is None

    repos = decode_repository_list(
        {
            "repositories": [
                {
                    "owner": "acme",
                    "name": "gears",
                    "repository": "https://github.com/acme/gears",
                    "pushedAt": "2024-01-10T08:00:00.000Z",
                }
            ]
        }
    )
    assert repos[0].pushed_at == datetime(2024, 1, 10, 8, tzinfo=timezone.utc)

    with pytest.raises(MalformedResponseError):
        decode_repository({"owner": "acme", "name": "widgets"})


def test_decode_user_info() -> None:
    user = decode_user_info(
        {"apiKeyName": "laptop", "createdAt": "2024-01-01T00:00:00Z", "userEmail": "dev@example.com"}
    )
    assert user.api_key_name == "laptop"
    assert user.user_email == "dev@example.com"

    with pytest.raises(MalformedResponseError):
        decode_user_info({"apiKeyName": "laptop"})


def test_decode_follow_up_and_models() -> None:
    assert decode_follow_up({"id": "bc_123"}).id == "bc_123"
    assert decode_model_list({"models": ["gpt-5", "composer-1"]}) == ["gpt-5", "composer-1"]

    with pytest.raises(MalformedResponseError):
        decode_follow_up(["bc_123"])
    with pytest.raises(MalformedResponseError):
        decode_follow_up({"id": 5})
    with pytest.raises(MalformedResponseError):
        decode_model_list({"models": ["gpt-5", 3]})
    with pytest.raises(MalformedResponseError):
        decode_model_list(None)


@pytest.mark.parametrize("data", [None, {}])
def test_decode_follow_up_accepts_empty_acknowledgement(data: object) -> None:
    assert decode_follow_up(data).id is None
