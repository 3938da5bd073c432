"""
Property-based tests for Cloud Agents SDK logging.

Credentials must never reach log output in full.
"""

import io
import logging
from collections.abc import Generator

import httpx
import pytest
from hypothesis import given, settings
from hypothesis import strategies as st

from cloudagents.governor import GovernorConfig, RequestGovernor
from cloudagents.logging import (
    configure_logging,
    get_logger,
    log_http_request,
    log_http_response,
    mask_sensitive_data,
    safe_log_dict,
    truncate_secret,
)
from cloudagents.transport import AsyncHTTPTransport

alnum = "ABCDEFGHIJKLMNOPQRSTUVWXYZabcdefghijklmnopqrstuvwxyz0123456789"

api_key_strategy = st.text(alphabet=st.sampled_from(alnum), min_size=16, max_size=48).map(
    lambda s: f"key_{s}"
)

basic_credential_strategy = st.text(
    alphabet=st.sampled_from(alnum + "+/="), min_size=16, max_size=64
)


@pytest.fixture
def http_log() -> Generator[io.StringIO, None, None]:
    """Capture cloudagents.http output at DEBUG."""
    buffer = io.StringIO()
    handler = logging.StreamHandler(buffer)
    http_logger = logging.getLogger("cloudagents.http")
    previous = http_logger.level
    http_logger.setLevel(logging.DEBUG)
    http_logger.addHandler(handler)
    yield buffer
    http_logger.removeHandler(handler)
    http_logger.setLevel(previous)


@given(api_key=api_key_strategy)
@settings(max_examples=100)
def test_api_keys_are_masked(api_key: str) -> None:
    masked = mask_sensitive_data(f"validating {api_key} against /me")
    assert api_key not in masked
    assert "[API_KEY_REDACTED]" in masked


@given(credential=basic_credential_strategy)
@settings(max_examples=100)
def test_authorization_values_are_masked(credential: str) -> None:
    masked = mask_sensitive_data(f"Authorization: Basic {credential}")
    assert credential not in masked
    assert "Basic [REDACTED]" in masked


@given(
    secret=st.text(min_size=10, max_size=50),
    token=st.text(min_size=10, max_size=50),
    api_key=api_key_strategy,
)
@settings(max_examples=100)
def test_safe_log_dict_masks_secrets(secret: str, token: str, api_key: str) -> None:
    data = {
        "secret": secret,
        "token": token,
        "apiKey": api_key,
        "Authorization": f"Basic {api_key}",
        "prompt": {"text": "add tests"},
    }

    safe = safe_log_dict(data)

    assert safe["secret"] == "[REDACTED]"
    assert safe["token"] == "[REDACTED]"
    assert safe["apiKey"] == "[REDACTED]"
    assert safe["Authorization"] == "[REDACTED]"
    assert safe["prompt"] == {"text": "add tests"}


@given(api_key=api_key_strategy)
@settings(max_examples=100)
def test_truncate_secret_hides_middle(api_key: str) -> None:
    truncated = truncate_secret(api_key)

    assert api_key not in truncated
    assert len(truncated) < len(api_key)
    if len(api_key) > 16:
        assert truncated.startswith(api_key[:4])
        assert "..." in truncated


def test_truncate_short_secret_is_fully_redacted() -> None:
    assert truncate_secret("key_short") == "[REDACTED]"


def test_safe_log_dict_handles_nested_structures() -> None:
    data = {
        "level1": {
            "level2": {"token": "nested-token", "normal": "visible"},
            "list_field": [{"password": "list-secret"}, {"normal": "also-visible"}],
        },
    }

    safe = safe_log_dict(data)

    assert "nested-token" not in str(safe)
    assert "list-secret" not in str(safe)
    assert safe["level1"]["level2"]["normal"] == "visible"
    assert safe["level1"]["list_field"][1]["normal"] == "also-visible"


def test_mask_sensitive_data_preserves_non_sensitive() -> None:
    text = "Polling agent bc_123 every 1.5s"
    assert mask_sensitive_data(text) == text


@given(api_key=api_key_strategy)
@settings(max_examples=50)
def test_http_log_helpers_mask_bodies(api_key: str) -> None:
    buffer = io.StringIO()
    handler = logging.StreamHandler(buffer)
    http_logger = logging.getLogger("cloudagents.http")
    previous = http_logger.level
    http_logger.setLevel(logging.DEBUG)
    http_logger.addHandler(handler)
    try:
        log_http_request("POST", "https://api.example.test/v0/agents", body={"apiKey": api_key})
        log_http_response(200, "https://api.example.test/v0/me", body=f"echo {api_key}")
    finally:
        http_logger.removeHandler(handler)
        http_logger.setLevel(previous)

    output = buffer.getvalue()
    assert "POST https://api.example.test/v0/agents" in output
    assert "Response 200" in output
    assert api_key not in output


@pytest.mark.asyncio
async def test_transport_never_logs_the_key(http_log: io.StringIO) -> None:
    api_key = "key_" + "Z" * 32
    client = httpx.AsyncClient(
        base_url="https://api.example.test/v0",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json={"models": []})),
    )
    transport = AsyncHTTPTransport(
        base_url="https://api.example.test/v0",
        api_key=api_key,
        governor=RequestGovernor(GovernorConfig(min_spacing=0.0)),
        http_client=client,
    )

    await transport.request("GET", "/models")

    output = http_log.getvalue()
    assert "GET https://api.example.test/v0/models" in output
    assert api_key not in output


def test_configure_logging_sets_levels() -> None:
    handler = logging.NullHandler()
    sdk_logger = get_logger()
    try:
        configure_logging(
            level=logging.WARNING,
            http_level=logging.DEBUG,
            sync_level=logging.ERROR,
            handler=handler,
        )

        assert sdk_logger.level == logging.WARNING
        assert get_logger("http").level == logging.DEBUG
        assert get_logger("sync").level == logging.ERROR
        assert handler in sdk_logger.handlers
    finally:
        sdk_logger.removeHandler(handler)
        for logger in (sdk_logger, get_logger("http"), get_logger("sync")):
            logger.setLevel(logging.NOTSET)


def test_get_logger_returns_correct_loggers() -> None:
    assert get_logger().name == "cloudagents"
    assert get_logger("http").name == "cloudagents.http"
    assert get_logger("sync").name == "cloudagents.sync"
