"""
Cloud Agents SDK logging utilities.

Provides configurable logging for HTTP requests/responses and for the
conversation synchronization engine. Ensures credentials (API keys,
Authorization headers) are never logged in full.
"""

import logging
import re
from typing import Any

# Create SDK-specific loggers
_sdk_logger = logging.getLogger("cloudagents")
_http_logger = logging.getLogger("cloudagents.http")
_sync_logger = logging.getLogger("cloudagents.sync")

# Patterns for sensitive data that should be masked
_SENSITIVE_PATTERNS = [
    # Authorization header values (Basic / Bearer)
    (re.compile(r"(Basic|Bearer)\s+[A-Za-z0-9+/=._\-]{8,}"), r"\1 [REDACTED]"),
    # Cursor-style API keys
    (re.compile(r"\bkey_[A-Za-z0-9]{16,}\b"), "[API_KEY_REDACTED]"),
    # Secret/token patterns
    (re.compile(r"(secret|token|password|api_key|apiKey)['\"]?\s*[:=]\s*['\"][^'\"]+['\"]", re.IGNORECASE), r"\1: [REDACTED]"),
]

# Number of characters kept at each end of a truncated secret
_SECRET_PREVIEW_LENGTH = 4

_DEFAULT_SENSITIVE_KEYS = {"authorization", "api_key", "apikey", "secret", "token", "password"}


def configure_logging(
    level: int = logging.INFO,
    http_level: int | None = None,
    sync_level: int | None = None,
    handler: logging.Handler | None = None,
    format_string: str | None = None,
) -> None:
    """
    Configure Cloud Agents SDK logging.

    Args:
        level: Default log level for all SDK loggers (default: INFO)
        http_level: Log level for HTTP request/response logging (default: same as level)
        sync_level: Log level for polling and prefetch activity (default: same as level)
        handler: Custom handler to use (default: StreamHandler to stderr)
        format_string: Custom format string (default: includes timestamp, level, logger name)

    Example:
        ```python
        import logging
        from cloudagents.logging import configure_logging

        # Watch every request the governor lets through
        configure_logging(level=logging.INFO, http_level=logging.DEBUG)
        ```
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    formatter = logging.Formatter(format_string)

    if handler is None:
        handler = logging.StreamHandler()

    handler.setFormatter(formatter)

    # Configure main SDK logger
    _sdk_logger.setLevel(level)
    _sdk_logger.addHandler(handler)

    # Configure HTTP logger
    _http_logger.setLevel(http_level if http_level is not None else level)

    # Configure sync logger
    _sync_logger.setLevel(sync_level if sync_level is not None else level)


def get_logger(name: str | None = None) -> logging.Logger:
    """
    Get a Cloud Agents SDK logger.

    Args:
        name: Logger name suffix (e.g., "http", "sync"). If None, returns main SDK logger.

    Returns:
        Logger instance
    """
    if name is None:
        return _sdk_logger
    return logging.getLogger(f"cloudagents.{name}")


def mask_sensitive_data(text: str) -> str:
    """
    Mask sensitive data in a string.

    Replaces API keys, Authorization header values and other secret-looking
    assignments with redacted placeholders.

    Args:
        text: Text that may contain sensitive data

    Returns:
        Text with sensitive data masked
    """
    result = text
    for pattern, replacement in _SENSITIVE_PATTERNS:
        result = pattern.sub(replacement, result)
    return result


def truncate_secret(secret: str) -> str:
    """
    Truncate a secret for safe logging.

    Shows only the first and last few characters, or nothing at all for
    short values.

    Args:
        secret: Full secret string

    Returns:
        Truncated secret like "key_...9xQz"
    """
    if len(secret) <= _SECRET_PREVIEW_LENGTH * 4:
        return "[REDACTED]"

    return f"{secret[:_SECRET_PREVIEW_LENGTH]}...{secret[-_SECRET_PREVIEW_LENGTH:]}"


def safe_log_dict(data: dict[str, Any], sensitive_keys: set[str] | None = None) -> dict[str, Any]:
    """
    Create a copy of a dictionary with sensitive values masked.

    Args:
        data: Dictionary that may contain sensitive values
        sensitive_keys: Set of keys to mask (default: authorization, api_key, secret, token, password)

    Returns:
        Dictionary with sensitive values replaced with "[REDACTED]"
    """
    if sensitive_keys is None:
        sensitive_keys = _DEFAULT_SENSITIVE_KEYS

    result: dict[str, Any] = {}
    for key, value in data.items():
        key_lower = key.lower()
        if key_lower in sensitive_keys or any(sk in key_lower for sk in sensitive_keys):
            result[key] = "[REDACTED]"
        elif isinstance(value, dict):
            result[key] = safe_log_dict(value, sensitive_keys)
        elif isinstance(value, list):
            result[key] = [
                safe_log_dict(item, sensitive_keys) if isinstance(item, dict) else item
                for item in value
            ]
        else:
            result[key] = value

    return result


def log_http_request(
    method: str,
    url: str,
    headers: dict[str, str] | None = None,
    body: dict[str, Any] | None = None,
) -> None:
    """
    Log an HTTP request at DEBUG level with sensitive data masked.

    Args:
        method: HTTP method (GET, POST, etc.)
        url: Request URL
        headers: Request headers (optional)
        body: Request body (optional)
    """
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"{method} {url}"]

    if headers:
        safe_headers = safe_log_dict(headers)
        log_parts.append(f"headers={safe_headers}")

    if body:
        safe_body = safe_log_dict(body)
        log_parts.append(f"body={safe_body}")

    _http_logger.debug(" | ".join(log_parts))


def log_http_response(
    status_code: int,
    url: str,
    body: Any = None,
    elapsed_ms: float | None = None,
) -> None:
    """
    Log an HTTP response at DEBUG level with sensitive data masked.

    Args:
        status_code: HTTP status code
        url: Request URL
        body: Response body (optional)
        elapsed_ms: Request duration in milliseconds (optional)
    """
    if not _http_logger.isEnabledFor(logging.DEBUG):
        return

    log_parts = [f"Response {status_code} from {url}"]

    if elapsed_ms is not None:
        log_parts.append(f"elapsed={elapsed_ms:.2f}ms")

    if isinstance(body, dict):
        log_parts.append(f"body={safe_log_dict(body)}")
    elif body:
        log_parts.append(f"body={mask_sensitive_data(str(body))}")

    _http_logger.debug(" | ".join(log_parts))


# Export public API
__all__ = [
    "configure_logging",
    "get_logger",
    "mask_sensitive_data",
    "truncate_secret",
    "safe_log_dict",
    "log_http_request",
    "log_http_response",
]
