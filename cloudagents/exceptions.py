"""Cloud Agents SDK exception classes."""



class CloudAgentsError(Exception):
    """Base exception for all Cloud Agents SDK errors."""

    def __init__(
        self, code: str, message: str, request_id: str | None = None
    ) -> None:
        self.code = code
        self.message = message
        self.request_id = request_id
        super().__init__(f"[{code}] {message}")


class ConfigurationError(CloudAgentsError):
    """Raised when SDK configuration is invalid or missing."""

    def __init__(self, message: str) -> None:
        super().__init__("CONFIGURATION_ERROR", message)


class AuthError(CloudAgentsError):
    """Raised when the API key is missing, invalid or expired.

    Fatal to the session: callers clear the stored credential.
    """

    def __init__(
        self,
        code: str = "INVALID_API_KEY",
        message: str = "Invalid or expired API key.",
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)


class NotFoundError(CloudAgentsError):
    """Raised when a resource is not found (or not created yet)."""

    def __init__(
        self,
        code: str = "NOT_FOUND",
        message: str = "The requested resource was not found.",
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)


class RateLimitError(CloudAgentsError):
    """Raised when rate limited."""

    def __init__(
        self,
        code: str = "RATE_LIMITED",
        message: str = "Rate limited. Please wait and try again.",
        retry_after: float | None = None,
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)
        self.retry_after = retry_after


class MalformedResponseError(CloudAgentsError):
    """Raised when a response body does not match the expected shape."""

    def __init__(
        self,
        message: str = "Received an unexpected response from the server.",
        code: str = "MALFORMED_RESPONSE",
        request_id: str | None = None,
    ) -> None:
        super().__init__(code, message, request_id)


class RequestFailedError(CloudAgentsError):
    """Raised for any other failed request. ``message`` is human readable."""

    pass


class RequestTimeoutError(RequestFailedError):
    """Raised when a request exceeds its timeout."""

    def __init__(
        self, message: str = "Request timed out.", request_id: str | None = None
    ) -> None:
        super().__init__("TIMEOUT", message, request_id)


class RequestDroppedError(CloudAgentsError):
    """Raised when a queued request is discarded before it was sent."""

    def __init__(
        self, message: str = "Request dropped before it was sent.", request_id: str | None = None
    ) -> None:
        super().__init__("REQUEST_DROPPED", message, request_id)
