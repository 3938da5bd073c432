"""Credential validation client."""

from typing import TYPE_CHECKING

from cloudagents.decoding import decode_user_info
from cloudagents.governor import Priority
from cloudagents.types.users import UserInfo

if TYPE_CHECKING:
    from cloudagents.transport import AsyncHTTPTransport


class MeClient:
    """Client for the ``/me`` endpoint."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        self.transport = transport

    async def validate(self, api_key: str) -> UserInfo:
        """
        Validate an API key and return the account it belongs to.

        The given key is used for this call instead of the ambient one, so a
        candidate key can be checked before it is adopted.

        Args:
            api_key: Candidate API key

        Returns:
            UserInfo for the key's owner

        Raises:
            AuthError: If the key is empty or rejected
            MalformedResponseError: If the body is not a user object
        """
        response = await self.transport.request(
            "GET", "/me", api_key=api_key, priority=Priority.CRITICAL
        )
        return decode_user_info(response)
