"""Repositories resource client."""

from typing import TYPE_CHECKING

from cloudagents.decoding import decode_repository_list
from cloudagents.types.repos import Repository

if TYPE_CHECKING:
    from cloudagents.transport import AsyncHTTPTransport


class ReposClient:
    """Client for repository listing."""

    def __init__(self, transport: "AsyncHTTPTransport") -> None:
        self.transport = transport

    # Kept last: the name shadows the builtin for the rest of the class body
    async def list(self) -> list[Repository]:
        """
        List repositories the API key can launch agents against.

        Returns:
            Repositories in server order (pushed_at is usually absent)
        """
        response = await self.transport.request("GET", "/repositories")
        return decode_repository_list(response)
