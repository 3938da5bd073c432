"""API key owner information."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class UserInfo:
    """Returned by ``GET /me``."""

    api_key_name: str
    created_at: datetime
    user_email: str
