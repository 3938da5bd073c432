"""Repository-related data models."""

from dataclasses import dataclass
from datetime import datetime


@dataclass(frozen=True)
class Repository:
    """Repository the API key can launch agents against."""

    owner: str
    name: str
    repository: str  # e.g. "github.com/owner/name"
    pushed_at: datetime | None = None
