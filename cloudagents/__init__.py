"""Cloud Agents SDK - Python client and synchronization engine for cloud agents."""

from cloudagents.client import CloudAgentsClient
from cloudagents.continuation import (
    FollowUpOutcome,
    build_continuation_prompt,
    launch_continuation,
    try_follow_up,
)
from cloudagents.exceptions import (
    AuthError,
    CloudAgentsError,
    ConfigurationError,
    MalformedResponseError,
    NotFoundError,
    RateLimitError,
    RequestDroppedError,
    RequestFailedError,
    RequestTimeoutError,
)
from cloudagents.gateway import AgentGateway, CredentialStore
from cloudagents.governor import GovernorConfig, GovernorStats, Priority, RequestGovernor
from cloudagents.logging import configure_logging, get_logger
from cloudagents.metadata import GitHubMetadataClient, enrich_pushed_at
from cloudagents.prefetch import CacheEntry, PrefetchCache, PrefetchConfig
from cloudagents.registry import (
    NormalizedRepository,
    RegistryConfig,
    RepositoryRegistry,
    normalize_repository,
    repositories_match,
)
from cloudagents.session import AgentSession, ConversationTurn, SessionConfig
from cloudagents.storage import PreferenceStore
from cloudagents.synchronizer import (
    ConversationSynchronizer,
    PendingFollowUp,
    PollConfig,
    SyncState,
    merge_messages,
)
from cloudagents.transport import AsyncHTTPTransport, RetryConfig

__version__ = "0.1.0"

__all__ = [
    "__version__",
    # Main Client
    "CloudAgentsClient",
    "AgentGateway",
    "CredentialStore",
    # Governor
    "RequestGovernor",
    "GovernorConfig",
    "GovernorStats",
    "Priority",
    # Synchronization
    "ConversationSynchronizer",
    "PendingFollowUp",
    "PollConfig",
    "SyncState",
    "merge_messages",
    # Prefetch
    "PrefetchCache",
    "PrefetchConfig",
    "CacheEntry",
    # Registry
    "RepositoryRegistry",
    "RegistryConfig",
    "NormalizedRepository",
    "normalize_repository",
    "repositories_match",
    "GitHubMetadataClient",
    "enrich_pushed_at",
    "PreferenceStore",
    # Continuation and session
    "FollowUpOutcome",
    "try_follow_up",
    "build_continuation_prompt",
    "launch_continuation",
    "AgentSession",
    "SessionConfig",
    "ConversationTurn",
    # Exceptions
    "CloudAgentsError",
    "AuthError",
    "NotFoundError",
    "RateLimitError",
    "MalformedResponseError",
    "RequestFailedError",
    "RequestTimeoutError",
    "RequestDroppedError",
    "ConfigurationError",
    # Transport
    "AsyncHTTPTransport",
    "RetryConfig",
    # Logging
    "configure_logging",
    "get_logger",
]
