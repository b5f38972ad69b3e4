"""Core module containing domain types, in-memory stores and conversation flows.

The database-backed services live in ``cardbot.core.connections`` and
``cardbot.core.directory`` and are imported from there directly.
"""

from cardbot.core.cache import Cache, CacheKeys, CacheStats
from cardbot.core.contracts import (
    PRIVACY_FLAGS,
    Availability,
    ConnectionStatus,
    ConnectionView,
    ExperienceLevel,
    PrivacySettings,
    ProfileData,
    ProfileSummary,
    SearchFilters,
    UserProfile,
)
from cardbot.core.conversation import (
    ConversationManager,
    ConversationState,
    ConversationStep,
    ProfileDraft,
    SettingsDraft,
)
from cardbot.core.errors import (
    CardBotError,
    ConnectionExistsError,
    ConnectionRequestError,
    NoActiveConversationError,
    PrivacyDeniedError,
    QuotaExceededError,
    SelfConnectionError,
    UserNotFoundError,
    ValidationError,
)
from cardbot.core.flows import ConversationEngine, Flow, FlowOutcome, FlowResult
from cardbot.core.rate_limiter import RateLimiter
from cardbot.core.search import SearchSessions, SearchState, parse_search_filters
from cardbot.core.ttl_store import TTLStore

__all__ = [
    # Contracts
    "PRIVACY_FLAGS",
    "Availability",
    "ConnectionStatus",
    "ConnectionView",
    "ExperienceLevel",
    "PrivacySettings",
    "ProfileData",
    "ProfileSummary",
    "SearchFilters",
    "UserProfile",
    # Errors
    "CardBotError",
    "ConnectionExistsError",
    "ConnectionRequestError",
    "NoActiveConversationError",
    "PrivacyDeniedError",
    "QuotaExceededError",
    "SelfConnectionError",
    "UserNotFoundError",
    "ValidationError",
    # Stores
    "Cache",
    "CacheKeys",
    "CacheStats",
    "RateLimiter",
    "TTLStore",
    # Conversations
    "ConversationEngine",
    "ConversationManager",
    "ConversationState",
    "ConversationStep",
    "Flow",
    "FlowOutcome",
    "FlowResult",
    "ProfileDraft",
    "SettingsDraft",
    # Search
    "SearchSessions",
    "SearchState",
    "parse_search_filters",
]
