"""
System Constants and Enumerations

This module defines system-wide constants and enumerations used across
the feedgate client gateway.

Architectural Decision: Centralized constants for maintainability
- Single source of truth for magic numbers
- Type-safe enums for state management
- Easy to update and track changes
"""

import uuid
from enum import Enum

# ============================================================================
# Stage Identifiers (for structured logging)
# ============================================================================


class Stage(str, Enum):
    """
    Gateway processing stages used as the ``stage`` field of log entries.

    Format: {PREFIX}_{DESCRIPTIVE_NAME}

    Examples:
        log_stage(logger, Stage.AUTH_REFRESH, "Refreshing access token")
        log_stage(logger, Stage.QUEUE_BACKOFF, "Task failed, backing off", delay=4.0)
    """

    # Session lifecycle
    SESSION_START = "0.0_SESSION_START"
    SESSION_READY = "0.1_SESSION_READY"
    SESSION_CLOSE = "0.9_SESSION_CLOSE"

    # Task queue
    QUEUE_ENQUEUE = "Q.1_QUEUE_ENQUEUE"
    QUEUE_EXECUTE = "Q.2_QUEUE_EXECUTE"
    QUEUE_BACKOFF = "Q.3_QUEUE_BACKOFF"
    QUEUE_DEAD_LETTER = "Q.4_QUEUE_DEAD_LETTER"

    # Authentication guard
    AUTH_EXECUTE = "A.1_AUTH_EXECUTE"
    AUTH_REFRESH = "A.2_AUTH_REFRESH"
    AUTH_COOLDOWN = "A.3_AUTH_COOLDOWN"

    # Object cache
    CACHE_L1_LOOKUP = "C.1_L1_CACHE_LOOKUP"
    CACHE_L2_LOOKUP = "C.2_L2_CACHE_LOOKUP"
    CACHE_POPULATE = "C.3_CACHE_POPULATE"
    CACHE_REMOTE_FETCH = "C.4_REMOTE_FETCH"

    # Reconciliation
    RECONCILE_QUERY = "R.1_RECONCILE_QUERY"
    RECONCILE_INGEST = "R.2_RECONCILE_INGEST"

    # Infrastructure
    REDIS = "REDIS"
    REMOTE_HTTP = "HTTP"


# ============================================================================
# Remote Search Modes
# ============================================================================


class SearchMode(str, Enum):
    """Ordering requested from the remote search endpoint."""

    LATEST = "Latest"
    TOP = "Top"


# ============================================================================
# Cache Tiers
# ============================================================================


class CacheTier(str, Enum):
    """
    Object cache tiers.

    L1: In-memory LRU map (authoritative once populated)
    L2: Persistent object store (Redis or filesystem)
    """

    L1 = "l1"
    L2 = "l2"


class CacheBackend(str, Enum):
    """Persistent object store implementations."""

    REDIS = "redis"
    FILE = "file"


# ============================================================================
# Task Queue Defaults
# ============================================================================

QUEUE_JITTER_MIN_SECONDS = 1.5
QUEUE_JITTER_MAX_SECONDS = 3.5
QUEUE_BACKOFF_BASE_SECONDS = 1.0
QUEUE_BACKOFF_MAX_SECONDS = 3600.0
QUEUE_MAX_ATTEMPTS = 5
QUEUE_DEAD_LETTER_LIMIT = 100

# ============================================================================
# Rate Limit Cooldown
# ============================================================================

# Longest platform enforcement window (24h app window + 1h slack)
RATE_LIMIT_WINDOW_SECONDS = 25 * 60 * 60
RATE_LIMIT_MARGIN_SECONDS = 1

# ============================================================================
# Cache
# ============================================================================

L1_CACHE_MAX_SIZE = 10_000

REDIS_KEY_OBJECTS = "feedgate:objects"
REDIS_KEY_INDEX_SUFFIX = "index"
REDIS_KEY_GROUP_SUFFIX = "group"
REDIS_KEY_META_SUFFIX = "meta"

META_LAST_CHECKED_ID = "last_checked_id"

# ============================================================================
# Reconciliation
# ============================================================================

# Namespace for deterministic record and room keys
RECORD_KEY_NAMESPACE = uuid.UUID("5b0f8c9e-3d41-4c7a-9a58-2f6b1d0e7c42")

FALLBACK_GROUP_PREFIX = "default-room-"
DEFAULT_RECORD_SOURCE = "twitter"

TIMELINE_FETCH_LIMIT = 20

# ============================================================================
# Remote API
# ============================================================================

HTTP_STATUS_UNAUTHORIZED = 401
HTTP_STATUS_TOO_MANY_REQUESTS = 429

TOKEN_ERROR_MARKERS = ("expired", "invalid", "revoked")

OBJECT_FIELDS = (
    "created_at",
    "conversation_id",
    "in_reply_to_user_id",
    "entities",
    "attachments",
    "referenced_tweets",
    "text",
)
USER_FIELDS = ("name", "username")
EXPANSIONS = (
    "author_id",
    "referenced_tweets.id",
    "entities.mentions.username",
)
