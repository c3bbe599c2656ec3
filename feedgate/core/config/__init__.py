"""
Configuration Module

Centralized, type-safe configuration for the feedgate client gateway.

Components:
-----------
- **settings.py**: Pydantic-based configuration with environment variable loading
- **constants.py**: System-wide constants, enums, and defaults

Usage:
------
```python
from feedgate.core.config import get_settings
from feedgate.core.config.constants import Stage, SearchMode

settings = get_settings()
cooldown = settings.auth.cooldown_seconds
max_attempts = settings.queue.QUEUE_MAX_ATTEMPTS
```

Environment Variables:
---------------------
Configuration is loaded from environment variables or `.env` file:

```bash
# Task queue
QUEUE_MAX_ATTEMPTS=5
QUEUE_SCHEDULING_POLICY=retry_first

# Object cache
CACHE_BACKEND=redis
REDIS_HOST=localhost

# Reconciliation
AGENT_ID=my-agent

# Logging
LOG_LEVEL=INFO
LOG_FORMAT=json
```

Testing:
-------
```python
import os
from feedgate.core.config import reload_settings

os.environ["LOG_LEVEL"] = "DEBUG"
settings = reload_settings()
```
"""

from feedgate.core.config.constants import (
    L1_CACHE_MAX_SIZE,
    QUEUE_BACKOFF_BASE_SECONDS,
    QUEUE_BACKOFF_MAX_SECONDS,
    QUEUE_JITTER_MAX_SECONDS,
    QUEUE_JITTER_MIN_SECONDS,
    QUEUE_MAX_ATTEMPTS,
    RATE_LIMIT_MARGIN_SECONDS,
    RATE_LIMIT_WINDOW_SECONDS,
    RECORD_KEY_NAMESPACE,
    CacheBackend,
    CacheTier,
    SearchMode,
    Stage,
)
from feedgate.core.config.settings import Settings, get_settings, reload_settings

__all__ = [
    # Settings
    "Settings",
    "get_settings",
    "reload_settings",
    # Enums
    "Stage",
    "SearchMode",
    "CacheTier",
    "CacheBackend",
    # Queue
    "QUEUE_JITTER_MIN_SECONDS",
    "QUEUE_JITTER_MAX_SECONDS",
    "QUEUE_BACKOFF_BASE_SECONDS",
    "QUEUE_BACKOFF_MAX_SECONDS",
    "QUEUE_MAX_ATTEMPTS",
    # Auth
    "RATE_LIMIT_WINDOW_SECONDS",
    "RATE_LIMIT_MARGIN_SECONDS",
    # Cache
    "L1_CACHE_MAX_SIZE",
    # Reconciliation
    "RECORD_KEY_NAMESPACE",
]
