"""
Resilience Module - Core Resilience Components

COMPONENTS:
===========
- TaskQueue: serializes order-sensitive remote calls with retry, backoff
  and dead-lettering
- AuthGuard: one transparent retry after a credential refresh or a
  rate-limit cooldown
- CredentialManager: single-flight rotation of the shared credential
"""

from .auth_guard import AuthGuard, CredentialManager, FailureKind, classify_failure
from .task_queue import (
    DeadLetter,
    QueueConfig,
    QueuedTask,
    SchedulingPolicy,
    TaskQueue,
    TaskState,
)

__all__ = [
    # Task queue
    "TaskQueue",
    "QueueConfig",
    "QueuedTask",
    "TaskState",
    "SchedulingPolicy",
    "DeadLetter",
    # Auth guard
    "AuthGuard",
    "CredentialManager",
    "FailureKind",
    "classify_failure",
]
