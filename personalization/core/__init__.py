"""
Core Module - Shared infrastructure for the personalization engine.

Components:
- errors: Error taxonomy surfaced by every component
- cache: TTL + version-invalidated LRU cache
- logging: loguru sink configuration
- threads: dedicated worker threads for time-boxed blocking calls
"""

from personalization.core.cache import CacheStats, VersionedTTLCache
from personalization.core.errors import (
    ConcurrencyConflict,
    DataAccessError,
    DetectorFailure,
    PersonalizationError,
    SessionClosed,
    SessionNotFound,
    StrategyFailure,
    StrategyTimeout,
    ValidationError,
)
from personalization.core.logging import configure_logging
from personalization.core.threads import run_in_worker_thread

__all__ = [
    "CacheStats",
    "ConcurrencyConflict",
    "DataAccessError",
    "DetectorFailure",
    "PersonalizationError",
    "SessionClosed",
    "SessionNotFound",
    "StrategyFailure",
    "StrategyTimeout",
    "ValidationError",
    "VersionedTTLCache",
    "configure_logging",
    "run_in_worker_thread",
]
