"""
Error taxonomy for the personalization engine.

Request-level errors (ValidationError, DataAccessError, SessionNotFound,
SessionClosed, ConcurrencyConflict) reach the caller. StrategyFailure and
DetectorFailure are contained by the scorer and the need detector and
only show up in their failure reports and the log.
"""

from __future__ import annotations


class PersonalizationError(Exception):
    """Base class for all engine errors."""

    retryable: bool = False


class ValidationError(PersonalizationError, ValueError):
    """Malformed input, rejected before any processing."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message)
        self.field = field


class DataAccessError(PersonalizationError):
    """Content or telemetry store failed; no ranking is possible."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class StrategyFailure(PersonalizationError):
    """A scoring strategy raised or produced unusable scores."""

    def __init__(self, strategy_id: str, message: str):
        super().__init__(f"{strategy_id}: {message}")
        self.strategy_id = strategy_id


class StrategyTimeout(StrategyFailure):
    """A scoring strategy exceeded its time budget."""

    def __init__(self, strategy_id: str, timeout_seconds: float):
        super().__init__(strategy_id, f"timed out after {timeout_seconds:.2f}s")
        self.timeout_seconds = timeout_seconds


class DetectorFailure(PersonalizationError):
    """A need detector raised or timed out."""

    def __init__(self, detector_id: str, message: str):
        super().__init__(f"{detector_id}: {message}")
        self.detector_id = detector_id


class SessionNotFound(PersonalizationError):
    """No assessment session with the given id."""

    def __init__(self, session_id: str):
        super().__init__(f"Session not found: {session_id}")
        self.session_id = session_id


class SessionClosed(PersonalizationError):
    """Operation attempted on a completed assessment session."""

    def __init__(self, session_id: str):
        super().__init__(f"Session already completed: {session_id}")
        self.session_id = session_id


class ConcurrencyConflict(PersonalizationError):
    """Session lock could not be acquired within the retry budget."""

    retryable = True

    def __init__(self, session_id: str, attempts: int):
        super().__init__(f"Session {session_id} is busy (gave up after {attempts} attempts)")
        self.session_id = session_id
        self.attempts = attempts
