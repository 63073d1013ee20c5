"""Exception hierarchy for the trace recorder."""

from __future__ import annotations


class TraceError(Exception):
    """Base class for recorder errors."""


class ProtocolViolation(TraceError):
    """The caller broke the lifecycle contract (not a failure of the system under test)."""

    def __init__(self, operation: str, message: str) -> None:
        super().__init__(f"{operation}: {message}")
        self.operation = operation
        self.message = message


class StatusTransitionError(TraceError):
    """A node left its pending status more than once."""


class PersistenceError(TraceError):
    """The final trace document could not be written."""
