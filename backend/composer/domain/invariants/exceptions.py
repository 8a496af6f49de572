# composer/domain/invariants/exceptions.py
from enum import Enum


class ErrorKind(str, Enum):
    INVALID_REFERENCE = "InvalidReference"
    CYCLE_ERROR = "CycleError"
    INVALID_WINDOW = "InvalidWindow"
    INCOMPLETE_WINDOW = "IncompleteWindow"
    PERSISTENCE_FAILED = "PersistenceFailed"
    CANCELLED = "Cancelled"
    INVALID_INPUT = "InvalidInput"


class InvariantViolation(Exception):
    """
    Base class for every rule the engine or the store refuses to break.

    Validation subclasses are raised before any store call; the working
    copy is left untouched when they surface.
    """
    kind: ErrorKind = ErrorKind.INVALID_INPUT
    status_code = 400


class InvalidReference(InvariantViolation):
    kind = ErrorKind.INVALID_REFERENCE


class CycleError(InvariantViolation):
    kind = ErrorKind.CYCLE_ERROR


class InvalidWindow(InvariantViolation):
    kind = ErrorKind.INVALID_WINDOW


class IncompleteWindow(InvariantViolation):
    kind = ErrorKind.INCOMPLETE_WINDOW


class PersistenceFailed(Exception):
    """Raised when the store-of-record rejects or fails a write."""
    kind = ErrorKind.PERSISTENCE_FAILED
    status_code = 502


class NotEmpty(PersistenceFailed):
    status_code = 409


class Conflict(PersistenceFailed):
    status_code = 409


class OperationCancelled(Exception):
    """Superseded intent. Never reported as an error."""
    kind = ErrorKind.CANCELLED


class NotFound(InvalidReference):
    status_code = 404
