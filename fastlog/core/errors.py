"""Exception taxonomy for fastlog.

Validation errors are raised before anything is persisted. State conflicts are
surfaced to the caller as-is. Storage unavailability is fatal; estimation
failures are caught at the estimator boundary and replaced by fallbacks.
"""


class FastlogError(Exception):
    """Base class for all fastlog errors."""


# --- Validation ---------------------------------------------------------------
class ValidationError(FastlogError, ValueError):
    """Input rejected before any persistence took place."""


class ConfigValidationError(ValidationError):
    """An enumerated or free-form setting had an unacceptable value."""


class UnrecognizedSizeFormat(ValidationError):
    """A size string did not match the numeric+unit grammar."""


class UnsupportedUnit(ValidationError):
    """A unit token has no conversion factor."""


class TimeFormatError(ValidationError):
    """A user supplied start/end time could not be parsed."""


# --- Fast session state conflicts ---------------------------------------------
class StateConflictError(FastlogError):
    """The requested transition is not allowed in the current fast state."""


class ActiveSessionExists(StateConflictError):
    def __init__(self, message: str = "There is already an ongoing fast. End it first before starting a new one."):
        super().__init__(message)


class NoActiveSession(StateConflictError):
    def __init__(self, message: str = "No ongoing fast found. Start a fast first."):
        super().__init__(message)


class InvalidInterval(StateConflictError):
    """End time is not after the start time of the active fast."""


# --- Collaborators --------------------------------------------------------------
class StorageUnavailable(FastlogError):
    """The remote store could not be reached or refused the credentials."""


class StorageError(FastlogError):
    """The remote store rejected a statement, e.g. because its tables are missing."""


class EstimationError(FastlogError):
    """The calorie estimation service failed or returned unusable output."""
