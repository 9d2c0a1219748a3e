"""Errors raised by the scheduling engine and the appointment store."""


class SchedulingError(Exception):
    """Base class for scheduling failures the API reports to callers."""


class InvalidInput(SchedulingError, ValueError):
    """An instant or day could not be interpreted."""


class NotFound(SchedulingError):
    """A referenced appointment or customer does not exist."""


class Conflict(SchedulingError):
    """The requested time overlaps an existing, non-cancelled appointment."""

    def __init__(self, message: str, conflicting_ids: list[int] | None = None):
        super().__init__(message)
        self.conflicting_ids = conflicting_ids or []
