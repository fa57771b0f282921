"""Exceptions raised by the batch orchestrator."""


class BatchError(Exception):
    """Base class for batch orchestration errors."""


class BatchValidationError(BatchError, ValueError):
    """A create/history request was malformed. Raised before any state change."""


class BatchNotFoundError(BatchError, KeyError):
    """No batch job exists with the given id."""

    def __str__(self) -> str:
        return str(self.args[0]) if self.args else "batch not found"


class BatchStateError(BatchError):
    """The requested operation is not allowed in the job's current status."""


class ItemSourceError(BatchError):
    """The item source could not enumerate candidates for a batch."""
