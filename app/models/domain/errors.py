"""
Error taxonomy shared by the queue monitor and tag sync features.

TransportError is recoverable and drives fallbacks (poll-only mode,
paused batch cursor). ValidationError is reported to the caller without
retry. InconsistentStateError is logged and clamped by the stats store,
never raised past it.
"""


class QueueEngineError(Exception):
    """Base class for queue monitor and tag sync errors."""

    def __init__(self, message: str, operation: str | None = None, recoverable: bool = True):
        super().__init__(message)
        self.operation = operation
        self.recoverable = recoverable


class TransportError(QueueEngineError):
    """Network, HTTP or subscription failure talking to an external collaborator."""

    def __init__(
        self,
        message: str,
        operation: str | None = None,
        status_code: int | None = None,
        response_data: dict | None = None,
    ):
        super().__init__(message, operation=operation, recoverable=True)
        self.status_code = status_code
        self.response_data = response_data or {}


class ValidationError(QueueEngineError):
    """Caller-side problem; reported as-is and never retried."""

    def __init__(self, message: str, operation: str | None = None):
        super().__init__(message, operation=operation, recoverable=False)


class EmptySelection(ValidationError):
    """Apply was requested with no matches selected."""

    def __init__(self, message: str = "No matches selected"):
        super().__init__(message, operation="apply_tag_sync")


class MissingImageDimension(ValidationError):
    """A pixel-valued box was converted without the matching image dimension."""

    def __init__(self, axis: str):
        super().__init__(f"Image {axis} is required for pixel bounding boxes", operation="normalize")
        self.axis = axis


class InconsistentStateError(QueueEngineError):
    """A counter invariant was violated (e.g. a count would go negative)."""

    def __init__(self, message: str, queue_name: str | None = None, status: str | None = None):
        super().__init__(message, operation="apply_delta", recoverable=True)
        self.queue_name = queue_name
        self.status = status
