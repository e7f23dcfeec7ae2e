# app/routes/errors.py
"""
Mapping from domain errors to HTTP errors, shared by feature routers.
"""

from fastapi import HTTPException, status

from app.infrastructure.observability.logging import get_logger
from app.models.domain.errors import QueueEngineError, TransportError, ValidationError

logger = get_logger(__name__)


def to_http_exception(error: Exception) -> HTTPException:
    """
    ValidationError -> 400, TransportError -> 502, unknown queue -> 404,
    anything else -> 500.
    """
    if isinstance(error, ValidationError):
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(error))

    if isinstance(error, TransportError):
        logger.warning(
            "Upstream call failed",
            operation=error.operation,
            status_code=error.status_code,
            error=str(error),
        )
        return HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=str(error))

    if isinstance(error, KeyError):
        detail = error.args[0] if error.args else "Not found"
        return HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(detail))

    if isinstance(error, QueueEngineError):
        logger.error("Queue engine error", operation=error.operation, error=str(error))
    else:
        logger.error("Unexpected route error", error=str(error), error_type=type(error).__name__)
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Internal server error"
    )
