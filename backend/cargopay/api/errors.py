"""
Translation of domain errors into HTTP responses.
"""
import logging
import traceback
from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from cargopay.services.errors import (
    CargoPayError,
    ConflictError,
    DependencyError,
    NotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)


def internal_error(db: Session, action: str, e: Exception) -> HTTPException:
    """Roll back and log an unexpected failure, returning a 500 to raise."""
    db.rollback()
    logger.error(f"Error {action}: {str(e)}")
    logger.error(f"Traceback: {traceback.format_exc()}")
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail=f"Failed {action}: {str(e)}"
    )


def http_error(exc: CargoPayError) -> HTTPException:
    if isinstance(exc, ValidationError):
        detail = {"error": "VALIDATION", "message": exc.message}
        if exc.missing:
            detail["missing"] = exc.missing
        return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=detail)
    if isinstance(exc, NotFoundError):
        return HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail={"error": "EXPIRED" if exc.expired else "NOT_FOUND", "message": exc.message},
        )
    if isinstance(exc, ConflictError):
        return HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail={"error": exc.reason.value, "message": exc.message},
        )
    if isinstance(exc, DependencyError):
        return HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail={"error": "DEPENDENCY", "message": exc.message},
        )
    return HTTPException(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        detail={"error": "INTERNAL", "message": exc.message},
    )
