"""
Verification API endpoints.
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID
from cargopay.api.errors import http_error, internal_error
from cargopay.db.database import get_db
from cargopay.schemas.verification import (
    VerificationComplete,
    VerificationCreate,
    VerificationInput,
    VerificationResponse,
)
from cargopay.services.errors import CargoPayError
from cargopay.services.verification import (
    complete_verification,
    get_verification,
    open_verification,
    update_verification,
)

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=VerificationResponse, status_code=status.HTTP_201_CREATED)
async def create_verification(
    verification_data: VerificationCreate,
    db: Session = Depends(get_db)
):
    """Open the verification for a shipment request."""
    try:
        initial = verification_data.model_dump(exclude_unset=True)
        request_ref = initial.pop("request_ref")
        logger.info(f"Opening verification for request {request_ref}")
        return open_verification(db, request_ref, initial)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "opening verification", e)


@router.get("/{verification_id}", response_model=VerificationResponse)
async def read_verification(
    verification_id: UUID,
    db: Session = Depends(get_db)
):
    """Get a specific verification."""
    try:
        return get_verification(db, verification_id)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "reading verification", e)


@router.patch("/{verification_id}", response_model=VerificationResponse)
async def edit_verification(
    verification_id: UUID,
    changes: VerificationInput,
    db: Session = Depends(get_db)
):
    """Apply operator input; derived weight, rate and amount are recomputed."""
    try:
        return update_verification(db, verification_id, changes.model_dump(exclude_unset=True))
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "updating verification", e)


@router.post("/{verification_id}/complete", response_model=VerificationResponse)
async def finish_verification(
    verification_id: UUID,
    completion: VerificationComplete,
    db: Session = Depends(get_db)
):
    """Complete the verification. Missing points are reported together."""
    try:
        return complete_verification(
            db, verification_id, completion.verified_by, completion.verification_notes
        )
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "completing verification", e)
