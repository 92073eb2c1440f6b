"""
Delivery Assignment API endpoints (staff side).
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from uuid import UUID
from cargopay.api.errors import http_error, internal_error
from cargopay.db.database import get_db, settings
from cargopay.schemas.delivery_assignment import DeliveryAssignmentCreate, DeliveryAssignmentResponse
from cargopay.services.assignment_store import AssignmentRepository
from cargopay.services.dispatch import create_assignment
from cargopay.services.errors import CargoPayError

logger = logging.getLogger(__name__)
router = APIRouter()


@router.post("/", response_model=DeliveryAssignmentResponse, status_code=status.HTTP_201_CREATED)
async def create_delivery_assignment(
    assignment_data: DeliveryAssignmentCreate,
    db: Session = Depends(get_db)
):
    """Create a delivery assignment with a single-use access code from a completed verification."""
    try:
        return create_assignment(db, assignment_data.verification_id, assignment_data.delivery_address)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "creating delivery assignment", e)


@router.get("/{assignment_id}", response_model=DeliveryAssignmentResponse)
async def get_delivery_assignment(
    assignment_id: UUID,
    db: Session = Depends(get_db)
):
    """Get a specific delivery assignment."""
    try:
        return AssignmentRepository(db, settings.db_timeout_seconds).get(assignment_id)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(db, "reading delivery assignment", e)
