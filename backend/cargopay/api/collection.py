"""
Code-gated payment collection endpoints (no login; the access code is the credential).
"""
import logging
from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import ValidationError as SchemaError
from sqlalchemy.orm import Session
from typing import Optional
from cargopay.api.errors import http_error, internal_error
from cargopay.db.database import get_db, settings
from cargopay.schemas.delivery_assignment import (
    CancelDeliveryRequest,
    CollectionView,
    CompletePaymentRequest,
    DriverIdentityRequest,
    PaymentReceiptResponse,
)
from cargopay.services.assignment_store import AssignmentRepository
from cargopay.services.errors import CargoPayError, ValidationError
from cargopay.services.payment_collection import (
    CollectionState,
    DeliveryAction,
    PaymentCollectionStateMachine,
    PaymentReceipt,
    PaymentSubmission,
    ProofUpload,
)
from cargopay.services.proof_storage import ProofStorage, get_proof_storage

logger = logging.getLogger(__name__)
router = APIRouter()


def get_repository(db: Session = Depends(get_db)) -> AssignmentRepository:
    return AssignmentRepository(db, settings.db_timeout_seconds)


def _receipt_response(receipt: Optional[PaymentReceipt]) -> Optional[PaymentReceiptResponse]:
    if receipt is None:
        return None
    return PaymentReceiptResponse(
        assignment_id=receipt.assignment_id,
        amount=receipt.amount,
        currency=receipt.currency,
        payment_method=receipt.method,
        payment_reference=receipt.reference,
        payment_proof_ref=receipt.proof_ref,
        confirmed_by=receipt.confirmed_by,
        payment_notes=receipt.notes,
        collected_at=receipt.collected_at,
        driver_name=receipt.driver_name,
        driver_phone=receipt.driver_phone,
        replayed=receipt.replayed,
    )


def _view(machine: PaymentCollectionStateMachine) -> CollectionView:
    assignment = machine.assignment
    return CollectionView(
        state=machine.state.value,
        assignment_id=assignment.id,
        amount=assignment.amount,
        currency=assignment.currency,
        delivery_address=assignment.delivery_address,
        delivery_status=assignment.delivery_status,
        driver_name=assignment.driver_name,
        driver_phone=assignment.driver_phone,
        driver_fields_read_only=machine.driver_fields_read_only,
        cancellation_reason=assignment.cancellation_reason,
        code_expires_at=assignment.code_expires_at,
        receipt=_receipt_response(machine.receipt()),
    )


@router.get("/{access_code}", response_model=CollectionView)
async def open_collection(
    access_code: str,
    repository: AssignmentRepository = Depends(get_repository)
):
    """Enter the workflow; a redeemed code shows the recorded payment read-only."""
    try:
        machine = PaymentCollectionStateMachine.enter(repository, access_code)
        return _view(machine)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(repository.db, "opening payment collection", e)


@router.post("/{access_code}/driver", response_model=CollectionView)
async def identify_driver(
    access_code: str,
    identity: DriverIdentityRequest,
    repository: AssignmentRepository = Depends(get_repository)
):
    """Record who is delivering. Once saved, the identity cannot be changed."""
    try:
        machine = PaymentCollectionStateMachine.enter(repository, access_code)
        machine.identify_driver(identity.driver_name, identity.driver_phone)
        return _view(machine)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(repository.db, "saving driver identity", e)


@router.post("/{access_code}/cancel", response_model=CollectionView)
async def cancel_delivery(
    access_code: str,
    cancellation: CancelDeliveryRequest,
    repository: AssignmentRepository = Depends(get_repository)
):
    """Mark the delivery as not delivered. The code stays valid for another attempt."""
    try:
        machine = PaymentCollectionStateMachine.enter(repository, access_code)
        _require_identified(machine)
        machine.proceed()
        machine.choose_action(DeliveryAction.CANCEL)
        machine.cancel(cancellation.cancellation_reason)
        return _view(machine)
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(repository.db, "cancelling delivery", e)


async def _read_submission(request: Request) -> PaymentSubmission:
    content_type = request.headers.get("content-type", "")
    proof = None
    try:
        if content_type.startswith("multipart/form-data"):
            form = await request.form()
            data = CompletePaymentRequest(
                payment_method=form.get("payment_method") or "",
                payment_reference=form.get("payment_reference"),
                confirmed_by=form.get("confirmed_by"),
                payment_notes=form.get("payment_notes"),
            )
            upload = form.get("payment_proof")
            if upload is not None and not isinstance(upload, str):
                payload = await upload.read()
                if payload:
                    proof = ProofUpload(
                        payload=payload,
                        content_type=upload.content_type or "",
                        filename=upload.filename,
                    )
        else:
            data = CompletePaymentRequest(**(await request.json()))
    except (SchemaError, ValueError, TypeError) as e:
        raise ValidationError(f"Invalid payment submission: {str(e)}", ["payment_method"])

    return PaymentSubmission(
        method=data.payment_method.upper().strip(),
        reference=data.payment_reference,
        proof=proof,
        confirmed_by=data.confirmed_by,
        notes=data.payment_notes,
        client_ip=request.client.host if request.client else None,
        user_agent=request.headers.get("user-agent"),
    )


def _require_identified(machine: PaymentCollectionStateMachine) -> None:
    if machine.state == CollectionState.IDENTIFY_DRIVER:
        raise ValidationError("Driver name and phone are required", ["driver_name", "driver_phone"])


@router.post("/{access_code}/deliver", response_model=PaymentReceiptResponse)
async def complete_delivery(
    access_code: str,
    request: Request,
    repository: AssignmentRepository = Depends(get_repository),
    storage: ProofStorage = Depends(get_proof_storage)
):
    """
    Complete delivery and collect payment.

    Accepts JSON, or multipart form data with an optional `payment_proof`
    file. Re-sending a completion for a redeemed code returns the recorded
    payment with `replayed: true`.
    """
    try:
        machine = PaymentCollectionStateMachine.enter(
            repository, access_code, storage=storage, storage_timeout=settings.storage_timeout_seconds
        )
        if machine.state == CollectionState.ALREADY_PROCESSED:
            return _receipt_response(machine.deliver(None))
        _require_identified(machine)
        submission = await _read_submission(request)
        machine.proceed()
        machine.choose_action(DeliveryAction.DELIVER)
        return _receipt_response(machine.deliver(submission))
    except CargoPayError as e:
        raise http_error(e)
    except HTTPException:
        raise
    except Exception as e:
        raise internal_error(repository.db, "completing delivery", e)
