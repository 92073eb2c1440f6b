"""
Script to create a verified sample shipment and its delivery assignment for testing
the driver payment page.
"""
import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(__file__)))

from cargopay.db.database import Base, SessionLocal, engine
from cargopay.models import VerificationRecord
from cargopay.services.dispatch import create_assignment
from cargopay.services.errors import CargoPayError
from cargopay.services.verification import complete_verification, open_verification

SAMPLE_REQUEST_REF = "REQ-SAMPLE-0001"


def create_sample_assignment():
    Base.metadata.create_all(bind=engine)
    db = SessionLocal()
    try:
        existing = db.query(VerificationRecord).filter(VerificationRecord.request_ref == SAMPLE_REQUEST_REF).first()
        if existing and existing.delivery_assignment:
            print(f"Sample assignment already exists: {existing.delivery_assignment.payment_url}")
            return

        record = existing or open_verification(db, SAMPLE_REQUEST_REF, {
            "invoice_number": "INV-000001",
            "tracking_code": "AWB-000001",
            "service_code": "PH_TO_UAE",
            "actual_weight_kg": "10",
            "volumetric_weight_kg": "5",
            "receiver_address": "Al Quoz 3, Dubai",
            "receiver_phone": "+971500000000",
            "agents_name": "Sample Agent",
            "cargo_service": "AIR",
            "box_count": 1,
            "sender_details_complete": True,
            "receiver_details_complete": True,
        })
        if record.completed_at is None:
            record = complete_verification(db, record.id, verified_by="Sample Agent")
        print(f"Verification {record.id}: {record.chargeable_weight_kg} kg ({record.matched_bracket_label}) = {record.amount}")

        assignment = create_assignment(db, record.id)
        print(f"Created assignment {assignment.id}")
        print(f"Payment page: {assignment.payment_url}")
    except CargoPayError as e:
        print(f"Error: {e}")
        db.rollback()
    finally:
        db.close()

if __name__ == "__main__":
    create_sample_assignment()
