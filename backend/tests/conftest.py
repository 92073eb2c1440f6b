import os

# Must be set before cargopay.db.database creates its engine.
os.environ["DATABASE_URL"] = "sqlite://"

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from cargopay.db.database import Base, get_db
from cargopay.main import app
from cargopay.services.assignment_store import AssignmentRepository
from cargopay.services.dispatch import create_assignment
from cargopay.services.proof_storage import LocalProofStorage, get_proof_storage
from cargopay.services.rate_table import get_rate_table
from cargopay.services.verification import complete_verification, open_verification

COMPLETE_INPUT = {
    "invoice_number": "INV-1001",
    "tracking_code": "AWB-1001",
    "service_code": "PH_TO_UAE_AIR",
    "actual_weight_kg": "10",
    "volumetric_weight_kg": "5",
    "receiver_address": "Al Quoz 3, Dubai",
    "receiver_phone": "+971501234567",
    "agents_name": "Maria",
    "cargo_service": "AIR",
    "box_count": 2,
    "sender_details_complete": True,
    "receiver_details_complete": True,
}


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def rate_table():
    return get_rate_table()


@pytest.fixture
def proof_storage(tmp_path):
    return LocalProofStorage(tmp_path / "proofs")


@pytest.fixture
def client(session_factory, proof_storage):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_proof_storage] = lambda: proof_storage
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()


@pytest.fixture
def completed_verification(db):
    record = open_verification(db, "REQ-1001", COMPLETE_INPUT)
    return complete_verification(db, record.id, verified_by="Maria")


@pytest.fixture
def assignment(db, completed_verification):
    return create_assignment(db, completed_verification.id, "Warehouse 7, Al Quoz")


@pytest.fixture
def repository(db):
    return AssignmentRepository(db, timeout_seconds=5)
