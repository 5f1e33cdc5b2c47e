import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from decimal import Decimal
import os

# Set testing environment variables before the app reads its settings
os.environ["TESTING"] = "1"
os.environ["TEST_DATABASE_URL"] = "sqlite:///./test.db"
os.environ.setdefault("ADMIN_EMAIL", "admin@example.com")
os.environ.setdefault("ADMIN_PASSWORD", "AdminPassword123")
os.environ.setdefault("GUEST_EMAIL", "guest@example.com")
os.environ.setdefault("GUEST_PASSWORD", "GuestPassword123")

from clinic.main import app
from clinic.core.database import get_db, Base
from clinic.core.ids import ID_PREFIXES, make_id
from clinic.core.rate_limit import InMemoryRateLimiter
from clinic.core.security import get_password_hash
from clinic.models.doctor import Doctor
from clinic.models.patient import Patient
from clinic.models.user import User

ADMIN_LOGIN = {
    "email": os.environ["ADMIN_EMAIL"],
    "password": os.environ["ADMIN_PASSWORD"]
}
GUEST_LOGIN = {
    "email": os.environ["GUEST_EMAIL"],
    "password": os.environ["GUEST_PASSWORD"]
}
USER_PASSWORD = "TestPassword123"

# Create test database
SQLALCHEMY_DATABASE_URL = "sqlite:///./test.db"
engine = create_engine(
    SQLALCHEMY_DATABASE_URL, connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

def override_get_db():
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()

app.dependency_overrides[get_db] = override_get_db

@pytest.fixture(scope="function")
def test_db():
    # Create tables
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)

@pytest.fixture
def client(test_db):
    with TestClient(app, base_url="http://testserver") as test_client:
        # Fresh counters for every test
        app.state.rate_limiter = InMemoryRateLimiter(max_requests=500, window_seconds=900)
        yield test_client

@pytest.fixture
def db(test_db):
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()

def login(client, email, password):
    response = client.post("/api/v1/auth/login", json={"email": email, "password": password})
    assert response.status_code == 200, response.text
    return {"Authorization": f"Bearer {response.json()['access_token']}"}

@pytest.fixture
def admin_headers(client):
    """Headers for the built-in super admin account."""
    return login(client, **ADMIN_LOGIN)

@pytest.fixture
def make_user(db):
    """Insert a user with the given role; returns the ORM row."""
    counter = {"n": 0}

    def _make_user(role_id, email=None, is_admin=False):
        counter["n"] += 1
        email = email or f"user{counter['n']}@example.com"
        user = User(
            user_id=make_id(ID_PREFIXES["USER"], counter["n"]),
            username=email.split("@")[0],
            email=email,
            password_hash=get_password_hash(USER_PASSWORD),
            full_name=f"Test User {counter['n']}",
            role_id=int(role_id),
            is_admin=is_admin,
            is_active=True,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user

@pytest.fixture
def headers_for(client, make_user):
    """Create a user with ``role_id`` and return auth headers for them."""
    def _headers_for(role_id, email=None):
        user = make_user(role_id, email=email)
        return login(client, user.email, USER_PASSWORD)

    return _headers_for

@pytest.fixture
def doctor(db):
    doctor = Doctor(
        doctor_id=make_id(ID_PREFIXES["DOCTOR"], 1),
        name="Dr. Jane Smith",
        email="jane.smith@example.com",
        phone="555-0101",
        specialty="Cardiology",
        consultation_fee=Decimal("100.00"),
        follow_up_fee=Decimal("60.00"),
        is_available=True,
    )
    db.add(doctor)
    db.commit()
    db.refresh(doctor)
    return doctor

@pytest.fixture
def patient(db, doctor):
    patient = Patient(
        patient_id=make_id(ID_PREFIXES["PATIENT"], 1),
        name="John Doe",
        email="john.doe@example.com",
        phone="555-0202",
        primary_physician=doctor.doctor_id,
    )
    db.add(patient)
    db.commit()
    db.refresh(patient)
    return patient

@pytest.fixture
def appointment(client, admin_headers, patient, doctor):
    """A pending consultation booked through the API."""
    response = client.post(
        "/api/v1/appointments",
        json={
            "patient_id": patient.patient_id,
            "doctor_id": doctor.doctor_id,
            "schedule": "2026-11-02T09:30:00",
            "reason": "Chest pain",
        },
        headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()

@pytest.fixture
def invoice(client, admin_headers, appointment):
    """Invoice billing ``appointment`` for its full price."""
    response = client.post(
        "/api/v1/invoices",
        json={
            "patient_id": appointment["patient_id"],
            "appointment_id": appointment["appointment_id"],
            "invoice_date": "2026-11-02",
        },
        headers=admin_headers
    )
    assert response.status_code == 201, response.text
    return response.json()

