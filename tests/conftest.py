import os
import tempfile

_TMP_DIR = tempfile.mkdtemp(prefix="tagsphere-tests-")

os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(_TMP_DIR, 'test.db')}"
os.environ["ENVIRONMENT"] = "test"
os.environ["AUTO_CREATE_DB"] = "false"
os.environ["JWT_SECRET"] = "test-jwt-secret"
os.environ["ENCRYPTION_KEY"] = "test-encryption-key-0123456789-abcdef"
os.environ["OTP_SERVICE"] = "mock"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["MAX_BODY_BYTES"] = "1024"
os.environ["FORWARDED_ALLOW_IPS"] = "*"
for _flag in ("ENABLE_FIREBASE", "ENABLE_RAZORPAY", "ENABLE_NOTIFICATIONS", "ENABLE_CALLS"):
    os.environ[_flag] = "false"
os.environ.pop("CALL_BRIDGE_NUMBER", None)

import pytest
from fastapi.testclient import TestClient

from tagsphere.auth.security import create_access_token
from tagsphere.db import Base, SessionLocal, engine
from tagsphere.main import app
from tagsphere.models.models import QRCode, User, Vehicle
from tagsphere.services.subscriptions import activate_plan


@pytest.fixture(autouse=True)
def reset_db():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield


@pytest.fixture
def db():
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def client():
    return TestClient(app)


@pytest.fixture
def make_user(db):
    def _make(phone="9876543210", name="Ravi Kumar", role="user", emergency=None):
        user = User(name=name, is_verified=True, role=role)
        user.set_phone(phone)
        if emergency:
            user.set_emergency_contact(*emergency)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user
    return _make


@pytest.fixture
def make_qr(db):
    def _make(qr_id="ABCDEFG", pin="123456", status="available", batch_id="BATCH-TEST"):
        qr = QRCode(qr_id=qr_id, activation_pin=pin, status=status, batch_id=batch_id)
        db.add(qr)
        db.commit()
        db.refresh(qr)
        return qr
    return _make


@pytest.fixture
def make_vehicle(db, make_qr):
    def _make(user, qr_id="ABCDEFG", vehicle_number="MH12AB1234", vehicle_type="car", vehicle_color="White"):
        make_qr(qr_id=qr_id, status="activated")
        vehicle = Vehicle(
            vehicle_number=vehicle_number,
            qr_code_id=qr_id,
            user_id=user.id,
            vehicle_type=vehicle_type,
            vehicle_color=vehicle_color,
        )
        db.add(vehicle)
        db.commit()
        db.refresh(vehicle)
        return vehicle
    return _make


@pytest.fixture
def set_plan(db):
    def _set(user, plan):
        return activate_plan(db, user.id, plan, "order_test", "pay_test")
    return _set


def auth_headers(user) -> dict:
    return {"Authorization": f"Bearer {create_access_token(str(user.id), role=user.role)}"}


@pytest.fixture
def headers_for():
    return auth_headers
