import mongomock
import pytest
from fastapi.testclient import TestClient

import database
from database import DELIVERIES, ORDERS, RESTAURANTS, USERS, create_document
from errors import UpstreamError
from main import app
from schemas import Contact, CustomerAccount, Delivery, DriverAccount, Restaurant
from security import get_password_hash
from storage import get_storage

PASSWORD = "secret123"
PASSWORD_HASH = get_password_hash(PASSWORD)


class FakeStorage:
    """Records calls instead of talking to Cloudinary."""

    def __init__(self):
        self.uploads = []
        self.deleted = []
        self.fail_upload = False
        self.fail_after = None
        self.fail_delete = False

    def upload(self, data, folder, transformation=None):
        if self.fail_upload or (self.fail_after is not None and len(self.uploads) >= self.fail_after):
            raise UpstreamError("upload refused")
        self.uploads.append((folder, len(data)))
        n = len(self.uploads)
        return {"url": f"https://res.cloudinary.com/demo/{folder}/{n}.jpg", "id": f"{folder}/{n}"}

    def delete(self, public_id):
        if self.fail_delete:
            raise UpstreamError("delete refused")
        self.deleted.append(public_id)
        return True


@pytest.fixture
def db():
    return mongomock.MongoClient()["delivernow_test"]


@pytest.fixture
def storage():
    return FakeStorage()


@pytest.fixture
def client(db, storage):
    app.dependency_overrides[database.get_db] = lambda: db
    app.dependency_overrides[get_storage] = lambda: storage
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def admin_token(client):
    res = client.post("/api/auth/register", json={
        "name": "Thandi",
        "surname": "Mokoena",
        "email": "admin@delivernow.co.za",
        "password": PASSWORD,
    })
    assert res.status_code == 201
    return res.json()["token"]


@pytest.fixture
def auth(admin_token):
    return {"Authorization": f"Bearer {admin_token}"}


@pytest.fixture
def make_customer(db):
    counter = iter(range(1, 1000))

    def _make(**overrides):
        n = next(counter)
        fields = dict(
            name=f"Customer {n}",
            email=f"customer{n}@mail.com",
            phone=f"08200000{n:02d}",
            password=PASSWORD_HASH,
        )
        fields.update(overrides)
        return create_document(db, USERS, CustomerAccount(**fields))
    return _make


@pytest.fixture
def make_driver(db):
    counter = iter(range(1, 1000))

    def _make(**overrides):
        n = next(counter)
        fields = dict(
            name=f"Driver {n}",
            email=f"driver{n}@mail.com",
            phone=f"07300000{n:02d}",
            password=PASSWORD_HASH,
            vehicle_type="Motorbike",
            vehicle_number=f"GP {n:03d} ZA",
            license_number=f"LIC{n:04d}",
        )
        fields.update(overrides)
        return create_document(db, USERS, DriverAccount(**fields))
    return _make


@pytest.fixture
def make_restaurant(db):
    def _make(**overrides):
        fields = dict(
            name="Kota King",
            cuisine="South African",
            contact=Contact(phone="0110000000", email="hello@kotaking.co.za"),
            delivery_fee=25,
        )
        fields.update(overrides)
        return create_document(db, RESTAURANTS, Restaurant(**fields))
    return _make


@pytest.fixture
def make_order(db):
    def _make(customer_id, restaurant_id, status="pending", **overrides):
        doc = {
            "order_number": f"ORD-TEST-{db[ORDERS].count_documents({}) + 1:04d}",
            "customer_id": customer_id,
            "restaurant_id": restaurant_id,
            "driver_id": None,
            "items": [{"name": "Kota", "price": 45.0, "quantity": 2}],
            "total_amount": 90.0,
            "status": status,
            "status_history": [],
        }
        doc.update(overrides)
        return create_document(db, ORDERS, doc)
    return _make


@pytest.fixture
def make_delivery(db):
    def _make(order_id, driver_id, **overrides):
        return create_document(db, DELIVERIES, Delivery(order_id=order_id, driver_id=driver_id, **overrides))
    return _make
