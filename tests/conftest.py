import os
import time
from unittest import mock

import bcrypt
import jwt
import mongomock
import pytest
from bson import ObjectId

os.environ["DATABASE_URL"] = "mongodb://localhost:27017"
os.environ["DATABASE_NAME"] = "storefront_test"
os.environ["JWT_SECRET"] = "test-secret"
os.environ["ADMIN_EMAIL"] = "admin@example.com"
os.environ["ADMIN_PASSWORD_HASH"] = bcrypt.hashpw(b"admin-pass-123", bcrypt.gensalt(4)).decode()
for key in ("STRIPE_SECRET_KEY", "RAZORPAY_KEY_ID", "RAZORPAY_KEY_SECRET", "RESEND_API_KEY"):
    os.environ[key] = ""

# database.py connects at import time; hand it an in-memory server
mock.patch("pymongo.MongoClient", mongomock.MongoClient).start()

import auth  # noqa: E402
import database  # noqa: E402
from main import app, limiter  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

ADMIN_EMAIL = "admin@example.com"
ADMIN_PASSWORD = "admin-pass-123"


@pytest.fixture(autouse=True)
def db():
    limiter.reset()
    for name in database.db.list_collection_names():
        database.db.drop_collection(name)
    yield database.db


@pytest.fixture
def client():
    with TestClient(app) as c:
        yield c


@pytest.fixture
def admin_headers():
    return {"token": auth.create_admin_token(ADMIN_EMAIL)}


@pytest.fixture
def register(client):
    def _register(email="jane@example.com", password="s3cret-pass", name="Jane", phone=None):
        payload = {"name": name, "email": email, "password": password}
        if phone:
            payload["phone"] = phone
        body = client.post("/api/user/register", json=payload).json()
        assert body["success"], body
        token = body["token"]
        user_id = jwt.decode(token, "test-secret", algorithms=["HS256"])["id"]
        return {"id": user_id, "token": token, "headers": {"token": token}}
    return _register


@pytest.fixture
def user(register):
    return register()


@pytest.fixture
def make_product(db):
    def _make(name="Linen Shirt", price=40, size_stock=None, **extra):
        doc = {
            "name": name,
            "description": "Breathable linen shirt",
            "price": price,
            "image": [],
            "category": "Men",
            "subCategory": "Topwear",
            "sizes": list((size_stock or {"M": 2}).keys()),
            "bestseller": False,
            "date": int(time.time() * 1000),
            "sizeStock": dict(size_stock if size_stock is not None else {"M": 2}),
            "minStock": 5,
            "isActive": True,
            "rating": 0,
            "reviewCount": 0,
        }
        doc.update(extra)
        return str(db["product"].insert_one(doc).inserted_id)
    return _make


def size_stock(db, product_id):
    return db["product"].find_one({"_id": ObjectId(product_id)})["sizeStock"]


def line(product_id, size="M", quantity=1, name="Linen Shirt", price=40):
    return {"_id": product_id, "name": name, "price": price, "size": size, "quantity": quantity}
