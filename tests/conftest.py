import os

os.environ.setdefault("BCRYPT_ROUNDS", "4")
os.environ.setdefault("JWT_SECRET", "test-secret-0123456789-0123456789-abcdef")

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient

from auth import register_user
from database import create_document, ensure_indexes, get_db
from schemas import CurrentUser, Product, ShippingAddress


@pytest.fixture()
def db():
    database = mongomock.MongoClient().commerce
    ensure_indexes(database)
    return database


@pytest.fixture()
def client(db):
    from main import app

    app.dependency_overrides[get_db] = lambda: db
    yield TestClient(app)
    app.dependency_overrides.clear()


def make_user(db, email="client@example.com", role="client", name="Client User", password="secret123"):
    user, token = register_user(db, name, email, password)
    if role != "client":
        # roles are only granted by direct administrative action
        db.user.update_one({"_id": ObjectId(user["id"])}, {"$set": {"role": role}})
        user["role"] = role
    return CurrentUser(**user), token


def make_product(db, stock=None, price=25.0, name="Linen Shirt", category="Shirts"):
    product = Product(
        name=name,
        description="Breathable summer shirt",
        price=price,
        category=category,
        stock=stock if stock is not None else [{"size": "M", "quantity": 3}],
        image_url="https://img.example.com/linen.jpg",
        image_id="linen-shirt",
    )
    return create_document(db, "product", product)


def stock_of(db, product_id, size):
    doc = db.product.find_one({"_id": ObjectId(product_id)})
    return next(s["quantity"] for s in doc["stock"] if s["size"] == size)


@pytest.fixture()
def client_user(db):
    return make_user(db)


@pytest.fixture()
def admin_user(db):
    return make_user(db, email="admin@example.com", role="admin", name="Admin User")


@pytest.fixture()
def address():
    return ShippingAddress(street="Av. Paulista 1000", city="São Paulo", postal_code="01310-100")


def bearer(token):
    return {"Authorization": f"Bearer {token}"}
