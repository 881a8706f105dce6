from datetime import datetime

import mongomock
import pytest
from bson import ObjectId
from fastapi.testclient import TestClient
from pymongo.errors import ServerSelectionTimeoutError

from config import Settings
from database import Collections
from main import create_app


class FailingCollection:
    """Stands in for a collection whose server never answers."""

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise ServerSelectionTimeoutError("no servers available")
        return fail


@pytest.fixture()
def db():
    return mongomock.MongoClient()["penguin_shop_test"]


@pytest.fixture()
def collections(db):
    return Collections.from_database(db)


@pytest.fixture()
def settings():
    return Settings(uploads_base="http://uploads.test/")


@pytest.fixture()
def client(settings, collections):
    return TestClient(create_app(settings, collections))


@pytest.fixture()
def failing_collection():
    return FailingCollection()


@pytest.fixture()
def products(db):
    result = db.products.insert_many([
        {
            "name": "Fresh fish",
            "price": 150,
            "description": "Caught this morning",
            "image_path": "/uploads/fish.png",
            "is_active": True,
            "stock": 40,
        },
        {
            "name": "Wool scarf",
            "price": 1200,
            "description": "Warm enough for Antarctica",
            "image_path": "https://cdn.example.com/scarf.png",
            "is_active": True,
            "stock": 5,
        },
        {
            "name": "Old sled",
            "price": 9000,
            "description": "Retired",
            "image_path": "sled.png",
            "is_active": False,
        },
    ])
    fish, scarf, sled = result.inserted_ids
    return {"fish": fish, "scarf": scarf, "sled": sled}


@pytest.fixture()
def make_order(db):
    def _make(status="new", **overrides):
        doc = {
            "buyer_name": "Pingu",
            "address": "Igloo 7",
            "email": "pingu@example.com",
            "status": status,
            "items": [
                {"product_id": ObjectId(), "name": "Fresh fish", "qty": 2, "unit_price": 150, "subtotal": 300},
            ],
            "total": 300,
            "created_at": datetime(2025, 1, 1, 12, 0),
        }
        doc.update(overrides)
        return db.orders.insert_one(doc).inserted_id
    return _make
