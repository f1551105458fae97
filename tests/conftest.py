"""Shared fixtures.

Every test gets its own in-memory MongoDB (``mongomock``) and the FastAPI app
is wired to it through ``app.dependency_overrides``. The clock and the
catalog are plain mutable settings so a test can move to the next day or
edit the catalog between requests.
"""

from __future__ import annotations

from typing import Any

import mongomock
import pytest
from fastapi.testclient import TestClient

from catalog import CategoryDef, get_catalog
from main import app, get_store, get_today
from security import hash_pin
from store import TallyStore

DAY_1 = "2025-03-01"
DAY_2 = "2025-03-02"

TEST_CATALOG = (
    CategoryDef(id=1, name="Tea", price=10),
    CategoryDef(id=2, name="Coffee", price=20),
    CategoryDef(id=3, name="Biscuits", price=5),
)

PHONE = "+910000000001"
PIN = "1234"


@pytest.fixture
def mongo_db():
    return mongomock.MongoClient()["tally_test"]


@pytest.fixture
def store(mongo_db) -> TallyStore:
    s = TallyStore(mongo_db)
    s.ensure_indexes()
    return s


@pytest.fixture
def settings() -> dict[str, Any]:
    return {"today": DAY_1, "catalog": TEST_CATALOG}


@pytest.fixture
def client(store: TallyStore, settings: dict[str, Any]):
    app.dependency_overrides[get_store] = lambda: store
    app.dependency_overrides[get_today] = lambda: settings["today"]
    app.dependency_overrides[get_catalog] = lambda: settings["catalog"]
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


def make_user(store: TallyStore, phone: str = PHONE, pin: str = PIN) -> str:
    pin_hash, salt = hash_pin(pin)
    return store.create_user(phone, pin_hash, salt)


@pytest.fixture
def user_id(store: TallyStore) -> str:
    return make_user(store)


def login(client: TestClient, phone: str = PHONE, pin: str = PIN) -> dict[str, str]:
    resp = client.post("/api/auth/login", json={"phone": phone, "pin": pin})
    assert resp.status_code == 200, resp.text
    return {"Authorization": f"Bearer {resp.json()['token']}"}


@pytest.fixture
def auth_headers(client: TestClient, user_id: str) -> dict[str, str]:
    return login(client)
