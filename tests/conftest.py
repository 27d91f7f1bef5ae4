import mongomock
import pytest
from fastapi.testclient import TestClient

from config import Settings
from database import StudentStore
from main import create_app


@pytest.fixture
def juan():
    return {
        "firstName": "Juan",
        "lastName": "Dela Cruz",
        "email": "juan@example.com",
        "course": "BSIT",
        "section": "A",
        "studentNo": "2025-0001",
        "year": 2,
    }


@pytest.fixture
def store():
    collection = mongomock.MongoClient()["student_crud_test"]["students"]
    store = StudentStore(collection)
    store.ensure_indexes()
    return store


@pytest.fixture
def client(store):
    app = create_app(store=store, settings=Settings())
    with TestClient(app) as c:
        yield c


@pytest.fixture
def make_student(client, juan):
    """POST a student built from ``juan`` with the given overrides."""
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        n = counter["n"]
        body = dict(juan, email=f"student{n}@example.com", studentNo=f"2025-{n:04d}")
        body.update(overrides)
        r = client.post("/api/v1/students", json=body)
        assert r.status_code == 201, r.text
        return r.json()

    return _make
