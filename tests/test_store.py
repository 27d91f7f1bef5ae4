from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import DuplicateKeyError, ServerSelectionTimeoutError

from config import Settings
from database import StudentStore, duplicate_message, to_object_id, utcnow
from errors import NotFound, StorageError, ValidationError
from main import create_app


def test_utcnow_has_millisecond_precision():
    assert utcnow().microsecond % 1000 == 0


def test_to_object_id_error_kind():
    with pytest.raises(StorageError):
        to_object_id("nope")
    with pytest.raises(ValidationError):
        to_object_id("nope", ValidationError)


def test_duplicate_message_names_the_field():
    exc = DuplicateKeyError("E11000 duplicate key error", 11000,
                            {"keyValue": {"email": "juan@example.com"}})
    assert "email" in duplicate_message(exc)
    assert "juan@example.com" in duplicate_message(exc)


def test_indexes_are_unique(store):
    info = store.collection.index_information()
    unique = {tuple(k for k, _ in v["key"]) for v in info.values() if v.get("unique")}
    assert ("email",) in unique
    assert ("studentNo",) in unique


def test_patch_duplicate_key_becomes_validation_error(store, juan):
    created = store.create(juan)
    store.collection = MagicMock(wraps=store.collection)
    store.collection.find_one_and_update.side_effect = DuplicateKeyError("E11000 studentNo dup", 11000)
    with pytest.raises(ValidationError) as info:
        store.patch(created["id"], {"studentNo": "2025-0002"})
    assert "studentNo" in info.value.message


def test_replace_unknown_id_raises_not_found(store, juan):
    with pytest.raises(NotFound):
        store.replace("507f1f77bcf86cd799439011", juan)


def test_storage_failure_is_500():
    collection = MagicMock()
    collection.find.side_effect = ServerSelectionTimeoutError("No servers found")
    app = create_app(store=StudentStore(collection), settings=Settings())
    client = TestClient(app)
    r = client.get("/api/v1/students")
    assert r.status_code == 500
    assert r.json() == {"message": "No servers found"}


def test_missing_store_is_500():
    app = create_app(store=None, settings=Settings())
    client = TestClient(app)
    r = client.get("/api/v1/students")
    assert r.status_code == 500


def test_replace_validates_direct_callers(store, juan):
    created = store.create(juan)
    with pytest.raises(ValidationError):
        store.replace(created["id"], dict(juan, lastName=""))
    assert store.get(created["id"])["lastName"] == juan["lastName"]
