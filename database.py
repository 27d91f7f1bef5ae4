import logging
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pydantic import ValidationError as SchemaError
from pymongo import ASCENDING, DESCENDING, MongoClient, ReturnDocument
from pymongo.collection import Collection
from pymongo.errors import DuplicateKeyError, PyMongoError

from config import Settings
from errors import NotFound, StorageError, ValidationError, format_validation_errors
from schemas import StudentCreate

logger = logging.getLogger(__name__)

COLLECTION_NAME = "students"
UNIQUE_FIELDS = ("email", "studentNo")
NEWEST_FIRST = [("createdAt", DESCENDING), ("_id", DESCENDING)]


def utcnow() -> datetime:
    # BSON dates only keep milliseconds
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def to_object_id(id_str: str, error=StorageError) -> ObjectId:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        raise error(f'Cast to ObjectId failed for value "{id_str}"')


def _as_utc(value):
    if isinstance(value, datetime):
        return value.replace(tzinfo=timezone.utc) if value.tzinfo is None else value.astimezone(timezone.utc)
    return value


def to_dict(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if not doc:
        return doc
    doc["id"] = str(doc.pop("_id"))
    for key in ("createdAt", "updatedAt"):
        doc[key] = _as_utc(doc.get(key))
    return doc


def duplicate_message(exc: DuplicateKeyError) -> str:
    key_value = (exc.details or {}).get("keyValue") or {}
    for field, value in key_value.items():
        return f'Duplicate value for {field}: "{value}" is already in use'
    text = str(exc)
    for field in UNIQUE_FIELDS:
        if field in text:
            return f"Duplicate value for {field}: already in use"
    return "A student with this email or studentNo already exists"


def validate_record(data: Dict[str, Any]) -> Dict[str, Any]:
    """Check a complete student document, returning its storable fields."""
    try:
        return StudentCreate.model_validate(data).model_dump(exclude_none=True)
    except SchemaError as exc:
        raise ValidationError(format_validation_errors(exc.errors()))


@contextmanager
def storage_errors(action: str):
    try:
        yield
    except DuplicateKeyError as exc:
        raise ValidationError(duplicate_message(exc)) from exc
    except PyMongoError as exc:
        logger.exception("Storage failure during %s", action)
        raise StorageError(str(exc)) from exc


class StudentStore:
    """All reads and writes of the students collection go through here."""

    def __init__(self, collection: Collection):
        self.collection = collection

    def ensure_indexes(self) -> None:
        with storage_errors("index creation"):
            for field in UNIQUE_FIELDS:
                self.collection.create_index([(field, ASCENDING)], unique=True)
            self.collection.create_index([("createdAt", DESCENDING)])
        logger.info("Indexes ready on %s", self.collection.name)

    def ping(self) -> bool:
        try:
            self.collection.database.client.admin.command("ping")
            return True
        except PyMongoError as exc:
            logger.warning("Database ping failed: %s", exc)
            return False

    def close(self) -> None:
        self.collection.database.client.close()

    # Reads

    def find_many(self, query: Optional[Dict[str, Any]] = None) -> List[Dict[str, Any]]:
        with storage_errors("find"):
            docs = list(self.collection.find(query or {}).sort(NEWEST_FIRST))
        return [to_dict(d) for d in docs]

    def find_one(self, query: Dict[str, Any]) -> Dict[str, Any]:
        with storage_errors("find_one"):
            doc = self.collection.find_one(query)
        if doc is None:
            raise NotFound()
        return to_dict(doc)

    def get(self, id_str: str) -> Dict[str, Any]:
        return self.find_one({"_id": to_object_id(id_str)})

    # Writes

    def create(self, data: Dict[str, Any]) -> Dict[str, Any]:
        doc = validate_record(data)
        doc["createdAt"] = doc["updatedAt"] = utcnow()
        with storage_errors("create"):
            res = self.collection.insert_one(doc)
        doc["_id"] = res.inserted_id
        logger.info("Created student %s", res.inserted_id)
        return to_dict(doc)

    def replace(self, id_str: str, data: Dict[str, Any]) -> Dict[str, Any]:
        """Overwrite every mutable field. ``data`` is validated here as well
        as at the HTTP boundary since the store is also driven directly."""
        oid = to_object_id(id_str, ValidationError)
        replacement = validate_record(data)
        with storage_errors("replace"):
            current = self.collection.find_one({"_id": oid}, {"createdAt": 1})
            if current is None:
                raise NotFound()
            replacement["createdAt"] = current.get("createdAt")
            replacement["updatedAt"] = utcnow()
            doc = self.collection.find_one_and_replace(
                {"_id": oid}, replacement, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise NotFound()
        logger.info("Replaced student %s", oid)
        return to_dict(doc)

    def patch(self, id_str: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        oid = to_object_id(id_str, ValidationError)
        with storage_errors("patch"):
            current = self.collection.find_one({"_id": oid})
        if current is None:
            raise NotFound()

        merged = {k: v for k, v in current.items() if k in StudentCreate.model_fields}
        merged.update(changes)
        validate_record(merged)

        update = dict(changes, updatedAt=utcnow())
        with storage_errors("patch"):
            doc = self.collection.find_one_and_update(
                {"_id": oid}, {"$set": update}, return_document=ReturnDocument.AFTER
            )
        if doc is None:
            raise NotFound()
        logger.info("Patched student %s (%s)", oid, ", ".join(sorted(changes)) or "no fields")
        return to_dict(doc)

    def delete(self, id_str: str) -> None:
        oid = to_object_id(id_str)
        with storage_errors("delete"):
            doc = self.collection.find_one_and_delete({"_id": oid})
        if doc is None:
            raise NotFound()
        logger.info("Deleted student %s", oid)


def connect(settings: Settings) -> StudentStore:
    """Open the client, fail fast if the server is unreachable, prepare indexes."""
    client = MongoClient(settings.mongodb_uri, serverSelectionTimeoutMS=settings.mongodb_timeout_ms)
    try:
        client.admin.command("ping")
    except PyMongoError as exc:
        client.close()
        logger.error("Failed to connect to MongoDB: %s", exc)
        raise
    logger.info("Connected to MongoDB database %s", settings.database_name)
    store = StudentStore(client[settings.database_name][COLLECTION_NAME])
    store.ensure_indexes()
    return store
