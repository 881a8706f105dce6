"""
MongoDB access: connection, collection handles and small document helpers.

The three collection handles are created once at startup and handed to the
services explicitly; nothing here keeps module-level state.
"""
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

import pymongo
from bson import ObjectId
from bson.errors import InvalidId
from pymongo import MongoClient
from pymongo.errors import PyMongoError

from config import Settings
from errors import InvalidInput, StorageError
from logging_config import get_logger

log = get_logger(__name__)

PRODUCTS = "products"
ORDERS = "orders"
DELIVERIES = "deliveries"


@dataclass(frozen=True)
class Collections:
    products: Any
    orders: Any
    deliveries: Any

    @classmethod
    def from_database(cls, db) -> "Collections":
        return cls(products=db[PRODUCTS], orders=db[ORDERS], deliveries=db[DELIVERIES])


def connect(settings: Settings) -> Tuple[MongoClient, Collections]:
    """Open a client, check the server answers a ping and return the handles."""
    client = MongoClient(settings.mongo_uri, serverSelectionTimeoutMS=10_000)
    try:
        client.admin.command("ping")
    except PyMongoError as e:
        client.close()
        log.critical(f"[mongo] cannot reach database: {e}")
        raise StorageError("database unavailable") from e
    log.info(f"[mongo] connected to database '{settings.mongo_db}'")
    return client, Collections.from_database(client[settings.mongo_db])


@contextmanager
def db_timeout(seconds: float, action: str):
    """Bound every operation in the block and turn driver errors into StorageError.

    ``action`` is a short description used for the log line and the message
    shown to the caller.
    """
    try:
        with pymongo.timeout(seconds):
            yield
    except PyMongoError as e:
        log.error(f"[mongo] {action} failed: {e}")
        raise StorageError(f"could not {action}") from e


# ---------- Helpers ----------

def parse_object_id(text: Optional[str]) -> ObjectId:
    if not text:
        raise InvalidInput("missing id")
    try:
        return ObjectId(text)
    except (InvalidId, TypeError):
        raise InvalidInput("invalid id")


def create_document(collection, data: Dict[str, Any]) -> str:
    doc = dict(data)
    doc["created_at"] = datetime.now(timezone.utc)
    result = collection.insert_one(doc)
    return str(result.inserted_id)


def get_documents(collection, filter_dict: Optional[dict] = None,
                  projection: Optional[dict] = None) -> List[dict]:
    return list(collection.find(filter_dict or {}, projection))


def doc_to_dict(doc: dict) -> dict:
    out = {}
    for k, v in doc.items():
        if isinstance(v, ObjectId):
            out[k] = str(v)
        elif isinstance(v, list):
            out[k] = [doc_to_dict(i) if isinstance(i, dict) else i for i in v]
        else:
            out[k] = v
    if "_id" in out:
        out["id"] = out.pop("_id")
    return out
