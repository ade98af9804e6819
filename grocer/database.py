"""MongoDB store handle and document helpers.

The handle is constructed explicitly and owned by the application lifespan:
``connect()`` on startup, ``close()`` on shutdown. Tests inject an in-memory
client instead of a URL.
"""

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

import structlog
from bson import ObjectId
from bson.errors import InvalidId
from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient

from .errors import InternalError, InvalidIdError

logger = structlog.get_logger(__name__)

PRODUCTS = "products"
CATEGORIES = "categories"
CUSTOMERS = "customers"
VENDORS = "vendors"
CARTS = "carts"
ORDERS = "orders"
DELIVERIES = "deliveries"
DELIVERY_AGENTS = "deliveryAgents"

COLLECTIONS = [PRODUCTS, CATEGORIES, CUSTOMERS, VENDORS, CARTS, ORDERS, DELIVERIES, DELIVERY_AGENTS]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_object_id(value: Any, label: str = "id") -> ObjectId:
    if isinstance(value, ObjectId):
        return value
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        raise InvalidIdError(str(value), label)


def _serialize_value(value: Any) -> Any:
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.isoformat()
    if isinstance(value, dict):
        return serialize_doc(value)
    if isinstance(value, list):
        return [_serialize_value(v) for v in value]
    return value


def serialize_doc(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Return a JSON-ready copy of a document; ``_id`` keys become ``id`` at every level."""
    if doc is None:
        return None
    out = {k: _serialize_value(v) for k, v in doc.items() if k != "_id"}
    if "_id" in doc:
        out["id"] = str(doc["_id"])
    return out


class Database:
    """Explicit handle around a MongoClient and one database."""

    def __init__(self, url: str = "mongodb://localhost:27017", name: str = "grocer", client: Optional[MongoClient] = None):
        self.url = url
        self.name = name
        self._client = client
        self._owns_client = client is None
        self._db = None

    @property
    def connected(self) -> bool:
        return self._db is not None

    @property
    def db(self):
        if self._db is None:
            raise InternalError("Database not connected")
        return self._db

    def connect(self) -> "Database":
        if self._db is not None:
            return self
        if self._client is None:
            self._client = MongoClient(self.url, tz_aware=True)
        self._db = self._client[self.name]
        self.ensure_indexes()
        logger.info("database_connected", database=self.name)
        return self

    def close(self) -> None:
        if self._client is not None and self._owns_client:
            self._client.close()
            self._client = None
        self._db = None
        logger.info("database_closed", database=self.name)

    def collection(self, name: str):
        return self.db[name]

    def __getitem__(self, name: str):
        return self.collection(name)

    def ensure_indexes(self) -> None:
        db = self.db
        db[CARTS].create_index([("userId", ASCENDING)], unique=True)
        db[CUSTOMERS].create_index([("email", ASCENDING)], unique=True)
        db[VENDORS].create_index([("email", ASCENDING)], unique=True)
        db[DELIVERIES].create_index([("orderId", ASCENDING)], unique=True)
        db[DELIVERIES].create_index([("vendorId", ASCENDING), ("createdAt", DESCENDING)])
        db[DELIVERY_AGENTS].create_index([("vendorId", ASCENDING), ("phone", ASCENDING)], unique=True)
        db[PRODUCTS].create_index([("vendorId", ASCENDING)])
        db[PRODUCTS].create_index([("category", ASCENDING)])
        db[CATEGORIES].create_index([("vendorId", ASCENDING)])
        db[ORDERS].create_index([("vendorId", ASCENDING), ("createdAt", DESCENDING)])
        db[ORDERS].create_index([("userId", ASCENDING), ("createdAt", DESCENDING)])

    def list_collection_names(self) -> List[str]:
        return self.db.list_collection_names()

    def create_document(self, collection_name: str, data: Union[BaseModel, Dict[str, Any]]) -> str:
        """Insert a document stamped with createdAt/updatedAt; return its id."""
        if isinstance(data, BaseModel):
            data_dict = data.model_dump()
        else:
            data_dict = dict(data)
        now = utcnow()
        data_dict.setdefault("createdAt", now)
        data_dict["updatedAt"] = now
        result = self.db[collection_name].insert_one(data_dict)
        return str(result.inserted_id)
