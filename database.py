"""
Database helpers

Owns the MongoDB connection and a couple of small helpers used by the stores.
Each collection is named after the lowercase schema class:
- User -> "user"
- Product -> "product"
- Order -> "order"
- Review -> "review"
"""

import logging
from datetime import datetime, timezone
from typing import Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, MongoClient
from pymongo.database import Database

import config

logger = logging.getLogger(__name__)

_client: Optional[MongoClient] = None


def get_db() -> Database:
    """Return the shared database handle, connecting on first use."""
    global _client
    if _client is None:
        logger.info("Connecting to MongoDB database %s", config.DATABASE_NAME)
        _client = MongoClient(config.DATABASE_URL)
    return _client[config.DATABASE_NAME]


def close_db() -> None:
    global _client
    if _client is not None:
        _client.close()
        _client = None


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def create_document(db: Database, collection_name: str, data: Union[BaseModel, dict]) -> str:
    """Insert a document stamped with created_at/updated_at and return its id."""
    if isinstance(data, BaseModel):
        doc = data.model_dump()
    else:
        doc = dict(data)
    now = utcnow()
    if not doc.get("created_at"):
        doc["created_at"] = now
    doc["updated_at"] = now
    result = db[collection_name].insert_one(doc)
    return str(result.inserted_id)


def ensure_indexes(db: Database) -> None:
    db["user"].create_index([("email", ASCENDING)], unique=True)
    db["review"].create_index([("user", ASCENDING), ("product", ASCENDING)], unique=True)
    db["order"].create_index([("user", ASCENDING), ("created_at", ASCENDING)])


def ping(db: Database) -> list:
    """Return the collection names, raising if the database is unreachable."""
    return db.list_collection_names()
