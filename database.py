"""
MongoDB connection and document helpers.

`db` is None until `init_db` is called with a configured connection string.
Collection names are the lowercase of the schema class name.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel
from pymongo import ASCENDING, DESCENDING, MongoClient
from pymongo.database import Database

logger = logging.getLogger(__name__)

db: Optional[Database] = None

DEFAULT_DATABASE_NAME = "agency_portfolio"


def init_db(database_url: Optional[str], database_name: Optional[str] = None, client: Optional[MongoClient] = None) -> Database:
    """Create the client (lazy connect) and remember the database handle."""
    global db
    if client is None:
        if not database_url:
            raise ValueError("DATABASE_URL is not configured")
        client = MongoClient(database_url, tz_aware=True)
    db = client[database_name or DEFAULT_DATABASE_NAME]
    logger.info("Using MongoDB database %s", db.name)
    return db


def create_document(collection_name: str, data: Union[BaseModel, Dict[str, Any]], database: Optional[Database] = None) -> str:
    """Insert a document stamped with createdAt; returns the new id as a string."""
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not initialized")
    doc = data.model_dump(by_alias=True) if isinstance(data, BaseModel) else dict(data)
    doc["createdAt"] = datetime.now(timezone.utc)
    result = target[collection_name].insert_one(doc)
    return str(result.inserted_id)


def get_documents(
    collection_name: str,
    filter_dict: Optional[Dict[str, Any]] = None,
    limit: Optional[int] = None,
    newest_first: bool = True,
    database: Optional[Database] = None,
) -> List[Dict[str, Any]]:
    target = database if database is not None else db
    if target is None:
        raise RuntimeError("Database not initialized")
    direction = DESCENDING if newest_first else ASCENDING
    cursor = target[collection_name].find(filter_dict or {}).sort([("createdAt", direction), ("_id", direction)])
    if limit:
        cursor = cursor.limit(limit)
    return list(cursor)
