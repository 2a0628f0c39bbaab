"""
Storage backends.

`Storage` is the contract the routes depend on. `MongoStorage` is the persistent
backend; `MemoryStorage` keeps everything in process and is what the tests use.
Records come back as plain dicts with a string `id` and a `createdAt` datetime.
"""

import copy
import itertools
import logging
import uuid
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from bson import ObjectId
from bson.errors import InvalidId
from pymongo import ASCENDING, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, init_db
from errors import DuplicateError
from schemas import Category, ContactSubmission, PortfolioItem, UploadedFile

logger = logging.getLogger(__name__)

Record = Dict[str, Any]


def coll_name(model_cls) -> str:
    return model_cls.__name__.lower()


PORTFOLIO = coll_name(PortfolioItem)
CATEGORIES = coll_name(Category)
CONTACTS = coll_name(ContactSubmission)
UPLOADS = coll_name(UploadedFile)


class Storage(ABC):
    # Portfolio items, newest first
    @abstractmethod
    def list_portfolio_items(self, category: Optional[str] = None) -> List[Record]: ...

    @abstractmethod
    def get_portfolio_item(self, item_id: str) -> Optional[Record]: ...

    @abstractmethod
    def create_portfolio_item(self, item: PortfolioItem) -> Record: ...

    @abstractmethod
    def update_portfolio_item(self, item_id: str, changes: Dict[str, Any]) -> Optional[Record]: ...

    @abstractmethod
    def delete_portfolio_item(self, item_id: str) -> bool: ...

    # Categories, oldest first
    @abstractmethod
    def list_categories(self) -> List[Record]: ...

    @abstractmethod
    def create_category(self, category: Category) -> Record: ...

    @abstractmethod
    def update_category(self, category_id: str, changes: Dict[str, Any]) -> Optional[Record]: ...

    @abstractmethod
    def delete_category(self, category_id: str) -> bool: ...

    # Contact inbox, newest first
    @abstractmethod
    def create_contact_submission(self, submission: ContactSubmission) -> Record: ...

    @abstractmethod
    def list_contact_submissions(self) -> List[Record]: ...

    # Upload history, newest first
    @abstractmethod
    def create_uploaded_file(self, upload: UploadedFile) -> Record: ...

    @abstractmethod
    def list_uploaded_files(self) -> List[Record]: ...

    def ensure_indexes(self) -> None:
        pass

    def status(self) -> Dict[str, Any]:
        return {"backend": type(self).__name__, "connected": True, "collections": []}


def to_oid(id_str: str) -> Optional[ObjectId]:
    try:
        return ObjectId(id_str)
    except (InvalidId, TypeError):
        return None


def as_serializable(doc: Optional[Dict[str, Any]]) -> Optional[Record]:
    if not doc:
        return None
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d


class MongoStorage(Storage):
    def __init__(self, database: Database):
        self.db = database

    def ensure_indexes(self) -> None:
        self.db[CATEGORIES].create_index([("name", ASCENDING)], unique=True)
        for name in (PORTFOLIO, CATEGORIES, CONTACTS, UPLOADS):
            self.db[name].create_index([("createdAt", ASCENDING)])
        self.db[PORTFOLIO].create_index([("category", ASCENDING)])

    def status(self) -> Dict[str, Any]:
        return {
            "backend": "MongoStorage",
            "database_name": self.db.name,
            "connected": True,
            "collections": self.db.list_collection_names()[:10],
        }

    def _create(self, collection: str, model) -> Record:
        new_id = create_document(collection, model, database=self.db)
        return as_serializable(self.db[collection].find_one({"_id": ObjectId(new_id)}))

    def _list(self, collection: str, filters: Optional[Dict[str, Any]] = None, newest_first: bool = True) -> List[Record]:
        docs = get_documents(collection, filters, newest_first=newest_first, database=self.db)
        return [as_serializable(d) for d in docs]

    def _update(self, collection: str, id_str: str, changes: Dict[str, Any]) -> Optional[Record]:
        oid = to_oid(id_str)
        if oid is None:
            return None
        changes = {k: v for k, v in changes.items() if k not in ("_id", "id", "createdAt")}
        if not changes:
            return as_serializable(self.db[collection].find_one({"_id": oid}))
        doc = self.db[collection].find_one_and_update(
            {"_id": oid}, {"$set": changes}, return_document=ReturnDocument.AFTER
        )
        return as_serializable(doc)

    def _delete(self, collection: str, id_str: str) -> bool:
        oid = to_oid(id_str)
        if oid is None:
            return False
        return self.db[collection].delete_one({"_id": oid}).deleted_count > 0

    def list_portfolio_items(self, category: Optional[str] = None) -> List[Record]:
        return self._list(PORTFOLIO, {"category": category} if category else None)

    def get_portfolio_item(self, item_id: str) -> Optional[Record]:
        oid = to_oid(item_id)
        if oid is None:
            return None
        return as_serializable(self.db[PORTFOLIO].find_one({"_id": oid}))

    def create_portfolio_item(self, item: PortfolioItem) -> Record:
        return self._create(PORTFOLIO, item)

    def update_portfolio_item(self, item_id: str, changes: Dict[str, Any]) -> Optional[Record]:
        return self._update(PORTFOLIO, item_id, changes)

    def delete_portfolio_item(self, item_id: str) -> bool:
        return self._delete(PORTFOLIO, item_id)

    def list_categories(self) -> List[Record]:
        return self._list(CATEGORIES, newest_first=False)

    def create_category(self, category: Category) -> Record:
        try:
            return self._create(CATEGORIES, category)
        except DuplicateKeyError as exc:
            raise DuplicateError("name", category.name) from exc

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> Optional[Record]:
        try:
            return self._update(CATEGORIES, category_id, changes)
        except DuplicateKeyError as exc:
            raise DuplicateError("name", changes.get("name", "")) from exc

    def delete_category(self, category_id: str) -> bool:
        return self._delete(CATEGORIES, category_id)

    def create_contact_submission(self, submission: ContactSubmission) -> Record:
        return self._create(CONTACTS, submission)

    def list_contact_submissions(self) -> List[Record]:
        return self._list(CONTACTS)

    def create_uploaded_file(self, upload: UploadedFile) -> Record:
        return self._create(UPLOADS, upload)

    def list_uploaded_files(self) -> List[Record]:
        return self._list(UPLOADS)


class MemoryStorage(Storage):
    """Dict-backed store with the same ordering and uniqueness rules as Mongo."""

    def __init__(self):
        self._collections: Dict[str, Dict[str, Record]] = {PORTFOLIO: {}, CATEGORIES: {}, CONTACTS: {}, UPLOADS: {}}
        self._seq = itertools.count()
        self._order: Dict[str, int] = {}

    def _create(self, collection: str, model) -> Record:
        doc = model.model_dump(by_alias=True)
        doc["id"] = uuid.uuid4().hex
        doc["createdAt"] = datetime.now(timezone.utc)
        self._order[doc["id"]] = next(self._seq)
        self._collections[collection][doc["id"]] = doc
        return copy.deepcopy(doc)

    def _list(self, collection: str, newest_first: bool = True, **filters) -> List[Record]:
        docs = [
            d for d in self._collections[collection].values()
            if all(d.get(k) == v for k, v in filters.items())
        ]
        docs.sort(key=lambda d: (d["createdAt"], self._order[d["id"]]), reverse=newest_first)
        return [copy.deepcopy(d) for d in docs]

    def _update(self, collection: str, id_str: str, changes: Dict[str, Any]) -> Optional[Record]:
        doc = self._collections[collection].get(id_str)
        if doc is None:
            return None
        for key, value in changes.items():
            if key not in ("id", "_id", "createdAt"):
                doc[key] = value
        return copy.deepcopy(doc)

    def _delete(self, collection: str, id_str: str) -> bool:
        return self._collections[collection].pop(id_str, None) is not None

    def _name_taken(self, name: str, exclude_id: Optional[str] = None) -> bool:
        return any(
            c["name"] == name and c["id"] != exclude_id
            for c in self._collections[CATEGORIES].values()
        )

    def list_portfolio_items(self, category: Optional[str] = None) -> List[Record]:
        if category:
            return self._list(PORTFOLIO, category=category)
        return self._list(PORTFOLIO)

    def get_portfolio_item(self, item_id: str) -> Optional[Record]:
        doc = self._collections[PORTFOLIO].get(item_id)
        return copy.deepcopy(doc) if doc else None

    def create_portfolio_item(self, item: PortfolioItem) -> Record:
        return self._create(PORTFOLIO, item)

    def update_portfolio_item(self, item_id: str, changes: Dict[str, Any]) -> Optional[Record]:
        return self._update(PORTFOLIO, item_id, changes)

    def delete_portfolio_item(self, item_id: str) -> bool:
        return self._delete(PORTFOLIO, item_id)

    def list_categories(self) -> List[Record]:
        return self._list(CATEGORIES, newest_first=False)

    def create_category(self, category: Category) -> Record:
        if self._name_taken(category.name):
            raise DuplicateError("name", category.name)
        return self._create(CATEGORIES, category)

    def update_category(self, category_id: str, changes: Dict[str, Any]) -> Optional[Record]:
        if "name" in changes and self._name_taken(changes["name"], exclude_id=category_id):
            raise DuplicateError("name", changes["name"])
        return self._update(CATEGORIES, category_id, changes)

    def delete_category(self, category_id: str) -> bool:
        return self._delete(CATEGORIES, category_id)

    def create_contact_submission(self, submission: ContactSubmission) -> Record:
        return self._create(CONTACTS, submission)

    def list_contact_submissions(self) -> List[Record]:
        return self._list(CONTACTS)

    def create_uploaded_file(self, upload: UploadedFile) -> Record:
        return self._create(UPLOADS, upload)

    def list_uploaded_files(self) -> List[Record]:
        return self._list(UPLOADS)


def build_storage(settings) -> Storage:
    if settings.storage_backend == "memory":
        logger.warning("Using in-memory storage; data is lost on restart")
        return MemoryStorage()
    return MongoStorage(init_db(settings.database_url, settings.database_name))
