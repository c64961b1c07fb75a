import logging
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional

from bson import ObjectId
from bson.errors import InvalidDocument, InvalidId
from pymongo import MongoClient, ReturnDocument
from pymongo.errors import (
    BulkWriteError,
    CollectionInvalid,
    DuplicateKeyError,
    OperationFailure,
    PyMongoError,
)

from book import Book, FIELD_KEYS
from config import Settings, settings as default_settings
from exceptions import StoreError, ValidationError

logger = logging.getLogger(__name__)

# MongoDB error code for a write rejected by the collection validator.
DOCUMENT_VALIDATION_FAILURE = 121

BOOK_SCHEMA: Dict[str, Any] = {
    "$jsonSchema": {
        "bsonType": "object",
        "required": ["title"],
        "properties": {
            "title": {"bsonType": "string", "minLength": 1},
            "author": {"bsonType": "string"},
            "category": {"bsonType": "string"},
            "publishedYear": {"bsonType": ["int", "long"]},
            "availableCopies": {
                "bsonType": ["int", "long"],
                "minimum": 0,
                "description": "Stock cannot be negative",
            },
        },
    }
}


@contextmanager
def _translate_errors(operation: str) -> Iterator[None]:
    """Map pymongo failures onto the library error taxonomy."""
    try:
        yield
    except DuplicateKeyError as exc:
        raise ValidationError("A book with this id already exists.") from exc
    except BulkWriteError as exc:
        codes = {err.get("code") for err in exc.details.get("writeErrors", [])}
        if DOCUMENT_VALIDATION_FAILURE in codes or 11000 in codes:
            raise ValidationError("Book failed store validation.") from exc
        logger.error("Store operation '%s' failed: %s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}", operation=operation) from exc
    except OperationFailure as exc:
        if exc.code == DOCUMENT_VALIDATION_FAILURE:
            raise ValidationError("Book failed store validation.") from exc
        logger.error("Store operation '%s' failed: %s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}", operation=operation) from exc
    except PyMongoError as exc:
        logger.error("Store operation '%s' failed: %s", operation, exc)
        raise StoreError(f"{operation} failed: {exc}", operation=operation) from exc
    except (OverflowError, InvalidDocument) as exc:
        raise ValidationError(f"Book cannot be stored: {exc}") from exc


def _object_id(book_id: Any) -> Optional[ObjectId]:
    """Parse an id; malformed ids simply match nothing."""
    if isinstance(book_id, ObjectId):
        return book_id
    try:
        return ObjectId(str(book_id))
    except (InvalidId, TypeError):
        return None


def _guard_document(doc: Dict[str, Any]) -> None:
    title = doc.get("title")
    if not isinstance(title, str) or not title.strip():
        raise ValidationError("Title is required.")
    copies = doc.get("availableCopies")
    if copies is not None and copies < 0:
        raise ValidationError("Stock cannot be negative.")


class BookStore:
    """Adapter between the inventory service and a MongoDB collection."""

    def __init__(self, client: MongoClient, db_name: str, collection_name: str) -> None:
        self._client = client
        self._db = client[db_name]
        self._collection_name = collection_name
        self._collection = self._db[collection_name]

    # ------------------------- Lifecycle ------------------------- #
    def ensure_schema(self) -> None:
        """Install the $jsonSchema validator that backs the stock invariant."""
        with _translate_errors("ensure_schema"):
            try:
                self._db.create_collection(self._collection_name, validator=BOOK_SCHEMA)
                logger.info("Created collection '%s' with schema validator", self._collection_name)
            except CollectionInvalid:
                self._db.command("collMod", self._collection_name, validator=BOOK_SCHEMA)
                logger.info("Updated schema validator on '%s'", self._collection_name)

    def ping(self) -> bool:
        try:
            self._client.admin.command("ping")
            return True
        except PyMongoError as exc:
            logger.warning("Store ping failed: %s", exc)
            return False

    def close(self) -> None:
        self._client.close()

    # ------------------------- Reads ------------------------- #
    def find_books(self, category: Optional[str] = None, min_year: Optional[int] = None) -> List[Book]:
        query: Dict[str, Any] = {}
        if category:
            query["category"] = category
        if min_year is not None:
            query["publishedYear"] = {"$gt": min_year}
        with _translate_errors("find_books"):
            return [Book.from_document(doc) for doc in self._collection.find(query)]

    def get_book(self, book_id: Any) -> Optional[Book]:
        oid = _object_id(book_id)
        if oid is None:
            return None
        with _translate_errors("get_book"):
            doc = self._collection.find_one({"_id": oid})
        return Book.from_document(doc) if doc else None

    def count_books(self, **criteria: Any) -> int:
        with _translate_errors("count_books"):
            return self._collection.count_documents(criteria)

    def distinct_categories(self) -> List[str]:
        with _translate_errors("distinct_categories"):
            return [c for c in self._collection.distinct("category") if c]

    # ------------------------- Writes ------------------------- #
    def insert_book(self, book: Book) -> Book:
        doc = book.to_document()
        _guard_document(doc)
        with _translate_errors("insert_book"):
            result = self._collection.insert_one(doc)
        book.id = str(result.inserted_id)
        return book

    def insert_books(self, books: List[Book]) -> List[Book]:
        docs = [book.to_document() for book in books]
        for doc in docs:
            _guard_document(doc)
        if not docs:
            return []
        with _translate_errors("insert_books"):
            result = self._collection.insert_many(docs, ordered=True)
        for book, inserted_id in zip(books, result.inserted_ids):
            book.id = str(inserted_id)
        return books

    def update_book(self, book_id: Any, changes: Dict[str, Any]) -> Optional[Book]:
        """Apply attribute-name ``changes``; ``None`` values unset the field.

        Returns the record after the update, or None when the id is unknown.
        """
        oid = _object_id(book_id)
        if oid is None:
            return None

        to_set = {FIELD_KEYS[attr]: value for attr, value in changes.items() if value is not None}
        to_unset = {FIELD_KEYS[attr]: "" for attr, value in changes.items() if value is None}
        if "title" in to_unset or ("title" in to_set and not str(to_set["title"]).strip()):
            raise ValidationError("Title cannot be empty.")
        if to_set.get("availableCopies") is not None and to_set["availableCopies"] < 0:
            raise ValidationError("Stock cannot be negative.")

        update: Dict[str, Any] = {}
        if to_set:
            update["$set"] = to_set
        if to_unset:
            update["$unset"] = to_unset

        with _translate_errors("update_book"):
            if not update:
                doc = self._collection.find_one({"_id": oid})
            else:
                doc = self._collection.find_one_and_update(
                    {"_id": oid}, update, return_document=ReturnDocument.AFTER
                )
        return Book.from_document(doc) if doc else None

    def increment_stock(self, book_id: Any, delta: int) -> Optional[Book]:
        """Atomically add ``delta`` to the stock, never going below zero.

        Returns None when no record matched: either the id is unknown or
        the decrement would drive the stock negative.
        """
        oid = _object_id(book_id)
        if oid is None:
            return None
        query: Dict[str, Any] = {"_id": oid}
        if delta < 0:
            query["availableCopies"] = {"$gte": -delta}
        with _translate_errors("increment_stock"):
            doc = self._collection.find_one_and_update(
                query, {"$inc": {"availableCopies": delta}}, return_document=ReturnDocument.AFTER
            )
        return Book.from_document(doc) if doc else None

    def delete_book(self, book_id: Any) -> int:
        oid = _object_id(book_id)
        if oid is None:
            return 0
        with _translate_errors("delete_book"):
            return self._collection.delete_one({"_id": oid}).deleted_count

    def delete_out_of_stock(self) -> int:
        # Matches an explicit 0 only; documents without the field are kept.
        with _translate_errors("delete_out_of_stock"):
            return self._collection.delete_many({"availableCopies": 0}).deleted_count

    def clear(self) -> int:
        with _translate_errors("clear"):
            return self._collection.delete_many({}).deleted_count


def connect_store(config: Settings = default_settings) -> BookStore:
    """Open the process-wide store handle. The caller owns ``close()``."""
    with _translate_errors("connect"):
        client = MongoClient(config.mongo_uri, serverSelectionTimeoutMS=config.mongo_timeout_ms)
    store = BookStore(client, config.mongo_db_name, config.mongo_collection)
    try:
        store.ensure_schema()
    except StoreError as exc:
        # Requests will surface the outage individually.
        logger.warning("Could not install schema validator: %s", exc)
    logger.info("Connected to document store '%s/%s'", config.mongo_db_name, config.mongo_collection)
    return store
