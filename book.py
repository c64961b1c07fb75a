from __future__ import annotations

from typing import Any

# Python attribute -> document / wire key
FIELD_KEYS = {
    "title": "title",
    "author": "author",
    "category": "category",
    "published_year": "publishedYear",
    "available_copies": "availableCopies",
}
KEY_FIELDS = {key: attr for attr, key in FIELD_KEYS.items()}
IMMUTABLE_KEYS = ("id", "_id")


class Book:
    """Represents a single book record in the inventory."""

    def __init__(self, title: str | None, author: str | None = None, category: str | None = None,
                 published_year: int | None = None, available_copies: int | None = None,
                 book_id: str | None = None) -> None:
        self.id = book_id
        self.title = title.strip() if isinstance(title, str) else title
        self.author = author.strip() if isinstance(author, str) else author
        self.category = category.strip() if isinstance(category, str) else category
        self.published_year = published_year
        self.available_copies = available_copies

    def __str__(self) -> str:  # pragma: no cover - string formatting trivial
        return f"{self.title} by {self.author or 'Unknown Author'} (ID: {self.id})"

    def __repr__(self) -> str:  # pragma: no cover
        return f"Book({self.to_dict()!r})"

    @property
    def is_out_of_stock(self) -> bool:
        # Only an explicit 0 counts; a missing stock field does not.
        return self.available_copies == 0

    def fields(self) -> dict[str, Any]:
        return {attr: getattr(self, attr) for attr in FIELD_KEYS}

    def merged(self, changes: dict[str, Any]) -> "Book":
        """Return a copy with ``changes`` (attribute names) applied on top."""
        data = self.fields()
        data.update(changes)
        return Book(book_id=self.id, **data)

    def to_document(self) -> dict[str, Any]:
        """Document form for the store. Unset optional fields are left out."""
        return {FIELD_KEYS[attr]: value for attr, value in self.fields().items() if value is not None}

    def to_dict(self) -> dict[str, Any]:
        data = {"id": self.id}
        data.update(self.to_document())
        return data

    @staticmethod
    def from_document(doc: dict) -> "Book":
        kwargs = {attr: doc.get(key) for key, attr in KEY_FIELDS.items()}
        return Book(book_id=str(doc["_id"]) if doc.get("_id") is not None else None, **kwargs)

    @staticmethod
    def from_dict(data: dict) -> "Book":
        """Build a Book from either wire keys (``publishedYear``) or attribute names."""
        kwargs = {}
        for attr, key in FIELD_KEYS.items():
            if key in data:
                kwargs[attr] = data[key]
            elif attr in data:
                kwargs[attr] = data[attr]
        return Book(book_id=data.get("id"), **kwargs)
