import logging
from typing import Any, Dict, List, Optional

from book import Book, IMMUTABLE_KEYS
from database import BookStore
from exceptions import NotFoundError, ValidationError
from validation import BookValidator

logger = logging.getLogger(__name__)

SAMPLE_BOOKS: List[Dict[str, Any]] = [
    {"title": "The Great Gatsby", "author": "F. Scott Fitzgerald", "category": "Fiction", "publishedYear": 1925, "availableCopies": 5},
    {"title": "Atomic Habits", "author": "James Clear", "category": "Self-Help", "publishedYear": 2018, "availableCopies": 10},
    {"title": "Sapiens", "author": "Yuval Noah Harari", "category": "History", "publishedYear": 2011, "availableCopies": 3},
    {"title": "1984", "author": "George Orwell", "category": "Fiction", "publishedYear": 1949, "availableCopies": 0},
    {"title": "The Alchemist", "author": "Paulo Coelho", "category": "Fiction", "publishedYear": 1988, "availableCopies": 8},
    {"title": "Deep Work", "author": "Cal Newport", "category": "Productivity", "publishedYear": 2016, "availableCopies": 4},
    {"title": "Rich Dad Poor Dad", "author": "Robert Kiyosaki", "category": "Finance", "publishedYear": 1997, "availableCopies": 0},
]


class Library:
    """Manages the book inventory on top of a document store.

    Holds no state of its own between calls; the store is the source of truth.
    """

    def __init__(self, store: BookStore) -> None:
        self.store = store

    # ------------------------- Core operations ------------------------- #
    def list_books(self, category: Optional[str] = None, min_year: Optional[int] = None) -> List[Book]:
        """List books, optionally by exact category and/or published strictly after min_year."""
        min_year = BookValidator.validate_min_year(min_year)
        return self.store.find_books(category=category or None, min_year=min_year)

    def find_book(self, book_id: str) -> Book:
        book = self.store.get_book(book_id)
        if book is None:
            raise NotFoundError("Book not found")
        return book

    def seed_books(self) -> int:
        """Replace the whole collection with the sample set."""
        books = [Book.from_dict(data) for data in SAMPLE_BOOKS]
        for book in books:
            BookValidator.validate_book(book)
        removed = self.store.clear()
        inserted = self.store.insert_books(books)
        logger.info("Seeded inventory: removed %d, inserted %d", removed, len(inserted))
        return len(inserted)

    def add_book(self, fields: Dict[str, Any]) -> Book:
        """Create a book from attribute-name fields. Title is required."""
        fields = self._strip_immutable(fields)
        BookValidator.validate_changes(fields)
        book = BookValidator.validate_book(Book(**{"title": None, **fields}))
        return self.store.insert_book(book)

    def update_book(self, book_id: str, changes: Dict[str, Any]) -> Book:
        """Apply a partial update and return the record after it.

        The checks run against the merged record, so an update is rejected
        whenever the result would be invalid.
        """
        changes = self._strip_immutable(changes)
        BookValidator.validate_changes(changes)

        current = self.find_book(book_id)
        merged = BookValidator.validate_book(current.merged(changes))

        # Store the stripped values
        updated = self.store.update_book(book_id, {key: getattr(merged, key) for key in changes})
        if updated is None:
            # Removed between the read and the write.
            raise NotFoundError("Book not found")
        return updated

    def adjust_stock(self, book_id: str, delta: int) -> Book:
        """Add (or with a negative delta, take) copies without going below zero."""
        delta = BookValidator.validate_delta(delta)
        if delta == 0:
            return self.find_book(book_id)
        updated = self.store.increment_stock(book_id, delta)
        if updated is not None:
            return updated
        # Nothing matched: tell a missing record apart from a refused decrement.
        self.find_book(book_id)
        raise ValidationError("Stock cannot be negative.")

    def remove_book(self, book_id: str) -> int:
        """Delete one book. Unknown ids are not an error; the count is 0."""
        deleted = self.store.delete_book(book_id)
        if not deleted:
            logger.debug("Delete of unknown book id %s ignored", book_id)
        return deleted

    def remove_out_of_stock(self) -> int:
        deleted = self.store.delete_out_of_stock()
        logger.info("Removed %d out-of-stock books", deleted)
        return deleted

    def get_statistics(self) -> Dict[str, Any]:
        """Get inventory statistics."""
        return {
            "total_books": self.store.count_books(),
            "out_of_stock": self.store.count_books(availableCopies=0),
            "categories": len(self.store.distinct_categories()),
        }

    # ------------------------- Utilities ------------------------- #
    @staticmethod
    def _strip_immutable(fields: Dict[str, Any]) -> Dict[str, Any]:
        ignored = [key for key in IMMUTABLE_KEYS if key in fields]
        if ignored:
            logger.debug("Ignoring immutable field(s): %s", ", ".join(ignored))
        return {key: value for key, value in fields.items() if key not in IMMUTABLE_KEYS}
