from typing import Any, Dict, Optional

from book import Book, FIELD_KEYS
from exceptions import ValidationError

TEXT_FIELDS = ("title", "author", "category")
INT_FIELDS = ("published_year", "available_copies")

# Range of a BSON int64
INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1


class BookValidator:
    """Explicit checks run before every write.

    Structural checks (presence, types) always run before business rules,
    so a record with a bad type never gets as far as the stock check.
    """

    @staticmethod
    def _is_int(value: Any) -> bool:
        return isinstance(value, int) and not isinstance(value, bool)

    @staticmethod
    def _in_range(value: int) -> bool:
        return INT64_MIN <= value <= INT64_MAX

    @staticmethod
    def check_structure(book: Book) -> None:
        if book.title is None:
            raise ValidationError("Title is required.")
        for attr in TEXT_FIELDS:
            value = getattr(book, attr)
            if value is not None and not isinstance(value, str):
                raise ValidationError(f"{FIELD_KEYS[attr]} must be a string.")
        if not book.title.strip():
            raise ValidationError("Title cannot be empty.")
        for attr in INT_FIELDS:
            value = getattr(book, attr)
            if value is not None and not BookValidator._is_int(value):
                raise ValidationError(f"{FIELD_KEYS[attr]} must be an integer.")
            if value is not None and not BookValidator._in_range(value):
                raise ValidationError(f"{FIELD_KEYS[attr]} is out of range.")

    @staticmethod
    def check_rules(book: Book) -> None:
        if book.available_copies is not None and book.available_copies < 0:
            raise ValidationError("Stock cannot be negative.")

    @staticmethod
    def validate_book(book: Book) -> Book:
        BookValidator.check_structure(book)
        BookValidator.check_rules(book)
        return book

    @staticmethod
    def validate_changes(changes: Dict[str, Any]) -> None:
        unknown = [key for key in changes if key not in FIELD_KEYS]
        if unknown:
            raise ValidationError(f"Unknown field(s): {', '.join(sorted(unknown))}")

    @staticmethod
    def validate_min_year(min_year: Optional[Any]) -> Optional[int]:
        if min_year is None:
            return None
        if not BookValidator._is_int(min_year):
            raise ValidationError("minYear must be an integer.")
        if not BookValidator._in_range(min_year):
            raise ValidationError("minYear is out of range.")
        return min_year

    @staticmethod
    def validate_delta(delta: Any) -> int:
        if not BookValidator._is_int(delta):
            raise ValidationError("delta must be an integer.")
        if not BookValidator._in_range(delta):
            raise ValidationError("delta is out of range.")
        return delta
