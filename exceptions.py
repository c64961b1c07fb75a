"""Error taxonomy shared by the service, the store adapter and the API."""


class LibraryError(Exception):
    """Base class for library inventory errors."""


class ValidationError(LibraryError):
    """Input rejected before (or by) the store: missing title, negative stock."""


class NotFoundError(LibraryError):
    """No book with the requested id."""


class StoreError(LibraryError):
    """The document store failed or could not be reached."""

    def __init__(self, message: str, operation: str | None = None) -> None:
        super().__init__(message)
        self.operation = operation
