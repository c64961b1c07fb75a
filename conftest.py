import mongomock
import pytest

from database import BookStore
from library import Library


@pytest.fixture
def store(request):
    # Each test gets its own in-memory MongoDB
    client = mongomock.MongoClient()
    store = BookStore(client, "libraryDB_test", f"books_{request.node.name}")
    yield store
    store.close()


@pytest.fixture
def lib(store):
    return Library(store)
