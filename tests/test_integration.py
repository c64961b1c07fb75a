import pytest
from fastapi.testclient import TestClient

import api


@pytest.fixture
def test_client(store, monkeypatch):
    """Create a test client backed by a clean in-memory store."""
    monkeypatch.setattr(api, "connect_store", lambda *args, **kwargs: store)
    with TestClient(api.app) as client:
        yield client


def test_full_book_lifecycle(test_client):
    """Test complete book lifecycle: create, read, update, delete."""
    response = test_client.post("/books", json={"title": "Sapiens", "category": "History", "availableCopies": 1})
    assert response.status_code == 201
    book = response.json()

    # Read the book
    response = test_client.get(f"/books/{book['id']}")
    assert response.status_code == 200
    assert response.json()["title"] == "Sapiens"

    # Update the book
    response = test_client.put(f"/books/{book['id']}", json={"author": "Yuval Noah Harari", "publishedYear": 2011})
    assert response.status_code == 200
    updated = response.json()
    assert updated["author"] == "Yuval Noah Harari"
    assert updated["availableCopies"] == 1

    # Sell the last copy, then it counts as out of stock
    response = test_client.patch(f"/books/{book['id']}/stock", json={"delta": -1})
    assert response.json()["availableCopies"] == 0
    assert test_client.delete("/books/cleanup/empty").json()["deletedCount"] == 1

    # Verify deletion
    response = test_client.get(f"/books/{book['id']}")
    assert response.status_code == 404
    assert test_client.delete(f"/books/{book['id']}").json()["deletedCount"] == 0


def test_frontend_flow(test_client):
    """Seed, filter and adjust stock the way the single-page UI does."""
    assert test_client.post("/books/seed").status_code == 200

    fiction = test_client.get("/books?category=Fiction").json()
    assert len(fiction) == 3
    after_2015 = test_client.get("/books?minYear=2015").json()
    assert sorted(b["title"] for b in after_2015) == ["Atomic Habits", "Deep Work"]

    orwell = next(b for b in fiction if b["title"] == "1984")
    response = test_client.put(f"/books/{orwell['id']}", json={"availableCopies": orwell["availableCopies"] - 1})
    assert response.status_code == 400
    assert "error" in response.json()

    response = test_client.put(f"/books/{orwell['id']}", json={"availableCopies": orwell["availableCopies"] + 1})
    assert response.status_code == 200
    assert response.json()["availableCopies"] == 1

    # 1984 is back in stock, so only Rich Dad Poor Dad goes
    assert test_client.delete("/books/cleanup/empty").json()["deletedCount"] == 1
    assert len(test_client.get("/books").json()) == 6

    # Reseeding always restores the reference set
    test_client.post("/books/seed")
    assert len(test_client.get("/books").json()) == 7
