import json
from unittest.mock import patch

import pytest
from typer.testing import CliRunner

import main
from main import app

runner = CliRunner()

MISSING_ID = "64b7f0c2a1b2c3d4e5f60718"


@pytest.fixture(autouse=True)
def cli_store(store, monkeypatch):
    monkeypatch.setattr(main, "connect_store", lambda *args, **kwargs: store)
    monkeypatch.setenv("LIB_CLI_OUTPUT", "plain")
    return store


def test_list_no_books():
    result = runner.invoke(app, ["list"])
    assert result.exit_code == 0
    assert "No books in library." in result.stdout


def test_seed_and_list(lib):
    result = runner.invoke(app, ["seed"])
    assert result.exit_code == 0
    assert "7 books inserted successfully." in result.stdout

    result = runner.invoke(app, ["list", "--category", "Fiction", "--min-year", "1940"])
    assert result.exit_code == 0
    assert "1984" in result.stdout
    assert "The Alchemist" in result.stdout
    assert "Gatsby" not in result.stdout


def test_add_book_success(lib):
    result = runner.invoke(app, ["add", "Test Book", "--author", "Test Author", "--copies", "2"])
    assert result.exit_code == 0
    assert "Successfully added: Test Book" in result.stdout
    books = lib.list_books()
    assert len(books) == 1
    assert books[0].available_copies == 2


def test_add_book_negative_stock(lib):
    result = runner.invoke(app, ["add", "Bad", "--copies", "-1"])
    assert result.exit_code == 1
    assert "Error: Stock cannot be negative." in result.stdout
    assert lib.list_books() == []


def test_update_book(lib):
    book = lib.add_book({"title": "Old Title", "author": "Old Author"})
    result = runner.invoke(app, ["update", book.id, "--title", "New Title"])
    assert result.exit_code == 0
    assert "Updated: New Title" in result.stdout
    assert lib.find_book(book.id).author == "Old Author"


def test_update_requires_an_option(lib):
    book = lib.add_book({"title": "Untouched"})
    result = runner.invoke(app, ["update", book.id])
    assert result.exit_code == 1
    assert "Nothing to update" in result.stdout


def test_update_not_found():
    result = runner.invoke(app, ["update", MISSING_ID, "--title", "Ghost"])
    assert result.exit_code == 1
    assert "Not found: Book not found" in result.stdout


def test_stock_command(lib):
    book = lib.add_book({"title": "Counted", "available_copies": 1})
    result = runner.invoke(app, ["stock", book.id, "--", "-1"])
    assert result.exit_code == 0
    assert "Stock for Counted: 0" in result.stdout

    result = runner.invoke(app, ["stock", book.id, "--", "-1"])
    assert result.exit_code == 1
    assert "Stock cannot be negative" in result.stdout


def test_find_book(lib):
    book = lib.add_book({"title": "Found Book", "author": "Finder", "category": "Mystery"})
    result = runner.invoke(app, ["find", book.id])
    assert result.exit_code == 0
    assert "Title: Found Book" in result.stdout
    assert "Author: Finder" in result.stdout
    assert f"ID: {book.id}" in result.stdout


def test_remove_book(lib):
    book = lib.add_book({"title": "To Be Removed"})
    result = runner.invoke(app, ["remove", book.id])
    assert result.exit_code == 0
    assert f"Book with ID {book.id} has been removed." in result.stdout

    result = runner.invoke(app, ["remove", book.id])
    assert result.exit_code == 0
    assert f"Book with ID {book.id} not found." in result.stdout


def test_cleanup_and_stats(lib):
    lib.seed_books()
    result = runner.invoke(app, ["cleanup"])
    assert result.exit_code == 0
    assert "Deleted 2 out-of-stock books." in result.stdout

    result = runner.invoke(app, ["stats"])
    assert result.exit_code == 0
    assert "Total Books: 5" in result.stdout
    assert "Out of Stock: 0" in result.stdout


def test_json_output(lib):
    lib.add_book({"title": "Json Book", "published_year": 2001})
    result = runner.invoke(app, ["--output", "json", "list"])
    assert result.exit_code == 0
    data = json.loads(result.stdout.strip().splitlines()[-1])
    assert data[0]["title"] == "Json Book"
    assert data[0]["publishedYear"] == 2001


@patch("subprocess.run")
def test_serve_command(mock_subprocess_run):
    result = runner.invoke(app, ["serve", "--port", "5050"])
    assert result.exit_code == 0
    assert "Starting API on" in result.stdout
    mock_subprocess_run.assert_called_once()
    args = mock_subprocess_run.call_args[0][0]
    assert "uvicorn" in args
    assert "api:app" in args
    assert "5050" in args
