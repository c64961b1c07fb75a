import subprocess
import sys
import webbrowser
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

import typer

from config import settings
from database import connect_store
from exceptions import LibraryError, NotFoundError, StoreError, ValidationError
from library import Library
from ui_helpers import set_output_mode, print_list_result, print_book_result, print_stats_result

APP_NAME = "Library Inventory CLI"

app = typer.Typer(help=APP_NAME)


@contextmanager
def library_session() -> Iterator[Library]:
    """Open the store for one command and always close it afterwards."""
    store = connect_store(settings)
    try:
        yield Library(store)
    finally:
        store.close()


@contextmanager
def handle_errors() -> Iterator[None]:
    try:
        yield
    except ValidationError as e:
        print(f"Error: {e}")
        raise typer.Exit(code=1)
    except NotFoundError as e:
        print(f"Not found: {e}")
        raise typer.Exit(code=1)
    except StoreError as e:
        print(f"Database error: {e}")
        raise typer.Exit(code=1)
    except LibraryError as e:
        print(f"Unexpected error: {e}")
        raise typer.Exit(code=1)


def _collect(**options: Any) -> Dict[str, Any]:
    return {key: value for key, value in options.items() if value is not None}


@app.callback()
def _global_options(
    output: Optional[str] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output format: plain | json | rich (default: plain)",
    )
):
    """Global CLI options (e.g. output mode)."""
    if output:
        set_output_mode(output)

@app.command("list")
def cli_list(
    category: Optional[str] = typer.Option(None, "--category", "-c", help="Exact category match"),
    min_year: Optional[int] = typer.Option(None, "--min-year", "-y", help="Only books published after this year"),
):
    """List books, optionally filtered."""
    with handle_errors(), library_session() as lib:
        print_list_result(lib.list_books(category=category, min_year=min_year))

@app.command("find")
def cli_find(book_id: str):
    """Show one book by id."""
    with handle_errors(), library_session() as lib:
        print_book_result(lib.find_book(book_id))

@app.command("seed")
def cli_seed():
    """Reset the inventory to the sample books."""
    with handle_errors(), library_session() as lib:
        count = lib.seed_books()
        print(f"{count} books inserted successfully.")

@app.command("add")
def cli_add(
    title: str,
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    year: Optional[int] = typer.Option(None, "--year", "-y", help="Published year"),
    copies: Optional[int] = typer.Option(None, "--copies", "-n", help="Available copies"),
):
    """Add a book."""
    fields = _collect(title=title, author=author, category=category,
                      published_year=year, available_copies=copies)
    with handle_errors(), library_session() as lib:
        book = lib.add_book(fields)
        print(f"Successfully added: {book.title} (ID: {book.id})")

@app.command("update")
def cli_update(
    book_id: str,
    title: Optional[str] = typer.Option(None, "--title", "-t"),
    author: Optional[str] = typer.Option(None, "--author", "-a"),
    category: Optional[str] = typer.Option(None, "--category", "-c"),
    year: Optional[int] = typer.Option(None, "--year", "-y"),
    copies: Optional[int] = typer.Option(None, "--copies", "-n"),
):
    """Update only the given fields of a book."""
    changes = _collect(title=title, author=author, category=category,
                       published_year=year, available_copies=copies)
    if not changes:
        print("Nothing to update. Provide at least one option.")
        raise typer.Exit(code=1)
    with handle_errors(), library_session() as lib:
        book = lib.update_book(book_id, changes)
        print(f"Updated: {book.title}")
        print_book_result(book)

@app.command("stock")
def cli_stock(book_id: str, delta: int = typer.Argument(..., help="Copies to add, negative to remove")):
    """Add or remove copies of a book."""
    with handle_errors(), library_session() as lib:
        book = lib.adjust_stock(book_id, delta)
        print(f"Stock for {book.title}: {book.available_copies}")

@app.command("remove")
def cli_remove(book_id: str):
    """Remove a book by id."""
    with handle_errors(), library_session() as lib:
        if lib.remove_book(book_id):
            print(f"Book with ID {book_id} has been removed.")
        else:
            print(f"Book with ID {book_id} not found.")

@app.command("cleanup")
def cli_cleanup():
    """Remove every out-of-stock book."""
    with handle_errors(), library_session() as lib:
        deleted = lib.remove_out_of_stock()
        print(f"Deleted {deleted} out-of-stock books.")

@app.command("stats")
def cli_stats():
    """Show inventory statistics."""
    with handle_errors(), library_session() as lib:
        print_stats_result(lib.get_statistics())

@app.command("serve")
def cli_serve(
    host: str = typer.Option(settings.api_host, "--host"),
    port: int = typer.Option(settings.api_port, "--port"),
    open_browser: bool = typer.Option(False, "--open", help="Open the API docs in a browser"),
):
    """Run the REST API with uvicorn."""
    url = f"http://{host}:{port}"
    print(f"Starting API on {url}")
    if open_browser:
        webbrowser.open(f"{url}/docs")
    subprocess.run([sys.executable, "-m", "uvicorn", "api:app", "--host", host, "--port", str(port)])


if __name__ == "__main__":
    app()
