import os
import json
from typing import List, Any, Dict
from rich.console import Console
from rich.table import Table
from rich.panel import Panel

# Environment variable to control CLI output mode
# Allowed values: 'plain' (default), 'json', 'rich'
OUTPUT_MODE_ENV = "LIB_CLI_OUTPUT"

_console = Console()

def set_output_mode(mode: str) -> None:
    mode = (mode or "").lower().strip()
    if mode in {"plain", "json", "rich"}:
        os.environ[OUTPUT_MODE_ENV] = mode

def get_output_mode() -> str:
    return os.environ.get(OUTPUT_MODE_ENV, "plain").lower()

def _stock_label(book: Any) -> str:
    copies = getattr(book, "available_copies", None)
    if copies is None:
        return "-"
    return "Out of Stock" if copies == 0 else str(copies)

def print_list_result(books: List[Any]) -> None:
    """Print books in the current output mode.
    - plain: 'ID - Title by Author [Category, Year] stock: N' lines, or 'No books in library.'
    - json: JSON array of book dicts
    - rich: Rich table
    """
    mode = get_output_mode()

    if not books:
        print("No books in library.")
        return

    if mode == "json":
        print(json.dumps([b.to_dict() for b in books], ensure_ascii=False))
    elif mode == "rich":
        table = Table(title="📚 Books", show_lines=True, header_style="bold cyan")
        table.add_column("ID", style="magenta", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Author", style="white")
        table.add_column("Category", style="white")
        table.add_column("Year", justify="right")
        table.add_column("Stock", justify="right")
        for b in books:
            table.add_row(
                b.id or "", b.title or "", b.author or "", b.category or "",
                str(b.published_year) if b.published_year is not None else "",
                _stock_label(b),
            )
        _console.print(table)
    else:
        for b in books:
            print(f"{b.id} - {b.title} by {b.author or 'Unknown Author'} "
                  f"[{b.category or '-'}, {b.published_year or '-'}] stock: {_stock_label(b)}")

def print_book_result(book: Any) -> None:
    mode = get_output_mode()
    if mode == "json":
        print(json.dumps(book.to_dict(), ensure_ascii=False))
    elif mode == "rich":
        content = (
            f"[bold]Title:[/] {book.title}\n[bold]Author:[/] {book.author or '-'}\n"
            f"[bold]Category:[/] {book.category or '-'}\n[bold]Year:[/] {book.published_year or '-'}\n"
            f"[bold]Stock:[/] {_stock_label(book)}"
        )
        _console.print(Panel.fit(content, title=f"📖 {book.id}", border_style="green"))
    else:
        print(f"ID: {book.id}")
        print(f"Title: {book.title}")
        print(f"Author: {book.author or '-'}")
        print(f"Category: {book.category or '-'}")
        print(f"Year: {book.published_year or '-'}")
        print(f"Stock: {_stock_label(book)}")

def print_stats_result(stats: Dict[str, Any]) -> None:
    """Print statistics in the current output mode."""
    mode = get_output_mode()

    if not stats:
        print("No statistics available.")
        return

    total = stats.get("total_books", 0)
    empty = stats.get("out_of_stock", 0)
    categories = stats.get("categories", 0)

    if mode == "json":
        print(json.dumps({"total_books": total, "out_of_stock": empty, "categories": categories}, ensure_ascii=False))
    elif mode == "rich":
        content = f"[bold]Total Books:[/] {total}\n[bold]Out of Stock:[/] {empty}\n[bold]Categories:[/] {categories}"
        _console.print(Panel.fit(content, title="📊 Stats", border_style="blue"))
    else:
        print(f"Total Books: {total}")
        print(f"Out of Stock: {empty}")
        print(f"Categories: {categories}")
