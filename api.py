import logging
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, Depends, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse
from pydantic import BaseModel, ConfigDict, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from config import settings
from database import connect_store
from exceptions import NotFoundError, StoreError, ValidationError
from library import Library

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Open the shared store handle once; close it on shutdown
    store = connect_store(settings)
    app.state.library = Library(store)
    logger.info("%s %s started", settings.app_name, settings.app_version)
    try:
        yield
    finally:
        store.close()
        logger.info("Document store connection closed")

app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def get_library(request: Request) -> Library:
    """Dependency returning the service bound to the process-wide store."""
    return request.app.state.library


# --- Error handlers ---
@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(status_code=400, content={"error": str(exc)})

@app.exception_handler(NotFoundError)
async def not_found_handler(request: Request, exc: NotFoundError):
    return JSONResponse(status_code=404, content={"error": str(exc)})

@app.exception_handler(StoreError)
async def store_error_handler(request: Request, exc: StoreError):
    logger.error("%s %s failed in store: %s", request.method, request.url.path, exc)
    content: Dict[str, Any] = {"error": "Database operation failed"}
    if settings.debug:
        content["detail"] = str(exc)
    return JSONResponse(status_code=500, content=content)

@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ()) if part != "body")
        messages.append(f"{loc}: {err.get('msg')}" if loc else str(err.get("msg")))
    return JSONResponse(status_code=400, content={"error": "; ".join(messages) or "Invalid request"})

@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"error": exc.detail})

@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Internal server error"})


# --- Models ---
class BookModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    title: str
    author: str | None = None
    category: str | None = None
    published_year: int | None = Field(default=None, alias="publishedYear")
    available_copies: int | None = Field(default=None, alias="availableCopies")

class BookCreateModel(BaseModel):
    """Partial book accepted on create; title presence is checked by the service."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: str | None = None
    author: str | None = None
    category: str | None = None
    published_year: int | None = Field(default=None, alias="publishedYear")
    available_copies: int | None = Field(default=None, alias="availableCopies")

class BookUpdateModel(BookCreateModel):
    """Partial update; only the fields present in the body are applied."""

class StockChangeModel(BaseModel):
    delta: int = Field(description="Copies to add (positive) or take (negative)")

class MessageModel(BaseModel):
    message: str

class SeedResultModel(MessageModel):
    count: int

class DeleteResultModel(MessageModel):
    model_config = ConfigDict(populate_by_name=True)

    deleted_count: int = Field(alias="deletedCount")

class StatsModel(BaseModel):
    total_books: int
    out_of_stock: int
    categories: int


def _book_response(book) -> BookModel:
    return BookModel(**book.to_dict())


# --- API Endpoints ---
@app.get("/", response_class=PlainTextResponse)
def root():
    """Liveness check."""
    return "Library Server is Running!"

@app.get("/health")
def health(library: Library = Depends(get_library)):
    """Lightweight health endpoint with a store round-trip."""
    db_ok = library.store.ping()
    total = None
    if db_ok:
        try:
            total = library.store.count_books()
        except StoreError:
            db_ok = False
    return {
        "status": "healthy" if db_ok else "degraded",
        "db": db_ok,
        "total_books": total,
        "time": datetime.now(timezone.utc).isoformat(),
    }

@app.get("/stats", response_model=StatsModel)
def get_library_stats(library: Library = Depends(get_library)):
    """Get basic inventory statistics."""
    return StatsModel(**library.get_statistics())

@app.get("/books", response_model=List[BookModel], response_model_exclude_none=True)
def get_books(
    category: Optional[str] = Query(None, description="Exact category match"),
    min_year: Optional[int] = Query(None, alias="minYear", description="Only books published after this year"),
    library: Library = Depends(get_library),
):
    """List books, optionally filtered by category and/or minimum year (exclusive)."""
    return [_book_response(book) for book in library.list_books(category=category, min_year=min_year)]

@app.post("/books/seed", response_model=SeedResultModel)
def seed_books(library: Library = Depends(get_library)):
    """Reset the collection to the 7 sample books."""
    count = library.seed_books()
    return SeedResultModel(message=f"{count} books inserted successfully.", count=count)

@app.post("/books", response_model=BookModel, response_model_exclude_none=True, status_code=201)
def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    """Create a single book."""
    book = library.add_book(payload.model_dump(exclude_unset=True))
    return _book_response(book)

@app.delete("/books/cleanup/empty", response_model=DeleteResultModel)
def cleanup_out_of_stock(library: Library = Depends(get_library)):
    """Remove every book whose stock is exactly 0."""
    deleted = library.remove_out_of_stock()
    return DeleteResultModel(message=f"Deleted {deleted} out-of-stock books.", deleted_count=deleted)

@app.get("/books/{book_id}", response_model=BookModel, response_model_exclude_none=True)
def get_book(book_id: str, library: Library = Depends(get_library)):
    return _book_response(library.find_book(book_id))

@app.put("/books/{book_id}", response_model=BookModel, response_model_exclude_none=True)
def update_book(book_id: str, payload: BookUpdateModel, library: Library = Depends(get_library)):
    """Update only the supplied fields of a book."""
    book = library.update_book(book_id, payload.model_dump(exclude_unset=True))
    return _book_response(book)

@app.patch("/books/{book_id}/stock", response_model=BookModel, response_model_exclude_none=True)
def change_stock(book_id: str, payload: StockChangeModel, library: Library = Depends(get_library)):
    """Add or remove copies atomically; stock never drops below zero."""
    return _book_response(library.adjust_stock(book_id, payload.delta))

@app.delete("/books/{book_id}", response_model=DeleteResultModel)
def delete_book(book_id: str, library: Library = Depends(get_library)):
    deleted = library.remove_book(book_id)
    return DeleteResultModel(message="Book deleted", deleted_count=deleted)
