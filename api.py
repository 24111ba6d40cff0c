import logging
from contextlib import asynccontextmanager
from datetime import date, datetime, timezone
from typing import List, Optional

from fastapi import Depends, FastAPI, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from book import BookChanges, BookFields, BookStatus, ConditionState, CoverType
from config import settings
from errors import (
    BookUnavailableError,
    DuplicatePhoneError,
    HasActiveLoansError,
    LibraryError,
    NotFoundError,
    StoreFailureError,
    ValidationFailedError,
)
from library import Library

logging.basicConfig(level=settings.effective_log_level())
logger = logging.getLogger(__name__)

_library: Optional[Library] = None


def get_library() -> Library:
    """Dependency returning the process-wide Library bound to the configured database."""
    global _library
    if _library is None:
        _library = Library(db_file=settings.database_file)
    return _library


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Fail early when the database cannot be opened
    library = get_library()
    library.ping()
    logger.info(f"{settings.app_name} API started, database: {library.db_file}")
    yield


app = FastAPI(title=settings.app_name, version=settings.app_version, lifespan=lifespan)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Request logging ---
@app.middleware("http")
async def log_requests(request: Request, call_next):
    logger.info(f"{request.method} {request.url.path}")
    return await call_next(request)


# --- Error mapping ---
_STATUS_BY_ERROR = [
    (NotFoundError, 404),
    (ValidationFailedError, 400),
    (BookUnavailableError, 400),
    (DuplicatePhoneError, 409),
    (HasActiveLoansError, 409),
    (StoreFailureError, 503),
]


@app.exception_handler(LibraryError)
async def library_error_handler(request: Request, exc: LibraryError):
    status_code = next((code for cls, code in _STATUS_BY_ERROR if isinstance(exc, cls)), 500)
    body = {"detail": exc.message}
    if isinstance(exc, HasActiveLoansError):
        body["count"] = exc.count
    return JSONResponse(status_code=status_code, content=body)


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    # Missing or mistyped fields are validation failures like any other
    problems = []
    for error in exc.errors():
        field = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
        problems.append(f"{field}: {error.get('msg')}" if field else str(error.get("msg")))
    detail = "Invalid request: " + "; ".join(problems)
    logger.warning(f"Rejected {request.method} {request.url.path}: {detail}")
    return JSONResponse(status_code=400, content={"detail": detail})


# --- Models ---
class BookModel(BaseModel):
    id: int
    title: str
    author: str
    cover_type: CoverType
    publication_year: Optional[int] = None
    genre: str
    page_count: int
    condition: ConditionState
    status: BookStatus
    borrowed_date: Optional[date] = None
    borrower_phone: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None


class BookCreateModel(BaseModel):
    title: str = Field(description="Required, at most 255 characters")
    author: str = Field(description="Required, at most 255 characters")
    cover_type: Optional[str] = Field(default=None, description="soft | hard (default hard)")
    publication_year: Optional[int] = Field(default=None, description="Defaults to the current year")
    genre: Optional[str] = None
    page_count: Optional[int] = None
    condition: Optional[str] = Field(default=None, description="new | good | average | bad (default good)")
    status: Optional[str] = Field(default=None, description="available | borrowed (default available)")
    borrower_phone: Optional[str] = Field(default=None, description="Required when status is borrowed")


class BookUpdateModel(BaseModel):
    title: Optional[str] = None
    author: Optional[str] = None
    cover_type: Optional[str] = None
    publication_year: Optional[int] = None
    genre: Optional[str] = None
    page_count: Optional[int] = None
    condition: Optional[str] = None


class ReaderModel(BaseModel):
    phone: str
    first_name: str
    last_name: str
    birth_date: date
    registration_date: date


class ReaderCreateModel(BaseModel):
    phone: str = Field(description="7 followed by 10 digits")
    first_name: str
    last_name: str
    birth_date: str = Field(description="YYYY-MM-DD")


class BorrowRequest(BaseModel):
    book_id: int
    phone: str


class ReturnRequest(BaseModel):
    book_id: int


class OverdueModel(BaseModel):
    id: int
    title: str
    author: str
    borrowed_date: date
    days_overdue: int
    reader_phone: str
    first_name: str
    last_name: str


class StatsModel(BaseModel):
    total_books: int
    available_books: int
    borrowed_books: int
    total_readers: int


class MessageModel(BaseModel):
    message: str
    id: Optional[str | int] = None


# --- Books ---
@app.get("/api/books", response_model=List[BookModel])
def list_books(
    q: Optional[str] = Query(None, description="Substring of title, author or borrower phone"),
    status: Optional[str] = Query(None, description="available | borrowed"),
    library: Library = Depends(get_library),
):
    """All books with their borrower's name, ordered by title."""
    return [BookModel(**b.to_dict()) for b in library.list_books(query=q, status=status)]


@app.get("/api/books/{book_id}", response_model=BookModel)
def get_book(book_id: int, library: Library = Depends(get_library)):
    return BookModel(**library.get_book(book_id).to_dict())


@app.post("/api/books", response_model=MessageModel, status_code=201)
def create_book(payload: BookCreateModel, library: Library = Depends(get_library)):
    fields = BookFields(**payload.model_dump(exclude_none=True))
    book_id = library.create_book(fields)
    return MessageModel(message="Book added", id=book_id)


@app.put("/api/books/{book_id}", response_model=MessageModel)
def update_book(book_id: int, payload: BookUpdateModel, library: Library = Depends(get_library)):
    library.update_book(book_id, BookChanges(**payload.model_dump()))
    return MessageModel(message="Book updated", id=book_id)


@app.delete("/api/books/{book_id}", response_model=MessageModel)
def delete_book(book_id: int, library: Library = Depends(get_library)):
    library.delete_book(book_id)
    return MessageModel(message="Book deleted", id=book_id)


# --- Readers ---
@app.get("/api/readers", response_model=List[ReaderModel])
def list_readers(library: Library = Depends(get_library)):
    """Newest registrations first."""
    return [ReaderModel(**r.to_dict()) for r in library.list_readers()]


@app.get("/api/readers/{phone}", response_model=ReaderModel)
def get_reader(phone: str, library: Library = Depends(get_library)):
    return ReaderModel(**library.get_reader(phone).to_dict())


@app.post("/api/readers", response_model=MessageModel, status_code=201)
def register_reader(payload: ReaderCreateModel, library: Library = Depends(get_library)):
    reader = library.register_reader(payload.phone, payload.first_name, payload.last_name, payload.birth_date)
    return MessageModel(message="Reader registered", id=reader.phone)


@app.delete("/api/readers/{phone}", response_model=MessageModel)
def remove_reader(phone: str, library: Library = Depends(get_library)):
    library.remove_reader(phone)
    return MessageModel(message="Reader removed", id=phone)


# --- Lending ---
@app.post("/api/borrow", response_model=MessageModel)
def borrow_book(payload: BorrowRequest, library: Library = Depends(get_library)):
    library.borrow_book(payload.book_id, payload.phone)
    return MessageModel(message="Book borrowed", id=payload.book_id)


@app.post("/api/return", response_model=MessageModel)
def return_book(payload: ReturnRequest, library: Library = Depends(get_library)):
    library.return_book(payload.book_id)
    return MessageModel(message="Book returned", id=payload.book_id)


@app.get("/api/overdue", response_model=List[OverdueModel])
def list_overdue(library: Library = Depends(get_library)):
    """Borrowed books held longer than 14 days, longest first."""
    return [OverdueModel(**loan.to_dict()) for loan in library.list_overdue()]


@app.get("/api/stats", response_model=StatsModel)
def get_stats(library: Library = Depends(get_library)):
    return StatsModel(**library.get_statistics())


# --- Health check ---
@app.get("/api/health")
def health(library: Library = Depends(get_library)):
    """Light health endpoint: a quick database round trip."""
    now_iso = datetime.now(timezone.utc).isoformat()
    try:
        library.ping()
    except StoreFailureError as e:
        return JSONResponse(
            status_code=503,
            content={"status": "error", "detail": "Database connection failed", "error": e.message},
        )
    return {"status": "ok", "timestamp": now_iso}
