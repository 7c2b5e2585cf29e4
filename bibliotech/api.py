import sqlite3
import logging
from datetime import datetime, timezone
from typing import List, Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from bibliotech.book import Book, BookStatus
from bibliotech.config import settings
from bibliotech.database import is_storage_ready
from bibliotech.library import Library, DuplicateEmailError

logging.basicConfig(level="DEBUG" if settings.debug else settings.log_level.upper())
logger = logging.getLogger(__name__)

library = Library()

app = FastAPI(title=f"{settings.app_name} API", version=settings.app_version, debug=settings.debug)

# --- CORS ---
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# --- Models ---
class UserModel(BaseModel):
    id: str
    username: str
    email: str


class LoginModel(BaseModel):
    email: str = ""
    password: str = ""


class RegisterModel(BaseModel):
    id: str = Field(min_length=1)
    email: str = Field(min_length=3)
    password: str = Field(min_length=1)
    username: Optional[str] = None


class BookModel(BaseModel):
    id: str = Field(min_length=1)
    title: str = Field(min_length=1)
    author: str = Field(min_length=1)
    description: str = ""
    status: BookStatus = BookStatus.READING
    userId: str = Field(min_length=1)
    coverUrl: str = ""
    createdAt: int = 0


class BookUpdateModel(BaseModel):
    """Partial update. id, createdAt and userId are accepted but ignored."""
    id: Optional[str] = None
    title: Optional[str] = None
    author: Optional[str] = None
    description: Optional[str] = None
    status: Optional[BookStatus] = None
    userId: Optional[str] = None
    coverUrl: Optional[str] = None
    createdAt: Optional[int] = None


# --- Health ---
@app.get("/health")
def health():
    """Lightweight probe: server is up, storage provisioned or not."""
    ready = is_storage_ready(library.db_file)
    logger.info("Health check received")
    payload = {
        "status": "ok",
        "database": "ready" if ready else "unavailable",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }
    if ready:
        payload.update(library.get_statistics())
    return payload


# --- Auth ---
@app.post("/auth/login", response_model=UserModel)
def login(payload: LoginModel):
    logger.info(f"Login attempt for {payload.email}")
    user = library.authenticate(payload.email, payload.password)
    if not user:
        raise HTTPException(status_code=401, detail="Invalid credentials.")
    return UserModel(**user.to_dict())


@app.post("/auth/register", response_model=UserModel, status_code=201)
def register(payload: RegisterModel):
    try:
        user = library.register_user(payload.id, payload.email, payload.password, payload.username)
    except DuplicateEmailError as e:
        raise HTTPException(status_code=400, detail={"code": "email_exists", "message": str(e)})
    except ValueError as e:
        raise HTTPException(status_code=400, detail={"code": "invalid", "message": str(e)})
    logger.info(f"New user registered: {user.username} ({user.email})")
    return UserModel(**user.to_dict())


# --- Books ---
@app.get("/books", response_model=List[BookModel])
def list_books():
    try:
        books = library.list_books()
    except sqlite3.OperationalError as e:
        logger.error(f"Books table not available: {e}")
        raise HTTPException(status_code=503, detail="Storage not ready.")
    logger.info(f"Book list requested, {len(books)} in store")
    return [BookModel(**b.to_dict()) for b in books]


@app.post("/books")
def add_book(payload: BookModel):
    try:
        book = Book.from_dict(payload.model_dump(mode="json"))
        library.add_book(book)
    except (ValueError, LookupError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    logger.info(f'Book added: "{book.title}" by {book.author}')
    return {"success": True, "id": book.id}


@app.put("/books/{book_id}")
def update_book(book_id: str, payload: BookUpdateModel):
    try:
        book = library.update_book(book_id, payload.model_dump(mode="json", exclude_none=True))
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    if not book:
        raise HTTPException(status_code=404, detail="Book not found.")
    logger.info(f"Book updated: {book_id}")
    return {"success": True}


@app.delete("/books/{book_id}")
def delete_book(book_id: str):
    """Idempotent: deleting a missing book is still a success."""
    deleted = library.remove_book(book_id)
    logger.info(f"Book delete requested: {book_id} (deleted={deleted})")
    return {"success": True, "deleted": deleted}
