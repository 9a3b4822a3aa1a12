import logging
from datetime import date, datetime, timedelta

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, UploadFile, status
from fastapi.exceptions import RequestValidationError
from pydantic import ValidationError
from sqlalchemy import or_
from sqlalchemy.orm import Session, joinedload

import auth, models, schemas, storage
from database import get_db
from pagination import paginate
from redis_client import cache_get, cache_invalidate, cache_set
from responses import success

router = APIRouter(prefix="/books", tags=["books"])
logger = logging.getLogger(__name__)


def _validated(model, **fields):
    try:
        return model(**fields)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc


def book_create_form(
    title: str | None = Form(default=None),
    author: str | None = Form(default=None),
    description: str | None = Form(default=None),
    rating: int | None = Form(default=None),
) -> schemas.BookCreate:
    if not title or not author:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Title and author are required")
    return _validated(
        schemas.BookCreate,
        title=title,
        author=author,
        description=description or None,
        rating=rating if rating is not None else 0,
    )


def book_update_form(
    title: str | None = Form(default=None),
    author: str | None = Form(default=None),
    description: str | None = Form(default=None),
    rating: int | None = Form(default=None),
) -> schemas.BookUpdate:
    fields = {"title": title, "author": author, "description": description, "rating": rating}
    return _validated(schemas.BookUpdate, **{k: v for k, v in fields.items() if v is not None})


def _get_owned_book(db: Session, book_id: int, user_id: int) -> models.Book:
    db_book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not db_book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    if db_book.uploader_id != user_id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")
    return db_book


def _invalidate_books_cache() -> None:
    cache_invalidate("books:*")


# Get Books
@router.get("")
def list_books(
    search: str | None = Query(default=None),
    author: str | None = Query(default=None),
    rating: int | None = Query(default=None, ge=0, le=5),
    uploaded_on: date | None = Query(default=None, alias="date"),
    uploader: int | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
):
    cache_key = ":".join(
        [
            "books",
            search or "",
            author or "",
            str(rating) if rating is not None else "",
            uploaded_on.isoformat() if uploaded_on else "",
            str(uploader) if uploader is not None else "",
            str(page),
            str(limit),
        ]
    )
    cached = cache_get(cache_key)
    if cached is not None:
        return success("Books fetched successfully", cached)

    query = db.query(models.Book).options(joinedload(models.Book.uploader))

    if search:
        query = query.filter(
            or_(models.Book.title.ilike(f"%{search}%"), models.Book.author.ilike(f"%{search}%"))
        )
    if author:
        query = query.filter(models.Book.author.ilike(f"%{author}%"))
    if rating is not None:
        query = query.filter(models.Book.rating == rating)
    if uploaded_on is not None:
        start = datetime.combine(uploaded_on, datetime.min.time())
        query = query.filter(
            models.Book.uploaded_at >= start,
            models.Book.uploaded_at < start + timedelta(days=1),
        )
    if uploader is not None:
        query = query.filter(models.Book.uploader_id == uploader)

    query = query.order_by(models.Book.uploaded_at.desc(), models.Book.id.desc())
    result = paginate(query, page, limit)

    payload = schemas.BookListResponse(
        total=result["total"],
        page=result["page"],
        limit=result["limit"],
        total_pages=result["total_pages"],
        books=[schemas.BookOut.model_validate(b) for b in result["items"]],
    ).model_dump(mode="json")

    cache_set(cache_key, payload)
    return success("Books fetched successfully", payload)


@router.get("/{book_id}")
def get_book(book_id: int, db: Session = Depends(get_db)):
    db_book = db.query(models.Book).filter(models.Book.id == book_id).first()
    if not db_book:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Book not found")
    return success("Book fetched successfully", schemas.BookOut.model_validate(db_book))


# Add Book
@router.post("", status_code=status.HTTP_201_CREATED)
def create_book(
    book: schemas.BookCreate = Depends(book_create_form),
    thumbnail: UploadFile | None = File(default=None),
    db: Session = Depends(get_db),
    user_id: int = Depends(auth.get_current_user_id),
):
    new_book = models.Book(**book.model_dump(), uploader_id=user_id)
    if thumbnail is not None and thumbnail.filename:
        new_book.thumbnail = storage.save_upload(thumbnail, prefix="book")

    db.add(new_book)
    storage.commit_upload_change(db, new_path=new_book.thumbnail)
    db.refresh(new_book)
    logger.info(f"User {user_id} created book {new_book.id}")

    _invalidate_books_cache()
    return success("Book created successfully", schemas.BookOut.model_validate(new_book))


@router.put("/{book_id}")
def update_book(
    book_id: int,
    book: schemas.BookUpdate = Depends(book_update_form),
    thumbnail: UploadFile | None = File(default=None),
    remove_thumbnail: bool = Form(default=False),
    db: Session = Depends(get_db),
    user_id: int = Depends(auth.get_current_user_id),
):
    db_book = _get_owned_book(db, book_id, user_id)

    for field, value in book.model_dump(exclude_unset=True).items():
        setattr(db_book, field, value)

    new_path, old_path = None, None
    if thumbnail is not None and thumbnail.filename:
        new_path, old_path = storage.save_upload(thumbnail, prefix="book"), db_book.thumbnail
        db_book.thumbnail = new_path
    elif remove_thumbnail:
        old_path = db_book.thumbnail
        db_book.thumbnail = None

    storage.commit_upload_change(db, new_path=new_path, old_path=old_path)
    db.refresh(db_book)

    _invalidate_books_cache()
    return success("Book updated successfully", schemas.BookOut.model_validate(db_book))


@router.delete("/{book_id}")
def delete_book(
    book_id: int,
    db: Session = Depends(get_db),
    user_id: int = Depends(auth.get_current_user_id),
):
    db_book = _get_owned_book(db, book_id, user_id)

    old_path = db_book.thumbnail
    db.delete(db_book)
    storage.commit_upload_change(db, old_path=old_path)
    logger.info(f"User {user_id} deleted book {book_id}")

    _invalidate_books_cache()
    return success("Book deleted successfully")
