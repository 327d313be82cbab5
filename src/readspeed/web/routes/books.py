"""Book catalog and review endpoints."""

from fastapi import APIRouter, Depends, HTTPException, Query, UploadFile, status

from readspeed.core import books, storage
from readspeed.db import books_repository as repo
from readspeed.web.deps import CurrentUser, get_current_user
from readspeed.web.schemas import (
    BookCreate,
    BookListResponse,
    BookResponse,
    CoverUploadResponse,
    ReviewRequest,
    ReviewResponse,
)

router = APIRouter(prefix="/api/books", tags=["books"])


def _not_found(book_id: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_404_NOT_FOUND,
        detail=f"Book '{book_id}' not found",
    )


def _review_http_error(e: books.ReviewError) -> HTTPException:
    return HTTPException(status_code=e.status, detail=e.message)


@router.get("", response_model=BookListResponse)
async def search_books(
    q: str | None = None,
    limit: int = Query(default=20, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    _: CurrentUser = Depends(get_current_user),
) -> BookListResponse:
    """Search approved books by title or author."""
    found = repo.search_books(q, limit=limit, offset=offset)
    return BookListResponse(
        books=[BookResponse.model_validate(b) for b in found],
        count=len(found),
    )


@router.post("", response_model=BookResponse, status_code=status.HTTP_201_CREATED)
async def create_book(
    body: BookCreate,
    current: CurrentUser = Depends(get_current_user),
) -> BookResponse:
    """Suggest a book. It stays pending until an admin approves it."""
    book = books.create_book(
        current.profile,
        title=body.title,
        author=body.author,
        total_pages=body.total_pages,
        isbn=body.isbn,
        genre=body.genre,
        publication_year=body.publication_year,
    )
    return BookResponse.model_validate(book)


@router.get("/{book_id}", response_model=BookResponse)
async def get_book(
    book_id: str,
    current: CurrentUser = Depends(get_current_user),
) -> BookResponse:
    """Approved books are public; others only to their creator and admins."""
    try:
        book = books.get_book(book_id)
    except books.BookNotFoundError:
        raise _not_found(book_id)
    if book.status != "approved" and book.created_by != current.id and not current.profile.is_admin:
        raise _not_found(book_id)
    return BookResponse.model_validate(book)


@router.post("/{book_id}/cover", response_model=CoverUploadResponse)
async def upload_cover(
    book_id: str,
    file: UploadFile,
    current: CurrentUser = Depends(get_current_user),
) -> CoverUploadResponse:
    data = await file.read()
    try:
        stored = books.upload_cover(
            book_id, current.id, file.filename or "", file.content_type or "", data
        )
    except books.BookNotFoundError:
        raise _not_found(book_id)
    except storage.StorageError as e:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(e))
    return CoverUploadResponse(cover_url=stored.public_url, size=stored.size)


# =============================================================================
# REVIEWS
# =============================================================================


@router.get("/{book_id}/reviews", response_model=list[ReviewResponse])
async def list_reviews(
    book_id: str,
    _: CurrentUser = Depends(get_current_user),
) -> list[ReviewResponse]:
    return [ReviewResponse.model_validate(r) for r in repo.list_reviews(book_id)]


@router.post(
    "/{book_id}/reviews",
    response_model=ReviewResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_review(
    book_id: str,
    body: ReviewRequest,
    current: CurrentUser = Depends(get_current_user),
) -> ReviewResponse:
    try:
        review = books.create_review(book_id, current.id, body.rating, body.review_text)
    except books.BookNotFoundError:
        raise _not_found(book_id)
    except books.ReviewError as e:
        raise _review_http_error(e)
    return ReviewResponse.model_validate(review)


@router.put("/{book_id}/reviews", response_model=ReviewResponse)
async def edit_review(
    book_id: str,
    body: ReviewRequest,
    current: CurrentUser = Depends(get_current_user),
) -> ReviewResponse:
    try:
        review = books.edit_review(book_id, current.id, body.rating, body.review_text)
    except books.ReviewError as e:
        raise _review_http_error(e)
    return ReviewResponse.model_validate(review)


@router.delete("/{book_id}/reviews", response_model=ReviewResponse)
async def delete_review(
    book_id: str,
    current: CurrentUser = Depends(get_current_user),
) -> ReviewResponse:
    """Soft-delete the caller's review. A new one is blocked for seven days."""
    try:
        review = books.delete_review(book_id, current.id)
    except books.ReviewError as e:
        raise _review_http_error(e)
    return ReviewResponse.model_validate(review)
