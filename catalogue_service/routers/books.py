import logging
from datetime import date
from decimal import Decimal

from fastapi import APIRouter, Depends, Query, Request, Response, status
from sqlalchemy.orm import Session
from starlette.concurrency import run_in_threadpool

from catalogue_service import errors, schemas
from catalogue_service.database import get_db
from catalogue_service.merge_patch import MERGE_PATCH_MEDIA_TYPE
from catalogue_service.services import BookService

router = APIRouter(prefix="/books", tags=["Books"])
logger = logging.getLogger(__name__)


def _describe(title: str, codes: list[str]) -> str:
    lines = [title, ""]
    lines.extend(f"- **{code}**: {errors.get_message(code)}" for code in codes)
    return "\n".join(lines)


_FIELD_CODES = sorted(
    code for rules in errors.FIELD_ERROR_CODES.values() for code in rules.values()
)

BAD_REQUEST = {
    "model": schemas.ErrorResponse,
    "description": _describe(
        "Bad Request: the payload failed validation. Field errors are listed in `details`:",
        _FIELD_CODES + [errors.VALIDATION_FAILED],
    ),
}
PATCH_BAD_REQUEST = {
    "model": schemas.ErrorResponse,
    "description": _describe(
        "Bad Request: the patch is malformed, cannot be applied, or the patched book is invalid:",
        [errors.MALFORMED_JSON, errors.PATCH_NOT_APPLICABLE] + _FIELD_CODES,
    ),
}
NOT_FOUND = {
    "model": schemas.ErrorResponse,
    "description": _describe("Not Found: no book has the given id", [errors.BOOK_NOT_FOUND]),
}
CONFLICT = {
    "model": schemas.ErrorResponse,
    "description": _describe(
        "Conflict: a data integrity constraint was violated",
        [
            errors.DUPLICATE_ISBN,
            errors.DUPLICATE_RECORD,
            errors.MISSING_REQUIRED_FIELDS,
            errors.INTEGRITY_ERROR,
        ],
    ),
}
SERVER_ERROR = {
    "model": schemas.ErrorResponse,
    "description": _describe("Internal Server Error", [errors.UNEXPECTED_ERROR]),
}


def get_book_service(db: Session = Depends(get_db)) -> BookService:
    return BookService(db)


@router.get(
    "",
    response_model=list[schemas.BookOut],
    summary="List books",
    description=(
        "Returns the whole catalogue, or the books matching every supplied filter. "
        "title, author and category match case-insensitive substrings; the rest match exactly."
    ),
    responses={400: BAD_REQUEST, 500: SERVER_ERROR},
)
def get_books(
    title: str | None = Query(default=None, examples=["soledad"]),
    author: str | None = Query(default=None, examples=["García Márquez"]),
    publication_date: date | None = Query(default=None, examples=["1967-05-30"]),
    category: str | None = Query(default=None, examples=["Fiction"]),
    isbn: str | None = Query(default=None, examples=["978-0307474728"]),
    rating: int | None = Query(default=None, examples=[5]),
    price: Decimal | None = Query(default=None, examples=["19.99"]),
    visible: bool | None = Query(default=None, examples=[True]),
    service: BookService = Depends(get_book_service),
):
    logger.info(
        "Request to get books with filters - title: %s, author: %s, publication_date: %s, "
        "category: %s, isbn: %s, rating: %s, price: %s, visible: %s",
        title, author, publication_date, category, isbn, rating, price, visible,
    )
    return service.get_books(
        title=title,
        author=author,
        publication_date=publication_date,
        category=category,
        isbn=isbn,
        rating=rating,
        price=price,
        visible=visible,
    )


@router.get(
    "/{book_id}",
    response_model=schemas.BookOut,
    summary="Get a book",
    responses={404: NOT_FOUND, 500: SERVER_ERROR},
)
def get_book(book_id: int, service: BookService = Depends(get_book_service)):
    logger.info("Request to get book with id: %s", book_id)
    return service.get_book(book_id)


@router.post(
    "",
    response_model=schemas.BookOut,
    status_code=status.HTTP_201_CREATED,
    summary="Create a book",
    responses={400: BAD_REQUEST, 409: CONFLICT, 500: SERVER_ERROR},
)
def add_book(book: schemas.BookCreate, service: BookService = Depends(get_book_service)):
    logger.info("Request to create book: %s", book)
    return service.create_book(book)


@router.put(
    "/{book_id}",
    response_model=schemas.BookOut,
    summary="Update a book",
    description="Overwrites the fields present and non-null in the body; other fields keep their values.",
    responses={400: BAD_REQUEST, 404: NOT_FOUND, 409: CONFLICT, 500: SERVER_ERROR},
)
def update_book(
    book_id: int,
    book: schemas.BookUpdate,
    service: BookService = Depends(get_book_service),
):
    logger.info("Request to update book with id: %s", book_id)
    return service.update_book(book_id, book)


@router.patch(
    "/{book_id}",
    response_model=schemas.BookOut,
    summary="Partially update a book",
    description="Applies a JSON Merge Patch (RFC 7386) to the book.",
    responses={400: PATCH_BAD_REQUEST, 404: NOT_FOUND, 409: CONFLICT, 500: SERVER_ERROR},
    openapi_extra={
        "requestBody": {
            "required": True,
            "content": {
                MERGE_PATCH_MEDIA_TYPE: {"schema": {"type": "object"}},
                "application/json": {"schema": {"type": "object"}},
            },
        }
    },
)
async def patch_book(
    book_id: int,
    request: Request,
    service: BookService = Depends(get_book_service),
):
    logger.info("Request to patch book with id: %s", book_id)
    body = await request.body()
    return await run_in_threadpool(service.patch_book, book_id, body)


@router.delete(
    "/{book_id}",
    status_code=status.HTTP_200_OK,
    summary="Delete a book",
    responses={404: NOT_FOUND, 500: SERVER_ERROR},
)
def delete_book(book_id: int, service: BookService = Depends(get_book_service)):
    logger.info("Request to delete book with id: %s", book_id)
    service.remove_book(book_id)
    return Response(status_code=status.HTTP_200_OK)
