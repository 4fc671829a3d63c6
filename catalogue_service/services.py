import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional

from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from catalogue_service import errors, models, schemas
from catalogue_service.merge_patch import apply_merge_patch, parse_patch
from catalogue_service.repository import BookRepository

logger = logging.getLogger(__name__)


class BookService:
    """Book catalogue operations on top of ``BookRepository``.

    Lookups that miss raise ``BookNotFoundError``; writes are checked against
    the positive-price rule before they reach the database, and integrity
    errors from the database come back as ``ConflictError``.
    """

    def __init__(self, db: Session):
        self.repository = BookRepository(db)

    def get_books(
        self,
        title: Optional[str] = None,
        author: Optional[str] = None,
        publication_date: Optional[date] = None,
        category: Optional[str] = None,
        isbn: Optional[str] = None,
        rating: Optional[int] = None,
        price: Optional[Decimal] = None,
        visible: Optional[bool] = None,
    ) -> List[models.Book]:
        has_filters = (
            bool(title) or bool(author) or bool(category) or bool(isbn)
            or publication_date is not None or rating is not None
            or price is not None or visible is not None
        )
        if not has_filters:
            return self.repository.get_books()

        return self.repository.search(
            title=title,
            author=author,
            publication_date=publication_date,
            category=category,
            isbn=isbn,
            rating=rating,
            price=price,
            visible=visible,
        )

    def get_book(self, book_id: int) -> models.Book:
        book = self.repository.get_by_id(book_id)
        if book is None:
            raise errors.BookNotFoundError(book_id)
        return book

    def remove_book(self, book_id: int) -> None:
        book = self.get_book(book_id)
        self.repository.delete(book)
        logger.info(f"Deleted book {book_id}")

    def create_book(self, request: schemas.BookCreate) -> models.Book:
        self.validate_price(request.price)

        book = models.Book(**request.model_dump())
        book = self._save(book)
        logger.info(f"Created book {book.id}")
        return book

    def update_book(self, book_id: int, request: schemas.BookUpdate) -> models.Book:
        book = self.get_book(book_id)
        changes = request.model_dump(exclude_none=True)

        # checked before touching the entity so a rejection leaves it clean
        self.validate_price(changes.get("price", book.price))

        for field, value in changes.items():
            setattr(book, field, value)

        book = self._save(book)
        logger.info(f"Updated book {book_id} fields={sorted(changes)}")
        return book

    def patch_book(self, book_id: int, patch_body: bytes | str) -> models.Book:
        """Apply an RFC 7386 merge patch to the stored book."""
        book = self.get_book(book_id)

        try:
            patch = parse_patch(patch_body)
        except ValueError as exc:
            logger.error(f"Error parsing patch for book {book_id}: {exc}")
            raise errors.InvalidPatchError(code=errors.MALFORMED_JSON) from exc

        current = schemas.BookOut.model_validate(book).model_dump(mode="json")
        try:
            patched = apply_merge_patch(current, patch)
        except RecursionError as exc:
            logger.error(f"Merge patch for book {book_id} is nested too deeply")
            raise errors.InvalidPatchError() from exc
        if not isinstance(patched, dict):
            logger.error(f"Merge patch for book {book_id} did not produce an object")
            raise errors.InvalidPatchError()

        # identifier is immutable
        patched.pop("id", None)

        try:
            validated = schemas.BookCreate.model_validate(patched)
        except ValidationError as exc:
            raise errors.ValidationFailedError.from_pydantic(exc) from exc

        self.validate_price(validated.price)

        for field, value in validated.model_dump().items():
            setattr(book, field, value)

        book = self._save(book)
        logger.info(f"Patched book {book_id} keys={sorted(patch) if isinstance(patch, dict) else []}")
        return book

    def validate_price(self, price: Optional[Decimal]) -> None:
        logger.info("Validating price: %s", price)
        if price is not None and Decimal(price) <= 0:
            logger.warning("Price validation failed for value: %s", price)
            raise errors.BusinessRuleViolationError(
                details=[
                    {
                        "field": "price",
                        "code": errors.NON_POSITIVE_PRICE,
                        "message": errors.get_message(errors.NON_POSITIVE_PRICE),
                    }
                ]
            )

    def _save(self, book: models.Book) -> models.Book:
        book_id = book.id
        try:
            return self.repository.save(book)
        except IntegrityError as exc:
            conflict = errors.ConflictError.from_integrity_error(exc)
            logger.warning(f"Integrity conflict saving book {book_id}: {conflict.code}")
            raise conflict from exc
