from datetime import date
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from catalogue_service import models
from catalogue_service.specifications import SearchCriteria, SearchOperation, combine


class BookRepository:
    """Data access for ``Book`` rows on a request-scoped session."""

    def __init__(self, db: Session):
        self.db = db

    def get_books(self) -> List[models.Book]:
        return self.db.query(models.Book).order_by(models.Book.id.asc()).all()

    def get_by_id(self, book_id: int) -> Optional[models.Book]:
        return self.db.get(models.Book, book_id)

    def save(self, book: models.Book) -> models.Book:
        """Add ``book`` to the session and commit.

        Integrity errors propagate after the session has been rolled back.
        """
        self.db.add(book)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        self.db.refresh(book)
        return book

    def delete(self, book: models.Book) -> None:
        self.db.delete(book)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise

    def search(
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
        criteria = []

        if title:
            criteria.append(SearchCriteria("title", title, SearchOperation.LIKE))
        if author:
            criteria.append(SearchCriteria("author", author, SearchOperation.LIKE))
        if publication_date is not None:
            criteria.append(SearchCriteria("publication_date", publication_date))
        if category:
            criteria.append(SearchCriteria("category", category, SearchOperation.LIKE))
        if isbn:
            criteria.append(SearchCriteria("isbn", isbn))
        if rating is not None:
            criteria.append(SearchCriteria("rating", rating))
        if price is not None:
            criteria.append(SearchCriteria("price", price))
        if visible is not None:
            criteria.append(SearchCriteria("visible", visible))

        clause = combine(models.Book, criteria)
        if clause is None:
            return self.get_books()

        return (
            self.db.query(models.Book)
            .filter(clause)
            .order_by(models.Book.id.asc())
            .all()
        )
