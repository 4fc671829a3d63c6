from datetime import date
from decimal import Decimal

import pytest

from catalogue_service import models
from catalogue_service.repository import BookRepository
from catalogue_service.specifications import SearchCriteria, SearchOperation, combine


@pytest.fixture
def repository(db_session):
    repository = BookRepository(db_session)
    for title, author, category, isbn, rating, price, visible in [
        ("Cien años de soledad", "Gabriel García Márquez", "Fiction", "978-0307474728", 5, "19.99", True),
        ("Ficciones", "Jorge Luis Borges", "Short stories", "978-0802130303", 4, "12.50", True),
        ("100% Python", "Ada Lovelace", "Programming", None, None, "30.00", False),
    ]:
        repository.save(
            models.Book(
                title=title,
                author=author,
                publication_date=date(1967, 5, 30),
                category=category,
                isbn=isbn,
                rating=rating,
                price=Decimal(price),
                visible=visible,
            )
        )
    return repository


def titles(books):
    return [book.title for book in books]


def test_combine_without_criteria_is_none():
    assert combine(models.Book, []) is None


def test_combine_joins_clauses_with_and():
    clause = combine(
        models.Book,
        [
            SearchCriteria("title", "sol", SearchOperation.LIKE),
            SearchCriteria("rating", 5),
        ],
    )
    compiled = str(clause.compile(compile_kwargs={"literal_binds": True})).lower()
    assert " and " in compiled
    assert "lower(books.title) like" in compiled


def test_search_without_criteria_returns_everything(repository):
    assert len(repository.search()) == 3
    assert len(repository.search(title="", author="")) == 3


def test_search_like_is_case_insensitive(repository):
    assert titles(repository.search(author="BORGES")) == ["Ficciones"]
    assert titles(repository.search(category="fic")) == ["Cien años de soledad"]


def test_search_like_folds_non_ascii_case(repository):
    assert titles(repository.search(author="GARCÍA MÁRQUEZ")) == ["Cien años de soledad"]
    assert titles(repository.search(title="CIEN AÑOS")) == ["Cien años de soledad"]


def test_search_like_escapes_wildcards(repository):
    assert titles(repository.search(title="100%")) == ["100% Python"]
    assert titles(repository.search(title="_")) == []


def test_search_exact_matches(repository):
    assert titles(repository.search(isbn="978-0802130303")) == ["Ficciones"]
    assert titles(repository.search(rating=5)) == ["Cien años de soledad"]
    assert titles(repository.search(visible=False)) == ["100% Python"]
    assert len(repository.search(publication_date=date(1967, 5, 30))) == 3
    assert repository.search(publication_date=date(2000, 1, 1)) == []


def test_search_criteria_are_anded(repository):
    assert titles(repository.search(publication_date=date(1967, 5, 30), visible=True, rating=4)) == ["Ficciones"]
    assert repository.search(author="borges", rating=5) == []


def test_criteria_operations(repository, db_session):
    def run(criteria):
        return titles(db_session.query(models.Book).filter(criteria.to_clause(models.Book)).order_by(models.Book.id))

    assert run(SearchCriteria("rating", [4, 5], SearchOperation.IN)) == ["Cien años de soledad", "Ficciones"]
    assert run(SearchCriteria("rating", 4, SearchOperation.GREATER_THAN)) == ["Cien años de soledad"]
    assert run(SearchCriteria("rating", 5, SearchOperation.LESS_THAN)) == ["Ficciones"]


def test_get_by_id_and_delete(repository):
    book = repository.search(isbn="978-0307474728")[0]
    assert repository.get_by_id(book.id) is book
    repository.delete(book)
    assert repository.get_by_id(book.id) is None
