import os

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("CREATE_TABLES", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from catalogue_service.database import Base, get_db, register_sqlite_functions
from catalogue_service.main import app

# One in-memory database shared by every connection of the test engine
TEST_DATABASE_URL = "sqlite://"
engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
register_sqlite_functions(engine)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function", autouse=True)
def setup_database():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session():
    session = TestingSessionLocal()
    yield session
    session.close()


@pytest.fixture(scope="function")
def client():
    def override_get_db():
        db = TestingSessionLocal()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture
def book_payload():
    return {
        "title": "Cien años de soledad",
        "author": "Gabriel García Márquez",
        "publication_date": "1967-05-30",
        "category": "Fiction",
        "isbn": "978-0307474728",
        "rating": 5,
        "price": 19.99,
        "visible": True,
    }


@pytest.fixture
def create_book(client, book_payload):
    def _create(**overrides):
        payload = {**book_payload, **overrides}
        response = client.post("/books", json=payload)
        assert response.status_code == 201, response.text
        return response.json()

    return _create
