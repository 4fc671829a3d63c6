from sqlalchemy import Boolean, Column, Date, Integer, Numeric, String

from catalogue_service.database import Base


class Book(Base):
    __tablename__ = "books"

    id = Column(Integer, primary_key=True)
    title = Column(String(200), nullable=False)
    author = Column(String(150), nullable=False)
    publication_date = Column(Date, nullable=True)
    category = Column(String(100), nullable=True)
    isbn = Column(String(20), unique=True, nullable=True)
    rating = Column(Integer, nullable=True)
    price = Column(Numeric(12, 2), nullable=False)
    visible = Column(Boolean, nullable=False)

    def __repr__(self) -> str:
        return f"<Book id={self.id} title={self.title!r} isbn={self.isbn!r}>"
