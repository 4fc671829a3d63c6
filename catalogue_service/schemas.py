from datetime import date, datetime
from decimal import Decimal
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_serializer, field_validator
from pydantic_core import PydanticCustomError

ISBN_PATTERN = r"^[0-9\-]{10,17}$"

Title = Annotated[str, Field(min_length=1, max_length=200, examples=["Cien años de soledad"])]
Author = Annotated[str, Field(min_length=1, max_length=150, examples=["Gabriel García Márquez"])]
Category = Annotated[str, Field(max_length=100, examples=["Fiction"])]
Isbn = Annotated[str, Field(max_length=20, pattern=ISBN_PATTERN, examples=["978-0307474728"])]
Rating = Annotated[int, Field(ge=0, le=5, examples=[5])]
Price = Annotated[Decimal, Field(ge=0, max_digits=12, decimal_places=2, examples=[19.99])]


def _not_in_future(value: date | None) -> date | None:
    if value is not None and value > date.today():
        raise PydanticCustomError("date_in_future", "Publication date cannot be in the future")
    return value


class BookCreate(BaseModel):
    title: Title
    author: Author
    publication_date: date = Field(examples=["1967-05-30"])
    category: Category | None = None
    isbn: Isbn | None = None
    rating: Rating | None = None
    price: Price
    visible: bool

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("publication_date")
    @classmethod
    def check_publication_date(cls, value: date | None) -> date | None:
        return _not_in_future(value)


class BookUpdate(BaseModel):
    """Replacement payload for PUT: present, non-null fields overwrite."""

    title: Title | None = None
    author: Author | None = None
    publication_date: date | None = Field(default=None, examples=["1967-05-30"])
    category: Category | None = None
    isbn: Isbn | None = None
    rating: Rating | None = None
    price: Price | None = None
    visible: bool | None = None

    model_config = ConfigDict(str_strip_whitespace=True)

    @field_validator("publication_date")
    @classmethod
    def check_publication_date(cls, value: date | None) -> date | None:
        return _not_in_future(value)


class BookOut(BaseModel):
    id: int
    title: str
    author: str
    publication_date: date | None
    category: str | None
    isbn: str | None
    rating: int | None
    price: Decimal
    visible: bool

    model_config = ConfigDict(from_attributes=True)

    @field_serializer("price")
    def serialize_price(self, price: Decimal) -> float:
        return float(price)


class ErrorDetail(BaseModel):
    field: str
    code: str
    message: str


class ErrorResponse(BaseModel):
    timestamp: datetime
    status: int
    error: str
    code: str
    message: str
    path: str
    details: list[ErrorDetail] | None = None
