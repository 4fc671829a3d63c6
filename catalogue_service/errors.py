"""Error codes, exception types and the FastAPI handlers that render them.

Every error leaves the service in the same JSON shape (``schemas.ErrorResponse``)
and carries a stable code from ``ERROR_MESSAGES``. Field validation failures
additionally list one ``{"field", "code", "message"}`` entry per problem.
"""
import logging
from datetime import datetime
from http import HTTPStatus
from typing import Any, Iterable, List, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from catalogue_service import schemas

logger = logging.getLogger(__name__)

BOOK_NOT_FOUND = "BOOK-404-001"
VALIDATION_FAILED = "GENERIC-000"
DUPLICATE_RECORD = "GENERIC-001"
MISSING_REQUIRED_FIELDS = "GENERIC-002"
INTEGRITY_ERROR = "GENERIC-003"
UNEXPECTED_ERROR = "GENERIC-004"
MALFORMED_JSON = "GENERIC-005"
PATCH_NOT_APPLICABLE = "GENERIC-006"
RESOURCE_NOT_FOUND = "GENERIC-007"
METHOD_NOT_ALLOWED = "GENERIC-008"
SERVICE_UNAVAILABLE = "GENERIC-009"
REQUEST_NOT_PROCESSED = "GENERIC-010"
DUPLICATE_ISBN = "BOOK-022"
NON_POSITIVE_PRICE = "BOOK-041"

ERROR_MESSAGES = {
    "BOOK-001": "The 'title' field is required and cannot be blank",
    "BOOK-002": "The 'title' field exceeds the maximum length (max: 200 characters)",
    "BOOK-010": "The 'author' field is required and cannot be blank",
    "BOOK-011": "The 'author' field exceeds the maximum length (max: 150 characters)",
    "BOOK-020": "The 'isbn' field exceeds the maximum length (max: 20 characters)",
    "BOOK-021": "The 'isbn' field has an invalid format",
    "BOOK-022": "The 'isbn' value already exists",
    "BOOK-030": "The 'category' field exceeds the maximum length (max: 100 characters)",
    "BOOK-040": "The 'price' field is required and cannot be empty",
    "BOOK-041": "The 'price' field must be greater than 0",
    "BOOK-042": "The 'price' field must have at most 2 decimal places",
    "BOOK-050": "The 'rating' field must be between 0 and 5",
    "BOOK-060": "The 'visible' field is required and cannot be empty",
    "BOOK-070": "The 'publication_date' field is required and cannot be empty",
    "BOOK-072": "The 'publication_date' field cannot be a future date",
    "BOOK-404-001": "The requested book does not exist",
    "GENERIC-000": "Request validation failed",
    "GENERIC-001": "A record with the same identifier already exists",
    "GENERIC-002": "Required fields are missing",
    "GENERIC-003": "Data integrity error",
    "GENERIC-004": "An unexpected error has occurred. Please contact the administrator",
    "GENERIC-005": "The request body is not valid JSON",
    "GENERIC-006": "The merge patch could not be applied to the book",
    "GENERIC-007": "The requested resource does not exist",
    "GENERIC-008": "The HTTP method is not allowed for this resource",
    "GENERIC-009": "The service is temporarily unavailable",
    "GENERIC-010": "The request could not be processed",
}

# field -> validation rule -> code
FIELD_ERROR_CODES = {
    "title": {"required": "BOOK-001", "length": "BOOK-002"},
    "author": {"required": "BOOK-010", "length": "BOOK-011"},
    "isbn": {"length": "BOOK-020", "format": "BOOK-021"},
    "category": {"length": "BOOK-030"},
    "price": {"required": "BOOK-040", "range": "BOOK-041", "digits": "BOOK-042"},
    "rating": {"range": "BOOK-050"},
    "visible": {"required": "BOOK-060"},
    "publication_date": {"required": "BOOK-070", "future": "BOOK-072"},
}

_RULES_BY_ERROR_TYPE = {
    "missing": "required",
    "string_too_short": "required",
    "string_too_long": "length",
    "string_pattern_mismatch": "format",
    "greater_than": "range",
    "greater_than_equal": "range",
    "less_than": "range",
    "less_than_equal": "range",
    "decimal_max_places": "digits",
    "decimal_max_digits": "digits",
    "decimal_whole_digits": "digits",
    "date_in_future": "future",
}

# framework HTTP errors -> code
HTTP_ERROR_CODES = {
    status.HTTP_404_NOT_FOUND: RESOURCE_NOT_FOUND,
    status.HTTP_405_METHOD_NOT_ALLOWED: METHOD_NOT_ALLOWED,
    status.HTTP_503_SERVICE_UNAVAILABLE: SERVICE_UNAVAILABLE,
}


def get_message(code: str) -> str:
    return ERROR_MESSAGES.get(code, ERROR_MESSAGES[UNEXPECTED_ERROR])


def classify(error: dict) -> str:
    """Name the rule a single pydantic error broke."""
    error_type = error.get("type", "")
    if error_type in _RULES_BY_ERROR_TYPE:
        return _RULES_BY_ERROR_TYPE[error_type]
    if "input" in error and error["input"] is None:
        return "required"
    return "type"


def validation_details(errors: Iterable[dict], skip_location: int = 0) -> List[dict]:
    details = []
    for error in errors:
        loc = tuple(error.get("loc", ()))[skip_location:] or tuple(error.get("loc", ()))
        field = ".".join(str(part) for part in loc)
        code = FIELD_ERROR_CODES.get(field, {}).get(classify(error))
        if code:
            message = get_message(code)
        else:
            code = VALIDATION_FAILED
            message = error.get("msg", get_message(VALIDATION_FAILED))
        details.append({"field": field, "code": code, "message": message})
    return details


class CatalogueError(Exception):
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = UNEXPECTED_ERROR

    def __init__(
        self,
        message: Optional[str] = None,
        *,
        code: Optional[str] = None,
        details: Optional[List[dict]] = None,
    ) -> None:
        if code is not None:
            self.code = code
        self.message = message or get_message(self.code)
        self.details = details
        super().__init__(self.message)


class BookNotFoundError(CatalogueError):
    status_code = status.HTTP_404_NOT_FOUND
    code = BOOK_NOT_FOUND

    def __init__(self, book_id: Any = None) -> None:
        self.book_id = book_id
        super().__init__()


class ValidationFailedError(CatalogueError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = VALIDATION_FAILED

    @classmethod
    def from_pydantic(cls, exc: ValidationError) -> "ValidationFailedError":
        return cls(details=validation_details(exc.errors()))


class BusinessRuleViolationError(CatalogueError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = NON_POSITIVE_PRICE


class InvalidPatchError(CatalogueError):
    status_code = status.HTTP_400_BAD_REQUEST
    code = PATCH_NOT_APPLICABLE


class ServiceUnavailableError(CatalogueError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = SERVICE_UNAVAILABLE


class ConflictError(CatalogueError):
    status_code = status.HTTP_409_CONFLICT
    code = INTEGRITY_ERROR

    @classmethod
    def from_integrity_error(cls, exc: IntegrityError) -> "ConflictError":
        text = str(exc.orig or exc).lower()
        if "isbn" in text:
            return cls(
                code=DUPLICATE_ISBN,
                details=[{"field": "isbn", "code": DUPLICATE_ISBN, "message": get_message(DUPLICATE_ISBN)}],
            )
        if "not null" in text or "null value" in text:
            return cls(code=MISSING_REQUIRED_FIELDS)
        if "unique" in text or "duplicate" in text:
            return cls(code=DUPLICATE_RECORD)
        return cls(code=INTEGRITY_ERROR)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: Optional[List[dict]] = None,
    headers: Optional[dict] = None,
) -> JSONResponse:
    body = schemas.ErrorResponse(
        timestamp=datetime.now(),
        status=status_code,
        error=HTTPStatus(status_code).phrase,
        code=code,
        message=message,
        path=request.url.path,
        details=details,
    )
    return JSONResponse(status_code=status_code, content=jsonable_encoder(body), headers=headers)


async def catalogue_error_handler(request: Request, exc: CatalogueError) -> JSONResponse:
    return error_response(request, exc.status_code, exc.code, exc.message, exc.details)


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    code = HTTP_ERROR_CODES.get(exc.status_code, REQUEST_NOT_PROCESSED)
    return error_response(
        request,
        exc.status_code,
        code,
        get_message(code),
        headers=getattr(exc, "headers", None),
    )


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    details = validation_details(exc.errors(), skip_location=1)
    logger.info(f"Rejected {request.method} {request.url.path}: {details}")
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        VALIDATION_FAILED,
        get_message(VALIDATION_FAILED),
        details,
    )


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception(f"Unexpected error on {request.method} {request.url.path}")
    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        UNEXPECTED_ERROR,
        get_message(UNEXPECTED_ERROR),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(CatalogueError, catalogue_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
    app.add_exception_handler(Exception, unexpected_error_handler)
