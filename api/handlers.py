"""
Request handlers for the book resource.

Each operation validates its input, makes a single gateway call and returns a
``ResponseEnvelope``. Failures are raised as ``BookError`` and converted to an
envelope by ``envelope_errors``, so no exception leaves a handler.
"""

import functools
from numbers import Number
from typing import Any, Dict

import structlog
from fastapi import status

from api.errors import BookError, BookErrorKind
from api.gateway import BookGateway
from api.models import ResponseEnvelope

logger = structlog.get_logger(__name__)

REQUIRED_FIELDS_MESSAGE = "All fields required (title, author, publishedYear as number)"
NOT_FOUND_MESSAGE = "Book not found"
NOT_AN_OBJECT_MESSAGE = "Request body must be a JSON object"


def envelope_errors(handler):
    """Turn a raised BookError into its response envelope."""
    @functools.wraps(handler)
    async def wrapper(*args, **kwargs) -> ResponseEnvelope:
        try:
            return await handler(*args, **kwargs)
        except BookError as e:
            return ResponseEnvelope(status_code=e.status_code, body=e.to_body())
    return wrapper


def is_numeric(value: Any) -> bool:
    """True for int and float values; bools and numeric strings are not numbers here."""
    return isinstance(value, Number) and not isinstance(value, bool)


def validate_new_book(payload: Dict[str, Any]) -> None:
    """Check the fields a new book must carry before it reaches the store."""
    title = payload.get("title")
    author = payload.get("author")
    published_year = payload.get("publishedYear")

    if not title or not author or not published_year or not is_numeric(published_year):
        logger.warning(
            "Validation failed",
            title=title,
            author=author,
            publishedYear=published_year,
            type=type(published_year).__name__,
        )
        raise BookError(BookErrorKind.VALIDATION, REQUIRED_FIELDS_MESSAGE)


class BookHandlers:
    """The five book operations over an injected persistence gateway."""

    def __init__(self, gateway: BookGateway):
        self.gateway = gateway

    @envelope_errors
    async def list_books(self) -> ResponseEnvelope:
        try:
            books = await self.gateway.find_all()
        except Exception as e:
            logger.error("Failed to list books", error=str(e))
            raise BookError(BookErrorKind.PERSISTENCE_FAULT, str(e), body_key="message") from e
        return ResponseEnvelope(status_code=status.HTTP_200_OK, body=books)

    @envelope_errors
    async def create_book(self, payload: Any) -> ResponseEnvelope:
        # A non-object body carries none of the required fields
        if not isinstance(payload, dict):
            payload = {}
        logger.debug(
            "Create book request",
            body=payload,
            publishedYear_type=type(payload.get("publishedYear")).__name__,
        )
        validate_new_book(payload)

        try:
            book = await self.gateway.insert(payload)
        except Exception as e:
            logger.error("Error creating book", error=str(e))
            raise BookError(BookErrorKind.PERSISTENCE_REJECTED, str(e)) from e

        logger.info("Book created", book_id=book["id"], title=book.get("title"))
        return ResponseEnvelope(status_code=status.HTTP_201_CREATED, body=book)

    @envelope_errors
    async def get_book(self, book_id: str) -> ResponseEnvelope:
        try:
            book = await self.gateway.find_by_id(book_id)
        except Exception as e:
            logger.error("Failed to get book", book_id=book_id, error=str(e))
            raise BookError(BookErrorKind.PERSISTENCE_FAULT, str(e)) from e

        if book is None:
            raise BookError(BookErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        return ResponseEnvelope(status_code=status.HTTP_200_OK, body=book)

    @envelope_errors
    async def update_book(self, book_id: str, payload: Any) -> ResponseEnvelope:
        if payload is None:
            payload = {}
        elif not isinstance(payload, dict):
            logger.warning("Update body is not an object", book_id=book_id, type=type(payload).__name__)
            raise BookError(BookErrorKind.VALIDATION, NOT_AN_OBJECT_MESSAGE, body_key="error")

        # No field checks here; the gateway validates the supplied fields.
        try:
            book = await self.gateway.update_by_id(book_id, payload)
        except Exception as e:
            logger.error("Failed to update book", book_id=book_id, error=str(e))
            raise BookError(BookErrorKind.PERSISTENCE_REJECTED, str(e)) from e

        if book is None:
            raise BookError(BookErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        logger.info("Book updated", book_id=book_id)
        return ResponseEnvelope(status_code=status.HTTP_200_OK, body=book)

    @envelope_errors
    async def delete_book(self, book_id: str) -> ResponseEnvelope:
        try:
            book = await self.gateway.delete_by_id(book_id)
        except Exception as e:
            logger.error("Failed to delete book", book_id=book_id, error=str(e))
            raise BookError(BookErrorKind.PERSISTENCE_FAULT, str(e)) from e

        if book is None:
            raise BookError(BookErrorKind.NOT_FOUND, NOT_FOUND_MESSAGE)
        logger.info("Book deleted", book_id=book_id)
        return ResponseEnvelope(status_code=status.HTTP_200_OK, body={"message": "Book deleted"})
