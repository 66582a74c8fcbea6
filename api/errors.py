"""
Error types for the book handlers and persistence gateways.
"""

from enum import Enum
from typing import Optional

from fastapi import status


class BookErrorKind(str, Enum):
    """Classification of handler failures."""
    VALIDATION = "validation"
    NOT_FOUND = "not_found"
    PERSISTENCE_REJECTED = "persistence_rejected"
    PERSISTENCE_FAULT = "persistence_fault"


STATUS_BY_KIND = {
    BookErrorKind.VALIDATION: status.HTTP_400_BAD_REQUEST,
    BookErrorKind.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    BookErrorKind.PERSISTENCE_REJECTED: status.HTTP_400_BAD_REQUEST,
    BookErrorKind.PERSISTENCE_FAULT: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class BookError(Exception):
    """
    Tagged handler error.

    The HTTP status is derived from ``kind``. The body key defaults to
    ``message`` for validation errors and ``error`` for everything else;
    ``body_key`` overrides it.
    """

    def __init__(self, kind: BookErrorKind, detail: str, body_key: Optional[str] = None):
        super().__init__(detail)
        self.kind = kind
        self.detail = detail
        if body_key is None:
            body_key = "message" if kind == BookErrorKind.VALIDATION else "error"
        self.body_key = body_key

    @property
    def status_code(self) -> int:
        return STATUS_BY_KIND[self.kind]

    def to_body(self) -> dict:
        return {self.body_key: self.detail}

    def __repr__(self) -> str:
        return f"BookError(kind={self.kind.value!r}, detail={self.detail!r})"


class GatewayError(Exception):
    """Base class for persistence gateway failures."""


class DocumentRejected(GatewayError):
    """The store refused a document (schema violation or duplicate key)."""


class InvalidBookId(GatewayError):
    """The supplied identifier is not a valid book id."""

    def __init__(self, book_id):
        super().__init__(
            f'Cast to ObjectId failed for value "{book_id}": '
            "must be a 24-character hex string"
        )
        self.book_id = book_id
