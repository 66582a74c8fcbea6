"""
Persistence gateway contract for book documents.

Handlers talk to the store only through ``BookGateway``. Every method returns
books in wire form: a plain dict whose ``_id`` has been rendered as ``id``.
"""

import copy
from abc import ABC, abstractmethod
from typing import Any, Dict, List, NamedTuple, Optional

import structlog
from bson import ObjectId
from pydantic import ValidationError

from api.errors import DocumentRejected, InvalidBookId
from api.models import BookDocument, BookUpdate

logger = structlog.get_logger(__name__)


def parse_book_id(book_id: Any) -> ObjectId:
    """Convert a path identifier to an ObjectId, raising InvalidBookId on bad input."""
    if isinstance(book_id, ObjectId):
        return book_id
    if not isinstance(book_id, str) or not ObjectId.is_valid(book_id):
        raise InvalidBookId(book_id)
    return ObjectId(book_id)


def describe_validation_error(exc: ValidationError) -> str:
    """Flatten a pydantic ValidationError into a one-line message."""
    problems = []
    for err in exc.errors():
        field = ".".join(str(part) for part in err["loc"]) or "document"
        problems.append(f"{field}: {err['msg']}")
    return "Book validation failed: " + ", ".join(problems)


def build_document(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Validate a candidate book and return the storable document."""
    try:
        return BookDocument.model_validate(payload).to_document()
    except ValidationError as e:
        raise DocumentRejected(describe_validation_error(e)) from e


class BookChanges(NamedTuple):
    """Validated partial update: fields to write and optional fields to remove."""
    set_fields: Dict[str, Any]
    unset_fields: List[str]

    def to_update(self) -> Dict[str, Any]:
        """Render as a MongoDB update document."""
        update = {}
        if self.set_fields:
            update["$set"] = self.set_fields
        if self.unset_fields:
            update["$unset"] = {field: "" for field in self.unset_fields}
        return update


def build_changes(payload: Dict[str, Any]) -> BookChanges:
    """
    Validate a partial update.

    A null optional field is removed from the document rather than stored as
    null, so cleared ISBNs stay out of the unique index.
    """
    try:
        changes = BookUpdate.model_validate(payload).to_changes()
    except ValidationError as e:
        raise DocumentRejected(describe_validation_error(e)) from e
    set_fields = {field: value for field, value in changes.items() if value is not None}
    unset_fields = [field for field, value in changes.items() if value is None]
    return BookChanges(set_fields, unset_fields)


def serialize_book(document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Render a stored document for the wire."""
    if document is None:
        return None
    body = dict(document)
    book_id = body.pop("_id")
    return {"id": str(book_id), **body}


def duplicate_isbn_message(collection: str, isbn: str) -> str:
    return f'E11000 duplicate key error collection: {collection} index: isbn_1 dup key: {{ isbn: "{isbn}" }}'


class BookGateway(ABC):
    """Storage contract consumed by the book handlers."""

    @abstractmethod
    async def find_all(self) -> List[Dict[str, Any]]:
        """Return every book in insertion order."""

    @abstractmethod
    async def find_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        """Return the book or None."""

    @abstractmethod
    async def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Validate and store a new book, returning it with its assigned id."""

    @abstractmethod
    async def update_by_id(self, book_id: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        """
        Apply a partial update and return the updated book.

        Returns None when no book has this id, even if the update itself
        would have been rejected.
        """

    @abstractmethod
    async def delete_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        """Remove the book and return it, or None if absent."""

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy"}


class InMemoryBookGateway(BookGateway):
    """
    Dictionary-backed gateway with the same validation and id rules as the
    MongoDB gateway. Used by the test-suite and for running without a database.
    """

    def __init__(self, collection_name: str = "books"):
        self.collection_name = collection_name
        self._books: Dict[ObjectId, Dict[str, Any]] = {}

    def _check_isbn_unique(self, isbn: Optional[str], exclude: Optional[ObjectId] = None) -> None:
        if isbn is None:
            return
        for oid, doc in self._books.items():
            if oid != exclude and doc.get("isbn") == isbn:
                raise DocumentRejected(duplicate_isbn_message(self.collection_name, isbn))

    async def find_all(self) -> List[Dict[str, Any]]:
        return [serialize_book(copy.deepcopy(doc)) for doc in self._books.values()]

    async def find_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        doc = self._books.get(parse_book_id(book_id))
        return serialize_book(copy.deepcopy(doc))

    async def insert(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        document = build_document(payload)
        self._check_isbn_unique(document.get("isbn"))
        oid = ObjectId()
        self._books[oid] = {"_id": oid, **document}
        logger.debug("Inserted book", book_id=str(oid), store="memory")
        return serialize_book(copy.deepcopy(self._books[oid]))

    async def update_by_id(self, book_id: str, payload: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        oid = parse_book_id(book_id)
        doc = self._books.get(oid)
        if doc is None:
            return None
        changes = build_changes(payload)
        if "isbn" in changes.set_fields:
            self._check_isbn_unique(changes.set_fields["isbn"], exclude=oid)
        doc.update(changes.set_fields)
        for field in changes.unset_fields:
            doc.pop(field, None)
        return serialize_book(copy.deepcopy(doc))

    async def delete_by_id(self, book_id: str) -> Optional[Dict[str, Any]]:
        doc = self._books.pop(parse_book_id(book_id), None)
        return serialize_book(doc)

    async def health_check(self) -> Dict[str, Any]:
        return {"status": "healthy", "books_count": len(self._books)}
