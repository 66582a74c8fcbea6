"""
API models and schemas for the book service.
"""

from datetime import date, datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


BOOK_EXAMPLE = {
    "title": "The Great Gatsby",
    "author": "F. Scott Fitzgerald",
    "publishedYear": 1925,
    "isbn": "978-0743273565",
    "publishedDate": "1925-04-10",
}


class BookDocument(BaseModel):
    """
    Schema a book document must satisfy before it is stored.

    Field names on the wire and in the store are camelCase; unknown keys
    are dropped.
    """
    model_config = ConfigDict(
        populate_by_name=True,
        extra="ignore",
        json_schema_extra={"example": BOOK_EXAMPLE},
    )

    title: str = Field(..., min_length=1, description="The book title")
    author: str = Field(..., min_length=1, description="The book author")
    published_year: int = Field(..., alias="publishedYear", description="Year of publication")
    isbn: Optional[str] = Field(None, description="The book ISBN (unique)")
    published_date: Optional[date] = Field(
        None, alias="publishedDate", description="The date the book was published"
    )

    def to_document(self) -> dict:
        """Dump to a storable dict, omitting unset optional fields."""
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class BookUpdate(BaseModel):
    """Partial book update. Only the supplied fields are validated and written."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    title: Optional[str] = Field(None, min_length=1)
    author: Optional[str] = Field(None, min_length=1)
    published_year: Optional[int] = Field(None, alias="publishedYear")
    isbn: Optional[str] = None
    published_date: Optional[date] = Field(None, alias="publishedDate")

    @field_validator('title', 'author', 'published_year')
    @classmethod
    def required_fields_not_null(cls, v, info):
        """Required book fields may be replaced but not cleared."""
        if v is None:
            raise ValueError(f'{info.field_name} cannot be null')
        return v

    def to_changes(self) -> dict:
        return self.model_dump(by_alias=True, exclude_unset=True, mode="json")


class BookResponse(BaseModel):
    """Book as returned by the API."""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={"example": {"id": "60d5ecf7b7e1c20015a4b1a0", **BOOK_EXAMPLE}},
    )

    id: str = Field(..., description="The auto-generated id of the book")
    title: str = Field(..., description="The book title")
    author: str = Field(..., description="The book author")
    publishedYear: int = Field(..., description="Year of publication")
    isbn: Optional[str] = Field(None, description="The book ISBN")
    publishedDate: Optional[str] = Field(None, description="Publication date (YYYY-MM-DD)")


class ResponseEnvelope(BaseModel):
    """Status code and JSON body produced by a book handler."""
    status_code: int = Field(..., description="HTTP status code")
    body: Any = Field(None, description="JSON response body")


class MessageResponse(BaseModel):
    """Plain message body."""
    message: str = Field(..., description="Result or validation message")


class ErrorResponse(BaseModel):
    """Error response model."""
    error: str = Field(..., description="Error message")
    detail: Optional[str] = Field(None, description="Additional error details")


class HealthResponse(BaseModel):
    """Health check response model."""
    status: str = Field(..., description="Service status")
    timestamp: datetime = Field(..., description="Current timestamp")
    version: str = Field(..., description="API version")
    database_status: str = Field(..., description="Database connection status")
