"""
Pytest configuration and shared fixtures.
"""

import pytest
from unittest.mock import AsyncMock
from fastapi.testclient import TestClient

from api.gateway import BookGateway, InMemoryBookGateway
from api.handlers import BookHandlers
from api.main import create_app


@pytest.fixture
def memory_gateway():
    """Empty in-memory book store."""
    return InMemoryBookGateway()


@pytest.fixture
def mock_gateway():
    """Create a mock persistence gateway for testing."""
    gateway = AsyncMock(spec=BookGateway)
    gateway.find_all.return_value = []
    gateway.find_by_id.return_value = None
    gateway.update_by_id.return_value = None
    gateway.delete_by_id.return_value = None
    return gateway


@pytest.fixture
def handlers(mock_gateway):
    """Handler set over the mocked gateway."""
    return BookHandlers(mock_gateway)


@pytest.fixture
def client(memory_gateway):
    """Test client for an app backed by the in-memory store."""
    return TestClient(create_app(gateway=memory_gateway))


@pytest.fixture
def sample_book_data():
    """Create sample book data for testing."""
    return {
        "title": "1984",
        "author": "Orwell",
        "publishedYear": 1949
    }


@pytest.fixture
def stored_book(sample_book_data):
    """Book as the gateway returns it after insertion."""
    return {"id": "60d5ecf7b7e1c20015a4b1a0", **sample_book_data}
