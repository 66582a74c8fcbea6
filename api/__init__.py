"""
FastAPI REST API for managing books.

This package provides:
- CRUD handlers for the book resource
- MongoDB and in-memory persistence gateways
- Environment-driven configuration
"""
