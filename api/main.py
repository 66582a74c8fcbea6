"""
FastAPI application for the Book API.
"""

import json
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, List, Optional

import structlog
from fastapi import APIRouter, Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from api.config import APIConfig, config as api_config
from api.database import MongoBookGateway, create_client
from api.gateway import BookGateway
from api.handlers import BookHandlers
from api.models import BOOK_EXAMPLE, BookResponse, ErrorResponse, HealthResponse, MessageResponse, ResponseEnvelope

# Setup logging
logger = structlog.get_logger(__name__)


def get_book_handlers(request: Request) -> BookHandlers:
    """Dependency returning the handler set installed on the application."""
    handlers = getattr(request.app.state, "book_handlers", None)
    if handlers is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database service not available"
        )
    return handlers


def render(envelope: ResponseEnvelope) -> JSONResponse:
    return JSONResponse(status_code=envelope.status_code, content=jsonable_encoder(envelope.body))


async def read_json_body(request: Request) -> Any:
    """
    Parse the request body as JSON without constraining its shape.

    An empty body gives None. Whether the value is usable is decided by the
    handlers, so non-object bodies get the same 400 as missing fields.
    """
    raw = await request.body()
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except ValueError as e:
        logger.warning("Malformed JSON body", path=request.url.path, error=str(e))
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Malformed JSON body"
        )


# Bodies are read by read_json_body, so the schema is declared here for the docs.
JSON_OBJECT_BODY = {
    "requestBody": {
        "required": False,
        "content": {"application/json": {"schema": {"type": "object", "example": BOOK_EXAMPLE}}},
    }
}

router = APIRouter(prefix="/api/books", tags=["Books"])


@router.get("", response_model=List[BookResponse])
@router.get("/", response_model=List[BookResponse], include_in_schema=False)
async def list_books(handlers: BookHandlers = Depends(get_book_handlers)):
    """Returns the list of all the books."""
    return render(await handlers.list_books())


@router.post(
    "",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    responses={400: {"model": MessageResponse}},
    openapi_extra=JSON_OBJECT_BODY,
)
@router.post(
    "/",
    response_model=BookResponse,
    status_code=status.HTTP_201_CREATED,
    include_in_schema=False,
)
async def create_book(
    payload: Any = Depends(read_json_body),
    handlers: BookHandlers = Depends(get_book_handlers),
):
    """
    Create a new book.

    - **title**: required, non-empty
    - **author**: required, non-empty
    - **publishedYear**: required, a JSON number
    - **isbn**, **publishedDate**: optional
    """
    return render(await handlers.create_book(payload))


@router.get(
    "/{book_id}",
    response_model=BookResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def get_book(book_id: str, handlers: BookHandlers = Depends(get_book_handlers)):
    """Get a single book by ID."""
    return render(await handlers.get_book(book_id))


@router.put(
    "/{book_id}",
    response_model=BookResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
    openapi_extra=JSON_OBJECT_BODY,
)
async def update_book(
    book_id: str,
    payload: Any = Depends(read_json_body),
    handlers: BookHandlers = Depends(get_book_handlers),
):
    """Update some or all fields of a book."""
    return render(await handlers.update_book(book_id, payload))


@router.delete(
    "/{book_id}",
    response_model=MessageResponse,
    responses={404: {"model": ErrorResponse}, 500: {"model": ErrorResponse}},
)
async def delete_book(book_id: str, handlers: BookHandlers = Depends(get_book_handlers)):
    """Delete a book."""
    return render(await handlers.delete_book(book_id))


def create_app(gateway: Optional[BookGateway] = None, settings: APIConfig = api_config) -> FastAPI:
    """
    Build the application.

    With a gateway the handlers are installed immediately and no database
    connection is made. Without one, the lifespan connects to MongoDB.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("Starting Book API")
        if gateway is not None:
            yield
            logger.info("Shutting down Book API")
            return

        client = create_client(settings)
        try:
            database = client[settings.mongodb_database]
            await database.command("ping")
            logger.info("Database connection established", database=settings.mongodb_database)

            mongo_gateway = MongoBookGateway(database, settings.mongodb_collection)
            await mongo_gateway.ensure_indexes()
            app.state.book_handlers = BookHandlers(mongo_gateway)
        except Exception as e:
            logger.error("Failed to connect to database", error=str(e))
            client.close()
            raise

        yield

        logger.info("Shutting down Book API")
        client.close()

    app = FastAPI(
        title=settings.api_title,
        description=settings.api_description,
        version=settings.api_version,
        docs_url="/api-docs",
        lifespan=lifespan,
    )
    if gateway is not None:
        app.state.book_handlers = BookHandlers(gateway)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request, exc: HTTPException):
        """Handle HTTP exceptions."""
        return JSONResponse(
            status_code=exc.status_code,
            content=ErrorResponse(error=str(exc.detail)).model_dump(exclude_none=True),
            headers=exc.headers
        )

    @app.exception_handler(Exception)
    async def general_exception_handler(request, exc: Exception):
        """Handle general exceptions."""
        logger.error("Unhandled exception", error=str(exc), path=request.url.path)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorResponse(
                error="Internal server error",
                detail=str(exc) if settings.debug else None,
            ).model_dump(exclude_none=True)
        )

    # Health check endpoint
    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check(request: Request):
        """Health check endpoint."""
        db_status = "unavailable"
        try:
            handlers = getattr(request.app.state, "book_handlers", None)
            if handlers is not None:
                health_info = await handlers.gateway.health_check()
                db_status = health_info.get("status", "unknown")
        except Exception as e:
            logger.error("Health check failed", error=str(e))
            db_status = "unhealthy"

        return HealthResponse(
            status="healthy" if db_status == "healthy" else "degraded",
            timestamp=datetime.utcnow(),
            version=settings.api_version,
            database_status=db_status
        )

    app.include_router(router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "api.main:app",
        host=api_config.host,
        port=api_config.port,
        reload=True,
        log_level="info"
    )
