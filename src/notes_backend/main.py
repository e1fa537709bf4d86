from __future__ import annotations

import logging
from typing import Dict, Optional, Type

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .backends import get_backend
from .errors import (
    BackendOperationError,
    BackendUnavailableError,
    CorruptCollectionError,
    DuplicateIdError,
    InputValidationError,
    NoteNotFoundError,
    NoteStoreError,
    StructuralValidationError,
)
from .routers import notes as notes_router
from .settings import Settings, get_settings
from .store import NoteStore

logger = logging.getLogger(__name__)

openapi_tags = [
    {"name": "health", "description": "Service health and status endpoints."},
    {
        "name": "notes",
        "description": "Create, edit, toggle, delete and list short text notes.",
    },
]

# Most specific classes first; the first match in the exception's MRO wins.
_STATUS_BY_ERROR: Dict[Type[NoteStoreError], int] = {
    CorruptCollectionError: 500,
    StructuralValidationError: 422,
    InputValidationError: 422,
    DuplicateIdError: 409,
    NoteNotFoundError: 404,
    BackendUnavailableError: 503,
    BackendOperationError: 502,
}


def _status_for(exc: NoteStoreError) -> int:
    for cls in type(exc).__mro__:
        if cls in _STATUS_BY_ERROR:
            return _STATUS_BY_ERROR[cls]
    return 500


def _configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=settings.log_level,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


# PUBLIC_INTERFACE
def create_app(store: Optional[NoteStore] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the notes HTTP service.

    Args:
        store: Note store to serve. Built from settings (backend, key, write serialization) when omitted.
        settings: Application settings. Loaded from the environment when omitted.
    """
    settings = settings or get_settings()
    _configure_logging(settings)

    app = FastAPI(
        title="Notes Backend",
        description="Backend API service for short text notes over a whole-value key-value store.",
        version="0.1.0",
        openapi_tags=openapi_tags,
    )
    if store is None:
        store = NoteStore(
            get_backend(settings),
            storage_key=settings.storage_key,
            serialize_writes=settings.serialize_writes,
        )
    app.state.note_store = store
    app.state.settings = settings
    logger.info(f"Notes service using '{settings.persistence_backend}' backend, key '{settings.storage_key}'")

    allow_all = (settings.cors_allow_origins == ["*"]) or (len(settings.cors_allow_origins) == 0)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if allow_all else settings.cors_allow_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        """
        Return a consistent JSON structure for request validation errors.

        Response format:
            {
                "error": "ValidationError",
                "detail": [... pydantic/fastapi error details ...],
                "message": "Request validation failed"
            }
        """
        return JSONResponse(
            status_code=422,
            content={
                "error": "ValidationError",
                "message": "Request validation failed",
                "detail": exc.errors(),
            },
        )

    @app.exception_handler(NoteStoreError)
    async def note_store_exception_handler(request: Request, exc: NoteStoreError) -> JSONResponse:
        """
        Translate store failures into JSON errors: {"error": <kind>, "message": <text>}.
        """
        code = _status_for(exc)
        if code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {type(exc).__name__}: {exc}")
        return JSONResponse(
            status_code=code,
            content={"error": type(exc).__name__, "message": str(exc)},
        )

    # PUBLIC_INTERFACE
    @app.get("/", summary="Health Check", tags=["health"])
    def health_check():
        """
        Health check endpoint.

        Returns:
            A JSON object indicating service health.
        """
        return {"message": "Healthy", "backend": settings.persistence_backend}

    app.include_router(notes_router.router)
    return app


app = create_app()
