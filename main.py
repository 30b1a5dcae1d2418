"""
Main entrypoint for the FastAPI server
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.routing import APIRoute
from core.lifespan import lifespan
from core.config import get_settings

from api.files.exceptions import (
    FileStorageError,
    InvalidInput,
    NotFound,
    PayloadTooLarge,
    PersistFailed,
    StorageUnavailable,
    VersionConflict,
)
from api.files.routes import router as files_router

logger = logging.getLogger(__name__)


# Customize route id's
# Helpful for creating sensible names in the client
def custom_generate_unique_id(route: APIRoute):
    """ Generate unique route IDs based on route name """
    return f"{route.name}"  # these must be unique


# Create schema & router
app = FastAPI(
    lifespan=lifespan,
    generate_unique_id_function=custom_generate_unique_id
)

# CORS settings to allow client-server communication
# Set with env variable
origins = [get_settings().client_origin] if get_settings().client_origin else []

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Most specific kinds first; the first isinstance match wins
ERROR_STATUS_CODES = [
    (PayloadTooLarge, status.HTTP_413_CONTENT_TOO_LARGE),
    (InvalidInput, status.HTTP_400_BAD_REQUEST),
    (NotFound, status.HTTP_404_NOT_FOUND),
    (VersionConflict, status.HTTP_409_CONFLICT),
    (PersistFailed, status.HTTP_500_INTERNAL_SERVER_ERROR),
    (StorageUnavailable, status.HTTP_503_SERVICE_UNAVAILABLE),
]


@app.exception_handler(FileStorageError)
async def file_storage_error_handler(request: Request, exc: FileStorageError):
    """Map file storage failure kinds to HTTP responses"""
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    for error_type, code in ERROR_STATUS_CODES:
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error("%s %s failed: %s", request.method, request.url.path, exc)
    else:
        logger.info("%s %s rejected: %s", request.method, request.url.path, exc)

    headers = None
    if isinstance(exc, StorageUnavailable):
        headers = {"Retry-After": "1"}
    return JSONResponse(
        status_code=status_code,
        content={"detail": exc.message},
        headers=headers,
    )


# REST routers
# Add each api/feature folder here
API_PREFIX = "/api/v1"

app.include_router(files_router, prefix=API_PREFIX)


# Health check endpoint for monitoring
@app.get("/api/health", tags=["health"])
def health_check():
    return {"status": "ok", "message": "File storage API is running"}


if __name__ == "__main__":
    # For debugging purposes
    import uvicorn

    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)
