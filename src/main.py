"""
FastAPI main application for COCO Dataset Management API.
Handles HTTP requests and wires the dataset services together.
"""

import uvicorn
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.config import settings, is_local_environment
from src.api.data import router as data_router
from src.api.health import router as health_router
from src.services.database import init_database, close_database
from src.utils.logging import setup_logging, logger
from src.utils.exceptions import (
    CocoDatasetError,
    PayloadTooLargeError,
    get_http_status_code,
    format_exception_response
)

UPLOAD_PATH = "/data/update"


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup/shutdown."""
    # Startup
    setup_logging()
    logger.info("Starting COCO Dataset Management API")
    logger.info(f"Environment: {settings.environment.value}")
    logger.info(f"MongoDB URL: {settings.mongodb_url}")

    try:
        await init_database()
        logger.info("Database initialized successfully")
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise

    yield

    # Shutdown
    logger.info("Shutting down COCO Dataset Management API")
    await close_database()


# Create FastAPI application
app = FastAPI(
    title="COCO Dataset Management API",
    description="Backend API for uploading, merging and browsing COCO annotation datasets",
    version=settings.api_version,
    docs_url="/docs" if is_local_environment() else None,
    redoc_url="/redoc" if is_local_environment() else None,
    lifespan=lifespan
)

if settings.cors_origins:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )


@app.middleware("http")
async def limit_upload_size(request: Request, call_next):
    """Refuse uploads whose declared Content-Length is over the ceiling before the body is read."""
    if request.method == "POST" and request.url.path == UPLOAD_PATH:
        declared = request.headers.get("content-length", "")
        if declared.isdigit() and int(declared) > settings.max_upload_bytes:
            error = PayloadTooLargeError(settings.max_upload_bytes)
            logger.warning(f"Upload of {declared} bytes refused: {error}")
            return JSONResponse(status_code=get_http_status_code(error), content={"message": str(error)})

    return await call_next(request)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request, exc: StarletteHTTPException):
    """Render HTTP errors as a message body."""
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None)
    )


@app.exception_handler(RequestValidationError)
async def request_validation_exception_handler(request, exc: RequestValidationError):
    """Render request validation failures as a message body."""
    errors = jsonable_encoder(exc.errors())
    first = errors[0] if errors else {}
    location = ".".join(str(part) for part in first.get("loc", []))
    return JSONResponse(
        status_code=422,
        content={
            "message": f"Invalid request at {location}: {first.get('msg', 'validation failed')}",
            "details": errors
        }
    )


@app.exception_handler(CocoDatasetError)
async def coco_dataset_exception_handler(request, exc: CocoDatasetError):
    """Handle custom COCO dataset exceptions."""
    logger.error(f"COCO Dataset Error: {exc}")
    return JSONResponse(
        status_code=get_http_status_code(exc),
        content=format_exception_response(exc)
    )


@app.exception_handler(Exception)
async def global_exception_handler(request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.error(f"Unexpected error: {exc}", exc_info=True)
    return JSONResponse(
        status_code=500,
        content={"message": str(exc) or "An unexpected error occurred"}
    )


# Root endpoint
@app.get("/")
async def root():
    """API information endpoint."""
    return {
        "service": "COCO Dataset Management API",
        "version": settings.api_version,
        "description": "Backend API for uploading, merging and browsing COCO annotation datasets",
        "documentation": {
            "interactive": "/docs",
            "redoc": "/redoc",
            "openapi": "/openapi.json"
        },
        "health": "/health",
        "data": "/data"
    }


# Include API routers
app.include_router(health_router, tags=["Health"])
app.include_router(data_router, prefix="/data", tags=["Data"])


if __name__ == "__main__":
    uvicorn.run(
        "src.main:app",
        host=settings.api_host,
        port=settings.api_port,
        log_level=settings.log_level.lower(),
        reload=is_local_environment()
    )
