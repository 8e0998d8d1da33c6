# Standard library imports
from contextlib import asynccontextmanager

# Third-party imports
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

# Local imports
from app.api.v1.routes.router import router as api_v1_router
from app.core.config import settings
from app.core.errors import AppError
from app.core.logging_config import get_logger
from app.core.response import error_response, validation_error_response
from app.db.deps import engine

# Initialize centralized logger
logger = get_logger("main")

_HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


def _request_context(request: Request) -> dict:
    return {
        "path": request.url.path,
        "method": request.method,
        "client_ip": request.client.host if request.client else None,
    }


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager for startup and shutdown operations."""
    logger.info(f"Starting 10xCards API ({settings.ENVIRONMENT})")
    yield
    # Shutdown: release pooled database connections
    await engine.dispose()


# Initialize FastAPI
app = FastAPI(
    title="10xCards API",
    description="Flashcards with AI-generated suggestions",
    version="1.0.0",
    openapi_url="/api/openapi.json",
    docs_url="/api/docs",
    redoc_url="/api/redoc",
    lifespan=lifespan,
)

# Include the router with prefix
app.include_router(
    api_v1_router,
    prefix="/api/v1",
)


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError):
    """Render typed service errors in the uniform envelope"""
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"{type(exc).__name__}: {exc.status_code} {exc.code} - {exc.message}",
        extra={"status_code": exc.status_code, **_request_context(request)},
    )
    return error_response(
        exc.code,
        exc.public_message,
        details=exc.details,
        status_code=exc.status_code,
        headers=exc.headers or None,
    )


# Custom exception handler
@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle HTTP exceptions with logging"""
    # exc.detail might be a dict or str
    msg = exc.detail if isinstance(exc.detail, str) else str(exc.detail)

    logger.warning(
        f"HTTP Exception: {exc.status_code} - {msg}",
        extra={"status_code": exc.status_code, **_request_context(request)},
    )

    return error_response(
        _HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        msg,
        status_code=exc.status_code,
        headers=getattr(exc, "headers", None),
    )


# Pydantic validation errors
@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Structured validation error details, always 400"""
    error_count = len(exc.errors())
    logger.warning(
        f"Validation Error: {error_count} field(s) failed validation",
        extra={"error_count": error_count, **_request_context(request)},
    )

    return validation_error_response(exc.errors(), status_code=400)


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
    """Last resort: never leak internal messages to the client"""
    logger.exception(
        f"Unhandled error on {request.method} {request.url.path}: {type(exc).__name__}"
    )
    return error_response(
        "internal_error",
        "An unexpected error occurred",
        status_code=500,
    )


# Add CORS middleware
logger.info(f"Configuring CORS middleware with origins: {settings.ALLOWED_ORIGINS}")
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=settings.ALLOW_CREDENTIALS,
    allow_methods=settings.ALLOWED_METHODS,
    allow_headers=settings.ALLOWED_HEADERS,
)
logger.info("CORS middleware configured successfully")


# Run the app
if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        app,
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG
    )
