"""FastAPI application entry point"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from starlette.exceptions import HTTPException as StarletteHTTPException

from backend.app.core.config import settings
from backend.app.core.database import Database
from backend.app.core.logging import setup_logging, get_logger
from backend.app.core.middleware import (
    RequestIDMiddleware,
    LoggingMiddleware,
    RateLimitMiddleware
)
from backend.app.core.exceptions import BoardChampionsException, StoreUnavailableException

# Setup logging
setup_logging()
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(application: FastAPI) -> AsyncIterator[None]:
    """Open the database at startup and dispose it at shutdown"""
    logger.info(f"Starting {settings.APP_NAME} v{settings.APP_VERSION}")
    logger.info(f"Environment: {settings.ENVIRONMENT}")
    logger.info(f"Debug mode: {settings.DEBUG}")

    # Tests install their own database before startup
    if getattr(application.state, "db", None) is None:
        application.state.db = Database(
            settings.DATABASE_URL,
            echo=settings.DATABASE_ECHO,
            pool_size=settings.DATABASE_POOL_SIZE,
            max_overflow=settings.DATABASE_MAX_OVERFLOW,
        )

    yield

    logger.info("Shutting down application")
    await application.state.db.dispose()


# Error codes for plain HTTP errors raised by the framework itself
HTTP_ERROR_CODES = {
    400: "invalid_input",
    401: "unauthenticated",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
    409: "conflict",
    429: "rate_limited",
}

# Create FastAPI app
app = FastAPI(
    title=settings.APP_NAME,
    version=settings.APP_VERSION,
    description="""
## Board Champions

Recruitment marketplace connecting companies with board-level executive candidates.

### Features

* **Candidate profiles**: signup data is staged, reviewed by an admin and migrated on approval
* **Anonymity**: candidate identities stay hidden until a company unlocks the profile
* **Credits**: every unlock costs credits, charged at most once per company and profile
* **Search**: filter active candidate profiles

### Authentication

Most endpoints require authentication. To authenticate:

1. Register a new user at `/api/v1/auth/register`
2. Login at `/api/v1/auth/login` to get an access token
3. Include the token in the `Authorization` header: `Bearer <token>`

### Responses

Every response uses the envelope `{{"success": bool, "data": ..., "error": code, "message": text}}`.

### Rate Limiting

API requests are rate-limited to {rate_limit} requests per minute per IP address.

### Roles

* **candidate**: Create and submit a profile, control its anonymity
* **company**: Search profiles and spend credits to unlock them
* **admin**: Review profiles and grant credits (with explicit permissions)
    """.format(rate_limit=settings.RATE_LIMIT_PER_MINUTE),
    docs_url="/docs",
    redoc_url="/redoc",
    openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
    lifespan=lifespan,
    openapi_tags=[
        {
            "name": "Authentication",
            "description": "User registration, login, and token management"
        },
        {
            "name": "Profiles",
            "description": "Candidate profile lifecycle, views and unlocks"
        },
        {
            "name": "Credits",
            "description": "Credit balance, deductions, grants and history"
        },
        {
            "name": "Search",
            "description": "Search over active candidate profiles"
        },
    ],
)

# Add custom middleware (last added is outermost)
app.add_middleware(
    RateLimitMiddleware,
    requests_per_minute=settings.RATE_LIMIT_PER_MINUTE,
    exempt_paths=["/", "/health", "/docs", "/redoc", f"{settings.API_V1_PREFIX}/openapi.json"],
)
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)

# Configure CORS
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def error_response(
    request: Request,
    status_code: int,
    code: str,
    message: str,
    details: dict = None
) -> JSONResponse:
    """Build the failure envelope"""
    content = {
        "success": False,
        "error": code,
        "message": message,
        "request_id": getattr(request.state, "request_id", None),
    }
    if details:
        content["details"] = jsonable_encoder(details)
    return JSONResponse(status_code=status_code, content=content)


# Exception handlers
@app.exception_handler(BoardChampionsException)
async def board_champions_exception_handler(request: Request, exc: BoardChampionsException):
    """Handle application exceptions"""
    request_id = getattr(request.state, "request_id", "unknown")

    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application exception: {exc.message}",
        extra={
            "request_id": request_id,
            "status_code": exc.status_code,
            "code": exc.code,
        }
    )

    return error_response(request, exc.status_code, exc.code, exc.message, exc.details)


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors"""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.warning(
        f"Validation error: {exc.errors()}",
        extra={"request_id": request_id}
    )

    errors = [
        {"loc": list(error.get("loc", ())), "msg": error.get("msg"), "type": error.get("type")}
        for error in exc.errors()
    ]
    return error_response(
        request,
        status.HTTP_400_BAD_REQUEST,
        "invalid_input",
        "Request validation failed",
        {"errors": errors},
    )


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    """Handle framework HTTP errors (unknown routes, wrong methods)"""
    code = HTTP_ERROR_CODES.get(exc.status_code, "http_error")
    return error_response(request, exc.status_code, code, str(exc.detail))


@app.exception_handler(IntegrityError)
async def integrity_error_handler(request: Request, exc: IntegrityError):
    """Handle database integrity errors"""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        f"Database integrity error: {type(exc).__name__}",
        extra={"request_id": request_id},
        exc_info=True
    )

    return error_response(
        request,
        status.HTTP_409_CONFLICT,
        "conflict",
        "The operation violates a database constraint",
    )


@app.exception_handler(SQLAlchemyError)
async def store_error_handler(request: Request, exc: SQLAlchemyError):
    """Handle unexpected data store failures without leaking driver text"""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        f"Data store error: {type(exc).__name__}",
        extra={"request_id": request_id},
        exc_info=True
    )

    unavailable = StoreUnavailableException()
    return error_response(request, unavailable.status_code, unavailable.code, unavailable.message)


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other exceptions"""
    request_id = getattr(request.state, "request_id", "unknown")

    logger.error(
        f"Unhandled exception: {type(exc).__name__}",
        extra={"request_id": request_id},
        exc_info=True
    )

    return error_response(
        request,
        status.HTTP_500_INTERNAL_SERVER_ERROR,
        "internal_error",
        "An unexpected error occurred",
    )


@app.get("/")
async def root():
    """Root endpoint"""
    return {
        "name": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "status": "running",
    }


@app.get("/health")
async def health_check():
    """Health check endpoint"""
    return {"status": "healthy"}


# API routers
from backend.app.api import auth, profiles, credits, search  # noqa: E402

app.include_router(auth.router, prefix=f"{settings.API_V1_PREFIX}/auth", tags=["Authentication"])
app.include_router(profiles.router, prefix=f"{settings.API_V1_PREFIX}/profile", tags=["Profiles"])
app.include_router(credits.router, prefix=f"{settings.API_V1_PREFIX}/credits", tags=["Credits"])
app.include_router(search.router, prefix=f"{settings.API_V1_PREFIX}/search", tags=["Search"])
