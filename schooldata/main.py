import logging
from contextlib import asynccontextmanager
from typing import Any, Dict

from dotenv import load_dotenv

# Load .env file before importing app modules
load_dotenv(override=True)

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.exc import (
    IntegrityError,
    OperationalError,
    SQLAlchemyError,
)

from schooldata.api.v1.router import api_router
from schooldata.config import settings
from schooldata.exceptions import SchoolDataException, extract_sql_error_message
from schooldata.middleware.auth import setup_auth_middleware
from schooldata.utils.logger import configure_logger, get_logger

configure_logger(logging.DEBUG if settings.ENVIRONMENT == "local" else logging.INFO)
logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Lifespan context manager for FastAPI application."""
    logger.info(
        "Starting up FastAPI application",
        environment=settings.ENVIRONMENT,
        database=settings.POSTGRES_DB,
    )
    try:
        yield
    finally:
        logger.info("Shutting down FastAPI application")


app = FastAPI(
    title=settings.PROJECT_NAME,
    openapi_url=f"{settings.API_PREFIX}/openapi.json",
    lifespan=lifespan,
)


def custom_openapi():
    if app.openapi_schema:
        return app.openapi_schema

    from fastapi.openapi.utils import get_openapi

    openapi_schema = get_openapi(
        title=app.title,
        version="1.0.0",
        description="SchoolData API - school- and academic-year-scoped records",
        routes=app.routes,
    )

    openapi_schema.setdefault("components", {})["securitySchemes"] = {
        "BearerAuth": {
            "type": "http",
            "scheme": "bearer",
            "bearerFormat": "JWT",
            "description": "Enter JWT token (without 'Bearer ' prefix)",
        }
    }

    public_endpoints = {"/auth/login", "/auth/logout", "/health"}

    for path, path_data in openapi_schema["paths"].items():
        for method, method_data in path_data.items():
            if method.upper() == "OPTIONS":
                continue
            if not any(path.endswith(endpoint) for endpoint in public_endpoints):
                method_data["security"] = [{"BearerAuth": []}]

    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi


def _error_response(
    status_code: int, code: str, message: Any, details: Dict[str, Any] | None = None
) -> JSONResponse:
    content: Dict[str, Any] = {"error": {"code": code, "message": message}}
    if details:
        content["error"]["details"] = details
    return JSONResponse(status_code=status_code, content=content)


# Exception handlers
@app.exception_handler(SchoolDataException)
async def schooldata_exception_handler(
    request: Request, exc: SchoolDataException
) -> JSONResponse:
    """Handle custom SchoolData application exceptions."""
    log = logger.warning if exc.status_code < 500 else logger.error
    log(
        "SchoolData application error",
        error_code=exc.error_code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
        path=request.url.path,
        method=request.method,
    )

    # Query text and driver errors stay out of production responses
    details = exc.details if settings.ENVIRONMENT != "prod" else None
    return _error_response(exc.status_code, exc.error_code, exc.message, details)


@app.exception_handler(RequestValidationError)
@app.exception_handler(PydanticValidationError)
async def pydantic_validation_exception_handler(
    request: Request, exc: PydanticValidationError
) -> JSONResponse:
    """Handle request body and Pydantic validation errors."""
    logger.warning(
        "Validation error",
        errors=exc.errors(),
        path=request.url.path,
        method=request.method,
    )

    formatted_errors = []
    for error in exc.errors():
        field_path = " -> ".join(str(loc) for loc in error["loc"])
        formatted_errors.append(
            {
                "field": field_path,
                "message": error["msg"],
                "type": error["type"],
            }
        )

    return _error_response(
        422,
        "VALIDATION_ERROR",
        "Input validation failed",
        {"validation_errors": formatted_errors},
    )


@app.exception_handler(IntegrityError)
async def integrity_error_handler(
    request: Request, exc: IntegrityError
) -> JSONResponse:
    """Handle database integrity errors (unique constraints, foreign keys, etc.)."""
    error_msg = str(exc.orig) if exc.orig else str(exc)
    logger.error(
        "Database integrity error",
        error=error_msg,
        path=request.url.path,
        method=request.method,
    )

    if "unique constraint" in error_msg.lower():
        message = "A record with this information already exists"
    elif "foreign key constraint" in error_msg.lower():
        message = "Referenced record does not exist"
    elif "not null constraint" in error_msg.lower():
        message = "Required field is missing"
    else:
        message = "Data integrity error"

    return _error_response(400, "INTEGRITY_ERROR", message)


@app.exception_handler(OperationalError)
async def operational_error_handler(
    request: Request, exc: OperationalError
) -> JSONResponse:
    """Handle database operational errors (connection issues, etc.)."""
    logger.error(
        "Database operational error",
        error=str(exc.orig) if exc.orig else str(exc),
        path=request.url.path,
        method=request.method,
    )

    return _error_response(
        503,
        "DATABASE_UNAVAILABLE",
        "Database is temporarily unavailable. Please try again later.",
    )


@app.exception_handler(SQLAlchemyError)
async def sqlalchemy_exception_handler(
    request: Request, exc: SQLAlchemyError
) -> JSONResponse:
    """Handle other SQLAlchemy database errors with better error extraction."""
    user_message, technical_details = extract_sql_error_message(exc)

    logger.exception(
        "Database error",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
        technical_details=technical_details,
    )

    details = None
    if settings.ENVIRONMENT == "local":
        details = {
            "technical_details": technical_details,
            "exception_type": type(exc).__name__,
        }
    return _error_response(500, "DATABASE_ERROR", user_message, details)


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Handle FastAPI HTTPExceptions."""
    logger.error(
        "HTTP error",
        status_code=exc.status_code,
        detail=exc.detail,
        path=request.url.path,
        method=request.method,
    )

    return _error_response(exc.status_code, "HTTP_ERROR", exc.detail)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Global exception handler for all unhandled exceptions."""
    logger.exception(
        "Unhandled exception",
        error=str(exc),
        error_type=type(exc).__name__,
        path=request.url.path,
        method=request.method,
    )

    return _error_response(
        500,
        "INTERNAL_ERROR",
        "An unexpected error occurred. Please try again later.",
    )


# Set CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Setup auth middleware (must be after CORS middleware)
setup_auth_middleware(app)

app.include_router(api_router, prefix=settings.API_PREFIX)
