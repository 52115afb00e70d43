"""
Main FastAPI application.
"""
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.api.v1.api import api_router
from app.core.config import settings
from app.core.db_error_handling import DatabaseOperationError
from app.core.error_responses import ErrorMessages, assessment_error_status
from app.core.exceptions import AssessmentError
from app.core.logging_config import setup_logging
from app.middleware import RequestLoggingMiddleware
from app.models import init_db

# Initialize logging configuration at startup
setup_logging()

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """
    Application lifespan event handler.

    Creates missing tables on startup.
    """
    init_db()
    logger.info(f"{settings.APP_NAME} {settings.APP_VERSION} started (env={settings.ENV})")

    yield

    logger.info("Application shutting down")


# OpenAPI tags metadata
tags_metadata = [
    {
        "name": "health",
        "description": "Health check endpoints for monitoring application status",
    },
    {
        "name": "student",
        "description": "Assigned tests, timed attempts, results and practice sessions",
    },
]


def create_application() -> FastAPI:
    """
    Create and configure the FastAPI application.
    """
    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        lifespan=lifespan,
        description=(
            "**LMS Assessment API** - test attempts, scoring and practice mode.\n\n"
            "This API provides:\n"
            "* Assigned test listing and eligibility\n"
            "* Resumable, time-boxed test attempts graded exactly once\n"
            "* Results with optional answer and explanation review\n"
            "* Ungraded practice sessions with immediate feedback\n\n"
            "## Caller identity\n\n"
            f"Student endpoints expect the `{settings.STUDENT_ID_HEADER}` header, "
            "set by the upstream gateway after authentication."
        ),
        docs_url=f"{settings.API_V1_PREFIX}/docs",
        redoc_url=f"{settings.API_V1_PREFIX}/redoc",
        openapi_url=f"{settings.API_V1_PREFIX}/openapi.json",
        openapi_tags=tags_metadata,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", settings.STUDENT_ID_HEADER, "X-Request-ID"],
    )

    # Configure Request Logging
    app.add_middleware(RequestLoggingMiddleware)

    # Include API router
    app.include_router(api_router, prefix=settings.API_V1_PREFIX)

    @app.exception_handler(AssessmentError)
    async def assessment_exception_handler(request: Request, exc: AssessmentError):
        """
        Translate typed assessment errors into HTTP responses.
        """
        status_code = assessment_error_status(exc)
        logger.info(
            f"Assessment request refused: {exc.code} ({status_code})",
            extra={"method": request.method, "path": str(request.url.path)},
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.message, "code": exc.code},
        )

    @app.exception_handler(DatabaseOperationError)
    async def database_exception_handler(
        request: Request, exc: DatabaseOperationError
    ):
        """
        Report database failures without leaking driver details.

        The failing operation has already rolled back and logged the cause.
        """
        error_id = str(uuid.uuid4())
        logger.error(
            f"Database operation failed [error_id={error_id}]: {exc.operation_name}",
            extra={"method": request.method, "path": str(request.url.path)},
        )
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"detail": ErrorMessages.INTERNAL_ERROR, "error_id": error_id},
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request: Request, exc: Exception):
        """
        Handle unexpected exceptions.

        Generates a unique error_id (UUID) for each exception so a report
        can be matched to the logged stack trace.
        """
        error_id = str(uuid.uuid4())

        logger.exception(
            f"Unhandled exception [error_id={error_id}]: {exc}",
            extra={"method": request.method, "path": str(request.url.path)},
        )

        # Return error response with tracking ID (don't leak internal details)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": ErrorMessages.INTERNAL_ERROR,
                "error_id": error_id,
            },
        )

    return app


app = create_application()


@app.get("/")
async def root():
    """
    Root endpoint.
    """
    return {
        "message": f"Welcome to {settings.APP_NAME}",
        "version": settings.APP_VERSION,
        "docs": f"{settings.API_V1_PREFIX}/docs",
    }


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "app.main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_config=None,
    )
