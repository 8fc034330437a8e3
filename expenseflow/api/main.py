import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from expenseflow import __version__
from expenseflow.api.middleware.identity import IdentityMiddleware
from expenseflow.api.routers import approvals, expenses
from expenseflow.api.schemas.common import ErrorResponse
from expenseflow.common.logger import configure_logging
from expenseflow.core.config import get_settings
from expenseflow.core.errors import (
    ApprovalError,
    ConcurrencyConflict,
    NotFoundError,
    PermissionDeniedError,
    StateError,
    ValidationError,
)

settings = get_settings()

configure_logging(settings)
logger = logging.getLogger(__name__)

# First match wins, so subclasses go before ApprovalError
ERROR_STATUS = [
    (ValidationError, 422),
    (NotFoundError, 404),
    (StateError, 409),
    (PermissionDeniedError, 403),
    (ConcurrencyConflict, 503),
]

app = FastAPI(
    title=settings.app_name,
    description="Multi-step expense claim approval engine",
    version=__version__,
    docs_url="/docs" if settings.debug else None,
    redoc_url="/redoc" if settings.debug else None,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"] if settings.debug else settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.add_middleware(IdentityMiddleware)

# Include routers
app.include_router(expenses.router, prefix="/api")
app.include_router(approvals.router, prefix="/api")


@app.exception_handler(ApprovalError)
async def approval_error_handler(request: Request, exc: ApprovalError):
    status_code = 400
    for error_type, code in ERROR_STATUS:
        if isinstance(exc, error_type):
            status_code = code
            break

    if status_code >= 500:
        logger.error(f"{request.method} {request.url.path} failed: {exc.message}")

    return JSONResponse(status_code=status_code, content=ErrorResponse.from_error(exc).model_dump())


@app.get("/health")
async def health_check():
    return {"status": "healthy", "version": __version__}


@app.get("/")
async def root():
    return {
        "name": settings.app_name,
        "version": __version__,
        "docs": "/docs" if settings.debug else None,
    }
