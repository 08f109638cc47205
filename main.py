import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

import config
from exceptions import (
    EphemerisAPIException,
    EphemerisCalculationError,
    InvalidDateRangeError,
)
from routers import router

logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

app = FastAPI(
    title="Ephemeris Calendar API",
    description="Simplified planetary positions and aspect calendar",
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

# CORS Middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# Exception Handlers
@app.exception_handler(InvalidDateRangeError)
async def invalid_date_range_handler(request: Request, exc: InvalidDateRangeError):
    """Handle date ranges the service refuses to calculate."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "InvalidDateRangeError",
            "message": str(exc),
            "detail": None
        }
    )


@app.exception_handler(EphemerisCalculationError)
async def calculation_error_handler(request: Request, exc: EphemerisCalculationError):
    """Handle ephemeris calculation errors."""
    logger.error("Calculation failed on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": "EphemerisCalculationError",
            "message": str(exc),
            "detail": None
        }
    )


@app.exception_handler(EphemerisAPIException)
async def api_exception_handler(request: Request, exc: EphemerisAPIException):
    """Handle any other service error."""
    logger.error("Service error on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=500,
        content={
            "error": type(exc).__name__,
            "message": str(exc),
            "detail": None
        }
    )


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """Handle Pydantic validation errors."""
    return JSONResponse(
        status_code=422,
        content={
            "error": "ValidationError",
            "message": "Request validation failed",
            "detail": jsonable_errors(exc)
        }
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle all other unexpected exceptions."""
    logger.exception("Unhandled error on %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "error": "InternalServerError",
            "message": "An unexpected error occurred",
            "detail": None
        }
    )


def jsonable_errors(exc: RequestValidationError) -> list:
    # ctx may carry the raw ValueError raised by a validator
    errors = []
    for error in exc.errors():
        error = dict(error)
        if "ctx" in error:
            error["ctx"] = {k: str(v) for k, v in error["ctx"].items()}
        errors.append(error)
    return errors


# Include API router
app.include_router(router, prefix="/api/v1", tags=["API"])


# Root endpoints
@app.get("/")
async def root():
    """Root endpoint with API information."""
    return {
        "message": "Ephemeris Calendar API",
        "version": "1.0.0",
        "docs": "/docs",
        "redoc": "/redoc"
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "ok"}
