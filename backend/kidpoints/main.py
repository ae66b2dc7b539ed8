"""FastAPI application entry point.

This module wires together the API routers, configures middleware and
startup tasks, and exposes the ASGI application object used by the
server.  Domain errors raised by the service layer are turned into HTTP
responses here, in one place.
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from kidpoints.routes import (
    auth,
    users,
    children,
    points,
    activity_requests,
)
from kidpoints.database import create_db_and_tables
from kidpoints.exceptions import KidPointsError, PersistenceError

# Basic logging configuration.  The log level can be controlled with an
# environment variable so deployments can adjust verbosity without code
# changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

app = FastAPI(title="Kid Points API")

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Create any missing tables."""

    await create_db_and_tables()


app.include_router(auth.router)
app.include_router(users.router)
app.include_router(children.router)
app.include_router(points.router)
app.include_router(activity_requests.router)


@app.get("/")
async def read_root():
    return {"message": "Welcome to Kid Points API"}


@app.exception_handler(KidPointsError)
async def kidpoints_exception_handler(request: Request, exc: KidPointsError):
    """Translate service errors into status codes."""
    if isinstance(exc, PersistenceError):
        # Store failures are never described to the caller.
        logger.error("Persistence failure during %s: %s", request.url.path, exc)
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "code": "internal_server_error",
                "message": "An unexpected error occurred",
            },
        )
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": {"code": exc.code, "message": exc.message}},
    )


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    """Malformed or missing body fields are a 400, not FastAPI's default 422."""
    return JSONResponse(
        status_code=400,
        content={
            "detail": {
                "code": "validation_error",
                "message": "Missing or invalid fields",
                "errors": jsonable_encoder(exc.errors()),
            }
        },
    )


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Catch-all exception handler that logs the stack trace once."""
    logger.exception("Unhandled error during request %s", request.url.path)
    return JSONResponse(
        status_code=500,
        content={
            "code": "internal_server_error",
            "message": "An unexpected error occurred",
        },
    )
