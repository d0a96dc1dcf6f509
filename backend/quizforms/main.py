"""FastAPI application entry point.

This module wires together the API routers, configures middleware and
startup tasks, and exposes the ASGI application object used by the
server.
"""

import os
import logging
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.openapi.docs import get_swagger_ui_html
from fastapi.openapi.utils import get_openapi
from sqlalchemy.exc import SQLAlchemyError
from quizforms.routes import (
    auth,
    users,
    forms,
    submissions,
    reports,
)
from quizforms.database import create_db_and_tables

# The log level can be controlled with an environment variable so
# deployments can adjust verbosity without code changes.
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()
logging.basicConfig(level=getattr(logging, LOG_LEVEL))
logger = logging.getLogger(__name__)

APP_NAME = os.getenv("APP_NAME", "Quiz Forms")

app = FastAPI(title=APP_NAME, docs_url=None)


def custom_openapi():
    """Generate an OpenAPI schema that is aware of our `/api` proxy prefix."""

    if app.openapi_schema:
        return app.openapi_schema
    openapi_schema = get_openapi(
        title=app.title,
        version=app.version,
        description=app.description,
        routes=app.routes,
    )
    # The reverse proxy serves the API under `/api`; tell Swagger about it.
    openapi_schema["servers"] = [{"url": "/api"}]
    app.openapi_schema = openapi_schema
    return app.openapi_schema


app.openapi = custom_openapi

# CORS setup
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.on_event("startup")
async def on_startup():
    """Create any missing tables."""

    await create_db_and_tables()
    logger.info("%s API started", APP_NAME)


app.include_router(auth.router)
app.include_router(users.router)
# forms declares its fixed paths before /forms/{form_id}; keep it first
app.include_router(forms.router)
app.include_router(submissions.router)
app.include_router(reports.router)


@app.get("/docs", include_in_schema=False)
async def custom_swagger_ui_html():
    """Serve the interactive docs with the correct API prefix."""

    # Behind the `/api` proxy prefix the schema lives at /api/openapi.json.
    return get_swagger_ui_html(openapi_url="/api/openapi.json", title="API Docs")


@app.get("/")
async def read_root():
    return {"message": f"Welcome to {APP_NAME} API"}


@app.exception_handler(SQLAlchemyError)
async def storage_exception_handler(request: Request, exc: SQLAlchemyError):
    """Storage failures on explicit saves surface as a retryable error."""
    logger.exception("Storage error during request %s", request.url.path)
    return JSONResponse(
        status_code=503,
        content={"code": "storage_error", "message": "Save failed, try again"},
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
