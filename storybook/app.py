"""
FastAPI application entry point for the storybook backend.
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, PlainTextResponse

from storybook.config import get_settings
from storybook.errors import StorybookError
from storybook.routes import router

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


async def handle_storybook_error(request: Request, exc: StorybookError) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error(
            "%s %s failed: %s", request.method, request.url.path, exc.message,
            exc_info=exc,
        )
    else:
        logger.warning(
            "%s %s rejected: %s", request.method, request.url.path, exc.message
        )
    return JSONResponse(status_code=exc.status_code, content=exc.as_dict())


def create_app() -> FastAPI:
    settings = get_settings()
    app = FastAPI(title="Storybook Backend (FastAPI)", version="0.1.0")
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    app.add_exception_handler(StorybookError, handle_storybook_error)
    app.include_router(router, prefix=settings.api_prefix)

    @app.get("/", response_class=PlainTextResponse)
    def health():
        return "Backend is running"

    return app


app = create_app()
