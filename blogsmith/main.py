from __future__ import annotations

import logging
from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from datetime import UTC, datetime
from time import perf_counter
from typing import Any
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from structlog.contextvars import bind_contextvars, reset_contextvars

from blogsmith.api.routes import API_VERSION, router
from blogsmith.dependencies import get_database, get_settings, get_telemetry
from blogsmith.logging_config import configure_application_logging
from blogsmith.repositories.article_repository import ArticleNotFoundError, DuplicateSlugError

LOGGER = logging.getLogger("blogsmith.api")


def health_check() -> dict[str, Any]:
    return {
        "success": True,
        "status": "ok",
        "message": "blogsmith API is running",
        "timestamp": datetime.now(UTC).isoformat(),
    }


def root() -> dict[str, Any]:
    return {
        "success": True,
        "message": "blogsmith API",
        "version": API_VERSION,
        "endpoints": {"articles": "/api/articles", "scrape": "/api/scrape"},
    }


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    get_database()
    yield


def _error_response(status_code: int, message: str, *, error: str | None = None) -> JSONResponse:
    content: dict[str, Any] = {"success": False, "message": message}
    if error is not None:
        content["error"] = error
    return JSONResponse(status_code=status_code, content=content)


async def _duplicate_slug_handler(_: Request, exc: Exception) -> JSONResponse:
    return _error_response(409, str(exc))


async def _not_found_handler(_: Request, exc: Exception) -> JSONResponse:
    return _error_response(404, str(exc))


async def _bad_request_handler(_: Request, exc: Exception) -> JSONResponse:
    return _error_response(400, str(exc))


async def _validation_handler(_: Request, exc: Exception) -> JSONResponse:
    details: list[str] = []
    if isinstance(exc, RequestValidationError):
        for error in exc.errors():
            location = ".".join(str(part) for part in error.get("loc", ()) if part != "body")
            details.append(f"{location}: {error.get('msg', 'invalid value')}".strip(": "))
    message = "; ".join(details) or "Invalid request"
    return _error_response(400, message)


async def _http_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    if isinstance(exc, StarletteHTTPException):
        if exc.status_code == 404:
            return _error_response(404, f"Route {request.method} {request.url.path} not found")
        return _error_response(exc.status_code, str(exc.detail))
    return _error_response(500, "Internal server error")


async def _unhandled_handler(_: Request, exc: Exception) -> JSONResponse:
    LOGGER.error("unhandled api error error_type=%s", type(exc).__name__, exc_info=exc)
    return _error_response(500, "Internal server error", error=str(exc))


def create_app() -> FastAPI:
    app = FastAPI(title="blogsmith API", version=API_VERSION, lifespan=app_lifespan)

    async def request_context_middleware(
        request: Request,
        call_next: Callable[[Request], Awaitable[Response]],
    ) -> Response:
        telemetry = get_telemetry()
        incoming_request_id = request.headers.get("X-Request-ID")
        request_id = (
            incoming_request_id.strip()
            if isinstance(incoming_request_id, str) and incoming_request_id.strip()
            else str(uuid4())
        )
        context_tokens = bind_contextvars(
            http_request_id=request_id,
            http_method=request.method,
            http_path=request.url.path,
        )
        started_at = perf_counter()
        telemetry.emit(
            "http.request.start",
            request_id=request_id,
            method=request.method,
            path=request.url.path,
        )
        try:
            response = await call_next(request)
        except Exception as exc:
            telemetry.emit(
                "http.request.error",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=int((perf_counter() - started_at) * 1000),
                error_type=type(exc).__name__,
            )
            raise
        else:
            response.headers["X-Request-ID"] = request_id
            telemetry.emit(
                "http.request.finish",
                request_id=request_id,
                method=request.method,
                path=request.url.path,
                duration_ms=int((perf_counter() - started_at) * 1000),
                status_code=response.status_code,
            )
            return response
        finally:
            reset_contextvars(**context_tokens)

    app.middleware("http")(request_context_middleware)
    app.add_exception_handler(DuplicateSlugError, _duplicate_slug_handler)
    app.add_exception_handler(ArticleNotFoundError, _not_found_handler)
    app.add_exception_handler(ValueError, _bad_request_handler)
    app.add_exception_handler(RequestValidationError, _validation_handler)
    app.add_exception_handler(StarletteHTTPException, _http_exception_handler)
    app.add_exception_handler(Exception, _unhandled_handler)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    app.add_api_route("/", root, methods=["GET"], tags=["system"], operation_id="root")

    return app


app = create_app()
