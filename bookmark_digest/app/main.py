from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable
from contextlib import asynccontextmanager
from time import perf_counter
from uuid import uuid4

from fastapi import FastAPI, Request, Response
from structlog.contextvars import bound_contextvars

from bookmark_digest.app.api.routes import router
from bookmark_digest.app.dependencies import get_settings, get_telemetry
from bookmark_digest.app.logging_config import configure_application_logging

REQUEST_ID_HEADER = "X-Request-ID"


def health_check() -> dict[str, str]:
    return {"status": "ok"}


@asynccontextmanager
async def app_lifespan(_: FastAPI) -> AsyncIterator[None]:
    configure_application_logging(get_settings())
    yield


def _incoming_request_id(request: Request) -> str:
    supplied = request.headers.get(REQUEST_ID_HEADER, "").strip()
    return supplied or uuid4().hex


def _elapsed_ms(started_at: float) -> int:
    return int((perf_counter() - started_at) * 1000)


async def tag_request(
    request: Request,
    call_next: Callable[[Request], Awaitable[Response]],
) -> Response:
    """Give every request an id, echo it back, and report how the request ended."""
    telemetry = get_telemetry()
    route = {
        "request_id": _incoming_request_id(request),
        "method": request.method,
        "path": request.url.path,
    }
    started_at = perf_counter()

    with bound_contextvars(**{f"http_{key}": value for key, value in route.items()}):
        telemetry.emit("http.request.start", **route)
        try:
            response = await call_next(request)
        except Exception as exc:
            telemetry.emit(
                "http.request.error",
                **route,
                duration_ms=_elapsed_ms(started_at),
                error_type=type(exc).__name__,
            )
            raise
        response.headers[REQUEST_ID_HEADER] = route["request_id"]
        telemetry.emit(
            "http.request.finish",
            **route,
            duration_ms=_elapsed_ms(started_at),
            status_code=response.status_code,
        )
    return response


def create_app() -> FastAPI:
    app = FastAPI(title="Bookmark Digest API", version="0.1.0", lifespan=app_lifespan)
    app.middleware("http")(tag_request)
    app.include_router(router)
    app.add_api_route(
        "/health",
        health_check,
        methods=["GET"],
        tags=["system"],
        operation_id="health_check",
    )
    return app


app = create_app()
