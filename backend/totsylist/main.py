import time
import uuid
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from totsylist.api.routes import generate_list, health
from totsylist.config import settings
from totsylist.errors import ConfigurationError
from totsylist.logging import configure_logging
from totsylist.models.contracts import ErrorResponse
from totsylist.utils.gemini_client import GenerationClient

configure_logging()

logger = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the shared Gemini client once.

    A missing API key does not stop the process: it is logged here and every
    generate-list request answers with the configuration fallback.
    """
    try:
        app.state.generation_client = GenerationClient.from_settings(settings)
        logger.info("generation_client_ready", model=settings.gemini_model)
    except ConfigurationError as exc:
        app.state.generation_client = None
        logger.error("generation_client_unconfigured", error=exc.message)
    yield
    app.state.generation_client = None


app = FastAPI(
    title="TotsyList API",
    version="0.1.0",
    docs_url="/docs",
    redoc_url=None,
    lifespan=lifespan,
)

if settings.cors_origin_list:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )


def _request_id(request: Request) -> str:
    return getattr(request.state, "request_id", request.headers.get("X-Request-ID", ""))


@app.middleware("http")
async def request_id_middleware(request: Request, call_next):
    """Attach a request ID to every request and log one access line.

    The ID is bound into structlog context vars (so it appears in every log
    entry for the request) and echoed in the X-Request-ID response header.
    """
    request_id = request.headers.get("X-Request-ID") or str(uuid.uuid4())
    request.state.request_id = request_id
    structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(request_id=request_id)
    started = time.perf_counter()
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    logger.info(
        "request_completed",
        method=request.method,
        path=request.url.path,
        status=response.status_code,
        duration_ms=round((time.perf_counter() - started) * 1000, 1),
    )
    return response


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(
    request: Request,
    exc: RequestValidationError,
) -> JSONResponse:
    """Return ErrorResponse JSON for request validation errors.

    FastAPI's default 422 body is {"detail": [...]}; clients get the same
    error shape as every other failure instead.
    """
    messages = []
    for err in exc.errors():
        loc = " → ".join(str(part) for part in err["loc"])
        messages.append(f"{loc}: {err['msg']}")
    response = JSONResponse(
        status_code=422,
        content=ErrorResponse(
            error="validation_error",
            message="; ".join(messages),
            retryable=False,
        ).model_dump(),
    )
    response.headers["X-Request-ID"] = _request_id(request)
    return response


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return ErrorResponse JSON for unhandled exceptions instead of bare 500s."""
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        method=request.method,
        error_type=type(exc).__name__,
        exc_info=exc,
    )
    response = JSONResponse(
        status_code=500,
        content=ErrorResponse(
            error="internal_error",
            message="An unexpected error occurred",
            retryable=True,
        ).model_dump(),
    )
    response.headers["X-Request-ID"] = _request_id(request) or str(uuid.uuid4())
    return response


app.include_router(health.router)
app.include_router(generate_list.router)
