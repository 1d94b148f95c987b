"""HTTP dispatcher for hairlab.

Endpoint responsibilities:
- ``GET /health``: liveness probe.
- ``POST /api/llm/suggestions``: validate, resolve provider/model, suggest.
- ``POST /api/llm/edit``: validate, resolve provider/model, edit.
- ``OPTIONS`` on any path: 204 with CORS headers only.

Request lifecycle: Received -> Validated -> Dispatched -> Succeeded | Failed.
Bodies are parsed and validated before any provider is touched. Typed errors
become ``{"message": ...}`` with their status code; anything else is logged
with its traceback and reported as a generic 500. Every response carries the
configured CORS headers.
"""

from __future__ import annotations

import json
from typing import Any

import structlog
from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from hairlab.api.schemas import EditRequest, SuggestionsRequest, parse_request
from hairlab.config import DEFAULT_CORS_ORIGIN, load_settings
from hairlab.errors import HairlabError, InternalError, MalformedRequest, NotFound
from hairlab.observability.logging import get_logger
from hairlab.providers.registry import ProviderRegistry

log = get_logger(__name__)

ALLOWED_METHODS = "GET,POST,OPTIONS"
ALLOWED_HEADERS = "Content-Type"


class CORSHeadersMiddleware(BaseHTTPMiddleware):
    """Answer preflights and stamp CORS headers on every response.

    Also the last line of defense: exceptions that escape the routes become
    a generic 500 here so the response still carries the CORS headers.
    """

    def __init__(self, app: Any, origin: str = DEFAULT_CORS_ORIGIN) -> None:
        super().__init__(app)
        self._headers = {
            "Access-Control-Allow-Origin": origin,
            "Access-Control-Allow-Methods": ALLOWED_METHODS,
            "Access-Control-Allow-Headers": ALLOWED_HEADERS,
        }

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if request.method == "OPTIONS":
            response = Response(status_code=204)
        else:
            try:
                response = await call_next(request)
            except Exception:
                log.exception(
                    "request_unhandled_error", method=request.method, path=request.url.path
                )
                error = InternalError()
                response = JSONResponse(error.to_dict(), status_code=error.status_code)
        response.headers.update(self._headers)
        return response


async def read_json_object(request: Request) -> dict[str, Any]:
    """Read and decode the request body as a JSON object.

    Raises:
        MalformedRequest: If the body is empty, not JSON, or not an object.
    """
    raw = await request.body()
    if not raw.strip():
        raise MalformedRequest("The request body is empty.")
    try:
        body = json.loads(raw)
    except (UnicodeDecodeError, ValueError) as e:
        log.warning("request_body_unparsable", path=request.url.path, error=str(e))
        raise MalformedRequest("Could not parse the request body as JSON.") from e
    if not isinstance(body, dict):
        raise MalformedRequest("The request body must be a JSON object.")
    return body


def _bind_request_context(**context: str) -> None:
    """Bind request fields for every later log line, error handlers included.

    A call carrying ``route`` starts a new request and drops stale fields.
    """
    if "route" in context:
        structlog.contextvars.clear_contextvars()
    structlog.contextvars.bind_contextvars(**context)


async def _handle_typed_error(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, HairlabError)
    log_method = log.warning if exc.status_code < 500 else log.error
    log_method(
        "request_failed",
        path=request.url.path,
        status_code=exc.status_code,
        error_type=type(exc).__name__,
        error=exc.message,
    )
    return JSONResponse(exc.to_dict(), status_code=exc.status_code)


async def _handle_http_exception(request: Request, exc: Exception) -> JSONResponse:
    """Render routing errors; a wrong method on a known path counts as unknown."""
    assert isinstance(exc, StarletteHTTPException)
    if exc.status_code in (404, 405):
        error = NotFound("Route not found.")
        return JSONResponse(error.to_dict(), status_code=error.status_code)
    return JSONResponse({"message": str(exc.detail)}, status_code=exc.status_code)


def create_app(registry: ProviderRegistry, *, cors_origin: str = DEFAULT_CORS_ORIGIN) -> FastAPI:
    """Build the dispatcher around an already-activated registry.

    Args:
        registry: Active providers; injected so tests can supply fakes.
        cors_origin: Value of ``Access-Control-Allow-Origin``.

    Returns:
        Configured FastAPI application.
    """
    app = FastAPI(title="hairlab", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.registry = registry

    app.add_middleware(CORSHeadersMiddleware, origin=cors_origin)
    app.add_exception_handler(HairlabError, _handle_typed_error)
    app.add_exception_handler(StarletteHTTPException, _handle_http_exception)

    @app.get("/health")
    async def health() -> dict[str, str]:
        return {"status": "ok"}

    @app.post("/api/llm/suggestions")
    async def suggestions(request: Request) -> dict[str, str]:
        _bind_request_context(route="suggestions")
        body = await read_json_object(request)
        payload = parse_request(SuggestionsRequest, body)
        resolution = registry.resolve(payload.provider, payload.model, "suggestions")
        _bind_request_context(provider=resolution.provider_name, model=resolution.model)

        log.info("request_dispatched")
        text = await resolution.provider.suggest(payload.to_payload(), resolution.model)
        log.info("request_succeeded", length=len(text))
        return {"suggestions": text}

    @app.post("/api/llm/edit")
    async def edit(request: Request) -> dict[str, str | None]:
        _bind_request_context(route="edit")
        body = await read_json_object(request)
        payload = parse_request(EditRequest, body)
        reference = payload.reference_image.to_payload() if payload.reference_image else None
        resolution = registry.resolve(payload.provider, payload.model, "image")
        _bind_request_context(provider=resolution.provider_name, model=resolution.model)

        log.info("request_dispatched", has_reference=reference is not None)
        result = await resolution.provider.edit(
            payload.to_payload(), payload.prompt, reference, resolution.model
        )
        log.info("request_succeeded", has_image=result.image is not None)
        return result.to_dict()

    return app


def build_app() -> FastAPI:
    """Application factory for ``uvicorn --factory hairlab.api.app:build_app``.

    Raises:
        ConfigurationError: If the active provider's credential is missing.
    """
    load_dotenv()
    settings = load_settings()
    registry = ProviderRegistry.from_settings(settings)
    return create_app(registry, cors_origin=settings.cors_origin)
