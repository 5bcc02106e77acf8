"""Axiom API logging middleware.

Captures request/response data and sends structured logs to Axiom.
Logs: API endpoint, method, data (body/params), status code, duration and
error message. Sensitive fields (password, token, secret, card, cvc,
signature) are masked. Payment webhook bodies are never logged.
"""

import json
import logging
import re
import time
from typing import Any

from axiom_py import Client as AxiomClient
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.config import settings

logger = logging.getLogger(__name__)

# Fields to mask in request bodies and query params
_SENSITIVE_KEYS = re.compile(
    r"(password|passwd|secret|token|authorization|api_key|apikey|credential|card|cvc|cvv|signature)",
    re.IGNORECASE,
)

# Paths excluded from logging
_SKIP_PATHS = {"/health", "/docs", "/redoc", "/openapi.json"}

# Paths whose body is never logged
_NO_BODY_PATHS = {"/api/payments/webhook"}


def mask_sensitive(data: Any, depth: int = 0) -> Any:
    """Recursively mask sensitive fields in dicts/lists."""
    if depth > 5:
        return "..."
    if isinstance(data, dict):
        return {
            k: "***" if _SENSITIVE_KEYS.search(str(k)) else mask_sensitive(v, depth + 1)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [mask_sensitive(item, depth + 1) for item in data[:20]]
    return data


def _truncate(value: Any, max_len: int = 2000) -> Any:
    """Truncate large values to keep log events small."""
    if isinstance(value, str) and len(value) > max_len:
        return value[:max_len] + "...(truncated)"
    return value


def _error_message(body: bytes) -> str:
    """``message`` of an error envelope, or the raw body."""
    try:
        data = json.loads(body)
    except (json.JSONDecodeError, UnicodeDecodeError):
        return body.decode("utf-8", errors="replace")[:500]
    if isinstance(data, dict):
        message = data.get("message") or data.get("detail") or str(data)
    else:
        message = str(data)
    message = str(message)
    return message[:500] + "..." if len(message) > 500 else message


class AxiomLoggingMiddleware(BaseHTTPMiddleware):
    """Middleware that logs all API requests and responses to Axiom.

    Captures: method, path, query params, request body, status code,
    duration, error message. Without Axiom settings it passes through.
    """

    def __init__(self, app: Any) -> None:
        super().__init__(app)
        self._client: AxiomClient | None = None
        self._dataset: str = settings.AXIOM_DATASET

        if settings.AXIOM_API_TOKEN and settings.AXIOM_DATASET:
            self._client = AxiomClient(token=settings.AXIOM_API_TOKEN)

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in _SKIP_PATHS or not self._client:
            return await call_next(request)

        start_time = time.time()

        method = request.method
        path = request.url.path
        query_params = dict(request.query_params) if request.query_params else None

        # Read request body (only for methods with a body)
        request_body: Any = None
        if method in ("POST", "PUT", "PATCH") and path not in _NO_BODY_PATHS:
            try:
                body_bytes = await request.body()
                if body_bytes:
                    request_body = _truncate(mask_sensitive(json.loads(body_bytes)))
            except (json.JSONDecodeError, UnicodeDecodeError):
                request_body = "(non-json body)"

        error_detail: str | None = None
        status_code: int = 500
        try:
            response = await call_next(request)
            status_code = response.status_code

            # Extract the error message from error responses
            if status_code >= 400:
                resp_body = b""
                async for chunk in response.body_iterator:
                    resp_body += chunk if isinstance(chunk, bytes) else chunk.encode("utf-8")
                error_detail = _error_message(resp_body)

                # Re-wrap the consumed body
                response = Response(
                    content=resp_body,
                    status_code=status_code,
                    headers=dict(response.headers),
                    media_type=response.media_type,
                )
        except Exception as exc:
            error_detail = f"{type(exc).__name__}: {str(exc)[:300]}"
            raise
        finally:
            log_event: dict[str, Any] = {
                "app": settings.APP_NAME,
                "method": method,
                "path": path,
                "status_code": status_code,
                "duration_ms": round((time.time() - start_time) * 1000, 2),
            }
            if query_params:
                log_event["query_params"] = mask_sensitive(query_params)
            if request.path_params:
                log_event["path_params"] = dict(request.path_params)
            if request_body is not None:
                log_event["request_body"] = request_body
            if error_detail:
                log_event["error"] = error_detail

            # A logging failure never breaks the request
            try:
                self._client.ingest_events(self._dataset, [log_event])
            except Exception:
                logger.warning("Axiom ingest failed for %s %s", method, path, exc_info=True)

        return response
