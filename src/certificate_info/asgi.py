"""
FastAPI + Uvicorn ASGI application.

Routes:
  GET  /                  → "Welcome!"
  GET  /health            → liveness check
  POST /certificate       → PKCS#12 bytes in the body → certificate list
  POST /certificate/url   → URL in the body → download → certificate list
  POST /profile           → signed profile bytes in the body → profile tree
  POST /profile/url       → URL in the body → download → profile tree

Request bodies are read chunk by chunk and abandoned as soon as they pass the
configured limit, so an oversized upload is never buffered whole. Decoding is
CPU-bound and synchronous, so every pipeline runs in a worker thread
(asyncio.to_thread) to keep the event loop free.

Entry point for production: uvicorn certificate_info.asgi:app --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from typing import Any, TypeVar

import structlog
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse
from railway import ErrorCode, LoggingExecutionContext
from railway.http_support import build_fastapi_response
from railway.result import Result

from certificate_info import __version__
from certificate_info.config import AppSettings
from certificate_info.domain.ports import (
    CertificateBundleDecoder,
    ContentFetcher,
    SignedProfileDecoder,
)
from certificate_info.main import configure_structlog, create_adapters
from certificate_info.pipeline import (
    DEFAULT_MAX_PAYLOAD_BYTES,
    certificates_from_content,
    certificates_from_url,
    profile_from_content,
    profile_from_url,
)
from certificate_info.rendering import certificates_to_json, decoded_value_to_json

T = TypeVar("T")

CERTIFICATE_FAILURE_PREFIX = "Failed to get certificate info"
PROFILE_FAILURE_PREFIX = "Failed to get profile info"

# A URL body longer than this is not a URL
MAX_URL_BYTES = 8 * 1024

# ─────────────────────── Global State ───────────────────────
# Set during app startup; tests assign them directly.

_fetcher: ContentFetcher | None = None
_bundle_decoder: CertificateBundleDecoder | None = None
_profile_decoder: SignedProfileDecoder | None = None
_max_payload_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES
log = structlog.get_logger()


def _wire(settings: AppSettings) -> None:
    """Create the adapters and publish them to the route handlers."""
    global _fetcher, _bundle_decoder, _profile_decoder, _max_payload_bytes
    _fetcher, _bundle_decoder, _profile_decoder = create_adapters(settings)
    _max_payload_bytes = settings.max_payload_bytes


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """
    FastAPI lifespan context manager — runs on startup and shutdown.

    Startup: load settings, configure logging, create adapters.
    Configuration errors abort startup.
    """
    try:
        settings = AppSettings()
    except Exception as e:
        log.error("asgi.startup_error", error=f"Configuration error: {e}")
        raise

    configure_structlog(settings.log_level)
    _wire(settings)
    log.info(
        "asgi.startup_complete",
        version=__version__,
        log_level=settings.log_level,
        max_payload_bytes=settings.max_payload_bytes,
    )

    yield  # ← App is running here; Uvicorn handles requests

    log.info("asgi.shutdown_complete")


# ─────────────────────── FastAPI Application ───────────────────────

app = FastAPI(
    title="certificate-info",
    description="PKCS#12 certificate bundle and signed profile inspection",
    version=__version__,
    lifespan=lifespan,
)


def _not_ready() -> JSONResponse:
    return JSONResponse(
        status_code=503,
        content={"status": "unavailable", "reason": "Service not initialized"},
    )


async def _run(
    operation: str,
    pipeline: Callable[[], Result[T]],
    render: Callable[[T], Any],
    failure_prefix: str,
) -> JSONResponse:
    """Run a pipeline off the event loop and turn its Result into a response."""
    context = LoggingExecutionContext(operation=operation)
    result = await asyncio.to_thread(context.execute, pipeline)
    if result.is_failure():
        failure = result.error()
        log.warning(
            "api.request_failed",
            operation=operation,
            error_code=failure.code.value,
            message=failure.message,
        )
    return build_fastapi_response(result, render=render, failure_prefix=failure_prefix)


async def _read_body(request: Request, max_bytes: int) -> Result[bytes]:
    """Collect the request body, stopping as soon as it exceeds `max_bytes`."""
    too_large = Result.failure(ErrorCode.VALIDATION_ERROR, f"Payload exceeds {max_bytes} bytes")
    declared = request.headers.get("content-length", "")
    if declared.isdigit() and int(declared) > max_bytes:
        return too_large
    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > max_bytes:
            return too_large
    return Result.success(bytes(body))


async def _read_url(request: Request) -> Result[str]:
    body = await _read_body(request, MAX_URL_BYTES)
    return body.map(lambda data: data.decode("utf-8", errors="replace").strip())


@app.get("/")
async def index() -> PlainTextResponse:
    return PlainTextResponse("Welcome!")


@app.get("/health")
async def health() -> JSONResponse:
    """Liveness check — 200 once the adapters are wired."""
    if _bundle_decoder is None or _profile_decoder is None or _fetcher is None:
        return _not_ready()
    return JSONResponse(status_code=200, content={"status": "healthy"})


@app.post("/certificate")
async def certificate(request: Request) -> JSONResponse:
    """Decode a PKCS#12 container sent as the raw request body."""
    if _bundle_decoder is None:
        return _not_ready()
    decoder, max_bytes = _bundle_decoder, _max_payload_bytes
    body = await _read_body(request, max_bytes)
    return await _run(
        "certificate.decode",
        lambda: body.flat_map(lambda data: certificates_from_content(data, decoder, max_bytes)),
        certificates_to_json,
        CERTIFICATE_FAILURE_PREFIX,
    )


@app.post("/certificate/url")
async def certificate_from_url(request: Request) -> JSONResponse:
    """Download the PKCS#12 container at the URL given in the body, then decode it."""
    if _bundle_decoder is None or _fetcher is None:
        return _not_ready()
    url = await _read_url(request)
    fetcher, decoder, max_bytes = _fetcher, _bundle_decoder, _max_payload_bytes
    return await _run(
        "certificate.decode_url",
        lambda: url.flat_map(lambda u: certificates_from_url(u, fetcher, decoder, max_bytes)),
        certificates_to_json,
        CERTIFICATE_FAILURE_PREFIX,
    )


@app.post("/profile")
async def profile(request: Request) -> JSONResponse:
    """Verify a signed profile sent as the raw request body and decode its payload."""
    if _profile_decoder is None:
        return _not_ready()
    decoder, max_bytes = _profile_decoder, _max_payload_bytes
    body = await _read_body(request, max_bytes)
    return await _run(
        "profile.decode",
        lambda: body.flat_map(lambda data: profile_from_content(data, decoder, max_bytes)),
        decoded_value_to_json,
        PROFILE_FAILURE_PREFIX,
    )


@app.post("/profile/url")
async def profile_from_url_route(request: Request) -> JSONResponse:
    if _profile_decoder is None or _fetcher is None:
        return _not_ready()
    url = await _read_url(request)
    fetcher, decoder, max_bytes = _fetcher, _profile_decoder, _max_payload_bytes
    return await _run(
        "profile.decode_url",
        lambda: url.flat_map(lambda u: profile_from_url(u, fetcher, decoder, max_bytes)),
        decoded_value_to_json,
        PROFILE_FAILURE_PREFIX,
    )


if __name__ == "__main__":
    # For local testing: python -m uvicorn certificate_info.asgi:app --reload
    import uvicorn

    uvicorn.run(
        "certificate_info.asgi:app",
        host="0.0.0.0",
        port=8000,
        reload=False,
        log_level="info",
    )
