"""
Application entry point — configures logging and starts the HTTP server.

Composition root: this is the ONLY place where concrete adapter classes are
instantiated. Everything else depends on Protocol interfaces.

Responsibilities:
  1. Configure structlog
  2. Load and validate configuration from environment
  3. Create concrete adapter instances (fetcher + two decoders)
  4. Serve the FastAPI app with uvicorn
"""

from __future__ import annotations

import logging
import sys

import structlog

from certificate_info import __version__
from certificate_info.adapters.http_client import HttpContentFetcher
from certificate_info.adapters.pkcs12_decoder import Pkcs12CertificateDecoder
from certificate_info.adapters.profile_decoder import CmsProfileDecoder
from certificate_info.config import AppSettings


def configure_structlog(log_level: str = "INFO") -> None:
    """
    Configure structlog for structured logging.

    Colored, human-readable console output with ISO timestamps; events
    below `log_level` are dropped by the filtering bound logger.
    """
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.dev.ConsoleRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


type _Adapters = tuple[HttpContentFetcher, Pkcs12CertificateDecoder, CmsProfileDecoder]


def create_adapters(settings: AppSettings) -> _Adapters:
    """Instantiate the concrete adapters from application settings."""
    fetcher = HttpContentFetcher(
        timeout=settings.fetch.timeout_seconds,
        max_attempts=settings.fetch.max_attempts,
        max_bytes=settings.max_payload_bytes,
    )
    return fetcher, Pkcs12CertificateDecoder(), CmsProfileDecoder()


def main() -> None:
    """Load settings and serve the API until interrupted."""
    try:
        settings = AppSettings()
    except Exception as e:
        print(f"FATAL: Configuration error — {e}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    configure_structlog(settings.log_level)
    log = structlog.get_logger()
    log.info(
        "app.starting",
        version=__version__,
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level,
    )

    import uvicorn

    uvicorn.run(
        "certificate_info.asgi:app",
        host=settings.host,
        port=settings.port,
        reload=False,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()
