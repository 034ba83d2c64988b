"""
HTTP adapter — download client-supplied URLs via httpx.

Implements the ContentFetcher port. Used by the /certificate/url and
/profile/url routes to retrieve the container before decoding it.

Retry/backoff via tenacity on transient errors (network, timeout) only.
All HTTP errors are captured into Result failures — no exceptions
leak to the business logic layer.
"""

from __future__ import annotations

from urllib.parse import urlsplit

import httpx
import structlog
from railway import ErrorCode, FailureDescription
from railway.result import Result
from tenacity import (
    Retrying,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

log = structlog.get_logger()

_ALLOWED_SCHEMES = ("http", "https")


class PayloadTooLargeError(Exception):
    """The response body exceeded the configured size limit."""


def _classify_fetch_failure(failure: FailureDescription) -> FailureDescription:
    if isinstance(failure.exception, PayloadTooLargeError):
        return FailureDescription(
            code=ErrorCode.VALIDATION_ERROR,
            message=str(failure.exception),
            exception=failure.exception,
        )
    return failure


class HttpContentFetcher:
    """
    Download the bytes behind a URL with a plain GET.

    Implements the ContentFetcher port.
    Uses tenacity retry on transient network errors only; HTTP error
    statuses are not retried.
    """

    def __init__(
        self,
        timeout: float = 30,
        max_attempts: int = 3,
        max_bytes: int = 10 * 1024 * 1024,
        backoff_min_seconds: float = 0.1,
    ) -> None:
        self._timeout = timeout
        self._max_bytes = max_bytes
        self._retrying = Retrying(
            stop=stop_after_attempt(max_attempts),
            wait=wait_exponential(multiplier=1, min=backoff_min_seconds, max=30),
            retry=retry_if_exception_type((httpx.TimeoutException, httpx.NetworkError)),
            reraise=True,
        )

    def fetch(self, url: str) -> Result[bytes]:
        """
        GET the URL and return its body.

        Returns Result[bytes] with the raw body on success,
        Result.failure(VALIDATION_ERROR, ...) for a URL that is not http(s)
        or a body over the size limit, and
        Result.failure(EXTERNAL_SERVICE_ERROR, ...) for anything the remote
        side got wrong (non-2xx status, connection failure, timeout).
        """
        url = url.strip()
        scheme = urlsplit(url).scheme.lower()
        if scheme not in _ALLOWED_SCHEMES or not urlsplit(url).netloc:
            return Result.failure(ErrorCode.VALIDATION_ERROR, f"Not an http(s) URL: {url!r}")

        return Result.from_computation(
            lambda: self._retrying(self._do_fetch, url),
            ErrorCode.EXTERNAL_SERVICE_ERROR,
            "Download failed",
        ).map_failure(_classify_fetch_failure)

    def _do_fetch(self, url: str) -> bytes:
        """HTTP GET — exceptions caught by from_computation."""
        with httpx.Client(timeout=self._timeout, follow_redirects=True) as client:
            with client.stream("GET", url) as response:
                response.raise_for_status()
                body = bytearray()
                for chunk in response.iter_bytes():
                    body.extend(chunk)
                    if len(body) > self._max_bytes:
                        raise PayloadTooLargeError(
                            f"Response body exceeds {self._max_bytes} bytes"
                        )
        log.info("fetch.complete", status=response.status_code, size_bytes=len(body))
        return bytes(body)
