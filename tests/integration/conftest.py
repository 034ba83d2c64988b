"""
Integration test fixtures — the ASGI app wired with real adapters.

Only the remote file servers are simulated (respx); the fetcher, both
decoders and the rendering run for real.
"""

from __future__ import annotations

from collections.abc import Iterator

import pytest
from fastapi.testclient import TestClient

from certificate_info import asgi
from certificate_info.adapters.http_client import HttpContentFetcher
from certificate_info.adapters.pkcs12_decoder import Pkcs12CertificateDecoder
from certificate_info.adapters.profile_decoder import CmsProfileDecoder
from certificate_info.pipeline import DEFAULT_MAX_PAYLOAD_BYTES

MAX_PAYLOAD_BYTES = 64 * 1024


@pytest.fixture()
def client() -> Iterator[TestClient]:
    """TestClient over an app wired with real adapters and a fast-retrying fetcher."""
    asgi._fetcher = HttpContentFetcher(
        timeout=5, max_attempts=2, max_bytes=MAX_PAYLOAD_BYTES, backoff_min_seconds=0
    )
    asgi._bundle_decoder = Pkcs12CertificateDecoder()
    asgi._profile_decoder = CmsProfileDecoder()
    asgi._max_payload_bytes = MAX_PAYLOAD_BYTES
    yield TestClient(asgi.app, raise_server_exceptions=False)
    asgi._fetcher = None
    asgi._bundle_decoder = None
    asgi._profile_decoder = None
    asgi._max_payload_bytes = DEFAULT_MAX_PAYLOAD_BYTES
