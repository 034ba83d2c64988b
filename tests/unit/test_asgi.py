"""
Unit tests for the FastAPI ASGI application — REST endpoints.

Uses FastAPI's TestClient without running the lifespan; adapters are
assigned to the module-level state directly. Body routes run the real
decoders, URL routes use a mocked fetcher.
"""

from __future__ import annotations

import base64
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from railway import ErrorCode, Result

from certificate_info import asgi
from certificate_info.adapters.pkcs12_decoder import Pkcs12CertificateDecoder
from certificate_info.adapters.profile_decoder import CmsProfileDecoder
from certificate_info.pipeline import DEFAULT_MAX_PAYLOAD_BYTES
from tests.builders import (
    PfxBuilder,
    cert_bag,
    der,
    flip_byte,
    profile_payload,
    reference_pkcs12,
    sign_profile,
)

URL = "https://files.example.com/object"


@pytest.fixture(autouse=True)
def _reset_asgi_state() -> None:
    """Reset ASGI module-level state before each test."""
    asgi._fetcher = None
    asgi._bundle_decoder = None
    asgi._profile_decoder = None
    asgi._max_payload_bytes = DEFAULT_MAX_PAYLOAD_BYTES


@pytest.fixture()
def client() -> TestClient:
    """Create a TestClient without running the lifespan (no real startup)."""
    return TestClient(asgi.app, raise_server_exceptions=False)


@pytest.fixture()
def fetcher() -> MagicMock:
    mock = MagicMock()
    mock.fetch.return_value = Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, "Download failed")
    return mock


@pytest.fixture()
def wired(fetcher: MagicMock) -> MagicMock:
    """Wire the real decoders and the mocked fetcher."""
    asgi._fetcher = fetcher
    asgi._bundle_decoder = Pkcs12CertificateDecoder()
    asgi._profile_decoder = CmsProfileDecoder()
    return fetcher


# ─────────────────────── Service routes ───────────────────────


class TestServiceRoutes:
    def test_index(self, client: TestClient) -> None:
        response = client.get("/")

        assert response.status_code == 200
        assert response.text == "Welcome!"

    def test_health_before_startup(self, client: TestClient) -> None:
        """
        GIVEN the application has not completed startup
        WHEN GET /health is called
        THEN it returns 503 with an unavailable status.
        """
        response = client.get("/health")

        assert response.status_code == 503
        assert response.json()["status"] == "unavailable"

    def test_health_after_wiring(self, client: TestClient, wired: MagicMock) -> None:
        response = client.get("/health")

        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    @pytest.mark.parametrize(
        "path", ["/certificate", "/certificate/url", "/profile", "/profile/url"]
    )
    def test_routes_before_startup(self, client: TestClient, path: str) -> None:
        response = client.post(path, content=b"x")

        assert response.status_code == 503
        assert "not initialized" in response.json()["reason"]


# ─────────────────────── POST /certificate ───────────────────────


class TestCertificateEndpoint:
    def test_decodes_bundle(self, client: TestClient, wired: MagicMock, ca_chain) -> None:
        """
        GIVEN a PKCS#12 container with three certificates
        WHEN it is POSTed to /certificate
        THEN 200 with one JSON object per certificate is returned.
        """
        response = client.post("/certificate", content=reference_pkcs12(ca_chain))

        assert response.status_code == 200
        body = response.json()
        assert len(body) == 3
        assert {item["serial_number"] for item in body} == {10, 11, 12}
        assert {base64.b64decode(item["certificate"]) for item in body} == {
            der(cert) for cert in ca_chain
        }

    def test_empty_bundle_is_an_empty_list(self, client: TestClient, wired: MagicMock) -> None:
        response = client.post("/certificate", content=PfxBuilder().plain([]).build())

        assert response.status_code == 200
        assert response.json() == []

    def test_malformed_body(self, client: TestClient, wired: MagicMock) -> None:
        response = client.post("/certificate", content=b"garbage")

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to get certificate info: malformed input"}

    def test_tampered_mac(self, client: TestClient, wired: MagicMock, ec_identity) -> None:
        cert, _ = ec_identity
        data = PfxBuilder().plain([cert_bag(cert)]).build(tamper_mac=True)

        response = client.post("/certificate", content=data)

        assert response.status_code == 400
        assert response.json()["error"].endswith("integrity check failed")

    def test_oversized_body(self, client: TestClient, wired: MagicMock) -> None:
        asgi._max_payload_bytes = 4

        response = client.post("/certificate", content=b"12345")

        assert response.status_code == 400
        assert response.json()["error"].endswith("invalid request")

    @pytest.mark.parametrize("path", ["/certificate", "/profile"])
    def test_oversized_chunked_body_never_reaches_the_decoder(
        self, client: TestClient, path: str
    ) -> None:
        """
        GIVEN a body sent in chunks without a Content-Length, larger than the limit
        WHEN it is POSTed
        THEN 400 is returned and no decoder is called.
        """
        bundle_decoder, profile_decoder = MagicMock(), MagicMock()
        asgi._fetcher = MagicMock()
        asgi._bundle_decoder = bundle_decoder
        asgi._profile_decoder = profile_decoder
        asgi._max_payload_bytes = 4

        response = client.post(path, content=iter([b"12", b"34", b"56"]))

        assert response.status_code == 400
        assert response.json()["error"].endswith("invalid request")
        bundle_decoder.decode.assert_not_called()
        profile_decoder.decode_and_verify.assert_not_called()

    def test_chunked_body_within_the_limit(self, client: TestClient, wired: MagicMock, ca_chain) -> None:
        data = reference_pkcs12(ca_chain[:1])
        chunks = [data[i : i + 100] for i in range(0, len(data), 100)]

        response = client.post("/certificate", content=iter(chunks))

        assert response.status_code == 200
        assert [item["serial_number"] for item in response.json()] == [10]


class TestCertificateUrlEndpoint:
    def test_downloads_and_decodes(
        self, client: TestClient, wired: MagicMock, ca_chain
    ) -> None:
        wired.fetch.return_value = Result.success(reference_pkcs12(ca_chain[:1]))

        response = client.post("/certificate/url", content=f" {URL}\n".encode())

        assert response.status_code == 200
        assert [item["common_name"] for item in response.json()] == ["Root CA"]
        wired.fetch.assert_called_once_with(URL)

    def test_download_failure(self, client: TestClient, wired: MagicMock) -> None:
        response = client.post("/certificate/url", content=URL.encode())

        assert response.status_code == 400
        assert response.json() == {
            "error": "Failed to get certificate info: failed to fetch the given URL"
        }

    def test_overlong_url_body_is_not_fetched(self, client: TestClient, wired: MagicMock) -> None:
        body = f"{URL}?q={'a' * asgi.MAX_URL_BYTES}".encode()

        response = client.post("/certificate/url", content=body)

        assert response.status_code == 400
        assert response.json()["error"].endswith("invalid request")
        wired.fetch.assert_not_called()


# ─────────────────────── POST /profile ───────────────────────


class TestProfileEndpoint:
    def test_decodes_signed_profile(self, client: TestClient, wired: MagicMock, ec_identity) -> None:
        """
        GIVEN a validly signed profile
        WHEN it is POSTed to /profile
        THEN 200 with the payload rendered as JSON is returned.
        """
        cert, key = ec_identity

        response = client.post("/profile", content=sign_profile(profile_payload(), cert, key))

        assert response.status_code == 200
        body = response.json()
        assert body["PayloadDisplayName"] == "Example Wi-Fi"
        assert body["PayloadVersion"] == 1
        assert body["PayloadRemovalDisallowed"] is False
        assert body["ExpirationDate"] == "2030-06-30T12:00:00Z"
        assert body["PayloadContent"][0]["Blob"] == "AAEC"

    def test_invalid_signature(self, client: TestClient, wired: MagicMock, ec_identity) -> None:
        cert, key = ec_identity
        signed = sign_profile(profile_payload(), cert, key)

        response = client.post("/profile", content=flip_byte(signed, len(signed) - 1))

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to get profile info: signature verification failed"}

    def test_error_body_hides_parser_details(self, client: TestClient, wired: MagicMock) -> None:
        response = client.post("/profile", content=b"\x30\x03\x02\x01\x05")

        assert response.status_code == 400
        assert response.json() == {"error": "Failed to get profile info: malformed input"}


class TestProfileUrlEndpoint:
    def test_downloads_and_decodes(self, client: TestClient, wired: MagicMock, rsa_identity) -> None:
        cert, key = rsa_identity
        wired.fetch.return_value = Result.success(sign_profile(profile_payload(), cert, key))

        response = client.post("/profile/url", content=URL.encode())

        assert response.status_code == 200
        assert response.json()["PayloadType"] == "Configuration"

    def test_rejected_url(self, client: TestClient, wired: MagicMock) -> None:
        wired.fetch.return_value = Result.failure(ErrorCode.VALIDATION_ERROR, "Not an http(s) URL")

        response = client.post("/profile/url", content=b"ftp://example.com/x")

        assert response.status_code == 400
        assert response.json()["error"] == "Failed to get profile info: invalid request"


class TestTechnicalFailures:
    def test_unexpected_failure_is_500(self, client: TestClient, wired: MagicMock) -> None:
        decoder = MagicMock()
        decoder.decode.return_value = Result.failure(ErrorCode.TECHNICAL_ERROR, "boom")
        asgi._bundle_decoder = decoder

        response = client.post("/certificate", content=b"p12")

        assert response.status_code == 500
        assert response.json() == {"error": "Failed to get certificate info: internal error"}
