"""
Unit tests for the ROP pipeline — the flows behind the decoding routes.

Uses mock ports (fake adapters) to test the pipeline in isolation.

Test categories:
  - Success track: every port succeeds → the decoder's value comes back
  - Failure at each stage: fetch / size check / decode
  - Short-circuit: an early failure prevents later stages from being called
"""

from __future__ import annotations

from unittest.mock import MagicMock

from railway import ErrorCode, Result, ResultAssertions

from certificate_info.domain.values import DictValue, StringValue
from certificate_info.pipeline import (
    certificates_from_content,
    certificates_from_url,
    profile_from_content,
    profile_from_url,
)

URL = "https://files.example.com/bundle.p12"
TREE = DictValue({"PayloadType": StringValue("Configuration")})

# ─────────────────────── Mock Port Factories ───────────────────────


def _make_fetcher(result: Result[bytes]) -> MagicMock:
    """Create a mock ContentFetcher returning the given Result."""
    mock = MagicMock()
    mock.fetch.return_value = result
    return mock


def _make_bundle_decoder(result: Result[list]) -> MagicMock:
    """Create a mock CertificateBundleDecoder returning the given Result."""
    mock = MagicMock()
    mock.decode.return_value = result
    return mock


def _make_profile_decoder(result: Result) -> MagicMock:
    """Create a mock SignedProfileDecoder returning the given Result."""
    mock = MagicMock()
    mock.decode_and_verify.return_value = result
    return mock


# ─────────────────────── Certificates ───────────────────────


class TestCertificatesFromContent:
    def test_success_passes_body_to_decoder(self) -> None:
        """
        GIVEN a decoder that succeeds
        WHEN the body is decoded
        THEN the decoder's certificates are returned.
        """
        decoder = _make_bundle_decoder(Result.success(["record"]))

        records = ResultAssertions.assert_success(certificates_from_content(b"p12", decoder))

        assert records == ["record"]
        decoder.decode.assert_called_once_with(b"p12")

    def test_oversized_body_is_rejected_before_decoding(self) -> None:
        decoder = _make_bundle_decoder(Result.success([]))

        ResultAssertions.assert_failure(
            certificates_from_content(b"x" * 11, decoder, max_bytes=10), ErrorCode.VALIDATION_ERROR
        )

        decoder.decode.assert_not_called()

    def test_body_at_the_limit_is_decoded(self) -> None:
        decoder = _make_bundle_decoder(Result.success([]))

        ResultAssertions.assert_success(certificates_from_content(b"x" * 10, decoder, max_bytes=10))

    def test_empty_body_reaches_the_decoder(self) -> None:
        decoder = _make_bundle_decoder(Result.failure(ErrorCode.PARSE_ERROR, "empty"))

        ResultAssertions.assert_failure(certificates_from_content(b"", decoder), ErrorCode.PARSE_ERROR)

        decoder.decode.assert_called_once_with(b"")

    def test_decoder_failure_propagates(self) -> None:
        decoder = _make_bundle_decoder(Result.failure(ErrorCode.INTEGRITY_ERROR, "mac mismatch"))

        failure = ResultAssertions.assert_failure(
            certificates_from_content(b"p12", decoder), ErrorCode.INTEGRITY_ERROR
        )

        assert failure.message == "mac mismatch"


class TestCertificatesFromUrl:
    def test_full_success(self) -> None:
        """
        GIVEN a fetcher and a decoder that both succeed
        WHEN the URL flow runs
        THEN the downloaded body is decoded and its certificates returned.
        """
        fetcher = _make_fetcher(Result.success(b"p12"))
        decoder = _make_bundle_decoder(Result.success(["a", "b"]))

        records = ResultAssertions.assert_success(certificates_from_url(URL, fetcher, decoder))

        assert records == ["a", "b"]
        fetcher.fetch.assert_called_once_with(URL)
        decoder.decode.assert_called_once_with(b"p12")

    def test_fetch_failure_short_circuits(self) -> None:
        fetcher = _make_fetcher(Result.failure(ErrorCode.EXTERNAL_SERVICE_ERROR, "Download failed"))
        decoder = _make_bundle_decoder(Result.success([]))

        ResultAssertions.assert_failure(
            certificates_from_url(URL, fetcher, decoder), ErrorCode.EXTERNAL_SERVICE_ERROR
        )

        decoder.decode.assert_not_called()

    def test_oversized_download_short_circuits(self) -> None:
        fetcher = _make_fetcher(Result.success(b"x" * 100))
        decoder = _make_bundle_decoder(Result.success([]))

        ResultAssertions.assert_failure(
            certificates_from_url(URL, fetcher, decoder, max_bytes=99), ErrorCode.VALIDATION_ERROR
        )

        decoder.decode.assert_not_called()


# ─────────────────────── Profiles ───────────────────────


class TestProfileFromContent:
    def test_success(self) -> None:
        decoder = _make_profile_decoder(Result.success(TREE))

        assert ResultAssertions.assert_success(profile_from_content(b"cms", decoder)) == TREE
        decoder.decode_and_verify.assert_called_once_with(b"cms")

    def test_signature_failure_propagates(self) -> None:
        decoder = _make_profile_decoder(Result.failure(ErrorCode.SIGNATURE_INVALID, "bad"))

        ResultAssertions.assert_failure(
            profile_from_content(b"cms", decoder), ErrorCode.SIGNATURE_INVALID
        )


class TestProfileFromUrl:
    def test_full_success(self) -> None:
        fetcher = _make_fetcher(Result.success(b"cms"))
        decoder = _make_profile_decoder(Result.success(TREE))

        assert ResultAssertions.assert_success(profile_from_url(URL, fetcher, decoder)) == TREE

    def test_fetch_failure_short_circuits(self) -> None:
        fetcher = _make_fetcher(Result.failure(ErrorCode.VALIDATION_ERROR, "Not an http(s) URL"))
        decoder = _make_profile_decoder(Result.success(TREE))

        ResultAssertions.assert_failure(
            profile_from_url("ftp://x", fetcher, decoder), ErrorCode.VALIDATION_ERROR
        )

        decoder.decode_and_verify.assert_not_called()
