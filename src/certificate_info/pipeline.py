"""
Pipeline — the ROP flows behind the four decoding routes.

Domain layer — PURE BUSINESS LOGIC. No side effects, no I/O.
All I/O is injected via ports (Protocol interfaces).

  certificates_from_url:
    fetch(url) → check size → decode PKCS#12 → list[CertificateRecord]

  profile_from_url:
    fetch(url) → check size → verify CMS → parse plist → DecodedValue

Each stage returns Result[T]. Failures short-circuit automatically
through the ROP railway — no try/except needed.
"""

from __future__ import annotations

from railway import ErrorCode
from railway.result import Result

from certificate_info.domain.models import CertificateRecord
from certificate_info.domain.ports import (
    CertificateBundleDecoder,
    ContentFetcher,
    SignedProfileDecoder,
)
from certificate_info.domain.values import DecodedValue

DEFAULT_MAX_PAYLOAD_BYTES = 10 * 1024 * 1024


def _accept_payload(body: bytes, max_bytes: int) -> Result[bytes]:
    """Reject oversized payloads. Empty ones go through; the decoders report them."""
    return Result.success(bytes(body)).ensure(
        lambda data: len(data) <= max_bytes,
        ErrorCode.VALIDATION_ERROR,
        f"Payload exceeds {max_bytes} bytes",
    )


def certificates_from_content(
    body: bytes,
    decoder: CertificateBundleDecoder,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Result[list[CertificateRecord]]:
    """Decode a PKCS#12 container uploaded directly in the request body."""
    return _accept_payload(body, max_bytes).flat_map(decoder.decode)


def certificates_from_url(
    url: str,
    fetcher: ContentFetcher,
    decoder: CertificateBundleDecoder,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Result[list[CertificateRecord]]:
    """
    Download a PKCS#12 container and decode it.

    Returns Result[list[CertificateRecord]] on success,
    or the failure of the first stage that failed (fetch or decode).
    """
    return (
        fetcher.fetch(url)
        .flat_map(lambda body: _accept_payload(body, max_bytes))
        .flat_map(decoder.decode)
    )


def profile_from_content(
    body: bytes,
    decoder: SignedProfileDecoder,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Result[DecodedValue]:
    """Verify and decode a signed profile uploaded directly in the request body."""
    return _accept_payload(body, max_bytes).flat_map(decoder.decode_and_verify)


def profile_from_url(
    url: str,
    fetcher: ContentFetcher,
    decoder: SignedProfileDecoder,
    max_bytes: int = DEFAULT_MAX_PAYLOAD_BYTES,
) -> Result[DecodedValue]:
    """Download a signed profile, verify it, and decode its payload."""
    return (
        fetcher.fetch(url)
        .flat_map(lambda body: _accept_payload(body, max_bytes))
        .flat_map(decoder.decode_and_verify)
    )
