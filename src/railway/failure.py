"""
Failure description — structured error information for the failure track.

An ErrorCode classifies the failure; the FailureDescription carries the
human-readable message, the exception that caused it (if any) and a timestamp.

The decode codes mirror the error taxonomy of the certificate and profile
decoders. They are deliberately coarse: the HTTP layer turns each one into a
fixed message, so nothing about the offending byte offset or algorithm
identifier reaches a client.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, unique


@unique
class ErrorCode(Enum):
    """Structured error codes for the failure track."""

    # --- Decoding ---
    PARSE_ERROR = "PARSE_ERROR"
    """Malformed binary structure (ASN.1, DER/BER, property list)."""

    INTEGRITY_ERROR = "INTEGRITY_ERROR"
    """MAC mismatch or undecryptable content."""

    SIGNATURE_INVALID = "SIGNATURE_INVALID"
    """No signer of a SignedData structure verifies."""

    UNSUPPORTED_ALGORITHM = "UNSUPPORTED_ALGORITHM"
    """Recognised but unimplemented cipher, digest or signature algorithm."""

    UNSUPPORTED_CONTENT_TYPE = "UNSUPPORTED_CONTENT_TYPE"
    """Recognised but unimplemented CMS/PKCS#7 content type."""

    # --- Request handling ---
    VALIDATION_ERROR = "VALIDATION_ERROR"
    """Invalid request input: empty body, bad URL, payload too large."""

    EXTERNAL_SERVICE_ERROR = "EXTERNAL_SERVICE_ERROR"
    """Fetching a client-supplied URL failed."""

    TECHNICAL_ERROR = "TECHNICAL_ERROR"
    """Infrastructure issues."""

    UNKNOWN_ERROR = "UNKNOWN_ERROR"
    """Unexpected/unclassified failures."""


@dataclass(frozen=True, slots=True)
class FailureDescription:
    """
    Immutable failure descriptor carrying error code, message, optional exception, and timestamp.

    >>> desc = FailureDescription(ErrorCode.PARSE_ERROR, "truncated PFX")
    >>> desc.code
    <ErrorCode.PARSE_ERROR: 'PARSE_ERROR'>
    """

    code: ErrorCode
    message: str
    exception: BaseException | None = field(default=None, repr=False)
    timestamp: datetime = field(default_factory=lambda: datetime.now(UTC))
