"""
Decode errors — the failure taxonomy of the certificate and profile decoders.

Adapters raise these internally; the adapter boundary turns them into
Result failures carrying the matching ErrorCode (see `classify_failure`).
"""

from __future__ import annotations

from railway import ErrorCode, FailureDescription


class DecodeError(Exception):
    """Base class for every terminal decode failure."""

    code: ErrorCode = ErrorCode.PARSE_ERROR


class ParseError(DecodeError):
    """Malformed binary structure. `field` names where decoding gave up."""

    code = ErrorCode.PARSE_ERROR

    def __init__(self, message: str, field: str | None = None) -> None:
        super().__init__(f"{field}: {message}" if field else message)
        self.field = field


class IntegrityError(DecodeError):
    code = ErrorCode.INTEGRITY_ERROR


class InvalidSignatureError(DecodeError):
    code = ErrorCode.SIGNATURE_INVALID


class UnsupportedAlgorithmError(DecodeError):
    code = ErrorCode.UNSUPPORTED_ALGORITHM


class UnsupportedContentTypeError(DecodeError):
    code = ErrorCode.UNSUPPORTED_CONTENT_TYPE


def classify_failure(failure: FailureDescription) -> FailureDescription:
    """
    Re-code a failure captured by Result.from_computation.

    A DecodeError keeps its own code and message; anything else keeps the
    generic code and message it was captured with.
    """
    exc = failure.exception
    if isinstance(exc, DecodeError):
        return FailureDescription(code=exc.code, message=str(exc), exception=exc)
    return failure
