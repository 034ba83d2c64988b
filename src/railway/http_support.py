"""
HTTP integration — ErrorCode→HTTP status mapping and response builders.

The failure body carries a single human-readable `error` field. Its text is
chosen per ErrorCode from a fixed table, never taken from the failure
message, so parser internals (offsets, field names, algorithm identifiers)
stay on the server side and only reach the logs.

    return build_fastapi_response(result, render=certificates_to_json,
                                  failure_prefix="Failed to get certificate info")
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import asdict, dataclass
from typing import Any, TypeVar

from railway.failure import ErrorCode, FailureDescription
from railway.result import Result

T = TypeVar("T")


class HttpStatusMapper:
    """Maps ErrorCode enum values to HTTP status codes."""

    # Decode and fetch failures are the client's problem: 400, as the service always answered.
    _CODE_TO_STATUS: dict[ErrorCode, int] = {
        ErrorCode.PARSE_ERROR: 400,
        ErrorCode.INTEGRITY_ERROR: 400,
        ErrorCode.SIGNATURE_INVALID: 400,
        ErrorCode.UNSUPPORTED_ALGORITHM: 400,
        ErrorCode.UNSUPPORTED_CONTENT_TYPE: 400,
        ErrorCode.VALIDATION_ERROR: 400,
        ErrorCode.EXTERNAL_SERVICE_ERROR: 400,
        ErrorCode.TECHNICAL_ERROR: 500,
        ErrorCode.UNKNOWN_ERROR: 500,
    }

    @classmethod
    def map_error_code(cls, code: ErrorCode) -> int:
        return cls._CODE_TO_STATUS.get(code, 500)

    @classmethod
    def map_failure(cls, failure: FailureDescription) -> int:
        return cls.map_error_code(failure.code)


_CATEGORY: dict[ErrorCode, str] = {
    ErrorCode.PARSE_ERROR: "malformed input",
    ErrorCode.INTEGRITY_ERROR: "integrity check failed",
    ErrorCode.SIGNATURE_INVALID: "signature verification failed",
    ErrorCode.UNSUPPORTED_ALGORITHM: "unsupported algorithm",
    ErrorCode.UNSUPPORTED_CONTENT_TYPE: "unsupported content type",
    ErrorCode.VALIDATION_ERROR: "invalid request",
    ErrorCode.EXTERNAL_SERVICE_ERROR: "failed to fetch the given URL",
    ErrorCode.TECHNICAL_ERROR: "internal error",
    ErrorCode.UNKNOWN_ERROR: "internal error",
}


def coarse_category(code: ErrorCode) -> str:
    """Stable, client-safe phrase for an error code."""
    return _CATEGORY.get(code, "internal error")


@dataclass(frozen=True, slots=True)
class ErrorResponse:
    """
    Standardized error response body.

        {"error": "Failed to get certificate info: integrity check failed"}
    """

    error: str

    @staticmethod
    def from_failure(failure: FailureDescription, prefix: str) -> ErrorResponse:
        return ErrorResponse(error=f"{prefix}: {coarse_category(failure.code)}")

    def to_dict(self) -> dict[str, str]:
        return asdict(self)


def build_response(
    result: Result[T],
    render: Callable[[T], Any],
    failure_prefix: str,
    success_status: int = 200,
) -> tuple[Any, int]:
    """
    Build a (body, status_code) tuple from a Result.

    Framework-agnostic — `render` turns the success value into a
    JSON-compatible body.
    """
    return result.either(
        on_success=lambda value: (render(value), success_status),
        on_failure=lambda error: (
            ErrorResponse.from_failure(error, failure_prefix).to_dict(),
            HttpStatusMapper.map_failure(error),
        ),
    )


def build_fastapi_response(
    result: Result[T],
    render: Callable[[T], Any],
    failure_prefix: str,
    success_status: int = 200,
) -> Any:
    """Build a FastAPI JSONResponse from a Result."""
    from fastapi.responses import JSONResponse

    body, status = build_response(result, render, failure_prefix, success_status)
    return JSONResponse(content=body, status_code=status)
