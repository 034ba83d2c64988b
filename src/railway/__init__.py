"""
Railway-Oriented Programming (ROP) support for certificate-info.

Explicit, composable error handling — adapters return Result, the rest of
the service composes them without try/except.

    from railway import Result, ErrorCode

    result = (
        fetcher.fetch(url)
        .ensure(lambda body: len(body) > 0, ErrorCode.VALIDATION_ERROR, "Empty body")
        .flat_map(decoder.decode)
    )
"""

from railway.assertions import ResultAssertions
from railway.execution import ExecutionContext, LoggingExecutionContext, NoOpExecutionContext
from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result, Success

__all__ = [
    "Result",
    "Success",
    "Failure",
    "ErrorCode",
    "FailureDescription",
    "ExecutionContext",
    "NoOpExecutionContext",
    "LoggingExecutionContext",
    "ResultAssertions",
]
