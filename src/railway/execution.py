"""
Execution contexts — separate WHAT (pure logic) from HOW (observability).

A pipeline describes what should happen and returns Result[T]; an
ExecutionContext decides how it runs (timed and logged, or bare for tests).

    ctx = LoggingExecutionContext(operation="certificate.decode")
    result = ctx.execute(lambda: decoder.decode(data))
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import Protocol, TypeVar, runtime_checkable

from railway.failure import ErrorCode, FailureDescription
from railway.result import Failure, Result

T = TypeVar("T")
logger = logging.getLogger("railway.execution")


@runtime_checkable
class ExecutionContext(Protocol):
    """Anything with execute(computation) satisfies this protocol."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]: ...


class NoOpExecutionContext:
    """Passthrough execution context — runs the computation as is."""

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        return computation()


class LoggingExecutionContext:
    """
    Execution context that logs duration and result state.

    Wraps another context (decorator pattern). An exception escaping the
    computation is converted into a TECHNICAL_ERROR failure so callers always
    receive a Result.
    """

    def __init__(
        self,
        inner: ExecutionContext | None = None,
        operation: str = "unknown",
        log_level: int = logging.DEBUG,
    ) -> None:
        self._inner = inner or NoOpExecutionContext()
        self._operation = operation
        self._log_level = log_level

    def execute(self, computation: Callable[[], Result[T]]) -> Result[T]:
        start = time.monotonic()

        try:
            result = self._inner.execute(computation)
        except Exception as e:
            logger.error(
                "[%s] Execution failed after %.3fs: %s",
                self._operation,
                time.monotonic() - start,
                e,
            )
            return Failure(
                FailureDescription(ErrorCode.TECHNICAL_ERROR, f"Execution failed: {e}", e)
            )

        logger.log(
            self._log_level,
            "[%s] Completed in %.3fs — %s",
            self._operation,
            time.monotonic() - start,
            "SUCCESS" if result.is_success() else "FAILURE",
        )
        return result
