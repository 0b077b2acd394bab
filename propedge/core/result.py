"""Explicit success/failure values for every I/O-touching call.

Sub-components never raise to their callers.  A provider timeout, a missing
credential, or a roster miss is returned as a failed :class:`Result` carrying
an :class:`ErrorKind`, and the caller decides which fallback to walk next.

:func:`first_success` is the fallback-chain combinator: it evaluates a
sequence of zero-argument callables in order and returns the first ``ok``
result, together with every error kind collected on the way so the decision
points stay auditable in the final evaluation metadata.

Typical usage::

    result, errors = first_success(
        lambda: collector.recent_sample(...),
        lambda: collector.season_average(...),
        lambda: Result.ok(baseline),
    )
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Error taxonomy shared by the gateway, resolver, and orchestrator."""

    INVALID_INPUT = "INVALID_INPUT"
    PROVIDER_TIMEOUT = "PROVIDER_TIMEOUT"
    PROVIDER_ERROR = "PROVIDER_ERROR"
    NO_CREDENTIALS = "NO_CREDENTIALS"
    NO_MATCH = "NO_MATCH"
    NO_DATA = "NO_DATA"
    INSUFFICIENT_SAMPLE = "INSUFFICIENT_SAMPLE"
    AMBIGUOUS_MATCH = "AMBIGUOUS_MATCH"
    FATAL_ERROR = "FATAL_ERROR"


@dataclass(frozen=True)
class Result(Generic[T]):
    """Either a value or an :class:`ErrorKind`, never both.

    ``endpoint`` carries the audit signature of the remote call that
    produced the value (``None`` for cache-free local computations).
    ``detail`` is a free-text diagnostic for logs only.
    """

    value: Optional[T] = None
    error: Optional[ErrorKind] = None
    detail: str = ""
    endpoint: Optional[str] = None

    @classmethod
    def ok(cls, value: T, endpoint: Optional[str] = None) -> "Result[T]":
        return cls(value=value, endpoint=endpoint)

    @classmethod
    def fail(cls, error: ErrorKind, detail: str = "") -> "Result[T]":
        return cls(error=error, detail=detail)

    @property
    def is_ok(self) -> bool:
        return self.error is None

    def unwrap_or(self, default: T) -> T:
        """Return the value on success, ``default`` otherwise."""
        return self.value if self.error is None else default


def first_success(
    *sources: Callable[[], Result[T]],
) -> Tuple[Result[T], List[ErrorKind]]:
    """Walk a fallback chain and return the first successful result.

    Each source is only invoked when every earlier source failed, so
    expensive fallbacks cost nothing when the primary path succeeds.

    Returns:
        ``(result, errors)`` where ``errors`` lists the error kinds of the
        sources that failed before the winner.  When every source fails,
        ``result`` is the last failure.
    """
    errors: List[ErrorKind] = []
    last: Result[T] = Result.fail(ErrorKind.NO_DATA, "empty fallback chain")
    for source in sources:
        last = source()
        if last.is_ok:
            return last, errors
        errors.append(last.error)
    return last, errors
