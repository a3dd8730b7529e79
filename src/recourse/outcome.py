"""Outcome values and the fallible boundary.

An operation that may fail concludes with ``Success(value)`` or
``Failed(failure)``. Inside a boundary opened by ``attempt`` (or a
``@fallible`` function), ``propagate`` unwraps a success or forwards a
failure: the current operation stops and its outcome becomes ``Failed`` with
the very same failure value. The shortcut is visible at every call site and
always lands at the nearest boundary.
"""

from __future__ import annotations

import contextvars
import dataclasses
import functools
import logging
from typing import TYPE_CHECKING, Any, NoReturn

from recourse.config import current_config
from recourse.errors import (
    InvariantViolationError,
    PropagationError,
    UnexpectedFailureError,
)
from recourse.failures import FailureDomain

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

_boundary_depth: contextvars.ContextVar[int] = contextvars.ContextVar(
    "recourse_boundary_depth", default=0
)


@dataclasses.dataclass(frozen=True, slots=True)
class Success[T]:
    """The operation concluded with a value."""

    value: T

    def is_success(self) -> bool:
        return True

    def is_failure(self) -> bool:
        return False

    def map[U](self, fn: Callable[[T], U]) -> Success[U]:
        """Apply *fn* to the value."""
        return Success(fn(self.value))

    def and_then(self, fn: Callable[[T], Outcome[Any, Any]]) -> Outcome[Any, Any]:
        """Chain another fallible step on the value."""
        return fn(self.value)


@dataclasses.dataclass(frozen=True, slots=True)
class Failed[TFailure]:
    """The operation concluded with a failure value."""

    failure: TFailure

    def __post_init__(self) -> None:
        if not isinstance(self.failure, FailureDomain):
            raise InvariantViolationError(
                f"Failed() requires a failure value, got {type(self.failure).__name__}",
                hint="Declare failures as variants of a FailureDomain.",
            )

    def is_success(self) -> bool:
        return False

    def is_failure(self) -> bool:
        return True

    def map(self, fn: Callable[[Any], Any]) -> Failed[TFailure]:
        del fn
        return self

    def and_then(self, fn: Callable[[Any], Outcome[Any, Any]]) -> Failed[TFailure]:
        del fn
        return self


type Outcome[T, TFailure] = Success[T] | Failed[TFailure]


class FailureSignal(BaseException):  # noqa: N818
    """Carries a failure from ``fail``/``propagate`` to the enclosing boundary.

    Derives from BaseException so that ``except Exception`` blocks between the
    call site and the boundary do not swallow it.
    """

    __slots__ = ("failure",)

    def __init__(self, failure: FailureDomain) -> None:
        super().__init__(failure)
        self.failure = failure


def _require_boundary(operation: str) -> None:
    if _boundary_depth.get() < 1:
        raise PropagationError(
            f"{operation}() used outside of a fallible boundary",
            hint="Call the enclosing operation through attempt() or mark it @fallible.",
        )


def attempt(
    op: Callable[..., Any], /, *args: Any, **kwargs: Any
) -> Outcome[Any, Any]:
    """Run *op* inside a fallible boundary and capture how it concluded.

    A returned Outcome passes through unchanged, a returned failure value
    becomes ``Failed``, anything else becomes ``Success``. Exceptions other
    than failure signals are not captured.
    """
    token = _boundary_depth.set(_boundary_depth.get() + 1)
    try:
        result = op(*args, **kwargs)
    except FailureSignal as signal:
        return Failed(signal.failure)
    finally:
        _boundary_depth.reset(token)

    if isinstance(result, (Success, Failed)):
        return result
    if isinstance(result, FailureDomain):
        return Failed(result)
    return Success(result)


def fallible[**P](fn: Callable[P, Any]) -> Callable[P, Outcome[Any, Any]]:
    """Decorate *fn* so every call runs through ``attempt``."""

    @functools.wraps(fn)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> Outcome[Any, Any]:
        return attempt(fn, *args, **kwargs)

    return wrapper


def fail(failure: FailureDomain) -> NoReturn:
    """Conclude the current operation with *failure*."""
    _require_boundary("fail")
    if not isinstance(failure, FailureDomain):
        raise InvariantViolationError(
            f"fail() requires a failure value, got {type(failure).__name__}"
        )
    raise FailureSignal(failure)


def propagate[T](outcome: Outcome[T, Any]) -> T:
    """Unwrap a success, or forward a failure to the enclosing boundary."""
    _require_boundary("propagate")
    match outcome:
        case Success(value=value):
            return value
        case Failed(failure=failure):
            if current_config().log_propagation:
                log.debug("Forwarding %r", failure)
            raise FailureSignal(failure)
        case _:
            raise InvariantViolationError(
                f"propagate() expects an Outcome, got {type(outcome).__name__}"
            )


def assert_succeeds[T](outcome: Outcome[T, Any]) -> T:
    """Return the value of an outcome that cannot fail by construction.

    A failure here is a broken invariant, not a recoverable path: it is
    logged at CRITICAL and raised as ``UnexpectedFailureError``.
    """
    match outcome:
        case Success(value=value):
            return value
        case Failed(failure=failure):
            log.critical("Outcome asserted to succeed failed with %r", failure)
            raise UnexpectedFailureError(
                f"Outcome asserted to succeed failed with {failure!r} "
                f"(domain={failure.domain.__qualname__}, variant={failure.tag}, "
                f"payload={failure.payload!r})",
                failure=failure,
            )
        case _:
            raise InvariantViolationError(
                f"assert_succeeds() expects an Outcome, got {type(outcome).__name__}"
            )
