"""Selective handling of failures by domain and variant.

A ``Matcher`` maps failure variants (or whole domains) to handlers. It is
checked when it is built, before any outcome reaches it: every case must be
reachable and, unless a fallback is given, every variant of every domain it
names must be covered.
"""

from __future__ import annotations

import functools
from typing import TYPE_CHECKING, Any

from recourse.errors import (
    ExhaustivenessError,
    InvariantViolationError,
    UnhandledFailureError,
)
from recourse.failures import FailureDomain, is_domain, is_variant
from recourse.outcome import Failed, Success

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable, Mapping

    from recourse.outcome import Outcome

type Handler[R] = Callable[[Any], R]
type Cases[R] = (
    Mapping[type[FailureDomain], Handler[R]]
    | Iterable[tuple[type[FailureDomain], Handler[R]]]
)


class Matcher[R]:
    """Dispatch an outcome to exactly one handler.

    Args:
        cases: Variant or domain classes paired with handlers, in priority
            order. A domain key matches every variant of that domain.
        fallback: Handler for failures no case matches.
        on_success: Handler for the value of a ``Success``; when omitted the
            value itself is returned.
        domains: Further domains that must be fully covered when there is no
            fallback, in addition to those the cases name.

    Raises:
        InvariantViolationError: A key is not a failure variant or domain, or
            is already covered by an earlier key.
        ExhaustivenessError: There is no fallback and either there are no
            cases or some variant of a named domain has no case.
    """

    __slots__ = ("_cases", "_fallback", "_on_success")

    def __init__(
        self,
        cases: Cases[R],
        *,
        fallback: Handler[R] | None = None,
        on_success: Callable[[Any], R] | None = None,
        domains: Iterable[type[FailureDomain]] = (),
    ) -> None:
        pairs = list(cases.items()) if hasattr(cases, "items") else list(cases)
        self._cases: tuple[tuple[type[FailureDomain], Handler[R]], ...] = (
            _validated(pairs, exhaustive=fallback is None, domains=domains)
        )
        self._fallback = fallback
        self._on_success = on_success

    def __call__(self, outcome: Outcome[Any, Any]) -> R:
        """Run the handler selected by *outcome*."""
        match outcome:
            case Success(value=value):
                return self._on_success(value) if self._on_success else value
            case Failed(failure=failure):
                handler = self.select(failure)
                if handler is None:
                    raise UnhandledFailureError(
                        f"No case handles {failure!r}",
                        failure=failure,
                        hint="Add a case for its domain or pass fallback=...",
                    )
                return handler(failure)
            case _:
                raise InvariantViolationError(
                    f"Matcher expects an Outcome, got {type(outcome).__name__}"
                )

    def select(self, failure: FailureDomain) -> Handler[R] | None:
        """Return the handler for *failure*: first matching case, else fallback."""
        for key, handler in self._cases:
            if isinstance(failure, key):
                return handler
        return self._fallback


def _covered(key: type[FailureDomain]) -> set[type[FailureDomain]]:
    return set(key.variants()) if is_domain(key) else {key}


def _validated(
    pairs: list[tuple[type[FailureDomain], Handler[Any]]],
    *,
    exhaustive: bool,
    domains: Iterable[type[FailureDomain]] = (),
) -> tuple[tuple[type[FailureDomain], Handler[Any]], ...]:
    seen: set[type[FailureDomain]] = set()
    required: dict[type[FailureDomain], None] = {}
    for key, handler in pairs:
        if not (is_variant(key) or is_domain(key)):
            raise InvariantViolationError(
                f"Matcher case {key!r} is not a failure variant or domain"
            )
        if not callable(handler):
            raise InvariantViolationError(
                f"Matcher case for {key.__qualname__} has a non-callable handler"
            )
        covered = _covered(key)
        if covered <= seen:
            raise InvariantViolationError(
                f"Matcher case {key.__qualname__} is unreachable",
                hint="An earlier case already matches all of its variants.",
            )
        seen |= covered
        required[key.domain] = None

    if exhaustive and not pairs:
        raise ExhaustivenessError(
            "Matcher has no cases and no fallback",
            missing=(),
            hint="Add cases for the failures to handle or pass fallback=...",
        )
    if exhaustive:
        for domain in domains:
            required[domain.domain] = None
        missing = tuple(
            v.__qualname__
            for domain in required
            for v in domain.variants()
            if v not in seen
        )
        if missing:
            raise ExhaustivenessError(
                f"Matcher does not cover {', '.join(missing)}",
                missing=missing,
                hint="Add the missing cases or pass fallback=...",
            )
    return tuple(pairs)


def handle[R](
    outcome: Outcome[Any, Any],
    cases: Cases[R],
    *,
    fallback: Handler[R] | None = None,
    on_success: Callable[[Any], R] | None = None,
) -> R:
    """Build a ``Matcher`` from *cases* and apply it to *outcome*.

    Without a fallback, the domain of a failed outcome must be fully covered
    too, so a failure from a domain the cases never name is rejected before
    any handler runs.
    """
    extra = (outcome.failure.domain,) if isinstance(outcome, Failed) else ()
    return Matcher(cases, fallback=fallback, on_success=on_success, domains=extra)(
        outcome
    )


def recover(outcome: Outcome[Any, Any], cases: Cases[Any]) -> Outcome[Any, Any]:
    """Handle some failure kinds and forward the rest unchanged.

    A handler may return an Outcome, which is passed through as is; any other
    return value becomes ``Success``.
    """
    if not isinstance(outcome, Failed):
        return outcome
    handler = Matcher(cases, fallback=_forward).select(outcome.failure)
    if handler is _forward or handler is None:
        return outcome
    result = handler(outcome.failure)
    return result if isinstance(result, (Success, Failed)) else Success(result)


def _forward(failure: FailureDomain) -> Failed[Any]:
    return Failed(failure)


def unpack[R](fn: Callable[..., R]) -> Handler[R]:
    """Adapt ``fn(**payload)`` into a handler that takes the failure value."""

    @functools.wraps(fn)
    def handler(failure: FailureDomain) -> R:
        return fn(**failure.payload)

    return handler
