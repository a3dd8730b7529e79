"""Exception hierarchy for recourse.

Domain failures are never exceptions: they travel as values inside an
Outcome. The classes here cover the other two kinds of trouble, malformed
definitions and broken invariants, which indicate a bug in the calling code.
"""

from __future__ import annotations

from typing import Any


class RecourseError(Exception):
    """Base exception for all recourse errors."""

    def __init__(self, message: str, *, hint: str | None = None) -> None:
        super().__init__(message)
        self.hint = hint

    def __str__(self) -> str:
        """Return the message followed by the hint, when there is one."""
        msg = super().__str__()
        return f"{msg}. {self.hint}" if self.hint else msg


class DefinitionError(RecourseError):
    """A failure domain definition is malformed or tries to reopen a closed domain."""


class ConfigurationError(RecourseError):
    """Configuration validation or resolution failed."""


class InvariantViolationError(RecourseError):
    """An invariant of the library was violated by the calling code.

    These are not recoverable: they signal a mis-composed program and should
    surface loudly instead of being handled.
    """


class ExhaustivenessError(InvariantViolationError):
    """A matcher without a fallback does not cover every variant of its domains."""

    def __init__(
        self, message: str, *, missing: tuple[str, ...], hint: str | None = None
    ) -> None:
        super().__init__(message, hint=hint)
        self.missing = missing


class UnhandledFailureError(InvariantViolationError):
    """A failure reached a matcher that has neither a case nor a fallback for it."""

    def __init__(self, message: str, *, failure: Any, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.failure = failure


class UnexpectedFailureError(InvariantViolationError):
    """``assert_succeeds`` was given an outcome that failed."""

    def __init__(self, message: str, *, failure: Any, hint: str | None = None) -> None:
        super().__init__(message, hint=hint)
        self.failure = failure


class PropagationError(InvariantViolationError):
    """``fail`` or ``propagate`` was used outside of a fallible boundary."""


class ScopeStateError(InvariantViolationError):
    """A cleanup scope was used in a state that does not allow the operation."""

    def __init__(
        self,
        message: str,
        *,
        scope_name: str | None = None,
        state: str | None = None,
        hint: str | None = None,
    ) -> None:
        msg = message if scope_name is None else f"[{scope_name}] {message}"
        super().__init__(msg, hint=hint)
        self.scope_name = scope_name
        self.state = state
