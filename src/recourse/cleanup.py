"""Scoped cleanup: register release actions, fire them LIFO on scope exit.

A ``Scope`` owns the cleanup actions registered while it is open. Exiting it
fires every action exactly once, last registered first, whatever caused the
exit. Used as a context manager the scope exits on fallthrough, on ``return``,
on a forwarded failure and on an exception alike, and its actions have all run
before control reaches the caller.

    with scoped("process_file") as scope:
        handle = open_resource(name)
        scope.register(close_resource, handle)
        ...

An action that raises is isolated: the error is logged and kept in
``scope.cleanup_errors`` and the remaining actions still fire.
"""

from __future__ import annotations

import contextvars
from enum import Enum
import logging
import threading
from typing import TYPE_CHECKING, Any, Literal

from recourse.config import current_config
from recourse.errors import ScopeStateError
from recourse.outcome import FailureSignal

if TYPE_CHECKING:
    from collections.abc import Callable
    from types import TracebackType

    from recourse.config import FrozenConfig

log = logging.getLogger(__name__)

_active_scopes: contextvars.ContextVar[tuple[Scope, ...]] = contextvars.ContextVar(
    "recourse_active_scopes", default=()
)


class ScopeState(str, Enum):
    """Lifecycle of a scope: OPEN -> EXITING -> CLOSED."""

    OPEN = "open"
    EXITING = "exiting"
    CLOSED = "closed"


class Scope:
    """An ordered, single-use registry of cleanup actions."""

    __slots__ = (
        "_actions",
        "_config",
        "_entered",
        "_owner",
        "_state",
        "_token",
        "cleanup_errors",
        "name",
    )

    def __init__(
        self, name: str | None = None, *, config: FrozenConfig | None = None
    ) -> None:
        self.name = name
        self.cleanup_errors: list[BaseException] = []
        self._actions: list[Callable[[], Any]] = []
        self._config = config or current_config()
        self._owner = threading.get_ident()
        self._state = ScopeState.OPEN
        self._entered = False
        self._token: contextvars.Token[tuple[Scope, ...]] | None = None

    @property
    def state(self) -> ScopeState:
        return self._state

    def __len__(self) -> int:
        """Number of actions still pending."""
        return len(self._actions)

    def __repr__(self) -> str:
        return (
            f"Scope(name={self.name!r}, state={self._state.value}, "
            f"pending={len(self._actions)})"
        )

    def register[F: Callable[..., Any]](
        self, action: F, /, *args: Any, **kwargs: Any
    ) -> F:
        """Append *action* to fire on exit, optionally bound to arguments.

        Returns *action* unchanged, so this also works as a decorator.
        """
        self._check_thread("register")
        if self._state is not ScopeState.OPEN:
            raise ScopeStateError(
                f"cannot register a cleanup action: scope is {self._state.value}",
                scope_name=self.name,
                state=self._state.value,
            )
        if not callable(action):
            raise TypeError(
                f"cleanup action must be callable, got {type(action).__name__}"
            )
        if args or kwargs:
            self._actions.append(lambda: action(*args, **kwargs))
        else:
            self._actions.append(action)
        return action

    def exit(self) -> None:
        """Fire every pending action, last registered first, then close the scope.

        Raises:
            ScopeStateError: The scope is already exiting or closed.
        """
        self._check_thread("exit")
        if self._state is not ScopeState.OPEN:
            raise ScopeStateError(
                f"cannot exit: scope is already {self._state.value}",
                scope_name=self.name,
                state=self._state.value,
                hint="Each scope is exited exactly once.",
            )

        self._state = ScopeState.EXITING
        fired = len(self._actions)
        interrupt: BaseException | None = None
        try:
            while self._actions:
                action = self._actions.pop()
                try:
                    action()
                except (Exception, FailureSignal) as exc:
                    # Cleanup must never mask the reason the scope is exiting.
                    self.cleanup_errors.append(exc)
                    log.log(
                        self._config.cleanup_log_levelno,
                        "Cleanup action %r in scope %r failed: %s",
                        action,
                        self.name,
                        exc,
                        exc_info=exc,
                    )
                except BaseException as exc:
                    if interrupt is None:
                        interrupt = exc
        finally:
            self._state = ScopeState.CLOSED

        log.debug(
            "Scope %r closed after firing %d action(s), %d failed",
            self.name,
            fired,
            len(self.cleanup_errors),
        )
        if interrupt is not None:
            raise interrupt

    def __enter__(self) -> Scope:
        self._check_thread("enter")
        if self._entered or self._state is not ScopeState.OPEN:
            raise ScopeStateError(
                "a scope can be entered only once, while open",
                scope_name=self.name,
                state=self._state.value,
            )
        self._entered = True
        self._token = _active_scopes.set((*_active_scopes.get(), self))
        return self

    def __exit__(
        self,
        _: type[BaseException] | None,
        __: BaseException | None,
        ___: TracebackType | None,
    ) -> Literal[False]:
        if self._token is not None:
            _active_scopes.reset(self._token)
            self._token = None
        self.exit()
        return False

    def _check_thread(self, operation: str) -> None:
        if (
            self._config.enforce_thread_affinity
            and threading.get_ident() != self._owner
        ):
            raise ScopeStateError(
                f"cannot {operation} a scope from a thread other than its creator",
                scope_name=self.name,
                state=self._state.value,
                hint="Scopes are confined to the thread that created them.",
            )


def enter_scope(name: str | None = None) -> Scope:
    """Create a new, empty, open scope.

    The scope becomes the active one for ``current_scope`` and ``defer`` only
    while it is entered with ``with``. A scope driven by hand through
    ``register`` and ``exit_scope`` is never active.
    """
    return Scope(name)


scoped = enter_scope


def register[F: Callable[..., Any]](
    scope: Scope, action: F, /, *args: Any, **kwargs: Any
) -> F:
    """Append *action* to *scope*'s pending cleanup actions."""
    return scope.register(action, *args, **kwargs)


def exit_scope(scope: Scope) -> None:
    """Fire *scope*'s pending actions in reverse order and close it."""
    scope.exit()


def current_scope() -> Scope | None:
    """Return the innermost scope currently entered with ``with``, if any."""
    stack = _active_scopes.get()
    return stack[-1] if stack else None


def defer[F: Callable[..., Any]](action: F, /, *args: Any, **kwargs: Any) -> F:
    """Register *action* on the innermost scope entered with ``with``.

    Raises:
        ScopeStateError: No scope is active. Scopes opened with
            ``enter_scope`` and not entered with ``with`` do not count.
    """
    scope = current_scope()
    if scope is None:
        raise ScopeStateError(
            "defer() used outside of an active scope",
            hint="Wrap the block in `with scoped():` or call scope.register().",
        )
    return scope.register(action, *args, **kwargs)
