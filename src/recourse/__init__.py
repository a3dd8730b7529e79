"""recourse: failures as values, explicit propagation, scoped cleanup.

Public API:
    - FailureDomain / variant(): closed, typed failure domains
    - attempt() / @fallible / fail() / propagate(): the fallible boundary
    - handle() / Matcher / recover(): selective, exhaustiveness-checked handling
    - assert_succeeds(): unwrap an outcome that must not fail
    - scoped() / Scope / defer(): cleanup actions fired LIFO on scope exit
"""

from __future__ import annotations

import logging

from recourse.cleanup import (
    Scope,
    ScopeState,
    current_scope,
    defer,
    enter_scope,
    exit_scope,
    register,
    scoped,
)
from recourse.config import (
    FrozenConfig,
    Settings,
    config_scope,
    current_config,
    resolve_config,
)
from recourse.errors import (
    ConfigurationError,
    DefinitionError,
    ExhaustivenessError,
    InvariantViolationError,
    PropagationError,
    RecourseError,
    ScopeStateError,
    UnexpectedFailureError,
    UnhandledFailureError,
)
from recourse.failures import FailureDomain, is_failure, variant
from recourse.handling import Matcher, handle, recover, unpack
from recourse.outcome import (
    Failed,
    Outcome,
    Success,
    assert_succeeds,
    attempt,
    fail,
    fallible,
    propagate,
)

try:
    from importlib.metadata import PackageNotFoundError, version

    __version__ = version("recourse")
except PackageNotFoundError:
    __version__ = "0.0.0+unknown"

# Library-level NullHandler: stay silent unless the consumer configures logging.
logging.getLogger("recourse").addHandler(logging.NullHandler())

__all__ = [
    "ConfigurationError",
    "DefinitionError",
    "ExhaustivenessError",
    "Failed",
    "FailureDomain",
    "FrozenConfig",
    "InvariantViolationError",
    "Matcher",
    "Outcome",
    "PropagationError",
    "RecourseError",
    "Scope",
    "ScopeState",
    "ScopeStateError",
    "Settings",
    "Success",
    "UnexpectedFailureError",
    "UnhandledFailureError",
    "assert_succeeds",
    "attempt",
    "config_scope",
    "current_config",
    "current_scope",
    "defer",
    "enter_scope",
    "exit_scope",
    "fail",
    "fallible",
    "handle",
    "is_failure",
    "propagate",
    "recover",
    "register",
    "resolve_config",
    "scoped",
    "unpack",
    "variant",
]
