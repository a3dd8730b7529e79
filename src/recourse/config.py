"""Configuration: validated Settings resolved once into a FrozenConfig.

Resolution order is defaults < environment (``RECOURSE_*``) < overrides.
A ``.env`` file is loaded once, on first resolution, through python-dotenv.
Code that needs configuration calls ``current_config()``, which returns the
config installed by the innermost ``config_scope`` or a cached default.
"""

from __future__ import annotations

from contextlib import contextmanager
import contextvars
from dataclasses import dataclass
from functools import cache
import logging
import os
from typing import TYPE_CHECKING, Any

from pydantic import BaseModel, Field, ValidationError, field_validator

from recourse.errors import ConfigurationError

if TYPE_CHECKING:
    from collections.abc import Generator, Mapping

ENV_PREFIX = "RECOURSE_"

_LOG_LEVELS = ("CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG")


class Settings(BaseModel):
    """Pydantic schema for configuration fields, defaults and validation."""

    #: Level used when an isolated cleanup failure is logged.
    cleanup_log_level: str = Field(default="ERROR")
    #: Reject use of a scope from any thread other than the one that created it.
    enforce_thread_affinity: bool = Field(default=True)
    #: Log every failure forwarded by ``propagate`` at DEBUG.
    log_propagation: bool = Field(default=False)

    model_config = {"extra": "forbid"}

    @field_validator("cleanup_log_level", mode="before")
    @classmethod
    def normalize_log_level(cls, v: Any) -> Any:
        """Accept level names in any case; reject unknown names."""
        if isinstance(v, str):
            level = v.strip().upper()
            if level not in _LOG_LEVELS:
                raise ValueError(
                    f"cleanup_log_level must be one of {', '.join(_LOG_LEVELS)}"
                )
            return level
        return v


@dataclass(frozen=True)
class FrozenConfig:
    """Immutable configuration payload read by scopes and the propagation engine."""

    cleanup_log_level: str
    enforce_thread_affinity: bool
    log_propagation: bool

    @property
    def cleanup_log_levelno(self) -> int:
        """Numeric ``logging`` level for cleanup failures."""
        return logging.getLevelNamesMapping()[self.cleanup_log_level]


_AMBIENT: contextvars.ContextVar[FrozenConfig | None] = contextvars.ContextVar(
    "recourse_config", default=None
)

_DOTENV_LOADED: bool = False


def _try_load_dotenv() -> None:
    global _DOTENV_LOADED
    if _DOTENV_LOADED:
        return
    from dotenv import load_dotenv

    load_dotenv()
    _DOTENV_LOADED = True


def _coerce_bool(v: str) -> bool:
    return v.strip().lower() in {"1", "true", "yes", "on"}


def load_env() -> dict[str, Any]:
    """Read ``RECOURSE_*`` variables, coercing booleans per the Settings schema."""
    config: dict[str, Any] = {}
    for key, value in os.environ.items():
        if not key.startswith(ENV_PREFIX):
            continue
        field_name = key[len(ENV_PREFIX) :].lower()
        info = Settings.model_fields.get(field_name)
        if info is None:
            # Unknown variables are not ours to validate.
            continue
        config[field_name] = _coerce_bool(value) if info.annotation is bool else value
    return config


def resolve_config(overrides: Mapping[str, Any] | None = None) -> FrozenConfig:
    """Resolve configuration from defaults, environment and overrides.

    Raises:
        ConfigurationError: If the merged values fail validation.
    """
    _try_load_dotenv()
    merged = {**load_env(), **(overrides or {})}
    try:
        settings = Settings.model_validate(merged)
    except ValidationError as e:
        err = e.errors()[0]
        msg = err.get("msg") or "invalid value"
        if msg.startswith("Value error, "):
            msg = msg[len("Value error, ") :]
        field = ".".join(str(p) for p in err.get("loc", ()))
        raise ConfigurationError(
            f"Configuration validation failed for {field or 'settings'}: {msg}",
            hint=f"Check {ENV_PREFIX}* environment variables and overrides.",
        ) from e
    return FrozenConfig(**settings.model_dump())


@cache
def _default_config() -> FrozenConfig:
    return resolve_config()


def current_config() -> FrozenConfig:
    """Return the ambient config, or the default resolution when none is set."""
    ambient = _AMBIENT.get()
    return ambient if ambient is not None else _default_config()


def reset_default_config() -> None:
    """Forget the cached default so the next lookup re-reads the environment."""
    _default_config.cache_clear()


@contextmanager
def config_scope(
    cfg_or_overrides: Mapping[str, Any] | FrozenConfig | None = None,
    **overrides: Any,
) -> Generator[FrozenConfig]:
    """Install a configuration for the duration of a block.

    Example:
        with config_scope(log_propagation=True):
            outcome = attempt(operation)
    """
    if isinstance(cfg_or_overrides, FrozenConfig):
        cfg = cfg_or_overrides
    else:
        cfg = resolve_config({**(cfg_or_overrides or {}), **overrides})

    token = _AMBIENT.set(cfg)
    try:
        yield cfg
    finally:
        _AMBIENT.reset(token)
