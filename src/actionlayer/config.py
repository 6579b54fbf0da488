"""Configuration: frozen Config passed explicitly to the executor."""

from __future__ import annotations

from dataclasses import dataclass, fields
import os
from typing import Any

from dotenv import load_dotenv

from actionlayer.errors import ConfigurationError

VERBOSE_LOGGING_ENV = "ACTIONLAYER_VERBOSE_ACTION_LOGGING"
TELEMETRY_ENV = "ACTIONLAYER_TELEMETRY"

_TRUTHY = frozenset({"1", "true", "yes", "on"})
_FALSY = frozenset({"0", "false", "no", "off", ""})

DEFAULT_REDACT_KEYS: frozenset[str] = frozenset(
    {
        "api_key",
        "apikey",
        "token",
        "secret",
        "password",
        "passwd",
        "credential",
        "authorization",
    }
)


@dataclass(frozen=True)
class Config:
    """Immutable configuration for action execution.

    Example:
        executor = ActionExecutor(Config(verbose_action_logging=True))
    """

    #: Emit one diagnostic record per unexpected failure.
    verbose_action_logging: bool = False
    #: Time action runs and count failures through telemetry reporters.
    telemetry_enabled: bool = False
    #: Input keys containing any of these tokens are masked in diagnostics.
    redact_keys: frozenset[str] = DEFAULT_REDACT_KEYS

    def __post_init__(self) -> None:
        """Validate field types and normalize redact keys."""
        for name in ("verbose_action_logging", "telemetry_enabled"):
            value = getattr(self, name)
            if not isinstance(value, bool):
                raise ConfigurationError(
                    f"{name} must be a bool, got {type(value).__name__}",
                    hint="Use resolve_config() to parse values from the environment.",
                )
        if isinstance(self.redact_keys, str):
            raise ConfigurationError(
                "redact_keys must be a collection of key tokens, not a string",
                hint="Pass e.g. frozenset({'password', 'token'}).",
            )
        object.__setattr__(
            self, "redact_keys", frozenset(k.lower() for k in self.redact_keys)
        )

    def is_sensitive_key(self, name: str) -> bool:
        """Return True if an input key should be masked in diagnostics."""
        lower = name.lower()
        return any(token in lower for token in self.redact_keys)


def _parse_bool(name: str, raw: str) -> bool:
    value = raw.strip().lower()
    if value in _TRUTHY:
        return True
    if value in _FALSY:
        return False
    raise ConfigurationError(
        f"Invalid boolean for {name}: {raw!r}",
        hint="Use one of 1/0, true/false, yes/no, on/off.",
    )


def resolve_config(**overrides: Any) -> Config:
    """Resolve a Config from the environment, with explicit overrides winning.

    Precedence: keyword overrides > environment (including ``.env``) > defaults.
    This is the only place where ambient configuration is read.
    """
    known = {f.name for f in fields(Config)}
    unknown = set(overrides) - known
    if unknown:
        raise ConfigurationError(
            f"Unknown configuration keys: {', '.join(sorted(unknown))}",
            hint=f"Valid keys: {', '.join(sorted(known))}",
        )

    load_dotenv()
    values: dict[str, Any] = {}
    for field_name, env_var in (
        ("verbose_action_logging", VERBOSE_LOGGING_ENV),
        ("telemetry_enabled", TELEMETRY_ENV),
    ):
        raw = os.environ.get(env_var)
        if raw is not None:
            values[field_name] = _parse_bool(env_var, raw)
    values.update(overrides)
    return Config(**values)


__all__ = ["DEFAULT_REDACT_KEYS", "Config", "resolve_config"]
