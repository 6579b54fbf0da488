"""Exception hierarchy for actionlayer.

Failures raised inside an action are caught exactly once, by the executor,
and mapped to an ``ActionResult``. The remaining errors signal library misuse
(bad configuration, malformed error containers) and propagate to the caller.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from collections.abc import Mapping, Sequence


class ActionError(Exception):
    """Base exception for all actionlayer errors."""

    def __init__(self, message: str | None, *, hint: str | None = None) -> None:
        self.hint = hint
        # Keep the bare message in args for clean programmatic access
        super().__init__(str(message) if message is not None else "None")

    @property
    def message(self) -> str:
        """Return the message without the hint."""
        return str(self.args[0]) if self.args else ""

    def __str__(self) -> str:
        """Return the full error message including the hint."""
        msg = super().__str__()
        return f"{msg}. {self.hint}" if self.hint else msg


class ConfigurationError(ActionError):
    """Configuration or rule definitions are invalid."""


class InvalidErrorStructureError(ActionError):
    """An error container could not be normalized, or a result invariant broke."""

    def __init__(
        self,
        message: str = "Invalid error structure provided",
        *,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)


# --- Failures mapped by the executor ---


class ActionFailure(ActionError):
    """A classified failure raised by an action and mapped to a result."""

    status_code: int = 400


def _failure_status(status_code: int) -> int:
    # Failed results never carry informational or success codes
    if (
        isinstance(status_code, bool)
        or not isinstance(status_code, int)
        or not 300 <= status_code <= 599
    ):
        raise ConfigurationError(
            f"Failure status_code must be an int within 300..599, got {status_code!r}"
        )
    return status_code


class ValidationFailure(ActionFailure):
    """Client-supplied input failed its rules (422)."""

    status_code = 422

    def __init__(
        self,
        errors: Mapping[str, Sequence[str] | str] | Any,
        message: str = "Validation error",
        *,
        error_code: str | None = "VALIDATION_ERROR",
        hint: str | None = None,
    ) -> None:
        # Deferred to avoid an import cycle with result normalization
        from actionlayer.result import normalize_errors

        super().__init__(message, hint=hint)
        self.errors = normalize_errors(errors)
        self.error_code = error_code

    def as_payload(self) -> dict[str, Any]:
        """Return the error code and per-field messages as plain data."""
        return {
            "error_code": self.error_code or "VALIDATION_ERROR",
            "errors": {k: list(v) for k, v in self.errors.items()},
        }


class PermissionFailure(ActionFailure):
    """The caller is unauthenticated (401) or lacks a capability (403)."""

    def __init__(
        self,
        message: str = "You do not have the permissions required for this action",
        status_code: int = 403,
        *,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = _failure_status(status_code)


class GenericFailure(ActionFailure):
    """A recoverable domain error with a caller-chosen status code."""

    def __init__(
        self,
        message: str = "An error occurred",
        status_code: int = 400,
        *,
        hint: str | None = None,
    ) -> None:
        super().__init__(message, hint=hint)
        self.status_code = _failure_status(status_code)


class UnexpectedFailure(ActionFailure):
    """Anything not anticipated by the action; always 500."""

    status_code = 500


__all__ = [
    "ActionError",
    "ActionFailure",
    "ConfigurationError",
    "GenericFailure",
    "InvalidErrorStructureError",
    "PermissionFailure",
    "UnexpectedFailure",
    "ValidationFailure",
]
