"""Immutable outcome value shared by every action consumer.

An ``ActionResult`` is built once through one of three named constructors and
read thereafter. Error containers are normalized at construction into a
read-only mapping of ``field -> tuple[str, ...]`` so boundary adapters never
branch on the container's original type.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
import dataclasses
from types import MappingProxyType
from typing import Any, TypeAlias

from actionlayer.errors import InvalidErrorStructureError

ErrorMap: TypeAlias = Mapping[str, tuple[str, ...]]

_EMPTY_ERRORS: ErrorMap = MappingProxyType({})

DEFAULT_SUCCESS_MESSAGE = "Operation succeeded"
DEFAULT_ERROR_MESSAGE = "An error occurred"
DEFAULT_VALIDATION_MESSAGE = "Validation error"


def _messages_for(field: str, value: Any) -> tuple[str, ...]:
    if isinstance(value, str):
        return (value,)
    if isinstance(value, Iterable) and not isinstance(value, Mapping | bytes):
        messages = tuple(value)
        bad = [m for m in messages if not isinstance(m, str)]
        if bad:
            raise InvalidErrorStructureError(
                f"Error messages for {field!r} must be strings, got {type(bad[0]).__name__}"
            )
        return messages
    raise InvalidErrorStructureError(
        f"Errors for {field!r} must be a string or a sequence of strings, "
        f"got {type(value).__name__}",
        hint="Use a mapping of field name to a list of messages.",
    )


def _from_pydantic_errors(items: Iterable[Mapping[str, Any]]) -> dict[str, list[str]]:
    out: dict[str, list[str]] = {}
    for item in items:
        loc = item.get("loc") or ("__root__",)
        field = ".".join(str(part) for part in loc)
        out.setdefault(field, []).append(str(item.get("msg", "")))
    return out


def normalize_errors(errors: Any) -> ErrorMap:
    """Normalize an error container into ``field -> tuple[str, ...]``.

    Accepts ``None``, a mapping of field to message(s), an object exposing
    ``to_dict()`` (message-bag style), or a pydantic ``ValidationError``.
    Fields with no messages are dropped.

    Raises:
        InvalidErrorStructureError: When the container cannot be interpreted.
    """
    if errors is None:
        return _EMPTY_ERRORS
    if isinstance(errors, MappingProxyType) and all(
        isinstance(v, tuple) for v in errors.values()
    ):
        return errors

    raw: Any = errors
    if not isinstance(raw, Mapping):
        to_dict = getattr(raw, "to_dict", None)
        pydantic_errors = getattr(raw, "errors", None)
        if callable(to_dict):
            raw = to_dict()
        elif callable(pydantic_errors):
            raw = _from_pydantic_errors(pydantic_errors())
        if not isinstance(raw, Mapping):
            raise InvalidErrorStructureError(
                f"Cannot normalize errors of type {type(errors).__name__}",
                hint="Use a mapping of field name to a list of messages.",
            )

    frozen: dict[str, tuple[str, ...]] = {}
    for field, value in raw.items():
        if not isinstance(field, str):
            raise InvalidErrorStructureError(
                f"Error keys must be field names (str), got {type(field).__name__}"
            )
        messages = _messages_for(field, value)
        if messages:
            frozen[field] = messages
    return MappingProxyType(frozen) if frozen else _EMPTY_ERRORS


@dataclasses.dataclass(frozen=True, slots=True)
class Response:
    """Protocol-neutral response: JSON-ready body plus a status side-channel."""

    body: dict[str, Any]
    status_code: int


@dataclasses.dataclass(frozen=True, slots=True)
class ActionResult:
    """Outcome of a business operation.

    Prefer the named constructors ``ok``, ``error`` and ``validation_error``;
    direct construction still enforces the invariants:

    - a successful result carries no errors
    - a failed result never carries a 2xx status code
    """

    success: bool
    data: Any = None
    message: str = ""
    status_code: int = 200
    errors: ErrorMap = dataclasses.field(default_factory=lambda: _EMPTY_ERRORS)

    def __post_init__(self) -> None:
        """Normalize errors and enforce result invariants."""
        object.__setattr__(self, "errors", normalize_errors(self.errors))
        if isinstance(self.status_code, bool) or not isinstance(self.status_code, int):
            raise InvalidErrorStructureError(
                f"status_code must be an int, got {type(self.status_code).__name__}"
            )
        if not 100 <= self.status_code <= 599:
            raise InvalidErrorStructureError(
                f"status_code must be within 100..599, got {self.status_code}"
            )
        if self.success and self.errors:
            raise InvalidErrorStructureError(
                "A successful result cannot carry errors",
                hint="Use ActionResult.error() or validation_error() instead.",
            )
        if not self.success and 200 <= self.status_code < 300:
            raise InvalidErrorStructureError(
                f"A failed result cannot use success status {self.status_code}",
                hint="Use a 4xx or 5xx status code for errors.",
            )

    # --- Named constructors ---

    @classmethod
    def ok(
        cls,
        data: Any = None,
        message: str = DEFAULT_SUCCESS_MESSAGE,
        status_code: int = 200,
    ) -> ActionResult:
        """Create a successful result."""
        return cls(success=True, data=data, message=message, status_code=status_code)

    @classmethod
    def error(
        cls,
        message: str = DEFAULT_ERROR_MESSAGE,
        errors: Any = None,
        status_code: int = 400,
        data: Any = None,
    ) -> ActionResult:
        """Create an error result."""
        return cls(
            success=False,
            data=data,
            message=message,
            status_code=status_code,
            errors=normalize_errors(errors),
        )

    @classmethod
    def validation_error(
        cls,
        errors: Any,
        message: str = DEFAULT_VALIDATION_MESSAGE,
    ) -> ActionResult:
        """Create a validation error result; the status is always 422."""
        return cls(
            success=False,
            message=message,
            status_code=422,
            errors=normalize_errors(errors),
        )

    # --- Accessors ---

    def is_success(self) -> bool:
        return self.success

    def is_error(self) -> bool:
        return not self.success

    def first_error(self, field: str) -> str | None:
        """Return the first message recorded for ``field``, if any."""
        messages = self.errors.get(field)
        return messages[0] if messages else None

    # --- Serializers ---

    def _errors_as_lists(self) -> dict[str, list[str]]:
        return {field: list(messages) for field, messages in self.errors.items()}

    def to_response(self) -> Response:
        """Return the ``{success, data, message, errors}`` body and status code."""
        return Response(
            body={
                "success": self.success,
                "data": self.data,
                "message": self.message,
                "errors": self._errors_as_lists(),
            },
            status_code=self.status_code,
        )

    def to_flat_map(self) -> dict[str, str]:
        """Return ``field -> first message`` for form-binding consumers."""
        return {field: messages[0] for field, messages in self.errors.items()}

    def to_flash_data(self) -> dict[str, Any]:
        """Return the payload flashed to the session on web redirects."""
        return {
            "success": self.success,
            "message": self.message,
            "errors": self._errors_as_lists(),
        }

    def to_dict(self) -> dict[str, Any]:
        """Return the response body plus ``status_code``."""
        return {**self.to_response().body, "status_code": self.status_code}


__all__ = ["ActionResult", "ErrorMap", "Response", "normalize_errors"]
