"""Structured diagnostics for unexpected action failures.

Records are emitted only when ``Config.verbose_action_logging`` is enabled.
Sinks are duck-typed; the default sink writes to the standard logging tree.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
import logging
import traceback
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable

log = logging.getLogger(__name__)

REDACTED = "[REDACTED]"


@dataclass(frozen=True, slots=True)
class DiagnosticRecord:
    """One unexpected failure, captured at the executor boundary."""

    action: str
    message: str
    error_type: str
    traceback: str
    data: Any

    def as_dict(self) -> dict[str, Any]:
        return {
            "action": self.action,
            "error": self.message,
            "error_type": self.error_type,
            "trace": self.traceback,
            "data": self.data,
        }


@runtime_checkable
class DiagnosticSink(Protocol):
    """Duck-typed protocol for diagnostic collaborators."""

    def record(self, entry: DiagnosticRecord) -> None: ...  # noqa: D102


class LoggingSink:
    """Write diagnostic records to a standard library logger."""

    def __init__(self, logger: logging.Logger | None = None) -> None:
        self.logger = logger or log

    def record(self, entry: DiagnosticRecord) -> None:
        self.logger.error(
            "Error in %s: %s",
            entry.action,
            entry.message,
            extra={"action_diagnostic": entry.as_dict()},
        )


class MemorySink:
    """Collect records in memory (testing and development)."""

    def __init__(self) -> None:
        self.records: list[DiagnosticRecord] = []

    def record(self, entry: DiagnosticRecord) -> None:
        self.records.append(entry)

    def reset(self) -> None:
        self.records.clear()


def redact(data: Any, is_sensitive: Callable[[str], bool]) -> Any:
    """Return a copy of ``data`` with sensitive mapping keys masked.

    Mappings, lists and tuples are walked recursively; other values are
    returned as-is.
    """
    if isinstance(data, Mapping):
        return {
            k: REDACTED
            if isinstance(k, str) and is_sensitive(k)
            else redact(v, is_sensitive)
            for k, v in data.items()
        }
    if isinstance(data, list):
        return [redact(v, is_sensitive) for v in data]
    if isinstance(data, tuple):
        return tuple(redact(v, is_sensitive) for v in data)
    return data


def build_record(
    action: str,
    exc: BaseException,
    data: Any,
    is_sensitive: Callable[[str], bool],
) -> DiagnosticRecord:
    """Capture ``exc`` with its stack context and the redacted raw input."""
    return DiagnosticRecord(
        action=action,
        message=str(exc),
        error_type=type(exc).__qualname__,
        traceback="".join(traceback.format_exception(exc)),
        data=redact(data, is_sensitive),
    )


__all__ = [
    "DiagnosticRecord",
    "DiagnosticSink",
    "LoggingSink",
    "MemorySink",
    "build_record",
    "redact",
]
