"""Single catch site that turns every action outcome into an ``ActionResult``.

The executor runs an operation, classifies whatever it raises, and returns a
result. Failures never cross this boundary as exceptions; only
``BaseException`` subclasses that are not ``Exception`` (interrupts, exits,
task cancellation) propagate.

Telemetry note: when ``Config.telemetry_enabled`` is set, each run is timed
under the ``action.run`` scope and mapped failures are counted under
``action.failure`` with a ``kind`` tag.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any

from actionlayer.config import Config
from actionlayer.diagnostics import LoggingSink, build_record
from actionlayer.errors import (
    ActionError,
    GenericFailure,
    PermissionFailure,
    UnexpectedFailure,
    ValidationFailure,
)
from actionlayer.result import ActionResult
from actionlayer.telemetry import TelemetryContext

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from actionlayer.diagnostics import DiagnosticSink
    from actionlayer.telemetry import TelemetryContextProtocol, TelemetryReporter

log = logging.getLogger(__name__)

UNEXPECTED_MESSAGE = "An unexpected error occurred"


class ActionExecutor:
    """Run operations and normalize their outcomes.

    The executor keeps no per-call state, so one instance can serve many
    concurrent callers as long as the operations themselves are safe.
    """

    def __init__(
        self,
        config: Config | None = None,
        *,
        sink: DiagnosticSink | None = None,
        reporters: tuple[TelemetryReporter, ...] = (),
    ) -> None:
        """Initialize the executor.

        Args:
            config: Execution configuration; defaults to ``Config()``.
            sink: Receives diagnostic records for unexpected failures when
                verbose action logging is enabled. Defaults to ``LoggingSink``.
            reporters: Telemetry reporters used when telemetry is enabled.
        """
        self.config = config if config is not None else Config()
        self.sink: DiagnosticSink = sink if sink is not None else LoggingSink()
        self._telemetry: TelemetryContextProtocol = TelemetryContext(
            *reporters, enabled=self.config.telemetry_enabled
        )

    def run(
        self,
        operation: Callable[[Any], ActionResult],
        data: Any,
        *,
        name: str | None = None,
    ) -> ActionResult:
        """Invoke ``operation(data)`` and return its result or a mapped failure."""
        action = name or _operation_name(operation)
        ctx = self._telemetry
        with ctx("action.run", action=action):
            try:
                outcome = operation(data)
            except Exception as e:
                return self._map_failure(e, action, data)
            return self._check_outcome(outcome, action, data)

    async def arun(
        self,
        operation: Callable[[Any], Awaitable[ActionResult]],
        data: Any,
        *,
        name: str | None = None,
    ) -> ActionResult:
        """Coroutine counterpart of ``run`` with the same contract."""
        action = name or _operation_name(operation)
        ctx = self._telemetry
        with ctx("action.run", action=action):
            try:
                outcome = await operation(data)
            except Exception as e:
                return self._map_failure(e, action, data)
            return self._check_outcome(outcome, action, data)

    def _check_outcome(self, outcome: Any, action: str, data: Any) -> ActionResult:
        if isinstance(outcome, ActionResult):
            return outcome
        error = UnexpectedFailure(
            f"{action} returned {type(outcome).__name__}; expected ActionResult"
        )
        return self._map_failure(error, action, data)

    def _map_failure(self, exc: Exception, action: str, data: Any) -> ActionResult:
        if isinstance(exc, ValidationFailure):
            self._count("validation", action)
            log.debug("Validation failed in %s: %s", action, list(exc.errors))
            return ActionResult.validation_error(exc.errors, exc.message)

        if isinstance(exc, PermissionFailure | GenericFailure):
            kind = "permission" if isinstance(exc, PermissionFailure) else "generic"
            self._count(kind, action)
            log.debug("%s failure in %s (%s): %s", kind, action, exc.status_code, exc.message)
            return ActionResult.error(exc.message, status_code=exc.status_code)

        self._count("unexpected", action)
        if self.config.verbose_action_logging:
            self._record(exc, action, data)
        # The hint of a library error is for developers, never the caller
        message = exc.message if isinstance(exc, ActionError) else str(exc)
        return ActionResult.error(message or UNEXPECTED_MESSAGE, status_code=500)

    def _record(self, exc: Exception, action: str, data: Any) -> None:
        record = build_record(action, exc, data, self.config.is_sensitive_key)
        try:
            self.sink.record(record)
        except Exception as e:
            # A failing sink must not turn a mapped failure into a raised one
            log.error(
                "Diagnostic sink '%s' failed: %s",
                type(self.sink).__name__,
                e,
                exc_info=True,
            )

    def _count(self, kind: str, action: str) -> None:
        self._telemetry.count("action.failure", kind=kind, action=action)


def _operation_name(operation: Any) -> str:
    owner = getattr(operation, "__self__", None)
    if owner is not None:
        return type(owner).__qualname__
    return getattr(operation, "__qualname__", None) or type(operation).__qualname__


def create_executor(
    config: Config | None = None,
    *,
    sink: DiagnosticSink | None = None,
) -> ActionExecutor:
    """Create an executor, resolving configuration from the environment if omitted.

    This is the only place where ambient configuration is resolved.
    """
    from actionlayer.config import resolve_config

    return ActionExecutor(config if config is not None else resolve_config(), sink=sink)


__all__ = ["ActionExecutor", "create_executor"]
