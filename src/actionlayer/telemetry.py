"""Opt-in timing and counters around action runs.

Disabled telemetry is a shared stateless object whose methods do nothing.
Enabled telemetry nests scopes per execution context and fans every
measurement out to its reporters.
"""

from collections import deque
from collections.abc import Iterator
from contextlib import AbstractContextManager, contextmanager, nullcontext
from contextvars import ContextVar
import logging
import time
from typing import Any, Protocol, TypeAlias, runtime_checkable

log = logging.getLogger(__name__)

# Per-context scope path so concurrent runs never share a stack
_active_scopes: ContextVar[tuple[str, ...]] = ContextVar(
    "actionlayer_active_scopes",
    default=(),
)


@runtime_checkable
class TelemetryReporter(Protocol):
    """Duck-typed protocol for telemetry reporters."""

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None: ...  # noqa: D102
    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None: ...  # noqa: D102


class _DisabledTelemetry:
    __slots__ = ()

    is_enabled = False

    def __call__(self, name: str, **metadata: Any) -> AbstractContextManager[None]:  # noqa: ARG002
        return nullcontext()

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        pass

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        pass


def _placement(name: str) -> tuple[str, dict[str, Any]]:
    """Return the dotted path for ``name`` and its position metadata."""
    parents = _active_scopes.get()
    return ".".join((*parents, name)), {
        "depth": len(parents),
        "parent_scope": ".".join(parents) or None,
    }


class _ActiveTelemetry:
    """Scopes, metrics and counters delivered to every reporter."""

    __slots__ = ("reporters",)

    is_enabled = True

    def __init__(self, *reporters: TelemetryReporter) -> None:
        self.reporters = reporters

    def __call__(self, name: str, **metadata: Any) -> AbstractContextManager[None]:
        if not name or not isinstance(name, str):
            raise ValueError("Scope name must be a non-empty string")
        return self._scope(name, metadata)

    @contextmanager
    def _scope(self, name: str, metadata: dict[str, Any]) -> Iterator[None]:
        path, placement = _placement(name)
        token = _active_scopes.set((*_active_scopes.get(), name))
        started = time.perf_counter()
        try:
            yield
        finally:
            elapsed = time.perf_counter() - started
            _active_scopes.reset(token)
            self._emit("record_timing", path, elapsed, {**placement, **metadata})

    def metric(self, name: str, value: Any, **metadata: Any) -> None:
        """Record ``value`` under ``name`` inside the current scope."""
        path, placement = _placement(name)
        self._emit("record_metric", path, value, {**placement, **metadata})

    def count(self, name: str, increment: int = 1, **metadata: Any) -> None:
        self.metric(name, increment, metric_type="counter", **metadata)

    def _emit(self, method: str, path: str, value: Any, metadata: dict[str, Any]) -> None:
        for reporter in self.reporters:
            try:
                getattr(reporter, method)(path, value, **metadata)
            except Exception as e:
                log.error(
                    "Telemetry reporter '%s' failed: %s",
                    type(reporter).__name__,
                    e,
                    exc_info=True,
                )


_DISABLED = _DisabledTelemetry()

TelemetryContextProtocol: TypeAlias = _ActiveTelemetry | _DisabledTelemetry


def TelemetryContext(  # noqa: N802
    *reporters: TelemetryReporter, enabled: bool = False
) -> TelemetryContextProtocol:
    """Return the shared disabled telemetry, or an active one when ``enabled``.

    An active context created without reporters collects into a fresh
    ``MemoryReporter``.
    """
    if not enabled:
        return _DISABLED
    return _ActiveTelemetry(*(reporters or (MemoryReporter(),)))


class MemoryReporter:
    """Keep the most recent timings and metrics per scope in memory."""

    def __init__(self, max_entries_per_scope: int = 1000) -> None:
        self.max_entries = max_entries_per_scope
        self.timings: dict[str, deque[tuple[float, dict[str, Any]]]] = {}
        self.metrics: dict[str, deque[tuple[Any, dict[str, Any]]]] = {}

    def _bucket(self, store: dict[str, deque[Any]], scope: str) -> deque[Any]:
        return store.setdefault(scope, deque(maxlen=self.max_entries))

    def record_timing(self, scope: str, duration: float, **metadata: Any) -> None:
        self._bucket(self.timings, scope).append((duration, metadata))

    def record_metric(self, scope: str, value: Any, **metadata: Any) -> None:
        self._bucket(self.metrics, scope).append((value, metadata))

    def reset(self) -> None:
        self.timings.clear()
        self.metrics.clear()

    def as_dict(self) -> dict[str, Any]:
        """Return a plain snapshot: scope -> list of (value, metadata)."""
        return {
            "timings": {scope: list(entries) for scope, entries in self.timings.items()},
            "metrics": {scope: list(entries) for scope, entries in self.metrics.items()},
        }


__all__ = ["MemoryReporter", "TelemetryContext", "TelemetryReporter"]
