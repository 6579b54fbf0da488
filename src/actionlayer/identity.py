"""Caller identity and the explicit permission gate."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from typing import Any

from actionlayer.errors import ConfigurationError, PermissionFailure

WILDCARD = "*"

UNAUTHENTICATED_MESSAGE = "Authentication is required to perform this action"
FORBIDDEN_MESSAGE = "You do not have the permissions required for this action"


def capability_names(capabilities: Iterable[str]) -> tuple[str, ...]:
    """Return ``capabilities`` as a tuple, rejecting a bare string."""
    if isinstance(capabilities, str):
        raise ConfigurationError(
            f"Capabilities must be a collection of names, not a string: {capabilities!r}",
            hint=f"Wrap a single capability in a list: [{capabilities!r}].",
        )
    return tuple(capabilities)


@dataclass(frozen=True, slots=True)
class CallerIdentity:
    """Who is invoking an action and which capabilities they hold.

    Passed explicitly into ``Action.execute``; nothing is read from ambient
    request state.
    """

    subject: Any = None
    capabilities: frozenset[str] = field(default_factory=frozenset)
    authenticated: bool = False

    def __post_init__(self) -> None:
        object.__setattr__(
            self, "capabilities", frozenset(capability_names(self.capabilities))
        )

    @classmethod
    def anonymous(cls) -> CallerIdentity:
        return cls()

    @classmethod
    def of(cls, subject: Any, *capabilities: str) -> CallerIdentity:
        """Create an authenticated identity holding ``capabilities``."""
        return cls(subject=subject, capabilities=frozenset(capabilities), authenticated=True)

    def can(self, capability: str) -> bool:
        return self.authenticated and (
            WILDCARD in self.capabilities or capability in self.capabilities
        )

    def missing(self, capabilities: Iterable[str]) -> tuple[str, ...]:
        """Return the required capabilities this caller lacks, in order."""
        return tuple(c for c in capabilities if not self.can(c))


def check_permissions(
    caller: CallerIdentity | None,
    capabilities: Iterable[str],
) -> None:
    """Raise a ``PermissionFailure`` unless ``caller`` holds every capability.

    An empty requirement list is a no-op, even for anonymous callers.

    Raises:
        PermissionFailure: 401 when unauthenticated, 403 when a capability is missing.
    """
    required = capability_names(capabilities)
    if not required:
        return
    if caller is None or not caller.authenticated:
        raise PermissionFailure(UNAUTHENTICATED_MESSAGE, status_code=401)
    missing = caller.missing(required)
    if missing:
        raise PermissionFailure(
            FORBIDDEN_MESSAGE,
            status_code=403,
            hint=f"Missing capabilities: {', '.join(missing)}",
        )


__all__ = ["CallerIdentity", "capability_names", "check_permissions"]
