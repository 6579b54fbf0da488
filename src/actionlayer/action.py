"""Template-method base classes for business actions.

A concrete action implements ``handle``; callers use ``execute``, which runs
``handle`` through an ``ActionExecutor`` so every outcome comes back as an
``ActionResult``.

Example:
    class ArchiveProject(Action):
        def handle(self, data, caller):
            self.validate_permissions(caller, ["projects.archive"])
            valid = self.validate_input(data, {"id": "required|integer"})
            ...
            return self.success({"id": valid["id"]}, "Project archived")
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from actionlayer.executor import ActionExecutor
from actionlayer.identity import CallerIdentity, check_permissions
from actionlayer.result import (
    DEFAULT_ERROR_MESSAGE,
    DEFAULT_SUCCESS_MESSAGE,
    DEFAULT_VALIDATION_MESSAGE,
    ActionResult,
)
from actionlayer.validation import RuleValidator

if TYPE_CHECKING:
    from collections.abc import Iterable, Mapping

    from actionlayer.validation import Rules


class _ActionBase:
    """Helpers shared by sync and async actions."""

    def __init__(
        self,
        executor: ActionExecutor | None = None,
        *,
        validator: RuleValidator | None = None,
    ) -> None:
        self.executor = executor if executor is not None else ActionExecutor()
        self.validator = validator if validator is not None else RuleValidator()

    @property
    def name(self) -> str:
        return type(self).__qualname__

    def validate_input(
        self,
        data: Any,
        rules: Rules,
        messages: Mapping[str, str] | None = None,
    ) -> dict[str, Any]:
        """Return the ruled subset of ``data`` or raise ``ValidationFailure``."""
        return self.validator.validate(data, rules, messages)

    def validate_permissions(
        self, caller: CallerIdentity | None, capabilities: Iterable[str]
    ) -> None:
        """Raise ``PermissionFailure`` (401/403) unless ``caller`` qualifies."""
        check_permissions(caller, capabilities)

    @staticmethod
    def success(
        data: Any = None,
        message: str = DEFAULT_SUCCESS_MESSAGE,
        status_code: int = 200,
    ) -> ActionResult:
        return ActionResult.ok(data, message, status_code)

    @staticmethod
    def error(
        message: str = DEFAULT_ERROR_MESSAGE,
        errors: Any = None,
        status_code: int = 400,
        data: Any = None,
    ) -> ActionResult:
        return ActionResult.error(message, errors, status_code, data=data)

    @staticmethod
    def validation_error(
        errors: Any, message: str = DEFAULT_VALIDATION_MESSAGE
    ) -> ActionResult:
        return ActionResult.validation_error(errors, message)


class Action(_ActionBase, ABC):
    """Base class for synchronous actions."""

    @abstractmethod
    def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        """Run the business logic; may raise any classified failure."""

    def execute(self, data: Any, *, caller: CallerIdentity | None = None) -> ActionResult:
        """Run ``handle`` and return its result or the mapped failure."""
        identity = caller if caller is not None else CallerIdentity.anonymous()
        return self.executor.run(
            lambda payload: self.handle(payload, identity), data, name=self.name
        )


class AsyncAction(_ActionBase, ABC):
    """Base class for actions whose business logic is a coroutine."""

    @abstractmethod
    async def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        """Run the business logic; may raise any classified failure."""

    async def execute(
        self, data: Any, *, caller: CallerIdentity | None = None
    ) -> ActionResult:
        """Await ``handle`` and return its result or the mapped failure."""
        identity = caller if caller is not None else CallerIdentity.anonymous()
        return await self.executor.arun(
            lambda payload: self.handle(payload, identity), data, name=self.name
        )


__all__ = ["Action", "AsyncAction"]
