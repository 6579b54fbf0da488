"""Adapters from ``ActionResult`` to the shapes boundary layers consume."""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Any, Protocol, runtime_checkable

if TYPE_CHECKING:
    from collections.abc import Callable, MutableMapping

    from actionlayer.result import ActionResult

log = logging.getLogger(__name__)

FLASH_KEY = "action_result"
JSON_HEADERS: dict[str, str] = {"Content-Type": "application/json"}


def to_http(
    result: ActionResult, *, default: Callable[[Any], Any] | None = str
) -> tuple[bytes, int, dict[str, str]]:
    """Serialize ``result`` into a JSON body, status code and headers.

    Payload values that JSON cannot encode natively (datetimes, UUIDs) go
    through ``default``, which stringifies them unless overridden.
    """
    response = result.to_response()
    body = json.dumps(response.body, default=default, ensure_ascii=False)
    return body.encode("utf-8"), response.status_code, dict(JSON_HEADERS)


@runtime_checkable
class FormBinder(Protocol):
    """Reactive form component receiving action outcomes."""

    def dispatch(self, event: str, message: str) -> None: ...  # noqa: D102
    def add_error(self, field: str, message: str) -> None: ...  # noqa: D102
    def reset(self, prop: str) -> None: ...  # noqa: D102


def handle_action_result(
    result: ActionResult,
    binder: FormBinder,
    *,
    reset_form: bool = False,
    form_property: str = "form",
    on_success: Callable[[Any], None] | None = None,
    on_error: Callable[[ActionResult], None] | None = None,
) -> Any:
    """Bind ``result`` onto a form component.

    On success: dispatch ``"success"``, optionally reset the form, call
    ``on_success(data)`` and return the data. On error: dispatch ``"error"``,
    add the first message of each field, call ``on_error(result)`` and
    return None.
    """
    if result.is_success():
        binder.dispatch("success", result.message)
        if reset_form:
            binder.reset(form_property)
        if on_success is not None:
            on_success(result.data)
        return result.data

    binder.dispatch("error", result.message)
    for field, message in result.to_flat_map().items():
        binder.add_error(field, message)
    if on_error is not None:
        on_error(result)
    return None


def flash(result: ActionResult, session: MutableMapping[str, Any]) -> None:
    """Store the redirect flash payload in ``session``."""
    session[FLASH_KEY] = result.to_flash_data()
    log.debug("Flashed action result (success=%s)", result.success)


__all__ = ["FLASH_KEY", "FormBinder", "flash", "handle_action_result", "to_http"]
