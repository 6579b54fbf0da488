from __future__ import annotations

from typing import Any

import pytest

from actionlayer import Action, ActionExecutor, ActionResult, AsyncAction, CallerIdentity
from actionlayer.diagnostics import MemorySink
from actionlayer.errors import GenericFailure

pytestmark = pytest.mark.unit


class PublishPost(Action):
    rules = {"title": "required|string|max:20", "draft": "boolean"}

    def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        self.validate_permissions(caller, ["posts.publish"])
        valid = self.validate_input(data, self.rules, {"title.required": "Title please"})
        if valid["title"] == "boom":
            raise RuntimeError("storage offline")
        if valid["title"] == "dup":
            raise GenericFailure("Post already published", status_code=409)
        return self.success({"title": valid["title"], "by": caller.subject}, "Published", 201)


class AsyncPublishPost(AsyncAction):
    async def handle(self, data: Any, caller: CallerIdentity) -> ActionResult:
        self.validate_permissions(caller, ["posts.publish"])
        valid = self.validate_input(data, {"title": "required"})
        return self.success(valid)


EDITOR = CallerIdentity.of("ada", "posts.publish")


@pytest.fixture
def action(executor: ActionExecutor) -> PublishPost:
    return PublishPost(executor)


def test_successful_handle_is_returned(action: PublishPost) -> None:
    result = action.execute({"title": "Hello", "ignored": 1}, caller=EDITOR)

    assert result.status_code == 201
    assert result.data == {"title": "Hello", "by": "ada"}


def test_missing_caller_is_anonymous_and_gets_401(action: PublishPost) -> None:
    result = action.execute({"title": "Hello"})
    assert result.status_code == 401


def test_caller_without_capability_gets_403(action: PublishPost) -> None:
    result = action.execute({"title": "Hello"}, caller=CallerIdentity.of("bob"))
    assert result.status_code == 403


def test_invalid_input_gets_422_with_custom_message(action: PublishPost) -> None:
    result = action.execute({"title": ""}, caller=EDITOR)

    assert result.status_code == 422
    assert result.errors["title"] == ("Title please",)


def test_generic_failure_keeps_status(action: PublishPost) -> None:
    assert action.execute({"title": "dup"}, caller=EDITOR).status_code == 409


def test_unexpected_failure_is_recorded_under_action_name(
    action: PublishPost, sink: MemorySink
) -> None:
    result = action.execute({"title": "boom"}, caller=EDITOR)

    assert result.status_code == 500
    assert result.message == "storage offline"
    assert [r.action for r in sink.records] == ["PublishPost"]


def test_default_executor_is_quiet() -> None:
    result = PublishPost().execute({"title": "boom"}, caller=EDITOR)
    assert result.status_code == 500


def test_helper_constructors() -> None:
    assert PublishPost.success().status_code == 200
    assert PublishPost.error("Nope", status_code=409).status_code == 409
    assert PublishPost.validation_error({"a": ["b"]}).status_code == 422


def test_error_helper_carries_data() -> None:
    result = PublishPost.error("Conflict", status_code=409, data={"id": 7})
    assert result.is_error()
    assert result.data == {"id": 7}


@pytest.mark.asyncio
async def test_async_action_runs_through_executor(executor: ActionExecutor) -> None:
    action = AsyncPublishPost(executor)

    ok = await action.execute({"title": "Hi", "extra": True}, caller=EDITOR)
    denied = await action.execute({"title": "Hi"})

    assert ok.data == {"title": "Hi"}
    assert denied.status_code == 401
