"""Property-based contracts for ActionResult and the executor boundary."""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st
import pytest

from actionlayer import ActionExecutor, ActionResult, Config
from actionlayer.errors import GenericFailure, PermissionFailure, ValidationFailure

pytestmark = pytest.mark.contract

json_values = st.recursive(
    st.none() | st.booleans() | st.integers() | st.text(max_size=10),
    lambda children: st.lists(children, max_size=3)
    | st.dictionaries(st.text(max_size=5), children, max_size=3),
    max_leaves=10,
)
error_maps = st.dictionaries(
    st.text(min_size=1, max_size=8),
    st.lists(st.text(max_size=12), min_size=1, max_size=3),
    min_size=1,
    max_size=4,
)
error_statuses = st.integers(min_value=300, max_value=599)


@given(data=json_values, status=st.integers(min_value=200, max_value=299))
def test_ok_preserves_payload(data: Any, status: int) -> None:
    result = ActionResult.ok(data, status_code=status)

    assert result.data == data
    assert result.is_success() and not result.is_error()
    assert result.to_response().body["errors"] == {}


@given(errors=error_maps, message=st.text(max_size=20))
def test_validation_error_is_always_422(errors: dict[str, list[str]], message: str) -> None:
    result = ActionResult.validation_error(errors, message)

    assert result.status_code == 422
    assert result.is_error()
    assert result.to_response().body["errors"] == errors
    assert result.to_flat_map() == {k: v[0] for k, v in errors.items()}


@given(errors=error_maps, status=error_statuses)
def test_to_response_is_repeatable(errors: dict[str, list[str]], status: int) -> None:
    result = ActionResult.error("failed", errors, status)
    assert result.to_response() == result.to_response()


@given(
    failure=st.one_of(
        error_maps.map(ValidationFailure),
        st.sampled_from([401, 403]).map(lambda s: PermissionFailure(status_code=s)),
        error_statuses.map(lambda s: GenericFailure("failed", status_code=s)),
        st.text(max_size=20).map(RuntimeError),
    )
)
def test_executor_never_raises_for_exceptions(failure: Exception) -> None:
    executor = ActionExecutor(Config())

    def operation(_data: Any) -> ActionResult:
        raise failure

    result = executor.run(operation, {})

    assert result.is_error()
    if isinstance(failure, ValidationFailure):
        assert result.status_code == 422
    elif isinstance(failure, PermissionFailure | GenericFailure):
        assert result.status_code == failure.status_code
    else:
        assert result.status_code == 500
