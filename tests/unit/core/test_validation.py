"""Unit tests for the rule-expression validator."""

from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field
import pytest

from actionlayer.errors import ConfigurationError, ValidationFailure
from actionlayer.validation import Rule, RuleValidator, parse_rules, validate

pytestmark = pytest.mark.unit


def _errors(data: Any, rules: Any, messages: dict[str, str] | None = None) -> dict[str, tuple[str, ...]]:
    with pytest.raises(ValidationFailure) as exc:
        validate(data, rules, messages)
    return dict(exc.value.errors)


class TestParseRules:
    def test_pipe_expression(self) -> None:
        assert parse_rules("required|string|max:255") == (
            Rule("required"),
            Rule("string"),
            Rule("max", ("255",)),
        )

    def test_sequence_expression_and_multi_args(self) -> None:
        assert parse_rules(["in:a, b,c", "between:1,5"]) == (
            Rule("in", ("a", "b", "c")),
            Rule("between", ("1", "5")),
        )

    def test_regex_keeps_commas_and_colons(self) -> None:
        assert parse_rules(["regex:/^a{1,3}:b$/"]) == (Rule("regex", ("/^a{1,3}:b$/",)),)

    def test_empty_segments_are_ignored(self) -> None:
        assert parse_rules("required||string|") == (Rule("required"), Rule("string"))

    @pytest.mark.parametrize(
        "expression",
        [
            "required|unique:users,email",
            "max",
            "between:1",
            "min:abc",
            ["regex:("],
            ["regex:/a/q"],
            [42],
        ],
    )
    def test_invalid_definitions_raise(self, expression: Any) -> None:
        with pytest.raises(ConfigurationError):
            parse_rules(expression)

    def test_unknown_regex_flag_names_supported_ones(self) -> None:
        with pytest.raises(ConfigurationError, match="Unknown regex flag 'q'") as exc:
            parse_rules(["regex:/a/iq"])
        assert exc.value.hint == "Supported flags: imsx"


class TestWhitelisting:
    def test_required_missing_field(self) -> None:
        errors = _errors({}, {"name": "required"})
        assert list(errors) == ["name"]
        assert errors["name"] == ("The name field is required.",)

    def test_unruled_fields_are_dropped(self) -> None:
        assert validate({"name": "a", "extra": "b"}, {"name": "required"}) == {"name": "a"}

    def test_optional_absent_fields_are_not_returned(self) -> None:
        assert validate({"name": "a"}, {"name": "required", "nickname": "string"}) == {"name": "a"}

    def test_original_values_are_returned(self) -> None:
        data = {"age": "42", "tags": ["x"]}
        valid = validate(data, {"age": "integer", "tags": "array"})
        assert valid == {"age": "42", "tags": ["x"]}

    def test_pydantic_model_input_is_accepted(self) -> None:
        class Payload(BaseModel):
            name: str
            extra: str

        assert validate(Payload(name="a", extra="b"), {"name": "required"}) == {"name": "a"}

    def test_non_mapping_input_is_a_validation_failure(self) -> None:
        errors = _errors(42, {"name": "required"})
        assert "input" in errors


class TestRules:
    @pytest.mark.parametrize("value", [None, "", "   ", [], {}])
    def test_required_rejects_empty_values(self, value: Any) -> None:
        assert "name" in _errors({"name": value}, {"name": "required"})

    def test_nullable_short_circuits(self) -> None:
        assert validate({"bio": None}, {"bio": "nullable|string|min:3"}) == {"bio": None}

    def test_sometimes_only_checks_present_fields(self) -> None:
        assert validate({}, {"name": "sometimes|required|string"}) == {}
        assert "name" in _errors({"name": ""}, {"name": "sometimes|required|string"})

    @pytest.mark.parametrize(
        ("rule", "good", "bad"),
        [
            ("string", "abc", 12),
            ("integer", "-12", "1.5"),
            ("integer", 7, True),
            ("numeric", "1.5", "abc"),
            ("boolean", "0", "maybe"),
            ("boolean", True, 2),
            ("array", [1], "list"),
            ("email", "jane@example.com", "not-an-email"),
            ("alpha", "abc", "ab1"),
            ("alpha_num", "ab1", "ab-1"),
            ("regex:/^[a-z]+$/", "abc", "ABC"),
            ("regex:/^[a-z]+$/i", "ABC", "AB1"),
            ("regex:/^a.c$/s", "a\nc", "a\n\nc"),
            ("in:draft,published", "draft", "archived"),
            ("not_in:admin,root", "jane", "root"),
        ],
    )
    def test_type_and_format_rules(self, rule: str, good: Any, bad: Any) -> None:
        assert validate({"f": good}, {"f": rule}) == {"f": good}
        assert "f" in _errors({"f": bad}, {"f": rule})

    @pytest.mark.parametrize(
        ("rules", "good", "bad"),
        [
            ("string|min:3", "abc", "ab"),
            ("string|max:3", "abc", "abcd"),
            ("numeric|min:18", "18", "17"),
            ("integer|max:10", 10, 11),
            ("array|between:1,2", [1, 2], []),
            ("between:2,3", "ab", "abcd"),
        ],
    )
    def test_size_rules(self, rules: str, good: Any, bad: Any) -> None:
        assert validate({"f": good}, {"f": rules}) == {"f": good}
        assert "f" in _errors({"f": bad}, {"f": rules})

    def test_size_messages_depend_on_value_kind(self) -> None:
        assert _errors({"f": "ab"}, {"f": "min:3"})["f"] == (
            "The f field must be at least 3 characters.",
        )
        assert _errors({"f": 2}, {"f": "min:3"})["f"] == ("The f field must be at least 3.",)
        assert _errors({"f": [1]}, {"f": "min:3"})["f"] == (
            "The f field must have at least 3 items.",
        )

    def test_confirmed(self) -> None:
        rules = {"password": "required|confirmed"}
        ok = {"password": "secret", "password_confirmation": "secret"}
        assert validate(ok, rules) == {"password": "secret"}
        errors = _errors({"password": "secret", "password_confirmation": "other"}, rules)
        assert errors["password"] == ("The password field confirmation does not match.",)

    def test_same_names_the_other_field(self) -> None:
        errors = _errors({"a": 1, "new_pin": 2}, {"a": "same:new_pin"})
        assert errors["a"] == ("The a field must match new pin.",)

    def test_first_failing_rule_per_field_is_reported(self) -> None:
        errors = _errors({"name": 5}, {"name": "string|min:10"})
        assert errors["name"] == ("The name field must be a string.",)

    def test_all_fields_are_checked(self) -> None:
        errors = _errors(
            {"name": "", "email": "invalid-email"},
            {
                "name": "required|string",
                "email": "required|email",
                "password": "required|min:8",
            },
        )
        assert set(errors) == {"name", "email", "password"}


class TestMessages:
    def test_field_specific_custom_message(self) -> None:
        errors = _errors({}, {"name": "required"}, {"name.required": "Name please"})
        assert errors["name"] == ("Name please",)

    def test_rule_wide_custom_message_with_placeholders(self) -> None:
        errors = _errors(
            {"user_name": "ab"},
            {"user_name": "min:3"},
            {"min": ":attribute needs :min chars"},
        )
        assert errors["user_name"] == ("user name needs 3 chars",)

    def test_validator_default_message_overrides(self) -> None:
        validator = RuleValidator({"required": "Missing :attribute"})
        with pytest.raises(ValidationFailure) as exc:
            validator.validate({}, {"email_address": "required"})
        assert exc.value.errors["email_address"] == ("Missing email address",)

    def test_failure_message(self) -> None:
        with pytest.raises(ValidationFailure) as exc:
            RuleValidator().validate({}, {"a": "required"}, failure_message="Bad signup")
        assert exc.value.message == "Bad signup"


class TestPydanticSchemas:
    class Signup(BaseModel):
        name: str = Field(min_length=2)
        age: int | None = None

    def test_valid_model_returns_set_fields(self) -> None:
        assert validate({"name": "Al", "junk": 1}, self.Signup) == {"name": "Al"}

    def test_invalid_model_maps_field_errors(self) -> None:
        errors = _errors({"name": "A", "age": "old"}, self.Signup)
        assert set(errors) == {"name", "age"}

    def test_missing_field_uses_required_custom_message(self) -> None:
        errors = _errors({}, self.Signup, {"name.required": "Name please"})
        assert errors["name"] == ("Name please",)


def test_bad_rules_type_raises_configuration_error() -> None:
    with pytest.raises(ConfigurationError):
        validate({}, ["name"])  # type: ignore[arg-type]
