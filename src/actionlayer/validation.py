"""Input validation collaborator.

Rules are declared per field either as pipe-separated expressions
(``"required|string|max:255"``), as a sequence of rule strings, or as a
pydantic model class. Rule expressions compile into a pydantic model whose
field validators raise ``PydanticCustomError`` typed by rule name, so one
``model_validate`` pass collects the first violation of every field.

Validation returns the ruled fields present in the input and drops
everything else.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence, Sized
from dataclasses import dataclass
from functools import lru_cache
import logging
import re
from typing import Annotated, Any, TypeAlias

from pydantic import (
    AfterValidator,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    ValidationInfo,
    create_model,
)
from pydantic.networks import validate_email
from pydantic_core import PydanticCustomError

from actionlayer.errors import ConfigurationError, ValidationFailure

log = logging.getLogger(__name__)

RuleExpression: TypeAlias = str | Sequence[str]
Rules: TypeAlias = Mapping[str, RuleExpression] | type[BaseModel]

DEFAULT_FAILURE_MESSAGE = "The given data was invalid"

_DEFAULT_MESSAGES: dict[str, str] = {
    "required": "The :attribute field is required.",
    "string": "The :attribute field must be a string.",
    "integer": "The :attribute field must be an integer.",
    "numeric": "The :attribute field must be a number.",
    "boolean": "The :attribute field must be true or false.",
    "array": "The :attribute field must be an array.",
    "email": "The :attribute field must be a valid email address.",
    "min.string": "The :attribute field must be at least :min characters.",
    "min.numeric": "The :attribute field must be at least :min.",
    "min.array": "The :attribute field must have at least :min items.",
    "max.string": "The :attribute field must not be greater than :max characters.",
    "max.numeric": "The :attribute field must not be greater than :max.",
    "max.array": "The :attribute field must not have more than :max items.",
    "between.string": "The :attribute field must be between :min and :max characters.",
    "between.numeric": "The :attribute field must be between :min and :max.",
    "between.array": "The :attribute field must have between :min and :max items.",
    "in": "The selected :attribute is invalid.",
    "not_in": "The selected :attribute is invalid.",
    "confirmed": "The :attribute field confirmation does not match.",
    "same": "The :attribute field must match :other.",
    "regex": "The :attribute field format is invalid.",
    "alpha": "The :attribute field must only contain letters.",
    "alpha_num": "The :attribute field must only contain letters and numbers.",
}

# Rules that take no arguments and only mark presence semantics
_MARKER_RULES = frozenset({"required", "nullable", "sometimes"})
_KNOWN_RULES = frozenset(
    {
        *_MARKER_RULES,
        "string",
        "integer",
        "numeric",
        "boolean",
        "array",
        "email",
        "min",
        "max",
        "between",
        "in",
        "not_in",
        "confirmed",
        "same",
        "regex",
        "alpha",
        "alpha_num",
    }
)
_ARG_COUNTS: dict[str, int] = {"min": 1, "max": 1, "between": 2, "same": 1, "regex": 1}

_INTEGER_RE = re.compile(r"^[+-]?\d+$")
_BOOLEAN_VALUES = (True, False, 0, 1, "0", "1")
_REGEX_FLAGS: dict[str, re.RegexFlag] = {
    "i": re.IGNORECASE,
    "m": re.MULTILINE,
    "s": re.DOTALL,
    "x": re.VERBOSE,
}


@dataclass(frozen=True, slots=True)
class Rule:
    """A single parsed rule such as ``max:255``."""

    name: str
    args: tuple[str, ...] = ()


def parse_rules(expression: RuleExpression) -> tuple[Rule, ...]:
    """Parse a rule expression into ``Rule`` objects.

    Pipe-separated strings are split on ``|``; use the sequence form when a
    ``regex`` pattern contains a pipe.

    Raises:
        ConfigurationError: On unknown rule names or wrong argument counts.
    """
    parts = expression.split("|") if isinstance(expression, str) else list(expression)
    rules: list[Rule] = []
    for raw in parts:
        if not isinstance(raw, str):
            raise ConfigurationError(
                f"Rules must be strings, got {type(raw).__name__}",
                hint="Use 'required|email' or ['required', 'email'].",
            )
        text = raw.strip()
        if not text:
            continue
        name, _, arg_text = text.partition(":")
        name = name.strip()
        if name not in _KNOWN_RULES:
            raise ConfigurationError(
                f"Unknown validation rule: {name!r}",
                hint=f"Supported rules: {', '.join(sorted(_KNOWN_RULES))}",
            )
        if name == "regex":
            args: tuple[str, ...] = (arg_text,) if arg_text else ()
        else:
            args = tuple(a.strip() for a in arg_text.split(",")) if arg_text else ()
        expected = _ARG_COUNTS.get(name)
        if expected is not None and len(args) != expected:
            raise ConfigurationError(
                f"Rule {name!r} expects {expected} argument(s), got {len(args)}"
            )
        if name in {"min", "max", "between"}:
            for a in args:
                _to_number(a, rule=name)
        if name == "regex":
            _compile_pattern(args[0])
        rules.append(Rule(name, args))
    return tuple(rules)


def _to_number(text: str, *, rule: str) -> float:
    try:
        return float(text)
    except ValueError as e:
        raise ConfigurationError(
            f"Rule {rule!r} needs numeric arguments, got {text!r}"
        ) from e


@lru_cache(maxsize=256)
def _compile_pattern(pattern: str) -> re.Pattern[str]:
    """Compile a bare or slash-delimited pattern, honouring trailing flags."""
    body, flags = pattern, 0
    # "/^a+$/im" style patterns carry trailing flags after the closing slash
    end = pattern.rfind("/")
    if len(pattern) >= 2 and pattern[0] == "/" and end > 0:
        body = pattern[1:end]
        for letter in pattern[end + 1 :]:
            if letter not in _REGEX_FLAGS:
                raise ConfigurationError(
                    f"Unknown regex flag {letter!r} in {pattern!r}",
                    hint=f"Supported flags: {''.join(sorted(_REGEX_FLAGS))}",
                )
            flags |= _REGEX_FLAGS[letter]
    try:
        return re.compile(body, flags)
    except re.error as e:
        raise ConfigurationError(f"Invalid regex pattern: {e}") from e


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return value.strip() == ""
    return isinstance(value, Sized) and len(value) == 0


def _is_numeric(value: Any) -> bool:
    if isinstance(value, bool):
        return False
    if isinstance(value, int | float):
        return True
    if isinstance(value, str):
        try:
            float(value)
        except ValueError:
            return False
        return True
    return False


def _size(value: Any, *, numeric: bool) -> tuple[float, str] | None:
    """Return ``(size, kind)`` where kind selects the message variant."""
    if isinstance(value, int | float) and not isinstance(value, bool):
        return float(value), "numeric"
    if isinstance(value, str):
        if numeric and _is_numeric(value):
            return float(value), "numeric"
        return float(len(value)), "string"
    if isinstance(value, Sized):
        return float(len(value)), "array"
    return None


def _fail(rule: str, **params: Any) -> PydanticCustomError:
    return PydanticCustomError(rule, "{rule} rule failed", {"rule": rule, **params})


def _check(rule: Rule, field: str, value: Any, data: Mapping[str, Any], numeric: bool) -> None:
    name = rule.name
    if name == "required":
        if _is_empty(value):
            raise _fail(name)
    elif name == "string":
        if not isinstance(value, str):
            raise _fail(name)
    elif name == "integer":
        ok = isinstance(value, int) and not isinstance(value, bool)
        if not ok and not (isinstance(value, str) and _INTEGER_RE.match(value.strip())):
            raise _fail(name)
    elif name == "numeric":
        if not _is_numeric(value):
            raise _fail(name)
    elif name == "boolean":
        if not any(value is v or (type(value) is type(v) and value == v) for v in _BOOLEAN_VALUES):
            raise _fail(name)
    elif name == "array":
        if not isinstance(value, list | tuple | Mapping):
            raise _fail(name)
    elif name == "email":
        if not isinstance(value, str):
            raise _fail(name)
        try:
            validate_email(value)
        except PydanticCustomError as e:
            raise _fail(name) from e
    elif name in {"min", "max", "between"}:
        measured = _size(value, numeric=numeric)
        bounds = [_to_number(a, rule=name) for a in rule.args]
        if name == "min":
            params = {"min": rule.args[0]}
            ok = measured is not None and measured[0] >= bounds[0]
        elif name == "max":
            params = {"max": rule.args[0]}
            ok = measured is not None and measured[0] <= bounds[0]
        else:
            params = {"min": rule.args[0], "max": rule.args[1]}
            ok = measured is not None and bounds[0] <= measured[0] <= bounds[1]
        if not ok:
            raise _fail(name, kind=measured[1] if measured else "string", **params)
    elif name in {"in", "not_in"}:
        member = str(value) in rule.args if isinstance(value, str | int | float) else False
        if (name == "in") != member:
            raise _fail(name, values=", ".join(rule.args))
    elif name == "confirmed":
        if data.get(f"{field}_confirmation") != value:
            raise _fail(name)
    elif name == "same":
        if data.get(rule.args[0]) != value:
            raise _fail(name, other=rule.args[0])
    elif name == "regex":
        pattern = _compile_pattern(rule.args[0])
        if not isinstance(value, str) or pattern.search(value) is None:
            raise _fail(name)
    elif name == "alpha":
        if not (isinstance(value, str) and value.isalpha()):
            raise _fail(name)
    elif name == "alpha_num":
        if not (isinstance(value, str) and value.isalnum()):
            raise _fail(name)


def _field_validator(field: str, rules: tuple[Rule, ...]):
    names = {r.name for r in rules}
    nullable = "nullable" in names
    numeric = bool(names & {"numeric", "integer"})
    checks = tuple(r for r in rules if r.name not in {"nullable", "sometimes"})

    def validate_field(value: Any, info: ValidationInfo) -> Any:
        if value is None and nullable:
            return value
        context = info.context or {}
        data = context.get("input", {})
        for rule in checks:
            _check(rule, field, value, data, numeric)
        return value

    return validate_field


@lru_cache(maxsize=256)
def _compile(ruleset: tuple[tuple[str, tuple[Rule, ...]], ...]) -> type[BaseModel]:
    """Build (and cache) a pydantic model for a normalized rule set."""
    definitions: dict[str, Any] = {}
    for index, (field, rules) in enumerate(ruleset):
        annotation = Annotated[Any, AfterValidator(_field_validator(field, rules))]
        names = {r.name for r in rules}
        required = "required" in names and "sometimes" not in names
        spec = Field(alias=field) if required else Field(default=None, alias=field)
        definitions[f"field_{index}"] = (annotation, spec)
    log.debug("Compiled validation model for fields: %s", [f for f, _ in ruleset])
    return create_model(
        "RuleModel",
        __config__=ConfigDict(extra="ignore", populate_by_name=False),
        **definitions,
    )


def _attribute(field: str) -> str:
    return field.replace("_", " ")


def _render(template: str, field: str, params: Mapping[str, Any]) -> str:
    text = template.replace(":attribute", _attribute(field))
    # Longest keys first so ":max" never clobbers a ":maximum" placeholder
    for key in sorted(params, key=len, reverse=True):
        value = params[key]
        if key == "other":
            value = _attribute(str(value))
        text = text.replace(f":{key}", str(value))
    return text


class RuleValidator:
    """Validate input mappings against rule expressions or pydantic models."""

    def __init__(self, default_messages: Mapping[str, str] | None = None) -> None:
        self.default_messages = {**_DEFAULT_MESSAGES, **(default_messages or {})}

    def validate(
        self,
        data: Any,
        rules: Rules,
        messages: Mapping[str, str] | None = None,
        *,
        failure_message: str = DEFAULT_FAILURE_MESSAGE,
    ) -> dict[str, Any]:
        """Validate ``data`` and return only the ruled fields.

        Raises:
            ValidationFailure: When any field violates its rules.
            ConfigurationError: When the rules themselves are invalid.
        """
        payload = dict(_as_mapping(data))
        custom = dict(messages or {})

        if isinstance(rules, type) and issubclass(rules, BaseModel):
            return self._validate_model(payload, rules, custom, failure_message)
        if not isinstance(rules, Mapping):
            raise ConfigurationError(
                f"rules must be a mapping or a pydantic model, got {type(rules).__name__}"
            )

        ruleset = tuple((field, parse_rules(expr)) for field, expr in rules.items())
        model = _compile(ruleset)
        try:
            instance = model.model_validate(payload, context={"input": payload})
        except ValidationError as e:
            raise ValidationFailure(
                self._collect(e, custom), failure_message
            ) from None
        dumped = instance.model_dump(by_alias=True, exclude_unset=True)
        # Hand back the caller's original values, not pydantic copies
        return {field: payload[field] for field in dumped}

    def _collect(
        self, error: ValidationError, custom: Mapping[str, str]
    ) -> dict[str, list[str]]:
        collected: dict[str, list[str]] = {}
        for item in error.errors():
            field = str(item["loc"][0]) if item["loc"] else "input"
            ctx = dict(item.get("ctx") or {})
            rule = "required" if item["type"] == "missing" else ctx.pop("rule", item["type"])
            kind = ctx.pop("kind", None)
            template = (
                custom.get(f"{field}.{rule}")
                or custom.get(rule)
                or self.default_messages.get(f"{rule}.{kind}" if kind else rule)
                or self.default_messages.get(rule)
                or item["msg"]
            )
            collected.setdefault(field, []).append(_render(template, field, ctx))
        return collected

    def _validate_model(
        self,
        payload: Mapping[str, Any],
        model: type[BaseModel],
        custom: Mapping[str, str],
        failure_message: str,
    ) -> dict[str, Any]:
        try:
            instance = model.model_validate(payload)
        except ValidationError as e:
            collected: dict[str, list[str]] = {}
            for item in e.errors():
                field = ".".join(str(p) for p in item["loc"]) or "input"
                rule = "required" if item["type"] == "missing" else item["type"]
                template = custom.get(f"{field}.{rule}") or custom.get(rule) or item["msg"]
                collected.setdefault(field, []).append(_render(template, field, {}))
            raise ValidationFailure(collected, failure_message) from None
        return instance.model_dump(by_alias=True, exclude_unset=True)


def _as_mapping(data: Any) -> Mapping[str, Any]:
    if isinstance(data, Mapping):
        return data
    if isinstance(data, BaseModel):
        return data.model_dump()
    if data is None:
        return {}
    if hasattr(data, "__dict__"):
        return dict(vars(data))
    raise ValidationFailure(
        {"input": [f"Input must be a mapping, got {type(data).__name__}."]},
        DEFAULT_FAILURE_MESSAGE,
    )


_default_validator = RuleValidator()


def validate(
    data: Any,
    rules: Rules,
    messages: Mapping[str, str] | None = None,
) -> dict[str, Any]:
    """Validate with the shared default ``RuleValidator``."""
    return _default_validator.validate(data, rules, messages)


__all__ = ["Rule", "RuleValidator", "Rules", "parse_rules", "validate"]
