from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Mapping, Optional

from form_wizard.config import FieldDefinition
from form_wizard.errors import FormErrors, ValidationError

logger = logging.getLogger("form_wizard.validation")


# Validator library. Each rule receives the formatted value plus any configured arguments.

def _empty(value: Any) -> bool:
    return value is None or value == "" or value == [] or value is False


def required(value: Any) -> bool:
    return not _empty(value)


def string(value: Any) -> bool:
    return isinstance(value, str)


def regex(value: Any, pattern: str) -> bool:
    return isinstance(value, str) and re.search(pattern, value) is not None


_EMAIL_RE = re.compile(r"^[a-z0-9._%+'-]+@[a-z0-9-]+(\.[a-z0-9-]+)*\.[a-z]{2,}$", re.IGNORECASE)


def email(value: Any) -> bool:
    return isinstance(value, str) and _EMAIL_RE.match(value) is not None


def numeric(value: Any) -> bool:
    return isinstance(value, str) and re.match(r"^\d*$", value) is not None


def minlength(value: Any, length: int) -> bool:
    return len(value or "") >= int(length)


def maxlength(value: Any, length: int) -> bool:
    return len(value or "") <= int(length)


def exactlength(value: Any, length: int) -> bool:
    return len(value or "") == int(length)


def equal(value: Any, *options: Any) -> bool:
    allowed = [str(o) for o in options]
    values = value if isinstance(value, list) else [value]
    return all(str(v) in allowed for v in values)


def alphanum(value: Any) -> bool:
    return isinstance(value, str) and re.match(r"^[a-z0-9]*$", value, re.IGNORECASE) is not None


VALIDATORS: Dict[str, Callable[..., bool]] = {
    "required": required,
    "string": string,
    "regex": regex,
    "email": email,
    "numeric": numeric,
    "minlength": minlength,
    "maxlength": maxlength,
    "exactlength": exactlength,
    "equal": equal,
    "alphanum": alphanum,
}


@dataclass(frozen=True)
class FieldFailure:
    key: str
    type: str
    arguments: List[Any]
    group: Optional[str] = None
    redirect: Optional[str] = None


@dataclass(frozen=True)
class _Rule:
    type: str
    fn: Callable[..., bool]
    arguments: List[Any]
    redirect: Optional[str] = None


def _normalize_rule(rule: Any) -> _Rule:
    if callable(rule):
        return _Rule(type=getattr(rule, "__name__", "custom"), fn=rule, arguments=[])
    if isinstance(rule, str):
        return _Rule(type=rule, fn=VALIDATORS[rule], arguments=[])
    if isinstance(rule, Mapping):
        kind = rule.get("type")
        fn = rule.get("fn") or VALIDATORS[kind]
        args = rule.get("arguments", [])
        if not isinstance(args, (list, tuple)):
            args = [args]
        return _Rule(type=str(kind or getattr(fn, "__name__", "custom")), fn=fn, arguments=list(args), redirect=rule.get("redirect"))
    raise TypeError(f"Unsupported validator: {rule!r}")


def _dependency_met(field: FieldDefinition, values: Mapping[str, Any]) -> bool:
    dep = field.dependent
    if not dep:
        return True
    actual = values.get(dep.get("field"))
    expected = dep.get("value")
    if isinstance(actual, list):
        return expected in actual
    return actual == expected


def build_validator(fields: Mapping[str, FieldDefinition]) -> Callable[..., Optional[FieldFailure]]:
    """Return `validate(key, value, values, empty)`; the first failing rule wins."""

    def validate_value(key: str, value: Any, values: Mapping[str, Any], empty: Any = "") -> Optional[FieldFailure]:
        field = fields.get(key)
        if field is None or not _dependency_met(field, values):
            return None
        for rule in (_normalize_rule(r) for r in field.validate_):
            if rule.type != "required" and value == empty:
                continue
            if not rule.fn(value, *rule.arguments):
                return FieldFailure(
                    key=key,
                    type=rule.type,
                    arguments=rule.arguments,
                    group=field.group,
                    redirect=rule.redirect,
                )
        return None

    return validate_value


def validate_field(
    key: str,
    values: Mapping[str, Any],
    validator: Callable[..., Optional[FieldFailure]],
    formatter: Callable[[str, Any], Any],
) -> Optional[FieldFailure]:
    # Formatting "" tells validators what "absent" looks like after formatting.
    empty = formatter(key, "")
    return validator(key, values.get(key), values, empty)


def validate_fields(
    fields: Mapping[str, FieldDefinition],
    values: Mapping[str, Any],
    validator: Callable[..., Optional[FieldFailure]],
    formatter: Callable[[str, Any], Any],
) -> FormErrors:
    """
    Validate every configured field in declaration order.

    Errors accumulate; a field sharing a group with an earlier failure
    replaces that entry.
    """
    errors: FormErrors = {}
    for key in fields:
        failure = validate_field(key, values, validator, formatter)
        if failure is None:
            continue
        error_key = failure.group or failure.key
        errors[error_key] = ValidationError.from_failure(error_key, failure)
    if errors:
        logger.debug("validation failed keys=%s", sorted(errors))
    return errors
