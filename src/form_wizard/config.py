from __future__ import annotations

import copy
from typing import Any, Callable, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


DEFAULT_FORMATTERS = ["trim", "singlespaces", "hyphens"]
DEFAULT_CONFIRM_STEP = "/confirm"


class FieldDefinition(BaseModel):
    """Per-field options consumed by the formatter and validator collaborators."""

    model_config = ConfigDict(extra="allow", populate_by_name=True, arbitrary_types_allowed=True)

    formatter: List[Any] = Field(default_factory=list)
    validate_: List[Any] = Field(default_factory=list, alias="validate")
    group: Optional[str] = None
    mixin: Optional[str] = None
    dependent: Optional[Dict[str, Any]] = None

    @field_validator("formatter", "validate_", mode="before")
    @classmethod
    def _listify(cls, v: Any) -> List[Any]:
        if v is None:
            return []
        if isinstance(v, (list, tuple)):
            return list(v)
        return [v]

    def view(self, key: str) -> Dict[str, Any]:
        """Shape used in the view-model `fields` list."""
        out = self.model_dump(by_alias=True, exclude_none=True)
        out.pop("validate", None)
        out.pop("formatter", None)
        out["key"] = key
        return out


class FieldEquals(BaseModel):
    model_config = ConfigDict(frozen=True)

    field: str
    value: Any = None


class Predicate(BaseModel):
    model_config = ConfigDict(frozen=True, arbitrary_types_allowed=True)

    fn: Callable[..., Any]


Condition = Union[FieldEquals, Predicate]


class Fork(BaseModel):
    model_config = ConfigDict(arbitrary_types_allowed=True)

    target: str
    condition: Condition

    @field_validator("condition", mode="before")
    @classmethod
    def _coerce_condition(cls, v: Any) -> Any:
        if isinstance(v, (FieldEquals, Predicate)):
            return v
        if callable(v):
            return Predicate(fn=v)
        if isinstance(v, dict):
            return FieldEquals(field=v.get("field"), value=v.get("value"))
        raise ValueError("fork condition must be a {field, value} mapping or a callable")


def evaluate_condition(condition: Condition, request: Any) -> bool:
    if isinstance(condition, Predicate):
        return bool(condition.fn(request))
    values = (request.form.values if request.form is not None else None) or {}
    return values.get(condition.field) == condition.value


class FormConfiguration(BaseModel):
    """
    Static configuration for one wizard step.

    Owned by a controller and never mutated after construction; each request
    works on `working_copy()`.
    """

    model_config = ConfigDict(extra="allow", populate_by_name=True, arbitrary_types_allowed=True)

    template: Optional[str] = None
    fields: Dict[str, FieldDefinition] = Field(default_factory=dict)
    default_formatters: List[str] = Field(default_factory=lambda: list(DEFAULT_FORMATTERS), alias="defaultFormatters")
    formatters: Dict[str, Callable[..., Any]] = Field(default_factory=dict)
    next: Optional[str] = None
    forks: Optional[List[Fork]] = None
    continue_on_edit: bool = Field(default=False, alias="continueOnEdit")
    locals: Dict[str, Any] = Field(default_factory=dict)
    route: str = ""
    confirm_step: str = Field(default=DEFAULT_CONFIRM_STEP, alias="confirmStep")
    back_link: Optional[str] = Field(default=None, alias="backLink")
    default_template: Optional[str] = Field(default=None, alias="defaultTemplate")
    hooks: Dict[str, List[Callable[..., Any]]] = Field(default_factory=dict)

    @field_validator("fields", mode="before")
    @classmethod
    def _coerce_fields(cls, v: Any) -> Any:
        if v is None:
            return {}
        return v

    @field_validator("hooks", mode="before")
    @classmethod
    def _coerce_hooks(cls, v: Any) -> Any:
        if not v:
            return {}
        return {name: (list(fns) if isinstance(fns, (list, tuple)) else [fns]) for name, fns in v.items()}

    def _callables(self) -> List[Any]:
        out: List[Any] = list(self.formatters.values())
        for fns in self.hooks.values():
            out.extend(fns)
        for fork in self.forks or []:
            if isinstance(fork.condition, Predicate):
                out.append(fork.condition.fn)
        for field in self.fields.values():
            out.extend(rule for rule in field.validate_ if callable(rule))
            out.extend(fmt for fmt in field.formatter if callable(fmt))
        return out

    def working_copy(self) -> "FormConfiguration":
        """Deep copy for one request. Callables are shared, everything else is cloned."""
        memo: Dict[int, Any] = {id(fn): fn for fn in self._callables()}
        return copy.deepcopy(self, memo)
