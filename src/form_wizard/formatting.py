from __future__ import annotations

import re
from typing import Any, Callable, Dict, List, Mapping, Optional

from form_wizard.config import FieldDefinition


IGNORE_DEFAULTS = "ignore-defaults"


def trim(value: str) -> str:
    return value.strip()


def boolean(value: str) -> Any:
    v = value.strip().lower()
    if v in {"true", "yes", "1", "on"}:
        return True
    if v in {"false", "no", "0", "off"}:
        return False
    return None


def uppercase(value: str) -> str:
    return value.upper()


def lowercase(value: str) -> str:
    return value.lower()


def removespaces(value: str) -> str:
    return re.sub(r"\s+", "", value)


def singlespaces(value: str) -> str:
    return re.sub(r"\s+", " ", value)


def hyphens(value: str) -> str:
    # en/em dashes and runs of hyphens collapse to a single ascii hyphen
    return re.sub(r"[\u2010-\u2015\-]+", "-", value)


def removeroundbrackets(value: str) -> str:
    return re.sub(r"[()]", "", value)


def removehyphens(value: str) -> str:
    return value.replace("-", "")


def ukphoneprefix(value: str) -> str:
    return re.sub(r"^\+44\(?0?\)?", "0", value)


FORMATTERS: Dict[str, Callable[[str], Any]] = {
    "trim": trim,
    "boolean": boolean,
    "uppercase": uppercase,
    "lowercase": lowercase,
    "removespaces": removespaces,
    "singlespaces": singlespaces,
    "hyphens": hyphens,
    "removeroundbrackets": removeroundbrackets,
    "removehyphens": removehyphens,
    "ukphoneprefix": ukphoneprefix,
}


def _resolve(name: Any, custom: Mapping[str, Callable[[str], Any]]) -> Callable[[str], Any]:
    if callable(name):
        return name
    if name in custom:
        return custom[name]
    return FORMATTERS[name]


def _apply(chain: List[Callable[[str], Any]], value: Any) -> Any:
    for fn in chain:
        if not isinstance(value, str):
            break
        value = fn(value)
    return value


def build_formatter(
    fields: Mapping[str, FieldDefinition],
    default_formatters: Optional[List[str]] = None,
    custom: Optional[Mapping[str, Callable[[str], Any]]] = None,
) -> Callable[[str, Any], Any]:
    """
    Return `format(key, raw)` for a step's fields.

    Defaults run first, then the field's own formatters. A field listing
    `ignore-defaults` opts out of the defaults. Lists are formatted per item.
    """
    defaults = list(default_formatters or [])
    custom = custom or {}

    def chain_for(key: str) -> List[Callable[[str], Any]]:
        field = fields.get(key)
        own = list(field.formatter) if field is not None else []
        names = own if IGNORE_DEFAULTS in own else defaults + own
        return [_resolve(n, custom) for n in names if n != IGNORE_DEFAULTS]

    def format_value(key: str, raw: Any) -> Any:
        chain = chain_for(key)
        if isinstance(raw, (list, tuple)):
            return [_apply(chain, item) for item in raw]
        if raw is None:
            raw = ""
        return _apply(chain, str(raw))

    return format_value
