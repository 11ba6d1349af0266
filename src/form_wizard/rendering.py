from __future__ import annotations

from typing import Any, Dict, Iterable, Mapping, Optional, Protocol

from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from form_wizard.errors import ValidationError

# View-model keys that only make sense server-side.
_PRIVATE_KEYS = {"options"}


class TemplateNotFound(LookupError):
    def __init__(self, template: str) -> None:
        super().__init__(f"Failed to lookup view {template!r}")
        self.template = template


class Renderer(Protocol):
    def render(self, template: str, context: Mapping[str, Any]) -> Any: ...


def _jsonable(value: Any) -> Any:
    if isinstance(value, ValidationError):
        return value.to_dict()
    if isinstance(value, Mapping):
        return {str(k): _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    return value


class JsonRenderer:
    """
    Renders the view-model as JSON for API-driven frontends.

    With `templates` set, unknown template ids raise `TemplateNotFound`.
    """

    def __init__(self, templates: Optional[Iterable[str]] = None) -> None:
        self.templates = set(templates) if templates is not None else None

    def render(self, template: str, context: Mapping[str, Any]) -> JSONResponse:
        if self.templates is not None and template not in self.templates:
            raise TemplateNotFound(template)
        view: Dict[str, Any] = {k: v for k, v in context.items() if k not in _PRIVATE_KEYS}
        return JSONResponse({"ok": True, "template": template, **jsonable_encoder(_jsonable(view))})
