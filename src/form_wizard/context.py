"""Request-scoped state threaded through the pipeline stages."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from form_wizard.config import FormConfiguration
from form_wizard.errors import FormErrors

EDIT_ACTION = "edit"


@dataclass
class FormState:
    options: FormConfiguration
    values: Dict[str, Any] = field(default_factory=dict)
    errors: FormErrors = field(default_factory=dict)


@dataclass
class FormRequest:
    method: str = "GET"
    # Path below `base_url`, including any action segment (e.g. `/name/edit`).
    path: str = "/"
    base_url: str = "/"
    params: Dict[str, Any] = field(default_factory=dict)
    body: Dict[str, Any] = field(default_factory=dict)
    session: Any = None
    form: Optional[FormState] = None

    @property
    def editing(self) -> bool:
        return self.params.get("action") == EDIT_ACTION


@dataclass
class FormResponse:
    locals: Dict[str, Any] = field(default_factory=dict)
    status_code: int = 200
    redirect_to: Optional[str] = None
    template: Optional[str] = None
    body: Any = None

    @property
    def finished(self) -> bool:
        return self.redirect_to is not None or self.body is not None

    def redirect(self, url: str, status_code: int = 302) -> None:
        self.redirect_to = url
        self.status_code = status_code

    def rendered(self, template: str, body: Any) -> None:
        self.template = template
        self.body = body


@dataclass(frozen=True)
class Failure:
    """Stage outcome that stops the remaining stages and goes to the error handler."""

    error: Any
