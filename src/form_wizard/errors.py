from __future__ import annotations

from typing import Any, Dict, Mapping, Optional


class ValidationError:
    """A single field (or group) failure, persisted between POST and GET."""

    def __init__(
        self,
        key: str,
        type: str,
        *,
        redirect: Optional[str] = None,
        arguments: Any = None,
        group: Optional[str] = None,
    ) -> None:
        self.key = key
        self.type = type
        self.redirect = redirect
        self.arguments = arguments
        self.group = group

    @classmethod
    def from_failure(cls, key: str, failure: Any) -> "ValidationError":
        return cls(
            key,
            failure.type,
            redirect=failure.redirect,
            arguments=failure.arguments,
            group=failure.group,
        )

    def to_dict(self) -> Dict[str, Any]:
        out: Dict[str, Any] = {"key": self.key, "type": self.type}
        if self.redirect:
            out["redirect"] = self.redirect
        if self.arguments not in (None, [], ()):
            out["args"] = self.arguments
        if self.group:
            out["group"] = self.group
        return out

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidationError):
            return NotImplemented
        return self.to_dict() == other.to_dict()

    def __repr__(self) -> str:
        return f"ValidationError(key={self.key!r}, type={self.type!r}, redirect={self.redirect!r})"


FormErrors = Dict[str, ValidationError]


class FormWizardError(Exception):
    status_code = 500
    error = "internal_error"


class MethodNotSupported(FormWizardError):
    status_code = 405
    error = "method_not_allowed"

    def __init__(self, method: str = "") -> None:
        super().__init__("Method not supported" + (f": {method.upper()}" if method else ""))
        self.method = method


class BadRequest(FormWizardError):
    status_code = 400
    error = "bad_request"


class ConfigurationFault(FormWizardError):
    error = "configuration_error"


class TemplateMissing(ConfigurationFault):
    def __init__(self) -> None:
        super().__init__("A template must be provided")


class SystemFault(FormWizardError):
    """Wraps a non-exception failure payload so it can propagate to the host."""

    def __init__(self, payload: Any) -> None:
        super().__init__(f"Unrecognised failure: {payload!r}")
        self.payload = payload


def is_validation_error(err: Any) -> bool:
    if not isinstance(err, Mapping) or not err:
        return False
    return all(isinstance(e, ValidationError) for e in err.values())


def error_redirect(errors: Mapping[str, ValidationError], path: str) -> str:
    """
    Pick the redirect target for a failed submission.

    When every error names a redirect the first one wins; otherwise the user
    goes back to the page they submitted.
    """
    if errors and all(e.redirect for e in errors.values()):
        return next(e.redirect for e in errors.values() if e.redirect)
    return path
