"""
Multi-step form wizard controller.

Each wizard step is a `FormController` driven by a `FormConfiguration`:
GET renders the step's view-model, POST formats and validates the submitted
fields, persists them, and redirects to the next step (forks and edit mode
included). `Wizard` composes steps and mounts them on a FastAPI router.
"""

from form_wizard.config import FieldDefinition, FieldEquals, Fork, FormConfiguration, Predicate
from form_wizard.context import Failure, FormRequest, FormResponse, FormState
from form_wizard.controller import BaseController, FormController
from form_wizard.errors import (
    BadRequest,
    ConfigurationFault,
    MethodNotSupported,
    SystemFault,
    TemplateMissing,
    ValidationError,
)
from form_wizard.hooks import EventChannel, LifecycleHooks
from form_wizard.session import InMemorySessionStore, SessionBinder, SessionModel
from form_wizard.wizard import Wizard, load_wizard_file

__all__ = [
    "BadRequest",
    "BaseController",
    "ConfigurationFault",
    "EventChannel",
    "Failure",
    "FieldDefinition",
    "FieldEquals",
    "Fork",
    "FormConfiguration",
    "FormController",
    "FormRequest",
    "FormResponse",
    "FormState",
    "InMemorySessionStore",
    "LifecycleHooks",
    "MethodNotSupported",
    "Predicate",
    "SessionBinder",
    "SessionModel",
    "SystemFault",
    "TemplateMissing",
    "ValidationError",
    "Wizard",
    "load_wizard_file",
]
