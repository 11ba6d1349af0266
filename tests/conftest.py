from __future__ import annotations

import asyncio
import sys
from pathlib import Path

import pytest


_REPO_ROOT = Path(__file__).resolve().parents[1]
_SRC = _REPO_ROOT / "src"
if _SRC.exists():
    sys.path.insert(0, str(_SRC))

from form_wizard.context import FormRequest, FormResponse  # noqa: E402
from form_wizard.session import InMemorySessionStore, SessionModel  # noqa: E402


@pytest.fixture
def session():
    return SessionModel(InMemorySessionStore(), "sid-1", "form-wizard-test")


@pytest.fixture
def configured():
    """Run a controller's configure stage so `req.form` is populated, as the pipeline would."""

    def _configured(controller, **kwargs):
        req = FormRequest(**kwargs)
        asyncio.run(controller._configure(req, FormResponse()))
        return req

    return _configured


@pytest.fixture
def contact_wizard_path() -> Path:
    return _REPO_ROOT / "examples" / "contact_wizard.json"
