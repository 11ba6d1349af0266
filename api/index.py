from __future__ import annotations

from form_wizard.api.main import create_app

app = create_app()
