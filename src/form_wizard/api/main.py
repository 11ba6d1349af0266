from __future__ import annotations

import logging
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Iterable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.status import HTTP_500_INTERNAL_SERVER_ERROR

from form_wizard.api.http_logging import install_http_logging
from form_wizard.api.routes.health import router as health_router
from form_wizard.errors import FormWizardError
from form_wizard.session import InMemorySessionStore
from form_wizard.settings import Settings, configure_logging
from form_wizard.wizard import Wizard, load_wizard_file

logger = logging.getLogger("form_wizard.api")


def _repo_root() -> Path:
    # src/form_wizard/api/main.py -> repo root
    return Path(__file__).resolve().parents[3]


def _request_id(prefix: str) -> str:
    return f"{prefix}_{int(time.time() * 1000)}_{uuid.uuid4().hex[:8]}"


def _wizard_from_settings(settings: Settings) -> Optional[Wizard]:
    if not settings.steps_path:
        return None
    overrides: Dict[str, Any] = {
        "cookie_name": settings.cookie_name,
        "store": InMemorySessionStore(ttl_sec=settings.session_ttl_sec),
    }
    if settings.base_url:
        overrides["base_url"] = settings.base_url
    if settings.confirm_step:
        overrides["confirm_step"] = settings.confirm_step
    return load_wizard_file(settings.steps_path, **overrides)


def create_app(settings: Optional[Settings] = None, wizards: Optional[Iterable[Wizard]] = None) -> FastAPI:
    # Load `.env` + `.env.local` when present (local dev convenience).
    load_dotenv(_repo_root() / ".env", override=False)
    load_dotenv(_repo_root() / ".env.local", override=False)

    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="form-wizard-service")
    install_http_logging(app, settings)

    @app.exception_handler(FormWizardError)
    async def _wizard_error_handler(request: Request, exc: FormWizardError) -> JSONResponse:
        request_id = _request_id("err")
        logger.warning(
            "%s %s requestId=%s path=%s err=%s", exc.status_code, exc.error, request_id, request.url.path, exc
        )
        return JSONResponse(
            status_code=exc.status_code,
            content={"ok": False, "error": exc.error, "message": str(exc), "requestId": request_id},
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        request_id = _request_id("err")
        logger.exception("500 internal_error requestId=%s path=%s", request_id, request.url.path)
        return JSONResponse(
            status_code=HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "ok": False,
                "error": "internal_error",
                "message": "Unhandled server error.",
                "requestId": request_id,
            },
        )

    app.include_router(health_router)

    mounted = list(wizards or [])
    if not mounted:
        configured = _wizard_from_settings(settings)
        if configured is not None:
            mounted.append(configured)
    for wizard in mounted:
        logger.info("mounting wizard %s at %s (%d steps)", wizard.name, wizard.base_url, len(wizard.controllers))
        app.include_router(wizard.router())
    return app
