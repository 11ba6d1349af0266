from __future__ import annotations

import json
import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Mapping, Optional, Type, Union

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse, RedirectResponse, Response

from form_wizard.config import DEFAULT_CONFIRM_STEP, FormConfiguration
from form_wizard.context import FormRequest, FormResponse
from form_wizard.controller import HTTP_METHODS, FormController
from form_wizard.errors import BadRequest
from form_wizard.navigation import step_history
from form_wizard.rendering import Renderer
from form_wizard.session import InMemorySessionStore, SessionModel, SessionStore

logger = logging.getLogger("form_wizard.wizard")

DEFAULT_COOKIE_NAME = "form_wizard_sid"


def _step_config(
    route: str,
    step: Union[FormConfiguration, Mapping[str, Any]],
    fields: Mapping[str, Any],
    *,
    confirm_step: str,
    back_link: Optional[str],
) -> FormConfiguration:
    if isinstance(step, FormConfiguration):
        updates: Dict[str, Any] = {}
        if not step.route:
            updates["route"] = route
        return step.model_copy(update=updates) if updates else step

    raw = dict(step)
    step_fields = raw.get("fields") or []
    if isinstance(step_fields, (list, tuple)):
        # Steps name their fields; definitions live in the shared fields map.
        raw["fields"] = {name: fields.get(name, {}) for name in step_fields}
    raw.setdefault("route", route)
    raw.setdefault("template", route.strip("/") or "index")
    if "confirmStep" not in raw and "confirm_step" not in raw:
        raw["confirmStep"] = confirm_step
    if "backLink" not in raw and "back_link" not in raw and back_link:
        raw["backLink"] = back_link
    return FormConfiguration.model_validate(raw)


async def _read_body(request: Request) -> Dict[str, Any]:
    ct = (request.headers.get("content-type") or "").lower()
    if "application/json" in ct:
        if not await request.body():
            return {}
        try:
            data = await request.json()
        except ValueError as e:
            raise BadRequest("Request body is not valid JSON") from e
        return data if isinstance(data, dict) else {}
    if ct.startswith(("application/x-www-form-urlencoded", "multipart/form-data")):
        form = await request.form()
        body: Dict[str, Any] = {}
        for key in form.keys():
            items = form.getlist(key)
            body[key] = items[0] if len(items) == 1 else items
        return body
    return {}


def to_response(res: FormResponse) -> Response:
    if res.redirect_to is not None:
        return RedirectResponse(res.redirect_to, status_code=res.status_code)
    if isinstance(res.body, Response):
        return res.body
    return JSONResponse(res.body, status_code=res.status_code)


class Wizard:
    """
    A named sequence of steps sharing one session namespace.

    Each step gets its own `FormController`. Completing a step records it in
    the session's `steps` history, which edit mode consults.
    """

    def __init__(
        self,
        steps: Mapping[str, Union[FormConfiguration, Mapping[str, Any]]],
        fields: Optional[Mapping[str, Any]] = None,
        *,
        name: str = "wizard",
        base_url: str = "/",
        confirm_step: str = DEFAULT_CONFIRM_STEP,
        store: Optional[SessionStore] = None,
        renderer: Optional[Renderer] = None,
        controller_class: Type[FormController] = FormController,
        cookie_name: str = DEFAULT_COOKIE_NAME,
    ) -> None:
        self.name = name
        self.base_url = base_url or "/"
        self.namespace = f"form-wizard-{name}"
        self.store: SessionStore = store if store is not None else InMemorySessionStore()
        self.cookie_name = cookie_name
        self.controllers: Dict[str, FormController] = {}

        previous: Optional[str] = None
        for route, step in steps.items():
            config = _step_config(
                route,
                step,
                fields or {},
                confirm_step=confirm_step,
                back_link=previous.lstrip("/") if previous else None,
            )
            controller = controller_class(config, renderer=renderer)
            controller.on("complete", self._record_step)
            self.controllers[route] = controller
            previous = route

    def session_for(self, session_id: str) -> SessionModel:
        return SessionModel(self.store, session_id, self.namespace)

    @staticmethod
    def _record_step(req: FormRequest, res: FormResponse) -> None:
        if req.session is None:
            return
        history: List[str] = step_history(req.session)
        route = req.form.options.route
        if route and route not in history:
            history.append(route)
            req.session.set("steps", history)

    async def dispatch(
        self,
        route: str,
        method: str,
        session_id: str,
        *,
        action: Optional[str] = None,
        body: Optional[Dict[str, Any]] = None,
    ) -> FormResponse:
        controller = self.controllers[route]
        path = route.rstrip("/") + f"/{action}" if action else route
        req = FormRequest(
            method=method,
            path=path,
            base_url=self.base_url,
            params={"action": action} if action else {},
            body=body or {},
            session=self.session_for(session_id),
        )
        return await controller.handle(req)

    def router(self) -> APIRouter:
        prefix = "" if self.base_url == "/" else self.base_url.rstrip("/")
        router = APIRouter(prefix=prefix, tags=[self.name])
        methods = [m.upper() for m in HTTP_METHODS]
        endpoints = {route: self._endpoint(route) for route in self.controllers}
        # Plain step routes first, so `/{action}` on a root step cannot shadow a sibling.
        for route, endpoint in endpoints.items():
            router.add_api_route(route, endpoint, methods=methods, include_in_schema=False)
        for route, endpoint in endpoints.items():
            router.add_api_route(route.rstrip("/") + "/{action}", endpoint, methods=methods, include_in_schema=False)
        return router

    def _endpoint(self, route: str):
        async def endpoint(request: Request) -> Response:
            session_id = request.cookies.get(self.cookie_name) or uuid.uuid4().hex
            body = await _read_body(request) if request.method != "GET" else {}
            res = await self.dispatch(
                route,
                request.method,
                session_id,
                action=request.path_params.get("action"),
                body=body,
            )
            response = to_response(res)
            response.set_cookie(self.cookie_name, session_id, httponly=True, samesite="lax")
            return response

        endpoint.__name__ = f"{self.name}_{route.strip('/').replace('-', '_') or 'index'}"
        return endpoint


def load_wizard_file(path: Union[str, Path], **kwargs: Any) -> Wizard:
    """Build a wizard from a JSON definition: `{name, baseUrl, confirmStep, steps, fields}`."""
    definition = json.loads(Path(path).read_text(encoding="utf-8"))
    options: Dict[str, Any] = {
        "name": definition.get("name") or Path(path).stem,
        "base_url": definition.get("baseUrl") or "/",
        "confirm_step": definition.get("confirmStep") or DEFAULT_CONFIRM_STEP,
    }
    options.update(kwargs)
    logger.info("loaded wizard %s steps=%d from %s", options["name"], len(definition.get("steps") or {}), path)
    return Wizard(definition.get("steps") or {}, definition.get("fields") or {}, **options)
