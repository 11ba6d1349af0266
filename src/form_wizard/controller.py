from __future__ import annotations

import logging
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Sequence, Tuple, Union

import anyio

from form_wizard.config import FormConfiguration
from form_wizard.context import Failure, FormRequest, FormResponse, FormState
from form_wizard.errors import (
    FormErrors,
    MethodNotSupported,
    SystemFault,
    TemplateMissing,
    ValidationError,
    error_redirect,
    is_validation_error,
)
from form_wizard.formatting import build_formatter
from form_wizard.hooks import EventChannel, LifecycleHooks, maybe_await
from form_wizard.navigation import (
    append_edit,
    back_link,
    edit_overlay,
    error_length,
    resolve_fork_target,
    step_history,
    with_base,
)
from form_wizard.rendering import JsonRenderer, Renderer, TemplateNotFound
from form_wizard.session import SessionBinder
from form_wizard.validation import FieldFailure, build_validator, validate_field, validate_fields

logger = logging.getLogger("form_wizard.controller")

HTTP_METHODS = ("get", "post", "put", "delete")

StageOutcome = Optional[Failure]
Stage = Callable[[FormRequest, FormResponse], Union[StageOutcome, Awaitable[StageOutcome]]]


def _as_outcome(value: Any) -> StageOutcome:
    """
    Stages and user seams may return None, a Failure, or a FormErrors mapping.

    Any other truthy value (an exception, a message) is treated as a failure
    and reaches `error_handler`.
    """
    if value is None or isinstance(value, Failure):
        return value
    if isinstance(value, Mapping):
        return Failure(dict(value)) if value else None
    return Failure(value) if value else None


class BaseController:
    """
    Request pipeline for one wizard step.

    GET:  configure -> errors -> values -> locals -> check empty -> render
    POST: configure -> clear errors -> process -> validate -> save -> success

    Any stage can stop the chain by returning a `Failure`. Validation
    failures are recovered into a redirect; anything else is re-raised for
    the host application.
    """

    ValidationError = ValidationError

    def __init__(
        self,
        options: Union[FormConfiguration, Mapping[str, Any], None],
        *,
        session: Optional[SessionBinder] = None,
        hooks: Optional[LifecycleHooks] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        if options is None:
            raise ValueError("Options must be provided")
        if not isinstance(options, FormConfiguration):
            options = FormConfiguration.model_validate(dict(options))
        if not options.template:
            logger.debug("No template provided")
        self.options = options
        self.session = session
        self.hooks = hooks
        self.renderer: Renderer = renderer or JsonRenderer()
        self.events = EventChannel()

    def on(self, event: str, listener: Callable[..., Any]) -> None:
        self.events.on(event, listener)

    async def handle(self, req: FormRequest, res: Optional[FormResponse] = None) -> FormResponse:
        res = res if res is not None else FormResponse()
        method = (req.method or "").lower()
        handler = getattr(self, method, None) if method in HTTP_METHODS else None
        if not callable(handler):
            raise MethodNotSupported(method)
        await handler(req, res)
        return res

    async def get(self, req: FormRequest, res: FormResponse) -> None:
        await self._run(
            [
                ("configure", self._configure),
                ("getErrors", self._get_errors),
                ("getValues", self._get_values),
                ("locals", self._locals),
                ("checkEmpty", self._check_empty),
                ("render", self.render),
            ],
            req,
            res,
        )

    async def post(self, req: FormRequest, res: FormResponse) -> None:
        await self._run(
            [
                ("configure", self._configure),
                ("clearErrors", self._clear_errors),
                ("process", self._process),
                ("validate", self._validate),
                ("saveValues", self._save_values),
                ("successHandler", self.success_handler),
            ],
            req,
            res,
        )

    async def _run(self, stages: Sequence[Tuple[str, Stage]], req: FormRequest, res: FormResponse) -> None:
        for name, stage in stages:
            outcome = await self._hook("pre", name, req, res)
            if outcome is None:
                outcome = _as_outcome(await maybe_await(stage(req, res)))
            if outcome is None:
                outcome = await self._hook("post", name, req, res)
            if outcome is not None:
                logger.debug("stage %s failed path=%s", name, req.path)
                await self.error_handler(outcome.error, req, res)
                return
            if res.finished:
                return

    async def _hook(self, phase: str, name: str, req: FormRequest, res: FormResponse) -> StageOutcome:
        if self.hooks is None:
            return None
        return await self.hooks.run(phase, name, req, res)

    # -- configure --------------------------------------------------------

    async def _configure(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        req.form = FormState(options=self.options.working_copy())
        return _as_outcome(await maybe_await(self.configure(req, res)))

    def configure(self, req: FormRequest, res: FormResponse) -> Any:
        return None

    # -- errors / values persistence ------------------------------------

    async def _get_errors(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        req.form.errors = dict(await maybe_await(self.get_errors(req, res)) or {})
        return None

    def get_errors(self, req: FormRequest, res: FormResponse) -> FormErrors:
        if self.session is None:
            return {}
        return self.session.get_errors(req)

    def set_errors(self, errors: Optional[FormErrors], req: FormRequest, res: FormResponse) -> None:
        if self.session is not None:
            self.session.set_errors(errors, req)

    async def _clear_errors(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        await maybe_await(self.set_errors(None, req, res))
        return None

    async def _get_values(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        req.form.values = dict(await maybe_await(self.get_values(req, res)) or {})
        return None

    def get_values(self, req: FormRequest, res: FormResponse) -> Dict[str, Any]:
        if self.session is None:
            return {}
        return self.session.get_values(req)

    async def _save_values(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        return _as_outcome(await maybe_await(self.save_values(req, res)))

    def save_values(self, req: FormRequest, res: FormResponse) -> Any:
        if self.session is not None:
            self.session.save_values(req)
        return None

    # -- view model -------------------------------------------------------

    async def _locals(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        res.locals.update(
            {
                "errors": req.form.errors,
                "errorlist": list(req.form.errors.values()),
                "values": req.form.values,
                "options": req.form.options,
                "action": with_base(req.base_url, req.path),
            }
        )
        res.locals.update(await maybe_await(self.locals(req, res)) or {})
        return None

    def locals(self, req: FormRequest, res: FormResponse) -> Dict[str, Any]:
        return {}

    async def _check_empty(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        if not req.form.options.fields and req.form.options.next:
            await self.events.emit("complete", req, res)
        return None

    async def render(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        template = req.form.options.template
        if not template:
            raise TemplateMissing()
        context = dict(res.locals)
        body = await anyio.to_thread.run_sync(lambda: self.renderer.render(template, context))
        res.rendered(template, body)
        return None

    # -- format + validate ----------------------------------------------

    def _formatter(self, req: FormRequest) -> Callable[[str, Any], Any]:
        options = req.form.options
        return build_formatter(options.fields, options.default_formatters, options.formatters)

    async def _process(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        formatter = self._formatter(req)
        for key in req.form.options.fields:
            req.form.values[key] = formatter(key, req.body.get(key) or "")
        return _as_outcome(await maybe_await(self.process(req, res)))

    def process(self, req: FormRequest, res: FormResponse) -> Any:
        return None

    async def _validate(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        logger.debug("Validating... path=%s", req.path)
        options = req.form.options
        errors = validate_fields(options.fields, req.form.values, build_validator(options.fields), self._formatter(req))
        if errors:
            return Failure(errors)
        # Whole-form validation only runs once every field passed.
        return _as_outcome(await maybe_await(self.validate(req, res)))

    def validate(self, req: FormRequest, res: FormResponse) -> Any:
        return None

    def validate_field(
        self,
        key: str,
        req: FormRequest,
        validator: Optional[Callable[..., Optional[FieldFailure]]] = None,
        formatter: Optional[Callable[[str, Any], Any]] = None,
    ) -> Optional[FieldFailure]:
        formatter = formatter or self._formatter(req)
        validator = validator or build_validator(req.form.options.fields)
        return validate_field(key, req.form.values, validator, formatter)

    # -- navigation -------------------------------------------------------

    def _next_target(self, req: FormRequest) -> str:
        options = req.form.options
        target = options.next or req.path
        if isinstance(options.forks, list):
            target = resolve_fork_target(options.forks, target, req) or req.path
        return target

    def get_next_step(self, req: FormRequest, res: Optional[FormResponse] = None) -> str:
        return with_base(req.base_url, self._next_target(req))

    def get_error_step(self, err: FormErrors, req: FormRequest) -> str:
        return with_base(req.base_url, error_redirect(err, req.path))

    async def success_handler(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        await self.events.emit("complete", req, res)
        next_step = self.get_next_step(req, res)
        logger.info("step complete path=%s next=%s", req.path, next_step)
        res.redirect(next_step)
        return None

    async def error_handler(self, err: Any, req: FormRequest, res: FormResponse) -> None:
        if is_validation_error(err):
            await maybe_await(self.set_errors(err, req, res))
            redirect = self.get_error_step(err, req)
            logger.info("validation failed path=%s keys=%s redirect=%s", req.path, sorted(err), redirect)
            res.redirect(redirect)
            return
        if isinstance(err, BaseException):
            raise err
        raise SystemFault(err)


class FormController(BaseController):
    """
    Wizard-aware controller: session persistence, lifecycle hooks, edit mode
    and the extra view-model locals the step templates rely on.
    """

    def __init__(
        self,
        options: Union[FormConfiguration, Mapping[str, Any], None],
        *,
        session: Optional[SessionBinder] = None,
        hooks: Optional[LifecycleHooks] = None,
        renderer: Optional[Renderer] = None,
    ) -> None:
        super().__init__(
            options,
            session=session if session is not None else SessionBinder(),
            hooks=hooks if hooks is not None else LifecycleHooks(),
            renderer=renderer,
        )

    async def render(self, req: FormRequest, res: FormResponse) -> StageOutcome:
        try:
            return await super().render(req, res)
        except TemplateNotFound as exc:
            partials = res.locals.get("partials") or {}
            fallback = req.form.options.default_template or partials.get("step")
            if not fallback or fallback == req.form.options.template:
                raise
            logger.warning("%s; rendering %r instead", exc, fallback)
            req.form.options.template = fallback
            return await super().render(req, res)

    def get_next_step(self, req: FormRequest, res: Optional[FormResponse] = None) -> str:
        target = self._next_target(req)
        if req.editing:
            options = req.form.options
            target = edit_overlay(
                target,
                confirm_step=options.confirm_step,
                continue_on_edit=options.continue_on_edit,
                history=step_history(req.session),
            )
        return with_base(req.base_url, target)

    def get_error_step(self, err: FormErrors, req: FormRequest) -> str:
        redirect = super().get_error_step(err, req)
        if req.editing:
            redirect = append_edit(redirect)
        return redirect

    def get_back_link(self, req: FormRequest, res: FormResponse) -> Optional[str]:
        value = res.locals["backLink"] if "backLink" in res.locals else req.form.options.back_link
        return back_link(value, req.base_url, req.editing)

    def get_error_length(self, req: FormRequest, res: FormResponse) -> Optional[Dict[str, bool]]:
        return error_length(req.form.errors)

    def locals(self, req: FormRequest, res: FormResponse) -> Dict[str, Any]:
        options = req.form.options
        out = dict(super().locals(req, res))
        out.update(
            {
                "baseUrl": req.base_url,
                "nextPage": self.get_next_step(req, res),
                "errorLength": self.get_error_length(req, res),
                "fields": [field.view(key) for key, field in options.fields.items()],
                "route": options.route.lstrip("/"),
                "backLink": self.get_back_link(req, res),
            }
        )
        out.update(options.locals)
        return out
