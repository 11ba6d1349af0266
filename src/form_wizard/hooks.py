from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, Dict, List, Optional

from form_wizard.context import Failure, FormRequest, FormResponse

logger = logging.getLogger("form_wizard.hooks")


async def maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class EventChannel:
    """Explicit listener registry for controller events such as `complete`."""

    def __init__(self) -> None:
        self._listeners: Dict[str, List[Callable[..., Any]]] = {}

    def on(self, event: str, listener: Callable[..., Any]) -> None:
        self._listeners.setdefault(event, []).append(listener)

    def off(self, event: str, listener: Callable[..., Any]) -> None:
        listeners = self._listeners.get(event) or []
        if listener in listeners:
            listeners.remove(listener)

    def listeners(self, event: str) -> List[Callable[..., Any]]:
        return list(self._listeners.get(event) or [])

    async def emit(self, event: str, *args: Any) -> None:
        for listener in self.listeners(event):
            await maybe_await(listener(*args))


class LifecycleHooks:
    """
    Runs `pre-<stage>` / `post-<stage>` callables configured on the step.

    Hooks are read from the request's configuration copy, so a `configure`
    override can add or drop hooks for a single request. A hook returning a
    `Failure` stops the chain like a stage would.
    """

    async def run(self, phase: str, stage: str, req: FormRequest, res: FormResponse) -> Optional[Failure]:
        if req.form is None:
            return None
        for hook in req.form.options.hooks.get(f"{phase}-{stage}", []):
            logger.debug("hook %s-%s %s", phase, stage, getattr(hook, "__name__", hook))
            outcome = await maybe_await(hook(req, res))
            if isinstance(outcome, Failure):
                return outcome
        return None
