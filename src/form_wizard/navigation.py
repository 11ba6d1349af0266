from __future__ import annotations

import re
from typing import Any, Dict, Iterable, List, Mapping, Optional

from form_wizard.config import Fork, evaluate_condition

EDIT_SUFFIX = "/edit"
_ABSOLUTE_URL = re.compile(r"^https?://")
_EDIT_SEGMENT = re.compile(r"/edit(/|$)")


def resolve_fork_target(forks: Iterable[Fork], default: Optional[str], request: Any) -> Optional[str]:
    """
    Fold the forks in order: the last fork whose condition holds wins.

    A false condition never resets an earlier match.
    """
    result = default
    for fork in forks:
        if evaluate_condition(fork.condition, request):
            result = fork.target
    return result


def with_base(base_url: str, path: str) -> str:
    if base_url == "/" or _ABSOLUTE_URL.match(path or ""):
        return path
    return f"{base_url}{path}"


def append_edit(path: str) -> str:
    if _EDIT_SEGMENT.search(path):
        return path
    return path + EDIT_SUFFIX


def edit_overlay(
    raw_next: str,
    *,
    confirm_step: str,
    continue_on_edit: bool,
    history: Optional[Iterable[str]],
) -> str:
    """
    Decide where an edit of an earlier step goes next.

    - the confirm step is returned as-is
    - `continue_on_edit` walks forward while staying in edit mode
    - otherwise an already-visited target jumps to the confirm step and an
      unvisited target (a newly opened branch) is returned unchanged
    """
    if raw_next == confirm_step:
        return raw_next
    if continue_on_edit:
        return append_edit(raw_next)
    if raw_next in list(history or []):
        return confirm_step
    return raw_next


def back_link(value: Optional[str], base_url: str, editing: bool) -> Optional[str]:
    if not value:
        return value
    leading = "/" if base_url in ("/", "") else ""
    trailing = EDIT_SUFFIX if editing else ""
    return f"{leading}{value}{trailing}"


def error_length(errors: Optional[Mapping[str, Any]]) -> Optional[Dict[str, bool]]:
    count = len(errors or {})
    if not count:
        return None
    return {"single": True} if count == 1 else {"multiple": True}


def step_history(session: Any, key: str = "steps") -> List[str]:
    if session is None:
        return []
    return list(session.get(key) or [])
