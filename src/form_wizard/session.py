from __future__ import annotations

import copy
import threading
import time
import uuid
from typing import Any, Dict, Mapping, Optional, Protocol, Tuple

from form_wizard.errors import FormErrors, ValidationError


class SessionStore(Protocol):
    def load(self, session_id: str) -> Dict[str, Any]: ...

    def save(self, session_id: str, data: Dict[str, Any]) -> None: ...


class InMemorySessionStore:
    """Process-local store with a sliding TTL; fine for one worker and for tests."""

    def __init__(self, ttl_sec: int = 3600) -> None:
        self.ttl_sec = max(60, int(ttl_sec or 0))
        self._data: Dict[str, Tuple[float, Dict[str, Any]]] = {}
        self._lock = threading.Lock()

    @staticmethod
    def new_id() -> str:
        return uuid.uuid4().hex

    def load(self, session_id: str) -> Dict[str, Any]:
        with self._lock:
            rec = self._data.get(session_id)
            if not rec:
                return {}
            expires_at, data = rec
            if time.time() >= expires_at:
                self._data.pop(session_id, None)
                return {}
            return data

    def save(self, session_id: str, data: Dict[str, Any]) -> None:
        with self._lock:
            self._data[session_id] = (time.time() + self.ttl_sec, data)


class SessionModel:
    """Namespaced key-value view over one session (`get`, `set`, `unset`, `reset`)."""

    def __init__(self, store: SessionStore, session_id: str, namespace: str) -> None:
        self.store = store
        self.session_id = session_id
        self.namespace = namespace

    def _bucket(self) -> Dict[str, Any]:
        data = self.store.load(self.session_id)
        return dict(data.get(self.namespace) or {})

    def _write(self, bucket: Dict[str, Any]) -> None:
        data = dict(self.store.load(self.session_id))
        data[self.namespace] = bucket
        self.store.save(self.session_id, data)

    def get(self, key: str, default: Any = None) -> Any:
        return copy.deepcopy(self._bucket().get(key, default))

    def set(self, key_or_values: Any, value: Any = None) -> None:
        bucket = self._bucket()
        if isinstance(key_or_values, Mapping):
            bucket.update(copy.deepcopy(dict(key_or_values)))
        else:
            bucket[key_or_values] = copy.deepcopy(value)
        self._write(bucket)

    def unset(self, key: str) -> None:
        bucket = self._bucket()
        bucket.pop(key, None)
        self._write(bucket)

    def reset(self, key: Optional[str] = None) -> None:
        if key is None:
            self._write({})
        else:
            self.unset(key)

    def to_dict(self) -> Dict[str, Any]:
        return copy.deepcopy(self._bucket())


_RESERVED_KEYS = {"errors", "errorValues", "steps"}


class SessionBinder:
    """
    Persists step values and errors in the request's session model.

    Errors and the submitted values survive the POST -> redirect -> GET cycle;
    on load, errors are filtered to the keys the current step owns.
    """

    def get_values(self, req: Any) -> Dict[str, Any]:
        if req.session is None:
            return {}
        data = req.session.to_dict()
        error_values = data.get("errorValues") or {}
        for key in _RESERVED_KEYS:
            data.pop(key, None)
        data.update(error_values)
        return data

    def save_values(self, req: Any) -> None:
        if req.session is None:
            return
        req.session.set(dict(req.form.values))
        req.session.unset("errorValues")

    def get_errors(self, req: Any) -> FormErrors:
        if req.session is None:
            return {}
        stored = req.session.get("errors") or {}
        fields = req.form.options.fields
        owned = set(fields) | {f.group for f in fields.values() if f.group}
        return {
            key: err
            for key, err in stored.items()
            if key in owned and isinstance(err, ValidationError) and not err.redirect
        }

    def set_errors(self, errors: Optional[FormErrors], req: Any) -> None:
        if req.session is None:
            return
        if errors:
            req.session.set("errors", dict(errors))
            req.session.set("errorValues", dict(req.form.values) if req.form else {})
        else:
            req.session.unset("errors")
