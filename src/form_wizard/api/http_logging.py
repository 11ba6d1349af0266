from __future__ import annotations

import json
import logging
import time
import uuid
from typing import Any, Dict, Iterable, List, Optional, Tuple
from urllib.parse import parse_qs

from starlette.types import ASGIApp, Message, Receive, Scope, Send

from form_wizard.settings import Settings

logger = logging.getLogger("form_wizard.http")


_SENSITIVE_KEYS = {
    "authorization",
    "cookie",
    "set-cookie",
    "x-api-key",
    "api_key",
    "apikey",
    "access_token",
    "refresh_token",
    "token",
    "secret",
    "password",
    "csrf-secret",
    "x-csrf-token",
}


def _redact(value: Any) -> Any:
    if isinstance(value, dict):
        out: Dict[str, Any] = {}
        for k, v in value.items():
            key = str(k).lower()
            if key in _SENSITIVE_KEYS:
                out[k] = "***"
            else:
                out[k] = _redact(v)
        return out
    if isinstance(value, list):
        return [_redact(v) for v in value]
    return value


def _decode_headers(headers: Optional[Iterable[Tuple[bytes, bytes]]]) -> Dict[str, str]:
    out: Dict[str, str] = {}
    if not headers:
        return out
    for k, v in headers:
        ks = k.decode("latin-1").lower()
        vs = "***" if ks in _SENSITIVE_KEYS else v.decode("latin-1")
        out[ks] = vs
    return out


def _header(headers: Optional[Iterable[Tuple[bytes, bytes]]], name: bytes) -> str:
    for k, v in headers or []:
        if k.lower() == name:
            return v.decode("latin-1")
    return ""


def _parse_body(content_type: str, body: bytes) -> Any:
    ct = (content_type or "").lower()
    text = body.decode("utf-8", errors="replace")
    if "application/json" in ct:
        try:
            return _redact(json.loads(text))
        except ValueError:
            return text
    if "application/x-www-form-urlencoded" in ct:
        # Wizard submissions are form posts; redact them field by field.
        fields = {k: v[0] if len(v) == 1 else v for k, v in parse_qs(text, keep_blank_values=True).items()}
        return _redact(fields)
    if "multipart/form-data" in ct:
        return "<multipart>"
    if ct.startswith("text/"):
        return text
    if not body:
        return ""
    return "<binary>"


class _Capture:
    def __init__(self, limit: int) -> None:
        self.limit = limit
        self.buf = bytearray()
        self.truncated = False

    def add(self, chunk: bytes) -> None:
        if not chunk or self.limit <= 0 or self.truncated:
            return
        remaining = self.limit - len(self.buf)
        if remaining > 0:
            self.buf.extend(chunk[:remaining])
        if len(chunk) > remaining:
            self.truncated = True


class HttpLoggingMiddleware:
    """One JSON log line per wizard request: method, path, status, redirect target, timings."""

    def __init__(
        self,
        app: ASGIApp,
        *,
        log_headers: bool,
        max_body_bytes: int,
    ) -> None:
        self.app = app
        self.log_headers = log_headers
        self.max_body_bytes = max(0, max_body_bytes)

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope.get("type") != "http":
            await self.app(scope, receive, send)
            return

        started_at = time.perf_counter()
        req_headers_list: List[Tuple[bytes, bytes]] = list(scope.get("headers") or [])
        request_id = _header(req_headers_list, b"x-request-id") or uuid.uuid4().hex[:12]
        req_body = _Capture(self.max_body_bytes)
        res_body = _Capture(self.max_body_bytes)
        res_headers_list: List[Tuple[bytes, bytes]] = []
        res_status: Optional[int] = None

        async def receive_wrapped() -> Message:
            message = await receive()
            if message.get("type") == "http.request":
                req_body.add(message.get("body") or b"")
            return message

        async def send_wrapped(message: Message) -> None:
            nonlocal res_status, res_headers_list
            if message.get("type") == "http.response.start":
                res_status = int(message.get("status") or 0)
                res_headers_list = list(message.get("headers") or [])
            elif message.get("type") == "http.response.body":
                res_body.add(message.get("body") or b"")
            await send(message)

        err: Optional[BaseException] = None
        try:
            await self.app(scope, receive_wrapped, send_wrapped)
        except BaseException as e:  # noqa: BLE001 - log then re-raise
            err = e
            raise
        finally:
            req_ct = _header(req_headers_list, b"content-type")
            res_ct = _header(res_headers_list, b"content-type")
            record: Dict[str, Any] = {
                "id": request_id,
                "method": str(scope.get("method") or "").upper(),
                "path": str(scope.get("path") or ""),
                "status": res_status,
                "dur_ms": int((time.perf_counter() - started_at) * 1000),
                "request": {
                    "content_type": req_ct,
                    "headers": _decode_headers(req_headers_list) if self.log_headers else {},
                    "body": _parse_body(req_ct, bytes(req_body.buf)) if self.max_body_bytes else "",
                    "body_truncated": req_body.truncated,
                },
                "response": {
                    "content_type": res_ct,
                    "location": _header(res_headers_list, b"location") or None,
                    "headers": _decode_headers(res_headers_list) if self.log_headers else {},
                    "body": _parse_body(res_ct, bytes(res_body.buf)) if self.max_body_bytes else "",
                    "body_truncated": res_body.truncated,
                },
            }
            if err is not None:
                record["error"] = {"type": type(err).__name__, "message": str(err)}
            logger.info(json.dumps(record, ensure_ascii=False, separators=(",", ":"), default=str))


def install_http_logging(app: Any, settings: Settings) -> None:
    """Enable request/response logging when `FORM_WIZARD_HTTP_LOG=1`."""
    if not settings.http_log:
        return
    app.add_middleware(
        HttpLoggingMiddleware,
        log_headers=settings.http_log_headers,
        max_body_bytes=settings.http_log_body_max_bytes,
    )
