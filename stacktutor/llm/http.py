"""Shared JSON-over-HTTP transport used by every backend adapter."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Optional
from urllib.error import HTTPError, URLError
from urllib.request import Request, urlopen

from ..errors import BackendError
from ..logging import get_logger

logger = get_logger("llm.http")

DEFAULT_TIMEOUT = 120.0


@dataclass
class HttpRequest:
    """Represents one outbound backend call."""

    url: str
    payload: Dict[str, Any]
    headers: Dict[str, str] = field(default_factory=dict)
    timeout: float = DEFAULT_TIMEOUT


Sender = Callable[[HttpRequest], Dict[str, Any]]


class HttpTransport:
    """Posts JSON payloads with a mandatory timeout.

    ``sender`` replaces the urllib call entirely, which lets tests capture
    requests and return canned replies without touching the network.
    Every failure surfaces as :class:`BackendError` tagged with the backend.
    """

    def __init__(
        self,
        backend: str,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        sender: Optional[Sender] = None,
    ) -> None:
        if timeout is None or timeout <= 0:
            raise ValueError("HTTP transport requires a positive timeout")
        self.backend = backend
        self.timeout = timeout
        self._sender = sender or self._urllib_sender

    def post_json(self, url: str, payload: Dict[str, Any], headers: Dict[str, str]) -> Dict[str, Any]:
        request = HttpRequest(url=url, payload=payload, headers=dict(headers), timeout=self.timeout)
        logger.debug("POST %s (backend=%s, timeout=%.0fs)", url, self.backend, self.timeout)
        try:
            reply = self._sender(request)
        except BackendError:
            raise
        except Exception as exc:
            raise BackendError(self.backend, str(exc) or exc.__class__.__name__) from exc
        if not isinstance(reply, dict):
            raise BackendError(self.backend, "reply body is not a JSON object")
        return reply

    def _urllib_sender(self, request: HttpRequest) -> Dict[str, Any]:
        data = json.dumps(request.payload).encode("utf-8")
        headers = {"Content-Type": "application/json", **request.headers}
        http_request = Request(request.url, data=data, headers=headers, method="POST")

        try:
            with urlopen(http_request, timeout=request.timeout) as response:  # type: ignore[arg-type]
                raw = response.read()
        except HTTPError as exc:
            detail = exc.read().decode("utf-8", errors="ignore") if hasattr(exc, "read") else ""
            raise BackendError(self.backend, _error_message(detail) or str(exc.reason), status=exc.code) from exc
        except URLError as exc:
            raise BackendError(self.backend, f"request failed: {exc.reason}") from exc
        except TimeoutError as exc:
            raise BackendError(self.backend, f"request timed out after {request.timeout:.0f}s") from exc

        try:
            return json.loads(raw.decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BackendError(self.backend, "reply body is not valid JSON") from exc


def _error_message(detail: str) -> str:
    """Pull the human-readable message out of a JSON error body when present."""
    detail = detail.strip()
    if not detail:
        return ""
    try:
        body = json.loads(detail)
    except json.JSONDecodeError:
        return detail[:500]
    if isinstance(body, dict):
        error = body.get("error")
        if isinstance(error, dict) and isinstance(error.get("message"), str):
            return error["message"]
        if isinstance(error, str):
            return error
        if isinstance(body.get("message"), str):
            return body["message"]
    return detail[:500]


__all__ = ["DEFAULT_TIMEOUT", "HttpRequest", "HttpTransport", "Sender"]
