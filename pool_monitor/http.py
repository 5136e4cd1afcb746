from __future__ import annotations

import json
import urllib.error
import urllib.request
from dataclasses import dataclass
from typing import Any, Callable, Mapping

USER_AGENT = "pool-monitor/0.3"


@dataclass(frozen=True)
class HttpResponse:
    status_code: int
    body: str
    reason: str = ""

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 300

    def json(self) -> Any:
        return json.loads(self.body)


HttpGet = Callable[[str, float], HttpResponse]
HttpPostJson = Callable[[str, Mapping[str, Any], float], HttpResponse]


def _read_response(request: urllib.request.Request, timeout: float) -> HttpResponse:
    try:
        with urllib.request.urlopen(request, timeout=timeout) as response:
            body = response.read().decode("utf-8", errors="replace")
            status = int(getattr(response, "status", response.getcode()))
            return HttpResponse(status_code=status, body=body, reason=str(response.reason or ""))
    except urllib.error.HTTPError as exc:
        body = ""
        try:
            body = exc.read().decode("utf-8", errors="replace")
        except Exception:
            body = ""
        return HttpResponse(status_code=int(exc.code), body=body, reason=str(exc.reason or ""))


def http_get(url: str, timeout: float) -> HttpResponse:
    request = urllib.request.Request(url, method="GET")
    request.add_header("Accept", "application/json")
    request.add_header("User-Agent", USER_AGENT)
    return _read_response(request, timeout)


def http_post_json(url: str, payload: Mapping[str, Any], timeout: float) -> HttpResponse:
    encoded = json.dumps(payload, ensure_ascii=False).encode("utf-8")
    request = urllib.request.Request(url, data=encoded, method="POST")
    request.add_header("Content-Type", "application/json")
    request.add_header("User-Agent", USER_AGENT)
    return _read_response(request, timeout)
