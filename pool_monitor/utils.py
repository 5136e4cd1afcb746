from __future__ import annotations

import os
import time
from pathlib import Path


def now_ms() -> int:
    return int(time.time() * 1000)


def resolve_path(path: str | Path) -> Path:
    candidate = Path(path).expanduser()
    if candidate.is_absolute():
        return candidate
    return Path(os.getcwd()) / candidate


def mask_url(url: str) -> str:
    text = url.strip()
    if not text:
        return "none"
    scheme, sep, rest = text.partition("://")
    if not sep:
        return "*" * min(len(text), 8)
    host, _, tail = rest.partition("/")
    if not tail:
        return f"{scheme}://{host}"
    if len(tail) <= 8:
        return f"{scheme}://{host}/***"
    return f"{scheme}://{host}/{tail[:4]}...{tail[-4:]}"
