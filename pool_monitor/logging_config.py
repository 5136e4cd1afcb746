from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s - %(message)s"


def setup_logging(level: str = "INFO") -> None:
    resolved = getattr(logging, str(level).strip().upper(), logging.INFO)
    if not isinstance(resolved, int):
        resolved = logging.INFO
    root = logging.getLogger()
    if root.handlers:
        root.setLevel(resolved)
        return
    logging.basicConfig(level=resolved, format=LOG_FORMAT)
