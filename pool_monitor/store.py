from __future__ import annotations

import contextlib
import json
import logging
import os
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from .errors import PersistenceError
from .models import NotifyRecord, normalize_key

logger = logging.getLogger(__name__)


class NotifyStateStore:
    """Last-notified records keyed by lowercase pool address, backed by a JSON file."""

    def __init__(self, path: Path) -> None:
        self._path = Path(path)
        self._records: Dict[str, NotifyRecord] = {}

    @property
    def path(self) -> Path:
        return self._path

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return isinstance(key, str) and normalize_key(key) in self._records

    def get(self, key: str) -> Optional[NotifyRecord]:
        return self._records.get(normalize_key(key))

    def set(self, key: str, record: NotifyRecord) -> None:
        self._records[normalize_key(key)] = record

    def items(self) -> List[Tuple[str, NotifyRecord]]:
        return sorted(self._records.items())

    def load(self) -> int:
        try:
            raw = self._path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return 0
        except (OSError, UnicodeDecodeError) as exc:
            logger.warning("notify_state_load_failed path=%s err=%r", self._path, exc)
            return 0

        try:
            data = json.loads(raw)
        except (ValueError, RecursionError) as exc:
            logger.warning("notify_state_load_failed path=%s err=%r", self._path, exc)
            return 0
        if not isinstance(data, dict):
            logger.warning(
                "notify_state_load_failed path=%s err=unexpected_root_type type=%s",
                self._path,
                type(data).__name__,
            )
            return 0

        loaded = 0
        for address, value in data.items():
            record = NotifyRecord.from_payload(value)
            if record is None:
                continue
            self._records[normalize_key(str(address))] = record
            loaded += 1
        logger.info("notify_state_loaded path=%s records=%s", self._path, len(self._records))
        return loaded

    def persist(self) -> None:
        payload = {key: record.to_payload() for key, record in self._records.items()}
        tmp_path = self._path.with_name(f"{self._path.name}.tmp")
        try:
            self._path.parent.mkdir(parents=True, exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as handle:
                json.dump(payload, handle, indent=2)
                handle.flush()
                os.fsync(handle.fileno())
            os.replace(tmp_path, self._path)
        except OSError as exc:
            with contextlib.suppress(OSError):
                tmp_path.unlink(missing_ok=True)
            raise PersistenceError(f"failed to persist notify state to {self._path}: {exc}") from exc
        logger.debug("notify_state_persisted path=%s records=%s", self._path, len(payload))
