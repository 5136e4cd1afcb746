from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, List

import yaml

from .filters import Thresholds
from .utils import resolve_path

DEFAULT_API_BASE_URL = "https://earn-service.kyberswap.com/api/v1/explorer/pools"
CONFIG_PATH_ENV = "POOL_MONITOR_CONFIG"


def _load_dotenv() -> None:
    env_path = Path(__file__).resolve().parents[1] / ".env"
    if not env_path.exists():
        return
    for line in env_path.read_text(encoding="utf-8").splitlines():
        text = line.strip()
        if not text or text.startswith("#") or "=" not in text:
            continue
        key, value = text.split("=", 1)
        key = key.strip()
        value = value.strip().strip("'\"")
        os.environ.setdefault(key, value)


def _load_config_file() -> Dict[str, Any]:
    path = os.getenv(CONFIG_PATH_ENV, "").strip()
    if not path:
        return {}
    file_path = resolve_path(path)
    if not file_path.exists():
        raise FileNotFoundError(f"config file not found: {file_path}")
    with open(file_path, "r", encoding="utf-8") as handle:
        data = yaml.safe_load(handle) or {}
    if not isinstance(data, dict):
        raise ValueError(f"config file must contain a mapping: {file_path}")
    return data


def _get_env_str(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip()


def _get_env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return int(default)
    return int(value)


def _get_env_float(name: str, default: float) -> float:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return float(default)
    parsed = float(value)
    if parsed != parsed or parsed in (float("inf"), float("-inf")):
        raise ValueError(f"{name} must be a finite number: {value!r}")
    return parsed


def _get_env_list(name: str, default: List[str]) -> List[str]:
    value = os.getenv(name)
    if not value:
        return default
    return [item.strip() for item in value.split(",") if item.strip()]


def _get_env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None or value.strip() == "":
        return default
    normalized = value.strip().lower()
    if normalized in {"1", "true", "yes", "y", "on"}:
        return True
    if normalized in {"0", "false", "no", "n", "off"}:
        return False
    return default


def _as_list(value: Any) -> List[str]:
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]
    return [item.strip() for item in str(value).split(",") if item.strip()]


def _as_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "y", "on"}


@dataclass(frozen=True)
class Config:
    api_base_url: str
    chain_ids: List[str]
    pages: int
    limit: int
    page_delay_sec: float
    min_apr: float
    min_earn_fee: float
    min_volume: float
    lark_webhook_url: str
    notify_cooldown_ms: int
    volume_growth_ratio: float
    notify_store_path: Path
    poll_interval_sec: int
    request_timeout_sec: float
    health_enabled: bool
    health_host: str
    health_port: int
    log_level: str

    @property
    def thresholds(self) -> Thresholds:
        return Thresholds(
            min_apr=self.min_apr,
            min_earn_fee=self.min_earn_fee,
            min_volume=self.min_volume,
        )

    @property
    def chain_ids_param(self) -> str:
        return ",".join(self.chain_ids)

    @classmethod
    def from_env(cls) -> "Config":
        _load_dotenv()
        file_values = _load_config_file()

        def default(key: str, fallback: Any) -> Any:
            value = file_values.get(key)
            return fallback if value is None else value

        store_path = _get_env_str(
            "POOL_NOTIFY_STORE_PATH", str(default("notify_store_path", "data/pool-notify.json"))
        )
        return cls(
            api_base_url=_get_env_str(
                "KYBER_EARN_API_BASE_URL", str(default("api_base_url", DEFAULT_API_BASE_URL))
            ),
            chain_ids=_get_env_list("KYBER_CHAIN_IDS", _as_list(default("chain_ids", "8453,56"))),
            pages=max(1, _get_env_int("POOL_PAGES", default("pages", 5))),
            limit=max(1, _get_env_int("POOL_LIMIT", default("limit", 10))),
            page_delay_sec=max(0.0, _get_env_float("POOL_PAGE_DELAY_SEC", default("page_delay_sec", 5.0))),
            min_apr=_get_env_float("POOL_MIN_APR", default("min_apr", 3000)),
            min_earn_fee=_get_env_float("POOL_MIN_EARN_FEE", default("min_earn_fee", 1000)),
            min_volume=_get_env_float("POOL_MIN_VOLUME", default("min_volume", 100_000)),
            lark_webhook_url=_get_env_str("LARK_WEBHOOK_URL", str(default("lark_webhook_url", ""))),
            notify_cooldown_ms=_get_env_int(
                "POOL_NOTIFY_COOLDOWN_MS", default("notify_cooldown_ms", 24 * 60 * 60_000)
            ),
            volume_growth_ratio=_get_env_float(
                "POOL_VOLUME_GROWTH_RATIO", default("volume_growth_ratio", 0.2)
            ),
            notify_store_path=resolve_path(store_path),
            poll_interval_sec=max(1, _get_env_int("POOL_POLL_INTERVAL_SEC", default("poll_interval_sec", 900))),
            request_timeout_sec=max(
                0.5, _get_env_float("HTTP_REQUEST_TIMEOUT_SEC", default("request_timeout_sec", 15.0))
            ),
            health_enabled=_get_env_bool("HEALTH_ENABLED", _as_bool(default("health_enabled", False))),
            health_host=_get_env_str("HEALTH_HOST", str(default("health_host", "0.0.0.0"))),
            health_port=_get_env_int("HEALTH_PORT", default("health_port", 8080)),
            log_level=_get_env_str("LOG_LEVEL", str(default("log_level", "INFO"))),
        )
