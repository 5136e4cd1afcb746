from dataclasses import replace
from pathlib import Path

import pytest

from pool_monitor.config import Config


def _base_config(store_path: Path) -> Config:
    return Config(
        api_base_url="https://pools.example/api/v1/explorer/pools",
        chain_ids=["8453", "56"],
        pages=2,
        limit=10,
        page_delay_sec=0.0,
        min_apr=3000,
        min_earn_fee=1000,
        min_volume=100_000,
        lark_webhook_url="https://open.larksuite.com/open-apis/bot/v2/hook/abcdef123456",
        notify_cooldown_ms=86_400_000,
        volume_growth_ratio=0.2,
        notify_store_path=store_path,
        poll_interval_sec=900,
        request_timeout_sec=5.0,
        health_enabled=False,
        health_host="127.0.0.1",
        health_port=8080,
        log_level="INFO",
    )


@pytest.fixture
def make_config(tmp_path):
    def _make(**overrides) -> Config:
        return replace(_base_config(tmp_path / "data" / "pool-notify.json"), **overrides)

    return _make
