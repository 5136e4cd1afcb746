from __future__ import annotations

import asyncio
import logging
import signal

from .config import Config
from .health import HealthServer
from .logging_config import setup_logging
from .notifiers.lark import LarkNotifier
from .pools_client import PoolsApiClient
from .runner import PollRunner
from .store import NotifyStateStore
from .utils import mask_url

logger = logging.getLogger(__name__)


def _install_signal_handlers(stop_event: asyncio.Event) -> None:
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            signal.signal(sig, lambda *_: stop_event.set())


def build_runner(config: Config) -> PollRunner:
    store = NotifyStateStore(config.notify_store_path)
    client = PoolsApiClient(
        base_url=config.api_base_url,
        request_timeout_sec=config.request_timeout_sec,
    )
    notifier = LarkNotifier(
        webhook_url=config.lark_webhook_url,
        thresholds=config.thresholds,
        request_timeout_sec=config.request_timeout_sec,
    )
    return PollRunner(config, client, notifier, store)


async def run() -> None:
    config = Config.from_env()
    setup_logging(config.log_level)
    logger.info(
        "config_loaded api=%s chain_ids=%s pages=%s limit=%s filters=%s cooldown_ms=%s "
        "growth_ratio=%s store=%s webhook=%s interval_sec=%s",
        config.api_base_url,
        config.chain_ids_param,
        config.pages,
        config.limit,
        config.thresholds.describe(),
        config.notify_cooldown_ms,
        config.volume_growth_ratio,
        config.notify_store_path,
        mask_url(config.lark_webhook_url),
        config.poll_interval_sec,
    )

    runner = build_runner(config)
    await asyncio.to_thread(runner.store.load)

    health: HealthServer | None = None
    if config.health_enabled:
        health = HealthServer(config.health_host, config.health_port, runner)
        await health.start()

    stop_event = asyncio.Event()
    _install_signal_handlers(stop_event)
    try:
        await runner.run_forever(stop_event)
    finally:
        if health is not None:
            await health.stop()
        logger.info("shutdown complete")


def main() -> None:
    asyncio.run(run())


if __name__ == "__main__":
    main()
