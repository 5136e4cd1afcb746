from __future__ import annotations

import asyncio
import logging
import threading
import time
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence, Set

from .config import Config
from .cooldown import CooldownPolicy
from .filters import filter_pools
from .models import NotifyRecord, Pool
from .store import NotifyStateStore
from .utils import now_ms

logger = logging.getLogger(__name__)


class PoolFetcher(Protocol):
    async def fetch_all(
        self,
        *,
        pages: int,
        limit: int,
        chain_ids: Sequence[str],
        page_delay_sec: float = ...,
    ) -> List[Pool]: ...


class PoolNotifier(Protocol):
    async def send(self, pools: Sequence[Pool]) -> bool: ...


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"


class RunStatus(str, Enum):
    OK = "ok"
    EMPTY = "empty"
    SKIPPED = "skipped"
    FAILED = "failed"


@dataclass(frozen=True)
class RunResult:
    status: RunStatus
    started_at_ms: int
    elapsed_ms: int = 0
    fetched: int = 0
    matched: int = 0
    notified: int = 0
    error: Optional[str] = None

    def as_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["status"] = self.status.value
        return payload


def next_tick_delay(now: float, interval_sec: float) -> float:
    """Seconds until the next wall-clock multiple of ``interval_sec``."""
    interval = max(1.0, float(interval_sec))
    return interval - (now % interval)


class PollRunner:
    def __init__(
        self,
        config: Config,
        client: PoolFetcher,
        notifier: PoolNotifier,
        store: NotifyStateStore,
        *,
        now_ms_fn: Callable[[], int] = now_ms,
        monotonic: Callable[[], float] = time.monotonic,
        wall_clock: Callable[[], float] = time.time,
    ) -> None:
        self._config = config
        self._client = client
        self._notifier = notifier
        self._store = store
        self._now_ms = now_ms_fn
        self._monotonic = monotonic
        self._wall_clock = wall_clock
        self._policy = CooldownPolicy(
            cooldown_ms=config.notify_cooldown_ms,
            growth_ratio=config.volume_growth_ratio,
        )

        self._guard = threading.Lock()
        self._state = RunState.IDLE
        self._last_result: RunResult | None = None
        self._inflight: Set[asyncio.Task] = set()

    @property
    def state(self) -> RunState:
        return self._state

    @property
    def last_result(self) -> RunResult | None:
        return self._last_result

    @property
    def store(self) -> NotifyStateStore:
        return self._store

    async def run_once(self) -> RunResult:
        if not self._guard.acquire(blocking=False):
            logger.info("run_skipped reason=previous_run_in_progress")
            return RunResult(status=RunStatus.SKIPPED, started_at_ms=self._now_ms())

        self._state = RunState.RUNNING
        started_at_ms = self._now_ms()
        started = self._monotonic()
        fetched = matched = notified = 0
        status = RunStatus.FAILED
        error: str | None = None
        logger.info(
            "run_start pages=%s limit=%s chain_ids=%s",
            self._config.pages,
            self._config.limit,
            self._config.chain_ids_param,
        )
        try:
            pools = await self._client.fetch_all(
                pages=self._config.pages,
                limit=self._config.limit,
                chain_ids=self._config.chain_ids,
                page_delay_sec=self._config.page_delay_sec,
            )
            fetched = len(pools)
            logger.info("pools_fetched count=%s", fetched)

            filtered = filter_pools(pools, self._config.thresholds)
            matched = len(filtered)
            logger.info("pools_matched count=%s", matched)

            batch = self._policy.select(filtered, self._store.get, self._now_ms())
            logger.info("pools_after_cooldown count=%s", len(batch))
            if not batch:
                logger.info("no pools to notify")
                status = RunStatus.EMPTY
            else:
                delivered = await self._notifier.send(batch)
                notified = len(batch)
                logger.info("pools_notified count=%s delivered=%s", notified, delivered)
                self._record_notified(batch)
                await asyncio.to_thread(self._store.persist)
                status = RunStatus.OK
        except Exception as exc:
            error = f"{type(exc).__name__}: {exc}"
            logger.exception("run_failed err=%s", error)
        finally:
            elapsed_ms = int((self._monotonic() - started) * 1000)
            self._last_result = RunResult(
                status=status,
                started_at_ms=started_at_ms,
                elapsed_ms=elapsed_ms,
                fetched=fetched,
                matched=matched,
                notified=notified,
                error=error,
            )
            self._state = RunState.IDLE
            self._guard.release()
            logger.info("run_end status=%s elapsed_ms=%s", status.value, elapsed_ms)
        return self._last_result

    async def run_forever(self, stop_event: asyncio.Event) -> None:
        logger.info("scheduler_started interval_sec=%s", self._config.poll_interval_sec)
        self._spawn_run()
        try:
            while not stop_event.is_set():
                delay = next_tick_delay(self._wall_clock(), self._config.poll_interval_sec)
                if await self._wait_for_stop(stop_event, delay):
                    break
                self._spawn_run()
        finally:
            if self._inflight:
                await asyncio.gather(*list(self._inflight), return_exceptions=True)
            logger.info("scheduler_stopped")

    def _record_notified(self, pools: Sequence[Pool]) -> None:
        notified_at = self._now_ms()
        for pool in pools:
            self._store.set(pool.key, NotifyRecord(notified_at=notified_at, volume=pool.volume))

    def _spawn_run(self) -> None:
        task = asyncio.create_task(self.run_once(), name="pool-monitor-run")
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    @staticmethod
    async def _wait_for_stop(stop_event: asyncio.Event, delay: float) -> bool:
        try:
            await asyncio.wait_for(stop_event.wait(), timeout=max(0.0, delay))
        except asyncio.TimeoutError:
            return False
        return True
