import asyncio
import json
import logging

import pytest

from pool_monitor.errors import PersistenceError, UpstreamFetchError, UpstreamNotifyError
from pool_monitor.models import NotifyRecord, Pool
from pool_monitor.runner import PollRunner, RunState, RunStatus, next_tick_delay
from pool_monitor.store import NotifyStateStore

HOUR_MS = 3_600_000
T0 = 1_700_000_000_000


def _pool(address: str, *, apr=4000, earn_fee=2000, volume=150_000) -> Pool:
    return Pool.from_payload(
        {
            "address": address,
            "apr": apr,
            "earnFee": earn_fee,
            "volume": volume,
            "tvl": 1,
            "liquidity": 1,
            "exchange": "uniswap-v3",
            "chain": {"id": 8453, "name": "Base"},
            "tokens": [{"symbol": "WETH"}, {"symbol": "USDC"}],
        }
    )


class FakeClient:
    def __init__(self, pools=None, error=None):
        self.pools = list(pools or [])
        self.error = error
        self.calls = []
        self.gate: asyncio.Event | None = None

    async def fetch_all(self, *, pages, limit, chain_ids, page_delay_sec=5.0):
        self.calls.append((pages, limit, list(chain_ids), page_delay_sec))
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return list(self.pools)


class FakeNotifier:
    def __init__(self, error=None, delivered=True):
        self.error = error
        self.delivered = delivered
        self.batches = []

    async def send(self, pools):
        self.batches.append([pool.key for pool in pools])
        if self.error is not None:
            raise self.error
        return self.delivered


class CountingStore(NotifyStateStore):
    def __init__(self, path, fail=False):
        super().__init__(path)
        self.persist_calls = 0
        self.fail = fail

    def persist(self):
        self.persist_calls += 1
        if self.fail:
            raise PersistenceError("disk full")
        super().persist()


class Clock:
    def __init__(self, now_ms: int) -> None:
        self.now = now_ms

    def __call__(self) -> int:
        return self.now


def _runner(config, client, notifier, store, clock=None):
    return PollRunner(
        config,
        client,
        notifier,
        store,
        now_ms_fn=clock or Clock(T0),
    )


def test_cycle_notifies_matches_and_persists_records(make_config):
    config = make_config()
    store = CountingStore(config.notify_store_path)
    client = FakeClient([_pool("0xA"), _pool("0xLow", apr=10), _pool("0xB", volume=300_000)])
    notifier = FakeNotifier()
    runner = _runner(config, client, notifier, store)

    result = asyncio.run(runner.run_once())

    assert result.status is RunStatus.OK
    assert (result.fetched, result.matched, result.notified) == (3, 2, 2)
    assert client.calls == [(2, 10, ["8453", "56"], 0.0)]
    assert notifier.batches == [["0xa", "0xb"]]
    assert store.persist_calls == 1
    assert runner.state is RunState.IDLE
    snapshot = json.loads(config.notify_store_path.read_text(encoding="utf-8"))
    assert snapshot == {
        "0xa": {"notifiedAt": T0, "volume": 150_000.0},
        "0xb": {"notifiedAt": T0, "volume": 300_000.0},
    }


def test_three_cycles_follow_cooldown_and_growth(make_config):
    config = make_config(notify_cooldown_ms=86_400_000, volume_growth_ratio=0.2)
    store = CountingStore(config.notify_store_path)
    client = FakeClient([_pool("0xA")])
    notifier = FakeNotifier()
    clock = Clock(T0)
    runner = _runner(config, client, notifier, store, clock)

    assert asyncio.run(runner.run_once()).status is RunStatus.OK

    clock.now = T0 + HOUR_MS
    second = asyncio.run(runner.run_once())
    assert second.status is RunStatus.EMPTY
    assert store.persist_calls == 1

    clock.now = T0 + 2 * HOUR_MS
    client.pools = [_pool("0xA", volume=200_000)]
    third = asyncio.run(runner.run_once())
    assert third.status is RunStatus.OK
    assert notifier.batches == [["0xa"], ["0xa"]]
    assert store.get("0xA") == NotifyRecord(notified_at=T0 + 2 * HOUR_MS, volume=200_000)


def test_empty_batch_skips_notify_and_persist(make_config, caplog):
    config = make_config()
    store = CountingStore(config.notify_store_path)
    notifier = FakeNotifier()
    runner = _runner(config, FakeClient([_pool("0xA", volume=1)]), notifier, store)

    with caplog.at_level(logging.INFO):
        result = asyncio.run(runner.run_once())

    assert result.status is RunStatus.EMPTY
    assert notifier.batches == []
    assert store.persist_calls == 0
    assert not config.notify_store_path.exists()
    assert any(record.getMessage() == "no pools to notify" for record in caplog.records)


def test_fetch_failure_aborts_cycle_without_state_change(make_config):
    config = make_config()
    store = CountingStore(config.notify_store_path)
    notifier = FakeNotifier()
    client = FakeClient(error=UpstreamFetchError("Pools API failed: 502 Bad Gateway"))
    runner = _runner(config, client, notifier, store)

    result = asyncio.run(runner.run_once())

    assert result.status is RunStatus.FAILED
    assert "UpstreamFetchError" in result.error
    assert notifier.batches == []
    assert store.persist_calls == 0
    assert runner.state is RunState.IDLE


def test_notify_failure_leaves_state_untouched_for_next_cycle(make_config):
    config = make_config()
    store = CountingStore(config.notify_store_path)
    notifier = FakeNotifier(error=UpstreamNotifyError("Lark notify failed: 500"))
    runner = _runner(config, FakeClient([_pool("0xA")]), notifier, store)

    first = asyncio.run(runner.run_once())
    assert first.status is RunStatus.FAILED
    assert store.get("0xa") is None
    assert store.persist_calls == 0

    notifier.error = None
    second = asyncio.run(runner.run_once())
    assert second.status is RunStatus.OK
    assert notifier.batches == [["0xa"], ["0xa"]]


def test_missing_webhook_skip_still_records_state(make_config):
    config = make_config(lark_webhook_url="")
    store = CountingStore(config.notify_store_path)
    runner = _runner(config, FakeClient([_pool("0xA")]), FakeNotifier(delivered=False), store)

    result = asyncio.run(runner.run_once())

    assert result.status is RunStatus.OK
    assert store.get("0xa") is not None
    assert store.persist_calls == 1


def test_persist_failure_is_caught_and_reported(make_config):
    config = make_config()
    store = CountingStore(config.notify_store_path, fail=True)
    runner = _runner(config, FakeClient([_pool("0xA")]), FakeNotifier(), store)

    result = asyncio.run(runner.run_once())

    assert result.status is RunStatus.FAILED
    assert "PersistenceError" in result.error
    assert runner.state is RunState.IDLE


def test_overlapping_tick_is_dropped(make_config):
    config = make_config()
    store = CountingStore(config.notify_store_path)
    client = FakeClient([_pool("0xA")])
    notifier = FakeNotifier()
    runner = _runner(config, client, notifier, store)

    async def scenario():
        client.gate = asyncio.Event()
        first = asyncio.create_task(runner.run_once())
        await asyncio.sleep(0)
        assert runner.state is RunState.RUNNING

        skipped = await runner.run_once()
        assert skipped.status is RunStatus.SKIPPED
        assert len(client.calls) == 1
        assert notifier.batches == []
        assert store.persist_calls == 0

        client.gate.set()
        return await first

    completed = asyncio.run(scenario())
    assert completed.status is RunStatus.OK
    assert len(client.calls) == 1
    assert notifier.batches == [["0xa"]]
    assert store.persist_calls == 1
    assert runner.state is RunState.IDLE
    assert runner.last_result is completed


@pytest.mark.parametrize(
    ("now", "interval", "expected"),
    [
        (0.0, 900, 900.0),
        (100.0, 900, 800.0),
        (899.5, 900, 0.5),
        (1800.0, 900, 900.0),
        (10.0, 0, 1.0),
    ],
)
def test_next_tick_delay_aligns_to_interval(now, interval, expected):
    assert next_tick_delay(now, interval) == pytest.approx(expected)


def test_run_forever_runs_immediately_and_on_each_tick(make_config):
    config = make_config(poll_interval_sec=900)
    store = CountingStore(config.notify_store_path)
    client = FakeClient([])
    runner = PollRunner(
        config,
        client,
        FakeNotifier(),
        store,
        now_ms_fn=Clock(T0),
        wall_clock=lambda: 899.99,
    )

    async def scenario():
        stop_event = asyncio.Event()
        task = asyncio.create_task(runner.run_forever(stop_event))
        for _ in range(200):
            if len(client.calls) >= 3:
                break
            await asyncio.sleep(0.01)
        stop_event.set()
        await asyncio.wait_for(task, timeout=5)

    asyncio.run(scenario())
    assert len(client.calls) >= 3
    assert runner.state is RunState.IDLE


def test_run_forever_stops_promptly_after_initial_run(make_config):
    config = make_config()
    client = FakeClient([])
    runner = _runner(config, client, FakeNotifier(), CountingStore(config.notify_store_path))

    async def scenario():
        stop_event = asyncio.Event()
        stop_event.set()
        await asyncio.wait_for(runner.run_forever(stop_event), timeout=5)

    asyncio.run(scenario())
    assert len(client.calls) == 1
