import pytest

from pool_monitor.cooldown import CooldownPolicy
from pool_monitor.models import NotifyRecord, Pool

DAY_MS = 86_400_000
HOUR_MS = 3_600_000


def _pool(address: str, volume: float) -> Pool:
    return Pool.from_payload(
        {
            "address": address,
            "apr": 4000,
            "earnFee": 2000,
            "volume": volume,
            "chain": {"id": 8453, "name": "Base"},
        }
    )


def test_first_sighting_is_always_notified():
    policy = CooldownPolicy(cooldown_ms=DAY_MS)
    assert policy.evaluate(None, 0, now_ms=0) == (True, "new")
    assert CooldownPolicy(cooldown_ms=0).evaluate(None, 1, now_ms=0) == (True, "new")


def test_growth_overrides_active_cooldown():
    policy = CooldownPolicy(cooldown_ms=DAY_MS, growth_ratio=0.2)
    record = NotifyRecord(notified_at=1_000, volume=150_000)
    assert policy.evaluate(record, 180_000, now_ms=1_000 + HOUR_MS) == (True, "volume_growth")


def test_below_growth_within_cooldown_is_suppressed():
    policy = CooldownPolicy(cooldown_ms=DAY_MS, growth_ratio=0.2)
    record = NotifyRecord(notified_at=1_000, volume=150_000)
    assert policy.evaluate(record, 179_999, now_ms=1_000 + DAY_MS - 1) == (False, "cooldown_active")


def test_below_growth_after_cooldown_is_notified():
    policy = CooldownPolicy(cooldown_ms=DAY_MS, growth_ratio=0.2)
    record = NotifyRecord(notified_at=1_000, volume=150_000)
    assert policy.evaluate(record, 150_000, now_ms=1_000 + DAY_MS) == (True, "cooldown_elapsed")


@pytest.mark.parametrize("cooldown_ms", [0, -5])
def test_disabled_cooldown_only_renotifies_on_growth(cooldown_ms):
    policy = CooldownPolicy(cooldown_ms=cooldown_ms)
    record = NotifyRecord(notified_at=0, volume=100)
    assert policy.evaluate(record, 110, now_ms=10 * DAY_MS) == (False, "notify_once")
    assert policy.evaluate(record, 120, now_ms=10 * DAY_MS) == (True, "volume_growth")


def test_legacy_record_with_zero_volume_is_renotified_by_growth():
    policy = CooldownPolicy(cooldown_ms=DAY_MS)
    record = NotifyRecord(notified_at=5_000, volume=0)
    assert policy.evaluate(record, 0, now_ms=5_001) == (True, "volume_growth")


def test_negative_stored_volume_is_clamped_to_zero():
    policy = CooldownPolicy(cooldown_ms=DAY_MS)
    record = NotifyRecord(notified_at=5_000, volume=-50)
    assert policy.evaluate(record, 0, now_ms=5_001) == (True, "volume_growth")


def test_select_preserves_order_and_uses_lookup_by_key():
    policy = CooldownPolicy(cooldown_ms=DAY_MS)
    now = 10 * DAY_MS
    records = {
        "0xaa": NotifyRecord(notified_at=now - HOUR_MS, volume=150_000),
        "0xbb": NotifyRecord(notified_at=now - 2 * DAY_MS, volume=150_000),
    }
    pools = [
        _pool("0xCC", 150_000),
        _pool("0xAA", 150_000),
        _pool("0xBB", 150_000),
        _pool("0xDD", 150_000),
    ]
    selected = policy.select(pools, records.get, now)
    assert [pool.key for pool in selected] == ["0xcc", "0xbb", "0xdd"]


def test_three_cycle_scenario():
    policy = CooldownPolicy(cooldown_ms=DAY_MS, growth_ratio=0.2)
    records = {}
    t0 = 1_700_000_000_000

    first = policy.select([_pool("0xA", 150_000)], records.get, t0)
    assert [pool.key for pool in first] == ["0xa"]
    records["0xa"] = NotifyRecord(notified_at=t0, volume=150_000)

    second = policy.select([_pool("0xA", 150_000)], records.get, t0 + HOUR_MS)
    assert second == []

    third = policy.select([_pool("0xA", 200_000)], records.get, t0 + 2 * HOUR_MS)
    assert [pool.key for pool in third] == ["0xa"]
