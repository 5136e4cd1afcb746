from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional

from .models import NotifyRecord, Pool

logger = logging.getLogger(__name__)

DEFAULT_VOLUME_GROWTH_RATIO = 0.2


@dataclass(frozen=True)
class CooldownPolicy:
    """Decides whether a previously notified pool should be notified again.

    A pool is re-notified when its volume grew by at least ``growth_ratio``
    since the last notification, or once ``cooldown_ms`` has elapsed. A
    cooldown of zero or less means a pool is only ever re-notified on growth.
    """

    cooldown_ms: int
    growth_ratio: float = DEFAULT_VOLUME_GROWTH_RATIO

    def evaluate(
        self,
        record: Optional[NotifyRecord],
        volume: float,
        now_ms: float,
    ) -> tuple[bool, str]:
        if record is None:
            return True, "new"

        growth_base = max(record.volume, 0)
        volume_threshold = growth_base * (1 + self.growth_ratio)
        if volume >= volume_threshold:
            return True, "volume_growth"

        if self.cooldown_ms <= 0:
            return False, "notify_once"

        if now_ms - record.notified_at >= self.cooldown_ms:
            return True, "cooldown_elapsed"
        return False, "cooldown_active"

    def select(
        self,
        pools: Iterable[Pool],
        lookup: Callable[[str], Optional[NotifyRecord]],
        now_ms: float,
    ) -> List[Pool]:
        selected: List[Pool] = []
        for pool in pools:
            should_notify, reason = self.evaluate(lookup(pool.key), pool.volume, now_ms)
            if should_notify:
                selected.append(pool)
                continue
            logger.debug(
                "cooldown_suppressed address=%s reason=%s cooldown_ms=%s",
                pool.key,
                reason,
                self.cooldown_ms,
            )
        return selected
