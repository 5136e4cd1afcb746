from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Iterable, List

from .models import Pool


@dataclass(frozen=True)
class Thresholds:
    min_apr: float
    min_earn_fee: float
    min_volume: float

    def describe(self) -> str:
        return (
            f"apr>={_format_threshold(self.min_apr)}, "
            f"earnFee>={_format_threshold(self.min_earn_fee)}, "
            f"volume>={_format_threshold(self.min_volume)}"
        )


def _format_threshold(value: float) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(value)


def _at_least(value: float, minimum: float) -> bool:
    try:
        number = float(value)
    except (TypeError, ValueError):
        return False
    if not math.isfinite(number):
        return False
    return number >= minimum


def matches_thresholds(pool: Pool, thresholds: Thresholds) -> bool:
    return (
        _at_least(pool.apr, thresholds.min_apr)
        and _at_least(pool.earn_fee, thresholds.min_earn_fee)
        and _at_least(pool.volume, thresholds.min_volume)
    )


def filter_pools(pools: Iterable[Pool], thresholds: Thresholds) -> List[Pool]:
    return [pool for pool in pools if matches_thresholds(pool, thresholds)]
