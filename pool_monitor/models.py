from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Optional, Tuple


def _to_float(value: Any) -> float:
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.strip()):
        try:
            return float(value)
        except (ValueError, OverflowError):
            return math.nan
    return math.nan


def _to_int(value: Any) -> Optional[int]:
    number = _to_float(value)
    if not math.isfinite(number):
        return None
    return int(number)


def _to_str(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def is_finite_number(value: Any) -> bool:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return False
    try:
        return math.isfinite(value)
    except OverflowError:
        return False


def normalize_key(key: str) -> str:
    return key.lower()


@dataclass(frozen=True)
class PoolToken:
    address: str
    symbol: str
    logo_uri: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PoolToken":
        return cls(
            address=_to_str(payload.get("address")),
            symbol=_to_str(payload.get("symbol")),
            logo_uri=_to_str(payload.get("logoURI")),
        )


@dataclass(frozen=True)
class PoolChain:
    id: Optional[int]
    name: str
    logo_url: str = ""

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "PoolChain":
        return cls(
            id=_to_int(payload.get("id")),
            name=_to_str(payload.get("name")),
            logo_url=_to_str(payload.get("logoUrl")),
        )


@dataclass(frozen=True)
class Pool:
    address: str
    exchange: str
    apr: float
    earn_fee: float
    volume: float
    tvl: float
    liquidity: float
    chain: PoolChain
    tokens: Tuple[PoolToken, ...] = field(default_factory=tuple)
    fee_tier: float = math.nan
    eg_usd: float = math.nan
    all_apr: float = math.nan
    lp_apr: float = math.nan
    kem_apr: float = math.nan

    @property
    def key(self) -> str:
        return normalize_key(self.address)

    @property
    def pair(self) -> str:
        return "/".join(token.symbol for token in self.tokens)

    @classmethod
    def from_payload(cls, payload: Mapping[str, Any]) -> "Pool":
        raw_tokens = payload.get("tokens")
        tokens = tuple(
            PoolToken.from_payload(item)
            for item in (raw_tokens if isinstance(raw_tokens, list) else [])
            if isinstance(item, Mapping)
        )
        raw_chain = payload.get("chain")
        chain = PoolChain.from_payload(raw_chain if isinstance(raw_chain, Mapping) else {})
        return cls(
            address=_to_str(payload.get("address")),
            exchange=_to_str(payload.get("exchange")),
            apr=_to_float(payload.get("apr")),
            earn_fee=_to_float(payload.get("earnFee")),
            volume=_to_float(payload.get("volume")),
            tvl=_to_float(payload.get("tvl")),
            liquidity=_to_float(payload.get("liquidity")),
            chain=chain,
            tokens=tokens,
            fee_tier=_to_float(payload.get("feeTier")),
            eg_usd=_to_float(payload.get("egUsd")),
            all_apr=_to_float(payload.get("allApr")),
            lp_apr=_to_float(payload.get("lpApr")),
            kem_apr=_to_float(payload.get("kemApr")),
        )


@dataclass(frozen=True)
class NotifyRecord:
    notified_at: float
    volume: float

    def to_payload(self) -> Dict[str, float]:
        return {"notifiedAt": self.notified_at, "volume": self.volume}

    @classmethod
    def from_payload(cls, value: Any) -> Optional["NotifyRecord"]:
        # Bare numbers are snapshots written before volume was tracked.
        if is_finite_number(value):
            return cls(notified_at=value, volume=0)
        if isinstance(value, Mapping):
            notified_at = value.get("notifiedAt")
            volume = value.get("volume")
            if is_finite_number(notified_at) and is_finite_number(volume):
                return cls(notified_at=notified_at, volume=volume)
        return None
