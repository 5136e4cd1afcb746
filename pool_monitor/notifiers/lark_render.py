from __future__ import annotations

import math
from typing import Any, Dict, List, Optional, Sequence

from ..filters import Thresholds
from ..models import Pool

EXPLORER_ADDRESS_URLS = {
    1: "https://etherscan.io/address/{address}",
    10: "https://optimistic.etherscan.io/address/{address}",
    56: "https://bscscan.com/address/{address}",
    137: "https://polygonscan.com/address/{address}",
    8453: "https://basescan.org/address/{address}",
    42161: "https://arbiscan.io/address/{address}",
}


def format_fixed(value: float) -> str:
    if not math.isfinite(value):
        return "n/a"
    return f"{value:.1f}"


def format_percent(value: float) -> str:
    if not math.isfinite(value):
        return "n/a"
    return f"{format_fixed(value / 100)}%"


def format_kmb(value: float) -> str:
    if not math.isfinite(value):
        return "n/a"
    magnitude = abs(value)
    if magnitude >= 1_000_000_000:
        return f"{format_fixed(value / 1_000_000_000)}B"
    if magnitude >= 1_000_000:
        return f"{format_fixed(value / 1_000_000)}M"
    if magnitude >= 1_000:
        return f"{format_fixed(value / 1_000)}K"
    return format_fixed(value)


def build_pool_link(pool: Pool) -> Optional[str]:
    template = EXPLORER_ADDRESS_URLS.get(pool.chain.id) if pool.chain.id is not None else None
    if template is None:
        return None
    return template.format(address=pool.address)


def format_pool_markdown(pool: Pool) -> str:
    link = build_pool_link(pool)
    link_text = f"[link]({link})" if link else "link: N/A"
    return "\n".join(
        [
            f"**{pool.pair}**",
            f"- chain: {pool.chain.name}",
            f"- exchange: {pool.exchange}",
            f"- apr: {format_percent(pool.apr)}",
            f"- earnFee: {format_kmb(pool.earn_fee)}",
            f"- volume: {format_kmb(pool.volume)}",
            f"- tvl: {format_kmb(pool.tvl)}",
            f"- address: `{pool.address}`",
            f"- {link_text}",
        ]
    )


def build_pool_card(pools: Sequence[Pool], thresholds: Thresholds) -> Dict[str, Any]:
    elements: List[Dict[str, Any]] = []
    for pool in pools:
        if elements:
            elements.append({"tag": "hr"})
        elements.append({"tag": "markdown", "content": format_pool_markdown(pool)})

    elements.append({"tag": "markdown", "content": f"Filters: {thresholds.describe()}"})

    return {
        "config": {"wide_screen_mode": True},
        "header": {
            "template": "blue",
            "title": {"tag": "plain_text", "content": f"Pools matched: {len(pools)}"},
        },
        "elements": elements,
    }
