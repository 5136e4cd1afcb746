from __future__ import annotations

import asyncio
import json
import logging
import urllib.parse
from typing import Any, Awaitable, Callable, List, Optional, Sequence

from .errors import UpstreamFetchError
from .http import HttpGet, http_get
from .models import Pool

logger = logging.getLogger(__name__)


class PoolsApiClient:
    """KyberSwap Earn explorer pools API, fetched one page at a time."""

    def __init__(
        self,
        *,
        base_url: str,
        request_timeout_sec: float = 15.0,
        fetcher: Optional[HttpGet] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ) -> None:
        self._base_url = base_url.strip()
        self._request_timeout_sec = max(0.5, float(request_timeout_sec))
        self._fetcher = fetcher or http_get
        self._sleep = sleep or asyncio.sleep

    def build_url(self, page: int, limit: int, chain_ids: Sequence[str]) -> str:
        params = {
            "chainIds": ",".join(chain_ids),
            "page": str(page),
            "limit": str(limit),
            "interval": "24h",
            "protocol": "",
            "tag": "",
            "sortBy": "earn_fee",
            "orderBy": "DESC",
            "q": "",
        }
        return f"{self._base_url}?{urllib.parse.urlencode(params)}"

    def fetch_page(self, page: int, limit: int, chain_ids: Sequence[str]) -> List[Pool]:
        url = self.build_url(page, limit, chain_ids)
        try:
            response = self._fetcher(url, self._request_timeout_sec)
        except (OSError, ValueError) as exc:
            raise UpstreamFetchError(
                f"Pools API request failed: page={page} {type(exc).__name__}: {exc}"
            ) from exc

        if not response.ok:
            raise UpstreamFetchError(
                f"Pools API failed: {response.status_code} {response.reason}".rstrip()
            )

        try:
            body = response.json()
        except json.JSONDecodeError as exc:
            raise UpstreamFetchError(f"Pools API returned invalid JSON: page={page}") from exc

        pools = _extract_pools(body)
        if pools is None:
            message = body.get("message") if isinstance(body, dict) else None
            raise UpstreamFetchError(f"Pools API error: {message or 'unknown error'}")
        return [Pool.from_payload(item) for item in pools if isinstance(item, dict)]

    async def fetch_all(
        self,
        *,
        pages: int,
        limit: int,
        chain_ids: Sequence[str],
        page_delay_sec: float = 5.0,
    ) -> List[Pool]:
        pools: List[Pool] = []
        for page in range(1, pages + 1):
            page_pools = await asyncio.to_thread(self.fetch_page, page, limit, chain_ids)
            logger.debug("pools_page_fetched page=%s count=%s", page, len(page_pools))
            pools.extend(page_pools)
            if page < pages and page_delay_sec > 0:
                await self._sleep(page_delay_sec)
        return pools


def _extract_pools(body: Any) -> Optional[List[Any]]:
    if not isinstance(body, dict) or body.get("code") != 0:
        return None
    data = body.get("data")
    if not isinstance(data, dict):
        return None
    pools = data.get("pools")
    if not isinstance(pools, list):
        return None
    return pools
