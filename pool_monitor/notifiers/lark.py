from __future__ import annotations

import asyncio
import json
import logging
from typing import Any, Dict, Mapping, Optional, Sequence

from ..errors import UpstreamNotifyError
from ..filters import Thresholds
from ..http import HttpPostJson, HttpResponse, http_post_json
from ..models import Pool
from ..utils import mask_url
from .lark_render import build_pool_card

logger = logging.getLogger(__name__)

LARK_ERROR_BODY_MAX_CHARS = 500


class LarkClient:
    def __init__(
        self,
        *,
        webhook_url: str,
        request_timeout_sec: float = 15.0,
        sender: Optional[HttpPostJson] = None,
    ) -> None:
        self._webhook_url = webhook_url.strip()
        self._request_timeout_sec = max(0.5, float(request_timeout_sec))
        self._sender = sender or http_post_json
        self._masked_url = mask_url(self._webhook_url)

    @property
    def masked_url(self) -> str:
        return self._masked_url

    def post(self, payload: Mapping[str, Any]) -> HttpResponse:
        try:
            response = self._sender(self._webhook_url, payload, self._request_timeout_sec)
        except (OSError, ValueError) as exc:
            raise UpstreamNotifyError(
                f"Lark notify failed: {type(exc).__name__}: {self._sanitize(str(exc))}"
            ) from exc

        body = response.body[:LARK_ERROR_BODY_MAX_CHARS]
        if not response.ok:
            raise UpstreamNotifyError(
                f"Lark notify failed: {response.status_code} {response.reason} - {body}"
            )
        error = _lark_error(response.body)
        if error is not None:
            raise UpstreamNotifyError(f"Lark notify rejected: {error}")
        return response

    def send_card(self, card: Mapping[str, Any]) -> HttpResponse:
        return self.post({"msg_type": "interactive", "card": card})

    def send_text(self, text: str) -> HttpResponse:
        return self.post({"msg_type": "text", "content": {"text": text}})

    def _sanitize(self, text: str) -> str:
        if not self._webhook_url:
            return text
        return text.replace(self._webhook_url, self._masked_url)


def _lark_error(body: str) -> Optional[str]:
    if not body:
        return None
    try:
        payload = json.loads(body)
    except json.JSONDecodeError:
        return None
    if not isinstance(payload, dict):
        return None
    # Custom bots answer {"code": 0, ...}; older endpoints use StatusCode.
    code = payload.get("code", payload.get("StatusCode", 0))
    if code in (0, None):
        return None
    message = payload.get("msg") or payload.get("StatusMessage") or "unknown error"
    return f"code={code} msg={message}"


class LarkNotifier:
    def __init__(
        self,
        *,
        webhook_url: str,
        thresholds: Thresholds,
        request_timeout_sec: float = 15.0,
        sender: Optional[HttpPostJson] = None,
    ) -> None:
        self._thresholds = thresholds
        self._client = LarkClient(
            webhook_url=webhook_url,
            request_timeout_sec=request_timeout_sec,
            sender=sender,
        )
        self._active = bool(webhook_url.strip())

    @property
    def active(self) -> bool:
        return self._active

    def build_card(self, pools: Sequence[Pool]) -> Dict[str, Any]:
        return build_pool_card(pools, self._thresholds)

    async def send(self, pools: Sequence[Pool]) -> bool:
        if not self._active:
            logger.warning("lark_notifier_skipped reason=webhook_missing pools=%s", len(pools))
            return False

        card = self.build_card(pools)
        await asyncio.to_thread(self._client.send_card, card)
        logger.info("lark_send_ok pools=%s webhook=%s", len(pools), self._client.masked_url)
        return True
