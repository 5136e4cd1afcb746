from __future__ import annotations

import logging
from typing import Optional

from aiohttp import web

from .runner import PollRunner

logger = logging.getLogger(__name__)


class HealthServer:
    def __init__(self, host: str, port: int, runner: PollRunner) -> None:
        self._host = host
        self._port = port
        self._runner = runner
        self._app: Optional[web.Application] = None
        self._app_runner: Optional[web.AppRunner] = None
        self._site: Optional[web.TCPSite] = None

    def build_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/healthz", self._handle_health)
        return app

    async def start(self) -> None:
        self._app = self.build_app()
        self._app_runner = web.AppRunner(self._app)
        await self._app_runner.setup()
        self._site = web.TCPSite(self._app_runner, self._host, self._port)
        await self._site.start()
        logger.info("health_server_listening host=%s port=%s", self._host, self._port)

    async def stop(self) -> None:
        if self._app_runner:
            await self._app_runner.cleanup()
        self._app = None
        self._app_runner = None
        self._site = None

    async def _handle_health(self, request: web.Request) -> web.Response:
        last = self._runner.last_result
        payload = {
            "status": "ok",
            "state": self._runner.state.value,
            "tracked_pools": len(self._runner.store),
            "last_run": last.as_dict() if last is not None else None,
        }
        return web.json_response(payload)
