"""
Dashboard — Keep-alive web server with a small JSON status endpoint.
Uses aiohttp.web (already a dependency) so hosting platforms can ping the bot.
"""

from __future__ import annotations
import json
from datetime import datetime
from typing import Optional, TYPE_CHECKING
from aiohttp import web
import logging

if TYPE_CHECKING:
    from main import VanityMonitor

logger = logging.getLogger(__name__)


def json_response(data, status=200):
    return web.Response(
        text=json.dumps(data),
        content_type="application/json",
        status=status,
    )


class Dashboard:
    """Status web server."""

    def __init__(self, monitor: "VanityMonitor", port: int = 3000):
        self.monitor = monitor
        self.port = port
        self.app = web.Application()
        self._runner: Optional[web.AppRunner] = None
        self._started_at = datetime.utcnow()
        self._setup_routes()

    def _setup_routes(self):
        self.app.router.add_get("/", self._liveness)
        self.app.router.add_get("/api/status", self._api_status)

    async def start(self):
        """Start the status web server."""
        self._runner = web.AppRunner(self.app, access_log=None)
        await self._runner.setup()
        site = web.TCPSite(self._runner, "0.0.0.0", self.port)
        await site.start()
        logger.info(f"[DASHBOARD] Running on http://0.0.0.0:{self.port}")

    async def stop(self):
        if self._runner is not None:
            await self._runner.cleanup()
            self._runner = None

    # ─── Routes ───

    async def _liveness(self, request: web.Request) -> web.Response:
        return web.Response(text="Vanity Monitor Bot is running!")

    async def _api_status(self, request: web.Request) -> web.Response:
        m = self.monitor
        report = m.scheduler.last_report
        return json_response({
            "uptime_seconds": int((datetime.utcnow() - self._started_at).total_seconds()),
            "monitoring": m.scheduler.is_running,
            "interval_seconds": m.scheduler.interval_sec,
            "watches": len(m.watches),
            "autoswaps": len(m.autoswaps),
            "proxies": m.proxy_pool.size,
            "last_tick": report.to_dict() if report else None,
        })
