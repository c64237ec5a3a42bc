"""
Discord REST API Client.
Thin aiohttp wrapper for the three endpoints the monitor needs.
Callers interpret status codes; transport errors propagate.
"""

from __future__ import annotations
import asyncio
from typing import Any, Dict, Optional, Tuple
import aiohttp
import logging

from discord_api.models import ProxyDescriptor

logger = logging.getLogger(__name__)

UNKNOWN_INVITE_CODE = 10006


class DiscordRestClient:
    """Async Discord v10 REST wrapper."""

    def __init__(self, token: str, base_url: str, timeout_sec: float = 10):
        self.token = token
        self.base_url = base_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_sec)
        self._session: Optional[aiohttp.ClientSession] = None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        return self._session

    async def close(self):
        if self._session and not self._session.closed:
            await self._session.close()

    def _auth_headers(self) -> Dict[str, str]:
        return {
            "Authorization": f"Bot {self.token}",
            "Content-Type": "application/json",
        }

    async def _request(
        self,
        method: str,
        endpoint: str,
        payload: Optional[Dict] = None,
        signed: bool = False,
        proxy: Optional[ProxyDescriptor] = None,
    ) -> Tuple[int, Any]:
        """Make a request and return (status, decoded body or None)."""
        session = await self._get_session()
        url = f"{self.base_url}{endpoint}"
        headers = self._auth_headers() if signed else {}

        kwargs: Dict[str, Any] = {"headers": headers}
        if payload is not None:
            kwargs["json"] = payload
        if proxy is not None:
            kwargs["proxy"] = proxy.url
            kwargs["proxy_auth"] = proxy.auth

        try:
            async with session.request(method, url, **kwargs) as resp:
                try:
                    data = await resp.json(content_type=None)
                except ValueError:
                    data = None
                return resp.status, data
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            via = f" via {proxy}" if proxy else ""
            logger.debug(f"[REST] {method} {endpoint}{via} transport error: {e!r}")
            raise

    # ==================== Invites ====================

    async def get_invite(
        self, code: str, proxy: Optional[ProxyDescriptor] = None
    ) -> Tuple[int, Any]:
        """Unauthenticated invite lookup. 404 means the code is free."""
        return await self._request("GET", f"/invites/{code}", proxy=proxy)

    # ==================== Guilds ====================

    async def modify_vanity_url(
        self, guild_id: str, code: str, proxy: Optional[ProxyDescriptor] = None
    ) -> Tuple[int, Any]:
        """Set a guild's vanity code."""
        logger.info(f"[REST] PATCH vanity-url guild={guild_id} code={code}")
        return await self._request(
            "PATCH", f"/guilds/{guild_id}/vanity-url",
            {"code": code}, signed=True, proxy=proxy,
        )

    # ==================== Channels ====================

    async def create_message(self, channel_id: str, content: str) -> Tuple[int, Any]:
        return await self._request(
            "POST", f"/channels/{channel_id}/messages",
            {"content": content}, signed=True,
        )
