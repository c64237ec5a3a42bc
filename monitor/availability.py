"""
Availability Client — Is a vanity code still taken?
Any outcome other than an explicit "unknown invite" counts as taken.
"""

from __future__ import annotations
import asyncio
from typing import Optional, TYPE_CHECKING
import aiohttp
from discord_api.models import CheckResult, ProxyDescriptor
from discord_api.rest import UNKNOWN_INVITE_CODE
import logging

if TYPE_CHECKING:
    from discord_api.rest import DiscordRestClient

logger = logging.getLogger(__name__)


class AvailabilityClient:
    """Single read-only existence check, biased toward EXISTS."""

    def __init__(self, rest: "DiscordRestClient"):
        self.rest = rest

    async def exists(
        self, resource_name: str, proxy: Optional[ProxyDescriptor] = None
    ) -> CheckResult:
        try:
            status, data = await self.rest.get_invite(resource_name, proxy=proxy)
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            via = f" via {proxy}" if proxy else ""
            logger.warning(f"[CHECK] {resource_name}: transport error{via}: {e!r}")
            return CheckResult.EXISTS

        if status == 404 or (isinstance(data, dict) and data.get("code") == UNKNOWN_INVITE_CODE):
            logger.debug(f"[CHECK] {resource_name}: not found")
            return CheckResult.NOT_FOUND

        if status == 429:
            retry_after = data.get("retry_after") if isinstance(data, dict) else None
            logger.warning(f"[CHECK] {resource_name}: rate limited (retry_after={retry_after})")
        elif status >= 400:
            logger.warning(f"[CHECK] {resource_name}: unexpected status {status}, assuming taken")
        return CheckResult.EXISTS
