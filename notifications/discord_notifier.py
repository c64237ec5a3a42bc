"""
Discord Notifier — Delivers availability and claim events to the channel
where the watch was created.
"""

from __future__ import annotations
from typing import Protocol, TYPE_CHECKING
import aiohttp
import asyncio
from discord_api.models import EventKind, MonitorEvent
import logging

if TYPE_CHECKING:
    from discord_api.rest import DiscordRestClient

logger = logging.getLogger(__name__)


class NotificationSink(Protocol):
    async def publish(self, event: MonitorEvent) -> None:
        ...


def format_event(event: MonitorEvent) -> str:
    mention = f"<@{event.requester_id}>"
    if event.kind is EventKind.WATCH_AVAILABLE:
        return f"🎯 {mention} Vanity **{event.resource_name}** is now available!"
    if event.kind is EventKind.CLAIM_SUCCEEDED:
        return (
            f"✅ {mention} Successfully claimed vanity **{event.resource_name}** "
            f"for **{event.target_scope_label}**!"
        )
    reason = f" ({event.failure.value.lower().replace('_', ' ')})" if event.failure else ""
    return (
        f"❌ {mention} Failed to claim vanity **{event.resource_name}** "
        f"for **{event.target_scope_label}**{reason}."
    )


class DiscordNotifier:
    """Posts event messages through the REST client. Never raises."""

    def __init__(self, rest: "DiscordRestClient", enabled: bool = True):
        self.rest = rest
        self.enabled = enabled

    async def publish(self, event: MonitorEvent):
        await self.send(event.notify_target_id, format_event(event))

    async def send(self, channel_id: str, message: str):
        """Send a message to a channel."""
        if not self.enabled:
            logger.debug(f"[NOTIFY] (disabled) Would send to {channel_id}: {message[:100]}...")
            return

        try:
            status, data = await self.rest.create_message(channel_id, message)
            if status >= 300:
                logger.warning(f"[NOTIFY] Send to {channel_id} failed ({status}): {str(data)[:200]}")
            else:
                logger.debug(f"[NOTIFY] Sent to {channel_id}: {message[:80]}...")
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            logger.warning(f"[NOTIFY] Error sending message to {channel_id}: {e!r}")
