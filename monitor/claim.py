"""
Claim Client — Sets a guild's vanity code the moment it frees up.

Primary path goes through the gateway client (discord.py Guild.edit).
If that fails for any reason, a direct PATCH is sent through a fresh proxy.
Failure kinds all mean "not claimed" to the caller but are logged by name.
"""

from __future__ import annotations
import asyncio
from typing import Optional, Protocol, TYPE_CHECKING
import aiohttp
from discord_api.models import ClaimFailure, ClaimResult, ManagedScope
import logging

if TYPE_CHECKING:
    from discord_api.rest import DiscordRestClient
    from monitor.proxy_pool import ProxyPool

logger = logging.getLogger(__name__)


class ScopeDirectory(Protocol):
    """What the running bot knows about the guilds it sits in."""

    def lookup_scope(self, scope_id: str) -> Optional[ManagedScope]:
        """Return the guild if the bot is in it, else None."""
        ...

    async def set_vanity_code(self, scope_id: str, code: str) -> None:
        """Claim `code` for the guild via the high-level client."""
        ...


_STATUS_FAILURES = {
    400: ClaimFailure.BAD_REQUEST,
    401: ClaimFailure.FORBIDDEN,
    403: ClaimFailure.FORBIDDEN,
    429: ClaimFailure.RATE_LIMITED,
}


def classify_status(status: int) -> Optional[ClaimFailure]:
    """Map a fallback response status to a failure kind; None on success."""
    if 200 <= status < 300:
        return None
    return _STATUS_FAILURES.get(status, ClaimFailure.GENERIC)


class ClaimClient:
    """Single-attempt claim with primary/fallback strategy. No retries."""

    def __init__(
        self,
        directory: ScopeDirectory,
        rest: "DiscordRestClient",
        proxy_pool: "ProxyPool",
    ):
        self.directory = directory
        self.rest = rest
        self.proxy_pool = proxy_pool

    def check_preconditions(self, target_scope_id: str) -> Optional[ClaimResult]:
        """Return a failed result if the bot cannot claim for this guild right now."""
        scope = self.directory.lookup_scope(target_scope_id)
        if scope is None:
            return ClaimResult.failed(
                ClaimFailure.PRECONDITION, f"Bot not in target guild {target_scope_id}"
            )
        if not scope.can_manage:
            return ClaimResult.failed(
                ClaimFailure.PRECONDITION, f"No manage guild permission in {scope.name}"
            )
        return None

    async def claim(self, resource_name: str, target_scope_id: str) -> ClaimResult:
        blocked = self.check_preconditions(target_scope_id)
        if blocked is not None:
            self._log_failure(resource_name, target_scope_id, blocked)
            return blocked

        try:
            await self.directory.set_vanity_code(target_scope_id, resource_name)
            logger.info(f"[CLAIM] ✅ {resource_name} claimed for guild {target_scope_id}")
            return ClaimResult.success()
        except Exception as e:
            logger.warning(
                f"[CLAIM] {resource_name}: primary path failed ({type(e).__name__}: {e}), "
                f"falling back to direct request"
            )

        result = await self._claim_direct(resource_name, target_scope_id)
        if result.claimed:
            logger.info(f"[CLAIM] ✅ {resource_name} claimed for guild {target_scope_id} (fallback)")
        else:
            self._log_failure(resource_name, target_scope_id, result)
        return result

    async def _claim_direct(self, resource_name: str, target_scope_id: str) -> ClaimResult:
        proxy = self.proxy_pool.next()
        try:
            status, data = await self.rest.modify_vanity_url(
                target_scope_id, resource_name, proxy=proxy
            )
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            return ClaimResult.failed(ClaimFailure.GENERIC, f"Transport error: {e!r}")

        failure = classify_status(status)
        if failure is None:
            return ClaimResult.success()

        message = data.get("message", "") if isinstance(data, dict) else ""
        return ClaimResult.failed(failure, f"HTTP {status} {message}".strip())

    def _log_failure(self, resource_name: str, target_scope_id: str, result: ClaimResult):
        logger.error(
            f"[CLAIM] ❌ {resource_name} for guild {target_scope_id}: "
            f"{result.failure.value} {result.detail}"
        )
