"""
Discord Host — Gateway session for the monitor.
Answers guild/permission lookups and provides the high-level claim path.
"""

from __future__ import annotations
from typing import List, Optional, TYPE_CHECKING
import discord
from discord.ext import commands
from discord_api.models import ManagedScope
import logging

if TYPE_CHECKING:
    from config import DiscordConfig

logger = logging.getLogger(__name__)

INTRO_COLOR = 0x7289DA


class VanityBot(commands.Bot):
    """discord.py client implementing the ScopeDirectory interface."""

    def __init__(self, config: "DiscordConfig"):
        intents = discord.Intents.default()
        intents.message_content = True
        intents.guilds = True

        super().__init__(
            command_prefix=config.command_prefix,
            intents=intents,
            help_command=None,
        )
        self.config = config
        self._pending_cogs: List[commands.Cog] = []
        self._announced = False

    def register_cog(self, cog: commands.Cog):
        """Queue a cog to be added during setup_hook."""
        self._pending_cogs.append(cog)

    async def setup_hook(self) -> None:
        for cog in self._pending_cogs:
            await self.add_cog(cog)
            logger.info(f"[DISCORD] Loaded cog: {cog.qualified_name}")

    async def on_ready(self) -> None:
        logger.info(f"[DISCORD] Logged in as {self.user} ({len(self.guilds)} guilds)")
        await self.change_presence(
            activity=discord.Activity(type=discord.ActivityType.watching, name="vanity URLs")
        )
        # on_ready fires again after a gateway resume
        if not self._announced:
            self._announced = True
            await self.announce_all()

    async def on_guild_join(self, guild: discord.Guild) -> None:
        logger.info(f"[DISCORD] Added to guild: {guild.name} ({guild.id})")
        await self.announce(guild)

    # ==================== Intro message ====================

    async def announce_all(self) -> None:
        for guild in self.guilds:
            await self.announce(guild)

    async def announce(self, guild: discord.Guild) -> bool:
        """Post the intro embed to the first text channel we can write to."""
        me = guild.me
        channel = next(
            (c for c in guild.text_channels if me is not None and c.permissions_for(me).send_messages),
            None,
        )
        if channel is None:
            logger.debug(f"[DISCORD] No writable channel in {guild.name} ({guild.id})")
            return False

        embed = discord.Embed(
            title="🤖 Vanity Monitor Bot",
            description=f"Use `{self.config.command_prefix}help` for commands.",
            color=INTRO_COLOR,
        )
        try:
            await channel.send(embed=embed)
        except discord.HTTPException as e:
            logger.warning(f"[DISCORD] Could not send intro to guild {guild.id}: {e}")
            return False
        return True

    # ==================== ScopeDirectory ====================

    def lookup_scope(self, scope_id: str) -> Optional[ManagedScope]:
        if not scope_id.isdigit():
            return None
        guild = self.get_guild(int(scope_id))
        if guild is None:
            return None
        me = guild.me
        can_manage = bool(me is not None and me.guild_permissions.manage_guild)
        return ManagedScope(scope_id=str(guild.id), name=guild.name, can_manage=can_manage)

    async def set_vanity_code(self, scope_id: str, code: str) -> None:
        guild = self.get_guild(int(scope_id))
        if guild is None:
            raise LookupError(f"Guild {scope_id} not in cache")
        await guild.edit(vanity_code=code, reason="Vanity auto swap")
