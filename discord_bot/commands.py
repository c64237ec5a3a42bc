"""
Watch Commands — Prefix commands that drive the WatchService.
"""

from __future__ import annotations
from typing import Optional, TYPE_CHECKING
from discord.ext import commands
from discord_api.models import NO_SCOPE, normalize_resource_name
from monitor.watch_service import AddResult, AddStatus
import logging

if TYPE_CHECKING:
    from monitor.watch_service import WatchService

logger = logging.getLogger(__name__)

HELP_TEXT = "\n".join([
    "**Vanity Monitor Commands**",
    "`{p}add <vanity>` — Monitor a vanity URL",
    "`{p}remove <vanity>` — Stop monitoring a vanity URL",
    "`{p}list` — List your monitored vanities",
    "`{p}autoswap <vanity> <guild_id>` — Auto-claim a vanity for a server",
    "`{p}removeautoswap <vanity>` — Remove an auto swap",
    "`{p}listautoswap` — List your auto swaps",
    "`{p}help` — Show this help message",
])

INVALID_NAME_REPLY = "Please provide a valid vanity URL (letters, numbers, and hyphens only)."


def scope_of(ctx: commands.Context) -> str:
    return str(ctx.guild.id) if ctx.guild else NO_SCOPE


def describe_add(result: AddResult, target_id: str = "") -> str:
    """User-facing reply for an add request."""
    name = result.resource_name
    replies = {
        AddStatus.ADDED: f"✅ Now monitoring **{name}** for availability",
        AddStatus.INVALID_NAME: INVALID_NAME_REPLY,
        AddStatus.INVALID_TARGET: "Please provide a valid guild ID (17-19 digits).",
        AddStatus.SCOPE_NOT_ADMINISTERED: (
            f"I'm not in the server with ID: **{target_id}**. "
            f"Please make sure the bot is added to that server."
        ),
        AddStatus.MISSING_PRIVILEGE: (
            f"I don't have **Manage Server** permissions in **{result.target_scope_label}**. "
            f"Please grant me the necessary permissions."
        ),
        AddStatus.ALREADY_WATCHING: f"You are already monitoring the vanity: **{name}**",
        AddStatus.KEY_HELD: f"Someone else is already monitoring **{name}** here.",
        AddStatus.ALREADY_AVAILABLE: f"The vanity **{name}** is currently available! You can claim it now.",
    }
    if result.status is AddStatus.ADDED and result.target_scope_label:
        return (
            f"⚡ Auto swap enabled for **discord.gg/{name}** → **{result.target_scope_label}**. "
            f"Will automatically claim when available."
        )
    return replies[result.status]


class WatchCommands(commands.Cog, name="Watch"):
    def __init__(self, service: "WatchService", prefix: str = ","):
        self.service = service
        self.prefix = prefix

    @commands.command(name="add")
    async def add(self, ctx: commands.Context, vanity: Optional[str] = None):
        if not vanity:
            await ctx.reply(f"Usage: `{self.prefix}add <vanity_url>`")
            return
        result = await self.service.add_watch(
            scope_of(ctx), vanity, str(ctx.author.id), str(ctx.channel.id)
        )
        await ctx.reply(describe_add(result))

    @commands.command(name="remove")
    async def remove(self, ctx: commands.Context, vanity: Optional[str] = None):
        if not vanity:
            await ctx.reply(f"Usage: `{self.prefix}remove <vanity_url>`")
            return
        if self.service.remove_watch(scope_of(ctx), vanity, str(ctx.author.id)):
            await ctx.reply(f"❌ Stopped monitoring **{normalize_resource_name(vanity)}**")
        else:
            await ctx.reply(f"You are not monitoring the vanity: **{normalize_resource_name(vanity)}**")

    @commands.command(name="list")
    async def list_watches(self, ctx: commands.Context):
        entries = self.service.list_watches(scope_of(ctx), str(ctx.author.id))
        if not entries:
            await ctx.reply(
                f"You don't have any vanities monitored in this server. "
                f"Use `{self.prefix}add <vanity>` to add one."
            )
            return
        lines = "\n".join(f"• **{e.resource_name}**" for e in entries)
        await ctx.reply(f"🔎 **Your Monitored Vanities**\n{lines}\nTotal: {len(entries)} in this server")

    @commands.command(name="autoswap")
    async def autoswap(
        self, ctx: commands.Context, vanity: Optional[str] = None, target_id: Optional[str] = None
    ):
        if not vanity or not target_id:
            await ctx.reply(
                f"Usage: `{self.prefix}autoswap <vanity_url> <target_guild_id>`\n"
                f"Example: `{self.prefix}autoswap cool-server 123456789012345678`"
            )
            return
        result = await self.service.add_autoswap(
            scope_of(ctx), vanity, str(ctx.author.id), str(ctx.channel.id), target_id
        )
        await ctx.reply(describe_add(result, target_id))

    @commands.command(name="removeautoswap")
    async def remove_autoswap(self, ctx: commands.Context, vanity: Optional[str] = None):
        if not vanity:
            await ctx.reply(f"Usage: `{self.prefix}removeautoswap <vanity_url>`")
            return
        if self.service.remove_autoswap(scope_of(ctx), vanity, str(ctx.author.id)):
            await ctx.reply(f"❌ Stopped auto swap for **{normalize_resource_name(vanity)}**")
        else:
            await ctx.reply(f"You don't have auto swap enabled for: **{normalize_resource_name(vanity)}**")

    @commands.command(name="listautoswap")
    async def list_autoswaps(self, ctx: commands.Context):
        entries = self.service.list_autoswaps(scope_of(ctx), str(ctx.author.id))
        if not entries:
            await ctx.reply(
                f"You don't have any auto swaps configured in this server. "
                f"Use `{self.prefix}autoswap <vanity> <guild_id>` to set one up."
            )
            return
        lines = "\n".join(f"• **{e.resource_name}** → {e.target_scope_label}" for e in entries)
        plural = "" if len(entries) == 1 else "s"
        await ctx.reply(
            f"⚡ **Your Auto Swap Configuration**\n{lines}\n"
            f"Total: {len(entries)} auto swap{plural} in this server"
        )

    @commands.command(name="help")
    async def help(self, ctx: commands.Context):
        await ctx.reply(HELP_TEXT.format(p=self.prefix))
