"""
Vanity Monitor Bot — Main Orchestrator.
Ties all components together: startup, registry loading, monitoring, shutdown.
"""

from __future__ import annotations
import asyncio
import os
import sys
import signal
import logging

from dotenv import load_dotenv

# Load .env file before anything else
load_dotenv()

# Create data dir before FileHandler
os.makedirs("data", exist_ok=True)

# Configure logging
logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s | %(levelname)-7s | %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
    handlers=[
        logging.StreamHandler(sys.stdout),
        logging.FileHandler("data/bot.log"),
    ],
)
logger = logging.getLogger(__name__)

from config import AppConfig
from discord_api.models import AutoClaimEntry, WatchEntry
from discord_api.rest import DiscordRestClient
from discord_bot.client import VanityBot
from discord_bot.commands import WatchCommands
from monitor.availability import AvailabilityClient
from monitor.claim import ClaimClient
from monitor.proxy_pool import ProxyConfigError, ProxyPool
from monitor.scheduler import MonitorScheduler
from monitor.watch_service import WatchService
from notifications.discord_notifier import DiscordNotifier
from storage.registry import JsonRegistryStore, Registry
from dashboard import Dashboard


class VanityMonitor:
    """Main orchestrator."""

    def __init__(self, config: AppConfig, proxy_pool: ProxyPool):
        self.config = config
        self._stopping = False

        # Registries
        self.watches: Registry[WatchEntry] = Registry(
            JsonRegistryStore(config.storage.watch_path), WatchEntry, name="watches"
        )
        self.autoswaps: Registry[AutoClaimEntry] = Registry(
            JsonRegistryStore(config.storage.autoswap_path), AutoClaimEntry, name="autoswaps"
        )

        # Remote access
        self.proxy_pool = proxy_pool
        self.rest = DiscordRestClient(
            token=config.discord.token,
            base_url=config.discord.api_base_url,
            timeout_sec=config.monitor.request_timeout_sec,
        )
        self.bot = VanityBot(config.discord)
        self.notifier = DiscordNotifier(self.rest)

        # Core
        self.availability = AvailabilityClient(self.rest)
        self.claimer = ClaimClient(self.bot, self.rest, self.proxy_pool)
        self.scheduler = MonitorScheduler(
            watches=self.watches,
            autoswaps=self.autoswaps,
            availability=self.availability,
            claimer=self.claimer,
            proxy_pool=self.proxy_pool,
            notifier=self.notifier,
            interval_sec=config.monitor.check_interval_sec,
        )
        self.service = WatchService(
            watches=self.watches,
            autoswaps=self.autoswaps,
            availability=self.availability,
            directory=self.bot,
            proxy_pool=self.proxy_pool,
        )
        self.bot.register_cog(WatchCommands(self.service, prefix=config.discord.command_prefix))

        self.dashboard = Dashboard(self, port=config.status.port) if config.status.enabled else None

    async def start(self):
        """Full startup sequence."""
        logger.info("=" * 60)
        logger.info("   VANITY MONITOR BOT — STARTING")
        logger.info("=" * 60)

        # 1. Load registries
        self.watches.load()
        self.autoswaps.load()

        # 2. Keep-alive server
        if self.dashboard:
            await self.dashboard.start()

        # 3. Connect to Discord and monitor once ready
        logger.info("[BOOT] Connecting to Discord...")
        monitor_task = asyncio.create_task(self._run_monitor())
        try:
            await self.bot.start(self.config.discord.token)
        finally:
            monitor_task.cancel()
            try:
                await monitor_task
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.error(f"[BOOT] Monitor task failed: {e}", exc_info=True)

    async def _run_monitor(self):
        await self.bot.wait_until_ready()
        logger.info(
            f"[BOOT] ✅ Ready. Watching {len(self.watches)} vanities, "
            f"{len(self.autoswaps)} auto swaps, {self.proxy_pool.size} proxies"
        )
        await self.scheduler.start()

    async def stop(self):
        """Graceful shutdown."""
        if self._stopping:
            return
        self._stopping = True
        logger.info("[SHUTDOWN] Stopping bot...")

        await self.scheduler.stop()
        if self.dashboard:
            await self.dashboard.stop()
        await self.bot.close()
        await self.rest.close()

        logger.info("[SHUTDOWN] Complete.")


async def main():
    """Entry point."""
    config = AppConfig.from_env()
    logging.getLogger().setLevel(config.log_level.upper())

    # Validate critical config
    if not config.discord.token:
        logger.critical("DISCORD_TOKEN must be set!")
        sys.exit(1)

    try:
        proxy_pool = ProxyPool.from_file(config.proxies.proxy_file, config.proxies.inline)
    except ProxyConfigError as e:
        logger.critical(f"[BOOT] Invalid proxy configuration: {e}")
        sys.exit(1)

    monitor = VanityMonitor(config, proxy_pool)

    # Graceful shutdown handler
    if sys.platform != "win32":
        loop = asyncio.get_running_loop()
        def handle_signal(sig):
            logger.info(f"Received signal {sig}. Initiating shutdown...")
            asyncio.create_task(monitor.stop())

        for sig in (signal.SIGINT, signal.SIGTERM):
            loop.add_signal_handler(sig, lambda s=sig: handle_signal(s))

    try:
        await monitor.start()
    except KeyboardInterrupt:
        logger.info("KeyboardInterrupt received in main loop.")
    except Exception as e:
        logger.critical(f"Fatal error: {e}", exc_info=True)
        await monitor.stop()
        sys.exit(1)
    finally:
        await monitor.stop()


if __name__ == "__main__":
    asyncio.run(main())
