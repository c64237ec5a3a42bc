"""
Vanity Monitor — Configuration
All tunable parameters in one place.
"""

import os
from dataclasses import dataclass, field
from typing import List


@dataclass
class MonitorConfig:
    check_interval_sec: float = 30      # Fixed, no backoff
    request_timeout_sec: float = 10     # Per remote call


@dataclass
class DiscordConfig:
    token: str = ""                     # No compiled-in default
    command_prefix: str = ","
    api_base_url: str = "https://discord.com/api/v10"


@dataclass
class ProxyConfig:
    proxy_file: str = "./proxies.txt"   # host:port:user:pass per line
    inline: List[str] = field(default_factory=list)


@dataclass
class StorageConfig:
    watch_path: str = "./data/vanity_data.json"
    autoswap_path: str = "./data/autoswap_data.json"


@dataclass
class StatusServerConfig:
    enabled: bool = True
    port: int = 3000


@dataclass
class AppConfig:
    monitor: MonitorConfig = field(default_factory=MonitorConfig)
    discord: DiscordConfig = field(default_factory=DiscordConfig)
    proxies: ProxyConfig = field(default_factory=ProxyConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    status: StatusServerConfig = field(default_factory=StatusServerConfig)
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "AppConfig":
        """Load config with environment variable overrides."""
        config = cls()
        config.discord.token = os.getenv("DISCORD_TOKEN", "")
        config.discord.command_prefix = os.getenv("COMMAND_PREFIX", ",")
        config.discord.api_base_url = os.getenv("DISCORD_API_BASE", config.discord.api_base_url)
        config.monitor.check_interval_sec = float(os.getenv("MONITOR_CHECK_INTERVAL", "30"))
        config.monitor.request_timeout_sec = float(os.getenv("REQUEST_TIMEOUT", "10"))
        config.proxies.proxy_file = os.getenv("PROXY_FILE", "./proxies.txt")
        config.proxies.inline = [
            p.strip() for p in os.getenv("PROXIES", "").split(",") if p.strip()
        ]
        config.storage.watch_path = os.getenv("WATCH_DATA_PATH", "./data/vanity_data.json")
        config.storage.autoswap_path = os.getenv("AUTOSWAP_DATA_PATH", "./data/autoswap_data.json")
        config.status.enabled = os.getenv("STATUS_SERVER", "true").lower() == "true"
        config.status.port = int(os.getenv("STATUS_PORT", "3000"))
        config.log_level = os.getenv("LOG_LEVEL", "INFO")
        return config
