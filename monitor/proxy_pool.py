"""
Proxy Pool — Round-robin egress proxy rotation.
Descriptors are parsed once at startup; a bad line is a configuration error.
"""

from __future__ import annotations
import os
from typing import Iterable, List, Optional
from discord_api.models import ProxyDescriptor
import logging

logger = logging.getLogger(__name__)


class ProxyConfigError(ValueError):
    """Malformed proxy descriptor."""


def parse_proxy(line: str) -> ProxyDescriptor:
    """Parse `host:port:user:pass`. The password may itself contain ':'."""
    parts = line.strip().split(":", 3)
    if len(parts) != 4:
        raise ProxyConfigError(f"Expected host:port:user:pass, got {len(parts)} field(s)")

    host, port_str, username, password = parts
    if not host:
        raise ProxyConfigError("Proxy host is empty")
    try:
        port = int(port_str)
    except ValueError:
        raise ProxyConfigError(f"Proxy port is not a number: {port_str!r}") from None
    if not 0 < port < 65536:
        raise ProxyConfigError(f"Proxy port out of range: {port}")

    return ProxyDescriptor(host=host, port=port, username=username, password=password)


class ProxyPool:
    """
    Hands out proxies in strict list order, wrapping around.
    The cursor advances on every call whether or not the proxy gets used.
    """

    def __init__(self, proxies: Optional[Iterable[ProxyDescriptor]] = None):
        self._proxies: tuple[ProxyDescriptor, ...] = tuple(proxies or ())
        self._index = 0

    @classmethod
    def from_lines(cls, lines: Iterable[str]) -> "ProxyPool":
        proxies: List[ProxyDescriptor] = []
        for lineno, line in enumerate(lines, start=1):
            line = line.strip()
            if not line or line.startswith("#"):
                continue
            try:
                proxies.append(parse_proxy(line))
            except ProxyConfigError as e:
                raise ProxyConfigError(f"Proxy entry #{lineno}: {e}") from None
        return cls(proxies)

    @classmethod
    def from_file(cls, path: str, extra: Iterable[str] = ()) -> "ProxyPool":
        """Load from a file (missing file is fine) plus inline entries."""
        lines: List[str] = []
        if path and os.path.exists(path):
            with open(path, "r", encoding="utf-8") as f:
                lines = f.read().splitlines()
        else:
            logger.info(f"[PROXY] No proxy file at {path}, using inline entries only")
        pool = cls.from_lines([*lines, *extra])
        if pool.size:
            logger.info(f"[PROXY] Loaded {pool.size} proxies")
        else:
            logger.info("[PROXY] No proxies configured, using direct egress")
        return pool

    @property
    def size(self) -> int:
        return len(self._proxies)

    def next(self) -> Optional[ProxyDescriptor]:
        if not self._proxies:
            return None
        proxy = self._proxies[self._index]
        self._index = (self._index + 1) % len(self._proxies)
        return proxy
