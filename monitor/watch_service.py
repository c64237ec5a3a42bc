"""
Watch Service — Add, remove and list requests coming from the command frontend.

A code can only be watched while it is taken. Each composite key belongs to
one requester per registry; a second requester is turned away, never merged.
"""

from __future__ import annotations
import re
from dataclasses import dataclass
from enum import Enum
from typing import List, Optional, TYPE_CHECKING
from discord_api.models import (
    MIN_NAME_LENGTH, AutoClaimEntry, CheckResult, WatchEntry,
    composite_key, normalize_resource_name, now_ms,
)
import logging

if TYPE_CHECKING:
    from monitor.availability import AvailabilityClient
    from monitor.claim import ScopeDirectory
    from monitor.proxy_pool import ProxyPool
    from storage.registry import Registry

logger = logging.getLogger(__name__)

_GUILD_ID = re.compile(r"^[0-9]{17,19}$")


class AddStatus(Enum):
    ADDED = "ADDED"
    INVALID_NAME = "INVALID_NAME"
    INVALID_TARGET = "INVALID_TARGET"
    SCOPE_NOT_ADMINISTERED = "SCOPE_NOT_ADMINISTERED"
    MISSING_PRIVILEGE = "MISSING_PRIVILEGE"
    ALREADY_WATCHING = "ALREADY_WATCHING"
    KEY_HELD = "KEY_HELD"
    ALREADY_AVAILABLE = "ALREADY_AVAILABLE"


@dataclass
class AddResult:
    status: AddStatus
    resource_name: str = ""
    entry: Optional[WatchEntry] = None
    target_scope_label: str = ""

    @property
    def added(self) -> bool:
        return self.status is AddStatus.ADDED


def is_valid_guild_id(value: str) -> bool:
    return bool(_GUILD_ID.match(value))


class WatchService:
    """Validates and applies registry changes requested by users."""

    def __init__(
        self,
        watches: "Registry[WatchEntry]",
        autoswaps: "Registry[AutoClaimEntry]",
        availability: "AvailabilityClient",
        directory: "ScopeDirectory",
        proxy_pool: "ProxyPool",
    ):
        self.watches = watches
        self.autoswaps = autoswaps
        self.availability = availability
        self.directory = directory
        self.proxy_pool = proxy_pool

    async def add_watch(
        self, scope_id: str, raw_name: str, requester_id: str, notify_target_id: str
    ) -> AddResult:
        name = normalize_resource_name(raw_name)
        if len(name) < MIN_NAME_LENGTH:
            return AddResult(AddStatus.INVALID_NAME, name)

        entry = WatchEntry(
            scope_id=scope_id,
            resource_name=name,
            requester_id=requester_id,
            notify_target_id=notify_target_id,
            created_at=now_ms(),
        )
        return await self._insert(self.watches, entry)

    async def add_autoswap(
        self,
        scope_id: str,
        raw_name: str,
        requester_id: str,
        notify_target_id: str,
        target_scope_id: str,
    ) -> AddResult:
        name = normalize_resource_name(raw_name)
        if len(name) < MIN_NAME_LENGTH:
            return AddResult(AddStatus.INVALID_NAME, name)
        if not is_valid_guild_id(target_scope_id):
            return AddResult(AddStatus.INVALID_TARGET, name)

        scope = self.directory.lookup_scope(target_scope_id)
        if scope is None:
            return AddResult(AddStatus.SCOPE_NOT_ADMINISTERED, name)
        if not scope.can_manage:
            return AddResult(AddStatus.MISSING_PRIVILEGE, name, target_scope_label=scope.name)

        entry = AutoClaimEntry(
            scope_id=scope_id,
            resource_name=name,
            requester_id=requester_id,
            notify_target_id=notify_target_id,
            created_at=now_ms(),
            target_scope_id=target_scope_id,
            target_scope_label=scope.name,
        )
        return await self._insert(self.autoswaps, entry)

    async def _insert(self, registry: "Registry", entry: WatchEntry) -> AddResult:
        label = getattr(entry, "target_scope_label", "")
        existing = registry.get(entry.key)
        if existing is not None:
            status = (
                AddStatus.ALREADY_WATCHING
                if existing.requester_id == entry.requester_id
                else AddStatus.KEY_HELD
            )
            return AddResult(status, entry.resource_name, existing, label)

        result = await self.availability.exists(entry.resource_name, self.proxy_pool.next())
        if result is CheckResult.NOT_FOUND:
            return AddResult(AddStatus.ALREADY_AVAILABLE, entry.resource_name, target_scope_label=label)

        # Someone may have taken the key while the check was in flight
        if not registry.add(entry):
            return AddResult(AddStatus.KEY_HELD, entry.resource_name, registry.get(entry.key), label)

        self._persist(registry)
        logger.info(f"[WATCH] {registry.name}: {entry.requester_id} added {entry.key}")
        return AddResult(AddStatus.ADDED, entry.resource_name, entry, label)

    def remove_watch(self, scope_id: str, raw_name: str, requester_id: str) -> bool:
        return self._remove(self.watches, scope_id, raw_name, requester_id)

    def remove_autoswap(self, scope_id: str, raw_name: str, requester_id: str) -> bool:
        return self._remove(self.autoswaps, scope_id, raw_name, requester_id)

    def _remove(self, registry: "Registry", scope_id: str, raw_name: str, requester_id: str) -> bool:
        """Only the requester who created an entry may remove it."""
        key = composite_key(scope_id, normalize_resource_name(raw_name))
        entry = registry.get(key)
        if entry is None or entry.requester_id != requester_id:
            return False
        registry.remove(key)
        self._persist(registry)
        logger.info(f"[WATCH] {registry.name}: {requester_id} removed {key}")
        return True

    def list_watches(self, scope_id: str, requester_id: str) -> List[WatchEntry]:
        return self.watches.entries_for(scope_id, requester_id)

    def list_autoswaps(self, scope_id: str, requester_id: str) -> List[AutoClaimEntry]:
        return self.autoswaps.entries_for(scope_id, requester_id)

    def _persist(self, registry: "Registry"):
        try:
            registry.save()
        except OSError as e:
            logger.error(f"[WATCH] Could not persist {registry.name}: {e}")
