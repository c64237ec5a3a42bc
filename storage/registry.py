"""
JSON Registry Storage.
Each registry is one flat JSON object: composite key -> entry fields.
Every mutation rewrites the whole document (temp file + atomic rename).
"""

from __future__ import annotations
import json
import os
import tempfile
from typing import Dict, Generic, List, Optional, Type, TypeVar
from discord_api.models import KEY_SEPARATOR, NO_SCOPE, WatchEntry, composite_key, split_key
import logging

logger = logging.getLogger(__name__)

E = TypeVar("E", bound=WatchEntry)


class JsonRegistryStore:
    """Whole-snapshot persistence for one registry file."""

    def __init__(self, path: str):
        self.path = path

    def load(self) -> Dict[str, dict]:
        """
        Read the document. Missing or unreadable files yield an empty map.
        Keys without a scope prefix are migrated and the file is rewritten once.
        """
        if not os.path.exists(self.path):
            logger.info(f"[REGISTRY] {self.path} not found, starting empty")
            return {}

        try:
            with open(self.path, "r", encoding="utf-8") as f:
                raw = json.load(f)
        except (OSError, ValueError) as e:
            logger.warning(f"[REGISTRY] Could not read {self.path}: {e}. Starting empty")
            return {}

        if not isinstance(raw, dict):
            logger.warning(f"[REGISTRY] {self.path} is not a JSON object. Starting empty")
            return {}

        data, migrated = self._migrate_legacy_keys(raw)
        if migrated:
            logger.info(f"[REGISTRY] Migrated {migrated} legacy key(s) in {self.path}")
            try:
                self.save_snapshot(data)
            except OSError as e:
                logger.error(f"[REGISTRY] Could not persist migrated {self.path}: {e}")
        return data

    def _migrate_legacy_keys(self, raw: Dict[str, object]) -> tuple[Dict[str, dict], int]:
        """Old files keyed entries by bare vanity code."""
        data: Dict[str, dict] = {}
        legacy: Dict[str, dict] = {}
        for key, value in raw.items():
            if not isinstance(value, dict):
                logger.warning(f"[REGISTRY] Dropping non-object entry {key!r}")
                continue
            if KEY_SEPARATOR in key:
                data[key] = value
            else:
                legacy[key] = value

        for name, value in legacy.items():
            scope_id = str(value.get("guildId") or NO_SCOPE)
            new_key = composite_key(scope_id, name)
            if new_key in data:
                logger.warning(f"[REGISTRY] Legacy key {name!r} collides with {new_key!r}, dropped")
                continue
            migrated = dict(value)
            migrated["guildId"] = scope_id
            migrated.setdefault("vanityUrl", name)
            data[new_key] = migrated

        return data, len(legacy)

    def save_snapshot(self, data: Dict[str, dict]):
        """Overwrite the document atomically. Raises OSError on failure."""
        directory = os.path.dirname(os.path.abspath(self.path))
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(prefix=".registry-", suffix=".tmp", dir=directory)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(data, f, indent=2)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.unlink(tmp_path)
            raise


class Registry(Generic[E]):
    """
    In-memory map of composite key -> entry, backed by a JsonRegistryStore.
    The registry is the only owner of entry lifetime.
    """

    def __init__(self, store: JsonRegistryStore, entry_cls: Type[E], name: str = "registry"):
        self.store = store
        self.entry_cls = entry_cls
        self.name = name
        self._entries: Dict[str, E] = {}

    def load(self):
        """Replace in-memory state with the persisted document."""
        self._entries = {}
        for key, value in self.store.load().items():
            try:
                entry = self.entry_cls.from_dict(value)
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"[REGISTRY] {self.name}: skipping malformed entry {key!r}: {e}")
                continue
            # The key is authoritative for scope and name
            scope_id, resource_name = split_key(key)
            if (entry.scope_id, entry.resource_name) != (scope_id, resource_name):
                logger.warning(f"[REGISTRY] {self.name}: key {key!r} disagrees with its entry, skipped")
                continue
            self._entries[key] = entry
        logger.info(f"[REGISTRY] {self.name}: loaded {len(self._entries)} entries")

    def save(self):
        """Persist the full snapshot. Raises OSError on failure."""
        self.store.save_snapshot({key: e.to_dict() for key, e in self._entries.items()})

    def get(self, key: str) -> Optional[E]:
        return self._entries.get(key)

    def add(self, entry: E) -> bool:
        """Insert a new entry. Returns False if the key is already held."""
        if entry.key in self._entries:
            return False
        self._entries[entry.key] = entry
        return True

    def remove(self, key: str) -> Optional[E]:
        """Delete and return the entry; None if someone already removed it."""
        return self._entries.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._entries.keys())

    def snapshot(self) -> Dict[str, E]:
        return dict(self._entries)

    def entries_for(self, scope_id: str, requester_id: str) -> List[E]:
        return [
            e for e in self._entries.values()
            if e.scope_id == scope_id and e.requester_id == requester_id
        ]

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: str) -> bool:
        return key in self._entries
