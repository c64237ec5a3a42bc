"""
Data models for the Vanity Monitor.
Registry entries are immutable and serialize to the camelCase JSON field names used on disk.
"""

from __future__ import annotations
import re
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple
import aiohttp


NO_SCOPE = "dm"             # Requests issued outside any guild
KEY_SEPARATOR = "_"
MIN_NAME_LENGTH = 2

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9-]")


def normalize_resource_name(raw: str) -> str:
    """Lowercase, then drop everything outside [a-z0-9-]."""
    return _INVALID_NAME_CHARS.sub("", raw.lower())


def composite_key(scope_id: str, resource_name: str) -> str:
    return f"{scope_id}{KEY_SEPARATOR}{resource_name}"


def split_key(key: str) -> Tuple[str, str]:
    """Split a composite key into (scope_id, resource_name)."""
    scope_id, _, resource_name = key.partition(KEY_SEPARATOR)
    return scope_id, resource_name


def now_ms() -> int:
    return int(time.time() * 1000)


class CheckResult(Enum):
    EXISTS = "EXISTS"
    NOT_FOUND = "NOT_FOUND"


class ClaimFailure(Enum):
    PRECONDITION = "PRECONDITION"
    RATE_LIMITED = "RATE_LIMITED"
    BAD_REQUEST = "BAD_REQUEST"
    FORBIDDEN = "FORBIDDEN"
    GENERIC = "GENERIC"


class EventKind(Enum):
    WATCH_AVAILABLE = "WATCH_AVAILABLE"
    CLAIM_SUCCEEDED = "CLAIM_SUCCEEDED"
    CLAIM_FAILED = "CLAIM_FAILED"


@dataclass(frozen=True)
class ProxyDescriptor:
    """Egress proxy credentials."""
    host: str
    port: int
    username: str
    password: str

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    @property
    def auth(self) -> aiohttp.BasicAuth:
        return aiohttp.BasicAuth(self.username, self.password)

    def __str__(self) -> str:
        # Never print credentials
        return f"{self.host}:{self.port}"


@dataclass(frozen=True)
class WatchEntry:
    """A request to be told when a vanity code becomes available."""
    scope_id: str
    resource_name: str
    requester_id: str
    notify_target_id: str
    created_at: int = 0     # Unix ms, advisory only

    @property
    def key(self) -> str:
        return composite_key(self.scope_id, self.resource_name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.requester_id,
            "channelId": self.notify_target_id,
            "guildId": self.scope_id,
            "vanityUrl": self.resource_name,
            "addedAt": self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "WatchEntry":
        return cls(
            scope_id=str(data.get("guildId") or NO_SCOPE),
            resource_name=str(data["vanityUrl"]),
            requester_id=str(data["userId"]),
            notify_target_id=str(data["channelId"]),
            created_at=int(data.get("addedAt") or 0),
        )


@dataclass(frozen=True)
class AutoClaimEntry(WatchEntry):
    """A watch that also claims the code for a target guild."""
    target_scope_id: str = ""
    target_scope_label: str = ""    # Captured at creation, may go stale

    def to_dict(self) -> Dict[str, Any]:
        data = super().to_dict()
        data["targetGuildId"] = self.target_scope_id
        data["targetGuildName"] = self.target_scope_label
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AutoClaimEntry":
        return cls(
            scope_id=str(data.get("guildId") or NO_SCOPE),
            resource_name=str(data["vanityUrl"]),
            requester_id=str(data["userId"]),
            notify_target_id=str(data["channelId"]),
            created_at=int(data.get("addedAt") or 0),
            target_scope_id=str(data["targetGuildId"]),
            target_scope_label=str(data.get("targetGuildName") or ""),
        )


@dataclass(frozen=True)
class ManagedScope:
    """A guild as currently seen by the running bot."""
    scope_id: str
    name: str
    can_manage: bool


@dataclass(frozen=True)
class ClaimResult:
    claimed: bool
    failure: Optional[ClaimFailure] = None
    detail: str = ""

    @classmethod
    def success(cls) -> "ClaimResult":
        return cls(claimed=True)

    @classmethod
    def failed(cls, failure: ClaimFailure, detail: str = "") -> "ClaimResult":
        return cls(claimed=False, failure=failure, detail=detail)


@dataclass(frozen=True)
class MonitorEvent:
    """Structured event handed to the notification sink."""
    kind: EventKind
    resource_name: str
    notify_target_id: str
    requester_id: str
    target_scope_label: Optional[str] = None
    failure: Optional[ClaimFailure] = None
