"""
Pytest configuration and shared fixtures for the vanity monitor tests.
"""

from typing import Dict, List, Optional
from unittest.mock import AsyncMock

import pytest

from discord_api.models import (
    AutoClaimEntry,
    CheckResult,
    ManagedScope,
    MonitorEvent,
    WatchEntry,
)
from monitor.proxy_pool import ProxyPool
from storage.registry import JsonRegistryStore, Registry


# =============================================================================
# Fakes
# =============================================================================


class FakeDirectory:
    """In-memory ScopeDirectory."""

    def __init__(self, scopes: Optional[Dict[str, ManagedScope]] = None):
        self.scopes = scopes or {}
        self.set_vanity_code = AsyncMock()

    def lookup_scope(self, scope_id: str) -> Optional[ManagedScope]:
        return self.scopes.get(scope_id)


class RecordingSink:
    """NotificationSink that remembers every event."""

    def __init__(self):
        self.events: List[MonitorEvent] = []

    async def publish(self, event: MonitorEvent) -> None:
        self.events.append(event)


class FakeAvailability:
    """Answers exists() from a dict; unknown names are taken."""

    def __init__(self, answers: Optional[Dict[str, CheckResult]] = None):
        self.answers = answers or {}
        self.calls: List[tuple] = []

    async def exists(self, resource_name, proxy=None) -> CheckResult:
        self.calls.append((resource_name, proxy))
        return self.answers.get(resource_name, CheckResult.EXISTS)


# =============================================================================
# Fixtures
# =============================================================================


@pytest.fixture
def watch_path(tmp_path) -> str:
    return str(tmp_path / "vanity_data.json")


@pytest.fixture
def autoswap_path(tmp_path) -> str:
    return str(tmp_path / "autoswap_data.json")


@pytest.fixture
def watches(watch_path) -> Registry:
    return Registry(JsonRegistryStore(watch_path), WatchEntry, name="watches")


@pytest.fixture
def autoswaps(autoswap_path) -> Registry:
    return Registry(JsonRegistryStore(autoswap_path), AutoClaimEntry, name="autoswaps")


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def availability() -> FakeAvailability:
    return FakeAvailability()


@pytest.fixture
def empty_pool() -> ProxyPool:
    return ProxyPool()


@pytest.fixture
def guild_id() -> str:
    return "123456789012345678"


@pytest.fixture
def directory(guild_id) -> FakeDirectory:
    return FakeDirectory({
        guild_id: ManagedScope(scope_id=guild_id, name="Cool Guild", can_manage=True),
        "234567890123456789": ManagedScope(
            scope_id="234567890123456789", name="Read Only Guild", can_manage=False
        ),
    })


def make_watch(scope_id="123", name="coolname", requester="U1", channel="C1") -> WatchEntry:
    return WatchEntry(
        scope_id=scope_id,
        resource_name=name,
        requester_id=requester,
        notify_target_id=channel,
        created_at=1700000000000,
    )


def make_autoswap(
    scope_id="123", name="coolname", requester="U1", channel="C1",
    target="999", label="Target Guild",
) -> AutoClaimEntry:
    return AutoClaimEntry(
        scope_id=scope_id,
        resource_name=name,
        requester_id=requester,
        notify_target_id=channel,
        created_at=1700000000000,
        target_scope_id=target,
        target_scope_label=label,
    )
