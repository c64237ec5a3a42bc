"""
Tests for the monitoring scheduler tick.
"""

import asyncio
import json
from unittest.mock import AsyncMock, MagicMock

import pytest

from discord_api.models import (
    CheckResult,
    ClaimFailure,
    ClaimResult,
    EventKind,
    ManagedScope,
)
from monitor.claim import ClaimClient
from monitor.proxy_pool import ProxyPool
from monitor.scheduler import MonitorScheduler
from conftest import FakeAvailability, FakeDirectory, make_autoswap, make_watch


def build_scheduler(watches, autoswaps, availability, sink, claimer=None, pool=None, interval=30):
    if claimer is None:
        claimer = MagicMock()
        claimer.claim = AsyncMock(return_value=ClaimResult.success())
    return MonitorScheduler(
        watches=watches,
        autoswaps=autoswaps,
        availability=availability,
        claimer=claimer,
        proxy_pool=pool or ProxyPool(),
        notifier=sink,
        interval_sec=interval,
    )


def read_json(path):
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


# =============================================================================
# Watch registry
# =============================================================================


class TestWatchScan:
    @pytest.mark.asyncio
    async def test_available_watch_is_notified_and_removed(self, watches, autoswaps, sink, watch_path):
        watches.add(make_watch(scope_id="123", name="coolname", requester="U1"))
        watches.save()
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink)

        report = await scheduler.run_tick()

        assert len(watches) == 0
        assert read_json(watch_path) == {}
        assert len(sink.events) == 1
        event = sink.events[0]
        assert event.kind is EventKind.WATCH_AVAILABLE
        assert event.requester_id == "U1"
        assert event.resource_name == "coolname"
        assert event.notify_target_id == "C1"
        assert report.available == 1

    @pytest.mark.asyncio
    async def test_taken_watch_is_kept(self, watches, autoswaps, sink):
        watches.add(make_watch())
        scheduler = build_scheduler(watches, autoswaps, FakeAvailability(), sink)

        report = await scheduler.run_tick()

        assert "123_coolname" in watches
        assert sink.events == []
        assert report.checked == 1

    @pytest.mark.asyncio
    async def test_at_most_one_notification_per_transition(self, watches, autoswaps, sink):
        watches.add(make_watch())
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink)

        for _ in range(5):
            await scheduler.run_tick()

        assert len(sink.events) == 1
        assert len(availability.calls) == 1

    @pytest.mark.asyncio
    async def test_check_exception_keeps_entry_and_continues(self, watches, autoswaps, sink):
        watches.add(make_watch(name="broken"))
        watches.add(make_watch(name="free"))

        class FlakyAvailability(FakeAvailability):
            async def exists(self, resource_name, proxy=None):
                if resource_name == "broken":
                    raise RuntimeError("boom")
                return CheckResult.NOT_FOUND

        scheduler = build_scheduler(watches, autoswaps, FlakyAvailability(), sink)
        report = await scheduler.run_tick()

        assert watches.keys() == ["123_broken"]
        assert [e.resource_name for e in sink.events] == ["free"]
        assert report.errors == 1

    @pytest.mark.asyncio
    async def test_notifier_failure_still_removes(self, watches, autoswaps, watch_path):
        watches.add(make_watch())
        sink = MagicMock()
        sink.publish = AsyncMock(side_effect=RuntimeError("discord down"))
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink)

        await scheduler.run_tick()
        await scheduler.run_tick()

        assert len(watches) == 0
        assert read_json(watch_path) == {}
        sink.publish.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_entry_removed_during_check_is_skipped(self, watches, autoswaps, sink):
        watches.add(make_watch())

        class RemovingAvailability(FakeAvailability):
            async def exists(self, resource_name, proxy=None):
                watches.remove("123_coolname")
                return CheckResult.NOT_FOUND

        scheduler = build_scheduler(watches, autoswaps, RemovingAvailability(), sink)
        await scheduler.run_tick()

        assert sink.events == []

    @pytest.mark.asyncio
    async def test_each_check_draws_a_proxy(self, watches, autoswaps, sink):
        watches.add(make_watch(name="aa"))
        watches.add(make_watch(name="bb"))
        watches.add(make_watch(name="cc"))
        availability = FakeAvailability()
        pool = ProxyPool.from_lines(["x:1:u:p", "y:2:u:p"])
        scheduler = build_scheduler(watches, autoswaps, availability, sink, pool=pool)

        await scheduler.run_tick()

        assert [proxy.host for _, proxy in availability.calls] == ["x", "y", "x"]


# =============================================================================
# Autoswap registry
# =============================================================================


class TestAutoswapScan:
    @pytest.mark.asyncio
    async def test_successful_claim(self, watches, autoswaps, sink, autoswap_path):
        autoswaps.add(make_autoswap(target="555", label="Target Guild"))
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink)

        report = await scheduler.run_tick()

        scheduler.claimer.claim.assert_awaited_once_with("coolname", "555")
        assert len(autoswaps) == 0
        assert read_json(autoswap_path) == {}
        assert [e.kind for e in sink.events] == [EventKind.CLAIM_SUCCEEDED]
        assert sink.events[0].target_scope_label == "Target Guild"
        assert report.claimed == 1

    @pytest.mark.asyncio
    async def test_lost_privilege_fails_and_still_deletes(self, watches, autoswaps, sink):
        autoswaps.add(make_autoswap(target="999"))
        directory = FakeDirectory({"999": ManagedScope("999", "Target Guild", can_manage=False)})
        rest = MagicMock()
        rest.modify_vanity_url = AsyncMock()
        claimer = ClaimClient(directory, rest, ProxyPool())
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink, claimer=claimer)

        report = await scheduler.run_tick()

        assert len(autoswaps) == 0
        assert len(sink.events) == 1
        assert sink.events[0].kind is EventKind.CLAIM_FAILED
        assert sink.events[0].failure is ClaimFailure.PRECONDITION
        directory.set_vanity_code.assert_not_awaited()
        rest.modify_vanity_url.assert_not_awaited()
        assert report.claim_failed == 1

    @pytest.mark.asyncio
    async def test_rate_limited_claim_is_not_retried(self, watches, autoswaps, sink):
        autoswaps.add(make_autoswap())
        claimer = MagicMock()
        claimer.claim = AsyncMock(return_value=ClaimResult.failed(ClaimFailure.RATE_LIMITED))
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink, claimer=claimer)

        await scheduler.run_tick()
        await scheduler.run_tick()

        claimer.claim.assert_awaited_once()
        assert [e.kind for e in sink.events] == [EventKind.CLAIM_FAILED]

    @pytest.mark.asyncio
    async def test_claim_exception_keeps_entry(self, watches, autoswaps, sink):
        autoswaps.add(make_autoswap())
        claimer = MagicMock()
        claimer.claim = AsyncMock(side_effect=RuntimeError("unexpected"))
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink, claimer=claimer)

        report = await scheduler.run_tick()

        assert "123_coolname" in autoswaps
        assert sink.events == []
        assert report.errors == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("outcome, kind", [
        (ClaimResult.success(), EventKind.CLAIM_SUCCEEDED),
        (ClaimResult.failed(ClaimFailure.RATE_LIMITED), EventKind.CLAIM_FAILED),
    ])
    async def test_claim_outcome_reported_when_entry_removed_mid_claim(
        self, watches, autoswaps, sink, autoswap_path, outcome, kind
    ):
        autoswaps.add(make_autoswap())
        autoswaps.save()

        async def claim_while_user_removes(name, target):
            autoswaps.remove("123_coolname")
            return outcome

        claimer = MagicMock()
        claimer.claim = AsyncMock(side_effect=claim_while_user_removes)
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink, claimer=claimer)

        report = await scheduler.run_tick()

        claimer.claim.assert_awaited_once()
        assert [e.kind for e in sink.events] == [kind]
        assert report.claimed + report.claim_failed == 1
        assert len(autoswaps) == 0
        # The concurrent remover owns persistence of its deletion
        assert "123_coolname" in read_json(autoswap_path)

    @pytest.mark.asyncio
    async def test_watch_and_autoswap_for_same_key_are_independent(self, watches, autoswaps, sink):
        watches.add(make_watch())
        autoswaps.add(make_autoswap())
        availability = FakeAvailability({"coolname": CheckResult.NOT_FOUND})
        scheduler = build_scheduler(watches, autoswaps, availability, sink)

        await scheduler.run_tick()

        assert [e.kind for e in sink.events] == [EventKind.WATCH_AVAILABLE, EventKind.CLAIM_SUCCEEDED]
        assert len(watches) == 0 and len(autoswaps) == 0


# =============================================================================
# Tick scheduling
# =============================================================================


class TestTickScheduling:
    @pytest.mark.asyncio
    async def test_overlapping_tick_is_skipped(self, watches, autoswaps, sink):
        watches.add(make_watch())
        gate = asyncio.Event()

        class SlowAvailability(FakeAvailability):
            async def exists(self, resource_name, proxy=None):
                await gate.wait()
                return CheckResult.EXISTS

        scheduler = build_scheduler(watches, autoswaps, SlowAvailability(), sink)
        first = asyncio.create_task(scheduler.run_tick())
        await asyncio.sleep(0)

        second = await scheduler.run_tick()
        gate.set()
        first_report = await first

        assert second.skipped
        assert not first_report.skipped
        assert first_report.checked == 1

    @pytest.mark.asyncio
    async def test_start_runs_ticks_until_stopped(self, watches, autoswaps, sink):
        scheduler = build_scheduler(watches, autoswaps, FakeAvailability(), sink, interval=0.01)
        ticks = []
        original = scheduler.run_tick

        async def counting_tick():
            ticks.append(1)
            if len(ticks) == 3:
                await scheduler.stop()
            return await original()

        scheduler.run_tick = counting_tick
        await asyncio.wait_for(scheduler.start(), timeout=2)

        assert len(ticks) == 3
        assert not scheduler.is_running
        assert scheduler.last_report is not None

    @pytest.mark.asyncio
    async def test_start_survives_tick_errors(self, watches, autoswaps, sink):
        scheduler = build_scheduler(watches, autoswaps, FakeAvailability(), sink, interval=0.01)
        calls = []

        async def failing_tick():
            calls.append(1)
            if len(calls) == 2:
                await scheduler.stop()
            raise RuntimeError("tick exploded")

        scheduler.run_tick = failing_tick
        await asyncio.wait_for(scheduler.start(), timeout=2)

        assert len(calls) == 2
