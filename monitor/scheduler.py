"""
Monitoring Scheduler — The recurring availability scan.

Each tick walks the watch registry, then the autoswap registry, one entry at
a time. A code that turns up free is removed from its registry exactly once:
watch entries produce a notification, autoswap entries get a single claim
attempt and a success/failure notification regardless of the outcome.
"""

from __future__ import annotations
import asyncio
import time
from dataclasses import dataclass, asdict
from typing import Optional, TYPE_CHECKING
from discord_api.models import AutoClaimEntry, CheckResult, EventKind, MonitorEvent, WatchEntry
import logging

if TYPE_CHECKING:
    from monitor.availability import AvailabilityClient
    from monitor.claim import ClaimClient
    from monitor.proxy_pool import ProxyPool
    from notifications.discord_notifier import NotificationSink
    from storage.registry import Registry

logger = logging.getLogger(__name__)


@dataclass
class TickReport:
    checked: int = 0
    available: int = 0
    claimed: int = 0
    claim_failed: int = 0
    errors: int = 0
    duration_sec: float = 0.0
    skipped: bool = False

    def to_dict(self) -> dict:
        return asdict(self)


class MonitorScheduler:
    """
    Cooperative periodic task. Ticks run to completion and never overlap.
    An overrunning tick is followed immediately by the next one.
    """

    def __init__(
        self,
        watches: "Registry[WatchEntry]",
        autoswaps: "Registry[AutoClaimEntry]",
        availability: "AvailabilityClient",
        claimer: "ClaimClient",
        proxy_pool: "ProxyPool",
        notifier: "NotificationSink",
        interval_sec: float = 30,
    ):
        self.watches = watches
        self.autoswaps = autoswaps
        self.availability = availability
        self.claimer = claimer
        self.proxy_pool = proxy_pool
        self.notifier = notifier
        self.interval_sec = interval_sec
        self._running = False
        self._tick_in_progress = False
        self.last_report: Optional[TickReport] = None

    @property
    def is_running(self) -> bool:
        return self._running

    async def start(self):
        """Run ticks at a fixed interval until stop() is called."""
        self._running = True
        logger.info(
            f"[TICK] Monitoring started. Interval: {self.interval_sec}s, "
            f"watches: {len(self.watches)}, autoswaps: {len(self.autoswaps)}"
        )
        loop = asyncio.get_running_loop()
        next_at = loop.time() + self.interval_sec

        while self._running:
            await asyncio.sleep(max(0.0, next_at - loop.time()))
            if not self._running:
                break

            started = loop.time()
            next_at = started + self.interval_sec
            try:
                await self.run_tick()
            except Exception as e:
                logger.error(f"[TICK] Tick error: {e}", exc_info=True)

            elapsed = loop.time() - started
            if elapsed > self.interval_sec:
                logger.warning(
                    f"[TICK] Tick took {elapsed:.1f}s, longer than the "
                    f"{self.interval_sec}s interval"
                )

    async def stop(self):
        self._running = False

    async def run_tick(self) -> TickReport:
        if self._tick_in_progress:
            logger.warning("[TICK] Previous tick still running, skipping")
            return TickReport(skipped=True)

        self._tick_in_progress = True
        report = TickReport()
        started = time.monotonic()
        try:
            await self._scan_watches(report)
            await self._scan_autoswaps(report)
        finally:
            self._tick_in_progress = False
            report.duration_sec = time.monotonic() - started
            self.last_report = report

        if report.available or report.errors:
            logger.info(
                f"[TICK] checked={report.checked} available={report.available} "
                f"claimed={report.claimed} claim_failed={report.claim_failed} "
                f"errors={report.errors} ({report.duration_sec:.1f}s)"
            )
        else:
            logger.debug(f"[TICK] checked={report.checked}, nothing free ({report.duration_sec:.1f}s)")
        return report

    async def _check(self, entry: WatchEntry) -> CheckResult:
        return await self.availability.exists(entry.resource_name, self.proxy_pool.next())

    async def _scan_watches(self, report: TickReport):
        for key in self.watches.keys():
            entry = self.watches.get(key)
            if entry is None:
                continue
            report.checked += 1

            try:
                result = await self._check(entry)
            except Exception as e:
                report.errors += 1
                logger.error(f"[TICK] {key}: check failed, retrying next tick: {e}", exc_info=True)
                continue

            if result is CheckResult.EXISTS:
                continue

            # Removed while we were awaiting the check
            if self.watches.remove(key) is None:
                continue

            report.available += 1
            logger.info(f"[TICK] 🎯 {entry.resource_name} is available (watch {key})")
            await self._publish(MonitorEvent(
                kind=EventKind.WATCH_AVAILABLE,
                resource_name=entry.resource_name,
                notify_target_id=entry.notify_target_id,
                requester_id=entry.requester_id,
            ))
            self._persist(self.watches)

    async def _scan_autoswaps(self, report: TickReport):
        for key in self.autoswaps.keys():
            entry = self.autoswaps.get(key)
            if entry is None:
                continue
            report.checked += 1

            try:
                result = await self._check(entry)
                if result is CheckResult.EXISTS:
                    continue
                if key not in self.autoswaps:
                    continue
                logger.info(
                    f"[TICK] 🎯 {entry.resource_name} is available, "
                    f"claiming for {entry.target_scope_label} ({entry.target_scope_id})"
                )
                outcome = await self.claimer.claim(entry.resource_name, entry.target_scope_id)
            except Exception as e:
                report.errors += 1
                logger.error(f"[TICK] {key}: check/claim failed, retrying next tick: {e}", exc_info=True)
                continue

            # Single attempt: the entry goes whatever the outcome. The claim
            # already ran, so its outcome is reported even if the entry was
            # removed concurrently.
            removed = self.autoswaps.remove(key) is not None
            if not removed:
                logger.info(f"[TICK] {key} was removed during the claim, reporting outcome anyway")

            report.available += 1
            if outcome.claimed:
                report.claimed += 1
            else:
                report.claim_failed += 1

            await self._publish(MonitorEvent(
                kind=EventKind.CLAIM_SUCCEEDED if outcome.claimed else EventKind.CLAIM_FAILED,
                resource_name=entry.resource_name,
                notify_target_id=entry.notify_target_id,
                requester_id=entry.requester_id,
                target_scope_label=entry.target_scope_label,
                failure=outcome.failure,
            ))
            if removed:
                self._persist(self.autoswaps)

    async def _publish(self, event: MonitorEvent):
        try:
            await self.notifier.publish(event)
        except Exception as e:
            logger.error(f"[TICK] Failed to deliver {event.kind.value} for {event.resource_name}: {e}")

    def _persist(self, registry: "Registry"):
        try:
            registry.save()
        except OSError as e:
            logger.error(f"[TICK] Could not persist {registry.name}: {e}")
