"""
Per-zone countdown timers on top of the APScheduler asyncio scheduler
"""
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.date import DateTrigger
from datetime import datetime, timedelta, timezone
from typing import Any, Awaitable, Callable, Dict, Optional
import itertools
import logging

logger = logging.getLogger(__name__)

class ZoneTimerRegistry:
    """
    Owns at most one live expiry timer per zone.

    Each zone maps to the token of its current timer. arm() and disarm()
    never await, so swapping a zone's token and job cannot interleave with
    another task touching the same zone, and a job whose token was replaced
    in the meantime fires into nothing. A fired timer leaves the registry
    before its callback runs, whether or not the callback succeeds.
    """

    def __init__(self, scheduler: Optional[AsyncIOScheduler] = None):
        self.scheduler = scheduler or AsyncIOScheduler(timezone="UTC")
        self._tokens: Dict[int, int] = {}
        self._counter = itertools.count(1)

    @staticmethod
    def _job_id(zone_id: int) -> str:
        return f"zone-timer-{zone_id}"

    def start(self):
        """Start the underlying scheduler; must run inside the event loop"""
        if not self.scheduler.running:
            self.scheduler.start()
            logger.info("Zone timer scheduler started")

    def shutdown(self):
        if self.scheduler.running:
            self.scheduler.shutdown(wait=False)
            logger.info("Zone timer scheduler stopped")

    def arm(self, zone_id: int, total_seconds: float, on_expire: Callable[..., Awaitable[Any]], *args: Any) -> int:
        """Replace any timer for the zone with one awaiting on_expire(*args) after total_seconds"""
        if self.disarm(zone_id):
            logger.info(f"Superseding running timer for zone {zone_id}")

        token = next(self._counter)
        self._tokens[zone_id] = token

        run_date = datetime.now(timezone.utc) + timedelta(seconds=total_seconds)
        self.scheduler.add_job(
            self._fire,
            DateTrigger(run_date=run_date, timezone=timezone.utc),
            args=[zone_id, token, on_expire, *args],
            id=self._job_id(zone_id),
            name=f"expire zone {zone_id}",
            replace_existing=True,
            misfire_grace_time=None,
            coalesce=True,
        )
        logger.debug(f"Timer armed for zone {zone_id}: fires at {run_date.isoformat()}")
        return token

    async def _fire(self, zone_id: int, token: int, on_expire: Callable[..., Awaitable[Any]], *args: Any) -> None:
        if self._tokens.get(zone_id) != token:
            logger.debug(f"Dropping superseded timer for zone {zone_id}")
            return
        del self._tokens[zone_id]
        await on_expire(*args)

    def disarm(self, zone_id: int) -> bool:
        """Cancel the zone's timer; returns False when there was none"""
        armed = self._tokens.pop(zone_id, None) is not None
        try:
            self.scheduler.remove_job(self._job_id(zone_id))
        except JobLookupError:
            pass
        if armed:
            logger.debug(f"Timer disarmed for zone {zone_id}")
        return armed

    def is_armed(self, zone_id: int) -> bool:
        return zone_id in self._tokens
