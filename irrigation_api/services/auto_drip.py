"""
Schedule-triggered watering: a once-a-minute check that starts zones whose time slot has come
"""
from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.cron import CronTrigger
from apscheduler.util import astimezone
from datetime import datetime, tzinfo
from sqlalchemy.orm import Session, sessionmaker
from typing import Any, Callable, Dict, List, Optional, Union
import logging

from irrigation_api.database import get_utc_datetime
from irrigation_api.models.auto_drip import AutoDripSchedule
from irrigation_api.services.zone_control import ZoneControlService

logger = logging.getLogger(__name__)

AUTO_DRIP_SOURCE = "AUTO_DRIP"
DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

def due_slot(schedule: AutoDripSchedule, now: datetime) -> Optional[Dict[str, Any]]:
    """The slot starting at now's minute, if the schedule runs today"""
    if not schedule.is_active:
        return None
    if DAY_NAMES[now.weekday()] not in (schedule.active_days or []):
        return None
    current = now.strftime("%H:%M")
    for slot in schedule.time_slots or []:
        if slot.get("start_time") == current:
            return slot
    return None

class AutoDripScheduler:
    """
    Minute cron job on the scheduler that also holds the zone timers.

    Slot times and weekdays are read in ``timezone``. A zone that is already
    running when its slot comes up is restarted with the slot's duration.
    """

    JOB_ID = "auto-drip-check"

    def __init__(
        self,
        session_factory: sessionmaker,
        zone_control: ZoneControlService,
        scheduler: AsyncIOScheduler,
        timezone: Union[str, tzinfo] = "UTC",
        clock: Callable[[], datetime] = get_utc_datetime,
    ):
        self._session_factory = session_factory
        self.zone_control = zone_control
        self.scheduler = scheduler
        self.timezone = astimezone(timezone)
        self._clock = clock

    def start(self):
        self.scheduler.add_job(
            self.check_and_trigger,
            CronTrigger(second=0, timezone=self.timezone),
            id=self.JOB_ID,
            name="auto drip check",
            replace_existing=True,
            coalesce=True,
            max_instances=1,
            misfire_grace_time=30,
        )
        logger.info(f"Auto drip scheduler started (every minute, {self.timezone})")

    def stop(self):
        try:
            self.scheduler.remove_job(self.JOB_ID)
            logger.info("Auto drip scheduler stopped")
        except JobLookupError:
            pass

    def _active_schedules(self) -> List[AutoDripSchedule]:
        db: Session = self._session_factory()
        try:
            return db.query(AutoDripSchedule).filter(AutoDripSchedule.is_active == True).order_by(AutoDripSchedule.id).all()
        finally:
            db.close()

    async def check_and_trigger(self) -> int:
        """Start every zone with a slot due this minute; returns how many were started"""
        now = self._clock().astimezone(self.timezone)
        try:
            schedules = self._active_schedules()
        except Exception:
            logger.exception("Could not load auto drip schedules")
            return 0

        logger.debug(f"Checking {len(schedules)} auto drip schedule(s) at {now.strftime('%a %H:%M')}")

        triggered = 0
        for schedule in schedules:
            slot = due_slot(schedule, now)
            if slot is None:
                continue
            if await self._trigger(schedule.zone_id, slot):
                triggered += 1
        return triggered

    async def _trigger(self, zone_id: int, slot: Dict[str, Any]) -> bool:
        duration_minutes = slot.get("duration_minutes", 0)
        duration_seconds = slot.get("duration_seconds", 0)
        try:
            await self.zone_control.activate_zone(
                zone_id,
                duration_minutes,
                duration_seconds,
                source=AUTO_DRIP_SOURCE,
            )
            logger.info(f"Auto drip started zone {zone_id} for {duration_minutes}m {duration_seconds}s")
            return True
        except Exception as e:
            logger.error(f"Failed to trigger auto drip for zone {zone_id}: {str(e)}")
            return False
