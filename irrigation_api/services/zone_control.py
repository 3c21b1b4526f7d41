"""
Zone watering control: activation, countdown tracking and auto-expiry
"""
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Protocol
import logging
import math

from irrigation_api.database import SessionLocal, settings, get_utc_datetime, as_utc
from irrigation_api.models.zone import Zone
from irrigation_api.providers.mqtt_provider import MqttProvider
from irrigation_api.schemas.zone import ZoneStatus
from irrigation_api.services.device_directory import DeviceDirectory
from irrigation_api.services.exceptions import NotFoundError, InvalidArgumentError
from irrigation_api.services.timer_registry import ZoneTimerRegistry
from irrigation_api.services.zone_store import ZoneStore

logger = logging.getLogger(__name__)

START_COMMAND = "START_WATERING"
STOP_COMMAND = "STOP_WATERING"

REASON_MANUAL = "manual"
REASON_TIMER_COMPLETED = "Timer completed"

class CommandChannel(Protocol):
    async def publish(self, topic: str, payload: Dict[str, Any]) -> None: ...

def total_seconds_of(zone: Zone) -> int:
    """Duration of the current run, falling back to the configured one"""
    if zone.run_total_seconds:
        return zone.run_total_seconds
    return (zone.duration_minutes or 0) * 60 + (zone.duration_seconds or 0)

def inactive_status(zone: Zone) -> ZoneStatus:
    return ZoneStatus(zone_id=zone.id, name=zone.name, is_active=False)

class ZoneControlService:
    """
    Idle/Running state machine for irrigation zones.

    Persisted zone state is committed before any command is published, and
    a failed publish never undoes it: the zone counts as started (or stopped)
    even if the valve never heard about it.
    """

    def __init__(
        self,
        zones: ZoneStore,
        devices: DeviceDirectory,
        channel: CommandChannel,
        timers: ZoneTimerRegistry,
        clock: Callable[[], datetime] = get_utc_datetime,
    ):
        self.zones = zones
        self.devices = devices
        self.channel = channel
        self.timers = timers
        self._clock = clock

    async def _load_zone(self, zone_id: int) -> Zone:
        zone = await self.zones.find_by_id(zone_id)
        if not zone:
            raise NotFoundError(f"Zone {zone_id} not found")
        return zone

    async def control_zone(
        self,
        zone_id: int,
        is_active: bool,
        user_id: str,
        duration_minutes: Optional[int] = None,
        duration_seconds: Optional[int] = None,
    ) -> ZoneStatus:
        """Start or stop a zone on behalf of a user; the zone's device must be assigned and active"""
        zone = await self._load_zone(zone_id)

        if not zone.device_id:
            raise InvalidArgumentError(f'Zone "{zone.name}" does not have a device assigned')

        device = await self.devices.find_by_id(zone.device_id)
        if not device:
            raise NotFoundError(f"Device {zone.device_id} not found")
        if not device.is_active:
            raise InvalidArgumentError(f"Device {device.name} is not active. Please activate device first.")

        logger.info(f"User {user_id} requested zone {zone.name} -> {'on' if is_active else 'off'}")

        if is_active:
            return await self.activate_zone(
                zone.id,
                zone.duration_minutes if duration_minutes is None else duration_minutes,
                zone.duration_seconds if duration_seconds is None else duration_seconds,
                source="MANUAL",
            )
        return await self.deactivate_zone(zone.id)

    async def activate_zone(
        self,
        zone_id: int,
        duration_minutes: int,
        duration_seconds: int,
        source: str = "MANUAL",
    ) -> ZoneStatus:
        """
        Start watering a zone for the given duration.

        Activating a running zone restarts its countdown. ``source`` is only
        used to attribute the run in the logs (e.g. MANUAL, AUTO_DRIP).
        """
        zone = await self._load_zone(zone_id)

        if duration_minutes < 0 or duration_seconds < 0:
            raise InvalidArgumentError("Duration cannot be negative")
        total_seconds = duration_minutes * 60 + duration_seconds
        if total_seconds == 0:
            raise InvalidArgumentError("Duration must be greater than 0")

        if self.timers.disarm(zone.id):
            logger.info(f"Zone {zone.name} already running, restarting countdown")

        started_at = self._clock()
        estimated_end_time = started_at + timedelta(seconds=total_seconds)

        zone = await self.zones.update(
            zone.id,
            is_active=True,
            duration_minutes=duration_minutes,
            duration_seconds=duration_seconds,
            started_at=started_at,
            remaining_seconds=total_seconds,
            run_total_seconds=total_seconds,
        )
        # The row and its timer belong to the same run: no await between them
        self.timers.arm(zone.id, total_seconds, self._on_timer_expired, zone.id, started_at)

        await self._publish(zone, {
            "command": START_COMMAND,
            "zoneId": zone.id,
            "zoneName": zone.name,
            "duration": total_seconds,
            "timestamp": self._clock().isoformat(),
        })

        logger.info(
            f"Zone {zone.name} activated for {duration_minutes}m {duration_seconds}s (source: {source})"
        )

        return ZoneStatus(
            zone_id=zone.id,
            name=zone.name,
            is_active=True,
            total_duration_seconds=total_seconds,
            remaining_seconds=total_seconds,
            elapsed_seconds=0,
            started_at=started_at,
            estimated_end_time=estimated_end_time,
        )

    async def deactivate_zone(self, zone_id: int) -> ZoneStatus:
        """Manual stop; stopping an idle zone is allowed and still sends STOP"""
        zone = await self._load_zone(zone_id)
        await self._deactivate(zone, REASON_MANUAL)
        logger.info(f"Zone {zone.name} deactivated manually")
        return inactive_status(zone)

    async def _deactivate(self, zone: Zone, reason: str) -> Zone:
        self.timers.disarm(zone.id)

        zone = await self.zones.update(
            zone.id,
            is_active=False,
            remaining_seconds=0,
            started_at=None,
            run_total_seconds=None,
        )

        await self._publish(zone, {
            "command": STOP_COMMAND,
            "zoneId": zone.id,
            "zoneName": zone.name,
            "reason": reason,
            "timestamp": self._clock().isoformat(),
        })
        return zone

    async def _on_timer_expired(self, zone_id: int, started_at: datetime) -> None:
        """Scheduler callback; nobody awaits it, so failures end here"""
        try:
            zone = await self.zones.find_by_id(zone_id)
            if not zone:
                logger.warning(f"Timer fired for unknown zone {zone_id}")
                return

            if not zone.is_active or zone.started_at is None:
                logger.info(f"Timer for zone {zone.name} fired after the zone stopped, ignoring")
                return

            if as_utc(zone.started_at) != as_utc(started_at):
                if self.timers.is_armed(zone.id):
                    logger.info(f"Timer for zone {zone.name} belongs to a finished run, ignoring")
                    return
                # The stored run lost its timer; keep it bounded
                status = self._status_of(zone)
                if status.remaining_seconds > 0:
                    self.timers.arm(zone.id, status.remaining_seconds, self._on_timer_expired, zone.id, status.started_at)
                    logger.warning(f"Zone {zone.name} re-armed for its current run ({status.remaining_seconds}s left)")
                    return

            await self._deactivate(zone, REASON_TIMER_COMPLETED)
            logger.info(f"Zone {zone.name} auto-deactivated (timer completed)")
        except Exception:
            logger.exception(f"Auto-deactivate error for zone {zone_id}")

    def _status_of(self, zone: Zone) -> ZoneStatus:
        if not zone.is_active or zone.started_at is None:
            return inactive_status(zone)

        started_at = as_utc(zone.started_at)
        total_seconds = total_seconds_of(zone)
        elapsed = (self._clock() - started_at).total_seconds()
        elapsed_seconds = max(0, math.floor(elapsed))
        remaining_seconds = max(0, total_seconds - elapsed_seconds)

        return ZoneStatus(
            zone_id=zone.id,
            name=zone.name,
            is_active=True,
            total_duration_seconds=total_seconds,
            remaining_seconds=remaining_seconds,
            elapsed_seconds=elapsed_seconds,
            started_at=started_at,
            estimated_end_time=started_at + timedelta(seconds=total_seconds),
        )

    async def get_zone_status(self, zone_id: int) -> ZoneStatus:
        """Countdown for a zone, recomputed from the wall clock on every call"""
        zone = await self._load_zone(zone_id)
        return self._status_of(zone)

    async def get_active_zones(self) -> List[ZoneStatus]:
        active_zones = await self.zones.find_active_zones()
        return [self._status_of(zone) for zone in active_zones]

    async def emergency_stop_all(self) -> Dict[str, Any]:
        """Stop every active zone in turn; the first failure aborts the sweep"""
        active_zones = await self.zones.find_active_zones()
        stopped_zones: List[str] = []

        for zone in active_zones:
            await self._deactivate(zone, REASON_MANUAL)
            stopped_zones.append(zone.name)

        logger.warning(f"Emergency stop: {len(stopped_zones)} zone(s) stopped {stopped_zones}")

        return {
            "stopped": len(stopped_zones),
            "zones": stopped_zones,
        }

    async def resume_active_zones(self) -> int:
        """
        Re-arm timers for zones left running by a previous process.

        Zones whose run already ran out while we were down are stopped
        right away. Returns the number of timers re-armed.
        """
        resumed = 0
        for zone in await self.zones.find_active_zones():
            try:
                status = self._status_of(zone)
                if not status.is_active or status.remaining_seconds <= 0:
                    await self._deactivate(zone, REASON_TIMER_COMPLETED)
                    logger.info(f"Zone {zone.name} expired while offline, stopped")
                else:
                    self.timers.arm(zone.id, status.remaining_seconds, self._on_timer_expired, zone.id, status.started_at)
                    await self.zones.update(zone.id, remaining_seconds=status.remaining_seconds)
                    resumed += 1
                    logger.info(f"Zone {zone.name} timer resumed with {status.remaining_seconds}s left")
            except Exception:
                logger.exception(f"Could not resume zone {zone.id}")
        return resumed

    async def _publish(self, zone: Zone, payload: Dict[str, Any]) -> None:
        """Best-effort command to the zone's device; failures are logged only"""
        if not zone.device_id:
            return

        device = await self.devices.find_by_id(zone.device_id)
        if not device or not device.mqtt_topic:
            logger.warning(f"Zone {zone.name}: no command topic for device {zone.device_id}, {payload['command']} not sent")
            return

        try:
            await self.channel.publish(device.mqtt_topic, payload)
        except Exception as e:
            logger.error(f"Failed to publish {payload['command']} for zone {zone.name} to {device.mqtt_topic}: {str(e)}")

def build_zone_control(session_factory=SessionLocal) -> ZoneControlService:
    """Wire the engine to the database, the MQTT broker and a fresh timer registry"""
    channel = MqttProvider(
        settings.mqtt_broker_host,
        port=settings.mqtt_broker_port,
        username=settings.mqtt_username or None,
        password=settings.mqtt_password or None,
        client_id=settings.mqtt_client_id,
        qos=settings.mqtt_qos,
        publish_timeout=settings.mqtt_publish_timeout,
    )
    return ZoneControlService(
        zones=ZoneStore(session_factory),
        devices=DeviceDirectory(session_factory),
        channel=channel,
        timers=ZoneTimerRegistry(),
    )
