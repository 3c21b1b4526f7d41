"""Tests for the zone control engine."""

import asyncio
from datetime import timedelta

import pytest

from irrigation_api.database import get_utc_datetime
from irrigation_api.services.device_directory import DeviceDirectory
from irrigation_api.services.exceptions import InvalidArgumentError, NotFoundError
from irrigation_api.services.zone_control import REASON_TIMER_COMPLETED, ZoneControlService
from irrigation_api.services.zone_store import ZoneStore


@pytest.fixture
def valve(make_device):
    return make_device()


@pytest.mark.asyncio
async def test_activate_zone_starts_countdown(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id)

    status = await service.activate_zone(zone.id, 2, 30)

    assert status.is_active is True
    assert status.total_duration_seconds == 150
    assert status.remaining_seconds == 150
    assert status.elapsed_seconds == 0
    assert status.estimated_end_time == status.started_at + timedelta(seconds=150)
    assert timers.is_armed(zone.id)

    current = await service.get_zone_status(zone.id)
    assert current.is_active is True
    assert current.remaining_seconds <= 150

    stored = await service.zones.find_by_id(zone.id)
    assert stored.is_active is True
    assert stored.started_at is not None
    assert stored.remaining_seconds == 150


@pytest.mark.asyncio
async def test_activate_zone_publishes_start_command(service, channel, make_zone, valve):
    zone = make_zone(name="Orto", device_id=valve.id)

    await service.activate_zone(zone.id, 0, 45, source="AUTO_DRIP")

    assert len(channel.published) == 1
    topic, payload = channel.published[0]
    assert topic == "smartfarm/device1/command"
    assert payload["command"] == "START_WATERING"
    assert payload["zoneId"] == zone.id
    assert payload["zoneName"] == "Orto"
    assert payload["duration"] == 45
    assert "timestamp" in payload


@pytest.mark.asyncio
async def test_activate_zone_without_device_sends_nothing(service, channel, make_zone):
    zone = make_zone(device_id=None)

    status = await service.activate_zone(zone.id, 1, 0)

    assert status.is_active is True
    assert channel.published == []


@pytest.mark.asyncio
async def test_zero_duration_is_rejected_without_side_effects(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id, duration_minutes=3, duration_seconds=0)

    with pytest.raises(InvalidArgumentError):
        await service.activate_zone(zone.id, 0, 0)

    stored = await service.zones.find_by_id(zone.id)
    assert stored.is_active is False
    assert stored.duration_minutes == 3
    assert stored.updated_at is None
    assert channel.published == []
    assert not timers.is_armed(zone.id)


@pytest.mark.asyncio
async def test_zero_duration_leaves_running_zone_untouched(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    await service.activate_zone(zone.id, 1, 0)

    with pytest.raises(InvalidArgumentError):
        await service.activate_zone(zone.id, 0, 0)

    assert timers.is_armed(zone.id)
    assert (await service.get_zone_status(zone.id)).is_active is True
    assert len(channel.published) == 1


@pytest.mark.asyncio
async def test_activate_unknown_zone(service):
    with pytest.raises(NotFoundError):
        await service.activate_zone(999, 1, 0)


@pytest.mark.asyncio
async def test_reactivation_restarts_countdown(service, timers, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    await service.activate_zone(zone.id, 1, 0)

    clock.advance(20)
    status = await service.activate_zone(zone.id, 0, 40)

    assert status.total_duration_seconds == 40
    assert len(timers.scheduler.get_jobs()) == 1
    assert (await service.get_zone_status(zone.id)).remaining_seconds == 40


@pytest.mark.asyncio
async def test_double_activation_fires_single_stop(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id)

    await asyncio.gather(
        service.activate_zone(zone.id, 0, 1),
        service.activate_zone(zone.id, 0, 1),
    )
    assert len(timers.scheduler.get_jobs()) == 1

    await asyncio.sleep(1.8)

    assert len(channel.commands("STOP_WATERING")) == 1
    assert not timers.is_armed(zone.id)


class SlowFirstStartChannel:
    """The first START takes a while to reach the broker, later commands are quick."""

    def __init__(self):
        self.published = []
        self._starts = 0

    async def publish(self, topic, payload):
        if payload["command"] == "START_WATERING":
            self._starts += 1
            await asyncio.sleep(0.3 if self._starts == 1 else 0.01)
        self.published.append((topic, payload))

    def stops(self):
        return [payload for _, payload in self.published if payload["command"] == "STOP_WATERING"]


@pytest.mark.asyncio
async def test_overlapping_activation_with_slow_publish_still_expires(session_factory, timers, make_zone, valve):
    channel = SlowFirstStartChannel()
    service = ZoneControlService(
        zones=ZoneStore(session_factory),
        devices=DeviceDirectory(session_factory),
        channel=channel,
        timers=timers,
        clock=get_utc_datetime,
    )
    zone = make_zone(device_id=valve.id)

    first = asyncio.create_task(service.activate_zone(zone.id, 0, 1))
    await asyncio.sleep(0.05)
    await service.activate_zone(zone.id, 0, 1)
    await first

    assert timers.is_armed(zone.id)

    await asyncio.sleep(2)

    stored = await service.zones.find_by_id(zone.id)
    assert stored.is_active is False
    assert len(channel.stops()) == 1
    assert not timers.is_armed(zone.id)


@pytest.mark.asyncio
async def test_running_zone_without_timer_is_rearmed(service, channel, timers, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    first = await service.activate_zone(zone.id, 0, 30)
    clock.advance(5)
    await service.activate_zone(zone.id, 0, 30)
    timers.disarm(zone.id)

    clock.advance(10)
    await service._on_timer_expired(zone.id, first.started_at)

    assert timers.is_armed(zone.id)
    assert (await service.get_zone_status(zone.id)).remaining_seconds == 20
    assert channel.commands("STOP_WATERING") == []


@pytest.mark.asyncio
async def test_running_zone_without_timer_past_its_end_is_stopped(service, channel, timers, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    first = await service.activate_zone(zone.id, 0, 30)
    clock.advance(5)
    await service.activate_zone(zone.id, 0, 30)
    timers.disarm(zone.id)

    clock.advance(45)
    await service._on_timer_expired(zone.id, first.started_at)

    assert (await service.get_zone_status(zone.id)).is_active is False
    assert channel.commands("STOP_WATERING")[0]["reason"] == REASON_TIMER_COMPLETED


@pytest.mark.asyncio
async def test_timer_expiry_deactivates_zone(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id, duration_minutes=0, duration_seconds=1)

    await service.activate_zone(zone.id, 0, 1)
    await asyncio.sleep(1.8)

    status = await service.get_zone_status(zone.id)
    assert status.is_active is False
    assert status.remaining_seconds == 0

    stored = await service.zones.find_by_id(zone.id)
    assert stored.is_active is False
    assert stored.remaining_seconds == 0
    assert stored.started_at is None

    stops = channel.commands("STOP_WATERING")
    assert len(stops) == 1
    assert stops[0]["reason"] == REASON_TIMER_COMPLETED
    assert not timers.is_armed(zone.id)


@pytest.mark.asyncio
async def test_five_second_zone_scenario(service, channel, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id, duration_minutes=0, duration_seconds=5)

    started = await service.activate_zone(zone.id, 0, 5)
    assert started.total_duration_seconds == 5

    clock.advance(1)
    status = await service.get_zone_status(zone.id)
    assert status.remaining_seconds == 4
    assert status.elapsed_seconds == 1

    clock.advance(5)
    await service._on_timer_expired(zone.id, started.started_at)

    status = await service.get_zone_status(zone.id)
    assert status.is_active is False
    assert status.remaining_seconds == 0
    assert channel.commands("STOP_WATERING")[0]["reason"] == "Timer completed"


@pytest.mark.asyncio
async def test_stale_timer_callback_is_ignored(service, channel, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    first = await service.activate_zone(zone.id, 0, 30)

    clock.advance(10)
    await service.activate_zone(zone.id, 0, 30)

    await service._on_timer_expired(zone.id, first.started_at)

    assert (await service.get_zone_status(zone.id)).is_active is True
    assert channel.commands("STOP_WATERING") == []


@pytest.mark.asyncio
async def test_timer_callback_failure_is_contained(service, make_zone, valve, caplog):
    zone = make_zone(device_id=valve.id)
    started = await service.activate_zone(zone.id, 0, 30)

    async def broken(zone_id):
        raise RuntimeError("database is gone")

    service.zones.find_by_id = broken

    await service._on_timer_expired(zone.id, started.started_at)

    assert "Auto-deactivate error" in caplog.text


@pytest.mark.asyncio
async def test_publish_failure_does_not_roll_back(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    channel.fail = True

    status = await service.activate_zone(zone.id, 0, 30)

    assert status.is_active is True
    assert timers.is_armed(zone.id)
    assert (await service.zones.find_by_id(zone.id)).is_active is True

    stopped = await service.control_zone(zone.id, False, "tester")
    assert stopped.is_active is False
    assert (await service.zones.find_by_id(zone.id)).is_active is False


@pytest.mark.asyncio
async def test_control_zone_uses_zone_defaults(service, make_zone, valve):
    zone = make_zone(device_id=valve.id, duration_minutes=2, duration_seconds=30)

    status = await service.control_zone(zone.id, True, "tester")

    assert status.total_duration_seconds == 150


@pytest.mark.asyncio
async def test_control_zone_overrides_duration(service, make_zone, valve):
    zone = make_zone(device_id=valve.id, duration_minutes=2, duration_seconds=30)

    status = await service.control_zone(zone.id, True, "tester", duration_minutes=0, duration_seconds=10)

    assert status.total_duration_seconds == 10


@pytest.mark.asyncio
async def test_control_zone_stop_on_idle_zone(service, channel, make_zone, valve):
    zone = make_zone(device_id=valve.id)

    status = await service.control_zone(zone.id, False, "tester")

    assert status.is_active is False
    assert status.remaining_seconds == 0
    assert channel.commands("STOP_WATERING")[0]["reason"] == "manual"


@pytest.mark.asyncio
async def test_control_zone_manual_stop(service, channel, timers, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    await service.control_zone(zone.id, True, "tester")

    status = await service.control_zone(zone.id, False, "tester")

    assert status.is_active is False
    assert not timers.is_armed(zone.id)
    assert [p["command"] for _, p in channel.published] == ["START_WATERING", "STOP_WATERING"]


@pytest.mark.asyncio
async def test_control_zone_requires_device(service, make_zone):
    zone = make_zone(device_id=None)

    with pytest.raises(InvalidArgumentError):
        await service.control_zone(zone.id, True, "tester")


@pytest.mark.asyncio
async def test_control_zone_requires_active_device(service, make_zone, make_device):
    device = make_device(is_active=False)
    zone = make_zone(device_id=device.id)

    with pytest.raises(InvalidArgumentError):
        await service.control_zone(zone.id, True, "tester")


@pytest.mark.asyncio
async def test_control_zone_missing_device(service, make_zone):
    zone = make_zone(device_id=77)

    with pytest.raises(NotFoundError):
        await service.control_zone(zone.id, True, "tester")


@pytest.mark.asyncio
async def test_control_unknown_zone(service):
    with pytest.raises(NotFoundError):
        await service.control_zone(999, True, "tester")


@pytest.mark.asyncio
async def test_status_of_never_activated_zone(service, make_zone):
    zone = make_zone()

    status = await service.get_zone_status(zone.id)

    assert status.is_active is False
    assert status.remaining_seconds == 0
    assert status.elapsed_seconds == 0
    assert status.started_at is None
    assert status.estimated_end_time is None


@pytest.mark.asyncio
async def test_status_counts_down_and_clamps(service, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    await service.activate_zone(zone.id, 1, 0)

    clock.advance(12.7)
    status = await service.get_zone_status(zone.id)
    assert status.elapsed_seconds == 12
    assert status.remaining_seconds == 48

    clock.advance(600)
    status = await service.get_zone_status(zone.id)
    assert status.is_active is True
    assert status.remaining_seconds == 0


@pytest.mark.asyncio
async def test_status_keeps_activation_duration_after_edit(service, clock, make_zone, valve):
    zone = make_zone(device_id=valve.id)
    await service.activate_zone(zone.id, 1, 0)

    await service.zones.update(zone.id, duration_minutes=30, duration_seconds=0)
    clock.advance(10)

    status = await service.get_zone_status(zone.id)
    assert status.total_duration_seconds == 60
    assert status.remaining_seconds == 50


@pytest.mark.asyncio
async def test_get_active_zones(service, make_zone, valve):
    running = make_zone(name="Zona A", device_id=valve.id)
    make_zone(name="Zona B", device_id=valve.id)
    await service.activate_zone(running.id, 0, 30)

    statuses = await service.get_active_zones()

    assert [s.zone_id for s in statuses] == [running.id]
    assert statuses[0].remaining_seconds == 30


@pytest.mark.asyncio
async def test_emergency_stop_all(service, channel, timers, make_zone, valve):
    a = make_zone(name="Zona A", device_id=valve.id)
    b = make_zone(name="Zona B", device_id=valve.id)
    make_zone(name="Zona C", device_id=valve.id)
    await service.activate_zone(a.id, 1, 0)
    await service.activate_zone(b.id, 1, 0)

    result = await service.emergency_stop_all()

    assert result == {"stopped": 2, "zones": ["Zona A", "Zona B"]}
    assert await service.get_active_zones() == []
    assert not timers.is_armed(a.id)
    assert not timers.is_armed(b.id)
    assert len(channel.commands("STOP_WATERING")) == 2
    assert {p["reason"] for p in channel.commands("STOP_WATERING")} == {"manual"}


@pytest.mark.asyncio
async def test_emergency_stop_with_nothing_running(service, channel):
    result = await service.emergency_stop_all()

    assert result == {"stopped": 0, "zones": []}
    assert channel.published == []


@pytest.mark.asyncio
async def test_resume_active_zones_after_restart(service, channel, timers, clock, make_zone, valve):
    running = make_zone(
        name="Zona A",
        device_id=valve.id,
        is_active=True,
        started_at=clock.now - timedelta(seconds=10),
        run_total_seconds=60,
        remaining_seconds=60,
    )
    expired = make_zone(
        name="Zona B",
        device_id=valve.id,
        is_active=True,
        started_at=clock.now - timedelta(seconds=120),
        run_total_seconds=60,
        remaining_seconds=60,
    )

    resumed = await service.resume_active_zones()

    assert resumed == 1
    assert timers.is_armed(running.id)
    assert not timers.is_armed(expired.id)
    assert (await service.zones.find_by_id(running.id)).remaining_seconds == 50
    assert (await service.zones.find_by_id(expired.id)).is_active is False

    stops = channel.commands("STOP_WATERING")
    assert len(stops) == 1
    assert stops[0]["zoneName"] == "Zona B"
    assert stops[0]["reason"] == "Timer completed"
