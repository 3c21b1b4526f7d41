"""Shared fixtures: in-memory database, recording command channel, live timer registry."""

from datetime import datetime, timedelta, timezone

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from irrigation_api.database import get_db
from irrigation_api.main import create_app
from irrigation_api.models import Base, Device, Zone
from irrigation_api.routers.auto_drip import get_auto_drip
from irrigation_api.routers.zones import get_zone_control
from irrigation_api.services.auto_drip import AutoDripScheduler
from irrigation_api.services.device_directory import DeviceDirectory
from irrigation_api.services.timer_registry import ZoneTimerRegistry
from irrigation_api.services.zone_control import ZoneControlService
from irrigation_api.services.zone_store import ZoneStore


class FakeClock:
    """Wall clock the tests can move forward."""

    def __init__(self, now: datetime | None = None):
        self.now = now or datetime(2026, 5, 1, 6, 0, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


class RecordingChannel:
    """Command channel that remembers what was published."""

    def __init__(self):
        self.published = []
        self.fail = False

    async def publish(self, topic, payload):
        if self.fail:
            raise ConnectionError("broker unreachable")
        self.published.append((topic, payload))

    def commands(self, command):
        return [payload for _, payload in self.published if payload["command"] == command]

    def is_connected(self):
        return not self.fail


@pytest.fixture
def session_factory():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    yield factory
    engine.dispose()


@pytest.fixture
def make_device(session_factory):
    def _make(name="Valve 1", mqtt_topic="smartfarm/device1/command", is_active=True):
        db = session_factory()
        try:
            device = Device(name=name, type="VALVE", mqtt_topic=mqtt_topic, is_active=is_active)
            db.add(device)
            db.commit()
            db.refresh(device)
            return device
        finally:
            db.close()

    return _make


@pytest.fixture
def make_zone(session_factory):
    def _make(name="Zona A", device_id=None, duration_minutes=0, duration_seconds=5, **fields):
        db = session_factory()
        try:
            zone = Zone(
                name=name,
                device_id=device_id,
                duration_minutes=duration_minutes,
                duration_seconds=duration_seconds,
                user_id=fields.pop("user_id", "tester"),
                **fields,
            )
            db.add(zone)
            db.commit()
            db.refresh(zone)
            return zone
        finally:
            db.close()

    return _make


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def channel():
    return RecordingChannel()


@pytest.fixture
async def timers():
    registry = ZoneTimerRegistry()
    registry.start()
    yield registry
    registry.shutdown()


@pytest.fixture
def service(session_factory, channel, timers, clock):
    return ZoneControlService(
        zones=ZoneStore(session_factory),
        devices=DeviceDirectory(session_factory),
        channel=channel,
        timers=timers,
        clock=clock,
    )


@pytest.fixture
def auto_drip(session_factory, service, timers, clock):
    return AutoDripScheduler(session_factory, service, timers.scheduler, clock=clock)


@pytest.fixture
async def client(session_factory, service, auto_drip):
    """API client wired to the in-memory database and the test engine."""
    app = create_app()

    def _get_db():
        db = session_factory()
        try:
            yield db
        finally:
            db.close()

    app.dependency_overrides[get_db] = _get_db
    app.dependency_overrides[get_zone_control] = lambda: service
    app.dependency_overrides[get_auto_drip] = lambda: auto_drip
    app.state.zone_control = service
    app.state.auto_drip = auto_drip

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as client:
        yield client
