from .zone import (
    ZoneCreate,
    ZoneUpdate,
    ZoneResponse,
    ZoneControlRequest,
    ZoneStatus,
    ZoneStatusResponse,
    EmergencyStopResponse,
)
from .device import DeviceCreate, DeviceUpdate, DeviceResponse
from .auto_drip import (
    TimeSlot,
    AutoDripScheduleCreate,
    AutoDripScheduleUpdate,
    AutoDripScheduleResponse,
    AutoDripTriggerResponse,
)

__all__ = [
    "ZoneCreate",
    "ZoneUpdate",
    "ZoneResponse",
    "ZoneControlRequest",
    "ZoneStatus",
    "ZoneStatusResponse",
    "EmergencyStopResponse",
    "DeviceCreate",
    "DeviceUpdate",
    "DeviceResponse",
    "TimeSlot",
    "AutoDripScheduleCreate",
    "AutoDripScheduleUpdate",
    "AutoDripScheduleResponse",
    "AutoDripTriggerResponse",
]
