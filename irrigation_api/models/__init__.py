from irrigation_api.database import Base
from .zone import Zone
from .device import Device
from .auto_drip import AutoDripSchedule

__all__ = [
    "Base",
    "Zone",
    "Device",
    "AutoDripSchedule",
]
