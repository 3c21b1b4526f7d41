from .zones import router as zones_router
from .devices import router as devices_router
from .health import router as health_router
from .auto_drip import router as auto_drip_router

__all__ = [
    "zones_router",
    "devices_router",
    "health_router",
    "auto_drip_router"
]
