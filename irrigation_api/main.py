from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from irrigation_api.database import SessionLocal, settings
from irrigation_api.init_db import init_database
from irrigation_api.logging_config import setup_logging
from irrigation_api.services.auto_drip import AutoDripScheduler
from irrigation_api.services.exceptions import NotFoundError, InvalidArgumentError
from irrigation_api.services.zone_control import build_zone_control

# Routers
from irrigation_api.routers import zones_router, devices_router, health_router, auto_drip_router


def create_app() -> FastAPI:
    app = FastAPI(
        title="Irrigation Control API",
        description="API for controlling irrigation zones, pumps and valves over MQTT",
        version="1.0.0",
    )

    # Browser dashboards served from a local dev server
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
        allow_credentials=False,
        allow_methods=["*"],
        allow_headers=["*"],
        expose_headers=["*"],
    )

    @app.exception_handler(NotFoundError)
    async def not_found_handler(request: Request, exc: NotFoundError):
        return JSONResponse(status_code=404, content={"detail": str(exc)})

    @app.exception_handler(InvalidArgumentError)
    async def invalid_argument_handler(request: Request, exc: InvalidArgumentError):
        return JSONResponse(status_code=400, content={"detail": str(exc)})

    # Mount router
    app.include_router(health_router)            # /healthz, /api/v1/health
    app.include_router(zones_router)             # /api/v1/zones/...
    app.include_router(devices_router)           # /api/v1/devices/...
    app.include_router(auto_drip_router)         # /api/v1/auto-drip/...

    # Startup: schema, MQTT connection, zone timers and the schedule check
    @app.on_event("startup")
    async def _startup():
        setup_logging()
        init_database()
        control = build_zone_control()
        control.channel.connect()
        control.timers.start()
        app.state.zone_control = control
        auto_drip = AutoDripScheduler(
            SessionLocal,
            control,
            control.timers.scheduler,
            timezone=settings.auto_drip_timezone,
        )
        if settings.auto_drip_enabled:
            auto_drip.start()
        app.state.auto_drip = auto_drip
        if settings.resume_timers_on_startup:
            await control.resume_active_zones()

    @app.on_event("shutdown")
    async def _shutdown():
        control = getattr(app.state, "zone_control", None)
        auto_drip = getattr(app.state, "auto_drip", None)
        if auto_drip is not None:
            auto_drip.stop()
        if control is not None:
            control.timers.shutdown()
            control.channel.disconnect()

    return app


app = create_app()
