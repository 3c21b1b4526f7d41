from fastapi import APIRouter, Request

router = APIRouter(tags=["health"])

@router.get("/healthz")
async def health_check():
    """Health check endpoint"""
    return {"status": "ok", "service": "irrigation-api"}

@router.get("/api/v1/health")
async def api_health_check(request: Request):
    """API health check endpoint"""
    control = getattr(request.app.state, "zone_control", None)
    channel = getattr(control, "channel", None)
    is_connected = getattr(channel, "is_connected", None)
    return {
        "status": "ok",
        "api_version": "v1",
        "mqtt_connected": bool(is_connected()) if callable(is_connected) else False,
    }
