from fastapi import APIRouter, Depends, Header, HTTPException, Request
from sqlalchemy.orm import Session
from irrigation_api.database import get_db
from irrigation_api.models.device import Device
from irrigation_api.models.zone import Zone
from irrigation_api.schemas.zone import (
    ZoneResponse,
    ZoneCreate,
    ZoneUpdate,
    ZoneControlRequest,
    ZoneStatus,
    ZoneStatusResponse,
    EmergencyStopResponse,
)
from irrigation_api.services.zone_control import ZoneControlService
from typing import List
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/zones", tags=["zones"])

def get_zone_control(request: Request) -> ZoneControlService:
    return request.app.state.zone_control

def get_user_id(x_user_id: str = Header("anonymous")) -> str:
    return x_user_id

def _format_duration(seconds: int) -> str:
    return f"{seconds // 60}m {seconds % 60}s"

def _with_message(status: ZoneStatus, message: str) -> ZoneStatusResponse:
    return ZoneStatusResponse(**status.model_dump(), message=message)

def _check_device(device_id, db: Session):
    if device_id is not None and not db.query(Device).filter(Device.id == device_id).first():
        raise HTTPException(status_code=404, detail=f"Device {device_id} not found")

@router.get("/", response_model=List[ZoneResponse])
async def get_zones(db: Session = Depends(get_db)):
    """Get all zones"""
    zones = db.query(Zone).order_by(Zone.id).all()
    return zones

@router.get("/my", response_model=List[ZoneResponse])
async def get_my_zones(user_id: str = Depends(get_user_id), db: Session = Depends(get_db)):
    """Get zones owned by the caller"""
    return db.query(Zone).filter(Zone.user_id == user_id).order_by(Zone.id).all()

@router.get("/active", response_model=List[ZoneStatusResponse])
async def get_active_zones(control: ZoneControlService = Depends(get_zone_control)):
    """Live countdown of every running zone"""
    statuses = await control.get_active_zones()
    return [
        _with_message(status, f"Zone is active with {status.remaining_seconds}s remaining")
        for status in statuses
    ]

@router.post("/control", response_model=ZoneStatusResponse)
async def control_zone(
    request: ZoneControlRequest,
    user_id: str = Depends(get_user_id),
    control: ZoneControlService = Depends(get_zone_control),
):
    """Start or stop watering a zone"""
    status = await control.control_zone(
        request.zone_id,
        request.is_active,
        user_id,
        request.duration_minutes,
        request.duration_seconds,
    )
    if status.is_active:
        message = f"Zone {status.name} activated for {_format_duration(status.total_duration_seconds)}"
    else:
        message = f"Zone {status.name} deactivated"
    return _with_message(status, message)

@router.post("/emergency-stop", response_model=EmergencyStopResponse)
async def emergency_stop(control: ZoneControlService = Depends(get_zone_control)):
    """Stop all active zones"""
    result = await control.emergency_stop_all()
    return EmergencyStopResponse(
        success=True,
        message=f"Emergency stop activated. {result['stopped']} zones stopped.",
        stopped=result["stopped"],
        zones=result["zones"],
    )

@router.get("/{zone_id}", response_model=ZoneResponse)
async def get_zone(zone_id: int, db: Session = Depends(get_db)):
    """Get zone by ID"""
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise HTTPException(status_code=404, detail="Zone not found")
    return zone

@router.get("/{zone_id}/status", response_model=ZoneStatusResponse)
async def get_zone_status(zone_id: int, control: ZoneControlService = Depends(get_zone_control)):
    """Get zone status with countdown"""
    status = await control.get_zone_status(zone_id)
    if status.is_active:
        message = f"Zone is active. Remaining: {_format_duration(status.remaining_seconds)}"
    else:
        message = "Zone is not active"
    return _with_message(status, message)

@router.post("/", response_model=ZoneResponse, status_code=201)
async def create_zone(
    zone: ZoneCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Create new zone"""
    _check_device(zone.device_id, db)
    db_zone = Zone(**zone.model_dump(), user_id=user_id, is_active=False, remaining_seconds=0)
    db.add(db_zone)
    db.commit()
    db.refresh(db_zone)
    logger.info(f"Zone {db_zone.name} created by {user_id}")
    return db_zone

@router.put("/{zone_id}", response_model=ZoneResponse)
async def update_zone(zone_id: int, update: ZoneUpdate, db: Session = Depends(get_db)):
    """Update zone configuration; a running countdown keeps its original duration"""
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise HTTPException(status_code=404, detail="Zone not found")

    changes = update.model_dump(exclude_unset=True)
    if "device_id" in changes:
        _check_device(changes["device_id"], db)
    for key, value in changes.items():
        setattr(zone, key, value)

    db.commit()
    db.refresh(zone)
    return zone

@router.delete("/{zone_id}")
async def delete_zone(
    zone_id: int,
    db: Session = Depends(get_db),
    control: ZoneControlService = Depends(get_zone_control),
):
    """Delete zone, stopping it first if it is running"""
    zone = db.query(Zone).filter(Zone.id == zone_id).first()
    if not zone:
        raise HTTPException(status_code=404, detail="Zone not found")

    if zone.is_active:
        await control.deactivate_zone(zone_id)

    name = zone.name
    db.delete(zone)
    db.commit()

    return {"message": f"Zone {name} deleted successfully"}
