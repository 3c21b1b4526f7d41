from fastapi import APIRouter, HTTPException, Depends
from sqlalchemy.orm import Session
from typing import List
import logging

from irrigation_api.database import get_db
from irrigation_api.models.device import Device
from irrigation_api.schemas.device import DeviceResponse, DeviceCreate, DeviceUpdate

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/devices", tags=["devices"])

@router.get("/", response_model=List[DeviceResponse])
async def list_devices(db: Session = Depends(get_db)):
    """Get all devices"""
    devices = db.query(Device).order_by(Device.id).all()
    return devices

@router.get("/{device_id}", response_model=DeviceResponse)
async def get_device(device_id: int, db: Session = Depends(get_db)):
    """Get device by ID"""
    device = db.query(Device).filter(Device.id == device_id).first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")
    return device

@router.post("/", response_model=DeviceResponse, status_code=201)
async def create_device(device: DeviceCreate, db: Session = Depends(get_db)):
    """Register a pump/valve controller"""
    db_device = Device(**device.model_dump(), status="OFFLINE")
    db.add(db_device)
    db.commit()
    db.refresh(db_device)
    logger.info(f"Device {db_device.name} registered on topic {db_device.mqtt_topic}")
    return db_device

@router.put("/{device_id}", response_model=DeviceResponse)
async def update_device(device_id: int, update: DeviceUpdate, db: Session = Depends(get_db)):
    """Update device settings, e.g. activate/deactivate it or move its topic"""
    device = db.query(Device).filter(Device.id == device_id).first()
    if not device:
        raise HTTPException(status_code=404, detail="Device not found")

    for key, value in update.model_dump(exclude_unset=True).items():
        setattr(device, key, value)

    db.commit()
    db.refresh(device)
    return device
