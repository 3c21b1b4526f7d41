from pydantic import BaseModel, Field
from typing import Optional, Dict, Any, Literal
from datetime import datetime

DeviceType = Literal["PUMP", "VALVE", "SENSOR", "CONTROLLER"]
DeviceStatus = Literal["ONLINE", "OFFLINE", "ERROR", "MAINTENANCE"]

class DeviceBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    type: DeviceType = "VALVE"
    mqtt_topic: str = Field(..., min_length=1, max_length=255)
    is_active: bool = True
    meta: Optional[Dict[str, Any]] = {}

class DeviceCreate(DeviceBase):
    pass

class DeviceUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    type: Optional[DeviceType] = None
    mqtt_topic: Optional[str] = Field(None, min_length=1, max_length=255)
    status: Optional[DeviceStatus] = None
    is_active: Optional[bool] = None
    meta: Optional[Dict[str, Any]] = None

class DeviceResponse(DeviceBase):
    id: int
    status: str
    last_seen: Optional[datetime] = None
    created_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True
