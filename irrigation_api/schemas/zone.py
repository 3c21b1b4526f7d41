from pydantic import BaseModel, Field
from typing import Optional, List
from datetime import datetime

class ZoneBase(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    device_id: Optional[int] = None
    duration_minutes: int = Field(0, ge=0, le=60)
    duration_seconds: int = Field(0, ge=0, le=59)

class ZoneCreate(ZoneBase):
    pass

class ZoneUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    device_id: Optional[int] = None
    duration_minutes: Optional[int] = Field(None, ge=0, le=60)
    duration_seconds: Optional[int] = Field(None, ge=0, le=59)

class ZoneResponse(ZoneBase):
    id: int
    is_active: bool
    started_at: Optional[datetime] = None
    remaining_seconds: int = 0
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class ZoneControlRequest(BaseModel):
    zone_id: int
    is_active: bool
    duration_minutes: Optional[int] = Field(None, ge=0, le=60)
    duration_seconds: Optional[int] = Field(None, ge=0, le=59)

class ZoneStatus(BaseModel):
    zone_id: int
    name: str
    is_active: bool
    total_duration_seconds: int = 0
    remaining_seconds: int = 0
    elapsed_seconds: int = 0
    started_at: Optional[datetime] = None
    estimated_end_time: Optional[datetime] = None

class ZoneStatusResponse(ZoneStatus):
    message: str

class EmergencyStopResponse(BaseModel):
    success: bool
    message: str
    stopped: int
    zones: List[str] = []
