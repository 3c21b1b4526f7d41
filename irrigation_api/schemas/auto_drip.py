from pydantic import BaseModel, Field, field_validator, model_validator
from typing import Optional, List, Literal
from datetime import datetime

DayOfWeek = Literal["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]

class TimeSlot(BaseModel):
    start_time: str = Field(..., description="HH:MM, 24-hour")
    duration_minutes: int = Field(0, ge=0, le=60)
    duration_seconds: int = Field(0, ge=0, le=59)

    @field_validator("start_time")
    @classmethod
    def validate_start_time(cls, value: str) -> str:
        try:
            hour_str, minute_str = value.split(":", maxsplit=1)
            hour = int(hour_str)
            minute = int(minute_str)
        except ValueError as exc:
            raise ValueError("start_time must be HH:MM") from exc
        if not (0 <= hour < 24 and 0 <= minute < 60):
            raise ValueError("start_time must be between 00:00 and 23:59")
        return f"{hour:02d}:{minute:02d}"

    @model_validator(mode="after")
    def ensure_duration_present(self) -> "TimeSlot":
        if self.duration_minutes * 60 + self.duration_seconds == 0:
            raise ValueError("Time slot duration must be greater than 0")
        return self

class AutoDripScheduleBase(BaseModel):
    zone_id: int
    is_active: bool = True
    time_slots: List[TimeSlot] = Field(default_factory=list)
    active_days: List[DayOfWeek] = Field(default_factory=list)

class AutoDripScheduleCreate(AutoDripScheduleBase):
    pass

class AutoDripScheduleUpdate(BaseModel):
    zone_id: Optional[int] = None
    is_active: Optional[bool] = None
    time_slots: Optional[List[TimeSlot]] = None
    active_days: Optional[List[DayOfWeek]] = None

class AutoDripScheduleResponse(AutoDripScheduleBase):
    id: int
    user_id: str
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    
    class Config:
        from_attributes = True

class AutoDripTriggerResponse(BaseModel):
    triggered: int
