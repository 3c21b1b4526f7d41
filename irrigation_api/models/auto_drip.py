from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from irrigation_api.database import Base

class AutoDripSchedule(Base):
    __tablename__ = "auto_drip_schedules"
    
    id = Column(Integer, primary_key=True, index=True)
    zone_id = Column(Integer, ForeignKey("zones.id"), nullable=False, index=True)
    is_active = Column(Boolean, default=True, nullable=False, index=True)
    # [{"start_time": "07:00", "duration_minutes": 5, "duration_seconds": 0}, ...]
    time_slots = Column(JSON, default=list, nullable=False)
    active_days = Column(JSON, default=list, nullable=False)  # ["monday", "thursday"]
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    zone = relationship("Zone", back_populates="schedules")
