from sqlalchemy import Column, Integer, String, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from irrigation_api.database import Base

class Zone(Base):
    __tablename__ = "zones"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)  # "Zona A", "Orto"
    description = Column(Text)
    device_id = Column(Integer, ForeignKey("devices.id"), nullable=True, index=True)
    is_active = Column(Boolean, default=False, nullable=False, index=True)
    duration_minutes = Column(Integer, default=0, nullable=False)  # 0-60
    duration_seconds = Column(Integer, default=0, nullable=False)  # 0-59
    started_at = Column(DateTime(timezone=True))  # only while active
    remaining_seconds = Column(Integer, default=0, nullable=False)  # display snapshot
    run_total_seconds = Column(Integer)  # total of the current activation
    user_id = Column(String, nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    device = relationship("Device", back_populates="zones")
    schedules = relationship("AutoDripSchedule", back_populates="zone", cascade="all, delete-orphan")
