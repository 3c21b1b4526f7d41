from sqlalchemy import Column, Integer, String, Boolean, JSON, DateTime
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from irrigation_api.database import Base

class Device(Base):
    __tablename__ = "devices"
    
    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(255), nullable=False)  # "Pompa Zona 1"
    type = Column(String(20), nullable=False, default="VALVE")  # PUMP, VALVE, SENSOR, CONTROLLER
    mqtt_topic = Column(String(255), nullable=False)  # "smartfarm/device1/command"
    status = Column(String(20), nullable=False, default="OFFLINE")  # ONLINE, OFFLINE, ERROR, MAINTENANCE
    is_active = Column(Boolean, default=True, nullable=False)
    last_seen = Column(DateTime(timezone=True))
    meta = Column(JSON, default=dict)  # location, specs, ...
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())
    
    zones = relationship("Zone", back_populates="device")
