"""
Device lookup for command routing
"""
from sqlalchemy.orm import Session, sessionmaker
from typing import Optional

from irrigation_api.models.device import Device

class DeviceDirectory:
    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def find_by_id(self, device_id: int) -> Optional[Device]:
        db: Session = self._session_factory()
        try:
            return db.query(Device).filter(Device.id == device_id).first()
        finally:
            db.close()
