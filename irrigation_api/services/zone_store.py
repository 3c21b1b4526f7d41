"""
Zone persistence used by the control engine
"""
from sqlalchemy.orm import Session, sessionmaker
from typing import Any, List, Optional
import logging

from irrigation_api.models.zone import Zone
from irrigation_api.services.exceptions import NotFoundError

logger = logging.getLogger(__name__)

class ZoneStore:
    """Short-lived sessions per call; returned zones are detached snapshots"""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    async def find_by_id(self, zone_id: int) -> Optional[Zone]:
        db: Session = self._session_factory()
        try:
            return db.query(Zone).filter(Zone.id == zone_id).first()
        finally:
            db.close()

    async def find_active_zones(self) -> List[Zone]:
        db: Session = self._session_factory()
        try:
            return db.query(Zone).filter(Zone.is_active == True).order_by(Zone.id).all()
        finally:
            db.close()

    async def update(self, zone_id: int, **fields: Any) -> Zone:
        """Apply a partial update to one row and return the merged record"""
        db: Session = self._session_factory()
        try:
            zone = db.query(Zone).filter(Zone.id == zone_id).with_for_update().first()
            if not zone:
                raise NotFoundError(f"Zone {zone_id} not found")
            for key, value in fields.items():
                setattr(zone, key, value)
            db.commit()
            db.refresh(zone)
            return zone
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()
