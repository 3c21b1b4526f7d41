"""
Database initialization script
Creates the schema and, on request, a demo valve with two zones
"""
import logging

from irrigation_api.database import SessionLocal, engine, settings
from irrigation_api.models import Base
from irrigation_api.models.zone import Zone
from irrigation_api.models.device import Device

logger = logging.getLogger(__name__)

def init_database(seed_demo_data: bool = settings.seed_demo_data, bind=engine, session_factory=SessionLocal):
    """Create tables and optionally seed demo records when the store is empty"""
    
    Base.metadata.create_all(bind=bind)
    
    if not seed_demo_data:
        return
    
    db = session_factory()
    try:
        existing_zones = db.query(Zone).count()
        if existing_zones > 0:
            logger.info("Database already initialized")
            return
        
        valve = Device(
            name="Valvola Orto",
            type="VALVE",
            mqtt_topic="smartfarm/device1/command",
            status="OFFLINE",
            is_active=True,
            meta={"location": "orto", "channels": 2}
        )
        db.add(valve)
        db.flush()  # Get the ID
        
        zones = [
            Zone(name="Zona A", description="Aiuole lato nord", device_id=valve.id,
                 duration_minutes=10, duration_seconds=0, user_id="system"),
            Zone(name="Zona B", description="Ortaggi", device_id=valve.id,
                 duration_minutes=5, duration_seconds=30, user_id="system"),
        ]
        for zone in zones:
            db.add(zone)
        
        db.commit()
        logger.info(f"Demo data created: device {valve.name}, zones {[z.name for z in zones]}")
        
    except Exception as e:
        db.rollback()
        logger.error(f"Error initializing database: {e}")
        raise
    finally:
        db.close()

if __name__ == "__main__":
    init_database(seed_demo_data=True)
