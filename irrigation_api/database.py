from datetime import datetime, timezone

from sqlalchemy import create_engine
from sqlalchemy.orm import declarative_base, sessionmaker
from pydantic_settings import BaseSettings
import os
from dotenv import load_dotenv

load_dotenv()

class Settings(BaseSettings):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./irrigation.db")

    # Empty host runs the MQTT provider in mock mode
    mqtt_broker_host: str = os.getenv("MQTT_BROKER_HOST", "")
    mqtt_broker_port: int = int(os.getenv("MQTT_BROKER_PORT", "1883"))
    mqtt_username: str = os.getenv("MQTT_USERNAME", "")
    mqtt_password: str = os.getenv("MQTT_PASSWORD", "")
    mqtt_client_id: str = os.getenv("MQTT_CLIENT_ID", "irrigation-api")
    mqtt_qos: int = int(os.getenv("MQTT_QOS", "1"))
    mqtt_publish_timeout: float = float(os.getenv("MQTT_PUBLISH_TIMEOUT", "5"))

    resume_timers_on_startup: bool = os.getenv("RESUME_TIMERS_ON_STARTUP", "true").lower() == "true"
    auto_drip_enabled: bool = os.getenv("AUTO_DRIP_ENABLED", "true").lower() == "true"
    # Time zone the schedule slots (HH:MM) and weekdays are read in
    auto_drip_timezone: str = os.getenv("AUTO_DRIP_TIMEZONE", "UTC")
    seed_demo_data: bool = os.getenv("SEED_DEMO_DATA", "false").lower() == "true"
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    debug: bool = os.getenv("DEBUG", "false").lower() == "true"

settings = Settings()

engine = create_engine(
    settings.database_url,
    connect_args={"check_same_thread": False} if "sqlite" in settings.database_url else {}
)

SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()

def get_utc_datetime() -> datetime:
    return datetime.now(timezone.utc)

def as_utc(value: datetime) -> datetime:
    """SQLite hands back naive datetimes; every stored timestamp is UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
