from fastapi import APIRouter, Depends, HTTPException, Request
from sqlalchemy.orm import Session
from typing import List, Optional
import logging

from irrigation_api.database import get_db
from irrigation_api.models.auto_drip import AutoDripSchedule
from irrigation_api.models.zone import Zone
from irrigation_api.routers.zones import get_user_id
from irrigation_api.schemas.auto_drip import (
    AutoDripScheduleCreate,
    AutoDripScheduleUpdate,
    AutoDripScheduleResponse,
    AutoDripTriggerResponse,
)
from irrigation_api.services.auto_drip import AutoDripScheduler

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/auto-drip", tags=["auto-drip"])

def get_auto_drip(request: Request) -> AutoDripScheduler:
    return request.app.state.auto_drip

def _check_zone(zone_id: int, db: Session):
    if not db.query(Zone).filter(Zone.id == zone_id).first():
        raise HTTPException(status_code=404, detail=f"Zone {zone_id} not found")

def _get_schedule(schedule_id: int, db: Session) -> AutoDripSchedule:
    schedule = db.query(AutoDripSchedule).filter(AutoDripSchedule.id == schedule_id).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="Schedule not found")
    return schedule

@router.get("/", response_model=List[AutoDripScheduleResponse])
async def list_schedules(zone_id: Optional[int] = None, db: Session = Depends(get_db)):
    """Get all schedules, optionally for one zone"""
    query = db.query(AutoDripSchedule)
    if zone_id is not None:
        query = query.filter(AutoDripSchedule.zone_id == zone_id)
    return query.order_by(AutoDripSchedule.id).all()

@router.get("/active", response_model=List[AutoDripScheduleResponse])
async def list_active_schedules(db: Session = Depends(get_db)):
    return db.query(AutoDripSchedule).filter(AutoDripSchedule.is_active == True).order_by(AutoDripSchedule.id).all()

@router.get("/zone/{zone_id}", response_model=AutoDripScheduleResponse)
async def get_zone_schedule(zone_id: int, db: Session = Depends(get_db)):
    schedule = db.query(AutoDripSchedule).filter(AutoDripSchedule.zone_id == zone_id).order_by(AutoDripSchedule.id).first()
    if not schedule:
        raise HTTPException(status_code=404, detail="No schedule for this zone")
    return schedule

@router.post("/trigger", response_model=AutoDripTriggerResponse)
async def trigger_now(auto_drip: AutoDripScheduler = Depends(get_auto_drip)):
    """Run the minute check right away"""
    triggered = await auto_drip.check_and_trigger()
    return AutoDripTriggerResponse(triggered=triggered)

@router.get("/{schedule_id}", response_model=AutoDripScheduleResponse)
async def get_schedule(schedule_id: int, db: Session = Depends(get_db)):
    return _get_schedule(schedule_id, db)

@router.post("/", response_model=AutoDripScheduleResponse, status_code=201)
async def create_schedule(
    schedule: AutoDripScheduleCreate,
    user_id: str = Depends(get_user_id),
    db: Session = Depends(get_db),
):
    """Create a watering schedule for a zone"""
    _check_zone(schedule.zone_id, db)
    db_schedule = AutoDripSchedule(**schedule.model_dump(), user_id=user_id)
    db.add(db_schedule)
    db.commit()
    db.refresh(db_schedule)
    logger.info(f"Auto drip schedule {db_schedule.id} created for zone {db_schedule.zone_id} by {user_id}")
    return db_schedule

@router.put("/{schedule_id}", response_model=AutoDripScheduleResponse)
async def update_schedule(schedule_id: int, update: AutoDripScheduleUpdate, db: Session = Depends(get_db)):
    schedule = _get_schedule(schedule_id, db)

    changes = update.model_dump(exclude_unset=True, exclude_none=True)
    if "zone_id" in changes:
        _check_zone(changes["zone_id"], db)
    for key, value in changes.items():
        setattr(schedule, key, value)

    db.commit()
    db.refresh(schedule)
    return schedule

@router.patch("/{schedule_id}/toggle", response_model=AutoDripScheduleResponse)
async def toggle_schedule(schedule_id: int, db: Session = Depends(get_db)):
    """Flip a schedule between active and paused"""
    schedule = _get_schedule(schedule_id, db)
    schedule.is_active = not schedule.is_active
    db.commit()
    db.refresh(schedule)
    logger.info(f"Auto drip schedule {schedule.id} {'activated' if schedule.is_active else 'deactivated'}")
    return schedule

@router.delete("/{schedule_id}")
async def delete_schedule(schedule_id: int, db: Session = Depends(get_db)):
    schedule = _get_schedule(schedule_id, db)
    db.delete(schedule)
    db.commit()
    return {"message": "Auto drip schedule deleted successfully"}
