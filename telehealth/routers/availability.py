from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import date, datetime, timedelta, time, timezone
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import WeeklyHourIn, WeeklyHourOut, AvailabilityEventIn, AvailabilityEventOut
from telehealth.services import availability as av
from telehealth.services.booking import DEFAULT_DURATION_MINUTES, provider_tz, utc_to_provider_local
from telehealth.logger import get_logger

router = APIRouter(prefix="/availability", tags=["availability"])
log = get_logger("availability")


def _parse_date(value: str, field: str) -> date:
	try:
		return datetime.strptime(value, "%Y-%m-%d").date()
	except (TypeError, ValueError):
		raise HTTPException(status_code=400, detail=f"Invalid {field}, expected YYYY-MM-DD")


def _check_range(start: time, end: time):
	if end <= start:
		raise HTTPException(status_code=400, detail="end_time must be after start_time")


def _owned_event(db: Session, doctor: models.Doctor, event_id: int) -> models.DoctorAvailabilityEvent:
	ev = db.query(models.DoctorAvailabilityEvent).filter(
		models.DoctorAvailabilityEvent.event_id == event_id,
		models.DoctorAvailabilityEvent.doctor_id == doctor.doctor_id,
	).first()
	if not ev:
		raise HTTPException(status_code=404, detail="Event not found")
	return ev

@router.get("/hours", response_model=List[WeeklyHourOut])
def get_weekly_hours(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return db.query(models.DoctorAvailability).filter(
		models.DoctorAvailability.doctor_id == doctor.doctor_id
	).order_by(models.DoctorAvailability.day_of_week, models.DoctorAvailability.start_time).all()

@router.put("/hours", response_model=List[WeeklyHourOut])
def replace_weekly_hours(payload: List[WeeklyHourIn], db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	for h in payload:
		_check_range(h.start_time, h.end_time)
	db.query(models.DoctorAvailability).filter(models.DoctorAvailability.doctor_id == doctor.doctor_id).delete()
	rows = [models.DoctorAvailability(doctor_id=doctor.doctor_id, **h.model_dump()) for h in payload]
	db.add_all(rows)
	db.commit()
	return get_weekly_hours(db, doctor)

@router.get("/events", response_model=List[AvailabilityEventOut])
def list_events(start: str, end: str, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	d_start = _parse_date(start, "start")
	d_end = _parse_date(end, "end")
	return db.query(models.DoctorAvailabilityEvent).filter(
		models.DoctorAvailabilityEvent.doctor_id == doctor.doctor_id,
		models.DoctorAvailabilityEvent.event_date >= d_start,
		models.DoctorAvailabilityEvent.event_date <= d_end,
	).order_by(models.DoctorAvailabilityEvent.event_date, models.DoctorAvailabilityEvent.start_time).all()

@router.post("/events/conflicts")
def check_conflicts(
	event_date: str = Body(...),
	start_time: time = Body(...),
	end_time: time = Body(...),
	exclude_event_id: int | None = Body(None),
	db: Session = Depends(get_db),
	doctor: models.Doctor = Depends(require_doctor),
):
	on = _parse_date(event_date, "event_date")
	return {"conflicts": av.find_conflicts(db, doctor.doctor_id, on, start_time, end_time, exclude_event_id)}

@router.post("/events", status_code=201)
def create_events(payload: AvailabilityEventIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_check_range(payload.start_time, payload.end_time)
	if payload.event_type not in av.EVENT_TYPES:
		raise HTTPException(status_code=400, detail=f"event_type must be one of: {', '.join(av.EVENT_TYPES)}")
	try:
		dates = av.expand_repeat(payload.event_date, payload.repeat)
	except ValueError as ve:
		raise HTTPException(status_code=400, detail=str(ve))
	title = payload.title or av.default_title(payload.event_type, payload.description)
	conflicts = []
	for d in dates:
		conflicts += [f"{d.isoformat()}: {c}" for c in av.find_conflicts(db, doctor.doctor_id, d, payload.start_time, payload.end_time)]
	rows = [
		models.DoctorAvailabilityEvent(
			doctor_id=doctor.doctor_id,
			event_date=d,
			start_time=payload.start_time,
			end_time=payload.end_time,
			title=title,
			event_type=payload.event_type,
			description=payload.description,
		)
		for d in dates
	]
	db.add_all(rows)
	db.commit()
	if conflicts:
		log.info("Doctor %s saved %d events with %d conflicts", doctor.doctor_id, len(rows), len(conflicts))
	return {
		"events": [AvailabilityEventOut.model_validate(r) for r in rows],
		"conflicts": conflicts,
	}

@router.patch("/events/{event_id}", response_model=AvailabilityEventOut)
def update_event(event_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	ev = _owned_event(db, doctor, event_id)
	merged = AvailabilityEventOut.model_validate(ev).model_dump()
	merged.update({k: v for k, v in payload.items() if k in ("event_date", "start_time", "end_time", "event_type", "title", "description")})
	data = AvailabilityEventIn.model_validate(merged)
	_check_range(data.start_time, data.end_time)
	if data.event_type not in av.EVENT_TYPES:
		raise HTTPException(status_code=400, detail=f"event_type must be one of: {', '.join(av.EVENT_TYPES)}")
	ev.event_date = data.event_date
	ev.start_time = data.start_time
	ev.end_time = data.end_time
	if data.event_type != ev.event_type and "title" not in payload:
		ev.title = av.default_title(data.event_type, data.description)
	else:
		ev.title = data.title or ev.title
	ev.event_type = data.event_type
	ev.description = data.description
	db.commit()
	db.refresh(ev)
	return ev

@router.delete("/events/{event_id}")
def delete_event(event_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	ev = _owned_event(db, doctor, event_id)
	db.delete(ev)
	db.commit()
	return {"deleted": event_id}

@router.get("/day/{day}")
def day_view(day: str, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	on = _parse_date(day, "day")
	tz = provider_tz(doctor.timezone)
	# local midnight bounds -> UTC for the appointment query
	local_start = datetime.combine(on, time.min, tzinfo=tz)
	utc_start = local_start.astimezone(timezone.utc).replace(tzinfo=None)
	utc_end = utc_start + timedelta(days=1)
	appts = av.active_appointments_for_day(db, doctor.doctor_id, utc_start, utc_end)
	spans = []
	for a in appts:
		a_start = utc_to_provider_local(a.requested_date_time, doctor.timezone)
		spans.append((a_start, a_start + timedelta(minutes=a.duration_minutes or DEFAULT_DURATION_MINUTES), a.appointment_id))
	return {"date": on.isoformat(), "slots": av.day_grid(db, doctor.doctor_id, on, spans)}
