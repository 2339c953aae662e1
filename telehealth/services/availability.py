import calendar
from datetime import date, datetime, time, timedelta
from sqlalchemy.orm import Session
from telehealth import models
from telehealth.services.booking import BLOCKING_EXCLUDED_STATUSES

EVENT_TYPES = ("available", "blocked", "personal")
REPEAT_STEPS = {"daily": 1, "weekly": 7, "monthly": 30}
SLOT_MINUTES = 30
GRID_START = time(5, 0)
GRID_LAST_SLOT = time(23, 0)


def default_title(event_type: str, note: str | None = None) -> str:
	if event_type == "available":
		return "Available"
	if event_type == "blocked":
		return "Blocked"
	return note or "Personal"


def add_one_month(d: date) -> date:
	year = d.year + (1 if d.month == 12 else 0)
	month = 1 if d.month == 12 else d.month + 1
	day = min(d.day, calendar.monthrange(year, month)[1])
	return date(year, month, day)


def expand_repeat(start: date, repeat: str | None) -> list[date]:
	"""Occurrence dates for a repeating event, through one month after the start."""
	if not repeat or repeat == "none":
		return [start]
	if repeat not in REPEAT_STEPS:
		raise ValueError(f"Unsupported repeat: {repeat}")
	step = timedelta(days=REPEAT_STEPS[repeat])
	last = add_one_month(start)
	out = []
	d = start
	while d <= last:
		out.append(d)
		d += step
	return out


def overlaps(start: time, end: time, other_start: time, other_end: time) -> bool:
	return start < other_end and end > other_start


def fmt_time(t: time) -> str:
	return t.strftime("%H:%M")


def find_conflicts(db: Session, doctor_id: int, on: date, start: time, end: time, exclude_event_id: int | None = None) -> list[str]:
	q = db.query(models.DoctorAvailabilityEvent).filter(
		models.DoctorAvailabilityEvent.doctor_id == doctor_id,
		models.DoctorAvailabilityEvent.event_date == on,
	)
	if exclude_event_id:
		q = q.filter(models.DoctorAvailabilityEvent.event_id != exclude_event_id)
	conflicts = []
	for ev in q.order_by(models.DoctorAvailabilityEvent.start_time).all():
		if overlaps(start, end, ev.start_time, ev.end_time):
			conflicts.append(f"{ev.title} ({fmt_time(ev.start_time)} - {fmt_time(ev.end_time)})")
	return conflicts


def slot_starts() -> list[time]:
	slots = []
	cur = datetime.combine(date.min, GRID_START)
	last = datetime.combine(date.min, GRID_LAST_SLOT)
	while cur <= last:
		slots.append(cur.time())
		cur += timedelta(minutes=SLOT_MINUTES)
	return slots


def _slot_end(t: time) -> time:
	return (datetime.combine(date.min, t) + timedelta(minutes=SLOT_MINUTES)).time()


def day_grid(db: Session, doctor_id: int, on: date, appointments_local: list[tuple[datetime, datetime, int]]) -> list[dict]:
	"""30-minute slots for one day.

	appointments_local holds (start, end, appointment_id) already converted to the
	provider's local time, so the grid lines up with the weekly hours.
	"""
	events = db.query(models.DoctorAvailabilityEvent).filter(
		models.DoctorAvailabilityEvent.doctor_id == doctor_id,
		models.DoctorAvailabilityEvent.event_date == on,
	).all()
	# python weekday() is Monday=0; stored hours use Sunday=0
	dow = (on.weekday() + 1) % 7
	hours = db.query(models.DoctorAvailability).filter(
		models.DoctorAvailability.doctor_id == doctor_id,
		models.DoctorAvailability.day_of_week == dow,
		models.DoctorAvailability.is_available == True,
	).all()
	day_start = datetime.combine(on, time.min)
	day_end = day_start + timedelta(days=1)
	# visits can run over midnight
	clipped = [(max(s, day_start), min(e, day_end), appt_id) for (s, e, appt_id) in appointments_local]
	grid = []
	for st in slot_starts():
		et = _slot_end(st)
		slot_start = datetime.combine(on, st)
		slot_end = slot_start + timedelta(minutes=SLOT_MINUTES)
		slot_events = [
			{"event_id": ev.event_id, "title": ev.title, "event_type": ev.event_type}
			for ev in events if overlaps(st, et, ev.start_time, ev.end_time)
		]
		in_hours = any(h.start_time <= st and et <= h.end_time for h in hours)
		booked = [appt_id for (s, e, appt_id) in clipped if s < slot_end and e > slot_start]
		grid.append({
			"time": fmt_time(st),
			"events": slot_events,
			"within_hours": in_hours,
			"booked": bool(booked),
			"appointment_ids": booked,
		})
	return grid


def active_appointments_for_day(db: Session, doctor_id: int, utc_start: datetime, utc_end: datetime) -> list[models.Appointment]:
	return db.query(models.Appointment).filter(
		models.Appointment.doctor_id == doctor_id,
		models.Appointment.requested_date_time >= utc_start - timedelta(days=1),
		models.Appointment.requested_date_time < utc_end,
		models.Appointment.status.notin_(BLOCKING_EXCLUDED_STATUSES),
	).all()
