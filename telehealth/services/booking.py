from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session
from datetime import datetime, timedelta, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from telehealth import models
from telehealth.config import settings

DEFAULT_DURATION_MINUTES = 30
MAX_DURATION_MINUTES = 720
VISIT_TYPES = ("video", "phone", "async", "instant")
APPOINTMENT_STATUSES = ("pending", "accepted", "completed", "cancelled", "rejected")
BLOCKING_EXCLUDED_STATUSES = ("cancelled", "rejected")


class SlotConflict(ValueError):
	def __init__(self, conflict_ids: list[int]):
		super().__init__("Time slot overlaps an existing appointment")
		self.conflict_ids = conflict_ids


def provider_tz(name: str | None = None) -> ZoneInfo:
	name = name or settings.provider_timezone
	try:
		return ZoneInfo(name)
	except (ZoneInfoNotFoundError, ValueError):
		raise ValueError(f"Unknown timezone: {name}")


def provider_local_to_utc(year: int, month: int, day: int, hours: int, minutes: int, tz_name: str | None = None) -> datetime:
	"""Wall-clock components in the provider's timezone -> naive UTC."""
	try:
		local = datetime(int(year), int(month), int(day), int(hours), int(minutes), tzinfo=provider_tz(tz_name))
	except (TypeError, ValueError) as e:
		raise ValueError(f"Invalid date/time components: {e}")
	return local.astimezone(timezone.utc).replace(tzinfo=None)


def parse_iso_utc(value: str) -> datetime:
	"""ISO-8601 string -> naive UTC. Strings without an offset are taken as UTC."""
	try:
		dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
	except (AttributeError, ValueError):
		raise ValueError(f"Invalid datetime: {value}")
	if dt.tzinfo is not None:
		dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
	return dt


def utc_to_provider_local(dt: datetime, tz_name: str | None = None) -> datetime:
	return dt.replace(tzinfo=timezone.utc).astimezone(provider_tz(tz_name)).replace(tzinfo=None)


def find_overlapping(db: Session, doctor_id: int, start: datetime, duration_minutes: int, exclude_id: int | None = None) -> list[models.Appointment]:
	end = start + timedelta(minutes=duration_minutes)
	longest = db.query(sa_func.max(models.Appointment.duration_minutes)).filter(models.Appointment.doctor_id == doctor_id).scalar()
	lookback = timedelta(minutes=max(longest or 0, DEFAULT_DURATION_MINUTES))
	q = db.query(models.Appointment).filter(
		models.Appointment.doctor_id == doctor_id,
		models.Appointment.requested_date_time < end,
		models.Appointment.requested_date_time > start - lookback,
		models.Appointment.status.notin_(BLOCKING_EXCLUDED_STATUSES),
	)
	if exclude_id:
		q = q.filter(models.Appointment.appointment_id != exclude_id)
	out = []
	for a in q.all():
		a_end = a.requested_date_time + timedelta(minutes=a.duration_minutes or DEFAULT_DURATION_MINUTES)
		if start < a_end and end > a.requested_date_time:
			out.append(a)
	return out


def ensure_slot_free(db: Session, doctor_id: int, start: datetime, duration_minutes: int, exclude_id: int | None = None):
	clashes = find_overlapping(db, doctor_id, start, duration_minutes, exclude_id)
	if clashes:
		raise SlotConflict([a.appointment_id for a in clashes])


def find_or_create_patient(
	db: Session,
	doctor_id: int,
	first_name: str,
	last_name: str,
	email: str | None = None,
	phone: str | None = None,
	date_of_birth=None,
	location: str | None = None,
) -> models.Patient:
	p = None
	if email:
		p = db.query(models.Patient).filter(
			models.Patient.doctor_id == doctor_id,
			sa_func.lower(models.Patient.email) == email.lower(),
		).first()
	if not p and phone:
		p = db.query(models.Patient).filter(models.Patient.doctor_id == doctor_id, models.Patient.phone == phone).first()
	if p:
		# fill gaps, never overwrite what the chart already has
		for field, val in (("phone", phone), ("email", email), ("date_of_birth", date_of_birth), ("location", location)):
			if val and not getattr(p, field):
				setattr(p, field, val)
		return p
	p = models.Patient(
		doctor_id=doctor_id,
		first_name=first_name,
		last_name=last_name,
		email=email,
		phone=phone,
		date_of_birth=date_of_birth,
		location=location,
	)
	db.add(p)
	db.flush()
	return p


def book_appointment(db: Session, doctor_id: int, patient_id: int | None, start: datetime, visit_type: str, duration_minutes: int = DEFAULT_DURATION_MINUTES, **fields) -> models.Appointment:
	if visit_type not in VISIT_TYPES:
		raise ValueError(f"visit_type must be one of: {', '.join(VISIT_TYPES)}")
	if duration_minutes <= 0 or duration_minutes > MAX_DURATION_MINUTES:
		raise ValueError(f"duration_minutes must be between 1 and {MAX_DURATION_MINUTES}")
	ensure_slot_free(db, doctor_id, start, duration_minutes)
	appt = models.Appointment(
		doctor_id=doctor_id,
		patient_id=patient_id,
		requested_date_time=start,
		duration_minutes=duration_minutes,
		visit_type=visit_type,
		status="accepted",
		provider_accepted_at=models.utcnow(),
		**fields,
	)
	db.add(appt)
	db.commit()
	db.refresh(appt)
	return appt
