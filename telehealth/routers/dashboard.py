from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func
from datetime import date, datetime, time, timedelta, timezone
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.services.booking import provider_tz, utc_to_provider_local

router = APIRouter(prefix="/dashboard", tags=["dashboard"])

ACTIVE_STATUSES = ("accepted", "pending")
UPCOMING_LIMIT = 5


def _local_midnight_utc(d: date, tz_name: str | None) -> datetime:
	local = datetime.combine(d, time.min, tzinfo=provider_tz(tz_name))
	return local.astimezone(timezone.utc).replace(tzinfo=None)


@router.get("/stats")
def stats(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	now = models.utcnow()
	today = utc_to_provider_local(now, doctor.timezone).date()
	day_start = _local_midnight_utc(today, doctor.timezone)
	day_end = _local_midnight_utc(today + timedelta(days=1), doctor.timezone)
	month_start = _local_midnight_utc(today.replace(day=1), doctor.timezone)

	appts = db.query(models.Appointment).filter(models.Appointment.doctor_id == doctor.doctor_id)
	today_count = appts.filter(
		models.Appointment.requested_date_time >= day_start,
		models.Appointment.requested_date_time < day_end,
		models.Appointment.status.in_(ACTIVE_STATUSES),
	).count()
	upcoming = appts.filter(
		models.Appointment.requested_date_time >= day_end,
		models.Appointment.status.in_(ACTIVE_STATUSES),
	).order_by(models.Appointment.requested_date_time).limit(UPCOMING_LIMIT).all()
	pending = appts.filter(models.Appointment.status == "pending").count()
	completed = appts.filter(
		models.Appointment.status == "completed",
		models.Appointment.requested_date_time >= month_start,
	).count()
	total_patients = db.query(models.Patient).filter(models.Patient.doctor_id == doctor.doctor_id).count()
	unread_messages = db.query(models.PatientMessage).filter(
		models.PatientMessage.doctor_id == doctor.doctor_id,
		models.PatientMessage.sender_type == "patient",
		models.PatientMessage.is_read == False,
	).count()
	unread_notifications = db.query(models.Notification).filter(
		models.Notification.doctor_id == doctor.doctor_id,
		models.Notification.is_read == False,
	).count()
	return {
		"appointments_today": today_count,
		"pending_appointments": pending,
		"completed_this_month": completed,
		"total_patients": total_patients,
		"unread_messages": unread_messages,
		"unread_notifications": unread_notifications,
		"upcoming": [
			{
				"appointment_id": a.appointment_id,
				"requested_date_time": a.requested_date_time,
				"local_time": utc_to_provider_local(a.requested_date_time, doctor.timezone),
				"status": a.status,
				"visit_type": a.visit_type,
				"patient_name": a.patient.full_name if a.patient else None,
			}
			for a in upcoming
		],
	}

@router.get("/busiest")

def busiest_day(start_date: date, end_date: date, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	if end_date < start_date:
		raise HTTPException(status_code=400, detail="end_date must not be before start_date")
	rows = db.query(models.Appointment.requested_date_time).filter(
		models.Appointment.doctor_id == doctor.doctor_id,
		models.Appointment.requested_date_time >= _local_midnight_utc(start_date, doctor.timezone),
		models.Appointment.requested_date_time < _local_midnight_utc(end_date + timedelta(days=1), doctor.timezone),
		models.Appointment.status.notin_(("cancelled", "rejected")),
	).all()
	counts = {}
	for (dt,) in rows:
		d = utc_to_provider_local(dt, doctor.timezone).date()
		counts[d] = counts.get(d, 0) + 1
	if not counts:
		return {"date": None, "count": 0}
	best = min(counts, key=lambda d: (-counts[d], d))
	return {"date": best, "count": counts[best]}

@router.get("/count")

def count_appointments(on: date, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(sa_func.count(models.Appointment.appointment_id)).filter(
		models.Appointment.doctor_id == doctor.doctor_id,
		models.Appointment.requested_date_time >= _local_midnight_utc(on, doctor.timezone),
		models.Appointment.requested_date_time < _local_midnight_utc(on + timedelta(days=1), doctor.timezone),
	)
	return {"date": on, "count": int(q.scalar() or 0)}
