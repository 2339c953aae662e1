from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from datetime import timedelta, timezone
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.appointments import get_owned_appointment
from telehealth.services.booking import utc_to_provider_local
from telehealth.workers.celery_app import send_reminder_task
from telehealth.logger import get_logger

router = APIRouter(prefix="/reminders", tags=["reminders"])
log = get_logger("reminders")

REMINDER_OFFSETS_HOURS = (48, 24, 2)
CHANNELS = ("sms", "email")

@router.post("/{appointment_id}")
def schedule_reminders(appointment_id: int, channel: str = Body("sms", embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	if channel not in CHANNELS:
		raise HTTPException(status_code=400, detail=f"channel must be one of: {', '.join(CHANNELS)}")
	if appt.status in ("cancelled", "rejected", "completed"):
		raise HTTPException(status_code=400, detail=f"Cannot schedule reminders for a {appt.status} appointment")
	p = appt.patient
	to_value = (p.phone if channel == "sms" else p.email) if p else None
	if not to_value:
		raise HTTPException(status_code=400, detail=f"Patient has no {'phone number' if channel == 'sms' else 'email'} on file")

	local = utc_to_provider_local(appt.requested_date_time, doctor.timezone)
	msg = f"Reminder: your {appt.visit_type} appointment with Dr. {doctor.last_name} is on {local.strftime('%b %d at %I:%M %p')}"
	now = models.utcnow()
	scheduled = []
	for hours in REMINDER_OFFSETS_HOURS:
		eta = appt.requested_date_time - timedelta(hours=hours)
		if eta <= now:
			continue
		# eta must be timezone aware or celery treats it as local time
		send_reminder_task.apply_async((channel, to_value, msg), eta=eta.replace(tzinfo=timezone.utc))
		scheduled.append(eta)
	log.info("Scheduled %d %s reminders for appointment %s", len(scheduled), channel, appointment_id)
	return {"scheduled": len(scheduled), "send_at": scheduled}
