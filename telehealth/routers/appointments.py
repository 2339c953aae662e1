from fastapi import APIRouter, Depends, HTTPException, Body
from fastapi.responses import PlainTextResponse
from sqlalchemy.orm import Session
from datetime import datetime, timedelta
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import AppointmentIn, AppointmentOut
from telehealth.services.booking import (
	APPOINTMENT_STATUSES, DEFAULT_DURATION_MINUTES, SlotConflict,
	book_appointment, ensure_slot_free, find_or_create_patient,
	parse_iso_utc, provider_local_to_utc, utc_to_provider_local,
)
from telehealth.services.calendar_files import create_ics
from telehealth.integrations import daily
from telehealth.integrations.errors import IntegrationError
from telehealth.integrations.notifications import notify_doctor
from telehealth.workers.celery_app import notify_admin_task, send_reminder_task, send_calendar_invite_task
from telehealth.logger import get_logger

router = APIRouter(prefix="/appointments", tags=["appointments"])
log = get_logger("appointments")

PATCHABLE = (
	"reason", "notes", "chief_complaint", "service_type", "preferred_pharmacy", "allergies",
	"transcription", "ros_general", "vitals_bp", "vitals_hr", "vitals_temp", "status",
)


def get_owned_appointment(db: Session, doctor: models.Doctor, appointment_id: int) -> models.Appointment:
	appt = db.query(models.Appointment).filter(
		models.Appointment.appointment_id == appointment_id,
		models.Appointment.doctor_id == doctor.doctor_id,
	).first()
	if not appt:
		raise HTTPException(status_code=404, detail="Appointment not found")
	return appt


def _conflict(e: SlotConflict):
	return HTTPException(status_code=409, detail={"message": str(e), "conflicts": e.conflict_ids})


def _requested_start(payload: AppointmentIn, doctor: models.Doctor) -> datetime:
	parts = (payload.year, payload.month, payload.day, payload.hours, payload.minutes)
	try:
		if all(p is not None for p in parts):
			return provider_local_to_utc(*parts, tz_name=doctor.timezone)
		if payload.requested_date_time:
			return parse_iso_utc(payload.requested_date_time)
	except ValueError as ve:
		raise HTTPException(status_code=400, detail=str(ve))
	raise HTTPException(status_code=400, detail="Provide year, month, day, hours and minutes or requested_date_time")


def _append_note(appt: models.Appointment, line: str):
	appt.notes = f"{appt.notes}\n{line}" if appt.notes else line

@router.post("", status_code=201)

def create(payload: AppointmentIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	if payload.doctor_id != doctor.doctor_id:
		raise HTTPException(status_code=403, detail="Cannot book for another doctor")
	start = _requested_start(payload, doctor)
	patient = find_or_create_patient(
		db,
		doctor.doctor_id,
		payload.patient_first_name,
		payload.patient_last_name,
		email=payload.patient_email,
		phone=payload.patient_phone,
		date_of_birth=payload.patient_dob,
		location=payload.patient_location,
	)
	fields = payload.model_dump(include={
		"service_type", "reason", "notes", "chief_complaint", "preferred_pharmacy", "allergies",
		"has_drug_allergies", "has_ongoing_medical_issues", "ongoing_medical_issues_details",
		"has_recent_surgeries", "recent_surgeries_details",
	})
	try:
		appt = book_appointment(db, doctor.doctor_id, patient.patient_id, start, payload.visit_type, payload.duration_minutes, **fields)
	except SlotConflict as e:
		db.rollback()
		raise _conflict(e)
	except ValueError as ve:
		db.rollback()
		raise HTTPException(status_code=400, detail=str(ve))

	meeting = None
	if appt.visit_type == "video":
		try:
			room = daily.create_room(name=f"appt-{appt.appointment_id}")
			token = daily.create_meeting_token(room["name"], user_name=doctor.full_name, is_owner=True)
			appt.video_room_name = room["name"]
			appt.video_meeting_url = room["url"]
			appt.video_owner_token = token
			db.commit()
			db.refresh(appt)
			meeting = {"room_name": room["name"], "url": room["url"], "owner_token": token}
		except IntegrationError as e:
			log.warning("Video room for appointment %s not created: %s", appt.appointment_id, e)

	local = utc_to_provider_local(appt.requested_date_time, doctor.timezone)
	try:
		notify_admin_task.delay(
			"New appointment booked",
			f"{doctor.full_name} booked a {appt.visit_type} visit with {patient.full_name} on {local:%Y-%m-%d %H:%M}.",
		)
		if patient.email:
			ics = create_ics(
				f"appt-{appt.appointment_id}",
				f"Appointment with {doctor.full_name}",
				appt.requested_date_time,
				appt.requested_date_time + timedelta(minutes=appt.duration_minutes or DEFAULT_DURATION_MINUTES),
				url=appt.video_meeting_url,
			)
			send_calendar_invite_task.delay(patient.email, "Appointment Confirmation", f"Your appointment is booked for {local:%Y-%m-%d %H:%M}.", ics)
	except Exception:
		log.exception("Failed to queue booking notifications for appointment %s", appt.appointment_id)

	return {"appointment": AppointmentOut.model_validate(appt), "patient_id": patient.patient_id, "meeting": meeting}

@router.get("", response_model=List[AppointmentOut])

def list_appointments(start: str | None = None, end: str | None = None, status: str | None = None, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.Appointment).filter(models.Appointment.doctor_id == doctor.doctor_id)
	try:
		if start:
			q = q.filter(models.Appointment.requested_date_time >= parse_iso_utc(start))
		if end:
			q = q.filter(models.Appointment.requested_date_time < parse_iso_utc(end))
	except ValueError as ve:
		raise HTTPException(status_code=400, detail=str(ve))
	if status:
		q = q.filter(models.Appointment.status == status)
	return q.order_by(models.Appointment.requested_date_time).all()

@router.get("/{appointment_id}", response_model=AppointmentOut)

def get_appointment(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return get_owned_appointment(db, doctor, appointment_id)

@router.patch("/{appointment_id}", response_model=AppointmentOut)

def update_appointment(appointment_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	updates = {k: v for k, v in payload.items() if k in PATCHABLE}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	if "status" in updates and updates["status"] not in APPOINTMENT_STATUSES:
		raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(APPOINTMENT_STATUSES)}")
	for k, v in updates.items():
		setattr(appt, k, v)
	db.commit()
	db.refresh(appt)
	return appt

@router.post("/{appointment_id}/accept", response_model=AppointmentOut)

def accept(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	if appt.status != "pending":
		raise HTTPException(status_code=400, detail=f"Appointment is not in pending status. Current status: {appt.status}")
	appt.status = "accepted"
	appt.provider_accepted_at = models.utcnow()
	db.commit()
	notify_doctor(db, doctor.doctor_id, "appointment_accepted", "Appointment accepted", f"Appointment #{appt.appointment_id} accepted", link=f"/appointments/{appt.appointment_id}")
	db.refresh(appt)
	return appt

@router.post("/{appointment_id}/reject", response_model=AppointmentOut)

def reject(appointment_id: int, reason: str | None = Body(None, embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	if appt.status != "pending":
		raise HTTPException(status_code=400, detail=f"Appointment is not in pending status. Current status: {appt.status}")
	appt.status = "rejected"
	_append_note(appt, f"Rejected: {reason}" if reason else "Rejected by provider")
	db.commit()
	db.refresh(appt)
	return appt

@router.post("/{appointment_id}/cancel")

def cancel(appointment_id: int, reason: str | None = Body(None, embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	if appt.status == "cancelled":
		return {"success": True, "message": "Appointment already cancelled", "appointment_id": appointment_id}
	appt.status = "cancelled"
	appt.notes = f"Cancelled: {reason}" if reason else "Appointment cancelled by provider"
	db.commit()
	notify_doctor(db, doctor.doctor_id, "appointment_cancelled", "Appointment cancelled", appt.notes, link=f"/appointments/{appt.appointment_id}")
	return {"success": True, "message": "Appointment cancelled", "appointment_id": appointment_id}

@router.post("/{appointment_id}/reschedule", response_model=AppointmentOut)

def reschedule(
	appointment_id: int,
	requested_date_time: str = Body(...),
	note: str | None = Body(None),
	notify: bool = Body(True),
	db: Session = Depends(get_db),
	doctor: models.Doctor = Depends(require_doctor),
):
	appt = get_owned_appointment(db, doctor, appointment_id)
	if appt.status in ("cancelled", "rejected"):
		raise HTTPException(status_code=400, detail=f"Cannot reschedule a {appt.status} appointment")
	try:
		new_start = parse_iso_utc(requested_date_time)
	except ValueError as ve:
		raise HTTPException(status_code=400, detail=str(ve))
	try:
		ensure_slot_free(db, doctor.doctor_id, new_start, appt.duration_minutes or DEFAULT_DURATION_MINUTES, exclude_id=appt.appointment_id)
	except SlotConflict as e:
		raise _conflict(e)
	old_local = utc_to_provider_local(appt.requested_date_time, doctor.timezone)
	new_local = utc_to_provider_local(new_start, doctor.timezone)
	appt.requested_date_time = new_start
	_append_note(appt, note or f"Rescheduled from {old_local:%Y-%m-%d %H:%M} to {new_local:%Y-%m-%d %H:%M}")
	db.commit()
	notify_doctor(db, doctor.doctor_id, "appointment_rescheduled", "Appointment rescheduled", f"Appointment #{appt.appointment_id} moved to {new_local:%Y-%m-%d %H:%M}", link=f"/appointments/{appt.appointment_id}")
	if notify:
		p = appt.patient
		try:
			if p and p.phone:
				send_reminder_task.delay("sms", p.phone, f"Your appointment with {doctor.full_name} has been moved to {new_local:%Y-%m-%d at %H:%M}.")
		except Exception:
			log.exception("Failed to queue reschedule SMS for appointment %s", appt.appointment_id)
	db.refresh(appt)
	return appt

@router.put("/{appointment_id}/notes", response_model=AppointmentOut)

def save_notes(appointment_id: int, notes: str = Body(..., embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	appt.notes = notes
	db.commit()
	db.refresh(appt)
	return appt

@router.get("/{appointment_id}/calendar.ics")

def export_ics(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	end = appt.requested_date_time + timedelta(minutes=appt.duration_minutes or DEFAULT_DURATION_MINUTES)
	who = appt.patient.full_name if appt.patient else "patient"
	ics = create_ics(f"appt-{appt.appointment_id}", f"{appt.visit_type.title()} visit with {who}", appt.requested_date_time, end, description=appt.reason, url=appt.video_meeting_url)
	return PlainTextResponse(content=ics, media_type='text/calendar')
