from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.appointments import get_owned_appointment
from telehealth.schemas import AddendumIn, AddendumOut, AppointmentOut, ClinicalNoteOut, SoapFormIn
from telehealth.services.soap_notes import ChartStateError, add_addendum, close_chart, notes_from_form, sign_chart, unlock_chart, upsert_notes

router = APIRouter(prefix="/clinical-notes", tags=["clinical-notes"])


def _state_conflict(e: ChartStateError):
	return HTTPException(status_code=409, detail={"message": str(e), "current_status": e.current_status})

@router.get("/{appointment_id}", response_model=List[ClinicalNoteOut])
def list_notes(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_appointment(db, doctor, appointment_id)
	return db.query(models.ClinicalNote).filter(
		models.ClinicalNote.appointment_id == appointment_id
	).order_by(models.ClinicalNote.created_at, models.ClinicalNote.note_id).all()

@router.put("/{appointment_id}", response_model=List[ClinicalNoteOut])
def save_soap(appointment_id: int, payload: SoapFormIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	notes = notes_from_form(payload.chief_complaint, payload.ros_general, payload.assessment_plan)
	try:
		return upsert_notes(db, appt, notes)
	except ChartStateError as e:
		raise _state_conflict(e)

# chart lifecycle

@router.post("/{appointment_id}/sign", response_model=AppointmentOut)
def sign(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	try:
		return sign_chart(db, appt, doctor.full_name)
	except ChartStateError as e:
		raise _state_conflict(e)

@router.post("/{appointment_id}/unlock", response_model=AppointmentOut)
def unlock(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	try:
		return unlock_chart(db, appt, doctor.full_name)
	except ChartStateError as e:
		raise _state_conflict(e)

@router.post("/{appointment_id}/close", response_model=AppointmentOut)
def close(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	try:
		return close_chart(db, appt, doctor.full_name)
	except ChartStateError as e:
		raise _state_conflict(e)

@router.get("/{appointment_id}/addenda", response_model=List[AddendumOut])
def list_addenda(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return get_owned_appointment(db, doctor, appointment_id).addenda

@router.post("/{appointment_id}/addenda", response_model=AddendumOut, status_code=201)
def create_addendum(appointment_id: int, payload: AddendumIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appt = get_owned_appointment(db, doctor, appointment_id)
	try:
		return add_addendum(db, appt, payload.text, doctor.full_name, payload.addendum_type, payload.reason)
	except ChartStateError as e:
		raise _state_conflict(e)
	except ValueError as ve:
		raise HTTPException(status_code=400, detail=str(ve))
