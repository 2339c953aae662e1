from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import PatientMessageIn, PatientMessageOut

router = APIRouter(prefix="/patient-messages", tags=["patient-messages"])

SENDER_TYPES = ("doctor", "patient")

@router.get("/{patient_id}", response_model=List[PatientMessageOut])
def list_messages(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.PatientMessage).filter(
		models.PatientMessage.doctor_id == doctor.doctor_id,
		models.PatientMessage.patient_id == patient_id,
	).order_by(models.PatientMessage.created_at, models.PatientMessage.message_id).all()

@router.post("/{patient_id}", response_model=PatientMessageOut, status_code=201)
def send_message(patient_id: int, payload: PatientMessageIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	if payload.sender_type not in SENDER_TYPES:
		raise HTTPException(status_code=400, detail="sender_type must be doctor or patient")
	if not payload.content.strip():
		raise HTTPException(status_code=400, detail="content is required")
	m = models.PatientMessage(
		doctor_id=doctor.doctor_id,
		patient_id=patient_id,
		appointment_id=payload.appointment_id,
		sender_type=payload.sender_type,
		content=payload.content.strip(),
		# a sender has read their own message
		is_read=payload.sender_type == "doctor",
	)
	db.add(m)
	db.commit()
	db.refresh(m)
	return m

@router.post("/{patient_id}/read")
def mark_read(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	count = db.query(models.PatientMessage).filter(
		models.PatientMessage.doctor_id == doctor.doctor_id,
		models.PatientMessage.patient_id == patient_id,
		models.PatientMessage.sender_type == "patient",
		models.PatientMessage.is_read == False,
	).update({models.PatientMessage.is_read: True}, synchronize_session=False)
	db.commit()
	return {"marked_read": count}
