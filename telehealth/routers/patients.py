from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import or_
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import PatientIn, PatientOut
from sqlalchemy.sql import func as sa_func

router = APIRouter(prefix="/patients", tags=["patients"])

PATCHABLE = ("first_name", "last_name", "email", "phone", "date_of_birth", "location", "preferred_pharmacy", "allergies")


def get_owned_patient(db: Session, doctor: models.Doctor, patient_id: int) -> models.Patient:
	p = db.query(models.Patient).filter(
		models.Patient.patient_id == patient_id,
		models.Patient.doctor_id == doctor.doctor_id,
	).first()
	if not p:
		raise HTTPException(status_code=404, detail="Patient not found")
	return p

@router.get("", response_model=List[PatientOut])
def list_patients(q: str | None = None, limit: int = 100, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	query = db.query(models.Patient).filter(models.Patient.doctor_id == doctor.doctor_id)
	if q:
		like = f"%{q.lower()}%"
		query = query.filter(or_(
			sa_func.lower(models.Patient.first_name).like(like),
			sa_func.lower(models.Patient.last_name).like(like),
			sa_func.lower(models.Patient.email).like(like),
			models.Patient.phone.like(f"%{q}%"),
		))
	return query.order_by(models.Patient.last_name, models.Patient.first_name).limit(min(limit, 500)).all()

@router.post("", response_model=PatientOut, status_code=201)
def create_patient(payload: PatientIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	patient = models.Patient(doctor_id=doctor.doctor_id, **payload.model_dump(exclude={"insurance"}))
	db.add(patient)
	db.flush()
	if payload.insurance:
		db.add(models.Insurance(patient_id=patient.patient_id, **payload.insurance.model_dump()))
	db.commit()
	db.refresh(patient)
	return patient

@router.get("/lookup/by_email/{email}")
def get_patient_id_by_email(email: str, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	p = db.query(models.Patient).filter(
		models.Patient.doctor_id == doctor.doctor_id,
		sa_func.lower(models.Patient.email) == email.lower(),
	).first()
	if not p:
		raise HTTPException(status_code=404, detail="Patient not found")
	return {"patient_id": p.patient_id}

@router.get("/{patient_id}", response_model=PatientOut)
def get_patient(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return get_owned_patient(db, doctor, patient_id)

@router.patch("/{patient_id}", response_model=PatientOut)
def update_patient(patient_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	p = get_owned_patient(db, doctor, patient_id)
	updates = {k: v for k, v in payload.items() if k in PATCHABLE}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	validated = PatientIn.model_validate({
		"first_name": p.first_name,
		"last_name": p.last_name,
		**updates,
	})
	for k in updates:
		setattr(p, k, getattr(validated, k))
	db.commit()
	db.refresh(p)
	return p
