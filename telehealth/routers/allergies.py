from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import AllergyIn, AllergyOut

router = APIRouter(prefix="/allergies", tags=["allergies"])

UPDATABLE = ("allergen_name", "allergy_type", "reaction", "severity", "status")


def _owned_allergy(db: Session, doctor: models.Doctor, allergy_id: int) -> models.PatientAllergy:
	a = db.query(models.PatientAllergy).join(models.Patient, models.Patient.patient_id == models.PatientAllergy.patient_id).filter(
		models.PatientAllergy.allergy_id == allergy_id,
		models.Patient.doctor_id == doctor.doctor_id,
	).first()
	if not a:
		raise HTTPException(status_code=404, detail="Allergy not found")
	return a

@router.get("", response_model=List[AllergyOut])
def list_allergies(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.PatientAllergy).filter(
		models.PatientAllergy.patient_id == patient_id
	).order_by(models.PatientAllergy.recorded_at.desc(), models.PatientAllergy.allergy_id.desc()).all()

@router.post("", response_model=AllergyOut, status_code=201)
def create_allergy(payload: AllergyIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	if not payload.allergen_name.strip():
		raise HTTPException(status_code=400, detail="allergen_name is required")
	get_owned_patient(db, doctor, payload.patient_id)
	a = models.PatientAllergy(doctor_id=doctor.doctor_id, **payload.model_dump(exclude={"allergen_name"}), allergen_name=payload.allergen_name.strip())
	db.add(a)
	db.commit()
	db.refresh(a)
	return a

@router.patch("/{allergy_id}", response_model=AllergyOut)
def update_allergy(allergy_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	a = _owned_allergy(db, doctor, allergy_id)
	updates = {k: v for k, v in payload.items() if k in UPDATABLE}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	if "allergen_name" in updates and not (updates["allergen_name"] or "").strip():
		raise HTTPException(status_code=400, detail="allergen_name cannot be empty")
	for k, v in updates.items():
		setattr(a, k, v)
	db.commit()
	db.refresh(a)
	return a

@router.delete("/{allergy_id}")
def delete_allergy(allergy_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	a = _owned_allergy(db, doctor, allergy_id)
	db.delete(a)
	db.commit()
	return {"success": True}
