from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import InsuranceIn, InsuranceOut

router = APIRouter(prefix="/insurance", tags=["insurance"])

@router.get("/{patient_id}", response_model=InsuranceOut)

def get_insurance(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	ins = db.query(models.Insurance).filter(models.Insurance.patient_id == patient_id).first()
	if not ins:
		raise HTTPException(status_code=404, detail="Insurance not found")
	return ins

@router.post("/{patient_id}", response_model=InsuranceOut)

def set_insurance(patient_id: int, payload: InsuranceIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	ins = db.query(models.Insurance).filter(models.Insurance.patient_id == patient_id).first()
	if not ins:
		ins = models.Insurance(patient_id=patient_id, **payload.model_dump())
		db.add(ins)
	else:
		for k, v in payload.model_dump().items():
			setattr(ins, k, v)
	db.commit(); db.refresh(ins)
	return ins
