from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_admin, require_doctor
from telehealth.schemas import DoctorIn, DoctorOut

router = APIRouter(prefix="/doctors", tags=["doctors"])

@router.get("", response_model=List[DoctorOut])
def list_doctors(db: Session = Depends(get_db)):
	return db.query(models.Doctor).order_by(models.Doctor.last_name).all()

@router.post("", response_model=DoctorOut, status_code=201)
def create_doctor(payload: DoctorIn, db: Session = Depends(get_db), _admin: dict = Depends(require_admin)):
	if db.query(models.Doctor).filter(sa_func.lower(models.Doctor.email) == payload.email.lower()).first():
		raise HTTPException(status_code=409, detail="Doctor with this email already exists")
	d = models.Doctor(**payload.model_dump())
	db.add(d)
	db.commit()
	db.refresh(d)
	return d

@router.get("/me", response_model=DoctorOut)
def get_me(doctor: models.Doctor = Depends(require_doctor)):
	return doctor

@router.get("/{doctor_id}", response_model=DoctorOut)
def get_doctor(doctor_id: int, db: Session = Depends(get_db)):
	d = db.query(models.Doctor).filter(models.Doctor.doctor_id == doctor_id).first()
	if not d:
		raise HTTPException(status_code=404, detail="Doctor not found")
	return d
