from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.encoders import jsonable_encoder
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor, client_ip
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import MedicationIn, MedicationOut, MedicationHistoryIn, MedicationHistoryOut

router = APIRouter(prefix="/medications", tags=["medications"])

UPDATABLE = (
	"medication_name", "dosage", "frequency", "route", "prescriber", "start_date", "end_date",
	"status", "is_prn", "prn_reason", "side_effects", "adherence_score", "notes",
)


def _snapshot(m: models.PatientMedication) -> dict:
	return jsonable_encoder(MedicationOut.model_validate(m))


def _audit(db: Session, request: Request, doctor: models.Doctor, medication_id: int, action: str, previous, new):
	db.add(models.MedicationAuditLog(
		medication_id=medication_id,
		action=action,
		actor_id=doctor.doctor_id,
		actor_email=doctor.email,
		previous_values=previous,
		new_values=jsonable_encoder(new) if new is not None else None,
		ip_address=client_ip(request),
	))


def _owned_medication(db: Session, doctor: models.Doctor, medication_id: int) -> models.PatientMedication:
	m = db.query(models.PatientMedication).join(models.Patient, models.Patient.patient_id == models.PatientMedication.patient_id).filter(
		models.PatientMedication.medication_id == medication_id,
		models.PatientMedication.is_deleted == False,
		models.Patient.doctor_id == doctor.doctor_id,
	).first()
	if not m:
		raise HTTPException(status_code=404, detail="Medication not found")
	return m

@router.get("", response_model=List[MedicationOut])
def list_medications(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.PatientMedication).filter(
		models.PatientMedication.patient_id == patient_id,
		models.PatientMedication.is_deleted == False,
	).order_by(models.PatientMedication.created_at.desc(), models.PatientMedication.medication_id.desc()).all()

@router.post("", response_model=MedicationOut, status_code=201)
def create_medication(payload: MedicationIn, request: Request, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	name = payload.medication_name.strip()
	if not name:
		raise HTTPException(status_code=400, detail="patient_id and medication_name are required")
	get_owned_patient(db, doctor, payload.patient_id)
	record = payload.model_dump()
	record.update(
		medication_name=name,
		route=payload.route or "oral",
		status=payload.status or "active",
	)
	m = models.PatientMedication(doctor_id=doctor.doctor_id, is_deleted=False, **record)
	db.add(m)
	db.flush()
	_audit(db, request, doctor, m.medication_id, "create", None, record)
	db.commit()
	db.refresh(m)
	return m

@router.patch("/{medication_id}", response_model=MedicationOut)
def update_medication(medication_id: int, request: Request, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	m = _owned_medication(db, doctor, medication_id)
	updates = {k: v for k, v in payload.items() if k in UPDATABLE}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	previous = _snapshot(m)
	merged = MedicationIn.model_validate({**previous, **updates})
	if not merged.medication_name.strip():
		raise HTTPException(status_code=400, detail="medication_name cannot be empty")
	for k in updates:
		setattr(m, k, getattr(merged, k))
	action = "discontinue" if updates.get("status") == "discontinued" else "update"
	_audit(db, request, doctor, m.medication_id, action, previous, updates)
	db.commit()
	db.refresh(m)
	return m

@router.delete("/{medication_id}")
def delete_medication(medication_id: int, request: Request, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	m = _owned_medication(db, doctor, medication_id)
	previous = _snapshot(m)
	m.is_deleted = True
	_audit(db, request, doctor, m.medication_id, "delete", previous, {"is_deleted": True})
	db.commit()
	return {"success": True}

@router.get("/{medication_id}/audit")
def medication_audit(medication_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_owned_medication(db, doctor, medication_id)
	rows = db.query(models.MedicationAuditLog).filter(
		models.MedicationAuditLog.medication_id == medication_id
	).order_by(models.MedicationAuditLog.created_at, models.MedicationAuditLog.audit_id).all()
	return [
		{
			"action": r.action,
			"actor_email": r.actor_email,
			"previous_values": r.previous_values,
			"new_values": r.new_values,
			"ip_address": r.ip_address,
			"created_at": r.created_at,
		}
		for r in rows
	]

@router.get("/history", response_model=List[MedicationHistoryOut])
def list_history(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.MedicationHistory).filter(
		models.MedicationHistory.patient_id == patient_id
	).order_by(models.MedicationHistory.fill_date.desc(), models.MedicationHistory.history_id.desc()).all()

@router.post("/history", response_model=MedicationHistoryOut, status_code=201)
def add_history(patient_id: int, payload: MedicationHistoryIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	if not payload.medication.strip():
		raise HTTPException(status_code=400, detail="medication is required")
	row = models.MedicationHistory(patient_id=patient_id, doctor_id=doctor.doctor_id, **payload.model_dump())
	db.add(row)
	db.commit()
	db.refresh(row)
	return row
