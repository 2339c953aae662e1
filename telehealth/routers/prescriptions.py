from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import PrescriptionOut
from telehealth.logger import get_logger

router = APIRouter(prefix="/prescriptions", tags=["prescriptions"])
log = get_logger("prescriptions")

REQUIRED = ("patient_id", "medication", "sig", "quantity")
UPDATABLE = (
	"medication", "sig", "quantity", "refills", "notes",
	"pharmacy_name", "pharmacy_address", "pharmacy_phone", "status",
)
STATUSES = ("pending", "sent", "filled", "cancelled", "error")


def _apply_status(rx: models.Prescription, status: str):
	if status not in STATUSES:
		raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(STATUSES)}")
	rx.status = status
	if status == "sent" and not rx.sent_at:
		rx.sent_at = models.utcnow()


def _owned_prescription(db: Session, doctor: models.Doctor, prescription_id: int) -> models.Prescription:
	rx = db.query(models.Prescription).filter(
		models.Prescription.prescription_id == prescription_id,
		models.Prescription.doctor_id == doctor.doctor_id,
	).first()
	if not rx:
		raise HTTPException(status_code=404, detail="Prescription not found")
	return rx

@router.get("")
def list_prescriptions(appointment_id: int | None = None, patient_id: int | None = None, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.Prescription).filter(models.Prescription.doctor_id == doctor.doctor_id)
	if appointment_id:
		q = q.filter(models.Prescription.appointment_id == appointment_id)
	elif patient_id:
		q = q.filter(models.Prescription.patient_id == patient_id)
	else:
		raise HTTPException(status_code=400, detail="Either patient_id or appointment_id is required")
	rows = q.order_by(models.Prescription.created_at.desc(), models.Prescription.prescription_id.desc()).all()
	return {"prescriptions": [PrescriptionOut.model_validate(r) for r in rows]}

@router.post("", status_code=201)
def create_prescription(payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	missing = [f for f in REQUIRED if not payload.get(f)]
	if missing:
		raise HTTPException(status_code=400, detail={"message": "Missing required fields", "missing_fields": missing})
	patient = db.query(models.Patient).filter(
		models.Patient.patient_id == payload["patient_id"],
		models.Patient.doctor_id == doctor.doctor_id,
	).first()
	if not patient:
		raise HTTPException(status_code=404, detail="Patient not found")
	doctor_id = doctor.doctor_id
	appointment_id = payload.get("appointment_id")
	if appointment_id:
		appt = db.query(models.Appointment).filter(
			models.Appointment.appointment_id == appointment_id,
			models.Appointment.doctor_id == doctor.doctor_id,
		).first()
		if not appt:
			raise HTTPException(status_code=404, detail="Appointment not found")
		doctor_id = appt.doctor_id
	try:
		refills = int(payload.get("refills") or 0)
	except (TypeError, ValueError):
		raise HTTPException(status_code=400, detail="refills must be an integer")
	rx = models.Prescription(
		doctor_id=doctor_id,
		patient_id=patient.patient_id,
		appointment_id=appointment_id,
		medication=payload["medication"],
		sig=payload["sig"],
		quantity=str(payload["quantity"]),
		refills=refills,
		notes=payload.get("notes"),
		pharmacy_name=payload.get("pharmacy_name"),
		pharmacy_address=payload.get("pharmacy_address"),
		pharmacy_phone=payload.get("pharmacy_phone"),
	)
	_apply_status(rx, payload.get("status") or "pending")
	db.add(rx)
	db.commit()
	db.refresh(rx)
	log.info("Prescription %s created for patient %s", rx.prescription_id, patient.patient_id)
	return {"prescription": PrescriptionOut.model_validate(rx)}

@router.patch("/{prescription_id}")
def update_prescription(prescription_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	rx = _owned_prescription(db, doctor, prescription_id)
	updates = {k: v for k, v in payload.items() if k in UPDATABLE}
	if not updates:
		raise HTTPException(status_code=400, detail="No fields to update")
	status = updates.pop("status", None)
	for k, v in updates.items():
		setattr(rx, k, v)
	if status:
		_apply_status(rx, status)
	db.commit()
	db.refresh(rx)
	return {"prescription": PrescriptionOut.model_validate(rx)}

@router.delete("/{prescription_id}")
def delete_prescription(prescription_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	rx = _owned_prescription(db, doctor, prescription_id)
	db.delete(rx)
	db.commit()
	return {"success": True}
