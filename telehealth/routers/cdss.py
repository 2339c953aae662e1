from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.appointments import get_owned_appointment
from telehealth.services import cdss
from telehealth.logger import get_logger

router = APIRouter(prefix="/cdss", tags=["cdss"])
log = get_logger("cdss")


def _latest(db: Session, appointment_id: int) -> models.CdssResponse | None:
	return db.query(models.CdssResponse).filter(
		models.CdssResponse.appointment_id == appointment_id
	).order_by(models.CdssResponse.created_at.desc(), models.CdssResponse.response_id.desc()).first()

@router.post("/generate")
def generate(body: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	appointment_id = body.get("appointment_id")
	if not appointment_id:
		raise HTTPException(status_code=400, detail="Appointment ID is required")
	appt = get_owned_appointment(db, doctor, appointment_id)
	auto = bool(body.get("auto_generate"))

	if auto and appt.cdss_auto_generated:
		existing = _latest(db, appt.appointment_id)
		if existing and existing.response_data:
			return existing.response_data
		raise HTTPException(status_code=404, detail="CDSS already auto-generated but response not found")

	notes = db.query(models.ClinicalNote).filter(
		models.ClinicalNote.appointment_id == appt.appointment_id
	).order_by(models.ClinicalNote.created_at, models.ClinicalNote.note_id).all()
	history = []
	prescriptions = []
	if appt.patient_id:
		history = db.query(models.MedicationHistory).filter(
			models.MedicationHistory.patient_id == appt.patient_id
		).order_by(models.MedicationHistory.fill_date.desc()).all()
		prescriptions = db.query(models.Prescription).filter(
			models.Prescription.patient_id == appt.patient_id,
			models.Prescription.status.in_(("pending", "sent")),
		).all()

	inp = cdss.build_input(body, appt, notes, patient=appt.patient, medication_history=history, prescriptions=prescriptions)
	response = cdss.generate(inp)

	try:
		db.add(models.CdssResponse(appointment_id=appt.appointment_id, response_data=response, created_by=doctor.email))
		if auto:
			appt.cdss_auto_generated = True
		db.commit()
	except Exception:
		log.exception("Failed to save CDSS response for appointment %s", appt.appointment_id)
		db.rollback()
	return response

@router.get("/{appointment_id}")
def latest_response(appointment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_appointment(db, doctor, appointment_id)
	row = _latest(db, appointment_id)
	if not row:
		raise HTTPException(status_code=404, detail="No CDSS response for this appointment")
	return {"response_id": row.response_id, "created_at": row.created_at, "response": row.response_data}
