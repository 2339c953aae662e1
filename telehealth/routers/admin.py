from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_admin
from telehealth.schemas import DoctorOut
from telehealth.services.booking import utc_to_provider_local
from telehealth.integrations.notifications import notify_doctor
import pandas as pd
from io import BytesIO
from fastapi.responses import StreamingResponse

router = APIRouter(prefix="/admin", tags=["admin"])

EXPORT_COLUMNS = [
	"appointment_id", "doctor", "patient_id", "patient_name", "patient_email", "patient_phone",
	"requested_date_time_utc", "local_time", "duration_minutes", "visit_type", "service_type",
	"status", "reason", "carrier", "member_id", "group_number",
]

@router.get("/export/appointments.xlsx")

def export_appointments(doctor_id: int | None = None, status: str | None = None, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	q = db.query(models.Appointment)
	if doctor_id:
		q = q.filter(models.Appointment.doctor_id == doctor_id)
	if status:
		q = q.filter(models.Appointment.status == status)
	rows = q.order_by(models.Appointment.requested_date_time).all()
	# prefetch doctors, patients + insurance
	doctors = {d.doctor_id: d for d in db.query(models.Doctor).all()}
	patients = {p.patient_id: p for p in db.query(models.Patient).all()}
	ins_map = {i.patient_id: i for i in db.query(models.Insurance).all()}
	data = []
	for a in rows:
		d = doctors.get(a.doctor_id)
		p = patients.get(a.patient_id)
		i = ins_map.get(a.patient_id)
		data.append({
			"appointment_id": a.appointment_id,
			"doctor": d.full_name if d else None,
			"patient_id": a.patient_id,
			"patient_name": p.full_name if p else None,
			"patient_email": p.email if p else None,
			"patient_phone": p.phone if p else None,
			"requested_date_time_utc": a.requested_date_time,
			"local_time": utc_to_provider_local(a.requested_date_time, d.timezone if d else None),
			"duration_minutes": a.duration_minutes,
			"visit_type": a.visit_type,
			"service_type": a.service_type,
			"status": a.status,
			"reason": a.reason,
			"carrier": i.carrier if i else None,
			"member_id": i.member_id if i else None,
			"group_number": i.group_number if i else None,
		})
	df = pd.DataFrame(data, columns=EXPORT_COLUMNS)
	output = BytesIO()
	df.to_excel(output, index=False)
	output.seek(0)
	fname = f"appointments_{models.utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
	return StreamingResponse(output, media_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet', headers={"Content-Disposition": f"attachment; filename={fname}"})

@router.patch("/doctors/{doctor_id}/approval", response_model=DoctorOut)

def set_approval(doctor_id: int, is_approved: bool = Body(..., embed=True), db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	d = db.query(models.Doctor).filter(models.Doctor.doctor_id == doctor_id).first()
	if not d:
		raise HTTPException(status_code=404, detail="Doctor not found")
	d.is_approved = is_approved
	if is_approved:
		notify_doctor(db, d.doctor_id, "account_approved", "Account approved", "Your practice account has been approved.", commit=False)
	db.commit()
	db.refresh(d)
	return d
