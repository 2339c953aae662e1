from fastapi import APIRouter, Body, Depends, HTTPException
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session
from sqlalchemy.exc import IntegrityError
from typing import List
from io import BytesIO
import pandas as pd
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import ClaimIn, ClaimOut, PaymentIn, PaymentOut, FeeIn, FeeOut, StatementOut, EligibilityIn, EligibilityOut
from telehealth.services.billing import CLAIM_STATUSES, PAYMENT_STATUSES, payment_kpis, claim_counts, generate_statement

router = APIRouter(prefix="/billing", tags=["billing"])


def _owned(db: Session, model, pk_name: str, pk, doctor: models.Doctor, label: str):
	row = db.query(model).filter(getattr(model, pk_name) == pk, model.doctor_id == doctor.doctor_id).first()
	if not row:
		raise HTTPException(status_code=404, detail=f"{label} not found")
	return row


def _check_claim_status(status: str):
	if status not in CLAIM_STATUSES:
		raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(CLAIM_STATUSES)}")


def _check_payment_status(status: str):
	if status not in PAYMENT_STATUSES:
		raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(PAYMENT_STATUSES)}")

# claims

@router.get("/claims", response_model=List[ClaimOut])
def list_claims(status: str | None = None, patient_id: int | None = None, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.BillingClaim).filter(models.BillingClaim.doctor_id == doctor.doctor_id)
	if status:
		q = q.filter(models.BillingClaim.status == status)
	if patient_id:
		q = q.filter(models.BillingClaim.patient_id == patient_id)
	return q.order_by(models.BillingClaim.created_at.desc(), models.BillingClaim.claim_id.desc()).all()

@router.post("/claims", response_model=ClaimOut, status_code=201)
def create_claim(payload: ClaimIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, payload.patient_id)
	_check_claim_status(payload.status)
	if payload.billed_amount < 0 or payload.paid_amount < 0:
		raise HTTPException(status_code=400, detail="Amounts cannot be negative")
	c = models.BillingClaim(doctor_id=doctor.doctor_id, **payload.model_dump())
	if c.status == "submitted":
		c.submitted_at = models.utcnow()
	db.add(c)
	db.commit()
	db.refresh(c)
	return c

@router.patch("/claims/{claim_id}", response_model=ClaimOut)
def update_claim(claim_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	c = _owned(db, models.BillingClaim, "claim_id", claim_id, doctor, "Claim")
	allowed = set(ClaimIn.model_fields) - {"patient_id"}
	updates = {k: v for k, v in payload.items() if k in allowed}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	merged = ClaimIn.model_validate({**ClaimOut.model_validate(c).model_dump(), **updates})
	_check_claim_status(merged.status)
	for k in updates:
		setattr(c, k, getattr(merged, k))
	if merged.status == "submitted" and not c.submitted_at:
		c.submitted_at = models.utcnow()
	db.commit()
	db.refresh(c)
	return c

@router.delete("/claims/{claim_id}")
def delete_claim(claim_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	c = _owned(db, models.BillingClaim, "claim_id", claim_id, doctor, "Claim")
	db.delete(c)
	db.commit()
	return {"success": True}

# payments

@router.get("/payments", response_model=List[PaymentOut])
def list_payments(status: str | None = None, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.BillingPayment).filter(models.BillingPayment.doctor_id == doctor.doctor_id)
	if status:
		q = q.filter(models.BillingPayment.status == status)
	return q.order_by(models.BillingPayment.created_at.desc(), models.BillingPayment.payment_id.desc()).all()

@router.post("/payments", response_model=PaymentOut, status_code=201)
def create_payment(payload: PaymentIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_check_payment_status(payload.status)
	if payload.amount <= 0:
		raise HTTPException(status_code=400, detail="amount must be positive")
	if payload.patient_id:
		get_owned_patient(db, doctor, payload.patient_id)
	data = payload.model_dump()
	if not data.get("payment_date"):
		data.pop("payment_date")
	p = models.BillingPayment(doctor_id=doctor.doctor_id, **data)
	db.add(p)
	db.commit()
	db.refresh(p)
	return p

@router.patch("/payments/{payment_id}", response_model=PaymentOut)
def update_payment(payment_id: int, status: str = Body(..., embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	p = _owned(db, models.BillingPayment, "payment_id", payment_id, doctor, "Payment")
	_check_payment_status(status)
	p.status = status
	db.commit()
	db.refresh(p)
	return p

@router.delete("/payments/{payment_id}")
def delete_payment(payment_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	p = _owned(db, models.BillingPayment, "payment_id", payment_id, doctor, "Payment")
	db.delete(p)
	db.commit()
	return {"success": True}

@router.get("/summary")
def billing_summary(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	payments = db.query(models.BillingPayment).filter(models.BillingPayment.doctor_id == doctor.doctor_id).all()
	claims = db.query(models.BillingClaim).filter(models.BillingClaim.doctor_id == doctor.doctor_id).all()
	return {**payment_kpis(payments), "claims_by_status": claim_counts(claims)}

# fee schedule

@router.get("/fee-schedule", response_model=List[FeeOut])
def list_fees(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return db.query(models.FeeScheduleItem).filter(models.FeeScheduleItem.doctor_id == doctor.doctor_id).order_by(models.FeeScheduleItem.code).all()

@router.post("/fee-schedule", response_model=FeeOut, status_code=201)
def create_fee(payload: FeeIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	if payload.amount < 0:
		raise HTTPException(status_code=400, detail="amount cannot be negative")
	f = models.FeeScheduleItem(doctor_id=doctor.doctor_id, **payload.model_dump())
	db.add(f)
	try:
		db.commit()
	except IntegrityError:
		db.rollback()
		raise HTTPException(status_code=409, detail=f"Fee code {payload.code} already exists")
	db.refresh(f)
	return f

@router.patch("/fee-schedule/{fee_id}", response_model=FeeOut)
def update_fee(fee_id: int, payload: dict = Body(...), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	f = _owned(db, models.FeeScheduleItem, "fee_id", fee_id, doctor, "Fee")
	updates = {k: v for k, v in payload.items() if k in ("description", "amount", "is_active")}
	if not updates:
		raise HTTPException(status_code=400, detail="No valid fields to update")
	merged = FeeIn.model_validate({**FeeOut.model_validate(f).model_dump(), **updates})
	if merged.amount < 0:
		raise HTTPException(status_code=400, detail="amount cannot be negative")
	for k in updates:
		setattr(f, k, getattr(merged, k))
	db.commit()
	db.refresh(f)
	return f

@router.delete("/fee-schedule/{fee_id}")
def delete_fee(fee_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	f = _owned(db, models.FeeScheduleItem, "fee_id", fee_id, doctor, "Fee")
	db.delete(f)
	db.commit()
	return {"success": True}

# statements

@router.get("/statements", response_model=List[StatementOut])
def list_statements(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.PatientStatement).filter(
		models.PatientStatement.doctor_id == doctor.doctor_id,
		models.PatientStatement.patient_id == patient_id,
	).order_by(models.PatientStatement.statement_date.desc(), models.PatientStatement.statement_id.desc()).all()

@router.post("/statements", response_model=StatementOut, status_code=201)
def create_statement(patient_id: int = Body(..., embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return generate_statement(db, doctor.doctor_id, patient_id)

# eligibility

@router.get("/eligibility", response_model=List[EligibilityOut])
def list_eligibility(patient_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	get_owned_patient(db, doctor, patient_id)
	return db.query(models.InsuranceEligibilityCheck).filter(
		models.InsuranceEligibilityCheck.doctor_id == doctor.doctor_id,
		models.InsuranceEligibilityCheck.patient_id == patient_id,
	).order_by(models.InsuranceEligibilityCheck.checked_at.desc(), models.InsuranceEligibilityCheck.check_id.desc()).all()

@router.post("/eligibility", response_model=EligibilityOut, status_code=201)
def record_eligibility(payload: EligibilityIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	patient = get_owned_patient(db, doctor, payload.patient_id)
	if payload.status not in ("active", "inactive", "unknown"):
		raise HTTPException(status_code=400, detail="status must be one of: active, inactive, unknown")
	ins = patient.insurance
	data = payload.model_dump()
	if ins:
		data["payer"] = data.get("payer") or ins.carrier
		data["member_id"] = data.get("member_id") or ins.member_id
	check = models.InsuranceEligibilityCheck(doctor_id=doctor.doctor_id, **data)
	db.add(check)
	if ins:
		ins.eligibility_status = payload.status
		ins.last_verified_at = models.utcnow()
	db.commit()
	db.refresh(check)
	return check

@router.get("/export/claims.xlsx")
def export_claims(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	rows = db.query(models.BillingClaim).filter(models.BillingClaim.doctor_id == doctor.doctor_id).all()
	patients = {p.patient_id: p for p in db.query(models.Patient).filter(models.Patient.doctor_id == doctor.doctor_id).all()}
	data = []
	for c in rows:
		p = patients.get(c.patient_id)
		data.append({
			"claim_id": c.claim_id,
			"claim_number": c.claim_number,
			"patient": p.full_name if p else None,
			"service_date": c.service_date,
			"cpt_code": c.cpt_code,
			"icd10_codes": c.icd10_codes,
			"payer": c.payer,
			"billed_amount": c.billed_amount,
			"paid_amount": c.paid_amount,
			"status": c.status,
			"submitted_at": c.submitted_at,
		})
	df = pd.DataFrame(data, columns=["claim_id", "claim_number", "patient", "service_date", "cpt_code", "icd10_codes", "payer", "billed_amount", "paid_amount", "status", "submitted_at"])
	output = BytesIO()
	df.to_excel(output, index=False)
	output.seek(0)
	fname = f"claims_{models.utcnow().strftime('%Y%m%d_%H%M%S')}.xlsx"
	return StreamingResponse(output, media_type='application/vnd.openxmlformats-officedocument.spreadsheetml.sheet', headers={"Content-Disposition": f"attachment; filename={fname}"})
