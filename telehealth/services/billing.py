from datetime import datetime, timedelta, date
from sqlalchemy.orm import Session
from telehealth import models

CLAIM_STATUSES = ("draft", "submitted", "paid", "partial", "denied")
PAYMENT_STATUSES = ("pending", "captured", "refunded", "failed")
OPEN_CLAIM_STATUSES = ("submitted", "partial", "denied")


def payment_kpis(payments: list[models.BillingPayment], now: datetime | None = None) -> dict:
	now = now or models.utcnow()
	cutoff = now - timedelta(days=30)
	captured = [p for p in payments if p.status == "captured"]
	pending = [p for p in payments if p.status != "captured"]
	total = sum(p.amount or 0 for p in captured)
	last_30 = sum(p.amount or 0 for p in captured if (p.payment_date or p.created_at) and (p.payment_date or p.created_at) >= cutoff)
	return {
		"total_revenue": round(total, 2),
		"monthly_revenue": round(last_30, 2),
		"pending_amount": round(sum(p.amount or 0 for p in pending), 2),
		"pending_count": len(pending),
		"average_per_visit": round(total / len(captured)) if captured else 0,
		"captured_count": len(captured),
	}


def claim_counts(claims: list[models.BillingClaim]) -> dict:
	counts = {s: 0 for s in CLAIM_STATUSES}
	for c in claims:
		counts[c.status] = counts.get(c.status, 0) + 1
	return counts


def generate_statement(db: Session, doctor_id: int, patient_id: int, statement_date: date | None = None) -> models.PatientStatement:
	claims = db.query(models.BillingClaim).filter(
		models.BillingClaim.doctor_id == doctor_id,
		models.BillingClaim.patient_id == patient_id,
		models.BillingClaim.status.in_(OPEN_CLAIM_STATUSES),
	).order_by(models.BillingClaim.service_date).all()
	items = []
	billed = paid = 0.0
	for c in claims:
		balance = round((c.billed_amount or 0) - (c.paid_amount or 0), 2)
		if balance <= 0:
			continue
		billed += c.billed_amount or 0
		paid += c.paid_amount or 0
		items.append({
			"claim_id": c.claim_id,
			"service_date": c.service_date.isoformat() if c.service_date else None,
			"cpt_code": c.cpt_code,
			"billed": c.billed_amount or 0,
			"paid": c.paid_amount or 0,
			"balance": balance,
		})
	st = models.PatientStatement(
		doctor_id=doctor_id,
		patient_id=patient_id,
		statement_date=statement_date or date.today(),
		total_billed=round(billed, 2),
		total_paid=round(paid, 2),
		balance_due=round(billed - paid, 2),
		line_items=items,
	)
	db.add(st)
	db.commit()
	db.refresh(st)
	return st
