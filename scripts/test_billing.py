from datetime import datetime
from io import BytesIO
import pandas as pd
from telehealth import models
from telehealth.services.billing import payment_kpis, claim_counts


def test_payment_kpis():
	now = datetime(2030, 3, 31)
	payments = [
		models.BillingPayment(amount=100.0, status="captured", payment_date=datetime(2030, 3, 20)),
		models.BillingPayment(amount=51.0, status="captured", payment_date=datetime(2030, 1, 5)),
		models.BillingPayment(amount=40.0, status="pending", payment_date=datetime(2030, 3, 25)),
		models.BillingPayment(amount=10.0, status="failed", payment_date=datetime(2030, 3, 25)),
	]
	kpis = payment_kpis(payments, now)
	assert kpis["total_revenue"] == 151.0
	assert kpis["monthly_revenue"] == 100.0
	assert kpis["pending_amount"] == 50.0
	assert kpis["pending_count"] == 2
	assert kpis["average_per_visit"] == 76
	assert kpis["captured_count"] == 2
	assert payment_kpis([], now)["average_per_visit"] == 0


def test_claim_counts():
	claims = [models.BillingClaim(status="draft"), models.BillingClaim(status="paid"), models.BillingClaim(status="paid")]
	counts = claim_counts(claims)
	assert counts["paid"] == 2
	assert counts["denied"] == 0


def test_claims_crud(client, headers, patient):
	r = client.post("/billing/claims", json={"patient_id": patient.patient_id, "cpt_code": "99213", "billed_amount": 110}, headers=headers)
	assert r.status_code == 201
	claim = r.json()
	assert claim["status"] == "draft"
	assert claim["submitted_at"] is None

	r = client.patch(f"/billing/claims/{claim['claim_id']}", json={"status": "submitted"}, headers=headers)
	assert r.json()["submitted_at"] is not None
	assert client.patch(f"/billing/claims/{claim['claim_id']}", json={"status": "lost"}, headers=headers).status_code == 400
	assert client.patch(f"/billing/claims/{claim['claim_id']}", json={"patient_id": 3}, headers=headers).status_code == 400
	assert client.post("/billing/claims", json={"patient_id": patient.patient_id, "billed_amount": -1}, headers=headers).status_code == 400

	assert len(client.get("/billing/claims?status=submitted", headers=headers).json()) == 1
	client.delete(f"/billing/claims/{claim['claim_id']}", headers=headers)
	assert client.get("/billing/claims", headers=headers).json() == []


def test_payments_and_summary(client, headers, patient):
	assert client.post("/billing/payments", json={"amount": 0}, headers=headers).status_code == 400
	p = client.post("/billing/payments", json={"amount": 80, "patient_id": patient.patient_id}, headers=headers).json()
	assert p["status"] == "pending"
	client.post("/billing/payments", json={"amount": 120, "status": "captured"}, headers=headers)
	r = client.patch(f"/billing/payments/{p['payment_id']}", json={"status": "captured"}, headers=headers)
	assert r.json()["status"] == "captured"
	assert client.patch(f"/billing/payments/{p['payment_id']}", json={"status": "settled"}, headers=headers).status_code == 400

	client.post("/billing/claims", json={"patient_id": patient.patient_id, "status": "denied"}, headers=headers)
	summary = client.get("/billing/summary", headers=headers).json()
	assert summary["total_revenue"] == 200.0
	assert summary["monthly_revenue"] == 200.0
	assert summary["average_per_visit"] == 100
	assert summary["pending_count"] == 0
	assert summary["claims_by_status"]["denied"] == 1

	assert client.delete(f"/billing/payments/{p['payment_id']}", headers=headers).json() == {"success": True}
	assert len(client.get("/billing/payments", headers=headers).json()) == 1
	assert client.delete(f"/billing/payments/{p['payment_id']}", headers=headers).status_code == 404


def test_fee_schedule(client, headers):
	r = client.post("/billing/fee-schedule", json={"code": "99213", "description": "Est. patient", "amount": 110}, headers=headers)
	assert r.status_code == 201
	fee_id = r.json()["fee_id"]
	assert client.post("/billing/fee-schedule", json={"code": "99213", "amount": 90}, headers=headers).status_code == 409
	r = client.patch(f"/billing/fee-schedule/{fee_id}", json={"amount": 120, "code": "X"}, headers=headers)
	assert r.json()["amount"] == 120
	assert r.json()["code"] == "99213"
	assert client.patch(f"/billing/fee-schedule/{fee_id}", json={"amount": -5}, headers=headers).status_code == 400
	client.delete(f"/billing/fee-schedule/{fee_id}", headers=headers)
	assert client.get("/billing/fee-schedule", headers=headers).json() == []


def test_fee_codes_are_per_doctor(client, headers, other_doctor, auth_for):
	client.post("/billing/fee-schedule", json={"code": "99213", "amount": 110}, headers=headers)
	r = client.post("/billing/fee-schedule", json={"code": "99213", "amount": 95}, headers=auth_for(other_doctor.email))
	assert r.status_code == 201


def test_statement_from_open_claims(client, headers, patient):
	pid = patient.patient_id
	client.post("/billing/claims", json={"patient_id": pid, "status": "submitted", "billed_amount": 150, "service_date": "2030-01-07"}, headers=headers)
	client.post("/billing/claims", json={"patient_id": pid, "status": "partial", "billed_amount": 100, "paid_amount": 60, "service_date": "2030-01-14"}, headers=headers)
	client.post("/billing/claims", json={"patient_id": pid, "status": "paid", "billed_amount": 90, "paid_amount": 90}, headers=headers)
	client.post("/billing/claims", json={"patient_id": pid, "status": "draft", "billed_amount": 500}, headers=headers)

	r = client.post("/billing/statements", json={"patient_id": pid}, headers=headers)
	assert r.status_code == 201
	st = r.json()
	assert st["total_billed"] == 250.0
	assert st["total_paid"] == 60.0
	assert st["balance_due"] == 190.0
	assert [i["balance"] for i in st["line_items"]] == [150.0, 40.0]
	assert len(client.get(f"/billing/statements?patient_id={pid}", headers=headers).json()) == 1


def test_eligibility_updates_insurance(client, headers, patient):
	client.post(f"/insurance/{patient.patient_id}", json={"carrier": "Aetna", "member_id": "A1"}, headers=headers)
	r = client.post("/billing/eligibility", json={"patient_id": patient.patient_id, "status": "active", "copay": 25}, headers=headers)
	assert r.status_code == 201
	assert r.json()["payer"] == "Aetna"
	assert r.json()["member_id"] == "A1"
	assert client.get(f"/insurance/{patient.patient_id}", headers=headers).json()["eligibility_status"] == "active"
	assert client.post("/billing/eligibility", json={"patient_id": patient.patient_id, "status": "maybe"}, headers=headers).status_code == 400
	assert len(client.get(f"/billing/eligibility?patient_id={patient.patient_id}", headers=headers).json()) == 1


def test_claims_export(client, headers, patient):
	client.post("/billing/claims", json={"patient_id": patient.patient_id, "cpt_code": "99213", "billed_amount": 110}, headers=headers)
	r = client.get("/billing/export/claims.xlsx", headers=headers)
	assert r.status_code == 200
	assert "attachment; filename=claims_" in r.headers["content-disposition"]
	df = pd.read_excel(BytesIO(r.content))
	assert list(df["patient"]) == ["Jane Doe"]
	assert list(df["cpt_code"].astype(str)) == ["99213"]
