from datetime import datetime
from io import BytesIO
import pandas as pd
import pytest
from telehealth import models
from telehealth.integrations import twilio
from telehealth.services.booking import provider_local_to_utc, utc_to_provider_local

TZ = "America/Phoenix"


@pytest.fixture
def add_appt(db, doctor, patient):
	def _add(when: datetime, status="accepted", **extra):
		a = models.Appointment(doctor_id=doctor.doctor_id, patient_id=patient.patient_id, requested_date_time=when, visit_type="phone", status=status, **extra)
		db.add(a)
		db.commit()
		return a.appointment_id
	return _add


def test_notifications(client, headers, doctor, other_doctor, auth_for, db):
	for i in range(3):
		db.add(models.Notification(doctor_id=doctor.doctor_id, notification_type="info", title=f"n{i}", message="hello"))
	db.commit()
	notes = client.get("/notifications", headers=headers).json()
	assert [n["title"] for n in notes] == ["n2", "n1", "n0"]
	assert len(client.get("/notifications?limit=2", headers=headers).json()) == 2

	nid = notes[0]["notification_id"]
	assert client.post(f"/notifications/{nid}/read", headers=auth_for(other_doctor.email)).status_code == 404
	assert client.post(f"/notifications/{nid}/read", headers=headers).json()["is_read"] is True
	assert len(client.get("/notifications?unread_only=true", headers=headers).json()) == 2
	assert client.post("/notifications/read-all", headers=headers).json() == {"success": True, "updated": 2}
	assert client.get("/notifications?unread_only=true", headers=headers).json() == []


def test_stats(client, headers, add_appt, doctor, patient, db):
	today = utc_to_provider_local(models.utcnow(), TZ).date()
	add_appt(provider_local_to_utc(today.year, today.month, today.day, 0, 30, TZ))
	add_appt(provider_local_to_utc(today.year, today.month, today.day, 0, 10, TZ), status="completed")
	add_appt(provider_local_to_utc(today.year, today.month, today.day, 1, 0, TZ), status="cancelled")
	later = add_appt(datetime(2099, 1, 5, 17, 0), status="pending")
	add_appt(datetime(2099, 1, 6, 17, 0), status="cancelled")
	db.add(models.PatientMessage(doctor_id=doctor.doctor_id, patient_id=patient.patient_id, sender_type="patient", content="?", is_read=False))
	db.add(models.PatientMessage(doctor_id=doctor.doctor_id, patient_id=patient.patient_id, sender_type="doctor", content="!", is_read=False))
	db.add(models.Notification(doctor_id=doctor.doctor_id, notification_type="info", title="t"))
	db.commit()

	s = client.get("/dashboard/stats", headers=headers).json()
	assert s["appointments_today"] == 1
	assert s["pending_appointments"] == 1
	assert s["completed_this_month"] == 1
	assert s["total_patients"] == 1
	assert s["unread_messages"] == 1
	assert s["unread_notifications"] == 1
	assert [u["appointment_id"] for u in s["upcoming"]] == [later]
	assert s["upcoming"][0]["local_time"] == "2099-01-05T10:00:00"
	assert s["upcoming"][0]["patient_name"] == "Jane Doe"


def test_busiest_day_uses_provider_dates(client, headers, add_appt):
	# 05:00 UTC on the 8th is still the 7th in Phoenix
	add_appt(datetime(2030, 1, 7, 17, 0))
	add_appt(datetime(2030, 1, 8, 5, 0))
	add_appt(datetime(2030, 1, 8, 17, 0))
	add_appt(datetime(2030, 1, 9, 17, 0), status="cancelled")
	add_appt(datetime(2030, 1, 9, 18, 0), status="rejected")

	r = client.get("/dashboard/busiest?start_date=2030-01-06&end_date=2030-01-10", headers=headers)
	assert r.json() == {"date": "2030-01-07", "count": 2}
	assert client.get("/dashboard/busiest?start_date=2030-02-01&end_date=2030-02-02", headers=headers).json() == {"date": None, "count": 0}
	assert client.get("/dashboard/busiest?start_date=2030-01-10&end_date=2030-01-06", headers=headers).status_code == 400
	assert client.get("/dashboard/count?on=2030-01-07", headers=headers).json() == {"date": "2030-01-07", "count": 2}
	assert client.get("/dashboard/count?on=2030-01-09", headers=headers).json()["count"] == 2


def test_busiest_day_tie_goes_to_earliest(client, headers, add_appt):
	add_appt(datetime(2030, 1, 9, 17, 0))
	add_appt(datetime(2030, 1, 8, 17, 0))
	r = client.get("/dashboard/busiest?start_date=2030-01-01&end_date=2030-01-31", headers=headers)
	assert r.json() == {"date": "2030-01-08", "count": 1}


def test_admin_export(client, admin_headers, headers, add_appt, patient):
	client.post(f"/insurance/{patient.patient_id}", json={"carrier": "Aetna", "member_id": "A1"}, headers=headers)
	add_appt(datetime(2030, 1, 7, 17, 0), reason="Follow-up")
	add_appt(datetime(2030, 1, 8, 17, 0), status="cancelled")
	assert client.get("/admin/export/appointments.xlsx", headers=headers).status_code == 403

	r = client.get("/admin/export/appointments.xlsx?status=accepted", headers=admin_headers)
	assert r.status_code == 200
	assert r.headers["content-type"] == "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
	df = pd.read_excel(BytesIO(r.content))
	assert len(df) == 1
	row = df.iloc[0]
	assert row["doctor"] == "Asha Ahuja"
	assert row["carrier"] == "Aetna"
	assert pd.Timestamp(row["local_time"]) == pd.Timestamp("2030-01-07 10:00:00")


def test_doctor_approval(client, admin_headers, headers, other_doctor):
	url = f"/admin/doctors/{other_doctor.doctor_id}/approval"
	assert client.patch(url, json={"is_approved": False}, headers=headers).status_code == 403
	assert client.patch(url, json={"is_approved": False}, headers=admin_headers).json()["is_approved"] is False
	assert client.patch(url, json={"is_approved": True}, headers=admin_headers).json()["is_approved"] is True
	assert client.patch("/admin/doctors/999/approval", json={"is_approved": True}, headers=admin_headers).status_code == 404


def test_reminders(client, headers, add_appt, monkeypatch):
	sent = []
	monkeypatch.setattr(twilio, "send_sms", lambda to, body: sent.append((to, body)) or (True, {"sid": "SM1", "status": "queued"}))
	appt_id = add_appt(datetime(2030, 1, 7, 17, 0))
	r = client.post(f"/reminders/{appt_id}", json={"channel": "sms"}, headers=headers)
	assert r.status_code == 200
	assert r.json()["scheduled"] == 3
	assert r.json()["send_at"] == ["2030-01-05T17:00:00", "2030-01-06T17:00:00", "2030-01-07T15:00:00"]
	# eager mode runs the tasks right away
	assert len(sent) == 3
	assert sent[0] == ("+16025550100", "Reminder: your phone appointment with Dr. Ahuja is on Jan 07 at 10:00 AM")


def test_reminder_validation(client, headers, add_appt):
	done = add_appt(datetime(2030, 1, 7, 17, 0), status="completed")
	assert client.post(f"/reminders/{done}", json={"channel": "sms"}, headers=headers).status_code == 400
	ok = add_appt(datetime(2030, 1, 8, 17, 0))
	assert client.post(f"/reminders/{ok}", json={"channel": "fax"}, headers=headers).status_code == 400
	assert client.post("/reminders/999", json={}, headers=headers).status_code == 404
	past = add_appt(datetime(2001, 1, 1, 17, 0))
	assert client.post(f"/reminders/{past}", json={"channel": "email"}, headers=headers).json()["scheduled"] == 0
