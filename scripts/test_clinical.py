from telehealth.services.soap_notes import notes_from_form, split_assessment_plan


def test_split_assessment_plan():
	assert split_assessment_plan("Viral URI\n\nRest, fluids\n\nReturn if worse") == {
		"assessment": "Viral URI",
		"plan": "Rest, fluids\n\nReturn if worse",
	}
	assert split_assessment_plan("Rest and fluids") == {"plan": "Rest and fluids"}
	assert split_assessment_plan("   \n\n ") == {}


def test_notes_from_form():
	notes = notes_from_form(" Cough x3 days ", "Negative except cough", None)
	assert notes == {"chief_complaint": "Cough x3 days", "subjective": "Cough x3 days", "ros": "Negative except cough"}
	assert notes_from_form("", "  ", None) == {}


def test_soap_notes_upsert(book, client, headers):
	appt_id = book().json()["appointment"]["appointment_id"]
	r = client.put(f"/clinical-notes/{appt_id}", json={
		"chief_complaint": "Sore throat",
		"assessment_plan": "Strep pharyngitis\n\nAmoxicillin 500mg",
	}, headers=headers)
	assert r.status_code == 200
	assert {n["note_type"] for n in r.json()} == {"chief_complaint", "subjective", "assessment", "plan"}

	client.put(f"/clinical-notes/{appt_id}", json={"chief_complaint": "Sore throat, fever"}, headers=headers)
	notes = client.get(f"/clinical-notes/{appt_id}", headers=headers).json()
	by_type = {n["note_type"]: n["content"] for n in notes}
	# one row per type, latest content wins
	assert len(notes) == 4
	assert by_type["chief_complaint"] == "Sore throat, fever"
	assert by_type["plan"] == "Amoxicillin 500mg"
	assert client.put(f"/clinical-notes/{appt_id}", json={}, headers=headers).json() == []
	assert client.get("/clinical-notes/9999", headers=headers).status_code == 404


def test_chart_sign_locks_notes(book, client, headers):
	appt_id = book().json()["appointment"]["appointment_id"]
	client.put(f"/clinical-notes/{appt_id}", json={"chief_complaint": "Sore throat"}, headers=headers)
	r = client.post(f"/clinical-notes/{appt_id}/sign", headers=headers)
	assert r.status_code == 200
	assert r.json()["chart_status"] == "signed"
	assert r.json()["chart_signed_by"] == "Asha Ahuja"
	assert r.json()["is_locked"] is True

	r = client.put(f"/clinical-notes/{appt_id}", json={"chief_complaint": "Changed"}, headers=headers)
	assert r.status_code == 409
	assert r.json()["detail"]["current_status"] == "signed"
	assert client.post(f"/clinical-notes/{appt_id}/sign", headers=headers).status_code == 409

	r = client.post(f"/clinical-notes/{appt_id}/unlock", headers=headers)
	assert r.json()["chart_status"] == "draft"
	assert r.json()["chart_signed_at"] is None
	assert client.put(f"/clinical-notes/{appt_id}", json={"chief_complaint": "Changed"}, headers=headers).status_code == 200
	assert client.post(f"/clinical-notes/{appt_id}/unlock", headers=headers).status_code == 409


def test_chart_close_and_addenda(book, client, headers, other_doctor, auth_for):
	appt_id = book().json()["appointment"]["appointment_id"]
	url = f"/clinical-notes/{appt_id}"
	# draft charts can be neither closed nor amended
	assert client.post(f"{url}/close", headers=headers).status_code == 409
	assert client.post(f"{url}/addenda", json={"text": "Labs back normal"}, headers=headers).status_code == 409

	client.post(f"{url}/sign", headers=headers)
	r = client.post(f"{url}/close", headers=headers)
	assert r.json()["chart_status"] == "closed"
	assert r.json()["chart_closed_at"] is not None
	assert client.post(f"{url}/unlock", headers=headers).status_code == 409
	assert client.put(url, json={"chief_complaint": "x"}, headers=headers).status_code == 409

	assert client.post(f"{url}/addenda", json={"text": "ok"}, headers=headers).status_code == 400
	assert client.post(f"{url}/addenda", json={"text": "Wrong dose", "addendum_type": "correction"}, headers=headers).status_code == 400
	assert client.post(f"{url}/addenda", json={"text": "Labs back", "addendum_type": "memo"}, headers=headers).status_code == 400
	r = client.post(f"{url}/addenda", json={"text": " Labs back normal "}, headers=headers)
	assert r.status_code == 201
	assert r.json()["text"] == "Labs back normal"
	assert r.json()["created_by"] == "Asha Ahuja"
	client.post(f"{url}/addenda", json={"text": "Dose is 250mg", "addendum_type": "correction", "reason": "Transcription error"}, headers=headers)

	assert [a["addendum_type"] for a in client.get(f"{url}/addenda", headers=headers).json()] == ["addendum", "correction"]
	assert client.get(f"/appointments/{appt_id}", headers=headers).json()["chart_status"] == "amended"
	assert client.post(f"{url}/sign", headers=auth_for(other_doctor.email)).status_code == 404


def test_medication_lifecycle_is_audited(client, headers, patient):
	r = client.post("/medications", json={
		"patient_id": patient.patient_id, "medication_name": "  Lisinopril ", "dosage": "10mg",
	}, headers=headers)
	assert r.status_code == 201
	med = r.json()
	assert med["medication_name"] == "Lisinopril"
	assert med["route"] == "oral"
	assert med["status"] == "active"

	r = client.patch(f"/medications/{med['medication_id']}", json={"dosage": "20mg"}, headers=headers)
	assert r.json()["dosage"] == "20mg"
	client.patch(f"/medications/{med['medication_id']}", json={"status": "discontinued"}, headers=headers)

	audit = client.get(f"/medications/{med['medication_id']}/audit", headers=headers).json()
	assert [a["action"] for a in audit] == ["create", "update", "discontinue"]
	assert audit[1]["previous_values"]["dosage"] == "10mg"
	assert audit[1]["new_values"] == {"dosage": "20mg"}
	assert audit[0]["actor_email"] == "doc@example.com"

	assert client.delete(f"/medications/{med['medication_id']}", headers=headers).json() == {"success": True}
	assert client.get(f"/medications?patient_id={patient.patient_id}", headers=headers).json() == []
	# soft-deleted rows are gone from every route
	assert client.patch(f"/medications/{med['medication_id']}", json={"dosage": "5mg"}, headers=headers).status_code == 404


def test_medication_validation(client, headers, patient):
	assert client.post("/medications", json={"patient_id": patient.patient_id, "medication_name": "   "}, headers=headers).status_code == 400
	med = client.post("/medications", json={"patient_id": patient.patient_id, "medication_name": "Metformin"}, headers=headers).json()
	assert client.patch(f"/medications/{med['medication_id']}", json={"medication_name": " "}, headers=headers).status_code == 400
	assert client.patch(f"/medications/{med['medication_id']}", json={"is_deleted": True}, headers=headers).status_code == 400
	assert client.post("/medications", json={"patient_id": 999, "medication_name": "Metformin"}, headers=headers).status_code == 404


def test_medication_history(client, headers, patient):
	pid = patient.patient_id
	client.post(f"/medications/history?patient_id={pid}", json={"medication": "Amoxicillin", "fill_date": "2029-05-01", "pharmacy": "CVS"}, headers=headers)
	client.post(f"/medications/history?patient_id={pid}", json={"medication": "Ibuprofen", "fill_date": "2029-08-01"}, headers=headers)
	rows = client.get(f"/medications/history?patient_id={pid}", headers=headers).json()
	assert [r["medication"] for r in rows] == ["Ibuprofen", "Amoxicillin"]
	assert rows[1]["source"] == "manual"


def test_allergies(client, headers, patient):
	pid = patient.patient_id
	assert client.post("/allergies", json={"patient_id": pid, "allergen_name": " "}, headers=headers).status_code == 400
	a = client.post("/allergies", json={"patient_id": pid, "allergen_name": " Penicillin ", "severity": "severe"}, headers=headers).json()
	assert a["allergen_name"] == "Penicillin"
	assert a["status"] == "active"
	r = client.patch(f"/allergies/{a['allergy_id']}", json={"status": "resolved"}, headers=headers)
	assert r.json()["status"] == "resolved"
	assert client.patch(f"/allergies/{a['allergy_id']}", json={"allergen_name": ""}, headers=headers).status_code == 400
	assert len(client.get(f"/allergies?patient_id={pid}", headers=headers).json()) == 1
	client.delete(f"/allergies/{a['allergy_id']}", headers=headers)
	assert client.get(f"/allergies?patient_id={pid}", headers=headers).json() == []


def test_prescriptions(book, client, headers, patient):
	appt_id = book().json()["appointment"]["appointment_id"]
	r = client.post("/prescriptions", json={"patient_id": patient.patient_id, "medication": "Amoxicillin"}, headers=headers)
	assert r.status_code == 400
	assert r.json()["detail"]["missing_fields"] == ["sig", "quantity"]

	body = {"patient_id": patient.patient_id, "appointment_id": appt_id, "medication": "Amoxicillin 500mg", "sig": "1 tab TID x10d", "quantity": 30}
	r = client.post("/prescriptions", json=body, headers=headers)
	assert r.status_code == 201
	rx = r.json()["prescription"]
	assert rx["status"] == "pending"
	assert rx["quantity"] == "30"
	assert rx["refills"] == 0
	assert rx["sent_at"] is None

	assert client.post("/prescriptions", json={**body, "patient_id": 999}, headers=headers).status_code == 404
	assert client.post("/prescriptions", json={**body, "appointment_id": 999}, headers=headers).status_code == 404
	assert client.post("/prescriptions", json={**body, "status": "lost"}, headers=headers).status_code == 400

	r = client.patch(f"/prescriptions/{rx['prescription_id']}", json={"status": "sent"}, headers=headers)
	assert r.json()["prescription"]["sent_at"] is not None
	assert client.patch(f"/prescriptions/{rx['prescription_id']}", json={"doctor_id": 5}, headers=headers).status_code == 400

	assert client.get("/prescriptions", headers=headers).status_code == 400
	listed = client.get(f"/prescriptions?appointment_id={appt_id}", headers=headers).json()["prescriptions"]
	assert [p["prescription_id"] for p in listed] == [rx["prescription_id"]]
	client.delete(f"/prescriptions/{rx['prescription_id']}", headers=headers)
	assert client.get(f"/prescriptions?patient_id={patient.patient_id}", headers=headers).json() == {"prescriptions": []}
