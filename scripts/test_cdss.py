import json
from datetime import date
import pytest
from telehealth import models
from telehealth.services import cdss


class FakeLLM:
	def __init__(self, content=None, error=None):
		self.content = content
		self.error = error
		self.calls = []

	def invoke(self, messages):
		self.calls.append(messages)
		if self.error:
			raise self.error
		return type("Reply", (), {"content": self.content})()


@pytest.fixture
def llm(monkeypatch):
	fake = FakeLLM(content="```json\n" + json.dumps({
		"analysis_summary": "Likely viral pharyngitis",
		"risk_level": "low_risk",
		"clinical_pearls": ["Centor score 1"],
	}) + "\n```")
	monkeypatch.setattr(cdss, "_get_llm", lambda: fake)
	return fake


def test_extractors():
	text = "Patient presents with sore throat for 3 days. Pain is severe when swallowing. Denies chest pain? No."
	assert cdss.extract_chief_complaint(text) == "sore throat for 3 days"
	assert cdss.extract_duration(text) == "3 days"
	assert cdss.extract_severity(text) == "severe"
	assert cdss.extract_severity("nothing notable") == "moderate"
	assert cdss.extract_red_flags(text) == ["chest pain"]
	assert cdss.extract_chief_complaint("") == ""


def test_extract_json_tolerates_fences_and_trailing_commas():
	assert cdss.extract_json('{"a": 1}') == {"a": 1}
	assert cdss.extract_json('Here you go:\n```json\n{"a": [1, 2,],}\n```') == {"a": [1, 2]}
	assert cdss.extract_json("no json here") == {}


def test_calculate_age():
	assert cdss.calculate_age("1990-06-15", today=date(2030, 6, 14)) == 39
	assert cdss.calculate_age(date(1990, 6, 15), today=date(2030, 6, 15)) == 40
	assert cdss.calculate_age("June 1990") is None
	assert cdss.calculate_age(None) is None


def test_build_input_prefers_request_fields():
	appt = models.Appointment(
		chief_complaint="Cough", notes="Chronic cough, mild.", has_drug_allergies=True, allergies="Penicillin",
		vitals_bp="120/80",
	)
	notes = [models.ClinicalNote(note_type="subjective", content="Dry cough for 2 weeks")]
	inp = cdss.build_input({}, appt, notes)
	assert inp["chief_complaint"] == "Dry cough for 2 weeks"
	assert inp["duration"] == "2 weeks"
	assert inp["severity"] == "mild"
	assert inp["allergies"] == "Penicillin"
	assert inp["vitals"]["bp"] == "120/80"
	assert inp["medication_history"] == []

	inp = cdss.build_input({"chief_complaint": "Wheezing", "medication_history": [{"medication": "Albuterol"}]}, appt, notes)
	assert inp["chief_complaint"] == "Wheezing"
	assert inp["medication_history"] == [{"medication": "Albuterol"}]


def test_context_lists_sections():
	inp = {
		"chief_complaint": "Headache",
		"red_flags": ["severe headache"],
		"patient_intake": {"has_drug_allergies": True, "allergies": "Sulfa"},
		"vitals": {"bp": "150/95"},
	}
	ctx = cdss.build_clinical_context(inp)
	assert "Chief Complaint: Headache" in ctx
	assert "Drug Allergies: YES - Sulfa" in ctx
	assert "## RED FLAGS IDENTIFIED" in ctx
	assert "Blood Pressure: 150/95" in ctx
	assert "## VITALS" in ctx


def test_validate_and_enrich():
	inp = {"chief_complaint": "Rash", "patient_intake": {"has_drug_allergies": True, "allergies": "Latex"}}
	out = cdss.validate_and_enrich({"risk_level": "catastrophic"}, inp)
	assert out["risk_level"] == "moderate_risk"
	assert out["allergy_alerts"] == ["⚠️ PATIENT HAS DRUG ALLERGIES: Latex"]
	assert out["soap_note"]["chief_complaint"] == "Rash"


def test_fallback_escalates_red_flags():
	out = cdss.fallback_response({"chief_complaint": "Chest pain", "red_flags": ["chest pain"]})
	assert out["risk_level"] == "high_risk"
	assert out["risk_factors"] == ["chest pain"]
	assert cdss.fallback_response({})["risk_factors"] == ["Insufficient information"]


def test_generate_falls_back_when_model_fails(monkeypatch):
	monkeypatch.setattr(cdss, "_get_llm", lambda: FakeLLM(error=RuntimeError("groq down")))
	assert cdss.generate({"chief_complaint": "Fever"})["analysis_summary"].startswith("CDSS analysis could not be generated")
	monkeypatch.setattr(cdss, "_get_llm", lambda: FakeLLM(content="I cannot help with that"))
	assert cdss.generate({})["risk_level"] == "moderate_risk"


def test_generate_endpoint(book, client, headers, patient, llm):
	assert client.post("/cdss/generate", json={}, headers=headers).status_code == 400
	assert client.post("/cdss/generate", json={"appointment_id": 999}, headers=headers).status_code == 404

	appt_id = book().json()["appointment"]["appointment_id"]
	client.put(f"/clinical-notes/{appt_id}", json={"chief_complaint": "Sore throat"}, headers=headers)
	client.post(f"/medications/history?patient_id={patient.patient_id}", json={"medication": "Amoxicillin", "fill_date": "2029-05-01"}, headers=headers)

	r = client.post("/cdss/generate", json={"appointment_id": appt_id}, headers=headers)
	assert r.status_code == 200
	assert r.json()["analysis_summary"] == "Likely viral pharyngitis"
	assert r.json()["clinical_pearls"] == ["Centor score 1"]
	sent = llm.calls[0][1].content
	assert "Chief Complaint: Sore throat" in sent
	assert "Amoxicillin" in sent

	stored = client.get(f"/cdss/{appt_id}", headers=headers).json()
	assert stored["response"]["risk_level"] == "low_risk"


def test_auto_generate_runs_once(book, client, headers, llm, db):
	appt_id = book().json()["appointment"]["appointment_id"]
	assert client.get(f"/cdss/{appt_id}", headers=headers).status_code == 404
	first = client.post("/cdss/generate", json={"appointment_id": appt_id, "auto_generate": True}, headers=headers).json()
	again = client.post("/cdss/generate", json={"appointment_id": appt_id, "auto_generate": True}, headers=headers).json()
	assert again == first
	assert len(llm.calls) == 1
	assert db.get(models.Appointment, appt_id).cdss_auto_generated is True

	# manual requests always regenerate
	client.post("/cdss/generate", json={"appointment_id": appt_id}, headers=headers)
	assert len(llm.calls) == 2
	assert db.query(models.CdssResponse).count() == 2
