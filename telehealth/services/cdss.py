import json
import re
from datetime import date, datetime
from langchain_groq import ChatGroq
from langchain_core.messages import HumanMessage, SystemMessage
from telehealth.config import settings
from telehealth.logger import get_logger

log = get_logger("cdss")

RISK_LEVELS = ("low_risk", "moderate_risk", "high_risk", "urgent_escalation")

CHIEF_COMPLAINT_PATTERNS = [
	re.compile(r"(?:chief complaint|presents? with|complains? of|concerned about)[:\s]+([^.\n]+)", re.IGNORECASE),
	re.compile(r"(?:reason for visit|main concern)[:\s]+([^.\n]+)", re.IGNORECASE),
]

DURATION_PATTERNS = [
	re.compile(r"\b(\d+)\s*(day|days|week|weeks|month|months|year|years|hour|hours|minute|minutes)\b", re.IGNORECASE),
	re.compile(r"\b(for|since|over|about)\s+(\d+)\s*(day|days|week|weeks|month|months|year|years|hour|hours)\b", re.IGNORECASE),
	re.compile(r"\b(acute|chronic|recent|long-standing)\b", re.IGNORECASE),
]

# checked in order; first hit wins
SEVERITY_KEYWORDS = {
	"severe": ["severe", "intense", "excruciating"],
	"moderate": ["moderate"],
	"mild": ["mild", "slight", "minor"],
}

RED_FLAG_KEYWORDS = [
	"chest pain", "shortness of breath", "difficulty breathing",
	"severe headache", "loss of consciousness", "severe abdominal pain",
	"high fever", "severe bleeding", "severe trauma",
	"neurological symptoms", "severe allergic reaction", "anaphylaxis",
	"severe dehydration", "severe infection", "sepsis",
]

SYSTEM_PROMPT = """You are a Clinical Decision Support System (CDSS) for a telemedicine practice.

Analyze the patient data provided and generate a risk classification, guideline-based
medication suggestions, drug interaction and allergy alerts, SOAP note templates and
clinical pearls. Always check allergies before recommending medications, review the
medication history for duplicates and interactions, and flag contraindications.

Return ONLY JSON with:
{
  "analysis_summary": "...",
  "classification": {"category": "...", "description": "..."},
  "risk_level": "low_risk|moderate_risk|high_risk|urgent_escalation",
  "risk_factors": ["..."],
  "allergy_alerts": ["..."],
  "interaction_alerts": ["..."],
  "templates": {"hpi": "...", "ros_general": "...", "assessment": "...", "plan": "..."},
  "medication_suggestions": {
    "medications": [{"medication": "...", "sig": "...", "quantity": "...", "refills": 0, "notes": "...", "rationale": "...", "guidelines": "..."}],
    "safety_notes": ["..."],
    "alternatives": ["..."]
  },
  "soap_note": {"chief_complaint": "...", "hpi": "...", "ros": "...", "assessment": "...", "plan": "..."},
  "clinical_pearls": ["..."],
  "follow_up_recommendations": "..."
}"""

_llm = None

def _get_llm():
	global _llm
	if _llm is None:
		kwargs = {"model": settings.groq_model, "temperature": 0.3}
		if settings.groq_api_key:
			kwargs["api_key"] = settings.groq_api_key
		_llm = ChatGroq(**kwargs)
	return _llm


def extract_json(text: str) -> dict:
	try:
		return json.loads(text)
	except Exception:
		m = re.search(r"```(?:json)?\s*({[\s\S]*?})\s*```", text, re.IGNORECASE)
		if m:
			cand = m.group(1)
		else:
			s = text.find('{'); e = text.rfind('}')
			cand = text[s:e+1] if s!=-1 and e!=-1 else '{}'
		cand = re.sub(r",\s*([}\]])", r"\1", cand)
		try:
			return json.loads(cand)
		except Exception:
			return {}


def extract_chief_complaint(text: str) -> str:
	if not text:
		return ""
	for pat in CHIEF_COMPLAINT_PATTERNS:
		m = pat.search(text)
		if m and m.group(1):
			return m.group(1).strip()
	return ""


def extract_symptoms(text: str) -> str:
	if not text:
		return ""
	sentences = [s for s in re.split(r"[.!?]\s+", text) if len(s.strip()) > 10]
	return ". ".join(sentences[:3]).strip()


def extract_duration(text: str) -> str:
	if not text:
		return ""
	for pat in DURATION_PATTERNS:
		m = pat.search(text)
		if m:
			return m.group(0)
	return ""


def extract_severity(text: str) -> str:
	lower = (text or "").lower()
	for severity, words in SEVERITY_KEYWORDS.items():
		if any(w in lower for w in words):
			return severity
	return "moderate"


def extract_red_flags(text: str) -> list[str]:
	lower = (text or "").lower()
	return [flag for flag in RED_FLAG_KEYWORDS if flag in lower]


def calculate_age(dob, today: date | None = None) -> int | None:
	if not dob:
		return None
	if isinstance(dob, str):
		try:
			dob = datetime.strptime(dob[:10], "%Y-%m-%d").date()
		except ValueError:
			return None
	today = today or date.today()
	age = today.year - dob.year
	if (today.month, today.day) < (dob.month, dob.day):
		age -= 1
	return age


def build_input(body: dict, appointment, notes: list, patient=None, medication_history: list | None = None, prescriptions: list | None = None) -> dict:
	"""Merge request fields with what the chart already holds; request wins."""
	chief = appointment.chief_complaint or ""
	subjective = ""
	for n in notes:
		if n.note_type in ("chief_complaint", "subjective") and n.content:
			chief = n.content
			subjective = n.content
	all_text = "\n\n".join(t for t in (chief, subjective, appointment.notes, appointment.transcription) if t)

	intake = body.get("patient_intake") or {
		"has_drug_allergies": bool(appointment.has_drug_allergies),
		"allergies": appointment.allergies or "",
		"has_ongoing_medical_issues": bool(appointment.has_ongoing_medical_issues),
		"ongoing_medical_issues_details": appointment.ongoing_medical_issues_details or "",
		"has_recent_surgeries": bool(appointment.has_recent_surgeries),
		"recent_surgeries_details": appointment.recent_surgeries_details or "",
	}
	patient_info = body.get("patient_info") or {}
	if patient and not patient_info:
		patient_info = {
			"date_of_birth": patient.date_of_birth.isoformat() if patient.date_of_birth else None,
			"location": patient.location,
		}
	med_history = body.get("medication_history")
	if med_history is None:
		med_history = [
			{"medication": m.medication, "provider": m.provider or "", "date": m.fill_date.isoformat() if m.fill_date else ""}
			for m in (medication_history or [])
		]
	active_orders = body.get("active_medication_orders")
	if active_orders is None:
		active_orders = [{"medication": p.medication, "sig": p.sig, "status": p.status} for p in (prescriptions or [])]

	return {
		"chief_complaint": body.get("chief_complaint") or chief or extract_chief_complaint(all_text),
		"symptoms": body.get("reason_for_visit") or subjective or extract_symptoms(all_text),
		"duration": extract_duration(all_text),
		"severity": extract_severity(all_text),
		"allergies": intake.get("allergies") or appointment.allergies or "NKDA",
		"red_flags": extract_red_flags(all_text),
		"transcription": appointment.transcription,
		"reason_for_visit": body.get("reason_for_visit") or "",
		"patient_intake": intake,
		"active_problems": body.get("active_problems") or [],
		"resolved_problems": body.get("resolved_problems") or [],
		"medication_history": med_history,
		"prescription_logs": body.get("prescription_logs") or [],
		"active_medication_orders": active_orders,
		"past_medication_orders": body.get("past_medication_orders") or [],
		"current_prescriptions": body.get("current_prescriptions") or [],
		"ros_general": body.get("ros_general") or appointment.ros_general or "",
		"vitals": body.get("vitals") or {"bp": appointment.vitals_bp, "hr": appointment.vitals_hr, "temp": appointment.vitals_temp},
		"patient_info": patient_info,
		"current_soap_notes": body.get("current_soap_notes") or {},
	}


def build_clinical_context(inp: dict) -> str:
	s = []
	s.append("## CHIEF COMPLAINT / REASON FOR VISIT")
	s.append(f"Chief Complaint: {inp.get('chief_complaint') or 'Not specified'}")
	if inp.get("symptoms"):
		s.append(f"Additional Symptoms: {inp['symptoms']}")
	if inp.get("duration"):
		s.append(f"Duration: {inp['duration']}")
	if inp.get("severity"):
		s.append(f"Severity: {inp['severity']}")

	intake = inp.get("patient_intake")
	if intake:
		s.append("\n## PATIENT INTAKE RESPONSES")
		s.append(f"Drug Allergies: {'YES - ' + (intake.get('allergies') or '') if intake.get('has_drug_allergies') else 'None reported (NKDA)'}")
		s.append(f"Ongoing Medical Issues: {'YES - ' + (intake.get('ongoing_medical_issues_details') or '') if intake.get('has_ongoing_medical_issues') else 'None reported'}")
		s.append(f"Recent Surgeries: {'YES - ' + (intake.get('recent_surgeries_details') or '') if intake.get('has_recent_surgeries') else 'None reported'}")

	if inp.get("red_flags"):
		s.append("\n## RED FLAGS IDENTIFIED")
		s.extend(f"⚠️ {flag}" for flag in inp["red_flags"])

	if inp.get("active_problems"):
		s.append("\n## ACTIVE PROBLEMS")
		s.extend(f"- {p}" for p in inp["active_problems"])

	if inp.get("resolved_problems"):
		s.append("\n## RESOLVED PROBLEMS (Historical)")
		s.extend(f"- {p.get('problem')} (resolved: {p.get('resolved_date')})" for p in inp["resolved_problems"])

	if inp.get("current_prescriptions"):
		s.append("\n## PRESCRIPTIONS BEING ORDERED (Current Session)")
		for rx in inp["current_prescriptions"]:
			line = f"- {rx.get('medication')}: {rx.get('sig')} | Qty: {rx.get('qty')} | Refills: {rx.get('refills')}"
			if rx.get("notes"):
				line += f" | Notes: {rx['notes']}"
			s.append(line)

	if inp.get("active_medication_orders"):
		s.append("\n## ACTIVE MEDICATION ORDERS")
		s.extend(f"- {o.get('medication')}: {o.get('sig')} | Status: {o.get('status')}" for o in inp["active_medication_orders"])

	if inp.get("medication_history"):
		s.append("\n## MEDICATION HISTORY")
		s.extend(f"- {m.get('medication')} | Provider: {m.get('provider')} | Date: {m.get('date')}" for m in inp["medication_history"])

	if inp.get("past_medication_orders"):
		s.append("\n## PAST MEDICATION ORDERS")
		s.extend(f"- {o.get('medication')}: {o.get('sig')} | Date: {o.get('date')}" for o in inp["past_medication_orders"])

	if inp.get("prescription_logs"):
		s.append("\n## PRESCRIPTION LOGS")
		s.extend(
			f"- {r.get('date')}: {r.get('medication')} #{r.get('quantity')} @ {r.get('pharmacy')} | Status: {r.get('status')}"
			for r in inp["prescription_logs"]
		)

	if inp.get("ros_general"):
		s.append("\n## REVIEW OF SYSTEMS")
		s.append(inp["ros_general"])

	vitals = inp.get("vitals") or {}
	if vitals.get("bp") or vitals.get("hr") or vitals.get("temp"):
		s.append("\n## VITALS")
		if vitals.get("bp"):
			s.append(f"Blood Pressure: {vitals['bp']}")
		if vitals.get("hr"):
			s.append(f"Heart Rate: {vitals['hr']}")
		if vitals.get("temp"):
			s.append(f"Temperature: {vitals['temp']}")

	info = inp.get("patient_info") or {}
	if info.get("date_of_birth") or info.get("location"):
		s.append("\n## PATIENT DEMOGRAPHICS")
		age = calculate_age(info.get("date_of_birth"))
		if age is not None:
			s.append(f"Age: {age} years old")
		if info.get("location"):
			s.append(f"Location: {info['location']}")

	if inp.get("transcription"):
		s.append("\n## VISIT TRANSCRIPTION")
		s.append(inp["transcription"])

	soap = inp.get("current_soap_notes") or {}
	if soap.get("subjective") or soap.get("assessment_plan"):
		s.append("\n## CURRENT SOAP NOTES (In Progress)")
		if soap.get("subjective"):
			s.append(f"Subjective: {soap['subjective']}")
		if soap.get("ros_general"):
			s.append(f"ROS: {soap['ros_general']}")
		if soap.get("assessment_plan"):
			s.append(f"Assessment/Plan: {soap['assessment_plan']}")

	return "\n".join(s)


def _allergy_alert(inp: dict) -> str | None:
	intake = inp.get("patient_intake") or {}
	if intake.get("has_drug_allergies") and intake.get("allergies"):
		return f"⚠️ PATIENT HAS DRUG ALLERGIES: {intake['allergies']}"
	return None


def validate_and_enrich(resp: dict, inp: dict) -> dict:
	alerts = list(resp.get("allergy_alerts") or [])
	alert = _allergy_alert(inp)
	if alert and alert not in alerts:
		alerts.insert(0, alert)
	risk = resp.get("risk_level")
	return {
		"classification": resp.get("classification") or {"category": "General", "description": "Requires clinical review"},
		"risk_level": risk if risk in RISK_LEVELS else "moderate_risk",
		"risk_factors": resp.get("risk_factors") or [],
		"allergy_alerts": alerts,
		"interaction_alerts": resp.get("interaction_alerts") or [],
		"templates": resp.get("templates") or {"hpi": "", "ros_general": "", "assessment": "", "plan": ""},
		"medication_suggestions": resp.get("medication_suggestions") or {"medications": [], "safety_notes": []},
		"soap_note": resp.get("soap_note") or {"chief_complaint": inp.get("chief_complaint") or "", "hpi": "", "ros": "", "assessment": "", "plan": ""},
		"clinical_pearls": resp.get("clinical_pearls") or [],
		"follow_up_recommendations": resp.get("follow_up_recommendations") or "",
		"analysis_summary": resp.get("analysis_summary") or "",
	}


def fallback_response(inp: dict) -> dict:
	alert = _allergy_alert(inp)
	allergy_notes = [alert] if alert else []
	flags = inp.get("red_flags") or []
	chief = inp.get("chief_complaint") or ""
	symptoms = inp.get("symptoms") or ""
	return {
		"classification": {"category": "General", "description": "Unable to generate classification. Please review manually."},
		"risk_level": "high_risk" if flags else "moderate_risk",
		"risk_factors": flags if flags else ["Insufficient information"],
		"allergy_alerts": allergy_notes,
		"interaction_alerts": [],
		"templates": {
			"hpi": f"Patient presents with: {chief or 'symptoms'}. {symptoms}",
			"ros_general": "Review of systems should be completed based on chief complaint.",
			"assessment": "Clinical assessment pending provider review.",
			"plan": "Treatment plan to be determined by provider.",
		},
		"medication_suggestions": {"medications": [], "safety_notes": allergy_notes},
		"soap_note": {
			"chief_complaint": chief,
			"hpi": f"Patient presents with: {chief or 'symptoms'}. {symptoms} Duration: {inp.get('duration') or 'Not specified'}. Severity: {inp.get('severity') or 'Not specified'}.",
			"ros": "Review of systems to be completed.",
			"assessment": "Clinical assessment pending.",
			"plan": "Treatment plan pending provider review.",
		},
		"clinical_pearls": [],
		"follow_up_recommendations": "Follow up as clinically indicated.",
		"analysis_summary": "CDSS analysis could not be generated. Please review patient data manually.",
	}


def generate(inp: dict) -> dict:
	context = build_clinical_context(inp)
	user_msg = f"Please analyze this patient case:\n\n{context}\n\nStructured Data: {json.dumps(inp, default=str)}"
	try:
		raw = _get_llm().invoke([SystemMessage(content=SYSTEM_PROMPT), HumanMessage(content=user_msg)]).content
	except Exception:
		log.exception("CDSS generation failed, using fallback")
		return fallback_response(inp)
	data = extract_json(raw)
	if not data:
		log.warning("CDSS output was not JSON, using fallback")
		return fallback_response(inp)
	return validate_and_enrich(data, inp)
