import re
from sqlalchemy.orm import Session
from telehealth import models
from telehealth.logger import get_logger

log = get_logger("charts")

NOTE_TYPES = ("chief_complaint", "subjective", "objective", "ros", "assessment", "plan")
ADDENDUM_TYPES = ("addendum", "late_entry", "correction")


class ChartStateError(ValueError):
	def __init__(self, message: str, current_status: str):
		super().__init__(message)
		self.current_status = current_status


def split_assessment_plan(text: str) -> dict:
	"""First blank-line separated block is the assessment, the rest the plan."""
	parts = [p.strip() for p in re.split(r"\n\s*\n", text.strip()) if p.strip()]
	if not parts:
		return {}
	if len(parts) >= 2:
		return {"assessment": parts[0], "plan": "\n\n".join(parts[1:])}
	return {"plan": parts[0]}


def notes_from_form(chief_complaint: str | None = None, ros_general: str | None = None, assessment_plan: str | None = None) -> dict:
	out = {}
	if chief_complaint and chief_complaint.strip():
		out["chief_complaint"] = chief_complaint.strip()
		out["subjective"] = chief_complaint.strip()
	if ros_general and ros_general.strip():
		out["ros"] = ros_general.strip()
	if assessment_plan and assessment_plan.strip():
		out.update(split_assessment_plan(assessment_plan))
	return out


def upsert_notes(db: Session, appointment: models.Appointment, notes: dict) -> list[models.ClinicalNote]:
	if appointment.is_locked:
		raise ChartStateError("Chart is locked. Unlock it before editing notes.", appointment.chart_status or "draft")
	existing = {
		n.note_type: n
		for n in db.query(models.ClinicalNote).filter(models.ClinicalNote.appointment_id == appointment.appointment_id).all()
	}
	saved = []
	for note_type, content in notes.items():
		row = existing.get(note_type)
		if row:
			row.content = content
			row.updated_at = models.utcnow()
		else:
			row = models.ClinicalNote(
				appointment_id=appointment.appointment_id,
				patient_id=appointment.patient_id,
				note_type=note_type,
				content=content,
			)
			db.add(row)
		saved.append(row)
	db.commit()
	for row in saved:
		db.refresh(row)
	return saved


def _require_status(appointment: models.Appointment, action: str, allowed: tuple):
	current = appointment.chart_status or "draft"
	if current not in allowed:
		raise ChartStateError(f'Cannot {action} chart. Current status is "{current}".', current)


def sign_chart(db: Session, appointment: models.Appointment, signed_by: str) -> models.Appointment:
	_require_status(appointment, "sign", ("draft",))
	appointment.chart_status = "signed"
	appointment.chart_signed_at = models.utcnow()
	appointment.chart_signed_by = signed_by
	appointment.is_locked = True
	db.commit()
	db.refresh(appointment)
	log.info("Chart %s signed by %s", appointment.appointment_id, signed_by)
	return appointment


def unlock_chart(db: Session, appointment: models.Appointment, unlocked_by: str) -> models.Appointment:
	"""Only a signed chart goes back to draft; closed charts take addenda instead."""
	_require_status(appointment, "unlock", ("signed",))
	appointment.chart_status = "draft"
	appointment.chart_signed_at = None
	appointment.chart_signed_by = None
	appointment.is_locked = False
	db.commit()
	db.refresh(appointment)
	log.info("Chart %s unlocked by %s", appointment.appointment_id, unlocked_by)
	return appointment


def close_chart(db: Session, appointment: models.Appointment, closed_by: str) -> models.Appointment:
	_require_status(appointment, "close", ("signed",))
	appointment.chart_status = "closed"
	appointment.chart_closed_at = models.utcnow()
	appointment.chart_closed_by = closed_by
	appointment.is_locked = True
	db.commit()
	db.refresh(appointment)
	log.info("Chart %s closed by %s", appointment.appointment_id, closed_by)
	return appointment


def add_addendum(db: Session, appointment: models.Appointment, text: str, author: str, addendum_type: str = "addendum", reason: str | None = None) -> models.ChartAddendum:
	if addendum_type not in ADDENDUM_TYPES:
		raise ValueError(f"addendum_type must be one of: {', '.join(ADDENDUM_TYPES)}")
	text = (text or "").strip()
	if len(text) < 3:
		raise ValueError("Addendum text is required (minimum 3 characters)")
	reason = (reason or "").strip() or None
	if addendum_type == "correction" and (not reason or len(reason) < 5):
		raise ValueError("A reason is required for corrections (minimum 5 characters)")
	_require_status(appointment, "amend", ("closed", "amended"))
	row = models.ChartAddendum(
		appointment_id=appointment.appointment_id,
		addendum_type=addendum_type,
		text=text,
		reason=reason,
		created_by=author,
	)
	db.add(row)
	appointment.chart_status = "amended"
	db.commit()
	db.refresh(row)
	return row
