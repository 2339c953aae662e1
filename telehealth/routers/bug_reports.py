from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import current_claims, is_admin, require_admin, require_doctor
from telehealth.schemas import BugReportIn, BugReportOut
from telehealth.integrations import daily, storage
from telehealth.integrations.errors import IntegrationError
from telehealth.workers.celery_app import notify_admin_task
from telehealth.logger import get_logger

router = APIRouter(prefix="/bug-reports", tags=["bug-reports"])
log = get_logger("bug_reports")

STATUSES = ("new", "investigating", "fixed", "wont_fix")
ADMIN_PATCHABLE = (
	"status", "admin_notes", "admin_read",
	"admin_response_video_url", "admin_response_video_name",
	"live_session_status", "live_session_room_url",
)


def _report(db: Session, bug_report_id: int) -> models.BugReport:
	r = db.query(models.BugReport).filter(models.BugReport.bug_report_id == bug_report_id).first()
	if not r:
		raise HTTPException(status_code=404, detail="Bug report not found")
	return r

@router.post("", response_model=BugReportOut, status_code=201)
def submit(payload: BugReportIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	r = models.BugReport(doctor_id=doctor.doctor_id, **payload.model_dump())
	db.add(r)
	db.commit()
	db.refresh(r)
	try:
		notify_admin_task.delay(
			f"Bug report from {doctor.full_name}",
			f"{payload.description}\n\nPage: {payload.page_url or '-'}\nAttachments: {len(payload.attachments)}",
		)
	except Exception:
		log.exception("Could not queue admin notification for bug report %s", r.bug_report_id)
	return r

@router.get("/mine", response_model=List[BugReportOut])
def my_reports(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	return db.query(models.BugReport).filter(
		models.BugReport.doctor_id == doctor.doctor_id
	).order_by(models.BugReport.created_at.desc(), models.BugReport.bug_report_id.desc()).all()

@router.get("", response_model=List[BugReportOut])
def list_reports(status: str | None = None, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	q = db.query(models.BugReport)
	if status:
		q = q.filter(models.BugReport.status == status)
	return q.order_by(models.BugReport.created_at.desc(), models.BugReport.bug_report_id.desc()).all()

@router.get("/{bug_report_id}", response_model=BugReportOut)
def get_report(bug_report_id: int, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	return _report(db, bug_report_id)

@router.patch("/{bug_report_id}", response_model=BugReportOut)
def update_report(bug_report_id: int, payload: dict = Body(...), db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	r = _report(db, bug_report_id)
	updates = {k: v for k, v in payload.items() if k in ADMIN_PATCHABLE}
	if payload.get("mark_as_read"):
		updates["admin_read"] = True
	if "status" in updates and updates["status"] not in STATUSES:
		raise HTTPException(status_code=400, detail=f"status must be one of: {', '.join(STATUSES)}")
	for k, v in updates.items():
		setattr(r, k, v)
	r.updated_at = models.utcnow()
	db.commit()
	db.refresh(r)
	return r

@router.delete("/{bug_report_id}")
def delete_report(bug_report_id: int, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	r = _report(db, bug_report_id)
	removed = 0
	for att in r.attachments or []:
		path = storage.object_path_from_url(att.get("url") if isinstance(att, dict) else None)
		if not path:
			continue
		ok, detail = storage.remove_object(path)
		if ok:
			removed += 1
		else:
			log.warning("Could not remove attachment %s of bug report %s: %s", path, bug_report_id, detail)
	db.delete(r)
	db.commit()
	return {"success": True, "attachments_removed": removed}

@router.post("/{bug_report_id}/live-session")
def live_session(bug_report_id: int, db: Session = Depends(get_db), claims: dict = Depends(current_claims)):
	r = _report(db, bug_report_id)
	if is_admin(claims):
		requested_by = "admin"
	else:
		d = db.query(models.Doctor).filter(models.Doctor.doctor_id == r.doctor_id).first()
		if not d or (d.email or "").lower() != (claims.get("email") or "").lower():
			raise HTTPException(status_code=403, detail="Not allowed")
		requested_by = "doctor"

	if r.live_session_status == "active" and r.live_session_room_url:
		return {"success": True, "room_url": r.live_session_room_url, "status": "active", "message": "Session already active"}

	name = f"bug-support-{bug_report_id}-{int(models.utcnow().timestamp())}"
	try:
		room = daily.create_room(name=name, recording=False, privacy="public")
	except IntegrationError as e:
		raise HTTPException(status_code=500, detail=f"Failed to create support session: {e.message}")
	now = models.utcnow()
	r.live_session_status = "requested"
	r.live_session_room_url = room["url"]
	r.live_session_requested_by = requested_by
	r.live_session_requested_at = now
	r.updated_at = now
	db.commit()
	return {"success": True, "room_url": room["url"], "status": "requested", "requested_by": requested_by}
