from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import NotificationOut

router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("", response_model=List[NotificationOut])
def list_notifications(unread_only: bool = False, limit: int = 50, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.Notification).filter(models.Notification.doctor_id == doctor.doctor_id)
	if unread_only:
		q = q.filter(models.Notification.is_read == False)
	return q.order_by(models.Notification.created_at.desc(), models.Notification.notification_id.desc()).limit(max(1, min(limit, 200))).all()

@router.post("/{notification_id}/read", response_model=NotificationOut)
def mark_read(notification_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	n = db.query(models.Notification).filter(
		models.Notification.notification_id == notification_id,
		models.Notification.doctor_id == doctor.doctor_id,
	).first()
	if not n:
		raise HTTPException(status_code=404, detail="Notification not found")
	n.is_read = True
	db.commit()
	db.refresh(n)
	return n

@router.post("/read-all")
def mark_all_read(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	updated = db.query(models.Notification).filter(
		models.Notification.doctor_id == doctor.doctor_id,
		models.Notification.is_read == False,
	).update({models.Notification.is_read: True}, synchronize_session=False)
	db.commit()
	return {"success": True, "updated": updated}
