from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_admin, require_doctor
from telehealth.schemas import AdminConversationOut, AdminMessageOut, DoctorOut
from telehealth.integrations.notifications import notify_doctor

router = APIRouter(prefix="/admin-messaging", tags=["admin-messaging"])

PREVIEW_CHARS = 200
NOTIFICATION_CHARS = 100
MESSAGE_LIMIT = 200


def _conversation(db: Session, conversation_id: int) -> models.AdminConversation:
	c = db.query(models.AdminConversation).filter(models.AdminConversation.conversation_id == conversation_id).first()
	if not c:
		raise HTTPException(status_code=404, detail="Conversation not found")
	return c


def _messages(db: Session, conversation_id: int):
	return db.query(models.AdminMessage).filter(
		models.AdminMessage.conversation_id == conversation_id
	).order_by(models.AdminMessage.created_at, models.AdminMessage.message_id).limit(MESSAGE_LIMIT).all()


def _post(db: Session, conv: models.AdminConversation, sender_type: str, sender_name: str | None, content: str) -> models.AdminMessage:
	content = (content or "").strip()
	if not content:
		raise HTTPException(status_code=400, detail="content is required")
	msg = models.AdminMessage(
		conversation_id=conv.conversation_id,
		sender_type=sender_type,
		sender_name=sender_name,
		content=content,
		message_type="text",
	)
	db.add(msg)
	db.flush()
	conv.last_message = content[:PREVIEW_CHARS]
	conv.last_message_at = msg.created_at
	if sender_type == "admin":
		notify_doctor(
			db, conv.doctor_id, "admin_message", "New message from Admin", content[:NOTIFICATION_CHARS],
			link="/doctor/staff-hub", data={"conversation_id": conv.conversation_id}, commit=False,
		)
	else:
		# admin side only tracks that something is unread
		conv.unread_count = 1
	db.commit()
	db.refresh(msg)
	return msg

# admin side

@router.get("/conversations", response_model=List[AdminConversationOut])
def list_conversations(db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	return db.query(models.AdminConversation).filter(
		models.AdminConversation.is_archived == False
	).order_by(models.AdminConversation.last_message_at.desc(), models.AdminConversation.conversation_id.desc()).all()

@router.get("/conversations/{conversation_id}/messages", response_model=List[AdminMessageOut])
def list_messages(conversation_id: int, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	_conversation(db, conversation_id)
	return _messages(db, conversation_id)

@router.get("/doctors", response_model=List[DoctorOut])
def approved_doctors(db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	return db.query(models.Doctor).filter(models.Doctor.is_approved == True).order_by(models.Doctor.first_name).all()

@router.post("/conversations", response_model=AdminConversationOut)
def create_conversation(doctor_id: int = Body(..., embed=True), db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	existing = db.query(models.AdminConversation).filter(models.AdminConversation.doctor_id == doctor_id).first()
	if existing:
		return existing
	d = db.query(models.Doctor).filter(models.Doctor.doctor_id == doctor_id).first()
	if not d:
		raise HTTPException(status_code=404, detail="Doctor not found")
	conv = models.AdminConversation(doctor_id=d.doctor_id, doctor_name=d.full_name, doctor_specialty=d.specialty or "")
	db.add(conv)
	db.flush()
	notify_doctor(
		db, d.doctor_id, "admin_message", "New message from Admin", "Admin started a new conversation with you",
		link="/doctor/staff-hub", data={"conversation_id": conv.conversation_id}, commit=False,
	)
	db.commit()
	db.refresh(conv)
	return conv

@router.post("/conversations/{conversation_id}/messages", response_model=AdminMessageOut, status_code=201)
def admin_send(conversation_id: int, content: str = Body(..., embed=True), db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	conv = _conversation(db, conversation_id)
	return _post(db, conv, "admin", admin.get("email") or "Admin", content)

@router.post("/conversations/{conversation_id}/read")
def admin_mark_read(conversation_id: int, db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	conv = _conversation(db, conversation_id)
	db.query(models.AdminMessage).filter(
		models.AdminMessage.conversation_id == conversation_id,
		models.AdminMessage.sender_type == "doctor",
	).update({models.AdminMessage.is_read: True}, synchronize_session=False)
	conv.unread_count = 0
	db.commit()
	return {"success": True}

@router.post("/conversations/{conversation_id}/pin", response_model=AdminConversationOut)
def toggle_pin(conversation_id: int, is_pinned: bool = Body(..., embed=True), db: Session = Depends(get_db), admin: dict = Depends(require_admin)):
	conv = _conversation(db, conversation_id)
	conv.is_pinned = is_pinned
	db.commit()
	db.refresh(conv)
	return conv

# doctor side

def _my_conversation(db: Session, doctor: models.Doctor) -> models.AdminConversation:
	c = db.query(models.AdminConversation).filter(models.AdminConversation.doctor_id == doctor.doctor_id).first()
	if not c:
		raise HTTPException(status_code=404, detail="No support conversation yet")
	return c

@router.get("/me")
def my_conversation(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	c = db.query(models.AdminConversation).filter(models.AdminConversation.doctor_id == doctor.doctor_id).first()
	if not c:
		return {"conversation": None, "messages": []}
	return {
		"conversation": AdminConversationOut.model_validate(c),
		"messages": [AdminMessageOut.model_validate(m) for m in _messages(db, c.conversation_id)],
	}

@router.post("/me/messages", response_model=AdminMessageOut, status_code=201)
def doctor_send(content: str = Body(..., embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	conv = db.query(models.AdminConversation).filter(models.AdminConversation.doctor_id == doctor.doctor_id).first()
	if not conv:
		conv = models.AdminConversation(doctor_id=doctor.doctor_id, doctor_name=doctor.full_name, doctor_specialty=doctor.specialty or "")
		db.add(conv)
		db.flush()
	return _post(db, conv, "doctor", doctor.full_name, content)

@router.post("/me/read")
def doctor_mark_read(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	conv = _my_conversation(db, doctor)
	db.query(models.AdminMessage).filter(
		models.AdminMessage.conversation_id == conv.conversation_id,
		models.AdminMessage.sender_type == "admin",
	).update({models.AdminMessage.is_read: True}, synchronize_session=False)
	db.commit()
	return {"success": True}
