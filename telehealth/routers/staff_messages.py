from fastapi import APIRouter, Body, Depends, HTTPException
from sqlalchemy.orm import Session
from sqlalchemy import func as sa_func, select
from datetime import datetime
from typing import List
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.schemas import StaffConversationIn, StaffMessageIn, StaffMessageOut
from telehealth.logger import get_logger

router = APIRouter(prefix="/staff-messages", tags=["staff-messages"])
log = get_logger("staff_messages")

CONVERSATION_TYPES = ("direct", "group", "channel", "patient")
EPOCH = datetime(1970, 1, 1)
PREVIEW_CHARS = 100
NOTIFICATION_BODY_CHARS = 200


def _staff(db: Session, doctor: models.Doctor, staff_id: int) -> models.StaffMember:
	s = db.query(models.StaffMember).filter(
		models.StaffMember.staff_id == staff_id,
		models.StaffMember.doctor_id == doctor.doctor_id,
	).first()
	if not s:
		raise HTTPException(status_code=404, detail="Staff member not found")
	return s


def _membership(db: Session, conversation_id: int, staff_id: int) -> models.StaffConversationParticipant:
	p = db.query(models.StaffConversationParticipant).join(models.StaffConversation).filter(
		models.StaffConversationParticipant.conversation_id == conversation_id,
		models.StaffConversationParticipant.staff_id == staff_id,
	).first()
	if not p:
		raise HTTPException(status_code=404, detail="Conversation not found")
	return p


def _conversation_out(c: models.StaffConversation, me: models.StaffConversationParticipant | None = None) -> dict:
	return {
		"conversation_id": c.conversation_id,
		"conversation_type": c.conversation_type,
		"name": c.name,
		"description": c.description,
		"patient_id": c.patient_id,
		"is_archived": c.is_archived,
		"last_message_at": c.last_message_at,
		"last_message_preview": c.last_message_preview,
		"created_at": c.created_at,
		"participants": [
			{"staff_id": p.staff_id, "name": p.staff.full_name if p.staff else None, "role": p.role}
			for p in c.participants
		],
		"my_last_read_at": me.last_read_at if me else None,
		"is_muted": me.is_muted if me else False,
	}

@router.get("/staff")
def list_staff(db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	rows = db.query(models.StaffMember).filter(
		models.StaffMember.doctor_id == doctor.doctor_id,
		models.StaffMember.active == True,
	).order_by(models.StaffMember.first_name).all()
	return [{"staff_id": s.staff_id, "name": s.full_name, "role": s.role, "email": s.email} for s in rows]

@router.post("/staff", status_code=201)
def add_staff(
	first_name: str = Body(...),
	last_name: str | None = Body(None),
	email: str | None = Body(None),
	role: str = Body("assistant"),
	db: Session = Depends(get_db),
	doctor: models.Doctor = Depends(require_doctor),
):
	s = models.StaffMember(doctor_id=doctor.doctor_id, first_name=first_name, last_name=last_name, email=email, role=role)
	db.add(s)
	db.commit()
	db.refresh(s)
	return {"staff_id": s.staff_id, "name": s.full_name, "role": s.role, "email": s.email}

@router.get("/conversations")
def list_conversations(staff_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_staff(db, doctor, staff_id)
	mine = db.query(models.StaffConversationParticipant).join(models.StaffConversation).filter(
		models.StaffConversationParticipant.staff_id == staff_id,
		models.StaffConversation.doctor_id == doctor.doctor_id,
		models.StaffConversation.is_archived == False,
	).all()
	convs = [_conversation_out(p.conversation, p) for p in mine]
	convs.sort(key=lambda c: c["last_message_at"] or c["created_at"] or EPOCH, reverse=True)
	return {"conversations": convs}

@router.get("/conversations/{conversation_id}/messages", response_model=List[StaffMessageOut])
def list_messages(conversation_id: int, staff_id: int, before: datetime | None = None, limit: int = 50, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_staff(db, doctor, staff_id)
	_membership(db, conversation_id, staff_id)
	q = db.query(models.StaffMessage).filter(
		models.StaffMessage.conversation_id == conversation_id,
		models.StaffMessage.is_deleted == False,
	)
	if before:
		q = q.filter(models.StaffMessage.created_at < before)
	page = q.order_by(models.StaffMessage.created_at.desc(), models.StaffMessage.message_id.desc()).limit(max(1, min(limit, 200))).all()
	page.reverse()
	return page

@router.get("/unread")
def unread_counts(staff_id: int, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_staff(db, doctor, staff_id)
	mine = db.query(models.StaffConversationParticipant).join(models.StaffConversation).filter(
		models.StaffConversationParticipant.staff_id == staff_id,
		models.StaffConversation.doctor_id == doctor.doctor_id,
	).all()
	counts = {}
	for p in mine:
		counts[p.conversation_id] = db.query(sa_func.count(models.StaffMessage.message_id)).filter(
			models.StaffMessage.conversation_id == p.conversation_id,
			models.StaffMessage.created_at > (p.last_read_at or EPOCH),
			models.StaffMessage.sender_id != staff_id,
			models.StaffMessage.is_deleted == False,
		).scalar()
	return {"unread": counts, "total": sum(counts.values())}

@router.post("/conversations", status_code=201)
def create_conversation(payload: StaffConversationIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	creator = _staff(db, doctor, payload.staff_id)
	if payload.conversation_type not in CONVERSATION_TYPES or not payload.participant_ids:
		raise HTTPException(status_code=400, detail="conversation_type and participant_ids required")
	for pid in payload.participant_ids:
		_staff(db, doctor, pid)

	if payload.conversation_type == "direct" and len(payload.participant_ids) == 1:
		other = payload.participant_ids[0]
		existing = db.query(models.StaffConversation).filter(
			models.StaffConversation.doctor_id == doctor.doctor_id,
			models.StaffConversation.conversation_type == "direct",
			models.StaffConversation.is_archived == False,
		).all()
		for c in existing:
			ids = {p.staff_id for p in c.participants}
			if ids == {creator.staff_id, other} and len(c.participants) == 2:
				me = next(p for p in c.participants if p.staff_id == creator.staff_id)
				return {"conversation": _conversation_out(c, me), "existing": True}

	conv = models.StaffConversation(
		doctor_id=doctor.doctor_id,
		conversation_type=payload.conversation_type,
		name=payload.name,
		description=payload.description,
		patient_id=payload.patient_id,
		created_by=creator.staff_id,
	)
	db.add(conv)
	db.flush()
	members = [creator.staff_id] + [i for i in dict.fromkeys(payload.participant_ids) if i != creator.staff_id]
	for sid in members:
		db.add(models.StaffConversationParticipant(
			conversation_id=conv.conversation_id,
			staff_id=sid,
			role="admin" if sid == creator.staff_id else "member",
		))
	content = "Conversation started" if payload.conversation_type == "direct" else f"Created {payload.conversation_type}: {payload.name or 'Unnamed'}"
	db.add(models.StaffMessage(
		conversation_id=conv.conversation_id,
		sender_id=creator.staff_id,
		content=content,
		message_type="system",
	))
	db.commit()
	db.refresh(conv)
	me = next(p for p in conv.participants if p.staff_id == creator.staff_id)
	return {"conversation": _conversation_out(conv, me), "existing": False}

@router.post("/conversations/{conversation_id}/messages", response_model=StaffMessageOut, status_code=201)
def send_message(conversation_id: int, payload: StaffMessageIn, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	sender = _staff(db, doctor, payload.staff_id)
	_membership(db, conversation_id, sender.staff_id)
	content = payload.content.strip()
	if not content:
		raise HTTPException(status_code=400, detail="content is required")
	msg = models.StaffMessage(
		conversation_id=conversation_id,
		sender_id=sender.staff_id,
		content=content,
		message_type=payload.message_type or "text",
		reply_to_id=payload.reply_to_id,
		message_metadata=payload.metadata or {},
	)
	db.add(msg)
	db.flush()
	conv = db.query(models.StaffConversation).filter(models.StaffConversation.conversation_id == conversation_id).first()
	conv.last_message_at = msg.created_at
	conv.last_message_preview = content[:PREVIEW_CHARS]
	others = db.query(models.StaffConversationParticipant).filter(
		models.StaffConversationParticipant.conversation_id == conversation_id,
		models.StaffConversationParticipant.staff_id != sender.staff_id,
	).all()
	for p in others:
		db.add(models.StaffNotification(
			doctor_id=doctor.doctor_id,
			recipient_id=p.staff_id,
			notification_type="message",
			title=f"New message from {sender.full_name}",
			body=content[:NOTIFICATION_BODY_CHARS],
			link=f"/staff-hub?conv={conversation_id}",
			reference_type="message",
			reference_id=msg.message_id,
		))
	db.commit()
	db.refresh(msg)
	return msg

@router.post("/conversations/{conversation_id}/read")
def mark_read(conversation_id: int, staff_id: int = Body(..., embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_staff(db, doctor, staff_id)
	me = _membership(db, conversation_id, staff_id)
	now = models.utcnow()
	me.last_read_at = now
	message_ids = select(models.StaffMessage.message_id).where(models.StaffMessage.conversation_id == conversation_id)
	db.query(models.StaffNotification).filter(
		models.StaffNotification.recipient_id == staff_id,
		models.StaffNotification.notification_type == "message",
		models.StaffNotification.reference_type == "message",
		models.StaffNotification.reference_id.in_(message_ids),
		models.StaffNotification.is_read == False,
	).update({models.StaffNotification.is_read: True, models.StaffNotification.read_at: now}, synchronize_session=False)
	db.commit()
	return {"success": True}

@router.get("/notifications")
def staff_notifications(staff_id: int, unread_only: bool = False, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	_staff(db, doctor, staff_id)
	q = db.query(models.StaffNotification).filter(models.StaffNotification.recipient_id == staff_id)
	if unread_only:
		q = q.filter(models.StaffNotification.is_read == False)
	rows = q.order_by(models.StaffNotification.created_at.desc(), models.StaffNotification.notification_id.desc()).limit(100).all()
	return [
		{
			"notification_id": n.notification_id,
			"notification_type": n.notification_type,
			"title": n.title,
			"body": n.body,
			"link": n.link,
			"reference_id": n.reference_id,
			"is_read": n.is_read,
			"created_at": n.created_at,
		}
		for n in rows
	]
