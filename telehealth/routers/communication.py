from fastapi import APIRouter, Body, Depends, HTTPException, Request
from fastapi.responses import PlainTextResponse, Response
from sqlalchemy.orm import Session
from typing import List
from urllib.parse import quote
from telehealth.config import settings
from telehealth.db import get_db
from telehealth import models
from telehealth.auth import require_doctor
from telehealth.routers.patients import get_owned_patient
from telehealth.schemas import CommunicationLogOut
from telehealth.integrations import daily, twilio
from telehealth.integrations.errors import IntegrationError
from telehealth.logger import get_logger

router = APIRouter(prefix="/communication", tags=["communication"])
log = get_logger("communication")


def _log_communication(db: Session, **fields) -> models.CommunicationLog | None:
	try:
		row = models.CommunicationLog(**fields)
		db.add(row)
		db.commit()
		db.refresh(row)
		return row
	except Exception:
		log.exception("Failed to save %s to communication history", fields.get("channel"))
		db.rollback()
		return None


def _patient_id(db: Session, doctor: models.Doctor, patient_id: int | None) -> int | None:
	if patient_id is None:
		return None
	return get_owned_patient(db, doctor, patient_id).patient_id

@router.post("/sms")
def send_sms(
	to: str | None = Body(None),
	message: str | None = Body(None),
	patient_id: int | None = Body(None),
	db: Session = Depends(get_db),
	doctor: models.Doctor = Depends(require_doctor),
):
	if not to or not message:
		raise HTTPException(status_code=400, detail="Phone number and message are required")
	number = twilio.normalize_phone(to)
	if not twilio.is_valid_phone(number):
		raise HTTPException(status_code=400, detail="Invalid phone number format. Please include country code (e.g., +1234567890)")
	pid = _patient_id(db, doctor, patient_id)
	ok, detail = twilio.send_sms(number, message)
	if not ok:
		raise HTTPException(status_code=500, detail=f"Failed to send SMS: {detail}")
	_log_communication(
		db,
		doctor_id=doctor.doctor_id,
		patient_id=pid,
		channel="sms",
		direction="outbound",
		to_number=number,
		from_number=settings.twilio_phone_number,
		message=message,
		status=detail.get("status") or "sent",
		external_id=detail.get("sid"),
	)
	return {"success": True, "message_sid": detail.get("sid"), "status": detail.get("status")}

@router.post("/call")
def start_call(to: str | None = Body(None), patient_id: int | None = Body(None), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	if not to:
		raise HTTPException(status_code=400, detail="Phone number is required")
	number = twilio.normalize_phone(to)
	if not twilio.is_valid_phone(number):
		raise HTTPException(status_code=400, detail="Invalid phone number format. Please include country code (e.g., +1234567890)")
	pid = _patient_id(db, doctor, patient_id)
	twiml_url = f"{settings.public_base_url}/communication/twiml/call?to={quote(number)}"
	ok, detail = twilio.start_call(number, twiml_url)
	if not ok:
		raise HTTPException(status_code=500, detail=f"Failed to create call: {detail}")
	_log_communication(
		db,
		doctor_id=doctor.doctor_id,
		patient_id=pid,
		channel="call",
		direction="outbound",
		to_number=number,
		from_number=settings.twilio_phone_number,
		status=detail.get("status"),
		external_id=detail.get("sid"),
	)
	return {"success": True, "call_sid": detail.get("sid"), "status": detail.get("status")}

@router.get("/twilio-token")
def twilio_token(doctor: models.Doctor = Depends(require_doctor)):
	token = twilio.voice_token(f"doctor-{doctor.doctor_id}")
	if not token:
		raise HTTPException(status_code=500, detail="Voice calling is not configured")
	return {"token": token, "identity": f"doctor-{doctor.doctor_id}"}

@router.api_route("/twiml/call", methods=["GET", "POST"])
async def twiml_call(request: Request):
	to = request.query_params.get("To") or request.query_params.get("to")
	if request.method == "POST":
		form = await request.form()
		to = form.get("To") or to
	if not to:
		return Response(content=twilio.say_twiml("No number provided. Please try again."), media_type="text/xml")
	if not settings.twilio_phone_number:
		log.error("TWILIO_PHONE_NUMBER not set, cannot dial %s", to)
		return Response(content=twilio.say_twiml("Call configuration error. Please contact support."), media_type="text/xml")
	callback = f"{settings.public_base_url}/communication/twiml/recording-status"
	xml = twilio.dial_twiml(twilio.normalize_phone(to), settings.twilio_phone_number, callback)
	return Response(content=xml, media_type="text/xml", headers={"Cache-Control": "no-cache"})

@router.post("/twiml/recording-status")
async def recording_status(request: Request, db: Session = Depends(get_db)):
	form = await request.form()
	call_sid = form.get("CallSid")
	url = form.get("RecordingUrl")
	status = form.get("RecordingStatus")
	duration = form.get("RecordingDuration")
	if status == "completed" and url and call_sid:
		rows = db.query(models.CommunicationLog).filter(models.CommunicationLog.external_id == call_sid).all()
		for row in rows:
			row.recording_url = url
			row.duration_seconds = int(duration) if duration and str(duration).isdigit() else None
		db.commit()
		if not rows:
			log.info("Recording for unknown call %s", call_sid)
	# Twilio retries anything that is not a 200
	return PlainTextResponse("OK")

@router.post("/video")
def start_video(patient_id: int | None = Body(None, embed=True), db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	pid = _patient_id(db, doctor, patient_id)
	try:
		room = daily.create_room()
		token = daily.create_meeting_token(room["name"], user_name=doctor.full_name, is_owner=True)
	except IntegrationError as e:
		raise HTTPException(status_code=500, detail=f"Failed to create video room: {e.message}")
	_log_communication(
		db,
		doctor_id=doctor.doctor_id,
		patient_id=pid,
		channel="video",
		direction="outbound",
		status="created",
		external_id=room["name"],
		meeting_url=room["url"],
	)
	return {"success": True, "room_name": room["name"], "url": room["url"], "owner_token": token}

@router.get("/history", response_model=List[CommunicationLogOut])
def history(patient_id: int | None = None, limit: int = 50, db: Session = Depends(get_db), doctor: models.Doctor = Depends(require_doctor)):
	q = db.query(models.CommunicationLog).filter(models.CommunicationLog.doctor_id == doctor.doctor_id)
	if patient_id:
		q = q.filter(models.CommunicationLog.patient_id == patient_id)
	return q.order_by(models.CommunicationLog.created_at.desc(), models.CommunicationLog.log_id.desc()).limit(max(1, min(limit, 500))).all()
