from celery import Celery
from telehealth.config import settings
from telehealth.integrations.notifications import send_email, send_email_with_attachment
from telehealth.integrations import twilio
from telehealth.logger import get_logger

log = get_logger("worker")

celery_app = Celery(
	"telehealth",
	broker=settings.celery_broker_url,
	backend=settings.celery_result_backend,
)
celery_app.conf.task_always_eager = settings.celery_task_always_eager
celery_app.conf.task_eager_propagates = False


@celery_app.task

def send_reminder_task(channel: str, to_value: str | None, message: str) -> dict:
	if not to_value:
		return {"status": "skipped", "channel": channel, "to": None}
	if channel == "sms":
		ok, detail = twilio.send_sms(twilio.normalize_phone(to_value), message)
	elif channel == "email":
		ok, detail = send_email(to_value, "Appointment update", message), None
	else:
		return {"status": "unsupported", "channel": channel, "to": to_value}
	if not ok:
		log.warning("Reminder via %s to %s not delivered: %s", channel, to_value, detail)
	return {"status": "sent" if ok else "failed", "channel": channel, "to": to_value, "message": message[:160]}


@celery_app.task

def notify_admin_task(subject: str, body: str) -> dict:
	if not settings.admin_email:
		return {"status": "skipped"}
	ok = send_email(settings.admin_email, subject, body)
	return {"status": "sent" if ok else "failed"}


@celery_app.task

def send_calendar_invite_task(to_email: str, subject: str, body: str, ics: str) -> dict:
	ok = send_email_with_attachment(to_email, subject, body, "appointment.ics", ics.encode(), mime_subtype="ics")
	return {"status": "sent" if ok else "failed"}
