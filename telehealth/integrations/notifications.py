import base64
from email.mime.text import MIMEText
from email.mime.multipart import MIMEMultipart
from email.mime.base import MIMEBase
from email import encoders
from sqlalchemy.orm import Session
from telehealth.config import settings
from telehealth import models
from telehealth.logger import get_logger

log = get_logger("notifications")

SCOPES = ['https://www.googleapis.com/auth/gmail.send']

def _gmail_service():
	try:
		from googleapiclient.discovery import build
		from google.oauth2.credentials import Credentials
		creds = Credentials.from_authorized_user_file(settings.google_token_file or 'token.json', SCOPES)
		return build('gmail', 'v1', credentials=creds)
	except Exception as e:
		log.info("Gmail unavailable: %s", e)
		return None


def _send_raw(service, msg) -> bool:
	raw = base64.urlsafe_b64encode(msg.as_bytes()).decode()
	try:
		service.users().messages().send(userId='me', body={'raw': raw}).execute()
		return True
	except Exception:
		log.exception("Gmail send to %s failed", msg['to'])
		return False


def send_email(to_email: str, subject: str, body: str) -> bool:
	service = _gmail_service()
	if not service:
		return False
	msg = MIMEText(body)
	msg['to'] = to_email
	msg['subject'] = subject
	return _send_raw(service, msg)


def send_email_with_attachment(to_email: str, subject: str, body: str, filename: str, content: bytes, mime_subtype: str = 'octet-stream') -> bool:
	service = _gmail_service()
	if not service:
		return False
	msg = MIMEMultipart()
	msg['to'] = to_email
	msg['subject'] = subject
	msg.attach(MIMEText(body))
	part = MIMEBase('application', mime_subtype)
	part.set_payload(content)
	encoders.encode_base64(part)
	part.add_header('Content-Disposition', f'attachment; filename="{filename}"')
	msg.attach(part)
	return _send_raw(service, msg)


def notify_doctor(db: Session, doctor_id: int, notification_type: str, title: str, message: str, link: str | None = None, data: dict | None = None, commit: bool = True):
	"""In-app notification row for the doctor. Failures are logged, never raised."""
	try:
		n = models.Notification(
			doctor_id=doctor_id,
			notification_type=notification_type,
			title=title,
			message=message,
			link=link,
			data=data,
		)
		db.add(n)
		if commit:
			db.commit()
		return n
	except Exception:
		log.exception("Failed to create %s notification for doctor %s", notification_type, doctor_id)
		db.rollback()
		return None
