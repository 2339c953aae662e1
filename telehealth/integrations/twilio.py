import re
import requests
from twilio.jwt.access_token import AccessToken
from twilio.jwt.access_token.grants import VoiceGrant
from twilio.twiml.voice_response import Dial, VoiceResponse
from telehealth.config import settings
from telehealth.logger import get_logger

log = get_logger("twilio")

API_BASE = "https://api.twilio.com/2010-04-01"
MIN_PHONE_LEN = 10
MAX_PHONE_LEN = 16


def normalize_phone(raw: str) -> str:
	num = re.sub(r"[\s\-\(\)\.]", "", raw or "")
	if num and not num.startswith("+"):
		num = f"+{num}"
	return num


def is_valid_phone(num: str) -> bool:
	return MIN_PHONE_LEN <= len(num) <= MAX_PHONE_LEN


def _account():
	sid = settings.twilio_account_sid
	token = settings.twilio_auth_token
	if not (sid and token and settings.twilio_phone_number):
		return None
	return sid, token


def send_sms(to: str, body: str) -> tuple[bool, dict | str]:
	acct = _account()
	if not acct:
		return (False, "missing-config")
	sid, token = acct
	data = {"To": to, "From": settings.twilio_phone_number, "Body": body[:1600]}
	try:
		r = requests.post(f"{API_BASE}/Accounts/{sid}/Messages.json", data=data, auth=(sid, token), timeout=10)
	except requests.RequestException as e:
		log.warning("SMS request to %s failed: %s", to, e)
		return (False, str(e))
	if r.status_code in (200, 201):
		payload = r.json()
		return (True, {"sid": payload.get("sid"), "status": payload.get("status")})
	log.warning("SMS to %s rejected (%s): %s", to, r.status_code, r.text[:300])
	try:
		return (False, r.json().get("message") or r.text[:300])
	except ValueError:
		return (False, r.text[:300])


def start_call(to: str, twiml_url: str) -> tuple[bool, dict | str]:
	acct = _account()
	if not acct:
		return (False, "missing-config")
	sid, token = acct
	data = {"To": to, "From": settings.twilio_phone_number, "Url": twiml_url}
	try:
		r = requests.post(f"{API_BASE}/Accounts/{sid}/Calls.json", data=data, auth=(sid, token), timeout=10)
	except requests.RequestException as e:
		log.warning("Call request to %s failed: %s", to, e)
		return (False, str(e))
	if r.status_code in (200, 201):
		payload = r.json()
		return (True, {"sid": payload.get("sid"), "status": payload.get("status") or "initiated"})
	log.warning("Call to %s rejected (%s): %s", to, r.status_code, r.text[:300])
	return (False, r.text[:300])


def voice_token(identity: str, ttl: int = 3600) -> str | None:
	"""Access token for the browser Voice SDK, signed with the API key secret."""
	if not (settings.twilio_account_sid and settings.twilio_api_key and settings.twilio_api_secret and settings.twilio_twiml_app_sid):
		return None
	token = AccessToken(settings.twilio_account_sid, settings.twilio_api_key, settings.twilio_api_secret, identity=identity, ttl=ttl)
	token.add_grant(VoiceGrant(outgoing_application_sid=settings.twilio_twiml_app_sid, incoming_allow=True))
	return token.to_jwt()


def say_twiml(message: str) -> str:
	resp = VoiceResponse()
	resp.say(message)
	return str(resp)


def dial_twiml(to: str, caller_id: str, recording_callback: str) -> str:
	dial = Dial(
		caller_id=caller_id,
		timeout=30,
		time_limit=3600,
		answer_on_bridge=False,
		record="record-from-answer",
		recording_status_callback=recording_callback,
		recording_status_callback_method="POST",
		ring_tone="us",
	)
	dial.number(to)
	resp = VoiceResponse()
	resp.append(dial)
	return str(resp)
