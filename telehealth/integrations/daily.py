import time
import requests
from telehealth.config import settings
from telehealth.integrations.errors import IntegrationError
from telehealth.logger import get_logger

log = get_logger("daily")

ROOM_TTL_SECONDS = 86400


def _headers() -> dict:
	if not settings.daily_api_key:
		raise IntegrationError("daily", "DAILY_API_KEY not configured")
	return {"Authorization": f"Bearer {settings.daily_api_key}", "Content-Type": "application/json"}


def create_room(name: str | None = None, ttl: int = ROOM_TTL_SECONDS, recording: bool = True, privacy: str = "private") -> dict:
	"""Create a room that expires after ttl seconds; returns {name, url, exp}."""
	exp = int(time.time()) + ttl
	properties = {"exp": exp, "eject_at_room_exp": True, "enable_chat": True}
	if recording:
		properties["enable_recording"] = "cloud"
	body = {"privacy": privacy, "properties": properties}
	if name:
		body["name"] = name
	try:
		r = requests.post(f"{settings.daily_api_url}/rooms", headers=_headers(), json=body, timeout=10)
	except requests.RequestException as e:
		raise IntegrationError("daily", str(e))
	if r.status_code >= 300:
		log.warning("Daily room creation failed (%s): %s", r.status_code, r.text[:300])
		raise IntegrationError("daily", r.text[:300], r.status_code)
	data = r.json()
	return {"name": data.get("name"), "url": data.get("url"), "exp": exp}


def create_meeting_token(room_name: str, user_name: str | None = None, is_owner: bool = True, ttl: int = ROOM_TTL_SECONDS) -> str:
	props = {"room_name": room_name, "is_owner": is_owner, "exp": int(time.time()) + ttl}
	if user_name:
		props["user_name"] = user_name
	try:
		r = requests.post(f"{settings.daily_api_url}/meeting-tokens", headers=_headers(), json={"properties": props}, timeout=10)
	except requests.RequestException as e:
		raise IntegrationError("daily", str(e))
	if r.status_code >= 300:
		log.warning("Daily token creation failed (%s): %s", r.status_code, r.text[:300])
		raise IntegrationError("daily", r.text[:300], r.status_code)
	return r.json().get("token")
