import requests
from telehealth.config import settings
from telehealth.logger import get_logger

log = get_logger("storage")


def object_path_from_url(url: str, bucket: str | None = None) -> str | None:
	"""Path of an object inside the bucket, taken from its public URL."""
	bucket = bucket or settings.bug_report_bucket
	marker = f"/{bucket}/"
	if not url or marker not in url:
		return None
	return url.split(marker, 1)[1].split("?", 1)[0] or None


def remove_object(path: str, bucket: str | None = None) -> tuple[bool, str]:
	bucket = bucket or settings.bug_report_bucket
	if not (settings.supabase_url and settings.supabase_service_role_key):
		return (False, "missing-config")
	headers = {
		"Authorization": f"Bearer {settings.supabase_service_role_key}",
		"apikey": settings.supabase_service_role_key,
	}
	try:
		r = requests.delete(
			f"{settings.supabase_url}/storage/v1/object/{bucket}",
			headers=headers,
			json={"prefixes": [path]},
			timeout=10,
		)
	except requests.RequestException as e:
		return (False, str(e))
	if r.status_code >= 300:
		return (False, r.text[:300])
	return (True, path)
