from datetime import datetime
from telehealth.models import utcnow


def _stamp(dt: datetime) -> str:
	return dt.strftime("%Y%m%dT%H%M%SZ")


def _escape(text: str) -> str:
	return text.replace("\\", "\\\\").replace(";", "\\;").replace(",", "\\,").replace("\n", "\\n")


def create_ics(uid: str, summary: str, start: datetime, end: datetime, description: str | None = None, url: str | None = None) -> str:
	"""Single-event calendar; start/end are naive UTC."""
	lines = [
		"BEGIN:VCALENDAR",
		"VERSION:2.0",
		"PRODID:-//telehealth//appointments//EN",
		"BEGIN:VEVENT",
		f"UID:{uid}@telehealth.local",
		f"DTSTAMP:{_stamp(utcnow())}",
		f"DTSTART:{_stamp(start)}",
		f"DTEND:{_stamp(end)}",
		f"SUMMARY:{_escape(summary)}",
	]
	if description:
		lines.append(f"DESCRIPTION:{_escape(description)}")
	if url:
		lines.append(f"URL:{url}")
	lines += ["END:VEVENT", "END:VCALENDAR"]
	return "\r\n".join(lines) + "\r\n"
