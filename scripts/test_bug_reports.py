from telehealth import models
from telehealth.integrations import daily, storage
from telehealth.integrations.errors import IntegrationError

BUCKET_URL = "https://proj.supabase.co/storage/v1/object/public/bug-reports"


def _submit(client, headers, **extra):
	body = {"description": "Calendar shows the wrong day", "page_url": "/doctor/calendar", **extra}
	return client.post("/bug-reports", json=body, headers=headers)


def test_object_path_from_url():
	assert storage.object_path_from_url(f"{BUCKET_URL}/7/shot.png?token=abc") == "7/shot.png"
	assert storage.object_path_from_url("https://elsewhere.example.com/shot.png") is None
	assert storage.object_path_from_url(None) is None


def test_submit_and_list(client, headers, admin_headers, other_doctor, auth_for):
	r = _submit(client, headers)
	assert r.status_code == 201
	assert r.json()["status"] == "new"
	assert r.json()["admin_read"] is False
	_submit(client, auth_for(other_doctor.email), description="Cannot upload")

	assert len(client.get("/bug-reports/mine", headers=headers).json()) == 1
	assert client.get("/bug-reports", headers=headers).status_code == 403
	assert len(client.get("/bug-reports", headers=admin_headers).json()) == 2
	assert client.post("/bug-reports", json={"description": ""}, headers=headers).status_code == 400


def test_admin_patch(client, headers, admin_headers):
	bid = _submit(client, headers).json()["bug_report_id"]
	r = client.patch(f"/bug-reports/{bid}", json={"mark_as_read": True, "status": "investigating", "doctor_id": 99}, headers=admin_headers)
	assert r.status_code == 200
	body = r.json()
	assert body["admin_read"] is True
	assert body["status"] == "investigating"
	assert body["doctor_id"] != 99
	assert client.patch(f"/bug-reports/{bid}", json={"status": "closed"}, headers=admin_headers).status_code == 400
	assert [b["bug_report_id"] for b in client.get("/bug-reports?status=investigating", headers=admin_headers).json()] == [bid]
	assert client.get("/bug-reports/999", headers=admin_headers).status_code == 404


def test_delete_removes_attachments(client, headers, admin_headers, monkeypatch, db):
	removed = []

	def fake_remove(path, bucket=None):
		removed.append(path)
		return (path != "7/broken.png", "gone")

	monkeypatch.setattr(storage, "remove_object", fake_remove)
	bid = _submit(client, headers, attachments=[
		{"url": f"{BUCKET_URL}/7/shot.png", "name": "shot.png"},
		{"url": f"{BUCKET_URL}/7/broken.png", "name": "broken.png"},
		{"url": "https://cdn.example.com/other.png"},
	]).json()["bug_report_id"]
	r = client.delete(f"/bug-reports/{bid}", headers=admin_headers)
	assert r.json() == {"success": True, "attachments_removed": 1}
	assert removed == ["7/shot.png", "7/broken.png"]
	assert db.query(models.BugReport).count() == 0


def test_live_session(client, headers, admin_headers, monkeypatch, other_doctor, auth_for):
	calls = []

	def fake_room(name=None, **kw):
		calls.append((name, kw))
		return {"name": name, "url": f"https://clinic.daily.co/{name}", "exp": 0}

	monkeypatch.setattr(daily, "create_room", fake_room)
	bid = _submit(client, headers).json()["bug_report_id"]

	assert client.post(f"/bug-reports/{bid}/live-session", headers=auth_for(other_doctor.email)).status_code == 403
	r = client.post(f"/bug-reports/{bid}/live-session", headers=headers)
	assert r.status_code == 200
	assert r.json()["requested_by"] == "doctor"
	assert r.json()["status"] == "requested"
	name, kw = calls[0]
	assert name.startswith(f"bug-support-{bid}-")
	assert kw == {"recording": False, "privacy": "public"}

	client.patch(f"/bug-reports/{bid}", json={"live_session_status": "active"}, headers=admin_headers)
	r = client.post(f"/bug-reports/{bid}/live-session", headers=admin_headers)
	assert r.json()["status"] == "active"
	assert r.json()["message"] == "Session already active"
	assert len(calls) == 1


def test_live_session_room_failure(client, headers, admin_headers, monkeypatch):
	def boom(**kw):
		raise IntegrationError("daily", "rate limited", 429)

	monkeypatch.setattr(daily, "create_room", boom)
	bid = _submit(client, headers).json()["bug_report_id"]
	r = client.post(f"/bug-reports/{bid}/live-session", headers=admin_headers)
	assert r.status_code == 500
	assert r.json()["detail"] == "Failed to create support session: rate limited"
