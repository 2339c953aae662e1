import pytest
from datetime import datetime
from telehealth import models


@pytest.fixture
def staff(client, headers):
	nurse = client.post("/staff-messages/staff", json={"first_name": "Nina", "last_name": "Shah", "role": "nurse"}, headers=headers).json()
	desk = client.post("/staff-messages/staff", json={"first_name": "Dev", "last_name": "Rao", "role": "front_desk"}, headers=headers).json()
	return nurse["staff_id"], desk["staff_id"]


def test_staff_roster(client, headers, staff, other_doctor, auth_for):
	names = [s["name"] for s in client.get("/staff-messages/staff", headers=headers).json()]
	assert names == ["Dev Rao", "Nina Shah"]
	assert client.get("/staff-messages/staff", headers=auth_for(other_doctor.email)).json() == []


def test_direct_conversation_is_reused(client, headers, staff):
	nurse, desk = staff
	body = {"staff_id": nurse, "conversation_type": "direct", "participant_ids": [desk]}
	r = client.post("/staff-messages/conversations", json=body, headers=headers)
	assert r.status_code == 201
	first = r.json()
	assert first["existing"] is False
	assert {p["staff_id"] for p in first["conversation"]["participants"]} == {nurse, desk}

	again = client.post("/staff-messages/conversations", json={**body, "staff_id": desk, "participant_ids": [nurse]}, headers=headers).json()
	assert again["existing"] is True
	assert again["conversation"]["conversation_id"] == first["conversation"]["conversation_id"]


def test_conversation_validation(client, headers, staff, other_doctor, auth_for):
	nurse, desk = staff
	assert client.post("/staff-messages/conversations", json={"staff_id": nurse, "participant_ids": []}, headers=headers).status_code == 400
	assert client.post("/staff-messages/conversations", json={"staff_id": nurse, "conversation_type": "forum", "participant_ids": [desk]}, headers=headers).status_code == 400
	assert client.post("/staff-messages/conversations", json={"staff_id": nurse, "participant_ids": [999]}, headers=headers).status_code == 404
	# staff belong to their own practice
	r = client.post("/staff-messages/conversations", json={"staff_id": nurse, "participant_ids": [desk]}, headers=auth_for(other_doctor.email))
	assert r.status_code == 404


def test_group_messages_and_unread(client, headers, staff, db):
	nurse, desk = staff
	conv = client.post("/staff-messages/conversations", json={
		"staff_id": nurse, "conversation_type": "group", "name": "Morning huddle", "participant_ids": [desk],
	}, headers=headers).json()["conversation"]
	cid = conv["conversation_id"]

	r = client.post(f"/staff-messages/conversations/{cid}/messages", json={"staff_id": nurse, "content": " Room 2 is ready ", "metadata": {"room": 2}}, headers=headers)
	assert r.status_code == 201
	assert r.json()["content"] == "Room 2 is ready"
	assert r.json()["metadata"] == {"room": 2}

	msgs = client.get(f"/staff-messages/conversations/{cid}/messages?staff_id={desk}", headers=headers).json()
	assert [m["message_type"] for m in msgs] == ["system", "text"]
	assert msgs[0]["content"] == "Created group: Morning huddle"

	convs = client.get(f"/staff-messages/conversations?staff_id={desk}", headers=headers).json()["conversations"]
	assert convs[0]["last_message_preview"] == "Room 2 is ready"

	# the creator's system message counts for everyone else
	assert client.get(f"/staff-messages/unread?staff_id={desk}", headers=headers).json() == {"unread": {str(cid): 2}, "total": 2}
	assert client.get(f"/staff-messages/unread?staff_id={nurse}", headers=headers).json()["total"] == 0

	notes = client.get(f"/staff-messages/notifications?staff_id={desk}&unread_only=true", headers=headers).json()
	assert len(notes) == 1
	assert notes[0]["title"] == "New message from Nina Shah"
	assert notes[0]["link"] == f"/staff-hub?conv={cid}"

	assert client.post(f"/staff-messages/conversations/{cid}/read", json={"staff_id": desk}, headers=headers).json() == {"success": True}
	assert client.get(f"/staff-messages/unread?staff_id={desk}", headers=headers).json()["total"] == 0
	assert client.get(f"/staff-messages/notifications?staff_id={desk}&unread_only=true", headers=headers).json() == []


def test_non_member_cannot_post(client, headers, staff):
	nurse, desk = staff
	third = client.post("/staff-messages/staff", json={"first_name": "Ola"}, headers=headers).json()["staff_id"]
	cid = client.post("/staff-messages/conversations", json={"staff_id": nurse, "participant_ids": [desk]}, headers=headers).json()["conversation"]["conversation_id"]
	r = client.post(f"/staff-messages/conversations/{cid}/messages", json={"staff_id": third, "content": "hi"}, headers=headers)
	assert r.status_code == 404
	assert client.post(f"/staff-messages/conversations/{cid}/messages", json={"staff_id": nurse, "content": "   "}, headers=headers).status_code == 400


def test_admin_starts_conversation(client, admin_headers, headers, doctor, db):
	r = client.post("/admin-messaging/conversations", json={"doctor_id": doctor.doctor_id}, headers=admin_headers)
	assert r.status_code == 200
	conv = r.json()
	assert conv["doctor_name"] == "Asha Ahuja"
	assert conv["doctor_specialty"] == "Family Medicine"
	again = client.post("/admin-messaging/conversations", json={"doctor_id": doctor.doctor_id}, headers=admin_headers).json()
	assert again["conversation_id"] == conv["conversation_id"]
	assert client.post("/admin-messaging/conversations", json={"doctor_id": 999}, headers=admin_headers).status_code == 404

	notes = client.get("/notifications", headers=headers).json()
	assert [n["message"] for n in notes] == ["Admin started a new conversation with you"]
	assert notes[0]["data"] == {"conversation_id": conv["conversation_id"]}


def test_admin_and_doctor_exchange(client, admin_headers, headers, doctor):
	assert client.get("/admin-messaging/me", headers=headers).json() == {"conversation": None, "messages": []}
	assert client.post("/admin-messaging/me/read", headers=headers).status_code == 404

	r = client.post("/admin-messaging/me/messages", json={"content": "Calendar sync is failing"}, headers=headers)
	assert r.status_code == 201
	cid = r.json()["conversation_id"]
	assert r.json()["sender_name"] == "Asha Ahuja"

	convs = client.get("/admin-messaging/conversations", headers=admin_headers).json()
	assert convs[0]["unread_count"] == 1
	assert convs[0]["last_message"] == "Calendar sync is failing"

	r = client.post(f"/admin-messaging/conversations/{cid}/messages", json={"content": "Looking into it"}, headers=admin_headers)
	assert r.json()["sender_name"] == "admin@example.com"
	assert client.post(f"/admin-messaging/conversations/{cid}/messages", json={"content": " "}, headers=admin_headers).status_code == 400

	client.post(f"/admin-messaging/conversations/{cid}/read", headers=admin_headers)
	msgs = client.get(f"/admin-messaging/conversations/{cid}/messages", headers=admin_headers).json()
	assert [(m["sender_type"], m["is_read"]) for m in msgs] == [("doctor", True), ("admin", False)]
	assert client.get("/admin-messaging/conversations", headers=admin_headers).json()[0]["unread_count"] == 0

	client.post("/admin-messaging/me/read", headers=headers)
	mine = client.get("/admin-messaging/me", headers=headers).json()
	assert all(m["is_read"] for m in mine["messages"])
	assert client.get("/notifications?unread_only=true", headers=headers).json()[0]["title"] == "New message from Admin"


def test_admin_pin_and_doctor_list(client, admin_headers, headers, doctor, other_doctor, db):
	other_doctor.is_approved = False
	db.commit()
	assert [d["email"] for d in client.get("/admin-messaging/doctors", headers=admin_headers).json()] == ["doc@example.com"]
	cid = client.post("/admin-messaging/conversations", json={"doctor_id": doctor.doctor_id}, headers=admin_headers).json()["conversation_id"]
	assert client.post(f"/admin-messaging/conversations/{cid}/pin", json={"is_pinned": True}, headers=admin_headers).json()["is_pinned"] is True
	assert client.get("/admin-messaging/conversations", headers=headers).status_code == 403
	assert db.query(models.AdminConversation).count() == 1


def test_message_paging_walks_back_in_time(client, headers, staff, db):
	nurse, desk = staff
	cid = client.post("/staff-messages/conversations", json={"staff_id": nurse, "participant_ids": [desk]}, headers=headers).json()["conversation"]["conversation_id"]
	for i in range(5):
		db.add(models.StaffMessage(conversation_id=cid, sender_id=nurse, content=f"m{i}", created_at=datetime(2030, 1, 7, 10, i)))
	db.commit()
	url = f"/staff-messages/conversations/{cid}/messages?staff_id={desk}"

	page = client.get(f"{url}&limit=2", headers=headers).json()
	# newest page, returned oldest first
	assert [m["content"] for m in page] == ["m3", "m4"]
	page = client.get(f"{url}&limit=2&before={page[0]['created_at']}", headers=headers).json()
	assert [m["content"] for m in page] == ["m1", "m2"]
	page = client.get(f"{url}&limit=2&before={page[0]['created_at']}", headers=headers).json()
	assert [m["content"] for m in page] == ["m0"]
	assert len(client.get(f"{url}&limit=0", headers=headers).json()) == 1
	assert len(client.get(url, headers=headers).json()) == 5
