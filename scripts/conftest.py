import os

# settings are read at import time
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["GOOGLE_TOKEN_FILE"] = "/nonexistent/token.json"
os.environ["JWT_SECRET"] = "test-secret"
os.environ.pop("ADMIN_EMAIL", None)

import jwt
import pytest
from fastapi.testclient import TestClient
from telehealth.db import Base, SessionLocal, engine
from telehealth import models
from telehealth.main import app


def make_token(email: str, admin: bool = False) -> str:
	claims = {"email": email}
	if admin:
		claims["app_metadata"] = {"role": "admin"}
	return jwt.encode(claims, "test-secret", algorithm="HS256")


def auth(email: str = "doc@example.com", admin: bool = False) -> dict:
	return {"Authorization": f"Bearer {make_token(email, admin)}"}


@pytest.fixture(autouse=True)
def fresh_db():
	Base.metadata.drop_all(bind=engine)
	Base.metadata.create_all(bind=engine)
	yield


@pytest.fixture
def db():
	s = SessionLocal()
	yield s
	s.close()


@pytest.fixture
def client():
	return TestClient(app)


@pytest.fixture
def doctor(db):
	d = models.Doctor(first_name="Asha", last_name="Ahuja", email="doc@example.com", specialty="Family Medicine", timezone="America/Phoenix")
	db.add(d)
	db.commit()
	db.refresh(d)
	return d


@pytest.fixture
def other_doctor(db):
	d = models.Doctor(first_name="Rohan", last_name="Mehra", email="other@example.com", timezone="America/Phoenix")
	db.add(d)
	db.commit()
	db.refresh(d)
	return d


@pytest.fixture
def headers(doctor):
	return auth(doctor.email)


@pytest.fixture
def auth_for():
	return auth


@pytest.fixture
def admin_headers():
	return auth("admin@example.com", admin=True)


@pytest.fixture
def patient(db, doctor):
	p = models.Patient(doctor_id=doctor.doctor_id, first_name="Jane", last_name="Doe", email="jane@example.com", phone="+16025550100")
	db.add(p)
	db.commit()
	db.refresh(p)
	return p


@pytest.fixture
def book(client, headers, doctor):
	"""Book through the API; start is provider-local."""
	def _book(year=2030, month=1, day=7, hours=10, minutes=0, **extra):
		body = {
			"doctor_id": doctor.doctor_id,
			"visit_type": "phone",
			"patient_first_name": "Jane",
			"patient_last_name": "Doe",
			"patient_email": "jane@example.com",
			"patient_phone": "+16025550100",
			"year": year, "month": month, "day": day, "hours": hours, "minutes": minutes,
		}
		body.update(extra)
		return client.post("/appointments", json=body, headers=headers)
	return _book
