from telehealth.db import SessionLocal, Base, engine
from telehealth import models
from telehealth.config import settings
from datetime import time, timedelta, datetime, timezone
import argparse
import csv
import jwt

Base.metadata.create_all(bind=engine)

FEES = [
	("99202", "New patient, straightforward", 95.0),
	("99213", "Established patient, low complexity", 110.0),
	("99214", "Established patient, moderate complexity", 165.0),
	("99441", "Telephone E/M, 5-10 minutes", 45.0),
]

def upsert_doctor(db, first: str, last: str, email: str, specialty: str = "General"):
	d = db.query(models.Doctor).filter(models.Doctor.email == email).first()
	if not d:
		d = models.Doctor(first_name=first, last_name=last, email=email, specialty=specialty, timezone=settings.provider_timezone)
		db.add(d); db.commit(); db.refresh(d)
	return d

def upsert_patient(db, doctor_id: int, first: str, last: str, email: str, phone: str | None = None):
	p = db.query(models.Patient).filter(models.Patient.email == email, models.Patient.doctor_id == doctor_id).first()
	if not p:
		p = models.Patient(doctor_id=doctor_id, first_name=first, last_name=last, email=email, phone=phone)
		db.add(p); db.commit(); db.refresh(p)
	return p

def seed():
	db = SessionLocal()
	docs = [
		upsert_doctor(db, "Asha", "Ahuja", "ahuja@example.com", "Family Medicine"),
		upsert_doctor(db, "Rohan", "Mehra", "mehra@example.com", "Pediatrics"),
	]
	# Seed patients from CSV if present
	try:
		with open('patients.csv', newline='', encoding='utf-8') as f:
			for i, row in enumerate(csv.DictReader(f)):
				upsert_patient(db, docs[i % len(docs)].doctor_id, row['first_name'], row['last_name'], row['email'], row.get('phone'))
	except FileNotFoundError:
		for i in range(1, 21):
			upsert_patient(db, docs[i % len(docs)].doctor_id, "Patient", str(i), f"patient{i}@example.com", f"+1602555{i:04d}")
	for d in docs:
		# Mon-Fri 09:00-17:00
		if not db.query(models.DoctorAvailability).filter(models.DoctorAvailability.doctor_id == d.doctor_id).count():
			for dow in range(1, 6):
				db.add(models.DoctorAvailability(doctor_id=d.doctor_id, day_of_week=dow, start_time=time(9, 0), end_time=time(17, 0)))
		for code, desc, amount in FEES:
			exists = db.query(models.FeeScheduleItem).filter(models.FeeScheduleItem.doctor_id == d.doctor_id, models.FeeScheduleItem.code == code).first()
			if not exists:
				db.add(models.FeeScheduleItem(doctor_id=d.doctor_id, code=code, description=desc, amount=amount))
		if not db.query(models.StaffMember).filter(models.StaffMember.doctor_id == d.doctor_id).count():
			db.add(models.StaffMember(doctor_id=d.doctor_id, first_name=d.first_name, last_name=d.last_name, email=d.email, role="provider"))
			db.add(models.StaffMember(doctor_id=d.doctor_id, first_name="Front", last_name="Desk", role="assistant"))
		db.commit()
	db.close()

def dev_token(email: str, admin: bool = False, hours: int = 12) -> str:
	"""Bearer token signed with JWT_SECRET, for local testing only."""
	claims = {"email": email, "exp": datetime.now(timezone.utc) + timedelta(hours=hours)}
	if admin:
		claims["app_metadata"] = {"role": "admin"}
	return jwt.encode(claims, settings.jwt_secret, algorithm=settings.jwt_algorithm)

if __name__ == "__main__":
	ap = argparse.ArgumentParser(description="Seed sample practice data.")
	ap.add_argument("--token-for", help="also print a dev bearer token for this email")
	ap.add_argument("--admin", action="store_true", help="token carries the admin role")
	args = ap.parse_args()
	seed()
	print("Seeded sample data.")
	if args.token_for:
		print(dev_token(args.token_for, admin=args.admin))
