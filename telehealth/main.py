from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from pydantic import ValidationError
from telehealth.config import settings
from telehealth.db import engine, Base
from telehealth.routers import doctors, patients, insurance, appointments, availability
from telehealth.routers import clinical_notes, medications, allergies, prescriptions
from telehealth.routers import billing, communication, patient_messages
from telehealth.routers import staff_messages, admin_messaging, bug_reports
from telehealth.routers import cdss, notifications, dashboard, reminders, admin
from fastapi.responses import JSONResponse
from telehealth.logger import get_logger

app = FastAPI(title="Telehealth Practice API", version="1.0.0")
log = get_logger("api")

app.add_middleware(
	CORSMiddleware,
	allow_origins=["*"],
	allow_credentials=True,
	allow_methods=["*"],
	allow_headers=["*"],
)

# Create tables on startup; in production use Alembic
Base.metadata.create_all(bind=engine)

app.include_router(doctors.router)
app.include_router(patients.router)
app.include_router(insurance.router)
app.include_router(appointments.router)
app.include_router(availability.router)
app.include_router(clinical_notes.router)
app.include_router(medications.router)
app.include_router(allergies.router)
app.include_router(prescriptions.router)
app.include_router(billing.router)
app.include_router(communication.router)
app.include_router(patient_messages.router)
app.include_router(staff_messages.router)
app.include_router(admin_messaging.router)
app.include_router(bug_reports.router)
app.include_router(cdss.router)
app.include_router(notifications.router)
app.include_router(dashboard.router)
app.include_router(reminders.router)
app.include_router(admin.router)

@app.get("/")

def root():
	return {"status": "ok", "env": settings.app_env}


@app.exception_handler(RequestValidationError)
async def validation_exception_handler(request: Request, exc: RequestValidationError):
	return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# merged PATCH bodies are validated inside handlers
@app.exception_handler(ValidationError)
async def model_validation_handler(request: Request, exc: ValidationError):
	return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors(include_url=False))})


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception):
	log.exception("Unhandled error: %s", exc)
	return JSONResponse(status_code=500, content={"detail": "Internal server error"})
