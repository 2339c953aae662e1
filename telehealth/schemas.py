from pydantic import BaseModel, EmailStr, Field, field_validator
from typing import Optional, List, Any
from datetime import date, time, datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError
from telehealth.services.booking import MAX_DURATION_MINUTES

class InsuranceIn(BaseModel):
	carrier: str
	member_id: str
	group_number: Optional[str] = None
	payer_phone: Optional[str] = None

class InsuranceOut(InsuranceIn):
	insurance_id: int
	eligibility_status: Optional[str] = None
	last_verified_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class PatientIn(BaseModel):
	first_name: str
	last_name: str
	email: Optional[EmailStr] = None
	phone: Optional[str] = None
	date_of_birth: Optional[date] = None
	location: Optional[str] = None
	preferred_pharmacy: Optional[str] = None
	allergies: Optional[str] = None
	insurance: Optional[InsuranceIn] = None

class PatientOut(BaseModel):
	patient_id: int
	doctor_id: Optional[int] = None
	first_name: str
	last_name: str
	email: Optional[str] = None
	phone: Optional[str] = None
	date_of_birth: Optional[date] = None
	location: Optional[str] = None
	preferred_pharmacy: Optional[str] = None
	allergies: Optional[str] = None
	insurance: Optional[InsuranceOut] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class DoctorIn(BaseModel):
	first_name: str
	last_name: str
	email: EmailStr
	phone: Optional[str] = None
	specialty: Optional[str] = None
	timezone: Optional[str] = None

	@field_validator("timezone")
	@classmethod
	def known_timezone(cls, v):
		if v is None:
			return v
		try:
			ZoneInfo(v)
		except (ZoneInfoNotFoundError, ValueError):
			raise ValueError(f"Unknown timezone: {v}")
		return v

class DoctorOut(DoctorIn):
	doctor_id: int
	email: str
	is_approved: Optional[bool] = None

	class Config:
		from_attributes = True

class AppointmentIn(BaseModel):
	doctor_id: int
	visit_type: str
	patient_first_name: str
	patient_last_name: str
	patient_email: Optional[EmailStr] = None
	patient_phone: Optional[str] = None
	patient_dob: Optional[date] = None
	patient_location: Optional[str] = None
	year: Optional[int] = None
	month: Optional[int] = None
	day: Optional[int] = None
	hours: Optional[int] = None
	minutes: Optional[int] = None
	requested_date_time: Optional[str] = None
	duration_minutes: int = Field(default=30, gt=0, le=MAX_DURATION_MINUTES)
	service_type: Optional[str] = "consultation"
	reason: Optional[str] = None
	notes: Optional[str] = None
	chief_complaint: Optional[str] = None
	preferred_pharmacy: Optional[str] = None
	allergies: Optional[str] = None
	has_drug_allergies: bool = False
	has_ongoing_medical_issues: bool = False
	ongoing_medical_issues_details: Optional[str] = None
	has_recent_surgeries: bool = False
	recent_surgeries_details: Optional[str] = None

class AppointmentOut(BaseModel):
	appointment_id: int
	doctor_id: int
	patient_id: Optional[int] = None
	requested_date_time: datetime
	duration_minutes: Optional[int] = None
	visit_type: str
	service_type: Optional[str] = None
	status: str
	reason: Optional[str] = None
	notes: Optional[str] = None
	chief_complaint: Optional[str] = None
	preferred_pharmacy: Optional[str] = None
	allergies: Optional[str] = None
	video_room_name: Optional[str] = None
	video_meeting_url: Optional[str] = None
	provider_accepted_at: Optional[datetime] = None
	cdss_auto_generated: Optional[bool] = None
	chart_status: Optional[str] = None
	chart_signed_at: Optional[datetime] = None
	chart_signed_by: Optional[str] = None
	chart_closed_at: Optional[datetime] = None
	is_locked: Optional[bool] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class WeeklyHourIn(BaseModel):
	day_of_week: int = Field(ge=0, le=6)
	start_time: time
	end_time: time
	is_available: bool = True

class WeeklyHourOut(WeeklyHourIn):
	availability_id: int

	class Config:
		from_attributes = True

class AvailabilityEventIn(BaseModel):
	event_date: date
	start_time: time
	end_time: time
	event_type: str = "available"
	title: Optional[str] = None
	description: Optional[str] = None
	repeat: Optional[str] = "none"

class AvailabilityEventOut(BaseModel):
	event_id: int
	event_date: date
	start_time: time
	end_time: time
	event_type: str
	title: str
	description: Optional[str] = None

	class Config:
		from_attributes = True

class ClinicalNoteOut(BaseModel):
	note_id: int
	appointment_id: int
	note_type: str
	content: Optional[str] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class SoapFormIn(BaseModel):
	chief_complaint: Optional[str] = None
	ros_general: Optional[str] = None
	assessment_plan: Optional[str] = None

class AddendumIn(BaseModel):
	text: str
	addendum_type: str = "addendum"
	reason: Optional[str] = None

class AddendumOut(AddendumIn):
	addendum_id: int
	appointment_id: int
	created_by: Optional[str] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class MedicationIn(BaseModel):
	patient_id: int
	medication_name: str
	dosage: Optional[str] = None
	frequency: Optional[str] = None
	route: Optional[str] = None
	prescriber: Optional[str] = None
	start_date: Optional[date] = None
	end_date: Optional[date] = None
	status: Optional[str] = None
	is_prn: bool = False
	prn_reason: Optional[str] = None
	side_effects: Optional[str] = None
	adherence_score: Optional[int] = None
	notes: Optional[str] = None

class MedicationOut(BaseModel):
	medication_id: int
	patient_id: int
	medication_name: str
	dosage: Optional[str] = None
	frequency: Optional[str] = None
	route: Optional[str] = None
	prescriber: Optional[str] = None
	start_date: Optional[date] = None
	end_date: Optional[date] = None
	status: str
	is_prn: Optional[bool] = None
	prn_reason: Optional[str] = None
	side_effects: Optional[str] = None
	adherence_score: Optional[int] = None
	notes: Optional[str] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class MedicationHistoryIn(BaseModel):
	medication: str
	provider: Optional[str] = None
	pharmacy: Optional[str] = None
	quantity: Optional[str] = None
	fill_date: Optional[date] = None
	source: Optional[str] = "manual"

class MedicationHistoryOut(MedicationHistoryIn):
	history_id: int
	patient_id: int

	class Config:
		from_attributes = True

class AllergyIn(BaseModel):
	patient_id: int
	allergen_name: str
	allergy_type: Optional[str] = None
	reaction: Optional[str] = None
	severity: Optional[str] = None
	status: Optional[str] = "active"

class AllergyOut(BaseModel):
	allergy_id: int
	patient_id: int
	allergen_name: str
	allergy_type: Optional[str] = None
	reaction: Optional[str] = None
	severity: Optional[str] = None
	status: Optional[str] = None
	recorded_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class PrescriptionOut(BaseModel):
	prescription_id: int
	doctor_id: int
	patient_id: int
	appointment_id: Optional[int] = None
	medication: str
	sig: str
	quantity: str
	refills: Optional[int] = None
	notes: Optional[str] = None
	pharmacy_name: Optional[str] = None
	pharmacy_address: Optional[str] = None
	pharmacy_phone: Optional[str] = None
	status: str
	sent_at: Optional[datetime] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class ClaimIn(BaseModel):
	patient_id: int
	appointment_id: Optional[int] = None
	claim_number: Optional[str] = None
	cpt_code: Optional[str] = None
	icd10_codes: Optional[str] = None
	service_date: Optional[date] = None
	payer: Optional[str] = None
	billed_amount: float = 0
	paid_amount: float = 0
	status: str = "draft"

class ClaimOut(ClaimIn):
	claim_id: int
	submitted_at: Optional[datetime] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class PaymentIn(BaseModel):
	amount: float
	patient_id: Optional[int] = None
	appointment_id: Optional[int] = None
	status: str = "pending"
	method: Optional[str] = None
	reference: Optional[str] = None
	payment_date: Optional[datetime] = None

class PaymentOut(PaymentIn):
	payment_id: int
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class FeeIn(BaseModel):
	code: str
	description: Optional[str] = None
	amount: float
	is_active: bool = True

class FeeOut(FeeIn):
	fee_id: int

	class Config:
		from_attributes = True

class StatementOut(BaseModel):
	statement_id: int
	patient_id: int
	statement_date: date
	total_billed: float
	total_paid: float
	balance_due: float
	line_items: List[Any] = []
	status: str

	class Config:
		from_attributes = True

class EligibilityIn(BaseModel):
	patient_id: int
	payer: Optional[str] = None
	member_id: Optional[str] = None
	status: str = "unknown"
	copay: Optional[float] = None
	deductible_remaining: Optional[float] = None
	response: Optional[dict] = None

class EligibilityOut(EligibilityIn):
	check_id: int
	checked_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class CommunicationLogOut(BaseModel):
	log_id: int
	patient_id: Optional[int] = None
	channel: str
	direction: Optional[str] = None
	to_number: Optional[str] = None
	from_number: Optional[str] = None
	message: Optional[str] = None
	status: Optional[str] = None
	external_id: Optional[str] = None
	meeting_url: Optional[str] = None
	recording_url: Optional[str] = None
	duration_seconds: Optional[int] = None
	created_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class PatientMessageIn(BaseModel):
	content: str = Field(min_length=1)
	sender_type: str = "doctor"
	appointment_id: Optional[int] = None

class PatientMessageOut(PatientMessageIn):
	message_id: int
	patient_id: int
	is_read: bool
	created_at: datetime

	class Config:
		from_attributes = True

class NotificationOut(BaseModel):
	notification_id: int
	notification_type: str
	title: Optional[str] = None
	message: Optional[str] = None
	link: Optional[str] = None
	data: Optional[dict] = None
	is_read: bool
	created_at: datetime

	class Config:
		from_attributes = True

class BugReportIn(BaseModel):
	description: str = Field(min_length=1)
	page_url: Optional[str] = None
	browser_info: Optional[str] = None
	attachments: List[dict] = []

class BugReportOut(BaseModel):
	bug_report_id: int
	doctor_id: Optional[int] = None
	description: str
	page_url: Optional[str] = None
	browser_info: Optional[str] = None
	attachments: Optional[List[Any]] = None
	status: str
	admin_notes: Optional[str] = None
	admin_read: Optional[bool] = None
	admin_response_video_url: Optional[str] = None
	admin_response_video_name: Optional[str] = None
	live_session_status: Optional[str] = None
	live_session_room_url: Optional[str] = None
	live_session_requested_by: Optional[str] = None
	live_session_requested_at: Optional[datetime] = None
	created_at: Optional[datetime] = None
	updated_at: Optional[datetime] = None

	class Config:
		from_attributes = True

class StaffConversationIn(BaseModel):
	staff_id: int
	conversation_type: str = "direct"
	participant_ids: List[int] = []
	name: Optional[str] = None
	description: Optional[str] = None
	patient_id: Optional[int] = None

class StaffMessageIn(BaseModel):
	staff_id: int
	content: str = Field(min_length=1)
	message_type: str = "text"
	reply_to_id: Optional[int] = None
	metadata: Optional[dict] = None

class StaffMessageOut(BaseModel):
	message_id: int
	conversation_id: int
	sender_id: int
	content: str
	message_type: str
	reply_to_id: Optional[int] = None
	metadata: Optional[dict] = Field(default=None, validation_alias="message_metadata")
	is_edited: Optional[bool] = None
	created_at: datetime

	class Config:
		from_attributes = True

class AdminConversationOut(BaseModel):
	conversation_id: int
	doctor_id: int
	doctor_name: Optional[str] = None
	doctor_specialty: Optional[str] = None
	last_message: Optional[str] = None
	last_message_at: Optional[datetime] = None
	unread_count: int = 0
	is_pinned: bool = False
	status: Optional[str] = None

	class Config:
		from_attributes = True

class AdminMessageOut(BaseModel):
	message_id: int
	conversation_id: int
	sender_type: str
	sender_name: Optional[str] = None
	content: str
	message_type: Optional[str] = None
	is_read: bool
	created_at: datetime

	class Config:
		from_attributes = True
