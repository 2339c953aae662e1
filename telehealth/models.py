from datetime import datetime, timezone
from sqlalchemy import Column, Integer, String, Date, Time, Boolean, Text, ForeignKey, DateTime, Numeric, JSON, UniqueConstraint
from sqlalchemy.orm import relationship
from telehealth.db import Base


def utcnow() -> datetime:
	# stored naive, always UTC
	return datetime.now(timezone.utc).replace(tzinfo=None)


Money = Numeric(10, 2, asdecimal=False)


class Doctor(Base):
	__tablename__ = "doctors"
	doctor_id = Column(Integer, primary_key=True)
	first_name = Column(String, nullable=False)
	last_name = Column(String, nullable=False)
	email = Column(String, unique=True, nullable=False)
	phone = Column(String)
	specialty = Column(String)
	timezone = Column(String)
	is_approved = Column(Boolean, default=True)
	created_at = Column(DateTime, default=utcnow)

	appointments = relationship("Appointment", back_populates="doctor")
	weekly_hours = relationship("DoctorAvailability", back_populates="doctor")

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}".strip()


class Patient(Base):
	__tablename__ = "patients"
	patient_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"))
	first_name = Column(String, nullable=False)
	last_name = Column(String, nullable=False)
	email = Column(String)
	phone = Column(String)
	date_of_birth = Column(Date)
	location = Column(String)
	preferred_pharmacy = Column(String)
	allergies = Column(Text)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

	insurance = relationship("Insurance", back_populates="patient", uselist=False)
	appointments = relationship("Appointment", back_populates="patient")

	@property
	def full_name(self) -> str:
		return f"{self.first_name} {self.last_name}".strip()


class Insurance(Base):
	__tablename__ = "insurance"
	insurance_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	carrier = Column(String, nullable=False)
	member_id = Column(String, nullable=False)
	group_number = Column(String)
	payer_phone = Column(String)
	eligibility_status = Column(String)
	last_verified_at = Column(DateTime)

	patient = relationship("Patient", back_populates="insurance")


class Appointment(Base):
	__tablename__ = "appointments"
	appointment_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"))
	requested_date_time = Column(DateTime, nullable=False)
	duration_minutes = Column(Integer, default=30)
	visit_type = Column(String, nullable=False)
	service_type = Column(String, default="consultation")
	status = Column(String, default="pending")
	reason = Column(Text)
	notes = Column(Text)
	preferred_pharmacy = Column(String)
	allergies = Column(Text)
	chief_complaint = Column(Text)
	transcription = Column(Text)
	ros_general = Column(Text)
	vitals_bp = Column(String)
	vitals_hr = Column(String)
	vitals_temp = Column(String)
	has_drug_allergies = Column(Boolean, default=False)
	has_ongoing_medical_issues = Column(Boolean, default=False)
	ongoing_medical_issues_details = Column(Text)
	has_recent_surgeries = Column(Boolean, default=False)
	recent_surgeries_details = Column(Text)
	video_room_name = Column(String)
	video_meeting_url = Column(String)
	video_owner_token = Column(Text)
	provider_accepted_at = Column(DateTime)
	cdss_auto_generated = Column(Boolean, default=False)
	# draft -> signed -> closed -> amended
	chart_status = Column(String, default="draft")
	chart_signed_at = Column(DateTime)
	chart_signed_by = Column(String)
	chart_closed_at = Column(DateTime)
	chart_closed_by = Column(String)
	is_locked = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

	doctor = relationship("Doctor", back_populates="appointments")
	patient = relationship("Patient", back_populates="appointments")
	clinical_notes = relationship("ClinicalNote", back_populates="appointment", order_by="ClinicalNote.created_at")
	addenda = relationship("ChartAddendum", back_populates="appointment", order_by="ChartAddendum.addendum_id")


class DoctorAvailability(Base):
	"""Recurring weekly hours; day_of_week 0 is Sunday."""
	__tablename__ = "doctor_availability"
	availability_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	day_of_week = Column(Integer, nullable=False)
	start_time = Column(Time, nullable=False)
	end_time = Column(Time, nullable=False)
	is_available = Column(Boolean, default=True)

	doctor = relationship("Doctor", back_populates="weekly_hours")


class DoctorAvailabilityEvent(Base):
	__tablename__ = "doctor_availability_events"
	event_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	event_date = Column(Date, nullable=False)
	start_time = Column(Time, nullable=False)
	end_time = Column(Time, nullable=False)
	title = Column(String, nullable=False)
	event_type = Column(String, nullable=False, default="available")
	description = Column(Text)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class ClinicalNote(Base):
	__tablename__ = "clinical_notes"
	__table_args__ = (UniqueConstraint("appointment_id", "note_type", name="uq_clinical_notes_appointment_type"),)
	note_id = Column(Integer, primary_key=True)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"))
	note_type = Column(String, nullable=False)
	content = Column(Text)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

	appointment = relationship("Appointment", back_populates="clinical_notes")


class ChartAddendum(Base):
	__tablename__ = "chart_addenda"
	addendum_id = Column(Integer, primary_key=True)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"), nullable=False)
	addendum_type = Column(String, default="addendum")
	text = Column(Text, nullable=False)
	reason = Column(Text)
	created_by = Column(String)
	created_at = Column(DateTime, default=utcnow)

	appointment = relationship("Appointment", back_populates="addenda")


class PatientMedication(Base):
	__tablename__ = "patient_medications"
	medication_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"))
	medication_name = Column(String, nullable=False)
	dosage = Column(String)
	frequency = Column(String)
	route = Column(String, default="oral")
	prescriber = Column(String)
	start_date = Column(Date)
	end_date = Column(Date)
	status = Column(String, default="active")
	is_prn = Column(Boolean, default=False)
	prn_reason = Column(String)
	side_effects = Column(Text)
	adherence_score = Column(Integer)
	notes = Column(Text)
	is_deleted = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class MedicationAuditLog(Base):
	__tablename__ = "medication_audit_log"
	audit_id = Column(Integer, primary_key=True)
	medication_id = Column(Integer, ForeignKey("patient_medications.medication_id"), nullable=False)
	action = Column(String, nullable=False)
	actor_id = Column(Integer)
	actor_email = Column(String)
	previous_values = Column(JSON)
	new_values = Column(JSON)
	ip_address = Column(String)
	created_at = Column(DateTime, default=utcnow)


class MedicationHistory(Base):
	"""Dispensed-medication history (pharmacy fills, outside prescribers)."""
	__tablename__ = "medication_history"
	history_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"))
	medication = Column(String, nullable=False)
	provider = Column(String)
	pharmacy = Column(String)
	quantity = Column(String)
	fill_date = Column(Date)
	source = Column(String, default="manual")
	created_at = Column(DateTime, default=utcnow)


class PatientAllergy(Base):
	__tablename__ = "patient_allergies"
	allergy_id = Column(Integer, primary_key=True)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"))
	allergen_name = Column(String, nullable=False)
	allergy_type = Column(String)
	reaction = Column(String)
	severity = Column(String)
	status = Column(String, default="active")
	recorded_at = Column(DateTime, default=utcnow)


class Prescription(Base):
	__tablename__ = "prescriptions"
	prescription_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	medication = Column(String, nullable=False)
	sig = Column(Text, nullable=False)
	quantity = Column(String, nullable=False)
	refills = Column(Integer, default=0)
	notes = Column(Text)
	pharmacy_name = Column(String)
	pharmacy_address = Column(String)
	pharmacy_phone = Column(String)
	status = Column(String, default="pending")
	sent_at = Column(DateTime)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BugReport(Base):
	__tablename__ = "bug_reports"
	bug_report_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"))
	description = Column(Text, nullable=False)
	page_url = Column(String)
	browser_info = Column(String)
	attachments = Column(JSON, default=list)
	status = Column(String, default="new")
	admin_notes = Column(Text)
	admin_read = Column(Boolean, default=False)
	admin_response_video_url = Column(String)
	admin_response_video_name = Column(String)
	live_session_status = Column(String)
	live_session_room_url = Column(String)
	live_session_requested_by = Column(String)
	live_session_requested_at = Column(DateTime)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow)

	doctor = relationship("Doctor")


class BillingClaim(Base):
	__tablename__ = "billing_claims"
	claim_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	claim_number = Column(String)
	cpt_code = Column(String)
	icd10_codes = Column(String)
	service_date = Column(Date)
	payer = Column(String)
	billed_amount = Column(Money, default=0)
	paid_amount = Column(Money, default=0)
	status = Column(String, default="draft")
	submitted_at = Column(DateTime)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)


class BillingPayment(Base):
	__tablename__ = "billing_payments"
	payment_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"))
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	amount = Column(Money, nullable=False)
	status = Column(String, default="pending")
	method = Column(String)
	reference = Column(String)
	payment_date = Column(DateTime, default=utcnow)
	created_at = Column(DateTime, default=utcnow)


class FeeScheduleItem(Base):
	__tablename__ = "fee_schedule"
	__table_args__ = (UniqueConstraint("doctor_id", "code", name="uq_fee_schedule_doctor_code"),)
	fee_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	code = Column(String, nullable=False)
	description = Column(String)
	amount = Column(Money, nullable=False)
	is_active = Column(Boolean, default=True)


class PatientStatement(Base):
	__tablename__ = "patient_statements"
	statement_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	statement_date = Column(Date, nullable=False)
	total_billed = Column(Money, default=0)
	total_paid = Column(Money, default=0)
	balance_due = Column(Money, default=0)
	line_items = Column(JSON, default=list)
	status = Column(String, default="generated")
	created_at = Column(DateTime, default=utcnow)


class InsuranceEligibilityCheck(Base):
	__tablename__ = "insurance_eligibility_checks"
	check_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	payer = Column(String)
	member_id = Column(String)
	status = Column(String, default="unknown")
	copay = Column(Money)
	deductible_remaining = Column(Money)
	response = Column(JSON)
	checked_at = Column(DateTime, default=utcnow)


class CommunicationLog(Base):
	__tablename__ = "communication_logs"
	log_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"))
	channel = Column(String, nullable=False)
	direction = Column(String, default="outbound")
	to_number = Column(String)
	from_number = Column(String)
	message = Column(Text)
	status = Column(String)
	external_id = Column(String)
	meeting_url = Column(String)
	recording_url = Column(String)
	duration_seconds = Column(Integer)
	created_at = Column(DateTime, default=utcnow)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

	patient = relationship("Patient")


class PatientMessage(Base):
	__tablename__ = "patient_messages"
	message_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"), nullable=False)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"))
	sender_type = Column(String, nullable=False)
	content = Column(Text, nullable=False)
	is_read = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)


class StaffMember(Base):
	__tablename__ = "practice_staff"
	staff_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	first_name = Column(String, nullable=False)
	last_name = Column(String)
	email = Column(String)
	role = Column(String, default="assistant")
	active = Column(Boolean, default=True)

	@property
	def full_name(self) -> str:
		return f"{self.first_name or ''} {self.last_name or ''}".strip()


class StaffConversation(Base):
	__tablename__ = "staff_conversations"
	conversation_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	conversation_type = Column(String, nullable=False)
	name = Column(String)
	description = Column(Text)
	patient_id = Column(Integer, ForeignKey("patients.patient_id"))
	created_by = Column(Integer, ForeignKey("practice_staff.staff_id"))
	is_archived = Column(Boolean, default=False)
	last_message_at = Column(DateTime)
	last_message_preview = Column(String)
	created_at = Column(DateTime, default=utcnow)

	participants = relationship("StaffConversationParticipant", back_populates="conversation")


class StaffConversationParticipant(Base):
	__tablename__ = "staff_conversation_participants"
	__table_args__ = (UniqueConstraint("conversation_id", "staff_id", name="uq_staff_participant"),)
	participant_id = Column(Integer, primary_key=True)
	conversation_id = Column(Integer, ForeignKey("staff_conversations.conversation_id"), nullable=False)
	staff_id = Column(Integer, ForeignKey("practice_staff.staff_id"), nullable=False)
	role = Column(String, default="member")
	last_read_at = Column(DateTime)
	is_muted = Column(Boolean, default=False)

	conversation = relationship("StaffConversation", back_populates="participants")
	staff = relationship("StaffMember")


class StaffMessage(Base):
	__tablename__ = "staff_messages"
	message_id = Column(Integer, primary_key=True)
	conversation_id = Column(Integer, ForeignKey("staff_conversations.conversation_id"), nullable=False)
	sender_id = Column(Integer, ForeignKey("practice_staff.staff_id"), nullable=False)
	content = Column(Text, nullable=False)
	message_type = Column(String, default="text")
	reply_to_id = Column(Integer, ForeignKey("staff_messages.message_id"))
	message_metadata = Column("metadata", JSON, default=dict)
	is_edited = Column(Boolean, default=False)
	is_deleted = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)

	sender = relationship("StaffMember")


class StaffNotification(Base):
	__tablename__ = "staff_notifications"
	notification_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	recipient_id = Column(Integer, ForeignKey("practice_staff.staff_id"), nullable=False)
	notification_type = Column(String, nullable=False)
	title = Column(String)
	body = Column(Text)
	link = Column(String)
	reference_type = Column(String)
	reference_id = Column(Integer)
	is_read = Column(Boolean, default=False)
	read_at = Column(DateTime)
	created_at = Column(DateTime, default=utcnow)


class AdminConversation(Base):
	__tablename__ = "admin_conversations"
	conversation_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	doctor_name = Column(String)
	doctor_specialty = Column(String)
	last_message = Column(String)
	last_message_at = Column(DateTime, default=utcnow)
	unread_count = Column(Integer, default=0)
	is_pinned = Column(Boolean, default=False)
	is_archived = Column(Boolean, default=False)
	status = Column(String, default="active")


class AdminMessage(Base):
	__tablename__ = "admin_messages"
	message_id = Column(Integer, primary_key=True)
	conversation_id = Column(Integer, ForeignKey("admin_conversations.conversation_id"), nullable=False)
	sender_type = Column(String, nullable=False)
	sender_name = Column(String)
	content = Column(Text, nullable=False)
	message_type = Column(String, default="text")
	is_read = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)


class Notification(Base):
	__tablename__ = "notifications"
	notification_id = Column(Integer, primary_key=True)
	doctor_id = Column(Integer, ForeignKey("doctors.doctor_id"), nullable=False)
	notification_type = Column(String, nullable=False)
	title = Column(String)
	message = Column(Text)
	link = Column(String)
	data = Column(JSON)
	is_read = Column(Boolean, default=False)
	created_at = Column(DateTime, default=utcnow)


class CdssResponse(Base):
	__tablename__ = "cdss_responses"
	response_id = Column(Integer, primary_key=True)
	appointment_id = Column(Integer, ForeignKey("appointments.appointment_id"), nullable=False)
	response_data = Column(JSON, nullable=False)
	created_by = Column(String)
	created_at = Column(DateTime, default=utcnow)
