from pydantic_settings import BaseSettings
from pydantic import Field

class Settings(BaseSettings):
	app_env: str = Field(default="development")
	database_url: str = Field(default="sqlite:///./telehealth.db")
	provider_timezone: str = Field(default="America/Phoenix")
	public_base_url: str = Field(default="http://localhost:8000")

	jwt_secret: str = Field(default="dev-secret-change-me")
	jwt_algorithm: str = Field(default="HS256")

	groq_api_key: str | None = None
	groq_model: str = Field(default="llama3-70b-8192")

	google_token_file: str | None = Field(default="token.json")
	admin_email: str | None = None

	twilio_account_sid: str | None = None
	twilio_auth_token: str | None = None
	twilio_phone_number: str | None = None
	twilio_api_key: str | None = None
	twilio_api_secret: str | None = None
	twilio_twiml_app_sid: str | None = None

	daily_api_key: str | None = None
	daily_api_url: str = Field(default="https://api.daily.co/v1")

	supabase_url: str | None = None
	supabase_service_role_key: str | None = None
	bug_report_bucket: str = Field(default="bug-reports")

	celery_broker_url: str = Field(default="redis://localhost:6379/0")
	celery_result_backend: str = Field(default="redis://localhost:6379/1")
	celery_task_always_eager: bool = Field(default=False)

	class Config:
		env_file = ".env"
		env_file_encoding = "utf-8"

settings = Settings()
