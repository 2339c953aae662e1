import jwt
from fastapi import Depends, HTTPException
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy import func as sa_func
from sqlalchemy.orm import Session
from telehealth.config import settings
from telehealth.db import get_db
from telehealth import models
from telehealth.logger import get_logger

log = get_logger("auth")

security = HTTPBearer(auto_error=False)


def decode_token(token: str) -> dict:
	try:
		return jwt.decode(
			token,
			settings.jwt_secret,
			algorithms=[settings.jwt_algorithm],
			options={"verify_aud": False},
		)
	except jwt.PyJWTError as e:
		log.info("Rejected bearer token: %s", e)
		raise HTTPException(status_code=401, detail="Invalid or expired token")


def current_claims(creds: HTTPAuthorizationCredentials | None = Depends(security)) -> dict:
	if not creds or not creds.credentials:
		raise HTTPException(status_code=401, detail="Unauthorized")
	return decode_token(creds.credentials)


def require_doctor(claims: dict = Depends(current_claims), db: Session = Depends(get_db)) -> models.Doctor:
	email = (claims.get("email") or "").lower()
	if not email:
		raise HTTPException(status_code=401, detail="Unauthorized")
	d = db.query(models.Doctor).filter(sa_func.lower(models.Doctor.email) == email).first()
	if not d:
		raise HTTPException(status_code=403, detail="Doctor not found")
	return d


def is_admin(claims: dict) -> bool:
	role = (claims.get("app_metadata") or {}).get("role") or claims.get("role")
	return role == "admin"


def require_admin(claims: dict = Depends(current_claims)) -> dict:
	if not is_admin(claims):
		raise HTTPException(status_code=403, detail="Admin access required")
	return claims


def client_ip(request) -> str | None:
	fwd = request.headers.get("x-forwarded-for")
	if fwd:
		return fwd.split(",")[0].strip()
	return request.headers.get("x-real-ip") or (request.client.host if request.client else None)
