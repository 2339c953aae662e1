from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, declarative_base
from sqlalchemy.pool import StaticPool
from telehealth.config import settings

engine_kwargs = {}
if settings.database_url.startswith("sqlite"):
	engine_kwargs["connect_args"] = {"check_same_thread": False}
	# in-memory sqlite must share one connection across the threadpool
	if settings.database_url in ("sqlite://", "sqlite:///:memory:"):
		engine_kwargs["poolclass"] = StaticPool
else:
	engine_kwargs["pool_pre_ping"] = True

engine = create_engine(settings.database_url, **engine_kwargs)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
Base = declarative_base()

# Dependency
def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()
