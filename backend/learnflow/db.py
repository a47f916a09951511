from __future__ import annotations
from datetime import datetime, timezone

from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, declarative_base
from .settings import settings


DATABASE_URL = settings.database_url or "sqlite:///./learnflow.db"

Base = declarative_base()


def utcnow() -> datetime:
	# Naive UTC; SQLite drops tzinfo on the way back
	return datetime.now(timezone.utc).replace(tzinfo=None)


def create_db_engine(url: str) -> Engine:
	connect_args = {"check_same_thread": False} if url.startswith("sqlite") else {}
	return create_engine(url, connect_args=connect_args, future=True)


def create_session_factory(bind: Engine) -> sessionmaker:
	return sessionmaker(autocommit=False, autoflush=False, expire_on_commit=False, bind=bind, future=True)


engine = create_db_engine(DATABASE_URL)
SessionLocal = create_session_factory(engine)


def get_db():
	db = SessionLocal()
	try:
		yield db
	finally:
		db.close()


# Best-effort lightweight migrations for development (SQLite-friendly)
def ensure_schema(bind: Engine | None = None) -> None:
	bind = bind or engine
	try:
		inspector = inspect(bind)
		tables = set(inspector.get_table_names())
	except Exception:
		return
	if "computed_results" in tables:
		cols = {c["name"] for c in inspector.get_columns("computed_results")}
		with bind.begin() as conn:
			if "version" not in cols:
				conn.exec_driver_sql("ALTER TABLE computed_results ADD COLUMN version INTEGER DEFAULT 1 NOT NULL")
			if "error_message" not in cols:
				conn.exec_driver_sql("ALTER TABLE computed_results ADD COLUMN error_message TEXT")
			if "endpoint" not in cols:
				conn.exec_driver_sql("ALTER TABLE computed_results ADD COLUMN endpoint VARCHAR(512)")
