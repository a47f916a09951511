from __future__ import annotations
from sqlalchemy import Column, String, DateTime, Integer, Text, UniqueConstraint
from .db import Base, utcnow


class ComputedResult(Base):
	__tablename__ = "computed_results"
	# One row per (subject, task_kind, parameter); the constraint is what the dedup guard relies on
	__table_args__ = (
		UniqueConstraint("subject", "task_kind", "parameter", name="uq_computed_results_key"),
	)

	id = Column(Integer, primary_key=True, autoincrement=True)
	subject = Column(String(128), nullable=False, index=True)
	task_kind = Column(String(64), nullable=False, index=True)
	# Empty string is the singleton parameter; never NULL so the constraint applies
	parameter = Column(String(256), nullable=False, default="")
	status = Column(String(16), nullable=False, default="pending", index=True)
	endpoint = Column(String(512), nullable=True)
	request_json = Column(Text, nullable=True)
	raw_json = Column(Text, nullable=True)  # upstream body, kept for audit
	payload_json = Column(Text, nullable=True)  # normalized payload
	error_message = Column(Text, nullable=True)
	version = Column(Integer, nullable=False, default=1)
	created_at = Column(DateTime, default=utcnow, nullable=False)
	updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
	expires_at = Column(DateTime, nullable=True, index=True)
