"""Single writer of ``computed_results`` rows.

The UNIQUE(subject, task_kind, parameter) constraint is the real guard; the
lookup before insert only saves a round trip in the common case. A losing
concurrent insert surfaces as IntegrityError and is replayed as an update of
the row that won, so later successful computations overwrite earlier ones
(last write wins).
"""

from __future__ import annotations

import json
import logging
from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import delete, func, select, update
from sqlalchemy.exc import IntegrityError, NoResultFound
from sqlalchemy.orm import Session, sessionmaker

from .db import utcnow
from .models import ComputedResult
from .results import CanonicalResult, EndpointRole, ResultStatus

logger = logging.getLogger(__name__)

MAX_WRITE_ATTEMPTS = 3


def _dumps(value: Any) -> Optional[str]:
	if value is None:
		return None
	return json.dumps(value, default=str, separators=(",", ":"))


def _loads(text: Optional[str]) -> Any:
	if text is None:
		return None
	try:
		return json.loads(text)
	except ValueError:
		return text


def to_result(row: ComputedResult) -> CanonicalResult:
	request = _loads(row.request_json)
	return CanonicalResult(
		subject=row.subject,
		task_kind=row.task_kind,
		parameter=row.parameter,
		payload=_loads(row.payload_json),
		status=ResultStatus(row.status),
		raw_payload=_loads(row.raw_json),
		created_at=row.created_at,
		expires_at=row.expires_at,
		request=request if isinstance(request, dict) else {},
		endpoint=EndpointRole(row.endpoint) if row.endpoint in {e.value for e in EndpointRole} else None,
		error=row.error_message,
		version=row.version,
	)


class DedupGuard:
	def __init__(self, session_factory: sessionmaker) -> None:
		self._session_factory = session_factory

	@staticmethod
	def _find(db: Session, subject: str, task_kind: str, parameter: str) -> Optional[ComputedResult]:
		stmt = select(ComputedResult).where(
			ComputedResult.subject == subject,
			ComputedResult.task_kind == task_kind,
			ComputedResult.parameter == parameter,
		)
		return db.execute(stmt).scalar_one_or_none()

	def upsert(
		self,
		subject: str,
		task_kind: str,
		parameter: str,
		payload: Any,
		*,
		raw_payload: Any = None,
		request: Optional[Dict[str, Any]] = None,
		status: ResultStatus = ResultStatus.COMPLETED,
		endpoint: Optional[EndpointRole] = None,
		expires_at: Optional[datetime] = None,
	) -> CanonicalResult:
		values = {
			"status": status.value,
			"payload_json": _dumps(payload),
			"raw_json": _dumps(raw_payload),
			"request_json": _dumps(request),
			"endpoint": endpoint.value if endpoint else None,
			"error_message": None,
			"expires_at": expires_at,
		}
		last_error: Optional[IntegrityError] = None
		for _ in range(MAX_WRITE_ATTEMPTS):
			with self._session_factory() as db:
				row = self._find(db, subject, task_kind, parameter)
				if row is None:
					now = utcnow()
					row = ComputedResult(subject=subject, task_kind=task_kind, parameter=parameter, version=1, created_at=now, updated_at=now, **values)
					db.add(row)
					try:
						db.commit()
					except IntegrityError as err:
						# Another writer inserted the same key first; update its row instead
						db.rollback()
						last_error = err
						logger.info("Concurrent insert for %s/%s/%r; retrying as update", subject, task_kind, parameter)
						continue
					return to_result(row)
				now = utcnow()
				db.execute(
					update(ComputedResult)
					.where(ComputedResult.id == row.id)
					.values(updated_at=now, version=ComputedResult.version + 1, **values)
				)
				db.commit()
				db.expire_all()
				refreshed = self._find(db, subject, task_kind, parameter)
				if refreshed is None:
					# Deleted between our update and re-read; write again
					continue
				return to_result(refreshed)
		if last_error is not None:
			raise last_error
		raise NoResultFound(f"row for {subject}/{task_kind}/{parameter!r} disappeared during {MAX_WRITE_ATTEMPTS} write attempts")

	def persist(self, result: CanonicalResult, *, expires_at: Optional[datetime] = None) -> CanonicalResult:
		return self.upsert(
			result.subject,
			result.task_kind,
			result.parameter,
			result.payload,
			raw_payload=result.raw_payload,
			request=result.request,
			status=result.status,
			endpoint=result.endpoint,
			expires_at=expires_at,
		)

	def record_failure(
		self,
		subject: str,
		task_kind: str,
		parameter: str,
		error: str,
		*,
		request: Optional[Dict[str, Any]] = None,
		endpoint: Optional[EndpointRole] = None,
	) -> bool:
		"""Note a failed computation unless a usable row already exists for the key."""
		with self._session_factory() as db:
			row = self._find(db, subject, task_kind, parameter)
			if row is not None:
				if ResultStatus(row.status).servable:
					return False
				row.error_message = error
				row.endpoint = endpoint.value if endpoint else row.endpoint
				row.updated_at = utcnow()
				db.commit()
				return True
			now = utcnow()
			db.add(ComputedResult(
				subject=subject,
				task_kind=task_kind,
				parameter=parameter,
				status=ResultStatus.FAILED.value,
				request_json=_dumps(request),
				endpoint=endpoint.value if endpoint else None,
				error_message=error,
				version=1,
				created_at=now,
				updated_at=now,
			))
			try:
				db.commit()
			except IntegrityError:
				db.rollback()
				logger.debug("Row for %s/%s/%r appeared concurrently; failure not recorded", subject, task_kind, parameter)
				return False
			return True

	def get(self, subject: str, task_kind: str, parameter: str = "") -> Optional[CanonicalResult]:
		with self._session_factory() as db:
			row = self._find(db, subject, task_kind, parameter)
			return to_result(row) if row is not None else None

	def delete(self, subject: str, task_kind: Optional[str] = None) -> int:
		with self._session_factory() as db:
			stmt = delete(ComputedResult).where(ComputedResult.subject == subject)
			if task_kind is not None:
				stmt = stmt.where(ComputedResult.task_kind == task_kind)
			res = db.execute(stmt)
			db.commit()
			return res.rowcount or 0

	def stats(self) -> Dict[str, Any]:
		with self._session_factory() as db:
			by_status = dict(db.execute(select(ComputedResult.status, func.count()).group_by(ComputedResult.status)).all())
			by_kind = dict(db.execute(select(ComputedResult.task_kind, func.count()).group_by(ComputedResult.task_kind)).all())
		return {
			"total": sum(by_status.values()),
			"by_status": {status.value: int(by_status.get(status.value, 0)) for status in ResultStatus},
			"by_task_kind": {kind: int(count) for kind, count in by_kind.items()},
		}
