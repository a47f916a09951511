from __future__ import annotations
from datetime import timedelta
from sqlalchemy import delete, or_, and_
from sqlalchemy.orm import Session

from .db import utcnow
from .models import ComputedResult
from .results import ResultStatus


def purge_expired_results(db: Session, retention_days: int = 7) -> int:
	now = utcnow()
	threshold = now - timedelta(days=retention_days)
	# Expired rows go once their expiry passes; failed rows are only kept for the retention window
	res = db.execute(
		delete(ComputedResult).where(
			or_(
				and_(ComputedResult.expires_at.is_not(None), ComputedResult.expires_at < now),
				and_(ComputedResult.status == ResultStatus.FAILED.value, ComputedResult.updated_at < threshold),
			)
		)
	)
	db.commit()
	return res.rowcount or 0
