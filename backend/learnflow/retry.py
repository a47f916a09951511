"""Bounded retry across an ordered list of endpoints."""

from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable, List, Sequence, Tuple

from .results import AttemptOutcome, Endpoint, Failure, FailureKind, InvocationAttempt, Outcome, Success
from .db import utcnow

logger = logging.getLogger(__name__)

AttemptCall = Callable[[Endpoint, int], Awaitable[Outcome]]


async def with_retry(
	call: AttemptCall,
	endpoints: Sequence[Endpoint],
	*,
	max_attempts: int = 2,
	backoff: float = 0.0,
	operation_name: str = "webhook",
) -> Tuple[Outcome, List[InvocationAttempt]]:
	"""
	Try ``call`` against each endpoint in order, stopping at the first Success.

	Each endpoint is tried at most once and no more than ``max_attempts``
	calls are made in total. Returns the last outcome together with the
	attempt log.
	"""
	if max_attempts < 1:
		raise ValueError("max_attempts must be at least 1")
	attempts: List[InvocationAttempt] = []
	outcome: Outcome = Failure(FailureKind.UNREACHABLE, "no endpoints configured")
	for number, endpoint in enumerate(list(endpoints)[:max_attempts], start=1):
		if number > 1 and backoff > 0:
			await asyncio.sleep(backoff)
		started_at = utcnow()
		outcome = await call(endpoint, number)
		if isinstance(outcome, Success):
			attempts.append(InvocationAttempt(endpoint.role, endpoint.url, number, started_at, AttemptOutcome.SUCCESS))
			if number > 1:
				logger.info("%s succeeded after retry: endpoint=%s, attempt=%d", operation_name, endpoint.role.value, number)
			return outcome, attempts
		attempts.append(
			InvocationAttempt(endpoint.role, endpoint.url, number, started_at, AttemptOutcome.from_failure(outcome.kind), outcome.detail)
		)
		logger.warning(
			"%s attempt failed: endpoint=%s, attempt=%d/%d, outcome=%s, detail=%s",
			operation_name,
			endpoint.role.value,
			number,
			min(len(endpoints), max_attempts),
			outcome.kind.value,
			outcome.detail,
		)
	return outcome, attempts
