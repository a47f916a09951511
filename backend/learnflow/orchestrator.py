"""
Orchestrator
============

Entry point for remote computations. Per request:

    CacheCheck -> hit: return
               -> miss, unexpired stored row: warm cache, return
               -> miss: Invoke -> Normalize -> Persist -> CachePut -> return

Upstream trouble never reaches the caller: a failed invocation or an
unrecognizable response is replaced by the task's deterministic fallback and
flagged with ``fallback=True``. Fallbacks are not cached unless the task
policy allows it, so the next request tries the remote engine again.

There is no single-flight lock. Two requests for the same key may both call
the engine; the dedup guard makes the stored row converge to the last write.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any, Dict, Mapping, Optional, Union

from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError

from .cache import MemoryResultCache
from .db import utcnow
from .dedup import DedupGuard
from .errors import InvalidRequestError, InvalidSubjectError, PolicyExceededError
from .normalizer import ResponseNormalizer
from .results import CanonicalResult, Failure, ResultStatus
from .tasks import TaskKind, TaskPolicy
from .webhook_client import WebhookClient

logger = logging.getLogger(__name__)


class ComputeResponse(BaseModel):
	success: bool
	result: Any = None
	cached: bool = False
	fallback: bool = False


def _normalize_parameter(parameter: Optional[str]) -> str:
	if parameter is None:
		return ""
	return str(parameter).strip()


class Orchestrator:
	def __init__(
		self,
		policies: Mapping[TaskKind, TaskPolicy],
		invoker: WebhookClient,
		guard: DedupGuard,
		*,
		normalizer: Optional[ResponseNormalizer] = None,
		cache: Optional[MemoryResultCache] = None,
	) -> None:
		self._policies = dict(policies)
		self._invoker = invoker
		self._guard = guard
		self._normalizer = normalizer or ResponseNormalizer()
		self._cache = cache if cache is not None else MemoryResultCache()

	@property
	def cache(self) -> MemoryResultCache:
		return self._cache

	def policy_for(self, task_kind: Union[TaskKind, str]) -> TaskPolicy:
		try:
			kind = TaskKind(task_kind)
		except ValueError:
			raise InvalidRequestError(f"unknown task kind: {task_kind!r}") from None
		policy = self._policies.get(kind)
		if policy is None:
			raise InvalidRequestError(f"no webhook policy configured for {kind.value}")
		return policy

	@staticmethod
	def _check_attempts(policy: TaskPolicy, payload: Dict[str, Any]) -> None:
		if policy.max_user_attempts is None:
			return
		raw = payload.get("attemptNumber", 1)
		try:
			attempt = int(raw)
		except (TypeError, ValueError):
			raise InvalidRequestError(f"attemptNumber must be an integer, got {raw!r}") from None
		if attempt < 1:
			raise InvalidRequestError("attemptNumber must be at least 1")
		if attempt > policy.max_user_attempts:
			raise PolicyExceededError("Maximum attempts reached for this module", limit=policy.max_user_attempts, attempt=attempt)

	@staticmethod
	def build_request(
		subject: str,
		kind: TaskKind,
		parameter: str,
		payload: Dict[str, Any],
		*,
		max_attempts: Optional[int] = None,
	) -> Dict[str, Any]:
		request = dict(payload)
		request.update({
			"subjectId": subject,
			# Workflows key their lookups on uniqueId
			"uniqueId": subject,
			"taskKind": kind.value,
			"timestamp": utcnow().isoformat() + "Z",
		})
		if parameter:
			request.setdefault("parameter", parameter)
		if max_attempts is not None:
			request["maxAttempts"] = max_attempts
		return request

	async def compute(
		self,
		subject: str,
		task_kind: Union[TaskKind, str],
		parameter: Optional[str] = None,
		*,
		force_regenerate: bool = False,
		payload: Optional[Dict[str, Any]] = None,
	) -> ComputeResponse:
		if not isinstance(subject, str) or not subject.strip():
			raise InvalidSubjectError("subject is required")
		if payload is not None and not isinstance(payload, dict):
			raise InvalidRequestError("payload must be an object")
		subject = subject.strip()
		policy = self.policy_for(task_kind)
		kind = policy.kind
		param = _normalize_parameter(parameter)
		payload = payload or {}
		self._check_attempts(policy, payload)

		if force_regenerate:
			self._cache.invalidate(subject, kind.value, param)
		elif policy.cacheable:
			hit = self._cache.get(subject, kind.value, param)
			if hit is not None:
				logger.info("Using cached %s result for %s (%r)", kind.value, subject, param)
				return ComputeResponse(success=True, result=hit.payload, cached=True, fallback=hit.is_fallback)
			stored = self._load_stored(subject, kind, param)
			if stored is not None:
				logger.info("Using stored %s result for %s (%r)", kind.value, subject, param)
				return ComputeResponse(success=True, result=stored.payload, cached=True, fallback=False)

		logger.info("Generating new %s result for %s (%r)", kind.value, subject, param)
		request = self.build_request(subject, kind, param, payload, max_attempts=policy.max_user_attempts)
		outcome, attempts = await self._invoker.invoke_with_attempts(policy, request)
		if isinstance(outcome, Failure):
			logger.warning("%s unavailable for %s after %d attempt(s): %s; using fallback", kind.value, subject, len(attempts), outcome.describe())
			result = self._normalizer.fallback(kind, subject, param, request, error=outcome.describe(), endpoint=outcome.endpoint)
		else:
			result = self._normalizer.normalize(kind, subject, param, outcome.value, request, endpoint=outcome.endpoint)

		if result.status is ResultStatus.COMPLETED:
			self._persist(result, policy)
			if policy.cacheable:
				self._cache.put(subject, kind.value, param, result, policy.cache_ttl)
		else:
			self._record_failure(result)
			if policy.cache_fallbacks and policy.cacheable:
				self._cache.put(subject, kind.value, param, result, policy.cache_ttl)
		return ComputeResponse(success=True, result=result.payload, cached=False, fallback=result.is_fallback)

	def _load_stored(self, subject: str, kind: TaskKind, parameter: str) -> Optional[CanonicalResult]:
		"""Serve an unexpired completed row after a memory miss and warm the cache with it."""
		try:
			stored = self._guard.get(subject, kind.value, parameter)
		except SQLAlchemyError:
			logger.exception("Failed to read stored %s result for %s", kind.value, subject)
			return None
		if stored is None or stored.status is not ResultStatus.COMPLETED or stored.expires_at is None:
			return None
		remaining = stored.expires_at - utcnow()
		if remaining <= timedelta(0):
			return None
		self._cache.put(subject, kind.value, parameter, stored, remaining)
		return stored

	def _persist(self, result: CanonicalResult, policy: TaskPolicy) -> Optional[CanonicalResult]:
		expires_at = utcnow() + policy.cache_ttl if policy.cacheable else None
		try:
			return self._guard.persist(result, expires_at=expires_at)
		except SQLAlchemyError:
			logger.exception("Failed to persist %s result for %s", result.task_kind, result.subject)
			return None

	def _record_failure(self, result: CanonicalResult) -> None:
		try:
			self._guard.record_failure(
				result.subject,
				result.task_kind,
				result.parameter,
				result.error or "fallback used",
				request=result.request,
				endpoint=result.endpoint,
			)
		except SQLAlchemyError:
			logger.exception("Failed to record %s failure for %s", result.task_kind, result.subject)

	def clear(self, subject: str, task_kind: Optional[Union[TaskKind, str]] = None) -> int:
		"""Evict cached entries and delete stored rows for a subject."""
		if not isinstance(subject, str) or not subject.strip():
			raise InvalidSubjectError("subject is required")
		kind_value = self.policy_for(task_kind).kind.value if task_kind is not None else None
		self._cache.invalidate_subject(subject.strip(), kind_value)
		return self._guard.delete(subject.strip(), kind_value)

	def stats(self) -> Dict[str, Any]:
		stats = self._guard.stats()
		stats["cache_entries"] = len(self._cache)
		return stats

	async def aclose(self) -> None:
		await self._invoker.aclose()
