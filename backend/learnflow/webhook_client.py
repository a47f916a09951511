from __future__ import annotations
import json
import logging
from typing import Any, Dict, List, Optional, Tuple

import httpx

from .results import Endpoint, Failure, FailureKind, InvocationAttempt, Outcome, Success
from .retry import with_retry
from .tasks import TaskPolicy

logger = logging.getLogger(__name__)


def _query_params(payload: Dict[str, Any]) -> Dict[str, str]:
	params: Dict[str, str] = {}
	for key, value in payload.items():
		if value is None:
			continue
		if isinstance(value, (dict, list)):
			params[key] = json.dumps(value, separators=(",", ":"))
		elif isinstance(value, bool):
			params[key] = "true" if value else "false"
		else:
			params[key] = str(value)
	return params


class WebhookClient:
	"""Calls remote workflows, trying the primary endpoint and then the fallback."""

	def __init__(self, client: Optional[httpx.AsyncClient] = None) -> None:
		self._owns_client = client is None
		self._client = client or httpx.AsyncClient(headers={"Content-Type": "application/json"})

	async def invoke(self, policy: TaskPolicy, payload: Dict[str, Any]) -> Outcome:
		outcome, _ = await self.invoke_with_attempts(policy, payload)
		return outcome

	async def invoke_with_attempts(self, policy: TaskPolicy, payload: Dict[str, Any]) -> Tuple[Outcome, List[InvocationAttempt]]:
		async def attempt(endpoint: Endpoint, number: int) -> Outcome:
			return await self._send(endpoint, policy, payload)

		outcome, attempts = await with_retry(
			attempt,
			policy.endpoints(),
			max_attempts=policy.max_network_attempts,
			backoff=policy.retry_backoff,
			operation_name=policy.kind.value,
		)
		return outcome, attempts

	async def _send(self, endpoint: Endpoint, policy: TaskPolicy, payload: Dict[str, Any]) -> Outcome:
		try:
			if policy.method.upper() == "GET":
				r = await self._client.get(endpoint.url, params=_query_params(payload), timeout=policy.timeout)
			else:
				r = await self._client.post(endpoint.url, json=payload, timeout=policy.timeout)
		except httpx.TimeoutException as timeout_err:
			return Failure(FailureKind.TIMEOUT, f"no response within {policy.timeout:g}s ({type(timeout_err).__name__})", endpoint=endpoint.role)
		except httpx.RequestError as net_err:
			return Failure(FailureKind.UNREACHABLE, f"{type(net_err).__name__}: {net_err}", endpoint=endpoint.role)
		if not r.is_success:
			return Failure(FailureKind.HTTP_ERROR, r.reason_phrase or "", status_code=r.status_code, endpoint=endpoint.role)
		text = r.text
		if not text or not text.strip():
			return Failure(FailureKind.EMPTY_BODY, "empty response body", endpoint=endpoint.role)
		try:
			data = json.loads(text)
		except (ValueError, RecursionError) as parse_err:
			return Failure(FailureKind.MALFORMED_JSON, f"{type(parse_err).__name__}: {parse_err}", endpoint=endpoint.role)
		logger.debug("Webhook %s answered via %s endpoint", policy.kind.value, endpoint.role.value)
		return Success(data, endpoint=endpoint.role)

	async def aclose(self) -> None:
		if self._owns_client:
			await self._client.aclose()
