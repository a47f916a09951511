from __future__ import annotations

import copy
import threading
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Dict, Optional, Tuple

from .db import utcnow
from .results import CanonicalResult

CacheKey = Tuple[str, str, str]


@dataclass
class CacheEntry:
	result: CanonicalResult
	expires_at: datetime


class MemoryResultCache:
	"""
	Process-local result cache keyed by (subject, task_kind, parameter).

	Only completed and fallback results are stored. A cold cache after a restart
	is fine: a miss just means the orchestrator recomputes.
	"""

	def __init__(self, clock: Callable[[], datetime] = utcnow) -> None:
		self._clock = clock
		self._entries: Dict[CacheKey, CacheEntry] = {}
		self._lock = threading.Lock()

	def get(self, subject: str, task_kind: str, parameter: str = "") -> Optional[CanonicalResult]:
		key = (subject, task_kind, parameter)
		with self._lock:
			entry = self._entries.get(key)
			if entry is None:
				return None
			if self._clock() > entry.expires_at:
				del self._entries[key]
				return None
			if not entry.result.status.servable:
				return None
			# Callers get their own payload; the stored one never leaks out
			return replace(entry.result, payload=copy.deepcopy(entry.result.payload))

	def put(self, subject: str, task_kind: str, parameter: str, result: CanonicalResult, ttl: timedelta) -> bool:
		if not result.status.servable or ttl <= timedelta(0):
			return False
		expires_at = self._clock() + ttl
		with self._lock:
			self._entries[(subject, task_kind, parameter)] = CacheEntry(replace(result, payload=copy.deepcopy(result.payload), expires_at=expires_at), expires_at)
		return True

	def invalidate(self, subject: str, task_kind: str, parameter: str = "") -> bool:
		with self._lock:
			return self._entries.pop((subject, task_kind, parameter), None) is not None

	def invalidate_subject(self, subject: str, task_kind: Optional[str] = None) -> int:
		with self._lock:
			keys = [k for k in self._entries if k[0] == subject and (task_kind is None or k[1] == task_kind)]
			for key in keys:
				del self._entries[key]
			return len(keys)

	def __len__(self) -> int:
		with self._lock:
			return len(self._entries)
