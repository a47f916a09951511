from __future__ import annotations

import enum
from dataclasses import dataclass
from datetime import timedelta
from typing import Dict, List, Optional

from .results import Endpoint, EndpointRole
from .settings import Settings


class TaskKind(str, enum.Enum):
	SCORE_ANALYSIS = "score-analysis"
	CAREER_OPTIONS = "career-options"
	CAREER_DETAILS = "career-details"
	LEARNING_PATH = "learning-path-generation"
	ASSESSMENT_QUESTIONS = "assessment-questions"
	CONTENT_TRANSCRIPT = "content-transcript"
	MODULE_ASSESSMENT = "module-assessment"
	CHAT_ANSWER = "chat-answer"


@dataclass(frozen=True)
class TaskPolicy:
	kind: TaskKind
	primary_url: str
	fallback_url: Optional[str] = None
	timeout: float = 30.0
	method: str = "POST"
	# None disables caching for the kind
	cache_ttl: Optional[timedelta] = timedelta(hours=24)
	cache_fallbacks: bool = False
	max_network_attempts: int = 2
	retry_backoff: float = 0.0
	# Ceiling on the caller-supplied attemptNumber; None means the kind has no retakes
	max_user_attempts: Optional[int] = None

	@property
	def cacheable(self) -> bool:
		return self.cache_ttl is not None and self.cache_ttl > timedelta(0)

	def endpoints(self) -> List[Endpoint]:
		endpoints = [Endpoint(EndpointRole.PRIMARY, self.primary_url)]
		if self.fallback_url:
			endpoints.append(Endpoint(EndpointRole.FALLBACK, self.fallback_url))
		return endpoints


# (settings prefix, method, timeout seconds, cached)
_KIND_DEFAULTS = {
	TaskKind.SCORE_ANALYSIS: ("webhook_score_analysis", "POST", 30.0, True),
	TaskKind.CAREER_OPTIONS: ("webhook_career_options", "GET", 15.0, True),
	TaskKind.CAREER_DETAILS: ("webhook_career_details", "POST", 30.0, True),
	TaskKind.LEARNING_PATH: ("webhook_learning_path", "POST", 45.0, True),
	TaskKind.ASSESSMENT_QUESTIONS: ("webhook_assessment_questions", "POST", 30.0, True),
	TaskKind.CONTENT_TRANSCRIPT: ("webhook_content_transcript", "POST", 60.0, True),
	TaskKind.MODULE_ASSESSMENT: ("webhook_module_assessment", "POST", 30.0, False),
	TaskKind.CHAT_ANSWER: ("webhook_chat_answer", "GET", 15.0, False),
}


def build_policies(settings: Settings) -> Dict[TaskKind, TaskPolicy]:
	"""Build the per-kind policy table once, at construction time."""
	ttl = timedelta(hours=settings.cache_ttl_hours) if settings.cache_ttl_hours > 0 else None
	policies: Dict[TaskKind, TaskPolicy] = {}
	for kind, (prefix, method, timeout, cached) in _KIND_DEFAULTS.items():
		policies[kind] = TaskPolicy(
			kind=kind,
			primary_url=getattr(settings, f"{prefix}_url"),
			fallback_url=getattr(settings, f"{prefix}_fallback_url"),
			timeout=timeout,
			method=method,
			cache_ttl=ttl if cached else None,
			cache_fallbacks=settings.cache_fallbacks,
			retry_backoff=settings.webhook_retry_backoff_seconds,
			max_user_attempts=settings.max_assessment_attempts if kind is TaskKind.MODULE_ASSESSMENT else None,
		)
	return policies
