"""
Response Normalizer
===================

Turns whatever JSON the remote workflows send back into the canonical payload
for a task kind. Upstream responses show up as a bare object, as an array
wrapping the object, or nested under a generic envelope field. Extraction is an
ordered strategy table:

1. ``ArrayWrapped``   - first element of a non-empty array
2. ``FieldEnvelope``  - known field names, task-specific first, then generic
3. ``RawObject``      - the value itself

Each candidate is handed to the task's coercer; the first coercer that returns
a payload wins. If nothing matches, the deterministic fallback for the task is
used and the result is marked ``fallback``.
"""

from __future__ import annotations

import math
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Tuple

from .db import utcnow
from .fallbacks import FALLBACKS
from .results import CanonicalResult, EndpointRole, Failure, FailureKind, Outcome, ResultStatus, Success
from .tasks import TaskKind

logger = logging.getLogger(__name__)

TEXT_FIELDS: Tuple[str, ...] = ("output", "result", "response", "message", "text", "content", "answer")
GENERIC_FIELDS: Tuple[str, ...] = ("output", "data", "json")
MIN_LOOSE_TEXT_LENGTH = 20


# ----------------------------------------------------------------------------
# Field helpers
# ----------------------------------------------------------------------------

def flatten(obj: Dict[str, Any], parent: str = "", out: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
	"""Flatten nested dicts into dotted keys; lists are leaves."""
	if out is None:
		out = {}
	for key, value in obj.items():
		name = f"{parent}.{key}" if parent else str(key)
		if isinstance(value, dict):
			flatten(value, name, out)
		else:
			out[name] = value
	return out


def _non_empty(value: Any) -> bool:
	return isinstance(value, str) and bool(value.strip())


def first_text(obj: Any, fields: Sequence[str] = TEXT_FIELDS) -> Optional[str]:
	"""First non-empty string under a candidate field name; exact keys beat nested ones."""
	if _non_empty(obj):
		return obj.strip()
	if not isinstance(obj, dict):
		return None
	flat = flatten(obj)
	for name in fields:
		if _non_empty(flat.get(name)):
			return flat[name].strip()
	for name in fields:
		suffix = f".{name}"
		for key, value in flat.items():
			if key.endswith(suffix) and _non_empty(value):
				return value.strip()
	return None


def loose_text(obj: Any, min_length: int = MIN_LOOSE_TEXT_LENGTH) -> Optional[str]:
	if not isinstance(obj, dict):
		return None
	for key, value in flatten(obj).items():
		if key == "error" or key.endswith(".error"):
			continue
		if isinstance(value, str) and len(value.strip()) >= min_length:
			return value.strip()
	return None


def coerce_number(value: Any, default: float = 0) -> float:
	"""Parse a number leniently; anything unparseable becomes ``default``."""
	if isinstance(value, bool) or value is None:
		return default
	if isinstance(value, (int, float)):
		number = float(value)
	elif isinstance(value, str):
		text = value.strip().rstrip("%").strip()
		try:
			number = float(text)
		except ValueError:
			return default
	else:
		return default
	if math.isnan(number) or math.isinf(number):
		return default
	return int(number) if number.is_integer() else number


def clamp_percentage(value: Any) -> float:
	number = coerce_number(value)
	return max(0, min(100, number))


def _first_key(obj: Dict[str, Any], names: Sequence[str]) -> Any:
	for name in names:
		if name in obj and obj[name] is not None:
			return obj[name]
	return None


def _string_list(value: Any) -> List[str]:
	if isinstance(value, str):
		return [value.strip()] if value.strip() else []
	if isinstance(value, list):
		return [str(v).strip() for v in value if v is not None and str(v).strip()]
	return []


# ----------------------------------------------------------------------------
# Shape matchers
# ----------------------------------------------------------------------------

class ShapeMatcher:
	name = "shape"

	def candidates(self, value: Any) -> Iterator[Any]:
		raise NotImplementedError


class RawObject(ShapeMatcher):
	name = "raw"

	def candidates(self, value: Any) -> Iterator[Any]:
		yield value


class FieldEnvelope(ShapeMatcher):
	def __init__(self, field: str, nested: Sequence[str] = ()) -> None:
		self.field = field
		self.nested = tuple(nested)
		self.name = f"field:{field}"

	def candidates(self, value: Any) -> Iterator[Any]:
		if not isinstance(value, dict) or self.field not in value:
			return
		inner = value[self.field]
		yield inner
		if isinstance(inner, dict):
			for name in self.nested:
				if name in inner:
					yield inner[name]


class ArrayWrapped(ShapeMatcher):
	name = "array"

	def __init__(self, inner: Sequence[ShapeMatcher]) -> None:
		self.inner = list(inner)

	def candidates(self, value: Any) -> Iterator[Any]:
		if not isinstance(value, list) or not value:
			return
		first = value[0]
		for matcher in self.inner:
			yield from matcher.candidates(first)


Coercer = Callable[[Any], Optional[Any]]


@dataclass(frozen=True)
class TaskShape:
	fields: Tuple[str, ...]
	coerce: Coercer
	# Second pass over the same candidates when the strict coercer found nothing
	relaxed: Optional[Coercer] = None

	def matchers(self) -> List[ShapeMatcher]:
		names = tuple(dict.fromkeys(self.fields + GENERIC_FIELDS))
		envelopes: List[ShapeMatcher] = [FieldEnvelope(name, nested=names) for name in names]
		return [ArrayWrapped(envelopes + [RawObject()]), *envelopes, RawObject()]

	def candidates(self, value: Any) -> Iterator[Any]:
		for matcher in self.matchers():
			yield from matcher.candidates(value)


# ----------------------------------------------------------------------------
# Per-task coercers
# ----------------------------------------------------------------------------

def _coerce_score_analysis(candidate: Any) -> Optional[Dict[str, Any]]:
	if not isinstance(candidate, dict):
		return None
	score = _first_key(candidate, ("score", "percentage", "overallScore", "totalScore"))
	summary = _first_key(candidate, ("summary", "analysis", "feedback", "message"))
	if score is None and not _non_empty(summary):
		return None
	return {
		"score": clamp_percentage(score),
		"summary": summary.strip() if _non_empty(summary) else "Assessment completed successfully!",
	}


def _coerce_career_options(candidate: Any) -> Optional[List[Dict[str, str]]]:
	if not isinstance(candidate, list):
		return None
	options: List[Dict[str, str]] = []
	for index, item in enumerate(candidate):
		if not isinstance(item, dict):
			continue
		career = _first_key(item, ("career", "title", "name"))
		if not _non_empty(career):
			continue
		identifier = _first_key(item, ("ID", "id"))
		description = _first_key(item, ("description", "summary"))
		options.append({
			"ID": str(identifier) if identifier is not None else str(index + 1),
			"career": career.strip(),
			"description": description.strip() if _non_empty(description) else "",
		})
	return options or None


_CAREER_DETAIL_KEYS = ("greeting", "overview", "timeRequired", "focusAreas", "learningPath")


def _coerce_career_details(candidate: Any) -> Optional[Dict[str, Any]]:
	if not isinstance(candidate, dict) or not any(key in candidate for key in _CAREER_DETAIL_KEYS):
		return None
	path = candidate.get("learningPath")
	return {
		"greeting": str(candidate.get("greeting") or "").strip(),
		"overview": _string_list(candidate.get("overview")),
		"timeRequired": str(candidate.get("timeRequired") or "").strip(),
		"focusAreas": _string_list(candidate.get("focusAreas")),
		"learningPath": [m for m in path if isinstance(m, dict)] if isinstance(path, list) else [],
	}


def _coerce_learning_path(candidate: Any) -> Optional[Dict[str, Any]]:
	if not isinstance(candidate, dict):
		return None
	raw_milestones = candidate.get("milestones")
	if not isinstance(raw_milestones, list):
		return None
	milestones: List[Dict[str, Any]] = []
	for index, item in enumerate(m for m in raw_milestones if isinstance(m, dict)):
		milestones.append({
			"milestoneId": str(item.get("milestoneId") or f"MIL_{index}"),
			"name": str(item.get("name") or f"Milestone {index + 1}"),
			"description": str(item.get("description") or ""),
			"modules": item.get("modules") if isinstance(item.get("modules"), list) else [],
			"estimatedTime": coerce_number(item.get("estimatedTime"), default=120),
			"prerequisites": _string_list(item.get("prerequisites")),
			"status": "available" if index == 0 else "locked",
			"progress": 0,
		})
	if not milestones:
		return None
	return {
		"name": str(candidate.get("name") or "Personalized Learning Path"),
		"description": str(candidate.get("description") or "AI-generated learning path based on your assessment"),
		"category": str(candidate.get("category") or "academic"),
		"milestones": milestones,
		"totalModules": coerce_number(candidate.get("totalModules"), default=len(milestones) * 3),
		"totalDuration": coerce_number(candidate.get("totalDuration"), default=sum(m["estimatedTime"] for m in milestones)),
		"totalXpPoints": coerce_number(candidate.get("totalXpPoints"), default=len(milestones) * 100),
	}


def _coerce_assessment_questions(candidate: Any) -> Optional[List[Dict[str, Any]]]:
	if not isinstance(candidate, list):
		return None
	questions: List[Dict[str, Any]] = []
	for item in candidate:
		if not isinstance(item, dict) or not _non_empty(item.get("question")):
			continue
		questions.append({
			"id": str(item.get("id") or f"q{len(questions) + 1}"),
			"question": item["question"].strip(),
			"options": _string_list(item.get("options")),
			"category": str(item.get("category") or "General"),
			"points": coerce_number(item.get("points"), default=10),
			"timeLimit": coerce_number(item.get("timeLimit"), default=120),
			"type": str(item.get("type") or "multiple-choice"),
		})
	return questions or None


def _coerce_transcript(candidate: Any) -> Optional[Dict[str, Any]]:
	if not isinstance(candidate, dict):
		return None
	segments = candidate.get("segments")
	text = candidate.get("transcript")
	if isinstance(text, list) and not isinstance(segments, list):
		segments, text = text, None
	segments = [s for s in segments if s is not None] if isinstance(segments, list) else []
	if not _non_empty(text):
		text = " ".join(str(s.get("text", "")).strip() if isinstance(s, dict) else str(s).strip() for s in segments).strip()
	if not text and not segments:
		return None
	return {
		"transcript": text,
		"segments": segments,
		"totalSegments": len(segments),
		"language": str(candidate.get("language") or "en"),
		"available": True,
	}


def _coerce_module_assessment(candidate: Any) -> Optional[Dict[str, Any]]:
	if not isinstance(candidate, dict):
		return None
	percentage = _first_key(candidate, ("percentage", "score"))
	if percentage is None:
		return None
	percentage = clamp_percentage(percentage)
	passed = candidate.get("passed")
	return {
		"score": clamp_percentage(candidate.get("score", percentage)),
		"percentage": percentage,
		"passed": passed if isinstance(passed, bool) else percentage >= 80,
		"feedback": str(candidate.get("feedback") or "").strip(),
		"correctAnswers": coerce_number(candidate.get("correctAnswers")),
		"totalQuestions": coerce_number(candidate.get("totalQuestions")),
	}


def _coerce_chat(candidate: Any) -> Optional[Dict[str, str]]:
	text = first_text(candidate)
	return {"response": text} if text else None


def _relaxed_chat(candidate: Any) -> Optional[Dict[str, str]]:
	text = loose_text(candidate)
	return {"response": text} if text else None


SHAPES: Dict[TaskKind, TaskShape] = {
	TaskKind.SCORE_ANALYSIS: TaskShape(("analysis", "result"), _coerce_score_analysis),
	TaskKind.CAREER_OPTIONS: TaskShape(("careerOptions",), _coerce_career_options),
	TaskKind.CAREER_DETAILS: TaskShape(("careerDetails", "details"), _coerce_career_details),
	TaskKind.LEARNING_PATH: TaskShape(("learningPath",), _coerce_learning_path),
	TaskKind.ASSESSMENT_QUESTIONS: TaskShape(("questions",), _coerce_assessment_questions),
	TaskKind.CONTENT_TRANSCRIPT: TaskShape(("transcriptData",), _coerce_transcript),
	TaskKind.MODULE_ASSESSMENT: TaskShape(("evaluation",), _coerce_module_assessment),
	TaskKind.CHAT_ANSWER: TaskShape((), _coerce_chat, relaxed=_relaxed_chat),
}


# ----------------------------------------------------------------------------
# Normalizer
# ----------------------------------------------------------------------------

class ResponseNormalizer:
	def __init__(self, shapes: Optional[Dict[TaskKind, TaskShape]] = None) -> None:
		self._shapes = dict(shapes or SHAPES)

	def parse(self, kind: TaskKind, value: Any) -> Outcome:
		shape = self._shapes[kind]
		for coercer in (shape.coerce, shape.relaxed):
			if coercer is None:
				continue
			for candidate in shape.candidates(value):
				payload = coercer(candidate)
				if payload is not None:
					return Success(payload)
		return Failure(FailureKind.SHAPE_MISMATCH, f"no recognizable {kind.value} shape in {type(value).__name__}")

	def normalize(
		self,
		kind: TaskKind,
		subject: str,
		parameter: str,
		value: Any,
		request: Optional[Dict[str, Any]] = None,
		*,
		endpoint: Optional[EndpointRole] = None,
	) -> CanonicalResult:
		request = request or {}
		outcome = self.parse(kind, value)
		if isinstance(outcome, Failure):
			logger.warning("Unrecognized %s response for %s; using fallback (%s)", kind.value, subject, outcome.detail)
			return self.fallback(kind, subject, parameter, request, raw_payload=value, error=outcome.describe(), endpoint=endpoint)
		return CanonicalResult(
			subject=subject,
			task_kind=kind.value,
			parameter=parameter,
			payload=outcome.value,
			status=ResultStatus.COMPLETED,
			raw_payload=value,
			created_at=utcnow(),
			request=request,
			endpoint=endpoint,
		)

	def fallback(
		self,
		kind: TaskKind,
		subject: str,
		parameter: str,
		request: Optional[Dict[str, Any]] = None,
		*,
		raw_payload: Any = None,
		error: Optional[str] = None,
		endpoint: Optional[EndpointRole] = None,
	) -> CanonicalResult:
		request = request or {}
		return CanonicalResult(
			subject=subject,
			task_kind=kind.value,
			parameter=parameter,
			payload=FALLBACKS[kind](subject, parameter, request),
			status=ResultStatus.FALLBACK,
			raw_payload=raw_payload,
			created_at=utcnow(),
			request=request,
			endpoint=endpoint,
			error=error,
		)
