"""Value types shared by the invoker, normalizer and orchestrator.

Upstream problems travel as ``Failure`` values rather than exceptions so the
orchestrator's choice between a real result and a fallback is a plain branch.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Generic, Optional, TypeVar, Union

T = TypeVar("T")


class FailureKind(str, enum.Enum):
	TIMEOUT = "timeout"
	UNREACHABLE = "unreachable"
	HTTP_ERROR = "http_error"
	EMPTY_BODY = "empty_body"
	MALFORMED_JSON = "malformed_json"
	SHAPE_MISMATCH = "shape_mismatch"


class ResultStatus(str, enum.Enum):
	PENDING = "pending"
	COMPLETED = "completed"
	FAILED = "failed"
	FALLBACK = "fallback"

	@property
	def servable(self) -> bool:
		return self in (ResultStatus.COMPLETED, ResultStatus.FALLBACK)


class EndpointRole(str, enum.Enum):
	PRIMARY = "primary"
	FALLBACK = "fallback"


class AttemptOutcome(str, enum.Enum):
	SUCCESS = "success"
	TIMEOUT = "timeout"
	TRANSPORT_ERROR = "transport_error"
	MALFORMED_RESPONSE = "malformed_response"
	HTTP_ERROR = "http_error"

	@classmethod
	def from_failure(cls, kind: FailureKind) -> "AttemptOutcome":
		if kind is FailureKind.TIMEOUT:
			return cls.TIMEOUT
		if kind is FailureKind.UNREACHABLE:
			return cls.TRANSPORT_ERROR
		if kind is FailureKind.HTTP_ERROR:
			return cls.HTTP_ERROR
		return cls.MALFORMED_RESPONSE


@dataclass(frozen=True)
class Success(Generic[T]):
	value: T
	endpoint: Optional[EndpointRole] = None


@dataclass(frozen=True)
class Failure:
	kind: FailureKind
	detail: str = ""
	status_code: Optional[int] = None
	endpoint: Optional[EndpointRole] = None

	def describe(self) -> str:
		where = f"{self.endpoint.value} endpoint" if self.endpoint else "normalizer"
		label = f"{self.kind.value}({self.status_code})" if self.status_code is not None else self.kind.value
		return f"{label} at {where}: {self.detail}" if self.detail else f"{label} at {where}"


Outcome = Union[Success[T], Failure]


@dataclass(frozen=True)
class Endpoint:
	role: EndpointRole
	url: str


@dataclass(frozen=True)
class InvocationAttempt:
	endpoint: EndpointRole
	url: str
	attempt_number: int
	started_at: datetime
	outcome: AttemptOutcome
	detail: str = ""


@dataclass
class CanonicalResult:
	subject: str
	task_kind: str
	parameter: str
	payload: Any
	status: ResultStatus
	raw_payload: Any = None
	created_at: Optional[datetime] = None
	expires_at: Optional[datetime] = None
	request: dict = field(default_factory=dict)
	endpoint: Optional[EndpointRole] = None
	error: Optional[str] = None
	version: Optional[int] = None

	@property
	def key(self) -> tuple[str, str, str]:
		return (self.subject, self.task_kind, self.parameter)

	@property
	def is_fallback(self) -> bool:
		return self.status is ResultStatus.FALLBACK
