from __future__ import annotations


class ComputeError(Exception):
	"""Base class for errors that reach the caller of ``Orchestrator.compute``."""


class InvalidRequestError(ComputeError, ValueError):
	"""Programmer error in the call itself: unknown task kind, unconfigured policy, bad field."""


class InvalidSubjectError(InvalidRequestError):
	"""Missing or blank subject identifier."""


class PolicyExceededError(ComputeError):
	"""A caller-side policy ceiling was hit, e.g. too many assessment attempts."""

	def __init__(self, message: str, *, limit: int, attempt: int) -> None:
		super().__init__(message)
		self.limit = limit
		self.attempt = attempt
