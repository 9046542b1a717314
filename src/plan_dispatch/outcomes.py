"""
Operation outcomes and their translation to HTTP-style responses.

Handlers return an OpResult instead of raising; to_response() is the only
place that knows which status code each kind of failure maps to.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


class ErrorKind(str, Enum):
	"""Why an operation did not succeed."""
	VALIDATION = "VALIDATION"
	UNKNOWN_OP = "UNKNOWN_OP"
	NOT_FOUND = "NOT_FOUND"
	SNAPSHOT_NOT_FOUND = "SNAPSHOT_NOT_FOUND"
	VERSION_CONFLICT = "VERSION_CONFLICT"
	STORAGE = "STORAGE"


STATUS_BY_KIND = {
	ErrorKind.VALIDATION: 400,
	ErrorKind.UNKNOWN_OP: 400,
	ErrorKind.NOT_FOUND: 404,
	ErrorKind.SNAPSHOT_NOT_FOUND: 404,
	ErrorKind.VERSION_CONFLICT: 409,
	ErrorKind.STORAGE: 500,
}


@dataclass
class OpResult:
	"""Outcome of one dispatched operation."""
	body: dict[str, Any] = field(default_factory=dict)
	error: Optional[ErrorKind] = None
	message: str = ""

	@property
	def is_ok(self) -> bool:
		return self.error is None

	@classmethod
	def success(cls, body: dict[str, Any]) -> "OpResult":
		return cls(body=body)

	@classmethod
	def failure(cls, kind: ErrorKind, message: str = "", **extra: Any) -> "OpResult":
		"""
		Build a failed outcome.

		Args:
			kind: Error category
			message: Human readable detail (used for VALIDATION and STORAGE)
			extra: Additional fields for the response body (e.g. current_version)
		"""
		return cls(body=dict(extra), error=kind, message=message)


def to_response(result: OpResult) -> tuple[int, dict[str, Any]]:
	"""
	Map an OpResult to (status_code, json_body).

	Validation and storage failures carry their message in `error`; every
	other kind reports its own name so clients can branch on it.
	"""
	if result.is_ok:
		return 200, result.body

	if result.error in (ErrorKind.VALIDATION, ErrorKind.STORAGE):
		error = result.message or result.error.value
	else:
		error = result.error.value

	return STATUS_BY_KIND[result.error], {"error": error, **result.body}
