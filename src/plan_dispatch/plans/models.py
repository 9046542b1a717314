"""
Plan Models - Pydantic schemas for stored plans and operation payloads.

Rows of the two tables (`active_plan`, `plan_history`) and the request
payloads accepted by each dispatcher operation.
"""

import json
import math
from datetime import datetime, timezone
from typing import Annotated, Any, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, BeforeValidator, Field, StrictInt, StrictStr


def utc_now() -> str:
	"""Current time as an ISO-8601 UTC timestamp."""
	return datetime.now(timezone.utc).isoformat()


NonEmptyStr = Annotated[StrictStr, Field(min_length=1)]

# SQLite INTEGER is a signed 64-bit value
MAX_VERSION = 2**63 - 1
Version = Annotated[StrictInt, Field(ge=1, le=MAX_VERSION)]


def _numeric_id_to_str(value: Any) -> Any:
	if isinstance(value, int) and not isinstance(value, bool):
		return str(value)
	return value


OwnerId = Annotated[StrictStr, Field(min_length=1), BeforeValidator(_numeric_id_to_str)]


def ensure_finite(value: Any) -> Any:
	"""Reject NaN and Infinity anywhere in a JSON value; they cannot be encoded back."""
	if isinstance(value, float) and not math.isfinite(value):
		raise ValueError("NaN and Infinity are not valid JSON numbers")
	if isinstance(value, dict):
		for item in value.values():
			ensure_finite(item)
	elif isinstance(value, list):
		for item in value:
			ensure_finite(item)
	return value


JsonData = Annotated[Any, AfterValidator(ensure_finite)]


class ActivePlan(BaseModel):
	"""
	The single current state of a plan for an (owner_id, plan_type) pair.

	Every successful patch or rollback bumps `version` by exactly one.
	"""
	plan_id: str = Field(description="Opaque identifier generated by the store")
	owner_id: str = Field(description="Caller-supplied principal identifier")
	plan_type: str = Field(description="Plan category")
	version: int = Field(default=1, description="Strictly incrementing version")
	summary: str = Field(default="")
	data: Any = Field(default_factory=dict)
	updated_at: str = Field(default_factory=utc_now)

	@classmethod
	def from_row(cls, row) -> "ActivePlan":
		return cls(
			plan_id=row["plan_id"],
			owner_id=row["owner_id"],
			plan_type=row["plan_type"],
			version=row["version"],
			summary=row["summary"],
			data=json.loads(row["data"]),
			updated_at=row["updated_at"],
		)

	def to_record(self) -> dict:
		"""Public plan record; owner_id is never echoed back."""
		return {
			"plan_id": self.plan_id,
			"plan_type": self.plan_type,
			"version": self.version,
			"summary": self.summary,
			"data": self.data,
			"updated_at": self.updated_at,
		}


class PlanHistoryEntry(BaseModel):
	"""Immutable snapshot of a plan at a specific version."""
	plan_id: str
	version: int
	summary: str = Field(default="")
	data: Any = Field(default_factory=dict)
	created_at: str = Field(default_factory=utc_now)

	@classmethod
	def from_row(cls, row) -> "PlanHistoryEntry":
		return cls(
			plan_id=row["plan_id"],
			version=row["version"],
			summary=row["summary"],
			data=json.loads(row["data"]),
			created_at=row["created_at"],
		)


# Operation payloads

class PlanState(BaseModel):
	"""Initial state passed to start_plan as `state_json`."""
	version: Optional[Version] = None
	summary: Optional[StrictStr] = None
	data: JsonData = None


class PlanPatch(BaseModel):
	"""New content passed to the patch operations as `new_state_json`."""
	summary: Optional[StrictStr] = None
	data: JsonData = None


class OwnedRequest(BaseModel):
	"""Base payload for every operation that acts on behalf of a caller."""
	# currentUserId is the field name early clients send
	owner_id: OwnerId = Field(validation_alias=AliasChoices("owner_id", "currentUserId"))


class StartPlanRequest(OwnedRequest):
	plan_type: NonEmptyStr
	state_json: PlanState


class ActivePlanRequest(OwnedRequest):
	plan_type: NonEmptyStr


class PlanByIdRequest(OwnedRequest):
	plan_id: NonEmptyStr


class PatchActivePlanRequest(OwnedRequest):
	plan_type: NonEmptyStr
	expected_version: Version
	new_state_json: PlanPatch


class PatchPlanRequest(OwnedRequest):
	plan_id: NonEmptyStr
	expected_version: Version
	new_state_json: PlanPatch


class RollbackPlanRequest(OwnedRequest):
	plan_id: NonEmptyStr
	target_version: Version
