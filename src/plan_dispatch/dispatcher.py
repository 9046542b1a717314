"""
Plan Operation Dispatcher.

Maps an operation name to a payload model and a handler. Every handler
returns an OpResult; storage failures are turned into STORAGE outcomes
here, so nothing below the transport ever sees an exception for an
expected outcome.
"""

import logging
from typing import Any, Awaitable, Callable, Optional

import aiosqlite
from pydantic import BaseModel, ValidationError

from .config import DEFAULT_SUMMARY_MAX_LENGTH
from .outcomes import ErrorKind, OpResult
from .plans.models import (
	ActivePlan,
	ActivePlanRequest,
	PatchActivePlanRequest,
	PatchPlanRequest,
	PlanByIdRequest,
	PlanPatch,
	RollbackPlanRequest,
	StartPlanRequest,
)
from .plans.store import KEEP_DATA, PlanStore

logger = logging.getLogger(__name__)

Handler = Callable[[Any], Awaitable[OpResult]]

# Errors where an empty value counts as absent
_MISSING_TYPES = {"missing", "string_too_short"}


def describe_validation_error(exc: ValidationError) -> str:
	"""First payload problem as a short message, e.g. "Missing plan_type"."""
	err = exc.errors()[0]
	name = ".".join(str(part) for part in err["loc"]) or "payload"
	if err["type"] in _MISSING_TYPES:
		return f"Missing {name}"
	return f"Invalid {name}: {err['msg']}"


class PlanDispatcher:
	"""
	Stateless dispatcher over an injected PlanStore.

	Usage:
		dispatcher = PlanDispatcher(store)
		result = await dispatcher.dispatch({"op": "get_active_plan", "payload": {...}})
		status, body = to_response(result)
	"""

	def __init__(self, store: PlanStore, summary_max_length: int = DEFAULT_SUMMARY_MAX_LENGTH):
		self.store = store
		self.summary_max_length = summary_max_length
		self._operations: dict[str, tuple[Optional[type[BaseModel]], Handler]] = {
			"ping": (None, self._ping),
			"start_plan": (StartPlanRequest, self._start_plan),
			"get_active_plan": (ActivePlanRequest, self._get_active_plan),
			"get_plan": (PlanByIdRequest, self._get_plan),
			"patch_active_plan": (PatchActivePlanRequest, self._patch_active_plan),
			"patch_plan": (PatchPlanRequest, self._patch_plan),
			"rollback_plan": (RollbackPlanRequest, self._rollback_plan),
			"list_plan_history": (PlanByIdRequest, self._list_plan_history),
		}

	@property
	def operations(self) -> list[str]:
		"""Names of all supported operations."""
		return sorted(self._operations)

	async def dispatch(self, body: Any) -> OpResult:
		"""
		Validate and run one `{op, payload}` request.

		Args:
			body: Decoded request body; anything but a dict is treated as empty

		Returns:
			OpResult for the boundary translator
		"""
		if not isinstance(body, dict):
			body = {}

		op = body.get("op")
		if not op:
			return OpResult.failure(ErrorKind.VALIDATION, "Missing 'op'")

		entry = self._operations.get(op) if isinstance(op, str) else None
		if entry is None:
			logger.debug(f"Unknown op: {op!r}")
			return OpResult.failure(ErrorKind.UNKNOWN_OP)

		request_model, handler = entry
		payload = body.get("payload")
		if not isinstance(payload, dict):
			payload = {}

		request = None
		if request_model is not None:
			try:
				request = request_model.model_validate(payload)
			except ValidationError as e:
				message = describe_validation_error(e)
				logger.debug(f"{op}: {message}")
				return OpResult.failure(ErrorKind.VALIDATION, message)

		try:
			return await handler(request)
		except aiosqlite.Error as e:
			logger.exception(f"{op} failed in storage")
			return OpResult.failure(ErrorKind.STORAGE, str(e))

	def _truncate(self, summary: Optional[str]) -> str:
		return (summary or "")[: self.summary_max_length]

	def _explain_miss(self, current: Optional[ActivePlan], owner_id: str) -> OpResult:
		"""Tell apart "not there" from "moved on" after a conditional update matched nothing."""
		if current is None or current.owner_id != owner_id:
			return OpResult.failure(ErrorKind.NOT_FOUND)
		logger.info(f"Version conflict on plan {current.plan_id}: now at {current.version}")
		return OpResult.failure(ErrorKind.VERSION_CONFLICT, current_version=current.version)

	@staticmethod
	def _patch_data(patch: PlanPatch) -> Any:
		return KEEP_DATA if patch.data is None else patch.data

	async def _ping(self, request: None) -> OpResult:
		return OpResult.success({"ok": True, "msg": "Connected!"})

	async def _start_plan(self, request: StartPlanRequest) -> OpResult:
		state = request.state_json
		plan = await self.store.start_plan(
			request.owner_id,
			request.plan_type,
			version=state.version or 1,
			summary=state.summary or "",
			data={} if state.data is None else state.data,
		)
		return OpResult.success(plan.to_record())

	async def _get_active_plan(self, request: ActivePlanRequest) -> OpResult:
		plan = await self.store.get_active_plan(request.owner_id, request.plan_type)
		if not plan:
			return OpResult.failure(ErrorKind.NOT_FOUND)
		return OpResult.success(plan.to_record())

	async def _owned_plan(self, plan_id: str, owner_id: str) -> Optional[ActivePlan]:
		"""A plan owned by someone else is reported exactly like a missing one."""
		plan = await self.store.get_plan(plan_id)
		if plan is None or plan.owner_id != owner_id:
			return None
		return plan

	async def _get_plan(self, request: PlanByIdRequest) -> OpResult:
		plan = await self._owned_plan(request.plan_id, request.owner_id)
		if not plan:
			return OpResult.failure(ErrorKind.NOT_FOUND)
		return OpResult.success(plan.to_record())

	async def _patch_active_plan(self, request: PatchActivePlanRequest) -> OpResult:
		patch = request.new_state_json
		updated = await self.store.patch_active_plan(
			request.owner_id,
			request.plan_type,
			request.expected_version,
			summary=self._truncate(patch.summary),
			data=self._patch_data(patch),
		)
		if updated:
			return OpResult.success(updated.to_record())

		current = await self.store.get_active_plan(request.owner_id, request.plan_type)
		return self._explain_miss(current, request.owner_id)

	async def _patch_plan(self, request: PatchPlanRequest) -> OpResult:
		patch = request.new_state_json
		updated = await self.store.patch_plan(
			request.plan_id,
			request.owner_id,
			request.expected_version,
			summary=self._truncate(patch.summary),
			data=self._patch_data(patch),
		)
		if updated:
			return OpResult.success(updated.to_record())

		current = await self.store.get_plan(request.plan_id)
		return self._explain_miss(current, request.owner_id)

	async def _rollback_plan(self, request: RollbackPlanRequest) -> OpResult:
		current = await self._owned_plan(request.plan_id, request.owner_id)
		if not current:
			return OpResult.failure(ErrorKind.NOT_FOUND)

		snapshot = await self.store.get_snapshot(request.plan_id, request.target_version)
		if not snapshot:
			return OpResult.failure(ErrorKind.SNAPSHOT_NOT_FOUND)

		# A forward write: the restored content gets current.version + 1
		updated = await self.store.patch_plan(
			request.plan_id,
			request.owner_id,
			current.version,
			summary=snapshot.summary,
			data=snapshot.data,
		)
		if updated:
			logger.info(
				f"Rolled back plan {updated.plan_id} to snapshot v{snapshot.version} as v{updated.version}"
			)
			return OpResult.success(updated.to_record())

		current = await self.store.get_plan(request.plan_id)
		return self._explain_miss(current, request.owner_id)

	async def _list_plan_history(self, request: PlanByIdRequest) -> OpResult:
		plan = await self._owned_plan(request.plan_id, request.owner_id)
		if not plan:
			return OpResult.failure(ErrorKind.NOT_FOUND)

		entries = await self.store.list_history(request.plan_id)
		return OpResult.success({
			"plan_id": plan.plan_id,
			"entries": [entry.model_dump() for entry in entries],
		})
