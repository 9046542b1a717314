"""JSON endpoints: the op-dispatch entry point and the environment probe."""

from __future__ import annotations

import json
from typing import Any

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from ..config import Config
from ..dispatcher import PlanDispatcher
from ..outcomes import to_response

ENDPOINT = "/api/patchPlan"


def get_dispatcher(request: Request) -> PlanDispatcher:
	"""Get the PlanDispatcher from app state."""
	return request.app.state.dispatcher


def get_app_config(request: Request) -> Config:
	"""Get the Config from app state."""
	return request.app.state.config


def _reject_constant(name: str) -> Any:
	raise ValueError(f"Invalid JSON constant: {name}")


async def _json_body(request: Request) -> dict[str, Any]:
	"""Decode the body as a JSON object; anything else counts as empty."""
	raw = await request.body()
	try:
		body = json.loads(raw, parse_constant=_reject_constant) if raw else {}
	except ValueError:
		# JSONDecodeError and UnicodeDecodeError are both ValueErrors
		return {}
	return body if isinstance(body, dict) else {}


async def patch_plan(request: Request) -> Response:
	"""Dispatch a `{op, payload}` body; GET describes usage, OPTIONS is a bare preflight."""
	if request.method == "OPTIONS":
		return Response(status_code=204)
	if request.method == "GET":
		return JSONResponse({"ok": True, "endpoint": ENDPOINT, "use": "POST with {op,...}"})

	result = await get_dispatcher(request).dispatch(await _json_body(request))
	status, body = to_response(result)
	return JSONResponse(body, status_code=status)


async def env_echo(request: Request) -> JSONResponse:
	"""Show which database and environment this process is bound to, without exposing paths."""
	config = get_app_config(request)
	return JSONResponse({
		"db_tail": str(config.db_path)[-6:],
		"env": config.environment,
	})
