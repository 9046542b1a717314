"""Shared test helpers for plan-dispatch tests."""

from pathlib import Path
from typing import Any, Optional

from plan_dispatch.config import Config


def make_config(tmp_path: Path, **overrides: Any) -> Config:
	"""Config rooted in a temporary directory."""
	config = Config(
		config_dir=tmp_path / "config",
		data_dir=tmp_path / "data",
		environment="test",
		**overrides,
	)
	config.ensure_dirs()
	return config


def op(name: str, **payload: Any) -> dict:
	"""Build an `{op, payload}` request body."""
	return {"op": name, "payload": payload}


def start_body(
	owner_id: str = "u1",
	plan_type: str = "diet",
	summary: str = "S",
	data: Optional[Any] = None,
	**state: Any,
) -> dict:
	"""start_plan body with the defaults used across the scenarios."""
	state_json = {"summary": summary, "data": {"a": 1} if data is None else data, **state}
	return op("start_plan", owner_id=owner_id, plan_type=plan_type, state_json=state_json)
