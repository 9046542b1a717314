"""Tests for the CLI module."""

import json
import os
import sys
from pathlib import Path
from unittest.mock import patch

import pytest

from plan_dispatch.cli import _check_config_toml, main


@pytest.fixture
def env(tmp_path: Path):
	"""Point config and data dirs at a temporary directory."""
	with patch.dict(os.environ, {
		"PLAN_DISPATCH_DATA_DIR": str(tmp_path / "data"),
		"PLAN_DISPATCH_CONFIG_DIR": str(tmp_path / "config"),
	}):
		yield tmp_path


def _run(*argv: str) -> None:
	with patch.object(sys, "argv", ["plan-dispatch", *argv]):
		main()


def _call(capsys, op: str, payload: dict) -> dict:
	_run("call", op, "--payload", json.dumps(payload))
	return json.loads(capsys.readouterr().out)


def test_no_command_prints_help(env, capsys):
	with pytest.raises(SystemExit) as exc:
		_run()
	assert exc.value.code == 1
	assert "usage" in capsys.readouterr().out


def test_init_db_creates_database(env, capsys):
	_run("init-db")
	assert (env / "data" / "plans.db").exists()
	assert "Database ready" in capsys.readouterr().out


def test_call_start_and_read(env, capsys):
	started = _call(capsys, "start_plan", {
		"owner_id": "u1",
		"plan_type": "diet",
		"state_json": {"summary": "S", "data": {"a": 1}},
	})
	assert started["status"] == 200
	assert started["body"]["version"] == 1

	active = _call(capsys, "get_active_plan", {"owner_id": "u1", "plan_type": "diet"})
	assert active["body"]["plan_id"] == started["body"]["plan_id"]


def test_call_failure_exits_nonzero(env, capsys):
	with pytest.raises(SystemExit) as exc:
		_run("call", "get_active_plan", "--payload", '{"owner_id": "u1", "plan_type": "diet"}')
	assert exc.value.code == 1
	out = json.loads(capsys.readouterr().out)
	assert out == {"status": 404, "body": {"error": "NOT_FOUND"}}


def test_call_rejects_bad_payload_json(env, capsys):
	with pytest.raises(SystemExit) as exc:
		_run("call", "ping", "--payload", "{oops")
	assert exc.value.code == 2
	assert "Invalid --payload JSON" in capsys.readouterr().err


def test_history_lists_versions(env, capsys):
	started = _call(capsys, "start_plan", {
		"owner_id": "u1",
		"plan_type": "diet",
		"state_json": {"summary": "first"},
	})
	plan_id = started["body"]["plan_id"]
	_call(capsys, "patch_plan", {
		"owner_id": "u1",
		"plan_id": plan_id,
		"expected_version": 1,
		"new_state_json": {"summary": "second"},
	})

	_run("history", plan_id, "--owner", "u1")
	out = capsys.readouterr().out
	assert plan_id in out
	assert out.index("v2") < out.index("v1")
	assert "second" in out


def test_history_unknown_plan(env, capsys):
	with pytest.raises(SystemExit) as exc:
		_run("history", "missing", "--owner", "u1")
	assert exc.value.code == 1
	assert "NOT_FOUND" in capsys.readouterr().err


def test_check_config_toml_missing(tmp_path: Path):
	status, issue = _check_config_toml(tmp_path)
	assert "not found" in status
	assert issue is None


def test_check_config_toml_invalid(tmp_path: Path):
	(tmp_path / "config.toml").write_text("this is = = not toml")
	status, issue = _check_config_toml(tmp_path)
	assert status.startswith("INVALID")
	assert "config.toml parse error" in issue
