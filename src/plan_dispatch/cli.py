"""CLI for plan-dispatch: serve, init-db, call, history, and doctor commands."""

import argparse
import asyncio
import json
import platform
import sys
from importlib.metadata import version as pkg_version
from pathlib import Path

from .config import load_config
from .dispatcher import PlanDispatcher
from .logging_config import setup_logging
from .outcomes import to_response
from .plans.store import PlanStore

CORE_DEPS = ["aiosqlite", "platformdirs", "pydantic", "starlette", "uvicorn"]


def cmd_serve(args: argparse.Namespace) -> None:
	"""Run the HTTP server."""
	from .web import run_server

	config = load_config()
	setup_logging(config.log_level, config.log_dir)
	run_server(config, host=args.host or "", port=args.port or 0)


def cmd_init_db(args: argparse.Namespace) -> None:
	"""Create the database schema at the configured path."""
	config = load_config()

	async def _init() -> None:
		store = PlanStore(str(config.db_path))
		await store.init()
		await store.close()

	asyncio.run(_init())
	print(f"Database ready: {config.db_path}")


async def _dispatch_once(db_path: str, summary_max_length: int, body: dict) -> tuple[int, dict]:
	"""Open the store, run one operation, and close it again."""
	store = PlanStore(db_path)
	await store.init()
	try:
		dispatcher = PlanDispatcher(store, summary_max_length=summary_max_length)
		return to_response(await dispatcher.dispatch(body))
	finally:
		await store.close()


def cmd_call(args: argparse.Namespace) -> None:
	"""Dispatch a single operation against the local database and print the response."""
	try:
		payload = json.loads(args.payload) if args.payload else {}
	except json.JSONDecodeError as e:
		print(f"Invalid --payload JSON: {e}", file=sys.stderr)
		sys.exit(2)

	config = load_config()
	status, body = asyncio.run(
		_dispatch_once(str(config.db_path), config.summary_max_length, {"op": args.op, "payload": payload})
	)
	print(json.dumps({"status": status, "body": body}, indent=2))
	if status >= 300:
		sys.exit(1)


def cmd_history(args: argparse.Namespace) -> None:
	"""Print the version history of a plan, newest first."""
	config = load_config()
	status, body = asyncio.run(
		_dispatch_once(
			str(config.db_path),
			config.summary_max_length,
			{"op": "list_plan_history", "payload": {"plan_id": args.plan_id, "owner_id": args.owner}},
		)
	)
	if status != 200:
		print(f"Error: {body.get('error')}", file=sys.stderr)
		sys.exit(1)

	print(f"Plan {body['plan_id']}")
	print(f"{'=' * 40}")
	for entry in body["entries"]:
		summary = entry["summary"]
		if len(summary) > 60:
			summary = summary[:57] + "..."
		print(f"  v{entry['version']:<4d} {entry['created_at']}  {summary}")


def _check_config_toml(config_dir: Path) -> tuple[str, str | None]:
	"""Validate config.toml. Returns (status, issue_or_none)."""
	import tomllib

	toml_path = config_dir / "config.toml"
	if not toml_path.exists():
		return "not found (optional)", None
	try:
		with open(toml_path, "rb") as f:
			tomllib.load(f)
		return "valid", None
	except tomllib.TOMLDecodeError as e:
		msg = f"config.toml parse error: {e}"
		return f"INVALID ({e})", msg


def cmd_doctor(args: argparse.Namespace) -> None:
	"""Health check - verify installation and configuration."""
	print("plan-dispatch doctor")
	print(f"{'=' * 40}")

	config = load_config()
	issues: list[str] = []

	py_ver = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
	print(f"  Python:       {py_ver}")
	print(f"  Platform:     {platform.system()} {platform.machine()}")
	print()

	print("  Core deps:")
	for dep in CORE_DEPS:
		try:
			dep_ver = pkg_version(dep)
			print(f"    {dep:22s} {dep_ver}")
		except Exception:
			print(f"    {dep:22s} NOT INSTALLED")
			issues.append(f"{dep} package not installed")
	print()

	print("  Config:")
	print(f"    config dir:          {config.config_dir}")
	print(f"    database:            {config.db_path}")
	print(f"    environment:         {config.environment}")
	toml_status, toml_issue = _check_config_toml(config.config_dir)
	print(f"    config.toml:         {toml_status}")
	if toml_issue:
		issues.append(toml_issue)
	print()

	if issues:
		print(f"  {len(issues)} issue(s) found:")
		for issue in issues:
			print(f"    - {issue}")
		sys.exit(1)
	else:
		print("  All checks passed.")


def main() -> None:
	"""CLI entry point."""
	parser = argparse.ArgumentParser(
		prog="plan-dispatch",
		description="Versioned plan storage with optimistic locking behind one JSON endpoint",
	)
	subparsers = parser.add_subparsers(dest="command")

	# serve
	serve_parser = subparsers.add_parser("serve", help="Run the HTTP server")
	serve_parser.add_argument("--host", type=str, default=None, help="Bind address (default: from config)")
	serve_parser.add_argument("--port", type=int, default=None, help="Port (default: from config)")
	serve_parser.set_defaults(func=cmd_serve)

	# init-db
	init_parser = subparsers.add_parser("init-db", help="Create the database schema")
	init_parser.set_defaults(func=cmd_init_db)

	# call
	call_parser = subparsers.add_parser("call", help="Dispatch one operation locally")
	call_parser.add_argument("op", type=str, help="Operation name (e.g. start_plan, get_active_plan)")
	call_parser.add_argument("--payload", type=str, default=None, help="Payload as a JSON object")
	call_parser.set_defaults(func=cmd_call)

	# history
	history_parser = subparsers.add_parser("history", help="Show the version history of a plan")
	history_parser.add_argument("plan_id", type=str, help="Plan ID")
	history_parser.add_argument("--owner", type=str, required=True, help="Owner ID of the plan")
	history_parser.set_defaults(func=cmd_history)

	# doctor
	doctor_parser = subparsers.add_parser("doctor", help="Health check")
	doctor_parser.set_defaults(func=cmd_doctor)

	args = parser.parse_args()

	if not args.command:
		parser.print_help()
		sys.exit(1)

	args.func(args)
