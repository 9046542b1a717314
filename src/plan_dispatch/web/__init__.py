"""HTTP transport for the plan dispatcher."""

from __future__ import annotations

from typing import TYPE_CHECKING, Optional

if TYPE_CHECKING:
	from ..config import Config


def create_app(config: Optional["Config"] = None) -> object:
	"""Create the Starlette ASGI application."""
	from .app import build_app

	return build_app(config=config)


def run_server(config: "Config", host: str = "", port: int = 0) -> None:
	"""Serve the app with uvicorn until interrupted."""
	import uvicorn

	app = create_app(config=config)
	host = host or config.host
	port = port or config.port
	print(f"plan-dispatch listening on http://{host}:{port}/api/patchPlan")
	print("Press Ctrl+C to stop.")
	uvicorn.run(app, host=host, port=port, log_level=config.log_level.lower())
