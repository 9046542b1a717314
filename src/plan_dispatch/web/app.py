"""Starlette app with route assembly."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator, Optional

from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.cors import CORSMiddleware
from starlette.routing import Route

from ..config import Config, get_config
from ..dispatcher import PlanDispatcher
from ..plans.store import PlanStore
from .api import ENDPOINT, env_echo, patch_plan

logger = logging.getLogger(__name__)


def build_app(config: Optional[Config] = None, store: Optional[PlanStore] = None) -> Starlette:
	"""
	Build and return the Starlette ASGI app.

	Args:
		config: Settings to use (defaults to the process-wide config)
		store: Store to serve from; one is created at config.db_path when omitted
	"""
	config = config or get_config()
	store = store or PlanStore(str(config.db_path))

	@asynccontextmanager
	async def lifespan(app: Starlette) -> AsyncIterator[None]:
		await store.init()
		logger.info(f"Serving plans from {config.db_path} ({config.environment})")
		try:
			yield
		finally:
			await store.close()

	routes = [
		Route(ENDPOINT, patch_plan, methods=["GET", "POST", "OPTIONS"]),
		Route("/api/envEcho", env_echo, methods=["GET"]),
	]
	middleware = [
		Middleware(
			CORSMiddleware,
			allow_origins=config.cors_origins,
			allow_methods=["GET", "POST", "OPTIONS"],
			allow_headers=["Content-Type", "Authorization"],
		),
	]

	app = Starlette(routes=routes, middleware=middleware, lifespan=lifespan)
	app.state.config = config
	app.state.store = store
	app.state.dispatcher = PlanDispatcher(store, summary_max_length=config.summary_max_length)
	return app
