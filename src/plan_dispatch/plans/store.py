"""
Plan Store - SQLite-backed active plans with an append-only version history.

Features:
- One active plan per (owner_id, plan_type), enforced by an upsert
- Compare-and-swap version updates in a single conditional statement
- Every write to active_plan appends a plan_history row in the same transaction
"""

import asyncio
import json
import logging
import uuid
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any, AsyncIterator, Optional

import aiosqlite

from .models import ActivePlan, PlanHistoryEntry, utc_now

logger = logging.getLogger(__name__)

# Sentinel for "keep the stored data column as is"
KEEP_DATA = object()


class PlanStore:
	"""
	SQLite-backed plan storage with versioning.

	Usage:
		store = PlanStore("data/plans.db")
		await store.init()

		plan = await store.start_plan("u1", "diet", version=1, summary="S", data={})

		# None means no row matched (absent, not owned, or version moved on)
		updated = await store.patch_plan(plan.plan_id, "u1", expected_version=1, summary="S2")
	"""

	def __init__(self, db_path: str):
		"""Initialize the plan store."""
		self.db_path = db_path
		if db_path != ":memory:":
			Path(db_path).parent.mkdir(parents=True, exist_ok=True)
		self._db: Optional[aiosqlite.Connection] = None
		self._lock = asyncio.Lock()

	async def init(self):
		"""Open the connection and create the schema."""
		if self._db:
			return

		# Autocommit mode: transactions are opened explicitly in _transaction()
		self._db = await aiosqlite.connect(self.db_path, isolation_level=None)
		self._db.row_factory = aiosqlite.Row

		if self.db_path != ":memory:":
			async with self._db.execute("PRAGMA journal_mode=WAL"):
				pass
		async with self._db.execute("PRAGMA busy_timeout=5000"):
			pass

		await self._db.executescript("""
			CREATE TABLE IF NOT EXISTS active_plan (
				plan_id TEXT PRIMARY KEY,
				owner_id TEXT NOT NULL,
				plan_type TEXT NOT NULL,
				version INTEGER NOT NULL,
				summary TEXT NOT NULL DEFAULT '',
				data TEXT NOT NULL DEFAULT '{}',
				updated_at TEXT NOT NULL,
				UNIQUE(owner_id, plan_type)
			);

			CREATE TABLE IF NOT EXISTS plan_history (
				id INTEGER PRIMARY KEY AUTOINCREMENT,
				plan_id TEXT NOT NULL,
				version INTEGER NOT NULL,
				summary TEXT NOT NULL DEFAULT '',
				data TEXT NOT NULL DEFAULT '{}',
				created_at TEXT NOT NULL
			);

			CREATE INDEX IF NOT EXISTS idx_plan_history_plan_version
				ON plan_history(plan_id, version);
		""")
		logger.info(f"Plan store initialized: {self.db_path}")

	async def close(self):
		"""Close the database connection."""
		if self._db:
			await self._db.close()
			self._db = None

	@asynccontextmanager
	async def _session(self) -> AsyncIterator[aiosqlite.Connection]:
		"""Serialize access to the shared connection."""
		async with self._lock:
			if not self._db:
				await self.init()
			yield self._db

	@asynccontextmanager
	async def _transaction(self) -> AsyncIterator[aiosqlite.Connection]:
		"""Run the enclosed statements as one IMMEDIATE transaction."""
		async with self._session() as db:
			await db.execute("BEGIN IMMEDIATE")
			try:
				yield db
			except BaseException:
				await db.execute("ROLLBACK")
				raise
			await db.execute("COMMIT")

	async def _fetch_one(self, db: aiosqlite.Connection, query: str, params: tuple) -> Optional[aiosqlite.Row]:
		async with db.execute(query, params) as cursor:
			return await cursor.fetchone()

	async def _append_history(self, db: aiosqlite.Connection, plan: ActivePlan) -> None:
		await db.execute(
			"""
			INSERT INTO plan_history (plan_id, version, summary, data, created_at)
			VALUES (?, ?, ?, ?, ?)
			""",
			(plan.plan_id, plan.version, plan.summary, json.dumps(plan.data, allow_nan=False), plan.updated_at),
		)

	async def start_plan(
		self,
		owner_id: str,
		plan_type: str,
		version: int = 1,
		summary: str = "",
		data: Any = None,
	) -> ActivePlan:
		"""
		Create or replace the active plan for (owner_id, plan_type).

		An existing row keeps its plan_id but takes the given version, summary
		and data as is. A history entry is appended at the resulting version.

		Returns:
			The stored ActivePlan
		"""
		now = utc_now()
		async with self._transaction() as db:
			await db.execute(
				"""
				INSERT INTO active_plan (plan_id, owner_id, plan_type, version, summary, data, updated_at)
				VALUES (?, ?, ?, ?, ?, ?, ?)
				ON CONFLICT(owner_id, plan_type) DO UPDATE SET
					version = excluded.version,
					summary = excluded.summary,
					data = excluded.data,
					updated_at = excluded.updated_at
				""",
				(
					str(uuid.uuid4()),
					owner_id,
					plan_type,
					version,
					summary,
					json.dumps({} if data is None else data, allow_nan=False),
					now,
				),
			)
			row = await self._fetch_one(
				db,
				"SELECT * FROM active_plan WHERE owner_id = ? AND plan_type = ?",
				(owner_id, plan_type),
			)
			plan = ActivePlan.from_row(row)
			await self._append_history(db, plan)

		logger.info(f"Started plan {plan.plan_id} ({owner_id}/{plan_type}) at version {plan.version}")
		return plan

	async def get_active_plan(self, owner_id: str, plan_type: str) -> Optional[ActivePlan]:
		"""Get the active plan for an (owner_id, plan_type) pair, or None."""
		async with self._session() as db:
			row = await self._fetch_one(
				db,
				"SELECT * FROM active_plan WHERE owner_id = ? AND plan_type = ?",
				(owner_id, plan_type),
			)
		return ActivePlan.from_row(row) if row else None

	async def get_plan(self, plan_id: str) -> Optional[ActivePlan]:
		"""Get an active plan by ID regardless of owner, or None."""
		async with self._session() as db:
			row = await self._fetch_one(
				db,
				"SELECT * FROM active_plan WHERE plan_id = ?",
				(plan_id,),
			)
		return ActivePlan.from_row(row) if row else None

	async def _swap(
		self,
		where: str,
		params: tuple,
		expected_version: int,
		summary: str,
		data: Any,
	) -> Optional[ActivePlan]:
		"""
		Bump the version of the row matching `where` if it is still at
		expected_version, and record the new version in plan_history.

		Returns:
			The updated ActivePlan, or None if no row matched
		"""
		keep = data is KEEP_DATA
		async with self._transaction() as db:
			cursor = await db.execute(
				f"""
				UPDATE active_plan
				SET version = version + 1,
					summary = ?,
					data = COALESCE(?, data),
					updated_at = ?
				WHERE {where} AND version = ?
				""",
				(
					summary,
					None if keep else json.dumps(data, allow_nan=False),
					utc_now(),
					*params,
					expected_version,
				),
			)
			matched = cursor.rowcount
			await cursor.close()
			if matched != 1:
				return None

			row = await self._fetch_one(
				db,
				f"SELECT * FROM active_plan WHERE {where}",
				params,
			)
			plan = ActivePlan.from_row(row)
			await self._append_history(db, plan)

		logger.info(f"Updated plan {plan.plan_id} to version {plan.version}")
		return plan

	async def patch_active_plan(
		self,
		owner_id: str,
		plan_type: str,
		expected_version: int,
		summary: str,
		data: Any = KEEP_DATA,
	) -> Optional[ActivePlan]:
		"""Compare-and-swap update of the active plan for (owner_id, plan_type)."""
		return await self._swap(
			"owner_id = ? AND plan_type = ?",
			(owner_id, plan_type),
			expected_version,
			summary,
			data,
		)

	async def patch_plan(
		self,
		plan_id: str,
		owner_id: str,
		expected_version: int,
		summary: str,
		data: Any = KEEP_DATA,
	) -> Optional[ActivePlan]:
		"""Compare-and-swap update of a plan by ID, restricted to its owner."""
		return await self._swap(
			"plan_id = ? AND owner_id = ?",
			(plan_id, owner_id),
			expected_version,
			summary,
			data,
		)

	async def get_snapshot(self, plan_id: str, version: int) -> Optional[PlanHistoryEntry]:
		"""
		Get the history entry of a plan at a version.

		start_plan may record the same version twice; the latest entry wins.
		"""
		async with self._session() as db:
			row = await self._fetch_one(
				db,
				"""
				SELECT * FROM plan_history
				WHERE plan_id = ? AND version = ?
				ORDER BY id DESC
				LIMIT 1
				""",
				(plan_id, version),
			)
		return PlanHistoryEntry.from_row(row) if row else None

	async def list_history(self, plan_id: str) -> list[PlanHistoryEntry]:
		"""
		Get all history entries of a plan.

		Returns:
			List of PlanHistoryEntry objects, newest first
		"""
		async with self._session() as db:
			async with db.execute(
				"SELECT * FROM plan_history WHERE plan_id = ? ORDER BY id DESC",
				(plan_id,),
			) as cursor:
				rows = await cursor.fetchall()

		return [PlanHistoryEntry.from_row(row) for row in rows]
