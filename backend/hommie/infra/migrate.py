"""Apply SQL migrations from ``infra/migrations`` in filename order."""

from __future__ import annotations

import asyncio
import logging
import pathlib
from typing import Optional

import asyncpg

from hommie.infra import postgres

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = pathlib.Path(__file__).resolve().parent / "migrations"


async def apply_migrations(
	pool: Optional[asyncpg.Pool] = None,
	migrations_dir: pathlib.Path = MIGRATIONS_DIR,
) -> list[str]:
	"""Run pending migrations and return the versions applied."""
	paths = sorted(migrations_dir.glob("*.sql"))
	if not paths:
		raise RuntimeError(f"no migration files found in {migrations_dir}")

	pool = pool or await postgres.get_pool()
	await pool.execute(
		"""
		CREATE TABLE IF NOT EXISTS schema_migrations (
			version TEXT PRIMARY KEY,
			applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
		)
		"""
	)
	applied = {row["version"] for row in await pool.fetch("SELECT version FROM schema_migrations")}

	newly_applied: list[str] = []
	for path in paths:
		version = path.name.split("_", 1)[0]
		if version in applied:
			continue
		await pool.execute(path.read_text())
		await pool.execute(
			"INSERT INTO schema_migrations (version) VALUES ($1) ON CONFLICT (version) DO UPDATE SET applied_at = NOW()",
			version,
		)
		logger.info("Applied migration %s", path.name)
		newly_applied.append(version)
	return newly_applied


async def _main() -> None:
	from hommie import obs

	obs.init()
	try:
		await apply_migrations()
	finally:
		await postgres.close_pool()


if __name__ == "__main__":
	asyncio.run(_main())
