"""Apply the SQL files under civic/infra/migrations in version order.

Usage: python scripts/apply_migrations.py  (reads POSTGRES_URL like the API does)
"""

from __future__ import annotations

import asyncio
import pathlib

import asyncpg

from civic.settings import settings

MIGRATIONS_DIR = pathlib.Path(__file__).resolve().parent.parent / "civic" / "infra" / "migrations"


async def wait_for_db(retries: int = 30, delay: float = 2.0) -> asyncpg.Connection:
    for attempt in range(retries):
        try:
            return await asyncpg.connect(dsn=settings.postgres_url)
        except (OSError, asyncpg.CannotConnectNowError) as exc:
            print(f"Database not ready ({exc}); waiting {delay}s ({attempt + 1}/{retries})")
            await asyncio.sleep(delay)
    raise SystemExit("Could not connect to database after multiple retries")


async def main() -> None:
    paths = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not paths:
        raise SystemExit("no migration files found")

    conn = await wait_for_db()
    try:
        await conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schema_migrations (
                version TEXT PRIMARY KEY,
                applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
            )
            """
        )
        applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
        for path in paths:
            version = path.name.split("_", 1)[0]
            if version in applied:
                continue
            async with conn.transaction():
                await conn.execute(path.read_text())
                await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", version)
            print(f"Applied {path.name}")
    finally:
        await conn.close()


if __name__ == "__main__":
    asyncio.run(main())
