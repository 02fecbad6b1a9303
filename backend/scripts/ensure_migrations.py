"""Apply pending SQL migrations in filename order and record them in schema_migrations.

Usage: python scripts/ensure_migrations.py  (run from backend/ or the repo root)
"""

import asyncio
import os
import sys
from pathlib import Path

BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
    sys.path.append(str(BACKEND_ROOT))

from app.infra.postgres import close_pool, get_pool
from app.obs.logging import configure_logging, get_logger

MIGRATIONS_DIR = BACKEND_ROOT / "migrations"
logger = get_logger("migrations")


def _version(path: Path) -> str:
    return path.name.split("_", 1)[0]


async def main() -> int:
    files = sorted(MIGRATIONS_DIR.glob("*.sql"))
    if not files:
        logger.warning("no migrations found", extra={"path": str(MIGRATIONS_DIR)})
        return 0
    pool = await get_pool()
    applied_count = 0
    try:
        async with pool.acquire() as conn:
            await conn.execute(
                "CREATE TABLE IF NOT EXISTS schema_migrations (version TEXT PRIMARY KEY, applied_at TIMESTAMPTZ NOT NULL DEFAULT NOW())"
            )
            applied = {row["version"] for row in await conn.fetch("SELECT version FROM schema_migrations")}
            for path in files:
                version = _version(path)
                if version in applied:
                    continue
                async with conn.transaction():
                    await conn.execute(path.read_text(encoding="utf-8"))
                    await conn.execute("INSERT INTO schema_migrations (version) VALUES ($1)", version)
                applied_count += 1
                logger.info("migration applied", extra={"file": path.name, "version": version})
    finally:
        await close_pool()
    logger.info("migrations complete", extra={"applied": applied_count})
    return applied_count


if __name__ == "__main__":
    if os.environ.get("OBS_ENABLED", "true").lower() != "false":
        configure_logging()
    if sys.platform == "win32":
        asyncio.set_event_loop_policy(asyncio.WindowsSelectorEventLoopPolicy())
    asyncio.run(main())
