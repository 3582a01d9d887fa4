"""aiosqlite connection holder with versioned schema migrations."""

from __future__ import annotations

from pathlib import Path

import aiosqlite

from zynthra.log import get_logger

logger = get_logger(__name__)

# Index i upgrades a database at user_version i to i + 1.
MIGRATIONS: tuple[str, ...] = (
    """
    CREATE TABLE IF NOT EXISTS user_documents (
        user_id     TEXT NOT NULL,
        doc_key     TEXT NOT NULL,
        value_json  TEXT NOT NULL,
        updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
        PRIMARY KEY (user_id, doc_key)
    );
    CREATE INDEX IF NOT EXISTS idx_documents_updated
        ON user_documents(user_id, updated_at);
    """,
    """
    CREATE TABLE IF NOT EXISTS service_documents (
        service     TEXT NOT NULL,
        doc_key     TEXT NOT NULL,
        value_json  TEXT NOT NULL,
        updated_at  TEXT NOT NULL DEFAULT (strftime('%Y-%m-%dT%H:%M:%f','now')),
        PRIMARY KEY (service, doc_key)
    );
    """,
)

SCHEMA_VERSION = len(MIGRATIONS)


class Database:
    """One shared connection for every user's documents."""

    def __init__(self, db_path: str):
        self.path = db_path
        self._conn: aiosqlite.Connection | None = None

    async def initialize(self) -> None:
        in_memory = self.path == ":memory:"
        if not in_memory:
            Path(self.path).parent.mkdir(parents=True, exist_ok=True)

        conn = await aiosqlite.connect(self.path)
        conn.row_factory = aiosqlite.Row
        if not in_memory:
            await conn.execute("PRAGMA journal_mode=WAL")
        self._conn = conn

        applied = await self._migrate()
        logger.info("database_initialized", path=self.path, version=SCHEMA_VERSION, applied=applied)

    async def _migrate(self) -> int:
        """Bring the schema up to ``SCHEMA_VERSION``; returns how many steps ran."""
        cursor = await self.conn.execute("PRAGMA user_version")
        (current,) = await cursor.fetchone()
        if current > SCHEMA_VERSION:
            raise RuntimeError(
                f"Database {self.path} has schema version {current}, "
                f"newer than this build ({SCHEMA_VERSION})"
            )
        for version in range(current, SCHEMA_VERSION):
            await self.conn.executescript(MIGRATIONS[version])
            await self.conn.execute(f"PRAGMA user_version = {version + 1}")
            await self.conn.commit()
        return SCHEMA_VERSION - current

    async def schema_version(self) -> int:
        cursor = await self.conn.execute("PRAGMA user_version")
        (version,) = await cursor.fetchone()
        return version

    @property
    def conn(self) -> aiosqlite.Connection:
        if self._conn is None:
            raise RuntimeError("Database not initialized. Call initialize() first.")
        return self._conn

    async def close(self) -> None:
        if self._conn is None:
            return
        await self._conn.close()
        self._conn = None
        logger.info("database_closed", path=self.path)
