"""JSON document store keyed by (user_id, key)."""

from __future__ import annotations

import json
from typing import Any

from zynthra.storage.database import Database


class DocumentRepository:
    """Load/save whole JSON documents for a user.

    There is no caching here: every ``save`` is a write-through to SQLite.
    """

    def __init__(self, db: Database):
        self._db = db

    async def load(self, user_id: str, key: str) -> Any | None:
        cursor = await self._db.conn.execute(
            "SELECT value_json FROM user_documents WHERE user_id = ? AND doc_key = ?",
            (user_id, key),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    async def save(self, user_id: str, key: str, value: Any) -> None:
        await self._db.conn.execute(
            """INSERT INTO user_documents (user_id, doc_key, value_json)
               VALUES (?, ?, ?)
               ON CONFLICT(user_id, doc_key)
               DO UPDATE SET value_json = excluded.value_json,
                             updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (user_id, key, json.dumps(value)),
        )
        await self._db.conn.commit()

    async def delete(self, user_id: str, key: str) -> bool:
        cursor = await self._db.conn.execute(
            "DELETE FROM user_documents WHERE user_id = ? AND doc_key = ?",
            (user_id, key),
        )
        await self._db.conn.commit()
        return cursor.rowcount > 0

    async def list_keys(self, user_id: str) -> list[str]:
        cursor = await self._db.conn.execute(
            "SELECT doc_key FROM user_documents WHERE user_id = ? ORDER BY doc_key",
            (user_id,),
        )
        rows = await cursor.fetchall()
        return [row["doc_key"] for row in rows]

    async def list_users(self) -> list[str]:
        cursor = await self._db.conn.execute(
            "SELECT DISTINCT user_id FROM user_documents ORDER BY user_id"
        )
        rows = await cursor.fetchall()
        return [row["user_id"] for row in rows]

    def for_user(self, user_id: str) -> UserDocuments:
        return UserDocuments(self, user_id)


class UserDocuments:
    """A repository view bound to one user: ``load(key)`` / ``save(key, value)``."""

    def __init__(self, repo: DocumentRepository, user_id: str):
        self._repo = repo
        self.user_id = user_id

    async def load(self, key: str) -> Any | None:
        return await self._repo.load(self.user_id, key)

    async def save(self, key: str, value: Any) -> None:
        await self._repo.save(self.user_id, key, value)


class ServiceDocuments:
    """JSON documents owned by a collaborator service, such as the mock order book."""

    def __init__(self, db: Database, service: str):
        self._db = db
        self.service = service

    async def load(self, key: str) -> Any | None:
        cursor = await self._db.conn.execute(
            "SELECT value_json FROM service_documents WHERE service = ? AND doc_key = ?",
            (self.service, key),
        )
        row = await cursor.fetchone()
        if row is None:
            return None
        return json.loads(row["value_json"])

    async def save(self, key: str, value: Any) -> None:
        await self._db.conn.execute(
            """INSERT INTO service_documents (service, doc_key, value_json)
               VALUES (?, ?, ?)
               ON CONFLICT(service, doc_key)
               DO UPDATE SET value_json = excluded.value_json,
                             updated_at = strftime('%Y-%m-%dT%H:%M:%f','now')""",
            (self.service, key, json.dumps(value)),
        )
        await self._db.conn.commit()
