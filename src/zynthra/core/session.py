"""Session manager mapping user ids to assistant sessions."""

from __future__ import annotations

import asyncio
from typing import Iterable

from zynthra.assistant.engine import AssistantSession
from zynthra.assistant.entities import PLATFORM_VOCABULARY
from zynthra.assistant.handlers.registry import HandlerRegistry
from zynthra.config import AppConfig
from zynthra.log import get_logger
from zynthra.storage.document_repo import DocumentRepository

logger = get_logger(__name__)


class SessionManager:
    """One initialized ``AssistantSession`` per user id, created on first use."""

    def __init__(
        self,
        repo: DocumentRepository,
        handlers: HandlerRegistry,
        config: AppConfig,
        platforms: Iterable[str] = PLATFORM_VOCABULARY,
    ):
        self._repo = repo
        self._handlers = handlers
        self._config = config
        self._platforms = tuple(platforms)
        self._sessions: dict[str, AssistantSession] = {}
        self._lock = asyncio.Lock()

    async def get_session(self, user_id: str) -> AssistantSession:
        """Get or create the session for ``user_id``.

        A session whose storage could not be loaded is returned but not
        kept, so the next call loads it again. It answers every input with
        "System not initialized".
        """
        async with self._lock:
            return await self._get_locked(user_id)

    async def reset_session(self, user_id: str) -> AssistantSession:
        """Drop the conversation window and start a fresh session object."""
        async with self._lock:
            self._sessions.pop(user_id, None)
            session = await self._get_locked(user_id)
            if session.initialized:
                await session.clear_history()
            logger.info("session_reset", user_id=user_id)
            return session

    async def _get_locked(self, user_id: str) -> AssistantSession:
        session = self._sessions.get(user_id)
        if session is not None:
            return session
        session = self._build(user_id)
        if await session.initialize():
            self._sessions[user_id] = session
            logger.info("session_created", user_id=user_id)
        else:
            logger.warning("session_not_initialized", user_id=user_id)
        return session

    def active_users(self) -> list[str]:
        return list(self._sessions)

    def _build(self, user_id: str) -> AssistantSession:
        return AssistantSession(
            user_id=user_id,
            store=self._repo.for_user(user_id),
            handlers=self._handlers,
            config=self._config.assistant,
            platforms=self._platforms,
            seed=self._config.users.get(user_id),
        )

    @property
    def repo(self) -> DocumentRepository:
        return self._repo
