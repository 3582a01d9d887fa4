"""Application orchestrator - wires all components and manages lifecycle."""

from __future__ import annotations

from zynthra.assistant.handlers.registry import HandlerRegistry
from zynthra.config import AppConfig
from zynthra.core.session import SessionManager
from zynthra.core.types import AssistantReply
from zynthra.log import get_logger
from zynthra.services.commerce import CommerceService
from zynthra.services.location import LocationService
from zynthra.services.messaging import MessagingService
from zynthra.services.service_manager import ServiceManager
from zynthra.services.sos_monitor import NotificationSummary
from zynthra.storage.database import Database
from zynthra.storage.document_repo import DocumentRepository, ServiceDocuments

logger = get_logger(__name__)


class ZynthraApp:
    """Top-level application orchestrator.

    This is the surface UI, voice and HTTP layers talk to.
    """

    def __init__(
        self,
        config: AppConfig,
        commerce: CommerceService | None = None,
        messaging: MessagingService | None = None,
        location: LocationService | None = None,
    ):
        self.config = config
        self.db = Database(config.storage.db_path)
        self.documents = DocumentRepository(self.db)
        self.services = ServiceManager(
            config,
            commerce=commerce,
            messaging=messaging,
            location=location,
            store=ServiceDocuments(self.db, "commerce"),
        )
        self.handlers = HandlerRegistry.with_builtin_handlers(self.services, config.sos)
        self.sessions = SessionManager(
            self.documents,
            self.handlers,
            config,
            platforms=self.services.commerce.platforms,
        )

    async def start(self) -> None:
        await self.db.initialize()
        await self.services.start_all()
        logger.info(
            "zynthra_started",
            intents=[i.value for i in self.handlers.intents()],
            seeded_users=list(self.config.users),
        )

    async def stop(self) -> None:
        await self.services.stop_all()
        await self.db.close()
        logger.info("zynthra_stopped")

    async def process_input(self, user_id: str, text: str, is_voice: bool = False) -> AssistantReply:
        session = await self.sessions.get_session(user_id)
        return await session.process_input(text, is_voice=is_voice)

    async def all_clear(self, user_id: str) -> NotificationSummary | None:
        return await self.services.sos_monitor.all_clear(user_id)

    async def __aenter__(self) -> ZynthraApp:
        await self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.stop()
