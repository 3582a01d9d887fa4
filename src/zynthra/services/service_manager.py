"""Builds the collaborator services and manages their lifecycle."""

from __future__ import annotations

from zynthra.config import AppConfig
from zynthra.log import get_logger
from zynthra.services.commerce import CommerceService, MockCommerceService
from zynthra.services.location import LocationService, MockLocationService
from zynthra.services.messaging import MessagingService, MockMessagingService
from zynthra.services.sos_monitor import SOSMonitor
from zynthra.storage.document_repo import ServiceDocuments

logger = get_logger(__name__)


class ServiceManager:
    """Owns the commerce, messaging and location adapters plus the SOS monitor.

    Pass concrete adapters to swap out the mocks. ``store`` persists the mock
    commerce state.
    """

    def __init__(
        self,
        config: AppConfig,
        commerce: CommerceService | None = None,
        messaging: MessagingService | None = None,
        location: LocationService | None = None,
        store: ServiceDocuments | None = None,
    ):
        self.commerce = commerce or MockCommerceService(config.commerce, store=store)
        self.messaging = messaging or MockMessagingService(config.messaging)
        self.location = location or MockLocationService(config.location)
        self.sos_monitor = SOSMonitor(
            config.sos,
            self.messaging,
            self.location,
            timeout=config.assistant.collaborator_timeout,
        )

    async def start_all(self) -> None:
        await self.commerce.restore()
        await self.sos_monitor.start()
        logger.info("all_services_started", platforms=self.commerce.platforms)

    async def stop_all(self) -> None:
        await self.sos_monitor.stop()
        logger.info("all_services_stopped")

    async def health_check_all(self) -> dict[str, bool]:
        return {
            self.sos_monitor.service_name: await self.sos_monitor.health_check(),
        }
