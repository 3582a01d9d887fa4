"""Dispatch table mapping intents to their handlers."""

from __future__ import annotations

from typing import TYPE_CHECKING

from zynthra.assistant.entities import Entities
from zynthra.assistant.handlers.base import HandlerContext, IntentHandler
from zynthra.core.errors import ZynthraError
from zynthra.core.types import HandlerResult, Intent
from zynthra.log import get_logger

if TYPE_CHECKING:
    from zynthra.config import SOSConfig
    from zynthra.services.service_manager import ServiceManager

logger = get_logger(__name__)


class HandlerRegistry:
    def __init__(self) -> None:
        self._handlers: dict[Intent, IntentHandler] = {}

    def register(self, handler: IntentHandler) -> None:
        self._handlers[handler.intent] = handler
        logger.debug("handler_registered", intent=handler.intent.value)

    def get(self, intent: Intent) -> IntentHandler | None:
        return self._handlers.get(intent)

    def intents(self) -> list[Intent]:
        return list(self._handlers)

    async def dispatch(
        self, handler: IntentHandler, entities: Entities, ctx: HandlerContext
    ) -> HandlerResult:
        """Run ``handler``; whatever happens inside comes back as a result."""
        try:
            return await handler.handle(entities, ctx)
        except ZynthraError as e:
            logger.warning(
                "handler_failed",
                intent=handler.intent.value,
                error_type=type(e).__name__,
                error=str(e),
            )
            return HandlerResult(success=False, response=e.user_message, action=e.action)
        except Exception as e:
            logger.error("handler_error", intent=handler.intent.value, error=str(e), exc_info=True)
            return HandlerResult(success=False, response=handler.failure_response)

    @classmethod
    def with_builtin_handlers(cls, services: ServiceManager, sos_config: SOSConfig) -> HandlerRegistry:
        """Registry with the order, sos, track and search handlers wired to ``services``."""
        from zynthra.assistant.handlers.order import OrderHandler
        from zynthra.assistant.handlers.search import SearchHandler
        from zynthra.assistant.handlers.sos import SOSHandler
        from zynthra.assistant.handlers.track import TrackHandler

        registry = cls()
        registry.register(OrderHandler(services.commerce))
        registry.register(
            SOSHandler(services.messaging, services.location, sos_config, services.sos_monitor)
        )
        registry.register(TrackHandler(services.commerce))
        registry.register(SearchHandler(services.commerce))
        return registry
