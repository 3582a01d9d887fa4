"""Messaging collaborator (WhatsApp-style text and location shares)."""

from __future__ import annotations

import asyncio
import random
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from zynthra.config import MessagingConfig
from zynthra.log import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class MessageReceipt:
    success: bool
    message_id: Optional[str] = None
    error: Optional[str] = None


@dataclass(slots=True)
class OutboxEntry:
    kind: str  # "text" | "location"
    to: str
    payload: dict[str, Any]
    message_id: str
    sent_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class MessagingService(ABC):
    """Base class for messaging providers.

    To add a provider, subclass this and implement both send methods.
    """

    @abstractmethod
    async def send_message(self, to: str, text: str) -> MessageReceipt:
        ...

    @abstractmethod
    async def share_location(
        self, to: str, latitude: float, longitude: float, label: str
    ) -> MessageReceipt:
        ...


class MockMessagingService(MessagingService):
    """Pretends to deliver messages and records them in ``outbox``."""

    def __init__(self, config: MessagingConfig, rng: random.Random | None = None):
        self._config = config
        self._rng = rng or random.Random()
        self.outbox: list[OutboxEntry] = []

    def _next_id(self) -> str:
        prefix = self._config.provider[:2].upper()
        return f"{prefix}{self._rng.randrange(1_000_000)}"

    async def send_message(self, to: str, text: str) -> MessageReceipt:
        if self._config.simulated_delay:
            await asyncio.sleep(self._config.simulated_delay)
        message_id = self._next_id()
        self.outbox.append(OutboxEntry("text", to, {"text": text}, message_id))
        logger.info("message_sent", provider=self._config.provider, to=to, message_id=message_id)
        return MessageReceipt(success=True, message_id=message_id)

    async def share_location(
        self, to: str, latitude: float, longitude: float, label: str
    ) -> MessageReceipt:
        if self._config.simulated_delay:
            await asyncio.sleep(self._config.simulated_delay)
        message_id = self._next_id()
        self.outbox.append(
            OutboxEntry(
                "location",
                to,
                {"latitude": latitude, "longitude": longitude, "label": label},
                message_id,
            )
        )
        logger.info("location_shared", provider=self._config.provider, to=to, message_id=message_id)
        return MessageReceipt(success=True, message_id=message_id)
