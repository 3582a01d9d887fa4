"""Abstract intent handler interface."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Awaitable, TypeVar

from zynthra.assistant.entities import Entities
from zynthra.core.errors import CollaboratorFailure, ZynthraError
from zynthra.core.types import HandlerResult, Intent
from zynthra.storage.models import AddressBook, EmergencyContact, UserProfile

T = TypeVar("T")
E = TypeVar("E", bound=Entities)


@dataclass(slots=True)
class HandlerContext:
    """Read-only view of the session a handler may consult."""

    user_id: str
    profile: UserProfile
    addresses: AddressBook = field(default_factory=AddressBook)
    contacts: list[EmergencyContact] = field(default_factory=list)
    preferred_platform: str = "amazon"
    timeout: float = 12.0


class IntentHandler(ABC):
    """Base class for everything the dispatch table can route to."""

    # Said when a collaborator blows up in a way the handler did not foresee.
    failure_response = "Something went wrong while handling that. Please try again later."
    collaborator = "unknown"

    @property
    @abstractmethod
    def intent(self) -> Intent:
        ...

    @abstractmethod
    async def handle(self, entities: Entities, ctx: HandlerContext) -> HandlerResult:
        """Run the intent; raise a ``ZynthraError`` to fail with a message."""
        ...

    async def call(self, awaitable: Awaitable[T], ctx: HandlerContext) -> T:
        """Await a collaborator call with the session's timeout.

        Timeouts and unexpected errors become ``CollaboratorFailure``.
        """
        try:
            return await asyncio.wait_for(awaitable, timeout=ctx.timeout)
        except ZynthraError:
            raise
        except asyncio.TimeoutError as e:
            raise CollaboratorFailure(
                self.failure_response, self.collaborator, detail=f"timed out after {ctx.timeout}s"
            ) from e
        except Exception as e:
            raise CollaboratorFailure(self.failure_response, self.collaborator, detail=str(e)) from e

    def expect(self, entities: Entities, kind: type[E]) -> E:
        """Narrow ``entities`` to the shape this handler extracts."""
        if not isinstance(entities, kind):
            raise TypeError(
                f"{type(self).__name__} expects {kind.__name__}, got {type(entities).__name__}"
            )
        return entities
