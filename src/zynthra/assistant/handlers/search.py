"""Search products on the user's preferred platform."""

from __future__ import annotations

from dataclasses import asdict

from zynthra.assistant.entities import Entities, SearchEntities
from zynthra.assistant.handlers.base import HandlerContext, IntentHandler
from zynthra.core.errors import CollaboratorFailure, UnknownPlatformError, ValidationError
from zynthra.core.types import Action, ActionType, HandlerResult, Intent
from zynthra.services.commerce import CommerceService


class SearchHandler(IntentHandler):
    failure_response = "I'm having trouble connecting to the shopping service. Please try again later."
    collaborator = "commerce"

    def __init__(self, commerce: CommerceService):
        self._commerce = commerce

    @property
    def intent(self) -> Intent:
        return Intent.SEARCH

    async def handle(self, entities: Entities, ctx: HandlerContext) -> HandlerResult:
        entities = self.expect(entities, SearchEntities)
        if not entities.query:
            raise ValidationError("What product would you like me to search for?")

        platform = ctx.preferred_platform
        if not self._commerce.supports(platform):
            raise UnknownPlatformError(platform)

        result = await self.call(self._commerce.search(entities.query, platform), ctx)
        if not result.success:
            raise CollaboratorFailure(
                f"I couldn't search {platform} right now. {result.error}",
                self.collaborator,
                detail=result.error or "",
            )

        count = len(result.results)
        if count:
            response = f"I found {count} results for {entities.query} on {platform}."
        else:
            response = f"I couldn't find any {entities.query} on {platform}."
        return HandlerResult(
            success=True,
            response=response,
            action=Action(
                ActionType.SEARCH_PRODUCT,
                {
                    "query": entities.query,
                    "platform": platform,
                    "results": [asdict(p) for p in result.results],
                },
            ),
        )
