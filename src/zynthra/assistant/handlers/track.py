"""Report where an order is."""

from __future__ import annotations

from zynthra.assistant.entities import Entities, TrackEntities
from zynthra.assistant.handlers.base import HandlerContext, IntentHandler
from zynthra.core.errors import CollaboratorFailure, ValidationError
from zynthra.core.types import Action, ActionType, HandlerResult, Intent
from zynthra.services.commerce import CommerceService


class TrackHandler(IntentHandler):
    failure_response = "I'm having trouble reaching the tracking service. Please try again later."
    collaborator = "commerce"

    def __init__(self, commerce: CommerceService):
        self._commerce = commerce

    @property
    def intent(self) -> Intent:
        return Intent.TRACK

    async def handle(self, entities: Entities, ctx: HandlerContext) -> HandlerResult:
        entities = self.expect(entities, TrackEntities)
        if not entities.order_id:
            raise ValidationError(
                "I need an order ID to track your package. Do you have the order number?"
            )

        result = await self.call(self._commerce.track(entities.order_id), ctx)
        if not result.success:
            raise CollaboratorFailure(
                f"I couldn't track order {entities.order_id}. {result.error}",
                self.collaborator,
                detail=result.error or "",
            )

        response = f"Your order {result.order_id} is {result.status_text or result.status}."
        if result.estimated_delivery and result.status not in ("delivered", "cancelled"):
            response += f" Estimated delivery: {result.estimated_delivery:%B %d, %Y}."
        return HandlerResult(
            success=True,
            response=response,
            action=Action(
                ActionType.TRACK_ORDER,
                {
                    "order_id": result.order_id,
                    "status": result.status,
                    "carrier": result.carrier,
                    "tracking_number": result.tracking_number,
                },
            ),
        )
