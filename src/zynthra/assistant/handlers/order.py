"""Place an order on a shopping platform."""

from __future__ import annotations

from zynthra.assistant.entities import Entities, OrderEntities
from zynthra.assistant.handlers.base import HandlerContext, IntentHandler
from zynthra.core.errors import (
    CollaboratorFailure,
    ResourceMissingError,
    UnknownPlatformError,
    ValidationError,
)
from zynthra.core.types import Action, ActionType, HandlerResult, Intent
from zynthra.services.commerce import CommerceService, OrderRequest


class OrderHandler(IntentHandler):
    failure_response = "I'm having trouble connecting to the shopping service. Please try again later."
    collaborator = "commerce"

    def __init__(self, commerce: CommerceService):
        self._commerce = commerce

    @property
    def intent(self) -> Intent:
        return Intent.ORDER

    async def handle(self, entities: Entities, ctx: HandlerContext) -> HandlerResult:
        entities = self.expect(entities, OrderEntities)
        if not entities.product:
            raise ValidationError(
                "I need to know what product you'd like to order. Could you please specify?"
            )

        platform = entities.platform or ctx.preferred_platform
        if not self._commerce.supports(platform):
            raise UnknownPlatformError(platform)

        address = ctx.addresses.resolve(entities.address)
        if address is None:
            raise ResourceMissingError(
                f"I don't have your {entities.address} address saved. Would you like to add it now?",
                action=Action(ActionType.PROMPT_ADDRESS, {"address_type": entities.address}),
            )

        result = await self.call(
            self._commerce.order(
                OrderRequest(
                    platform=platform,
                    product=entities.product,
                    quantity=entities.quantity,
                    address=address.text,
                    payment_method=entities.payment_method,
                )
            ),
            ctx,
        )
        if not result.success:
            raise CollaboratorFailure(
                f"I couldn't complete your order. {result.error}",
                self.collaborator,
                detail=result.error or "",
            )

        return HandlerResult(
            success=True,
            response=(
                f"I've placed an order for {entities.quantity} {entities.product} on {platform}. "
                f"It will be delivered to your {entities.address} address with "
                f"{entities.payment_method} payment. Your order ID is {result.order_id}."
            ),
            action=Action(
                ActionType.ORDER_PLACED,
                {"order_id": result.order_id, "platform": platform},
            ),
        )
