"""Alert emergency contacts with the user's location."""

from __future__ import annotations

from typing import TYPE_CHECKING

from zynthra.assistant.entities import Entities
from zynthra.assistant.handlers.base import HandlerContext, IntentHandler
from zynthra.config import SOSConfig
from zynthra.core.errors import CollaboratorFailure, ResourceMissingError
from zynthra.core.types import Action, ActionType, HandlerResult, Intent
from zynthra.log import get_logger
from zynthra.services.location import LocationService
from zynthra.services.messaging import MessagingService

if TYPE_CHECKING:
    from zynthra.services.sos_monitor import SOSMonitor

logger = get_logger(__name__)


class SOSHandler(IntentHandler):
    failure_response = (
        "I encountered an error while trying to send your SOS alert. "
        "Please try again or call emergency services directly."
    )
    collaborator = "messaging"

    def __init__(
        self,
        messaging: MessagingService,
        location: LocationService,
        config: SOSConfig,
        monitor: SOSMonitor | None = None,
    ):
        self._messaging = messaging
        self._location = location
        self._config = config
        self._monitor = monitor

    @property
    def intent(self) -> Intent:
        return Intent.SOS

    async def handle(self, entities: Entities, ctx: HandlerContext) -> HandlerResult:
        contacts = ctx.contacts
        if not contacts:
            raise ResourceMissingError(
                "You don't have any emergency contacts set up. Would you like to add some now?",
                action=Action(ActionType.PROMPT_EMERGENCY_CONTACTS),
            )

        location_error = CollaboratorFailure(
            "I couldn't get your current location. Please make sure location services are enabled.",
            "location",
            action=Action(ActionType.LOCATION_ERROR),
        )
        try:
            fix = await self.call(self._location.get_current_location(), ctx)
        except CollaboratorFailure as e:
            raise location_error from e
        if not fix.success:
            raise location_error

        alert = self._config.message.format(name=ctx.profile.name)
        notified = 0
        for contact in contacts:
            try:
                sent = await self.call(self._messaging.send_message(contact.phone, alert), ctx)
                shared = await self.call(
                    self._messaging.share_location(
                        contact.phone, fix.latitude, fix.longitude, "Current location"
                    ),
                    ctx,
                )
            except CollaboratorFailure as e:
                logger.error("sos_contact_failed", contact=contact.name, error=str(e))
                continue
            if sent.success and shared.success:
                notified += 1

        if notified == 0:
            return HandlerResult(
                success=False,
                response=(
                    "I couldn't send SOS messages to any of your emergency contacts. "
                    "Would you like me to call emergency services?"
                ),
                action=Action(
                    ActionType.PROMPT_CALL_EMERGENCY,
                    {"emergency_number": self._config.emergency_number},
                ),
            )

        if self._monitor is not None:
            self._monitor.watch(ctx.user_id, contacts, fix)
        logger.info("sos_alert_sent", notified=notified, total=len(contacts))
        return HandlerResult(
            success=True,
            response=(
                f"SOS alert sent to {notified} of {len(contacts)} emergency contacts "
                "with your current location."
            ),
            action=Action(ActionType.SOS_ACTIVATED, {"contacts_notified": notified}),
        )
