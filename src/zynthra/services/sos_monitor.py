"""Keeps emergency contacts updated with the user's position after an SOS."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from zynthra.config import SOSConfig
from zynthra.log import get_logger
from zynthra.services.base import Service
from zynthra.services.location import LocationFix, LocationService, is_significant_change
from zynthra.services.messaging import MessagingService
from zynthra.storage.models import EmergencyContact

logger = get_logger(__name__)


@dataclass(slots=True)
class NotificationSummary:
    success_count: int = 0
    failure_count: int = 0
    details: list[dict[str, Any]] = field(default_factory=list)


@dataclass(slots=True)
class SOSWatch:
    user_id: str
    contacts: list[EmergencyContact]
    last_location: Optional[LocationFix]
    activated_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))
    updates_sent: int = 0


def _job_id(user_id: str) -> str:
    return f"sos_{user_id}"


class SOSMonitor(Service):
    """APScheduler interval job per active SOS, re-sharing location on movement."""

    def __init__(
        self,
        config: SOSConfig,
        messaging: MessagingService,
        location: LocationService,
        timeout: float = 12.0,
    ):
        self._config = config
        self._messaging = messaging
        self._location = location
        self._timeout = timeout
        self._scheduler = AsyncIOScheduler(timezone=config.timezone)
        self._watches: dict[str, SOSWatch] = {}

    @property
    def service_name(self) -> str:
        return "sos_monitor"

    async def start(self) -> None:
        self._scheduler.start()
        logger.info("sos_monitor_started", interval=self._config.update_interval_seconds)

    async def stop(self) -> None:
        if self._scheduler.running:
            self._scheduler.shutdown(wait=False)
        logger.info("sos_monitor_stopped", active=len(self._watches))

    async def health_check(self) -> bool:
        return self._scheduler.running

    def is_active(self, user_id: str) -> bool:
        return user_id in self._watches

    def watch(
        self,
        user_id: str,
        contacts: list[EmergencyContact],
        location: LocationFix | None,
    ) -> None:
        """Start (or restart) periodic location updates for ``user_id``."""
        if not self._config.location_sharing:
            return
        self._watches[user_id] = SOSWatch(
            user_id=user_id, contacts=list(contacts), last_location=location
        )
        self._scheduler.add_job(
            self.send_location_update,
            IntervalTrigger(seconds=self._config.update_interval_seconds),
            id=_job_id(user_id),
            replace_existing=True,
            kwargs={"user_id": user_id},
        )
        logger.info("sos_watch_started", user_id=user_id, contacts=len(contacts))

    async def send_location_update(self, user_id: str) -> NotificationSummary | None:
        watch = self._watches.get(user_id)
        if watch is None:
            return None
        try:
            fix = await asyncio.wait_for(self._location.get_current_location(), self._timeout)
        except Exception as e:
            logger.error("sos_location_update_error", user_id=user_id, error=str(e))
            return None
        if not fix.success or not is_significant_change(watch.last_location, fix):
            return None

        watch.last_location = fix
        summary = NotificationSummary()
        for contact in watch.contacts:
            try:
                receipt = await asyncio.wait_for(
                    self._messaging.share_location(
                        contact.phone, fix.latitude, fix.longitude, "Location update"
                    ),
                    self._timeout,
                )
                ok = receipt.success
            except Exception as e:
                logger.error("sos_location_share_error", contact=contact.name, error=str(e))
                ok = False
            summary.details.append({"contact_id": contact.id, "contact_name": contact.name, "success": ok})
            if ok:
                summary.success_count += 1
            else:
                summary.failure_count += 1
        watch.updates_sent += 1
        logger.info("sos_location_update_sent", user_id=user_id, delivered=summary.success_count)
        return summary

    async def all_clear(self, user_id: str) -> NotificationSummary | None:
        """Stop updates and tell every contact the emergency is over.

        Returns ``None`` when no SOS was active for the user.
        """
        watch = self._watches.pop(user_id, None)
        if watch is None:
            return None
        try:
            self._scheduler.remove_job(_job_id(user_id))
        except JobLookupError:
            pass

        summary = NotificationSummary()
        for contact in watch.contacts:
            try:
                receipt = await asyncio.wait_for(
                    self._messaging.send_message(contact.phone, self._config.all_clear_message),
                    self._timeout,
                )
                ok = receipt.success
                message_id = receipt.message_id
            except Exception as e:
                logger.error("sos_all_clear_error", contact=contact.name, error=str(e))
                ok, message_id = False, None
            summary.details.append(
                {"contact_id": contact.id, "contact_name": contact.name, "success": ok, "message_id": message_id}
            )
            if ok:
                summary.success_count += 1
            else:
                summary.failure_count += 1
        logger.info("sos_all_clear_sent", user_id=user_id, delivered=summary.success_count)
        return summary

    def status(self, user_id: str) -> dict[str, Any]:
        watch = self._watches.get(user_id)
        if watch is None:
            return {"is_active": False}
        loc = watch.last_location
        return {
            "is_active": True,
            "activated_at": watch.activated_at.isoformat(),
            "contacts_count": len(watch.contacts),
            "updates_sent": watch.updates_sent,
            "last_location": (
                {"latitude": loc.latitude, "longitude": loc.longitude} if loc else None
            ),
        }
