"""Location collaborator: where is the user right now."""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional

from zynthra.config import LocationConfig
from zynthra.log import get_logger

logger = get_logger(__name__)

# ~100 m at the equator
SIGNIFICANT_DELTA_DEGREES = 0.001


@dataclass(frozen=True, slots=True)
class LocationFix:
    success: bool
    latitude: float = 0.0
    longitude: float = 0.0
    accuracy: float = 0.0
    error: Optional[str] = None


def is_significant_change(old: LocationFix | None, new: LocationFix | None) -> bool:
    if old is None or new is None:
        return True
    return (
        abs(old.latitude - new.latitude) > SIGNIFICANT_DELTA_DEGREES
        or abs(old.longitude - new.longitude) > SIGNIFICANT_DELTA_DEGREES
    )


class LocationService(ABC):
    @abstractmethod
    async def get_current_location(self) -> LocationFix:
        ...


class MockLocationService(LocationService):
    """Reports a fixed position taken from configuration."""

    def __init__(self, config: LocationConfig, delay: float = 0.0):
        self._config = config
        self._delay = delay

    async def get_current_location(self) -> LocationFix:
        if self._delay:
            await asyncio.sleep(self._delay)
        logger.debug(
            "location_read",
            latitude=self._config.latitude,
            longitude=self._config.longitude,
        )
        return LocationFix(
            success=True,
            latitude=self._config.latitude,
            longitude=self._config.longitude,
            accuracy=self._config.accuracy,
        )
