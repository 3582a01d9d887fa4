"""Lifecycle interface for long-running services."""

from __future__ import annotations

from abc import ABC, abstractmethod


class Service(ABC):
    """Something the app starts before serving sessions and stops on shutdown."""

    @property
    @abstractmethod
    def service_name(self) -> str:
        ...

    @abstractmethod
    async def start(self) -> None:
        ...

    @abstractmethod
    async def stop(self) -> None:
        ...

    @abstractmethod
    async def health_check(self) -> bool:
        ...
