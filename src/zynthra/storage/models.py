"""Persisted documents owned by an assistant session."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from pydantic import BaseModel, Field

from zynthra.core.types import Role


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ConversationTurn(BaseModel):
    role: Role
    content: str
    timestamp: datetime = Field(default_factory=utcnow)


class LearningRecord(BaseModel):
    success_count: int = 0
    failure_count: int = 0
    last_used: Optional[datetime] = None
    # field name -> observed value -> occurrences
    entity_frequency: dict[str, dict[str, int]] = Field(default_factory=dict)

    @property
    def dispatch_count(self) -> int:
        return self.success_count + self.failure_count


class Preferences(BaseModel):
    voice_enabled: bool = True
    wake_word_enabled: bool = True
    theme: str = "auto"
    language: str = "en"
    voice_rate: float = 1.0
    voice_pitch: float = 1.0
    preferred_platform: Optional[str] = None
    payment_method: Optional[str] = None


class UsageStats(BaseModel):
    commands_issued: int = 0
    sessions_started: int = 0
    last_active: datetime = Field(default_factory=utcnow)


class UserProfile(BaseModel):
    name: str = "User"
    preferences: Preferences = Field(default_factory=Preferences)
    usage_stats: UsageStats = Field(default_factory=UsageStats)
    favorite_commands: list[str] = Field(default_factory=list)
    frequent_locations: list[str] = Field(default_factory=list)


class EmergencyContact(BaseModel):
    id: str
    name: str
    phone: str
    priority: int = 1


class Address(BaseModel):
    label: str
    text: str


class AddressBook(BaseModel):
    home: Optional[Address] = None
    work: Optional[Address] = None
    other: list[Address] = Field(default_factory=list)

    def resolve(self, address_type: str) -> Optional[Address]:
        if address_type == "home":
            return self.home
        if address_type == "work":
            return self.work
        return next((a for a in self.other if a.label == address_type), None)
