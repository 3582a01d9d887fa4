"""Shared types and enumerations."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any, Optional


class Intent(StrEnum):
    ORDER = "order"
    SOS = "sos"
    TRACK = "track"
    SEARCH = "search"
    GENERAL = "general"


class ActionType(StrEnum):
    PROMPT_ADDRESS = "PROMPT_ADDRESS"
    ORDER_PLACED = "ORDER_PLACED"
    PROMPT_EMERGENCY_CONTACTS = "PROMPT_EMERGENCY_CONTACTS"
    LOCATION_ERROR = "LOCATION_ERROR"
    SOS_ACTIVATED = "SOS_ACTIVATED"
    PROMPT_CALL_EMERGENCY = "PROMPT_CALL_EMERGENCY"
    TRACK_ORDER = "TRACK_ORDER"
    SEARCH_PRODUCT = "SEARCH_PRODUCT"


class Role(StrEnum):
    USER = "user"
    ASSISTANT = "assistant"


class AddressType(StrEnum):
    HOME = "home"
    WORK = "work"
    OTHER = "other"


class PaymentMethod(StrEnum):
    COD = "COD"
    CARD = "CARD"
    UPI = "UPI"


@dataclass(frozen=True, slots=True)
class Action:
    """Follow-up the caller (UI, voice layer) should perform."""

    type: ActionType
    data: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {"type": self.type.value, **self.data}


@dataclass(frozen=True, slots=True)
class HandlerResult:
    success: bool
    response: str
    action: Optional[Action] = None


@dataclass(frozen=True, slots=True)
class AssistantReply:
    """What ``process_input`` hands back to the caller.

    ``success`` means the session produced a response; whether the
    underlying business action worked is only visible in ``response``
    and ``action``.
    """

    success: bool
    response: str
    action: Optional[Action] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "success": self.success,
            "response": self.response,
            "action": self.action.to_dict() if self.action else None,
        }
