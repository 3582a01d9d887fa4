"""Error taxonomy for the assistant.

Every error carries the sentence the user should hear and, where there is
one, the remedial action the caller should offer. Handlers raise these;
the dispatch boundary turns them into failed ``HandlerResult`` objects.
"""

from __future__ import annotations

from typing import Optional

from zynthra.core.types import Action


class ZynthraError(Exception):
    def __init__(self, user_message: str, action: Optional[Action] = None, detail: str = ""):
        super().__init__(detail or user_message)
        self.user_message = user_message
        self.action = action


class NotInitializedError(ZynthraError):
    def __init__(self) -> None:
        super().__init__("System not initialized")


class ValidationError(ZynthraError):
    """A required entity was not found in the utterance."""


class CollaboratorFailure(ZynthraError):
    """A commerce, messaging or location call failed, timed out or said no."""

    def __init__(
        self,
        user_message: str,
        collaborator: str,
        action: Optional[Action] = None,
        detail: str = "",
    ):
        super().__init__(user_message, action=action, detail=detail)
        self.collaborator = collaborator


class UnknownPlatformError(ZynthraError):
    def __init__(self, platform: str):
        super().__init__(
            f"I don't support shopping on {platform} yet.",
            detail=f"Unknown platform: {platform}",
        )
        self.platform = platform


class ResourceMissingError(ZynthraError):
    """Saved data the user has to provide first (address, contacts)."""
