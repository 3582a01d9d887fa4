"""Assistant session: utterance in, response and action out.

One ``AssistantSession`` per user. It owns that user's profile, conversation
window, learning table, emergency contacts and addresses, loads them in
``initialize()`` and writes each one through to storage after every change.
"""

from __future__ import annotations

import asyncio
import random
from collections import deque
from datetime import datetime
from typing import Any, Callable, Iterable, Optional

from zynthra.assistant import contacts as contact_book
from zynthra.assistant.classifier import IntentClassifier
from zynthra.assistant.entities import PLATFORM_VOCABULARY, Entities
from zynthra.assistant.handlers.base import HandlerContext
from zynthra.assistant.handlers.registry import HandlerRegistry
from zynthra.assistant.responses import CLARIFICATION, generate_response
from zynthra.config import AssistantConfig, UserSeed
from zynthra.core.errors import NotInitializedError, UnknownPlatformError, ValidationError
from zynthra.core.types import AssistantReply, Intent, PaymentMethod, Role
from zynthra.log import bind_user, get_logger, unbind_user
from zynthra.storage.document_repo import UserDocuments
from zynthra.storage.models import (
    AddressBook,
    ConversationTurn,
    EmergencyContact,
    LearningRecord,
    UserProfile,
    utcnow,
)

logger = get_logger(__name__)

PROFILE_KEY = "profile"
LEARNING_KEY = "learning_data"
CONTEXT_KEY = "conversation_context"
CONTACTS_KEY = "emergency_contacts"
ADDRESSES_KEY = "addresses"


class AssistantSession:
    def __init__(
        self,
        user_id: str,
        store: UserDocuments,
        handlers: HandlerRegistry,
        config: AssistantConfig | None = None,
        platforms: Iterable[str] = PLATFORM_VOCABULARY,
        seed: UserSeed | None = None,
        rng: random.Random | None = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.user_id = user_id
        self._store = store
        self._handlers = handlers
        self._config = config or AssistantConfig()
        self._platforms = tuple(platforms)
        self._seed = seed
        self._rng = rng or random.Random()
        self._clock = clock
        self._classifier = IntentClassifier(self._config.default_payment_method, self._platforms)
        self._lock = asyncio.Lock()
        self._dirty: set[str] = set()

        self._initialized = False
        self.profile = UserProfile()
        self.history: deque[ConversationTurn] = deque(maxlen=self._config.history_limit)
        self.learning: dict[str, LearningRecord] = {}
        self.contacts: list[EmergencyContact] = []
        self.addresses = AddressBook()

    @property
    def initialized(self) -> bool:
        return self._initialized

    @property
    def preferred_platform(self) -> str:
        return self.profile.preferences.preferred_platform or self._config.default_platform

    @property
    def preferred_payment_method(self) -> str:
        return self.profile.preferences.payment_method or self._config.default_payment_method

    async def initialize(self) -> bool:
        """Load everything this session owns. Returns False if loading failed."""
        try:
            raw_profile = await self._store.load(PROFILE_KEY)
            raw_learning = await self._store.load(LEARNING_KEY)
            raw_context = await self._store.load(CONTEXT_KEY)
            raw_contacts = await self._store.load(CONTACTS_KEY)
            raw_addresses = await self._store.load(ADDRESSES_KEY)

            seed = self._seed if raw_profile is None else None
            if raw_profile is not None:
                self.profile = UserProfile.model_validate(raw_profile)
            else:
                self.profile = UserProfile(name=seed.name if seed else "User")
            self.learning = {
                intent: LearningRecord.model_validate(record)
                for intent, record in (raw_learning or {}).items()
            }
            self.history = deque(
                (ConversationTurn.model_validate(t) for t in raw_context or []),
                maxlen=self._config.history_limit,
            )
            self.contacts = [EmergencyContact.model_validate(c) for c in raw_contacts or []]
            self.addresses = AddressBook.model_validate(raw_addresses or {})
            if seed is not None:
                self._apply_seed(seed)
        except Exception as e:
            logger.error("session_initialize_failed", user_id=self.user_id, error=str(e))
            return False

        self.profile.usage_stats.sessions_started += 1
        self._initialized = True
        await self._flush(PROFILE_KEY)
        logger.info(
            "session_initialized",
            user_id=self.user_id,
            history=len(self.history),
            intents_learned=len(self.learning),
            contacts=len(self.contacts),
        )
        return True

    def _apply_seed(self, seed: UserSeed) -> None:
        for address_type, text in seed.addresses.items():
            label = None if address_type in ("home", "work") else address_type
            kind = address_type if label is None else "other"
            self.addresses = contact_book.set_address(self.addresses, kind, text, label)
        for c in seed.emergency_contacts:
            self.contacts = contact_book.upsert_contact(self.contacts, c.name, c.phone, c.priority)
        self._dirty.update({ADDRESSES_KEY, CONTACTS_KEY})

    async def process_input(self, text: str, is_voice: bool = False) -> AssistantReply:
        """Run one utterance through classify -> dispatch -> learn.

        Calls for the same session are serialized.
        """
        async with self._lock:
            if not self._initialized:
                return AssistantReply(success=False, response=NotInitializedError().user_message)

            bind_user(self.user_id)
            try:
                return await self._process(text, is_voice)
            finally:
                unbind_user()

    async def _process(self, text: str, is_voice: bool) -> AssistantReply:
        now = self._clock()
        stats = self.profile.usage_stats
        stats.commands_issued += 1
        stats.last_active = now
        await self._flush(PROFILE_KEY)

        await self._append(Role.USER, text)

        self._classifier.default_payment_method = self.preferred_payment_method
        classification = self._classifier.classify(text)
        logger.info(
            "intent_classified",
            intent=classification.intent.value,
            confidence=classification.confidence,
            is_voice=is_voice,
        )

        action = None
        if classification.confidence < self._config.confidence_threshold:
            response = CLARIFICATION
        else:
            handler = self._handlers.get(classification.intent)
            if handler is not None:
                result = await self._handlers.dispatch(
                    handler, classification.entities, self._handler_context()
                )
                response, action = result.response, result.action
                await self._learn(classification.intent, classification.entities, result.success)
            else:
                response = generate_response(text, self._rng)

        await self._append(Role.ASSISTANT, response)
        return AssistantReply(success=True, response=response, action=action)

    def _handler_context(self) -> HandlerContext:
        return HandlerContext(
            user_id=self.user_id,
            profile=self.profile,
            addresses=self.addresses,
            contacts=list(self.contacts),
            preferred_platform=self.preferred_platform,
            timeout=self._config.collaborator_timeout,
        )

    async def _append(self, role: Role, content: str) -> None:
        # deque(maxlen=...) drops the oldest turn on overflow
        self.history.append(ConversationTurn(role=role, content=content, timestamp=self._clock()))
        await self._flush(CONTEXT_KEY)

    async def _learn(self, intent: Intent, entities: Entities, success: bool) -> None:
        record = self.learning.setdefault(intent.value, LearningRecord())
        if success:
            record.success_count += 1
        else:
            record.failure_count += 1
        record.last_used = self._clock()
        for field_name, value in entities.observed():
            counts = record.entity_frequency.setdefault(field_name, {})
            counts[str(value)] = counts.get(str(value), 0) + 1
        await self._flush(LEARNING_KEY)

    def _serialize(self, key: str) -> Any:
        serializers: dict[str, Callable[[], Any]] = {
            PROFILE_KEY: lambda: self.profile.model_dump(mode="json"),
            LEARNING_KEY: lambda: {k: v.model_dump(mode="json") for k, v in self.learning.items()},
            CONTEXT_KEY: lambda: [t.model_dump(mode="json") for t in self.history],
            CONTACTS_KEY: lambda: [c.model_dump(mode="json") for c in self.contacts],
            ADDRESSES_KEY: lambda: self.addresses.model_dump(mode="json"),
        }
        return serializers[key]()

    async def _flush(self, key: str) -> None:
        """Write ``key`` and anything whose earlier write failed.

        A failed write leaves the key dirty so the next flush retries it; the
        in-memory state stays authoritative meanwhile.
        """
        self._dirty.add(key)
        for pending in sorted(self._dirty):
            try:
                await self._store.save(pending, self._serialize(pending))
            except Exception as e:
                logger.warning("persist_failed", user_id=self.user_id, key=pending, error=str(e))
            else:
                self._dirty.discard(pending)

    @property
    def pending_writes(self) -> frozenset[str]:
        return frozenset(self._dirty)

    # -- account management ------------------------------------------------

    def _require_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError()

    async def add_emergency_contact(
        self, name: str, phone: str, priority: Optional[int] = None
    ) -> EmergencyContact:
        async with self._lock:
            self._require_initialized()
            self.contacts = contact_book.upsert_contact(self.contacts, name, phone, priority)
            await self._flush(CONTACTS_KEY)
            return next(c for c in self.contacts if c.phone == phone.strip())

    async def remove_emergency_contact(self, contact_id: str) -> bool:
        async with self._lock:
            self._require_initialized()
            remaining = contact_book.remove_contact(self.contacts, contact_id)
            if remaining is None:
                return False
            self.contacts = remaining
            await self._flush(CONTACTS_KEY)
            return True

    async def update_contact_priority(self, contact_id: str, priority: int) -> bool:
        async with self._lock:
            self._require_initialized()
            reordered = contact_book.reprioritize_contact(self.contacts, contact_id, priority)
            if reordered is None:
                return False
            self.contacts = reordered
            await self._flush(CONTACTS_KEY)
            return True

    async def set_address(self, address_type: str, text: str, label: Optional[str] = None) -> None:
        async with self._lock:
            self._require_initialized()
            self.addresses = contact_book.set_address(self.addresses, address_type, text, label)
            await self._flush(ADDRESSES_KEY)

    async def remove_address(self, address_type: str, label: Optional[str] = None) -> bool:
        async with self._lock:
            self._require_initialized()
            updated = contact_book.remove_address(self.addresses, address_type, label)
            if updated is None:
                return False
            self.addresses = updated
            await self._flush(ADDRESSES_KEY)
            return True

    async def set_preferred_platform(self, platform: str) -> None:
        async with self._lock:
            self._require_initialized()
            platform = platform.lower()
            if platform not in self._platforms:
                raise UnknownPlatformError(platform)
            self.profile.preferences.preferred_platform = platform
            await self._flush(PROFILE_KEY)

    async def set_payment_method(self, method: str) -> None:
        async with self._lock:
            self._require_initialized()
            try:
                value = PaymentMethod(method.upper()).value
            except ValueError as e:
                raise ValidationError(f"I don't know the payment method {method}.") from e
            self.profile.preferences.payment_method = value
            await self._flush(PROFILE_KEY)

    async def set_name(self, name: str) -> None:
        async with self._lock:
            self._require_initialized()
            if not name.strip():
                raise ValidationError("Your name can't be empty.")
            self.profile.name = name.strip()
            await self._flush(PROFILE_KEY)

    async def clear_history(self) -> None:
        async with self._lock:
            self._require_initialized()
            self.history.clear()
            await self._flush(CONTEXT_KEY)

    def stats(self) -> dict[str, Any]:
        return {
            "user_id": self.user_id,
            "name": self.profile.name,
            "usage": self.profile.usage_stats.model_dump(mode="json"),
            "preferred_platform": self.preferred_platform,
            "payment_method": self.preferred_payment_method,
            "history_length": len(self.history),
            "learning": {k: v.model_dump(mode="json") for k, v in self.learning.items()},
        }
