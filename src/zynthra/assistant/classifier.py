"""Keyword intent classifier.

Rules are evaluated top to bottom and the first match wins, so a later rule
with a higher confidence never overrides an earlier one ("order emergency
help" is an order, not an SOS).
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Callable, Iterable

from zynthra.assistant.entities import (
    PLATFORM_VOCABULARY,
    Entities,
    SearchEntities,
    TrackEntities,
    extract_order_entities,
    extract_order_id,
    extract_search_query,
)
from zynthra.core.types import Intent, PaymentMethod


@dataclass(frozen=True, slots=True)
class Classification:
    intent: Intent
    entities: Entities
    confidence: float


@dataclass(frozen=True, slots=True)
class _Rule:
    intent: Intent
    confidence: float
    matches: Callable[[str], bool]
    extract: Callable[[str], Entities]


def _contains_any(*words: str) -> Callable[[str], bool]:
    return lambda text: any(w in text for w in words)


class IntentClassifier:
    FALLBACK_CONFIDENCE = 0.5

    def __init__(
        self,
        default_payment_method: str = PaymentMethod.COD.value,
        platforms: Iterable[str] = PLATFORM_VOCABULARY,
    ):
        self.default_payment_method = default_payment_method
        self._platforms = tuple(platforms)
        self._rules = (
            _Rule(
                Intent.ORDER,
                0.8,
                _contains_any("order", "buy"),
                lambda text: extract_order_entities(
                    text, self.default_payment_method, self._platforms
                ),
            ),
            _Rule(
                Intent.SOS,
                0.9,
                _contains_any("sos", "emergency", "help me"),
                lambda text: Entities(),
            ),
            _Rule(
                Intent.TRACK,
                0.75,
                lambda text: "track" in text and ("order" in text or "package" in text),
                lambda text: TrackEntities(order_id=extract_order_id(text)),
            ),
            _Rule(
                Intent.SEARCH,
                0.7,
                _contains_any("find", "search"),
                lambda text: SearchEntities(query=extract_search_query(text)),
            ),
        )

    def classify(self, utterance: str) -> Classification:
        text = utterance.lower()
        for rule in self._rules:
            if rule.matches(text):
                return Classification(rule.intent, rule.extract(text), rule.confidence)
        return Classification(Intent.GENERAL, Entities(), self.FALLBACK_CONFIDENCE)
