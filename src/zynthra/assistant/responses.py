"""Canned replies for utterances no handler claims."""

from __future__ import annotations

import random
import re

GREETING_RE = re.compile(r"^(hi|hello|hey|greetings)", re.IGNORECASE)
FAREWELL_RE = re.compile(r"^(bye|goodbye|see you|farewell)", re.IGNORECASE)
THANKS_RE = re.compile(r"^(thanks|thank you|appreciate it)", re.IGNORECASE)

RESPONSES: dict[str, tuple[str, ...]] = {
    "greeting": (
        "Hello! How can I assist you today?",
        "Hi there! I'm Zynthra, your personal AI assistant.",
        "Greetings! What can I help you with?",
    ),
    "farewell": (
        "Goodbye! Have a great day!",
        "See you later! Call me if you need anything.",
        "Bye for now! I'll be here when you need me.",
    ),
    "thanks": (
        "You're welcome! Is there anything else I can help with?",
        "Happy to help! Let me know if you need anything else.",
        "My pleasure! What else can I do for you today?",
    ),
    "unknown": (
        "I'm not sure I understand. Could you rephrase that?",
        "I'm still learning. Could you try asking in a different way?",
        "I don't have information about that yet. Is there something else I can help with?",
    ),
}

CLARIFICATION = "I'm not sure I understood that correctly. Could you please rephrase?"


def categorize(utterance: str) -> str:
    if GREETING_RE.match(utterance):
        return "greeting"
    if FAREWELL_RE.match(utterance):
        return "farewell"
    if THANKS_RE.match(utterance):
        return "thanks"
    return "unknown"


def generate_response(utterance: str, rng: random.Random | None = None) -> str:
    return (rng or random).choice(RESPONSES[categorize(utterance)])
