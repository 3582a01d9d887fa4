"""Regex entity extraction for each intent.

All extractors take the lower-cased utterance and never raise: when nothing
matches they return ``None`` or the field's default.
"""

from __future__ import annotations

import re
from dataclasses import asdict, dataclass
from typing import Any, Iterable, Iterator, Optional

from zynthra.core.types import AddressType, PaymentMethod

PLATFORM_VOCABULARY = ("amazon", "flipkart")

_PRODUCT_RE = re.compile(
    r"(?:order|buy)\s+(?:a|an|some)?\s+(.+?)(?:\s+from|\s+on|\s+at|\s+to|\s+for|\s+with|$)",
    re.IGNORECASE,
)
_QUANTITY_RE = re.compile(r"(\d+)\s+(?:of|pieces|units|items)", re.IGNORECASE | re.ASCII)
_ORDER_ID_RES = (
    re.compile(r"#(\w+)", re.ASCII),
    re.compile(r"order (?:id|number|#)?\s*(\w+)", re.IGNORECASE | re.ASCII),
    re.compile(r"tracking (?:id|number)?\s*(\w+)", re.IGNORECASE | re.ASCII),
)
_SEARCH_RE = re.compile(
    r"(?:find|search for|look for|search)\s+(.+?)(?:\s+on|\s+in|\s+at|\s+from|$)",
    re.IGNORECASE,
)


@dataclass(frozen=True, slots=True)
class Entities:
    """Empty bag; intents without entities (sos, general) use this directly."""

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)

    def observed(self) -> Iterator[tuple[str, Any]]:
        """Field/value pairs worth counting: everything truthy."""
        for key, value in self.as_dict().items():
            if value:
                yield key, value


@dataclass(frozen=True, slots=True)
class OrderEntities(Entities):
    product: Optional[str] = None
    quantity: int = 1
    platform: Optional[str] = None
    address: str = AddressType.HOME.value
    payment_method: str = PaymentMethod.COD.value


@dataclass(frozen=True, slots=True)
class TrackEntities(Entities):
    order_id: Optional[str] = None


@dataclass(frozen=True, slots=True)
class SearchEntities(Entities):
    query: Optional[str] = None


def extract_order_entities(
    text: str,
    default_payment_method: str = PaymentMethod.COD.value,
    platforms: Iterable[str] = PLATFORM_VOCABULARY,
) -> OrderEntities:
    product = None
    match = _PRODUCT_RE.search(text)
    if match and match.group(1):
        product = match.group(1).strip()

    quantity = 1
    match = _QUANTITY_RE.search(text)
    if match:
        quantity = int(match.group(1))

    platform = next((p for p in platforms if p in text), None)

    address = AddressType.HOME.value
    if "work address" in text or "to work" in text:
        address = AddressType.WORK.value

    if "cod" in text or "cash on delivery" in text:
        payment_method = PaymentMethod.COD.value
    elif "card" in text:
        payment_method = PaymentMethod.CARD.value
    elif "upi" in text:
        payment_method = PaymentMethod.UPI.value
    else:
        payment_method = default_payment_method

    return OrderEntities(
        product=product,
        quantity=quantity,
        platform=platform,
        address=address,
        payment_method=payment_method,
    )


def extract_order_id(text: str) -> Optional[str]:
    for pattern in _ORDER_ID_RES:
        match = pattern.search(text)
        if match:
            return match.group(1)
    return None


def extract_search_query(text: str) -> Optional[str]:
    match = _SEARCH_RE.search(text)
    if match:
        return match.group(1).strip()
    return None
