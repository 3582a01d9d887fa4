"""Emergency contact and address book maintenance.

Pure functions over the persisted models; the session calls them under its
lock and flushes the result.
"""

from __future__ import annotations

import uuid
from typing import Optional

from zynthra.core.errors import ValidationError
from zynthra.core.types import AddressType
from zynthra.storage.models import Address, AddressBook, EmergencyContact


def upsert_contact(
    contacts: list[EmergencyContact],
    name: str,
    phone: str,
    priority: Optional[int] = None,
) -> list[EmergencyContact]:
    """Add a contact, or update the one with the same phone number."""
    name, phone = name.strip(), phone.strip()
    if not name or not phone:
        raise ValidationError("An emergency contact needs both a name and a phone number.")

    updated = [c.model_copy() for c in contacts]
    existing = next((c for c in updated if c.phone == phone), None)
    if existing is not None:
        existing.name = name
        if priority is not None:
            existing.priority = priority
    else:
        updated.append(
            EmergencyContact(
                id=uuid.uuid4().hex[:12],
                name=name,
                phone=phone,
                priority=priority if priority is not None else len(updated) + 1,
            )
        )
    updated.sort(key=lambda c: c.priority)
    return updated


def remove_contact(contacts: list[EmergencyContact], contact_id: str) -> list[EmergencyContact] | None:
    """Drop a contact and renumber priorities; ``None`` if the id is unknown."""
    remaining = [c.model_copy() for c in contacts if c.id != contact_id]
    if len(remaining) == len(contacts):
        return None
    for index, contact in enumerate(remaining, start=1):
        contact.priority = index
    return remaining


def reprioritize_contact(
    contacts: list[EmergencyContact], contact_id: str, new_priority: int
) -> list[EmergencyContact] | None:
    """Move one contact to ``new_priority``, shifting the ones in between."""
    updated = [c.model_copy() for c in contacts]
    target = next((c for c in updated if c.id == contact_id), None)
    if target is None:
        return None

    new_priority = max(1, min(new_priority, len(updated)))
    old_priority = target.priority
    if old_priority == new_priority:
        return updated

    for contact in updated:
        if contact is target:
            contact.priority = new_priority
        elif old_priority < new_priority and old_priority < contact.priority <= new_priority:
            contact.priority -= 1
        elif old_priority > new_priority and new_priority <= contact.priority < old_priority:
            contact.priority += 1
    updated.sort(key=lambda c: c.priority)
    return updated


def set_address(book: AddressBook, address_type: str, text: str, label: Optional[str] = None) -> AddressBook:
    address_type = str(address_type)
    text = text.strip()
    if not text:
        raise ValidationError("The address can't be empty.")

    updated = book.model_copy(deep=True)
    if address_type in (AddressType.HOME, AddressType.WORK):
        setattr(updated, address_type, Address(label=address_type, text=text))
        return updated

    if not label:
        raise ValidationError("Other addresses need a label.")
    updated.other = [a for a in updated.other if a.label != label]
    updated.other.append(Address(label=label, text=text))
    return updated


def remove_address(book: AddressBook, address_type: str, label: Optional[str] = None) -> AddressBook | None:
    address_type = str(address_type)
    updated = book.model_copy(deep=True)
    if address_type in (AddressType.HOME, AddressType.WORK):
        if getattr(updated, address_type) is None:
            return None
        setattr(updated, address_type, None)
        return updated
    if address_type == AddressType.OTHER and label:
        before = len(updated.other)
        updated.other = [a for a in updated.other if a.label != label]
        return updated if len(updated.other) < before else None
    return None
