"""
Emergency Contact Book

Ordered contact list with a single primary contact.

Invariant: whenever the book is non-empty exactly one contact is
primary. The most recent explicit primary assignment wins; removing
the primary promotes the earliest remaining contact.
"""

from typing import Iterable, Optional

from desist.domain.exceptions import ContactNotFound
from desist.domain.models.emergency_contact import EmergencyContact


# Fields a caller may change through update()
EDITABLE_FIELDS = frozenset({"name", "phone", "relationship", "is_primary"})


class ContactBook:
    """
    In-memory contact list enforcing the primary-contact invariant.

    Usage:
        book = ContactBook()
        mom = book.add("Mom", "+15550100")       # first contact is primary
        sis = book.add("Sis", "+15550101", is_primary=True)
        book.primary().id == sis.id
    """

    def __init__(self, contacts: Optional[Iterable[EmergencyContact]] = None) -> None:
        self._contacts: list[EmergencyContact] = []
        if contacts is not None:
            self.replace_all(contacts)

    def __len__(self) -> int:
        return len(self._contacts)

    def contacts(self) -> list[EmergencyContact]:
        return list(self._contacts)

    def get(self, contact_id: str) -> EmergencyContact:
        return self._contacts[self._index(contact_id)]

    def primary(self) -> Optional[EmergencyContact]:
        for contact in self._contacts:
            if contact.is_primary:
                return contact
        return None

    def add(
        self,
        name: str,
        phone: str,
        relationship: str = "",
        is_primary: bool = False,
    ) -> EmergencyContact:
        """Append a contact; the first contact always becomes primary."""
        contact = EmergencyContact(name=name, phone=phone, relationship=relationship)
        self._contacts.append(contact)
        if is_primary or len(self._contacts) == 1:
            self._make_primary(contact.id)
        return self.get(contact.id)

    def update(self, contact_id: str, **changes) -> EmergencyContact:
        """
        Change contact fields.

        Raises:
            ContactNotFound: If no contact has this ID
            ValueError: On unknown fields
        """
        unknown = set(changes) - EDITABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown contact fields: {', '.join(sorted(unknown))}")

        index = self._index(contact_id)
        primary_change = changes.pop("is_primary", None)
        if changes:
            current = self._contacts[index]
            self._contacts[index] = EmergencyContact(
                id=current.id,
                name=changes.get("name", current.name),
                phone=changes.get("phone", current.phone),
                relationship=changes.get("relationship", current.relationship),
                is_primary=current.is_primary,
            )

        if primary_change is True:
            self._make_primary(contact_id)
        elif primary_change is False and self._contacts[index].is_primary:
            successor = next((c for c in self._contacts if c.id != contact_id), None)
            # A sole contact stays primary
            if successor is not None:
                self._make_primary(successor.id)

        return self.get(contact_id)

    def set_primary(self, contact_id: str) -> EmergencyContact:
        return self.update(contact_id, is_primary=True)

    def remove(self, contact_id: str) -> EmergencyContact:
        """
        Remove a contact, promoting the earliest remaining one if it was primary.

        Raises:
            ContactNotFound: If no contact has this ID
        """
        removed = self._contacts.pop(self._index(contact_id))
        if removed.is_primary and self._contacts:
            self._make_primary(self._contacts[0].id)
        return removed

    def clear(self) -> None:
        self._contacts.clear()

    def replace_all(self, contacts: Iterable[EmergencyContact]) -> None:
        """
        Load contacts, repairing the primary flag if needed.

        With several primaries the last one wins; with none the first
        contact is promoted.
        """
        self._contacts = list(contacts)
        primaries = [c for c in self._contacts if c.is_primary]
        if primaries:
            self._make_primary(primaries[-1].id)
        elif self._contacts:
            self._make_primary(self._contacts[0].id)

    def alert_recipients(self, limit: int) -> list[EmergencyContact]:
        """Contacts to notify: primary first, then in insertion order."""
        primary = self.primary()
        ordered = [primary] if primary else []
        ordered.extend(c for c in self._contacts if not c.is_primary)
        return ordered[:max(0, limit)]

    def _index(self, contact_id: str) -> int:
        for index, contact in enumerate(self._contacts):
            if contact.id == contact_id:
                return index
        raise ContactNotFound(contact_id)

    def _make_primary(self, contact_id: str) -> None:
        self._contacts = [
            c.with_primary(c.id == contact_id) for c in self._contacts
        ]
