"""In-process contact store."""

from typing import Dict, List, Optional

from ..models import Contact
from .base import ContactStore, RepositoryError


class InMemoryContactStore(ContactStore):
    """Keeps contacts in an insertion ordered dict.

    Records are copied on the way in and out, so callers can never mutate
    stored state without going through ``put``.
    """

    def __init__(self):
        super().__init__()
        self._records: Dict[str, Contact] = {}

    def get(self, id: str) -> Optional[Contact]:
        contact = self._records.get(id)
        return contact.snapshot() if contact is not None else None

    def put(self, contact: Contact) -> None:
        if not isinstance(contact, Contact):
            raise RepositoryError(f"Cannot store {type(contact).__name__} as a contact")
        if not contact.id:
            raise RepositoryError("Cannot store a contact without an id")
        self._records[contact.id] = contact.snapshot()

    def delete(self, id: str) -> bool:
        return self._records.pop(id, None) is not None

    def list_all(self) -> List[Contact]:
        return [contact.snapshot() for contact in self._records.values()]

    def count(self) -> int:
        return len(self._records)

    def clear(self) -> None:
        self._records.clear()
        self.logger.debug("Store cleared")
