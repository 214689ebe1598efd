"""Base store interface for contact records."""

from abc import ABC, abstractmethod
from typing import Iterable, List, Optional
import logging

from ..models import Contact


class RepositoryError(Exception):
    """Repository-specific error."""
    pass


class ContactStore(ABC):
    """Abstract store of live contact records, keyed by id."""

    def __init__(self):
        self.logger = logging.getLogger(self.__class__.__name__)

    @abstractmethod
    def get(self, id: str) -> Optional[Contact]:
        """Get a contact by id, or None."""
        pass

    @abstractmethod
    def put(self, contact: Contact) -> None:
        """Insert or replace a contact under its id."""
        pass

    @abstractmethod
    def delete(self, id: str) -> bool:
        """Remove a contact. Returns False if it was not stored."""
        pass

    @abstractmethod
    def list_all(self) -> List[Contact]:
        """All stored contacts in insertion order."""
        pass

    def count(self) -> int:
        return len(self.list_all())

    def batch_get(self, ids: Iterable[str]) -> List[Optional[Contact]]:
        """Get multiple contacts by id.

        Args:
            ids: Contact IDs

        Returns:
            List of contacts (may contain None for not found)
        """
        return [self.get(id) for id in ids]

    def batch_put(self, contacts: Iterable[Contact]) -> int:
        """Store multiple contacts; returns how many were stored."""
        stored = 0
        for contact in contacts:
            self.put(contact)
            stored += 1
        return stored

    def batch_delete(self, ids: Iterable[str]) -> int:
        """Delete multiple contacts; returns how many existed."""
        return sum(1 for id in ids if self.delete(id))

    def clear(self) -> None:
        """Remove every contact."""
        for contact in self.list_all():
            self.delete(contact.id)
