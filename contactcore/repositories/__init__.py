"""Record store abstraction for the contact collaborator layer."""

from .base import ContactStore, RepositoryError
from .memory import InMemoryContactStore

__all__ = [
    "ContactStore",
    "RepositoryError",
    "InMemoryContactStore",
]
