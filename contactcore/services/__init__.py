"""Service layer for contactcore."""

from .contact_manager import AutoMergeResult, ContactManager

__all__ = ["AutoMergeResult", "ContactManager"]
