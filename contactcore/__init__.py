"""
contactcore - vCard contact decoding, duplicate detection and merging.

Usage:
    from contactcore import ContactManager

    manager = ContactManager()
    manager.import_path("contacts.vcf")
    categories = manager.analyze()
"""

__version__ = "1.0.0"

from .models import (
    CategorizedDuplicates,
    Config,
    Contact,
    DuplicateGroup,
    EmailEntry,
    MatchType,
    PhoneEntry,
    SimilarityBreakdown,
)
from .vcard import VCardDecoder, VCardEncoder, decode, encode
from .deduplication import (
    DuplicateCategorizer,
    MergeEngine,
    MergeField,
    SimilarityScorer,
    categorize,
    merge_contacts,
)
from .error_handling import ContactCoreError, InsufficientMembersError
from .services import ContactManager

__all__ = [
    "__version__",
    "CategorizedDuplicates",
    "Config",
    "Contact",
    "DuplicateGroup",
    "EmailEntry",
    "MatchType",
    "PhoneEntry",
    "SimilarityBreakdown",
    "VCardDecoder",
    "VCardEncoder",
    "decode",
    "encode",
    "DuplicateCategorizer",
    "MergeEngine",
    "MergeField",
    "SimilarityScorer",
    "categorize",
    "merge_contacts",
    "ContactCoreError",
    "InsufficientMembersError",
    "ContactManager",
]
