"""
Duplicate Detection and Merging for Contact Records

Components:
- Categorizer: Index based duplicate categories (exact, same number, same name, same email)
- Similarity Scoring: Pairwise phone/email/name scores and the fallback finder
- Merge Engine: Folds duplicates into a single new record

Usage:
    from contactcore.deduplication import DuplicateCategorizer, MergeEngine

    categories = DuplicateCategorizer().categorize(contacts)
    merged = MergeEngine().merge(contacts, categories.exact_match[0].contact_ids)
"""

from .categorizer import DuplicateCategorizer, categorize
from .merge_engine import MergeEngine, MergeField, merge_contacts
from .similarity_scoring import SimilarityScorer

__all__ = [
    "DuplicateCategorizer",
    "categorize",
    "MergeEngine",
    "MergeField",
    "merge_contacts",
    "SimilarityScorer",
]
