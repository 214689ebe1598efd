"""
Duplicate Categorization Engine

Builds identity indexes (normalized phone, name and email) over a record set
and partitions the records into labeled duplicate groups.

Three passes run in order over the same input:

1. Phone: contacts sharing a normalized phone become an ``exactMatch`` group
   when their normalized names also agree, otherwise a ``sameNumber`` group.
   A contact already placed by an earlier phone group is not placed again,
   so each contact lands in at most one of the first three categories.
2. Name: contacts not grouped by the phone pass that share a normalized name
   become a ``sameName`` group.
3. Email: contacts sharing a normalized email become a ``sameEmail`` group.
   This pass does not skip contacts already grouped by passes 1 and 2, so a
   contact can show up here as well. The asymmetry is kept for compatibility
   with existing categorization results.

``similarPhone`` is declared but has no populating rule and is always empty.
"""

import logging
from typing import Dict, Iterable, List, Optional, Set

from ..logging_config import Timer, log_performance
from ..models import CategorizedDuplicates, Contact, DuplicateGroup, MatchType
from ..normalization import normalize_email

logger = logging.getLogger(__name__)


def _index_add(index: Dict[str, List[str]], key: str, contact_id: str) -> None:
    if key:
        index.setdefault(key, []).append(contact_id)


def _unique(ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(ids))


class DuplicateCategorizer:
    """Partitions a contact set into duplicate categories.

    Each call to ``categorize`` is independent; the categorizer keeps no state
    between runs and never mutates the contacts it is given.
    """

    def categorize(self, contacts: Iterable[Contact]) -> CategorizedDuplicates:
        """Group duplicate contacts.

        Args:
            contacts: Snapshot of the live record set; iteration order decides
                group order

        Returns:
            Groups per category, each group holding copies of its members
        """
        with Timer() as timer:
            result = self._categorize(contacts)

        log_performance(__name__, "categorize", timer.duration_ms, **result.stats())
        return result

    def _categorize(self, contacts: Iterable[Contact]) -> CategorizedDuplicates:
        records: Dict[str, Contact] = {}
        for contact in contacts:
            records.setdefault(contact.id, contact)

        phone_index: Dict[str, List[str]] = {}
        name_index: Dict[str, List[str]] = {}
        email_index: Dict[str, List[str]] = {}

        for contact_id, contact in records.items():
            for phone in contact.normalized_phones:
                _index_add(phone_index, phone, contact_id)
            _index_add(name_index, contact.normalized_name, contact_id)
            for email in contact.emails:
                _index_add(email_index, normalize_email(email.value), contact_id)

        result = CategorizedDuplicates()
        processed_groups: Set[str] = set()
        contacts_in_groups: Set[str] = set()

        # Pass 1: shared phone number. A contact with several phones joins
        # only the first phone group it qualifies for.
        for phone, ids in phone_index.items():
            remaining = [i for i in _unique(ids) if i not in contacts_in_groups]
            members = self._new_group_members(remaining, records, processed_groups)
            if members is None:
                continue

            if len({m.normalized_name for m in members}) == 1:
                result.exact_match.append(DuplicateGroup(
                    contacts=members,
                    match_type=MatchType.EXACT,
                    matched_on="phone",
                    similarity=100,
                ))
            else:
                result.same_number.append(DuplicateGroup(
                    contacts=members,
                    match_type=MatchType.SAME_PHONE,
                    matched_on="phone",
                    similarity=100,
                    conflict_fields=["name"],
                ))
            contacts_in_groups.update(m.id for m in members)

        # Pass 2: shared name, among contacts the phone pass left alone
        for name, ids in name_index.items():
            remaining = [i for i in _unique(ids) if i not in contacts_in_groups]
            members = self._new_group_members(remaining, records, processed_groups)
            if members is None:
                continue

            result.same_name.append(DuplicateGroup(
                contacts=members,
                match_type=MatchType.SAME_NAME,
                matched_on="name",
                similarity=90,
                conflict_fields=["phone"],
            ))
            contacts_in_groups.update(m.id for m in members)

        # Pass 3: shared email, no exclusion of already grouped contacts
        for email, ids in email_index.items():
            members = self._new_group_members(_unique(ids), records, processed_groups)
            if members is None:
                continue

            overlap = [m.id for m in members if m.id in contacts_in_groups]
            if overlap:
                logger.debug(
                    f"Email group overlaps {len(overlap)} contact(s) already grouped",
                    extra={"contact_ids": overlap},
                )

            result.same_email.append(DuplicateGroup(
                contacts=members,
                match_type=MatchType.SAME_EMAIL,
                matched_on="email",
                similarity=100,
            ))

        logger.info(
            f"Categorized {len(records)} contacts into {result.total_groups} duplicate groups",
            extra=result.stats(),
        )
        return result

    @staticmethod
    def _new_group_members(
        ids: List[str],
        records: Dict[str, Contact],
        processed_groups: Set[str],
    ) -> Optional[List[Contact]]:
        """Resolve ids to member snapshots, or None if too small or already emitted."""
        if len(ids) < 2:
            return None

        group_key = "-".join(sorted(ids))
        if group_key in processed_groups:
            return None
        processed_groups.add(group_key)

        return [records[i].snapshot() for i in ids]


def categorize(contacts: Iterable[Contact]) -> CategorizedDuplicates:
    """Categorize duplicates with a fresh categorizer."""
    return DuplicateCategorizer().categorize(contacts)
