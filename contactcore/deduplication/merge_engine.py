"""
Merge Engine

Folds two or more contact records into one. The engine works on a snapshot
of the record set handed to it by the caller and returns a new record; it
never touches the caller's store. Removing the originals and storing the
result is the caller's job.

Only name, phones, emails, organization, title, notes and tags take part in
folding. Addresses, urls, profiles and the other fields come from the first
resolved record unchanged.
"""

import logging
from enum import Enum
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from pydantic import TypeAdapter

from ..error_handling import InsufficientMembersError
from ..models import Contact
from ..normalization import normalize_email
from ..utils import generate_id

logger = logging.getLogger(__name__)

ContactSnapshot = Union[Mapping[str, Contact], Iterable[Contact]]


class MergeField(str, Enum):
    """Contact fields a caller may set directly through preferred values."""

    NAME = "name"
    FIRST_NAME = "firstName"
    LAST_NAME = "lastName"
    MIDDLE_NAME = "middleName"
    PREFIX = "prefix"
    SUFFIX = "suffix"
    NICKNAME = "nickname"
    PHONETIC_FIRST_NAME = "phoneticFirstName"
    PHONETIC_LAST_NAME = "phoneticLastName"
    ORGANIZATION = "organization"
    DEPARTMENT = "department"
    TITLE = "title"
    NOTES = "notes"
    BIRTHDAY = "birthday"
    ANNIVERSARY = "anniversary"
    GENDER = "gender"
    GEO = "geo"
    TIMEZONE = "timezone"
    PHOTO = "photo"
    PHOTO_TYPE = "photoType"
    PHONES = "phones"
    EMAILS = "emails"
    ADDRESSES = "addresses"
    URLS = "urls"
    SOCIAL_PROFILES = "socialProfiles"
    IM_HANDLES = "imHandles"
    RELATED = "related"
    TAGS = "tags"

    @property
    def attribute(self) -> str:
        """Python attribute name on Contact."""
        return self.name.lower()

    @classmethod
    def parse(cls, name: str) -> Optional["MergeField"]:
        """Resolve a camelCase or snake_case field name; None if not settable."""
        try:
            return cls(name)
        except ValueError:
            pass
        try:
            return cls[name.upper()]
        except KeyError:
            return None

    def apply(self, record: Dict[str, Any], value: Any) -> None:
        """Set this field on a draft record (a field name to value dict).

        The value is validated for this field alone. Record level rules,
        such as needing a name or a phone, are checked once the merge is
        complete.
        """
        record[self.attribute] = _SETTERS[self](value)


def _set_text(value: Any) -> str:
    return "" if value is None else str(value)


def _list_setter(attribute: str) -> Callable[[Any], Any]:
    adapter = TypeAdapter(Contact.model_fields[attribute].annotation)

    def setter(value: Any) -> List[Any]:
        return adapter.validate_python(list(value or []))
    return setter


_LIST_FIELDS = {
    MergeField.PHONES, MergeField.EMAILS, MergeField.ADDRESSES, MergeField.URLS,
    MergeField.SOCIAL_PROFILES, MergeField.IM_HANDLES, MergeField.RELATED, MergeField.TAGS,
}

_SETTERS: Dict[MergeField, Callable[[Any], Any]] = {
    field: _list_setter(field.attribute) if field in _LIST_FIELDS else _set_text
    for field in MergeField
}

# Fields where the first non-empty value wins
_PREFER_NON_EMPTY = ("name", "first_name", "last_name", "organization", "title")


def _as_lookup(contacts: ContactSnapshot) -> Mapping[str, Contact]:
    if isinstance(contacts, Mapping):
        return contacts
    lookup: Dict[str, Contact] = {}
    for contact in contacts:
        lookup.setdefault(contact.id, contact)
    return lookup


class MergeEngine:
    """Merges duplicate contacts into a single new record."""

    def __init__(self, id_factory: Optional[Callable[[], str]] = None):
        self.id_factory = id_factory or generate_id

    def merge(
        self,
        contacts: ContactSnapshot,
        ids: Sequence[str],
        preferred_values: Optional[Mapping[str, Any]] = None,
    ) -> Contact:
        """Merge the contacts named by ``ids``.

        The merge works on a draft of the base record and validates the
        result once, after folding, so a preferred value may leave the base
        briefly without a name when another record supplies one.

        Args:
            contacts: Snapshot of the live record set (mapping by id, or any
                iterable of contacts)
            ids: Ids to merge; the first one that resolves becomes the base
            preferred_values: Field name to value overrides applied to the base
                before folding; names that are not settable fields are ignored

        Returns:
            The merged contact under a fresh id

        Raises:
            InsufficientMembersError: If fewer than two ids resolve
            pydantic.ValidationError: If a preferred value has the wrong shape
        """
        lookup = _as_lookup(contacts)
        unique_ids = list(dict.fromkeys(ids))
        resolved = [lookup[i] for i in unique_ids if i in lookup]

        if len(resolved) < 2:
            raise InsufficientMembersError(
                f"Merge needs at least 2 live contacts, {len(resolved)} resolved",
                requested_ids=unique_ids,
                resolved_count=len(resolved),
            )

        record = dict(resolved[0].snapshot())

        if preferred_values:
            self._apply_preferred(record, preferred_values)

        phone_keys = self._dedupe_phones(record)
        email_keys = self._dedupe_emails(record)

        for other in resolved[1:]:
            self._fold(record, other, phone_keys, email_keys)

        record["id"] = self.id_factory()
        merged = Contact.model_validate(record)

        logger.info(
            f"Merged {len(resolved)} contacts into {merged.id}",
            extra={
                "contact_ids": unique_ids,
                "resolved_count": len(resolved),
                "merged_id": merged.id,
            },
        )
        return merged

    @staticmethod
    def _apply_preferred(record: Dict[str, Any], preferred_values: Mapping[str, Any]) -> None:
        for name, value in preferred_values.items():
            merge_field = name if isinstance(name, MergeField) else MergeField.parse(str(name))
            if merge_field is None:
                logger.debug(f"Ignoring preferred value for unknown field '{name}'")
                continue
            merge_field.apply(record, value)

    @staticmethod
    def _dedupe_phones(record: Dict[str, Any]) -> set:
        seen = set()
        kept = []
        for phone in record["phones"]:
            if phone.normalized not in seen:
                seen.add(phone.normalized)
                kept.append(phone)
        record["phones"] = kept
        return seen

    @staticmethod
    def _dedupe_emails(record: Dict[str, Any]) -> set:
        seen = set()
        kept = []
        for email in record["emails"]:
            key = normalize_email(email.value)
            if key not in seen:
                seen.add(key)
                kept.append(email)
        record["emails"] = kept
        return seen

    @staticmethod
    def _fold(record: Dict[str, Any], other: Contact, phone_keys: set, email_keys: set) -> None:
        for attribute in _PREFER_NON_EMPTY:
            if not record[attribute] and getattr(other, attribute):
                record[attribute] = getattr(other, attribute)

        if not record["notes"]:
            record["notes"] = other.notes
        elif other.notes and other.notes != record["notes"]:
            record["notes"] = f"{record['notes']}\n{other.notes}"

        for phone in other.phones:
            if phone.normalized not in phone_keys:
                phone_keys.add(phone.normalized)
                record["phones"].append(phone.model_copy())

        for email in other.emails:
            key = normalize_email(email.value)
            if key not in email_keys:
                email_keys.add(key)
                record["emails"].append(email.model_copy())

        # Duplicates are dropped when the record is validated
        record["tags"] = record["tags"] + other.tags


def merge_contacts(
    contacts: ContactSnapshot,
    ids: Sequence[str],
    preferred_values: Optional[Mapping[str, Any]] = None,
    id_factory: Optional[Callable[[], str]] = None,
) -> Contact:
    """Merge ``ids`` out of ``contacts`` with a fresh engine."""
    return MergeEngine(id_factory).merge(contacts, ids, preferred_values)
