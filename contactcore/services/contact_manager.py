"""Contact collection management: files, records, duplicates and merges."""

import logging
import threading
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Union

from ..audit import AuditTrail
from ..deduplication import DuplicateCategorizer, MergeEngine, SimilarityScorer
from ..error_handling import (
    ContactNotFoundError,
    ErrorHandler,
    ImportRejectedError,
    error_context,
)
from ..logging_config import log_context
from ..models import CategorizedDuplicates, Config, Contact, DuplicateGroup, HistoryEntry, SourceFile
from ..repositories import ContactStore, InMemoryContactStore
from ..utils import generate_id, read_card_file, sanitize_string
from ..vcard import VCardDecoder, VCardEncoder

logger = logging.getLogger(__name__)

CARD_MARKER = "BEGIN:VCARD"
HEADER_PEEK_CHARS = 100

# Wire name -> attribute for fields callers may update
UPDATABLE_FIELDS = {
    "name": "name",
    "firstName": "first_name",
    "lastName": "last_name",
    "phones": "phones",
    "emails": "emails",
    "organization": "organization",
    "title": "title",
    "notes": "notes",
    "tags": "tags",
}

_SYSTEM_FIELDS = ("id", "source_file", "sourceFile", "raw")


@dataclass
class AutoMergeResult:
    """Outcome of merging one duplicate group."""
    success: bool
    original_count: int
    merged_id: Optional[str] = None
    error: Optional[str] = None
    contact_ids: List[str] = field(default_factory=list)


class ContactManager:
    """
    Owns the live record set and applies core operations to it.

    Decoding, categorizing, scoring and merging are delegated to the core
    engines, which only ever see a snapshot. Every operation that reads and
    then writes the store holds the manager lock for its whole duration.
    """

    def __init__(
        self,
        store: Optional[ContactStore] = None,
        config: Optional[Config] = None,
    ):
        """Initialize the manager.

        Args:
            store: Record store (default: a new in-memory store)
            config: Full configuration (default: built-in defaults)
        """
        self.config = config or Config()
        self.store = store if store is not None else InMemoryContactStore()
        self.history = AuditTrail(limit=self.config.manager.history_limit)

        self.decoder = VCardDecoder(self.config.codec, id_factory=generate_id)
        self.encoder = VCardEncoder(self.config.codec)
        self.categorizer = DuplicateCategorizer()
        self.scorer = SimilarityScorer(self.config.dedupe)
        self.merger = MergeEngine(id_factory=generate_id)

        self._files: Dict[str, SourceFile] = {}
        self._lock = threading.RLock()

    # Files

    def add_file(self, filename: str, contacts: Iterable[Contact]) -> str:
        """Register a source file and store its contacts.

        Args:
            filename: Display name of the file
            contacts: Decoded contacts; each is tagged with the new file id

        Returns:
            The new file id
        """
        with self._lock:
            source = SourceFile(name=sanitize_string(filename))
            tagged = []
            for contact in contacts:
                copy = contact.snapshot()
                copy.source_file = source.id
                tagged.append(copy)
            stored = self.store.batch_put(tagged)

            source.contact_count = stored
            self._files[source.id] = source
            self.history.record("add_file", {"file_id": source.id, "filename": source.name, "count": stored})

        logger.info(f"Added file '{source.name}' with {stored} contacts", extra={"file_id": source.id})
        return source.id

    def validate_upload(self, filename: str, size: int, header: str) -> List[str]:
        """Check an uploaded file before decoding it.

        Args:
            filename: Original file name
            size: File size in bytes
            header: The first characters of the file

        Returns:
            Problems found; empty when the upload is acceptable
        """
        errors = []
        limits = self.config.imports

        if size > limits.max_upload_size:
            errors.append(
                f"File size exceeds maximum allowed ({limits.max_upload_size / 1024 / 1024:g}MB)"
            )

        extension = Path(filename).suffix.lstrip(".").lower()
        if extension not in [e.lower() for e in limits.allowed_extensions]:
            allowed = ", ".join(f".{e}" for e in limits.allowed_extensions)
            errors.append(f"Invalid file extension. Only {allowed} files are allowed.")

        if CARD_MARKER not in header.upper():
            errors.append("File does not appear to be a valid VCF file.")

        return errors

    def import_text(self, text: str, filename: Optional[str] = None) -> str:
        """Decode pasted card text and store it as a new file.

        Raises:
            ImportRejectedError: If the text is too large, has no card marker
                or holds no valid contacts
        """
        name = filename or f"Pasted Contacts {datetime.now():%Y-%m-%d %H:%M}"
        text = (text or "").replace("\0", "")

        if len(text.encode("utf-8", "surrogateescape")) > self.config.imports.max_upload_size:
            raise ImportRejectedError(
                "Pasted text exceeds the maximum upload size", filename=name, reasons=["too_large"]
            )
        if CARD_MARKER not in text.upper():
            raise ImportRejectedError(
                "Pasted text does not appear to be valid VCF format.",
                filename=name,
                reasons=["missing_card_marker"],
            )

        return self._decode_and_add(text, name)

    def import_path(self, path: Union[str, Path]) -> str:
        """Validate, decode and store a card file from disk.

        Raises:
            ImportRejectedError: If validation fails, the file cannot be read
                or it holds no valid contacts
        """
        path = Path(path)

        with error_context("import_path", convert_to=ImportRejectedError, path=str(path)):
            size = path.stat().st_size
            text = read_card_file(path)

            errors = self.validate_upload(path.name, size, text[:HEADER_PEEK_CHARS])
            if errors:
                raise ImportRejectedError(
                    f'File "{path.name}": ' + ", ".join(errors),
                    filename=path.name,
                    reasons=errors,
                )

            return self._decode_and_add(text, path.name)

    def _decode_and_add(self, text: str, filename: str) -> str:
        with log_context(import_file=filename):
            contacts = self.decoder.decode(text)
            if not contacts:
                raise ImportRejectedError(
                    "No valid contacts found in file.",
                    filename=filename,
                    reasons=["no_contacts"],
                )
            return self.add_file(filename, contacts)

    def get_files(self) -> List[SourceFile]:
        """All registered files with their current contact counts."""
        with self._lock:
            counts: Dict[str, int] = {}
            for contact in self.store.list_all():
                counts[contact.source_file] = counts.get(contact.source_file, 0) + 1
            return [
                f.model_copy(update={"contact_count": counts.get(f.id, 0)})
                for f in self._files.values()
            ]

    def get_file(self, file_id: str) -> Optional[SourceFile]:
        with self._lock:
            source = self._files.get(file_id)
            return source.model_copy() if source else None

    def rename_file(self, file_id: str, new_name: str) -> bool:
        with self._lock:
            source = self._files.get(file_id)
            if source is None:
                return False
            source.name = sanitize_string(new_name)
            self.history.record("rename_file", {"file_id": file_id, "filename": source.name})
            return True

    def delete_file(self, file_id: str) -> bool:
        """Remove a file and every contact that came from it."""
        with self._lock:
            if file_id not in self._files:
                return False

            removed = 0
            for contact in self.store.list_all():
                if contact.source_file == file_id:
                    self.store.delete(contact.id)
                    removed += 1

            del self._files[file_id]
            self.history.record("delete_file", {"file_id": file_id, "count": removed})
            return True

    # Contacts

    def get_contacts(self, file_id: Optional[str] = None, search: Optional[str] = None) -> List[Contact]:
        """List contacts, optionally filtered by file and a search string.

        The search is a case-insensitive substring match over the name and
        every phone and email value.
        """
        needle = (search or "").lower()
        result = []

        for contact in self.store.list_all():
            if file_id is not None and contact.source_file != file_id:
                continue
            if needle and not self._matches(contact, needle):
                continue
            result.append(contact)

        return result

    @staticmethod
    def _matches(contact: Contact, needle: str) -> bool:
        if needle in contact.name.lower():
            return True
        if any(needle in p.value.lower() for p in contact.phones):
            return True
        return any(needle in e.value.lower() for e in contact.emails)

    def get_contact(self, contact_id: str) -> Optional[Contact]:
        return self.store.get(contact_id)

    def create_contact(self, data: Mapping[str, Any], source_file: Optional[str] = None) -> Contact:
        """Validate and store a new contact.

        Raises:
            ContactNotFoundError: If ``source_file`` is not a registered file
            pydantic.ValidationError: If the data does not form a valid contact
        """
        with self._lock:
            if source_file is not None and source_file not in self._files:
                raise ContactNotFoundError(f"Unknown file: {source_file}", record_id=source_file)

            payload = {k: v for k, v in data.items() if k not in _SYSTEM_FIELDS}
            contact = Contact.model_validate(
                {**payload, "id": generate_id(), "source_file": source_file or ""}
            )
            self.store.put(contact)
            self.history.record("create", {"contact_id": contact.id})
            return contact

    def update_contact(self, contact_id: str, data: Mapping[str, Any]) -> Contact:
        """Update the updatable fields of a contact.

        Keys may be camelCase or snake_case; other keys and None values are
        ignored. The update is validated as a whole before it is stored.

        Raises:
            ContactNotFoundError: If the contact does not exist
            pydantic.ValidationError: If the result would be an invalid contact
        """
        with self._lock:
            existing = self.store.get(contact_id)
            if existing is None:
                raise ContactNotFoundError(f"Contact not found: {contact_id}", record_id=contact_id)

            updates = {}
            for wire_name, attribute in UPDATABLE_FIELDS.items():
                for key in (wire_name, attribute):
                    if data.get(key) is not None:
                        updates[attribute] = data[key]

            if not updates:
                return existing

            updated = Contact.model_validate({**existing.model_dump(), **updates})
            self.store.put(updated)
            self.history.record("update", {"contact_id": contact_id, "fields": sorted(updates)})
            return updated

    def delete_contacts(self, ids: Sequence[str]) -> int:
        """Delete contacts; returns how many existed."""
        with self._lock:
            deleted = self.store.batch_delete(ids)
            self.history.record("delete", {"count": deleted})
            return deleted

    def move_contacts(self, ids: Sequence[str], target_file_id: str) -> int:
        """Reassign contacts to another file; returns how many moved.

        Raises:
            ContactNotFoundError: If the target file is not registered
        """
        with self._lock:
            if target_file_id not in self._files:
                raise ContactNotFoundError(f"Unknown file: {target_file_id}", record_id=target_file_id)

            moved = 0
            for contact in self.store.batch_get(ids):
                if contact is None:
                    continue
                contact.source_file = target_file_id
                self.store.put(contact)
                moved += 1

            self.history.record("move", {"count": moved, "target_file_id": target_file_id})
            return moved

    # Duplicates

    def analyze(self) -> CategorizedDuplicates:
        """Categorize duplicates across the current record set."""
        with self._lock:
            snapshot = self.store.list_all()
        return self.categorizer.categorize(snapshot)

    def find_duplicates(self, threshold: Optional[int] = None) -> List[DuplicateGroup]:
        """Pairwise duplicate search; threshold is clamped to the configured range."""
        with self._lock:
            snapshot = self.store.list_all()
        return self.scorer.find_duplicates(snapshot, threshold)

    def merge_contacts(
        self,
        ids: Sequence[str],
        preferred_values: Optional[Mapping[str, Any]] = None,
    ) -> Contact:
        """Merge contacts and replace them with the result.

        Raises:
            InsufficientMembersError: If fewer than two ids are live contacts
        """
        with self._lock:
            snapshot = {c.id: c for c in self.store.list_all()}
            merged = self.merger.merge(snapshot, ids, preferred_values)

            self.store.batch_delete(ids)
            self.store.put(merged)
            self.history.record("merge", {"contact_ids": list(ids), "result_id": merged.id})
            return merged

    def auto_merge(
        self,
        groups: Iterable[Union[DuplicateGroup, Sequence[str]]],
    ) -> List[AutoMergeResult]:
        """Merge every group; a failing group never stops the rest.

        Args:
            groups: Duplicate groups, or plain sequences of contact ids

        Returns:
            One result per group that named at least two contacts
        """
        handler = ErrorHandler(context={"operation": "auto_merge"}, raise_on_critical=False)
        results: List[AutoMergeResult] = []

        for group in groups:
            ids = group.contact_ids if isinstance(group, DuplicateGroup) else list(group)
            if len(ids) < 2:
                continue

            try:
                merged = self.merge_contacts(ids)
            except Exception as e:
                handler.handle_error(e, additional_context={"contact_ids": ids})
                results.append(AutoMergeResult(
                    success=False, original_count=len(ids), error=str(e), contact_ids=ids,
                ))
                continue

            results.append(AutoMergeResult(
                success=True, original_count=len(ids), merged_id=merged.id, contact_ids=ids,
            ))

        succeeded = sum(1 for r in results if r.success)
        logger.info(f"Auto-merged {succeeded} of {len(results)} groups")
        return results

    # Export and housekeeping

    def export_to_vcf(self, ids: Optional[Sequence[str]] = None, file_id: Optional[str] = None) -> str:
        """Encode the selected contacts (all by default) as one card document."""
        wanted = set(ids) if ids is not None else None
        contacts = [
            c for c in self.store.list_all()
            if (wanted is None or c.id in wanted) and (file_id is None or c.source_file == file_id)
        ]
        return self.encoder.encode(contacts)

    def total_contacts(self) -> int:
        return self.store.count()

    def clear_all(self) -> None:
        """Drop every file, contact and history entry."""
        with self._lock:
            self.store.clear()
            self._files.clear()
            self.history.clear()
            self.history.record("clear", {})

    def get_history(self) -> List[HistoryEntry]:
        return self.history.entries()
