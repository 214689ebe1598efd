"""Tests for contact and result models."""

import pytest
from pydantic import ValidationError

from contactcore.models import (
    CategorizedDuplicates,
    Config,
    Contact,
    DuplicateGroup,
    EmailEntry,
    MatchType,
    PhoneEntry,
    PhoneType,
)


class TestPhoneEntry:
    """Test PhoneEntry model."""

    def test_normalized_is_derived(self):
        phone = PhoneEntry(value="+1 (555) 123-4567")
        assert phone.normalized == "+15551234567"
        assert phone.type == "other"

    def test_type_is_coerced(self):
        assert PhoneEntry(value="1", type="Mobile").type == "mobile"
        assert PhoneEntry(value="1", type=PhoneType.FAX).type == "fax"
        assert PhoneEntry(value="1", type="pager").type == "other"


class TestEmailEntry:
    """Test EmailEntry model."""

    def test_value_lowercased(self):
        assert EmailEntry(value=" Jane@Example.COM ").value == "jane@example.com"

    def test_unknown_type_becomes_other(self):
        assert EmailEntry(value="a@b.c", type="internet").type == "other"
        assert EmailEntry(value="a@b.c", type="WORK").type == "work"


class TestContact:
    """Test Contact model."""

    def test_requires_name_or_phone(self):
        with pytest.raises(ValidationError):
            Contact(name="   ")

    def test_phone_only_is_valid(self):
        contact = Contact(phones=[{"value": "555-1111"}])
        assert contact.name == ""
        assert contact.normalized_phones == ["5551111"]

    def test_ids_are_unique(self):
        assert Contact(name="A").id != Contact(name="A").id

    def test_tags_deduplicated_in_order(self):
        contact = Contact(name="A", tags=["b", "a", "b"])
        assert contact.tags == ["b", "a"]

    def test_assignment_is_validated(self):
        contact = Contact(name="A")
        contact.tags = ["x", "x"]
        assert contact.tags == ["x"]
        with pytest.raises(ValidationError):
            contact.name = ""

    def test_accepts_camel_case(self):
        contact = Contact.model_validate({"name": "A", "firstName": "Ann", "imHandles": [{"value": "x", "type": "skype"}]})
        assert contact.first_name == "Ann"
        assert contact.im_handles[0].type == "skype"

    def test_to_dict_uses_camel_case(self, jane):
        data = jane.to_dict()
        assert data["firstName"] == "Jane"
        assert "socialProfiles" in data
        assert data["phones"][0]["normalized"] == "+15551234567"

    def test_snapshot_is_independent(self, jane):
        copy = jane.snapshot()
        copy.phones.append(PhoneEntry(value="555-9999"))
        copy.tags.append("other")
        assert len(jane.phones) == 1
        assert jane.tags == ["friends"]

    def test_normalized_views(self, jane_duplicate):
        assert jane_duplicate.normalized_name == "jane doe"
        assert jane_duplicate.normalized_emails == ["jane.doe@work.example"]


class TestDuplicateGroup:
    """Test DuplicateGroup model."""

    def test_needs_two_members(self, jane):
        with pytest.raises(ValidationError):
            DuplicateGroup(contacts=[jane], match_type=MatchType.EXACT, matched_on="phone", similarity=100)

    def test_similarity_range(self, jane, john):
        with pytest.raises(ValidationError):
            DuplicateGroup(contacts=[jane, john], match_type="fuzzy", matched_on="fuzzy", similarity=101)

    def test_group_key_is_order_independent(self, jane, john):
        a = DuplicateGroup(contacts=[jane, john], match_type="exact", matched_on="phone", similarity=100)
        b = DuplicateGroup(contacts=[john, jane], match_type="exact", matched_on="phone", similarity=100)
        assert a.group_key == b.group_key == "jane-john"
        assert a.contact_ids == ["jane", "john"]

    def test_serializes_camel_case(self, jane, john):
        group = DuplicateGroup(
            contacts=[jane, john],
            match_type=MatchType.SAME_PHONE,
            matched_on="phone",
            similarity=100,
            conflict_fields=["name"],
        )
        data = group.model_dump(by_alias=True)
        assert data["matchType"] == "samePhone"
        assert data["matchedOn"] == "phone"
        assert data["conflictFields"] == ["name"]


class TestCategorizedDuplicates:
    """Test CategorizedDuplicates model."""

    def test_category_lookup(self):
        result = CategorizedDuplicates()
        assert result.category("exactMatch") is result.exact_match
        assert result.category("same_email") is result.same_email
        with pytest.raises(KeyError):
            result.category("bogus")

    def test_stats_cover_every_category(self):
        stats = CategorizedDuplicates().stats()
        assert stats == {
            "exactMatch": 0,
            "sameNumber": 0,
            "sameName": 0,
            "similarPhone": 0,
            "sameEmail": 0,
        }

    def test_serialized_keys(self):
        data = CategorizedDuplicates().model_dump(by_alias=True)
        assert set(data) == set(CategorizedDuplicates.CATEGORY_NAMES)


class TestConfigModels:
    """Test configuration model defaults."""

    def test_defaults(self):
        config = Config()
        assert config.codec.vcard_version == "3.0"
        assert config.codec.max_photo_size == 100000
        assert config.dedupe.fuzzy_threshold == 80
        assert (config.dedupe.weights.phone, config.dedupe.weights.email, config.dedupe.weights.name) == (50, 30, 20)
        assert config.imports.max_upload_size == 10 * 1024 * 1024
        assert config.imports.allowed_extensions == ["vcf"]
        assert config.manager.history_limit == 100
