"""Tests for the card decoder."""

import logging

import pytest

from contactcore.models import CodecConfig
from contactcore.utils import read_card_file
from contactcore.vcard import VCardDecoder, decode, extract_type, parse_parameters


class TestParameters:
    """Test parameter parsing and type extraction."""

    def test_key_value_pairs(self):
        params = parse_parameters(["TYPE=WORK", "charset=UTF-8", 'MEDIATYPE="image/png"'])
        assert params == {"TYPE": "WORK", "CHARSET": "UTF-8", "MEDIATYPE": "image/png"}

    def test_bare_tokens_are_types(self):
        assert parse_parameters(["CELL", "PREF"]) == {"TYPE": "CELL,PREF"}

    def test_repeated_type_joined(self):
        assert parse_parameters(["TYPE=INTERNET", "TYPE=HOME"])["TYPE"] == "INTERNET,HOME"

    @pytest.mark.parametrize("type_value,expected", [
        ("CELL", "mobile"),
        ("mobile,pref", "mobile"),
        ("HOME,VOICE", "home"),
        ("pref,WORK", "work"),
        ("FAX", "fax"),
        ("INTERNET", "other"),
        ("", "other"),
    ])
    def test_extract_type(self, type_value, expected):
        assert extract_type({"TYPE": type_value}) == expected

    def test_missing_type(self):
        assert extract_type({}) == "other"


class TestDecodeBasics:
    """Test decoding of common properties."""

    def test_single_card(self, card):
        contacts = decode(card(
            "FN:Jane Doe",
            "N:Doe;Jane;Q;Dr;PhD",
            "TEL;TYPE=CELL:+1 (555) 123-4567",
            "EMAIL;TYPE=INTERNET,HOME:Jane.Doe@Example.COM",
        ))

        assert len(contacts) == 1
        contact = contacts[0]
        assert contact.name == "Jane Doe"
        assert (contact.last_name, contact.first_name, contact.middle_name) == ("Doe", "Jane", "Q")
        assert (contact.prefix, contact.suffix) == ("Dr", "PhD")
        assert contact.phones[0].value == "+1 (555) 123-4567"
        assert contact.phones[0].type == "mobile"
        assert contact.phones[0].normalized == "+15551234567"
        assert contact.emails[0].value == "jane.doe@example.com"
        assert contact.emails[0].type == "home"

    def test_multiple_cards_in_order(self, card):
        contacts = decode(card("FN:A") + "\r\n" + card("FN:B") + card("FN:C"))
        assert [c.name for c in contacts] == ["A", "B", "C"]

    def test_fresh_id_per_card(self, card, sequential_ids):
        contacts = decode(card("FN:A") + card("FN:B"), id_factory=sequential_ids)
        assert [c.id for c in contacts] == ["id-1", "id-2"]

    def test_default_ids_are_unique(self, card):
        contacts = decode(card("FN:A") + card("FN:A"))
        assert contacts[0].id != contacts[1].id

    def test_source_file_and_raw(self, card):
        contact = decode(card("FN:A"), source_file="file-1")[0]
        assert contact.source_file == "file-1"
        assert "FN:A" in contact.raw

    def test_name_from_structured_name(self, card):
        contact = decode(card("N:Doe;John;;;"))[0]
        assert contact.name == "John Doe"

    def test_name_from_first_phone(self, card):
        contact = decode(card("TEL:555-1111", "TEL:555-2222"))[0]
        assert contact.name == "555-1111"

    def test_card_without_identity_is_dropped(self, card):
        contacts = decode(card("EMAIL:only@example.com", "ORG:Nobody") + card("FN:Kept"))
        assert [c.name for c in contacts] == ["Kept"]

    def test_malformed_card_logged_at_debug(self, card, caplog):
        with caplog.at_level(logging.DEBUG, logger="contactcore.vcard.decoder"):
            decode(card("NOTE:nothing here"))
        assert any("Dropping card" in r.getMessage() for r in caplog.records)

    @pytest.mark.parametrize("text", ["", "   \n", "FN:Jane Doe\nTEL:555", "BEGIN:VCARD\nFN:Unterminated\n"])
    def test_no_cards(self, text):
        assert decode(text) == []

    def test_case_insensitive_markers(self):
        contacts = decode("begin:vcard\nversion:3.0\nfn:lower case\nend:vcard\n")
        assert contacts[0].name == "lower case"

    def test_unknown_properties_and_bad_lines_ignored(self, card):
        contact = decode(card("FN:A", "X-UNKNOWN:whatever", "this line has no colon", "PRODID:-//x//"))[0]
        assert contact.name == "A"


class TestDecodeFieldMapping:
    """Test the property to field mapping."""

    def test_scalars(self, card):
        contact = decode(card(
            "FN:A",
            "NICKNAME:Ace",
            "TITLE:Engineer",
            "BDAY:1990-01-31",
            "X-ANNIVERSARY:2015-06-01",
            "GENDER:F",
            "GEO:geo:37.386013,-122.082932",
            "TZ:-05:00",
            "X-PHONETIC-FIRST-NAME:Ay",
            "X-PHONETIC-LAST-NAME:Bee",
        ))[0]
        assert contact.nickname == "Ace"
        assert contact.title == "Engineer"
        assert contact.birthday == "1990-01-31"
        assert contact.anniversary == "2015-06-01"
        assert contact.gender == "F"
        assert contact.geo == "geo:37.386013,-122.082932"
        assert contact.timezone == "-05:00"
        assert (contact.phonetic_first_name, contact.phonetic_last_name) == ("Ay", "Bee")

    def test_address(self, card):
        contact = decode(card("FN:A", "ADR;TYPE=HOME:;Apt 4;123 Main St;Springfield;IL;62701;USA"))[0]
        address = contact.addresses[0]
        assert address.type == "home"
        assert address.extended == "Apt 4"
        assert address.street == "123 Main St"
        assert address.city == "Springfield"
        assert address.region == "IL"
        assert address.postal_code == "62701"
        assert address.country == "USA"

    def test_organization_and_department(self, card):
        contact = decode(card("FN:A", "ORG:Acme Inc;Engineering"))[0]
        assert contact.organization == "Acme Inc"
        assert contact.department == "Engineering"

    def test_categories(self, card):
        contact = decode(card("FN:A", "CATEGORIES:friends, work,,family"))[0]
        assert contact.tags == ["friends", "work", "family"]

    def test_urls(self, card):
        contact = decode(card("FN:A", "URL:https://example.com", "URL;TYPE=WORK:https://acme.test"))[0]
        assert [(u.value, u.type) for u in contact.urls] == [
            ("https://example.com", "website"),
            ("https://acme.test", "work"),
        ]

    def test_photo(self, card):
        contact = decode(card("FN:A", "PHOTO;ENCODING=b;TYPE=PNG:iVBORw0KGgo="))[0]
        assert contact.photo == "iVBORw0KGgo="
        assert contact.photo_type == "PNG"

    def test_photo_type_defaults_to_jpeg(self, card):
        contact = decode(card("FN:A", "PHOTO;ENCODING=b:/9j/4AAQ"))[0]
        assert contact.photo_type == "JPEG"

    def test_im_handles(self, card):
        contact = decode(card("FN:A", "X-SKYPE:jane.doe", "IMPP:xmpp:jane@jabber.example"))[0]
        assert [(h.value, h.type) for h in contact.im_handles] == [
            ("jane.doe", "skype"),
            ("xmpp:jane@jabber.example", "impp"),
        ]

    def test_social_profiles(self, card):
        contact = decode(card(
            "FN:A",
            "X-SOCIALPROFILE;TYPE=twitter:https://twitter.com/jane",
            "X-LINKEDIN:https://linkedin.com/in/jane",
        ))[0]
        assert [p.type for p in contact.social_profiles] == ["twitter", "linkedin"]

    def test_related(self, card):
        contact = decode(card("FN:A", "RELATED:Bob", "RELATED;TYPE=spouse:Carol"))[0]
        assert [(r.value, r.type) for r in contact.related] == [("Bob", "contact"), ("Carol", "spouse")]

    def test_group_prefix(self, card):
        contact = decode(card("FN:A", "item1.EMAIL;type=INTERNET:a@example.com", "item1.X-ABLabel:Other"))[0]
        assert contact.emails[0].value == "a@example.com"

    def test_tel_uri(self, card):
        contact = decode(card("FN:A", "TEL;VALUE=uri;TYPE=cell:tel:+1-555-123-4567"))[0]
        assert contact.phones[0].value == "+1-555-123-4567"
        assert contact.phones[0].normalized == "+15551234567"
        assert contact.phones[0].type == "mobile"

    def test_legacy_bare_type(self):
        text = "BEGIN:VCARD\nVERSION:2.1\nN:Doe;Jane\nTEL;WORK;VOICE:555-1111\nTEL;CELL;PREF:555-2222\nEND:VCARD\n"
        contact = decode(text)[0]
        assert [p.type for p in contact.phones] == ["work", "mobile"]


class TestDecodeText:
    """Test folding, escaping and character encodings."""

    def test_unfolds_continuation_lines(self, card):
        contact = decode(card("FN:A", "NOTE:This is a lo", " ng note", "\tthat continues"))[0]
        assert contact.notes == "This is a long notethat continues"

    def test_unescapes_text(self, card):
        contact = decode(card("FN:Doe\\, Jane", "NOTE:Line one\\nLine two\\; end\\\\"))[0]
        assert contact.name == "Doe, Jane"
        assert contact.notes == "Line one\nLine two; end\\"

    def test_quoted_printable_utf8(self, card):
        contact = decode(card("FN;CHARSET=UTF-8;ENCODING=QUOTED-PRINTABLE:Jos=C3=A9 Garc=C3=ADa"))[0]
        assert contact.name == "José García"

    def test_quoted_printable_soft_break(self, card):
        contact = decode(card("FN:A", "NOTE;ENCODING=QUOTED-PRINTABLE:first=", " line"))[0]
        assert contact.notes == "first line"

    def test_undeclared_soft_break(self, card):
        """A trailing ``=`` joins lines even without an ENCODING parameter."""
        contact = decode(card("FN:A", "NOTE:caf=C3=", "=A9 ok"))[0]
        assert contact.notes == "café ok"

    def test_base64_padding_is_not_a_soft_break(self, card):
        contact = decode(card(
            "FN:A",
            "PHOTO;ENCODING=b;TYPE=PNG:iVBORw0KGgo",
            " AAAANSUhEUg==",
            "NOTE:kept",
        ))[0]
        assert contact.photo == "iVBORw0KGgoAAAANSUhEUg=="
        assert contact.notes == "kept"

    def test_photo_uri_padding_is_not_a_soft_break(self, card):
        contact = decode(card("FN:A", "PHOTO:data:image/png;base64,iVBORw0KGgo=", "NOTE:kept"))[0]
        assert contact.photo == "data:image/png;base64,iVBORw0KGgo="
        assert contact.notes == "kept"

    def test_quoted_printable_legacy_fallback(self, card):
        contact = decode(card("FN;ENCODING=QUOTED-PRINTABLE:Ren=E9"))[0]
        assert contact.name == "René"

    def test_quoted_printable_charset_parameter(self, card):
        contact = decode(card("FN;CHARSET=ISO-8859-1;ENCODING=QUOTED-PRINTABLE:M=FCller"))[0]
        assert contact.name == "Müller"

    def test_mixed_valid_and_invalid_runs(self, card):
        contact = decode(card("FN;ENCODING=QUOTED-PRINTABLE:Caf=C3=A9 / Ren=E9"))[0]
        assert contact.name == "Café / René"

    def test_encoding_fallback_logged_at_debug(self, card, caplog):
        with caplog.at_level(logging.DEBUG, logger="contactcore.vcard.decoder"):
            decode(card("FN;ENCODING=QUOTED-PRINTABLE:Ren=E9"))
        assert any("not valid utf-8" in r.getMessage() for r in caplog.records)

    def test_base64_value_is_not_qp_decoded(self, card):
        contact = decode(card("FN:A", "PHOTO;ENCODING=BASE64;TYPE=JPEG:ab=C3=A9"))[0]
        assert contact.photo == "ab=C3=A9"

    def test_non_utf8_file(self, tmp_path):
        path = tmp_path / "legacy.vcf"
        path.write_bytes(b"BEGIN:VCARD\r\nVERSION:2.1\r\nFN:Ren\xe9 Dupont\r\nEND:VCARD\r\n")
        contact = decode(read_card_file(path))[0]
        assert contact.name == "René Dupont"

    def test_configured_fallback_charset(self, card):
        decoder = VCardDecoder(CodecConfig(fallback_charset="cp1252"))
        contact = decoder.decode(card("FN;ENCODING=QUOTED-PRINTABLE:=93Quoted=94"))[0]
        assert contact.name == "\u201cQuoted\u201d"


class TestIterContacts:
    """Test lazy decoding."""

    def test_generator(self, card):
        decoder = VCardDecoder()
        iterator = decoder.iter_contacts(card("FN:A") + card("FN:B"))
        assert next(iterator).name == "A"
        assert next(iterator).name == "B"
        with pytest.raises(StopIteration):
            next(iterator)
