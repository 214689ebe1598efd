"""
vCard Decoder

Turns raw card text into Contact records. Versions 2.1, 3.0 and 4.0 are
accepted side by side: folded lines, quoted-printable soft breaks, bare 2.1
type parameters and escaped text values are all handled here.
"""

import codecs
import logging
import quopri
import re
from typing import Any, Callable, Dict, Iterator, List, Optional

from pydantic import ValidationError as ModelValidationError

from ..error_handling import EncodingFallbackError, MalformedCardError
from ..logging_config import Timer, log_performance
from ..models import Address, CodecConfig, Contact, EmailEntry, LabeledValue, PhoneEntry
from ..normalization import normalize_phone, sanitize_phone
from ..utils import generate_id

logger = logging.getLogger(__name__)

_FOLDED_LINE = re.compile(r"\n[ \t]")
_CARD_BLOCK = re.compile(r"BEGIN:VCARD.*?END:VCARD", re.IGNORECASE | re.DOTALL)
_QP_ESCAPE = re.compile(r"=[0-9A-Fa-f]{2}")
_TEXT_ESCAPE = re.compile(r"\\([nN,;\\])")
_TEXT_ESCAPES = {"n": "\n", "N": "\n", ",": ",", ";": ";", "\\": "\\"}
_SURROGATE = re.compile("[\udc80-\udcff]")
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")

# Values carrying these encodings are never quoted-printable
_NON_QP_ENCODINGS = {"B", "BASE64", "8BIT"}
_BASE64_ENCODINGS = frozenset({"B", "BASE64"})
# Binary valued properties; a trailing "=" on these is base64 padding
_BINARY_PROPERTIES = frozenset({"PHOTO", "LOGO", "SOUND", "KEY"})

IM_PROPERTIES = frozenset({
    "IMPP", "X-SKYPE", "X-AIM", "X-YAHOO", "X-MSN", "X-ICQ", "X-JABBER", "X-QQ",
})

SOCIAL_PROPERTIES = frozenset({
    "X-SOCIALPROFILE", "X-TWITTER", "X-FACEBOOK", "X-LINKEDIN",
    "X-INSTAGRAM", "X-TIKTOK", "X-YOUTUBE",
})


def parse_parameters(segments: List[str]) -> Dict[str, str]:
    """Parse the ``;``-separated parameters of a property.

    ``KEY=VALUE`` pairs are keyed by upper-cased name. A bare token (2.1 style,
    e.g. ``TEL;CELL;PREF``) counts as a ``TYPE`` value. Repeated ``TYPE``
    values are joined with commas.
    """
    params: Dict[str, str] = {}
    for segment in segments:
        segment = segment.strip()
        if not segment:
            continue
        key, sep, value = segment.partition("=")
        if sep:
            key = key.strip().upper()
            value = value.strip().strip('"')
        else:
            key, value = "TYPE", segment

        if key == "TYPE" and params.get("TYPE"):
            params["TYPE"] = f"{params['TYPE']},{value}"
        else:
            params[key] = value
    return params


def extract_type(params: Dict[str, str]) -> str:
    """Classify the ``TYPE`` parameter as mobile, home, work, fax or other."""
    tokens = params.get("TYPE", "").lower().split(",")
    label = ",".join(t.strip() for t in tokens if t.strip() and t.strip() != "pref")

    if "cell" in label or "mobile" in label:
        return "mobile"
    if "home" in label:
        return "home"
    if "work" in label:
        return "work"
    if "fax" in label:
        return "fax"
    return "other"


class VCardDecoder:
    """Decodes card text into Contact records.

    Every decode call re-parses its input from scratch; the decoder itself
    keeps no state between calls.
    """

    def __init__(
        self,
        config: Optional[CodecConfig] = None,
        id_factory: Optional[Callable[[], str]] = None,
    ):
        """Initialize the decoder.

        Args:
            config: Codec settings (charsets)
            id_factory: Produces a fresh unique id for each decoded contact
        """
        self.config = config or CodecConfig()
        self.id_factory = id_factory or generate_id
        self.default_charset = self._valid_charset(self.config.default_charset) or "utf-8"
        self.fallback_charset = self._valid_charset(self.config.fallback_charset) or "latin-1"

        self._handlers: Dict[str, Callable[[Dict[str, Any], str, str, Dict[str, str]], None]] = {
            "FN": self._handle_full_name,
            "N": self._handle_structured_name,
            "NICKNAME": self._scalar("nickname"),
            "TEL": self._handle_phone,
            "EMAIL": self._handle_email,
            "ADR": self._handle_address,
            "ORG": self._handle_organization,
            "TITLE": self._scalar("title"),
            "NOTE": self._scalar("notes"),
            "CATEGORIES": self._handle_categories,
            "URL": self._handle_url,
            "BDAY": self._scalar("birthday"),
            "ANNIVERSARY": self._scalar("anniversary"),
            "X-ANNIVERSARY": self._scalar("anniversary"),
            "PHOTO": self._handle_photo,
            "GENDER": self._scalar("gender"),
            "GEO": self._scalar("geo"),
            "TZ": self._scalar("timezone"),
            "RELATED": self._handle_related,
            "X-PHONETIC-FIRST-NAME": self._scalar("phonetic_first_name"),
            "X-PHONETIC-LAST-NAME": self._scalar("phonetic_last_name"),
        }
        for prop in IM_PROPERTIES:
            self._handlers[prop] = self._handle_im
        for prop in SOCIAL_PROPERTIES:
            self._handlers[prop] = self._handle_social

    def decode(self, text: str, source_file: str = "") -> List[Contact]:
        """Decode every card in ``text``.

        Cards without a name or phone are dropped; input with no card
        markers yields an empty list.

        Args:
            text: Raw card file content
            source_file: Source file reference stamped on each contact

        Returns:
            Decoded contacts in document order
        """
        with Timer() as timer:
            contacts = list(self.iter_contacts(text, source_file))

        log_performance(
            __name__, "decode", timer.duration_ms,
            contact_count=len(contacts), source_file=source_file,
        )
        return contacts

    def iter_contacts(self, text: str, source_file: str = "") -> Iterator[Contact]:
        """Lazily decode cards one at a time."""
        if not text:
            return

        for block in _CARD_BLOCK.findall(self._prepare(text)):
            try:
                yield self._parse_card(block, source_file)
            except MalformedCardError as e:
                logger.debug(f"Dropping card: {e}", extra={"error_code": e.error_code})
            except ModelValidationError as e:
                logger.warning(f"Dropping card that failed validation: {e}")

    def _prepare(self, text: str) -> str:
        """Normalize line endings, join soft line breaks, unfold continuations."""
        text = text.replace("\r\n", "\n").replace("\r", "\n")
        # Soft breaks must go before unfolding: "=\n " is a QP break, not a fold
        text = self._join_soft_breaks(text)
        return _FOLDED_LINE.sub("", text)

    @classmethod
    def _join_soft_breaks(cls, text: str) -> str:
        """Join every line ending in ``=`` onto the next line.

        Values may be quoted-printable without declaring it, so the join does
        not depend on an ENCODING parameter. Base64 values end in ``=``
        padding and are left alone, including their folded continuations.
        """
        lines: List[str] = []
        joining = base64 = False

        for line in text.split("\n"):
            if joining:
                lines[-1] = lines[-1][:-1] + line
            else:
                lines.append(line)
                if not line.startswith((" ", "\t")):
                    base64 = cls._is_base64_property(line)
            joining = not base64 and lines[-1].endswith("=")

        return "\n".join(lines)

    @staticmethod
    def _is_base64_property(line: str) -> bool:
        property_part, sep, _ = line.partition(":")
        if not sep:
            return False
        segments = property_part.split(";")
        prop = segments[0].strip().upper().rsplit(".", 1)[-1]
        if prop in _BINARY_PROPERTIES:
            return True
        encoding = parse_parameters(segments[1:]).get("ENCODING", "")
        return encoding.upper() in _BASE64_ENCODINGS

    def _parse_card(self, block: str, source_file: str) -> Contact:
        fields = self._empty_fields()

        for line in block.split("\n"):
            line = line.strip()
            if not line or line.upper() in ("BEGIN:VCARD", "END:VCARD"):
                continue
            self._parse_line(line, fields)

        if not fields["name"]:
            if not fields["phones"]:
                raise MalformedCardError("card has neither a name nor a phone number")
            fields["name"] = fields["phones"][0].value

        raw = self._repair_text(block, self.default_charset)
        return Contact(id=self.id_factory(), source_file=source_file, raw=raw, **fields)

    def _parse_line(self, line: str, fields: Dict[str, Any]) -> None:
        property_part, sep, raw_value = line.partition(":")
        if not sep:
            return

        segments = property_part.split(";")
        # Drop a group prefix such as "item1." (Apple exports)
        prop = segments[0].strip().upper().rsplit(".", 1)[-1]
        handler = self._handlers.get(prop)
        if handler is None:
            return

        params = parse_parameters(segments[1:])
        value = self.decode_value(raw_value, params)
        handler(fields, prop, value, params)

    def decode_value(self, value: str, params: Optional[Dict[str, str]] = None) -> str:
        """Decode quoted-printable and escaped text, then trim.

        Args:
            value: Raw property value
            params: Parsed property parameters (CHARSET and ENCODING are honored)

        Returns:
            Plain text value
        """
        params = params or {}
        charset = self._valid_charset(params.get("CHARSET", "")) or self.default_charset
        encoding = params.get("ENCODING", "").upper()

        if encoding not in _NON_QP_ENCODINGS and _QP_ESCAPE.search(value):
            value = self._decode_quoted_printable(value, charset)
        else:
            value = self._repair_text(value, charset)

        value = _TEXT_ESCAPE.sub(lambda m: _TEXT_ESCAPES[m.group(1)], value)
        return value.strip()

    def _decode_quoted_printable(self, value: str, charset: str) -> str:
        decoded = quopri.decodestring(value.encode("utf-8", "surrogateescape"))
        try:
            return decoded.decode(charset)
        except UnicodeDecodeError:
            return self._decode_quoted_printable_manually(value, charset)

    def _decode_quoted_printable_manually(self, value: str, charset: str) -> str:
        """Decode each run of ``=XX`` escapes on its own.

        A run that is not valid in ``charset`` falls back to the legacy
        single-byte charset without spoiling the runs around it.
        """
        parts: List[str] = []
        pending = bytearray()
        i = 0

        while i < len(value):
            if (
                value[i] == "="
                and i + 2 < len(value)
                and value[i + 1] in _HEX_DIGITS
                and value[i + 2] in _HEX_DIGITS
            ):
                pending.append(int(value[i + 1:i + 3], 16))
                i += 3
                continue

            if pending:
                parts.append(self._bytes_to_text(bytes(pending), charset))
                pending.clear()
            parts.append(value[i])
            i += 1

        if pending:
            parts.append(self._bytes_to_text(bytes(pending), charset))

        return self._repair_text("".join(parts), charset)

    def _repair_text(self, text: str, charset: str) -> str:
        """Re-decode bytes that were carried through as surrogate escapes."""
        if not _SURROGATE.search(text):
            return text
        return self._bytes_to_text(text.encode("utf-8", "surrogateescape"), charset)

    def _bytes_to_text(self, data: bytes, charset: str) -> str:
        try:
            return self._strict_decode(data, charset)
        except EncodingFallbackError as e:
            logger.debug(f"{e}; using {self.fallback_charset}", extra=e.context)
            return data.decode(self.fallback_charset, errors="replace")

    @staticmethod
    def _strict_decode(data: bytes, charset: str) -> str:
        try:
            return data.decode(charset)
        except UnicodeDecodeError as e:
            raise EncodingFallbackError(
                f"Value is not valid {charset}",
                charset=charset,
                context={"byte_count": len(data), "position": e.start},
            ) from e

    @staticmethod
    def _valid_charset(name: str) -> Optional[str]:
        if not name:
            return None
        try:
            return codecs.lookup(name).name
        except LookupError:
            return None

    @staticmethod
    def _empty_fields() -> Dict[str, Any]:
        return {
            "name": "",
            "first_name": "",
            "last_name": "",
            "middle_name": "",
            "prefix": "",
            "suffix": "",
            "phones": [],
            "emails": [],
            "addresses": [],
            "tags": [],
            "urls": [],
            "social_profiles": [],
            "im_handles": [],
            "related": [],
        }

    # Property handlers

    @staticmethod
    def _scalar(field_name: str):
        def handler(fields, prop, value, params):
            fields[field_name] = value
        return handler

    def _handle_full_name(self, fields, prop, value, params):
        fields["name"] = value

    def _handle_structured_name(self, fields, prop, value, params):
        parts = value.split(";") + [""] * 5
        fields["last_name"] = parts[0]
        fields["first_name"] = parts[1]
        fields["middle_name"] = parts[2]
        fields["prefix"] = parts[3]
        fields["suffix"] = parts[4]
        if not fields["name"] and (fields["first_name"] or fields["last_name"]):
            fields["name"] = f"{fields['first_name']} {fields['last_name']}".strip()

    def _handle_phone(self, fields, prop, value, params):
        if value.lower().startswith("tel:"):
            value = value[4:]
        fields["phones"].append(PhoneEntry(
            value=sanitize_phone(value).strip(),
            type=extract_type(params),
            normalized=normalize_phone(value),
        ))

    def _handle_email(self, fields, prop, value, params):
        fields["emails"].append(EmailEntry(value=value, type=extract_type(params)))

    def _handle_address(self, fields, prop, value, params):
        parts = value.split(";") + [""] * 7
        fields["addresses"].append(Address(
            type=extract_type(params),
            po_box=parts[0],
            extended=parts[1],
            street=parts[2],
            city=parts[3],
            region=parts[4],
            postal_code=parts[5],
            country=parts[6],
        ))

    def _handle_organization(self, fields, prop, value, params):
        parts = value.split(";")
        fields["organization"] = parts[0]
        fields["department"] = parts[1] if len(parts) > 1 else ""

    def _handle_categories(self, fields, prop, value, params):
        fields["tags"] = [tag.strip() for tag in value.split(",") if tag.strip()]

    def _handle_url(self, fields, prop, value, params):
        url_type = extract_type(params) if params.get("TYPE") else "website"
        fields["urls"].append(LabeledValue(value=value, type=url_type))

    def _handle_photo(self, fields, prop, value, params):
        fields["photo"] = value
        fields["photo_type"] = params.get("TYPE") or params.get("MEDIATYPE") or "JPEG"

    def _handle_im(self, fields, prop, value, params):
        im_type = prop[2:] if prop.startswith("X-") else prop
        fields["im_handles"].append(LabeledValue(value=value, type=im_type.lower()))

    def _handle_social(self, fields, prop, value, params):
        social_type = params.get("TYPE") or prop[2:]
        fields["social_profiles"].append(LabeledValue(value=value, type=social_type.lower()))

    def _handle_related(self, fields, prop, value, params):
        related_type = params.get("TYPE") or "contact"
        fields["related"].append(LabeledValue(value=value, type=related_type.lower()))


def decode(
    text: str,
    source_file: str = "",
    id_factory: Optional[Callable[[], str]] = None,
) -> List[Contact]:
    """Decode card text with default codec settings."""
    return VCardDecoder(id_factory=id_factory).decode(text, source_file=source_file)
