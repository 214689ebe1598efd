"""
vCard Encoder

Writes Contact records back out as canonical card text. This is the inverse
of the decoder for the fields it understands, not a byte-for-byte round trip.
"""

import logging
from typing import Iterable, Optional, Union

from ..models import CodecConfig, Contact

logger = logging.getLogger(__name__)

LINE_SEPARATOR = "\r\n"


def escape_value(value: str) -> str:
    """Escape a text value for a card line (backslash first)."""
    return (
        value.replace("\\", "\\\\")
        .replace(",", "\\,")
        .replace(";", "\\;")
        .replace("\r\n", "\\n")
        .replace("\n", "\\n")
    )


class VCardEncoder:
    """Encodes Contact records as card blocks."""

    def __init__(self, config: Optional[CodecConfig] = None):
        self.config = config or CodecConfig()

    def encode(self, contacts: Union[Contact, Iterable[Contact]]) -> str:
        """Encode one contact, or a batch as the concatenation of their blocks."""
        if isinstance(contacts, Contact):
            return self.encode_contact(contacts)
        return "".join(self.encode_contact(contact) for contact in contacts)

    def encode_contact(self, contact: Contact) -> str:
        """Encode a single contact as one ``BEGIN:VCARD``...``END:VCARD`` block."""
        lines = ["BEGIN:VCARD", f"VERSION:{self.config.vcard_version}"]

        lines.append(f"FN:{escape_value(contact.name)}")
        lines.append("N:" + ";".join(escape_value(part) for part in (
            contact.last_name,
            contact.first_name,
            contact.middle_name,
            contact.prefix,
            contact.suffix,
        )))

        if contact.nickname:
            lines.append(f"NICKNAME:{escape_value(contact.nickname)}")

        for phone in contact.phones:
            lines.append(f"TEL;TYPE={phone.type.upper()}:{phone.value}")

        for email in contact.emails:
            lines.append(f"EMAIL;TYPE={email.type.upper()}:{email.value}")

        for address in contact.addresses:
            components = ";".join(escape_value(part) for part in (
                address.po_box,
                address.extended,
                address.street,
                address.city,
                address.region,
                address.postal_code,
                address.country,
            ))
            lines.append(f"ADR;TYPE={address.type.upper()}:{components}")

        if contact.organization:
            org = escape_value(contact.organization)
            if contact.department:
                org += ";" + escape_value(contact.department)
            lines.append(f"ORG:{org}")

        if contact.title:
            lines.append(f"TITLE:{escape_value(contact.title)}")

        for url in contact.urls:
            lines.append(f"URL;TYPE={url.type.upper()}:{url.value}")

        if contact.birthday:
            lines.append(f"BDAY:{contact.birthday}")

        if contact.anniversary:
            lines.append(f"ANNIVERSARY:{contact.anniversary}")

        if contact.photo:
            if len(contact.photo) < self.config.max_photo_size:
                photo_type = (contact.photo_type or "JPEG").upper()
                lines.append(f"PHOTO;ENCODING=b;TYPE={photo_type}:{contact.photo}")
            else:
                logger.debug(
                    f"Skipping photo of {len(contact.photo)} chars for contact {contact.id}"
                )

        if contact.gender:
            lines.append(f"GENDER:{contact.gender}")

        if contact.geo:
            lines.append(f"GEO:{contact.geo}")

        if contact.timezone:
            lines.append(f"TZ:{contact.timezone}")

        for profile in contact.social_profiles:
            lines.append(f"X-SOCIALPROFILE;TYPE={profile.type.upper()}:{profile.value}")

        for handle in contact.im_handles:
            lines.append(f"IMPP;TYPE={handle.type.upper()}:{handle.value}")

        for relation in contact.related:
            lines.append(f"RELATED;TYPE={relation.type.upper()}:{escape_value(relation.value)}")

        if contact.notes:
            lines.append(f"NOTE:{escape_value(contact.notes)}")

        if contact.tags:
            lines.append("CATEGORIES:" + ",".join(escape_value(tag) for tag in contact.tags))

        lines.append("END:VCARD")
        return LINE_SEPARATOR.join(lines) + LINE_SEPARATOR


def encode(contacts: Union[Contact, Iterable[Contact]], config: Optional[CodecConfig] = None) -> str:
    """Encode one contact or a batch with default codec settings."""
    return VCardEncoder(config).encode(contacts)
