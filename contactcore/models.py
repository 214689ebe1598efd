"""Data models for contactcore."""

from typing import ClassVar, Dict, List, Any, Optional, Tuple
from datetime import datetime, timezone
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .normalization import normalize_email, normalize_name, normalize_phone
from .utils import generate_id


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class PhoneType(str, Enum):
    """Phone number categories."""

    MOBILE = "mobile"
    HOME = "home"
    WORK = "work"
    FAX = "fax"
    OTHER = "other"


class EmailType(str, Enum):
    """Email address categories."""

    HOME = "home"
    WORK = "work"
    OTHER = "other"


class MatchType(str, Enum):
    """Why a duplicate group was formed."""

    EXACT = "exact"
    SAME_PHONE = "samePhone"
    SAME_NAME = "sameName"
    SIMILAR_PHONE = "similarPhone"
    SAME_EMAIL = "sameEmail"
    # Produced by the pairwise fallback finder
    PHONE = "phone"
    EMAIL = "email"
    FUZZY = "fuzzy"


class CardModel(BaseModel):
    """Shared settings: snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        use_enum_values=True,
        validate_default=True,
    )


class PhoneEntry(CardModel):
    """One phone number on a contact."""

    value: str
    type: PhoneType = PhoneType.OTHER
    normalized: str = ""

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        """Unknown labels become ``other``."""
        label = (v.value if isinstance(v, Enum) else str(v or "")).lower()
        return label if label in PhoneType._value2member_map_ else PhoneType.OTHER

    @model_validator(mode="after")
    def fill_normalized(self):
        if not self.normalized:
            self.normalized = normalize_phone(self.value)
        return self


class EmailEntry(CardModel):
    """One email address on a contact; stored lowercase."""

    value: str
    type: EmailType = EmailType.OTHER

    @field_validator("value")
    @classmethod
    def lowercase_value(cls, v: str) -> str:
        return normalize_email(v)

    @field_validator("type", mode="before")
    @classmethod
    def coerce_type(cls, v):
        """Unknown labels become ``other``."""
        label = (v.value if isinstance(v, Enum) else str(v or "")).lower()
        return label if label in EmailType._value2member_map_ else EmailType.OTHER


class Address(CardModel):
    """Postal address, in the card format's component order."""

    type: str = "other"
    po_box: str = ""
    extended: str = ""
    street: str = ""
    city: str = ""
    region: str = ""
    postal_code: str = ""
    country: str = ""


class LabeledValue(CardModel):
    """A value with a free-form label (urls, social profiles, IM handles, related)."""

    value: str
    type: str = "other"


class Contact(CardModel):
    """One physical person or entry.

    A contact must carry a non-empty name or at least one phone number.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=generate_id)
    name: str = ""
    first_name: str = ""
    last_name: str = ""
    middle_name: str = ""
    prefix: str = ""
    suffix: str = ""
    nickname: str = ""
    phonetic_first_name: str = ""
    phonetic_last_name: str = ""
    phones: List[PhoneEntry] = Field(default_factory=list)
    emails: List[EmailEntry] = Field(default_factory=list)
    addresses: List[Address] = Field(default_factory=list)
    organization: str = ""
    department: str = ""
    title: str = ""
    notes: str = ""
    tags: List[str] = Field(default_factory=list)
    urls: List[LabeledValue] = Field(default_factory=list)
    birthday: str = ""
    anniversary: str = ""
    photo: str = ""
    photo_type: str = ""
    social_profiles: List[LabeledValue] = Field(default_factory=list)
    im_handles: List[LabeledValue] = Field(default_factory=list)
    geo: str = ""
    timezone: str = ""
    gender: str = ""
    related: List[LabeledValue] = Field(default_factory=list)
    source_file: str = ""
    raw: str = ""

    @field_validator("tags")
    @classmethod
    def unique_tags(cls, v: List[str]) -> List[str]:
        return list(dict.fromkeys(v))

    @model_validator(mode="after")
    def require_identity(self):
        if not self.name.strip() and not self.phones:
            raise ValueError("contact needs a name or at least one phone number")
        return self

    @property
    def normalized_name(self) -> str:
        return normalize_name(self.name)

    @property
    def normalized_phones(self) -> List[str]:
        return [p.normalized or normalize_phone(p.value) for p in self.phones]

    @property
    def normalized_emails(self) -> List[str]:
        return [normalize_email(e.value) for e in self.emails]

    def snapshot(self) -> "Contact":
        """Deep copy, so derived results never alias caller-owned records."""
        return self.model_copy(deep=True)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize with camelCase keys."""
        return self.model_dump(by_alias=True)


class DuplicateGroup(CardModel):
    """Result of one categorization rule: two or more contacts judged the same."""

    contacts: List[Contact] = Field(..., min_length=2)
    match_type: MatchType
    matched_on: str
    similarity: int = Field(ge=0, le=100)
    conflict_fields: Optional[List[str]] = None

    @property
    def contact_ids(self) -> List[str]:
        return [c.id for c in self.contacts]

    @property
    def group_key(self) -> str:
        """Order-independent identity of the member set."""
        return "-".join(sorted(self.contact_ids))


class CategorizedDuplicates(CardModel):
    """All duplicate groups found in one categorization run."""

    exact_match: List[DuplicateGroup] = Field(default_factory=list)
    same_number: List[DuplicateGroup] = Field(default_factory=list)
    same_name: List[DuplicateGroup] = Field(default_factory=list)
    similar_phone: List[DuplicateGroup] = Field(default_factory=list)
    same_email: List[DuplicateGroup] = Field(default_factory=list)

    CATEGORY_NAMES: ClassVar[Tuple[str, ...]] = (
        "exactMatch", "sameNumber", "sameName", "similarPhone", "sameEmail"
    )

    def category(self, name: str) -> List[DuplicateGroup]:
        """Look up a category by its camelCase or snake_case name."""
        for field_name, info in type(self).model_fields.items():
            if name in (field_name, info.alias):
                return getattr(self, field_name)
        raise KeyError(name)

    @property
    def total_groups(self) -> int:
        return sum(len(self.category(name)) for name in self.CATEGORY_NAMES)

    def stats(self) -> Dict[str, int]:
        """Group count per category."""
        return {name: len(self.category(name)) for name in self.CATEGORY_NAMES}


class SimilarityBreakdown(CardModel):
    """Per-component similarity between two contacts (each 0-100)."""

    phone: int = 0
    email: int = 0
    name: int = 0
    overall: int = 0


class SourceFile(CardModel):
    """An imported card file."""

    id: str = Field(default_factory=generate_id)
    name: str
    added_at: datetime = Field(default_factory=_utcnow)
    contact_count: int = 0


class HistoryEntry(CardModel):
    """One recorded collaborator action."""

    action: str
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=_utcnow)


class CodecConfig(BaseModel):
    """Card codec configuration."""

    vcard_version: str = "3.0"
    max_photo_size: int = Field(default=100000, ge=0)
    default_charset: str = "utf-8"
    fallback_charset: str = "latin-1"


class ScoreWeights(BaseModel):
    """Weights for the overall similarity score."""

    phone: int = Field(default=50, ge=0)
    email: int = Field(default=30, ge=0)
    name: int = Field(default=20, ge=0)


class DedupeConfig(BaseModel):
    """Duplicate detection configuration."""

    fuzzy_threshold: int = Field(default=80, ge=0, le=100)
    threshold_min: int = Field(default=50, ge=0, le=100)
    threshold_max: int = Field(default=100, ge=0, le=100)
    weights: ScoreWeights = Field(default_factory=ScoreWeights)


class ImportConfig(BaseModel):
    """Limits applied to uploaded card files."""

    max_upload_size: int = Field(default=10 * 1024 * 1024, gt=0)
    allowed_extensions: List[str] = Field(default_factory=lambda: ["vcf"])


class ManagerConfig(BaseModel):
    """Contact manager configuration."""

    history_limit: int = Field(default=100, ge=1)


class LoggingConfig(BaseModel):
    """Logging configuration."""

    format: str = "text"
    level: str = "INFO"
    log_file: Optional[str] = None


class Config(BaseModel):
    """Complete configuration."""

    codec: CodecConfig = Field(default_factory=CodecConfig)
    dedupe: DedupeConfig = Field(default_factory=DedupeConfig)
    imports: ImportConfig = Field(default_factory=ImportConfig)
    manager: ManagerConfig = Field(default_factory=ManagerConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
