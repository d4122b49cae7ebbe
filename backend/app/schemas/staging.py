"""Typed schema for self-reported candidate data awaiting approval

Signup stores this document on the profile untouched by the normalized
tables. Each category has its own entry model so the approval migration can
dispatch on the category instead of probing loosely-named fields. Aliases
accept the camelCase names used by the signup form and the historical
``title``/``position`` drift on work experience.
"""

import re
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, List, Literal, Optional

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    ValidationError,
    field_validator,
    model_validator,
)

from backend.app.models.profile_entities import TagCategory


STAGING_SCHEMA_VERSION = 1

# Width of the committee and board experience type columns
LABEL_MAX_LENGTH = 100

_YEAR = re.compile(r"^\d{4}$")
_YEAR_MONTH = re.compile(r"^(\d{4})-(\d{1,2})$")


class StagingCategory(str, Enum):
    """Staging categories, in the order the approval migration processes them"""
    TAGS = "tags"
    WORK_EXPERIENCES = "work_experiences"
    EDUCATION = "education"
    DEAL_EXPERIENCES = "deal_experiences"
    BOARD_COMMITTEES = "board_committees"
    BOARD_EXPERIENCE_TYPES = "board_experience_types"


# Keys under which each category may appear in a stored document
CATEGORY_KEYS = {
    StagingCategory.TAGS: ("tags",),
    StagingCategory.WORK_EXPERIENCES: ("work_experiences", "workExperiences"),
    StagingCategory.EDUCATION: ("education",),
    StagingCategory.DEAL_EXPERIENCES: ("deal_experiences", "dealExperiences"),
    StagingCategory.BOARD_COMMITTEES: ("board_committees", "boardCommittees"),
    StagingCategory.BOARD_EXPERIENCE_TYPES: ("board_experience_types", "boardExperienceTypes"),
}


def parse_partial_date(value: Any) -> Optional[date]:
    """
    Parse the partial dates produced by the signup form

    ``YYYY`` and ``YYYY-MM`` resolve to the first day of the period; full ISO
    dates and datetimes are accepted as-is. Empty values become ``None``.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, int):
        return date(value, 1, 1)
    if not isinstance(value, str):
        raise ValueError(f"Unsupported date value: {value!r}")

    text = value.strip()
    if _YEAR.match(text):
        return date(int(text), 1, 1)
    match = _YEAR_MONTH.match(text)
    if match:
        return date(int(match.group(1)), int(match.group(2)), 1)
    return date.fromisoformat(text[:10])


def is_usable_label(value: Any) -> bool:
    return isinstance(value, str) and 0 < len(value.strip()) <= LABEL_MAX_LENGTH


def normalize_labels(values: List[Any]) -> List[str]:
    """Trim, lower-case and de-duplicate free-text labels, keeping order"""
    seen = []
    for value in values:
        if not is_usable_label(value):
            continue
        label = value.strip().lower()
        if label not in seen:
            seen.append(label)
    return seen


Label = Annotated[str, Field(max_length=LABEL_MAX_LENGTH)]


class _StagedEntry(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore", str_strip_whitespace=True)


class StagedTag(_StagedEntry):
    name: str = Field(..., min_length=1, max_length=255)
    category: TagCategory = TagCategory.OTHER

    @field_validator("category", mode="before")
    @classmethod
    def unknown_category_is_other(cls, v):
        if v is None:
            return TagCategory.OTHER
        try:
            return TagCategory(str(v).strip().lower())
        except ValueError:
            return TagCategory.OTHER


class StagedWorkExperience(_StagedEntry):
    company_name: str = Field(
        ..., min_length=1, max_length=255,
        validation_alias=AliasChoices("company_name", "companyName", "company"),
    )
    title: str = Field(
        ..., min_length=1, max_length=255,
        validation_alias=AliasChoices("title", "position"),
    )
    location: Optional[str] = Field(None, max_length=255)
    start_date: Optional[date] = Field(None, validation_alias=AliasChoices("start_date", "startDate"))
    end_date: Optional[date] = Field(None, validation_alias=AliasChoices("end_date", "endDate"))
    is_current: bool = Field(False, validation_alias=AliasChoices("is_current", "isCurrent"))
    description: Optional[str] = None
    is_board_position: bool = Field(
        False, validation_alias=AliasChoices("is_board_position", "isBoardPosition")
    )
    company_type: Optional[str] = Field(
        None, max_length=100, validation_alias=AliasChoices("company_type", "companyType"),
    )

    @field_validator("start_date", "end_date", mode="before")
    @classmethod
    def partial_dates(cls, v):
        return parse_partial_date(v)

    @field_validator("is_current", "is_board_position", mode="before")
    @classmethod
    def null_is_false(cls, v):
        return False if v is None else v

    @model_validator(mode="after")
    def current_role_has_no_end(self):
        if self.is_current:
            self.end_date = None
        return self


class StagedEducation(_StagedEntry):
    institution: str = Field(..., min_length=1, max_length=255)
    degree: str = Field(..., min_length=1, max_length=255)
    field_of_study: Optional[str] = Field(
        None, max_length=255, validation_alias=AliasChoices("field_of_study", "fieldOfStudy"),
    )
    graduation_date: Optional[date] = Field(
        None, validation_alias=AliasChoices("graduation_date", "graduationDate")
    )

    @field_validator("graduation_date", mode="before")
    @classmethod
    def partial_date(cls, v):
        return parse_partial_date(v)


class StagedDealExperience(_StagedEntry):
    deal_type: str = Field(..., min_length=1, max_length=100, validation_alias=AliasChoices("deal_type", "dealType"))
    company_name: str = Field(
        ..., min_length=1, max_length=255,
        validation_alias=AliasChoices("company_name", "companyName"),
    )
    deal_value: Optional[Decimal] = Field(
        None, max_digits=18, decimal_places=2,
        validation_alias=AliasChoices("deal_value", "dealValue"),
    )
    deal_currency: Optional[str] = Field(
        None, max_length=3, validation_alias=AliasChoices("deal_currency", "dealCurrency")
    )
    role: Optional[str] = Field(None, max_length=255)
    year: Optional[int] = Field(None, ge=1900, le=2100)
    description: Optional[str] = None
    sector: Optional[str] = Field(None, max_length=255)

    @field_validator("deal_value", mode="before")
    @classmethod
    def parse_amount(cls, v):
        if v is None or v == "":
            return None
        if isinstance(v, str):
            try:
                return Decimal(v.replace(",", "").strip())
            except InvalidOperation:
                raise ValueError(f"Invalid deal value: {v!r}")
        return v

    @field_validator("year", "deal_currency", mode="before")
    @classmethod
    def blank_is_none(cls, v):
        return None if v == "" else v


class StagingMetadata(BaseModel):
    """
    Staging document captured at signup

    Unknown top-level keys (phone, industry, board details...) are kept so the
    document round-trips without loss.
    """
    schema_version: Literal[1] = STAGING_SCHEMA_VERSION
    tags: Optional[List[StagedTag]] = None
    work_experiences: Optional[List[StagedWorkExperience]] = Field(
        None, validation_alias=AliasChoices("work_experiences", "workExperiences")
    )
    education: Optional[List[StagedEducation]] = None
    deal_experiences: Optional[List[StagedDealExperience]] = Field(
        None, validation_alias=AliasChoices("deal_experiences", "dealExperiences")
    )
    board_committees: Optional[List[Label]] = Field(
        None, validation_alias=AliasChoices("board_committees", "boardCommittees")
    )
    board_experience_types: Optional[List[Label]] = Field(
        None, validation_alias=AliasChoices("board_experience_types", "boardExperienceTypes")
    )

    model_config = ConfigDict(populate_by_name=True, extra="allow")

    def to_document(self) -> dict[str, Any]:
        """JSON-safe document for the profile's staging column"""
        return self.model_dump(mode="json", exclude_none=True)


_ENTRY_MODELS = {
    StagingCategory.TAGS: StagedTag,
    StagingCategory.WORK_EXPERIENCES: StagedWorkExperience,
    StagingCategory.EDUCATION: StagedEducation,
    StagingCategory.DEAL_EXPERIENCES: StagedDealExperience,
}


@dataclass
class ParsedCategory:
    """Outcome of reading one category out of a staging document"""
    category: StagingCategory
    present: bool
    malformed: bool = False
    entries: list = field(default_factory=list)
    dropped: int = 0

    @property
    def usable(self) -> bool:
        return self.present and not self.malformed


def parse_category(document: Optional[dict], category: StagingCategory) -> ParsedCategory:
    """
    Extract and validate one category from a stored staging document

    Entries that fail validation are dropped and counted; a value that is not
    a list marks the whole category as malformed.
    """
    if not isinstance(document, dict):
        return ParsedCategory(category=category, present=False)

    raw = None
    for key in CATEGORY_KEYS[category]:
        if document.get(key) is not None:
            raw = document[key]
            break

    if raw is None:
        return ParsedCategory(category=category, present=False)
    if not isinstance(raw, list):
        return ParsedCategory(category=category, present=True, malformed=True)

    if category in (StagingCategory.BOARD_COMMITTEES, StagingCategory.BOARD_EXPERIENCE_TYPES):
        # Duplicates collapse silently; only unusable values count as dropped
        invalid = [value for value in raw if not is_usable_label(value)]
        return ParsedCategory(
            category=category,
            present=True,
            entries=normalize_labels(raw),
            dropped=len(invalid),
        )

    model = _ENTRY_MODELS[category]
    parsed = ParsedCategory(category=category, present=True)
    for item in raw:
        try:
            parsed.entries.append(model.model_validate(item))
        except ValidationError:
            parsed.dropped += 1
    return parsed
