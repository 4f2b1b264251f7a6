"""
Catalog Data Models

Raw content items as uploaded to the global content list, the closed set of
"organization" shapes an item can declare, and the compiled catalog snapshot.

Persisted documents use camelCase keys; Python attributes are snake_case and
mapped through explicit aliases. Always dump with `by_alias=True`.
"""

from __future__ import annotations

from typing import Any, Dict, List, NamedTuple, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# ---------------------------------------------------------------------
# Organization variants
# ---------------------------------------------------------------------

class Placement(NamedTuple):
    """Where an item sits in the catalog tree."""
    category: str
    subcategory: str
    topic: Optional[str]


UNCATEGORIZED = Placement("General", "Uncategorized", None)


def _as_text(v: Any) -> Optional[str]:
    """Scalars become strings; containers and None become None."""
    if v is None or isinstance(v, str):
        return v
    if isinstance(v, (bool, int, float)):
        return str(v)
    return None


class _OrganizationVariant(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True, frozen=True)

    @field_validator("*", mode="before")
    @classmethod
    def _coerce_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)


class SubjectPath(_OrganizationVariant):
    """Academic subject → core topic → subtopic."""
    subject: Optional[str] = None
    core_topic: Optional[str] = Field(default=None, alias="coreTopic")
    subtopic: Optional[str] = None

    def placement(self) -> Placement:
        return Placement(
            self.subject or "General",
            self.core_topic or "Uncategorized",
            self.subtopic or None,
        )


class CoursePath(_OrganizationVariant):
    """Course provider → course → topic."""
    provider: Optional[str] = None
    course_name: Optional[str] = Field(default=None, alias="courseName")
    topic: Optional[str] = None

    def placement(self) -> Placement:
        return Placement(
            self.provider or "Course Platform",
            self.course_name or "General Course",
            self.topic or None,
        )


class ChannelPath(_OrganizationVariant):
    """Video channel → playlist → topic."""
    channel_name: Optional[str] = Field(default=None, alias="channelName")
    playlist_name: Optional[str] = Field(default=None, alias="playlistName")
    topic: Optional[str] = None

    def placement(self) -> Placement:
        return Placement(
            self.channel_name or "YouTube",
            self.playlist_name or "General",
            self.topic or None,
        )


class UniversityPath(_OrganizationVariant):
    """University → subject → topic."""
    university: Optional[str] = None
    subject: Optional[str] = None
    topic: Optional[str] = None

    def placement(self) -> Placement:
        return Placement(
            self.university or "University",
            self.subject or "General",
            self.topic or None,
        )


OrganizationPath = Union[SubjectPath, CoursePath, ChannelPath, UniversityPath]

# Checked in this order; the first shape present wins.
ORGANIZATION_VARIANTS: Dict[str, type] = {
    "subjectPath": SubjectPath,
    "coursePath": CoursePath,
    "channelPath": ChannelPath,
    "universityPath": UniversityPath,
}


def parse_organization(raw: Any) -> Optional[OrganizationPath]:
    """
    Pick the organization variant declared in a raw `organization` mapping.

    Returns None when no known shape is present.
    """
    if not isinstance(raw, dict):
        return None

    for key, variant in ORGANIZATION_VARIANTS.items():
        value = raw.get(key)
        if value and isinstance(value, dict):
            return variant.model_validate(value)

    return None


# ---------------------------------------------------------------------
# Raw content item
# ---------------------------------------------------------------------

class ContentItem(BaseModel):
    """
    One entry of the global content list, as uploaded.

    Unknown fields are kept so that a parsed item never loses data.
    """
    id: str = Field(..., min_length=1)
    title: str = ""
    description: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    level: Optional[str] = None
    organization: Optional[Dict[str, Any]] = None
    uploaded_by: Optional[Any] = Field(default=None, alias="uploadedBy")
    video_url: Optional[str] = Field(default=None, alias="videoUrl")
    views: int = 0
    likes: int = 0

    model_config = ConfigDict(extra="allow", populate_by_name=True)

    @field_validator("id", mode="before")
    @classmethod
    def _coerce_id(cls, v: Any) -> Any:
        if isinstance(v, (int, float)) and not isinstance(v, bool):
            return str(v)
        return v

    @field_validator("title", mode="before")
    @classmethod
    def _title_or_empty(cls, v: Any) -> str:
        return _as_text(v) or ""

    @field_validator("description", "level", mode="before")
    @classmethod
    def _optional_text(cls, v: Any) -> Optional[str]:
        return _as_text(v)

    @field_validator("tags", mode="before")
    @classmethod
    def _tags_or_empty(cls, v: Any) -> List[str]:
        if not v:
            return []
        if not isinstance(v, (list, tuple)):
            v = [v]
        return [text for text in (_as_text(tag) for tag in v) if text]

    @field_validator("organization", mode="before")
    @classmethod
    def _organization_mapping(cls, v: Any) -> Optional[Dict[str, Any]]:
        return v if isinstance(v, dict) else None

    @field_validator("video_url", mode="before")
    @classmethod
    def _media_reference(cls, v: Any) -> Optional[str]:
        # anything truthy marks the item as having media
        if not v:
            return None
        return v if isinstance(v, str) else str(v)

    @field_validator("views", "likes", mode="before")
    @classmethod
    def _count_or_zero(cls, v: Any) -> int:
        if isinstance(v, bool) or v is None:
            return 0
        try:
            return max(int(float(v)), 0)
        except (TypeError, ValueError, OverflowError):
            return 0

    def placement(self) -> Placement:
        org = parse_organization(self.organization)
        if org is None:
            return UNCATEGORIZED
        return org.placement()


# ---------------------------------------------------------------------
# Compiled catalog
# ---------------------------------------------------------------------

_snapshot_config = ConfigDict(populate_by_name=True, extra="ignore")


class CatalogEntry(BaseModel):
    """A content item normalized for matching and prompt rendering."""
    id: str
    title: str
    description: Optional[str] = None
    category: str
    subcategory: str
    topic: Optional[str] = None
    level: str = "Intermediate"
    tags: List[str] = Field(default_factory=list)
    uploaded_by: Optional[Any] = Field(default=None, alias="uploadedBy")
    has_media: bool = Field(default=False, alias="hasVideo")
    views: int = 0
    likes: int = 0

    model_config = _snapshot_config


class CatalogSubcategory(BaseModel):
    name: str
    content_count: int = Field(default=0, alias="contentCount")
    contents: List[CatalogEntry] = Field(default_factory=list)

    model_config = _snapshot_config


class CatalogCategory(BaseModel):
    name: str
    subcategories: List[CatalogSubcategory] = Field(default_factory=list)

    model_config = _snapshot_config


class CatalogSnapshot(BaseModel):
    """
    Categorized read-view over the content list.

    `all_contents` is the canonical flat list used for matching;
    `categories` only exists for presentation.
    """
    version: str = "1.0"
    last_updated: Optional[str] = Field(default=None, alias="lastUpdated")
    total_available: int = Field(default=0, alias="totalAvailable")
    categories: List[CatalogCategory] = Field(default_factory=list)
    all_contents: List[CatalogEntry] = Field(default_factory=list, alias="allContents")

    model_config = _snapshot_config

    def to_document(self) -> Dict[str, Any]:
        """Return the persisted (camelCase) JSON shape."""
        return self.model_dump(mode="json", by_alias=True)
