"""
Curriculum Matching & Validation

Binds every course of a generated curriculum to a catalog entry when one
exists, or marks it as an "alternative" with external search links when
none does.

Resolution order per course
---------------------------
1. `matching_criteria.matched_content_id` (or `suggested_id`) names an entry
   in the catalog.
2. Case-insensitive exact title equality.
3. Case-insensitive containment in either direction, only when the
   candidate title is longer than `MIN_CONTAINMENT_TITLE_LENGTH`. The first
   entry in flat catalog order wins. This is a tie-break heuristic, not a
   best-match guarantee.
4. Otherwise unresolved, with one fallback link per configured source.

A miss is a valid outcome. Only a structurally invalid curriculum raises
(`ValidationInputError`), and it does so before any course is touched.
Neither the catalog nor the input curriculum is mutated.
"""

from __future__ import annotations

import copy
import logging
from typing import Any, Dict, List, Optional, Sequence
from urllib.parse import quote

from ..catalog.models import CatalogEntry, CatalogSnapshot
from ..config import FallbackSource, DEFAULT_FALLBACK_SOURCES
from ..core.errors import ValidationInputError

logger = logging.getLogger("openlearn.matching")

MIN_CONTAINMENT_TITLE_LENGTH = 10

STATUS_AVAILABLE = "available"
STATUS_ALTERNATIVE = "alternative"

_OUTCOME_KEYS = (
    "validation_status",
    "matched_content_title",
    "content_url",
    "note",
    "external_links",
)


# ---------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------

def encode_query(text: str) -> str:
    """Percent-encode a search query like JavaScript's encodeURIComponent."""
    return quote(text, safe="!*'()")


def build_fallback_links(title: str, sources: Sequence[FallbackSource]) -> List[Dict[str, str]]:
    """One external search link per source, in source order."""
    return [
        {
            "platform": source.platform,
            "url": source.url_template.format(query=encode_query(f"{title}{source.query_suffix}")),
            "icon": source.icon,
        }
        for source in sources
    ]


def _check_structure(candidate: Any, tiers: Optional[Sequence[str]]) -> List[str]:
    """
    Validate the candidate shape and return the tier names to process.
    """
    if not isinstance(candidate, dict):
        raise ValidationInputError("Candidate curriculum must be an object")

    curriculum = candidate.get("curriculum")
    if not isinstance(curriculum, dict):
        raise ValidationInputError("Candidate is missing a 'curriculum' object")

    if tiers is None:
        tier_names = [
            name for name, tier in curriculum.items()
            if isinstance(tier, dict) and "courses" in tier
        ]
    else:
        tier_names = [name for name in tiers if name in curriculum]

    for name in tier_names:
        tier = curriculum[name]
        if not isinstance(tier, dict) or not isinstance(tier.get("courses"), list):
            raise ValidationInputError(f"Tier '{name}' has no 'courses' list")

        for position, course in enumerate(tier["courses"]):
            if not isinstance(course, dict):
                raise ValidationInputError(f"Course #{position} in tier '{name}' is not an object")
            if not isinstance(course.get("title"), str):
                raise ValidationInputError(f"Course #{position} in tier '{name}' has no title")
            criteria = course.get("matching_criteria")
            if criteria is not None and not isinstance(criteria, dict):
                raise ValidationInputError(
                    f"Course #{position} in tier '{name}' has a malformed matching_criteria"
                )

    return tier_names


# ---------------------------------------------------------------------
# Matcher
# ---------------------------------------------------------------------

class CatalogMatcher:
    """
    Read-only lookup over a catalog's flat entry list.
    """

    def __init__(self, entries: Sequence[CatalogEntry]) -> None:
        self._entries = list(entries)
        self._by_id: Dict[str, CatalogEntry] = {}
        for entry in self._entries:
            self._by_id.setdefault(entry.id, entry)

    def find(self, title: str, suggested_id: Optional[str] = None) -> Optional[CatalogEntry]:
        """
        Return the catalog entry a course resolves to, or None.
        """
        if suggested_id:
            by_id = self._by_id.get(str(suggested_id))
            if by_id is not None:
                return by_id

        wanted = title.lower()

        for entry in self._entries:
            if entry.title.lower() == wanted:
                return entry

        if len(wanted) <= MIN_CONTAINMENT_TITLE_LENGTH:
            return None

        for entry in self._entries:
            existing = entry.title.lower()
            if existing and (wanted in existing or existing in wanted):
                return entry

        return None


def validate_curriculum(
    candidate: Dict[str, Any],
    snapshot: CatalogSnapshot,
    fallback_sources: Sequence[FallbackSource] = DEFAULT_FALLBACK_SOURCES,
    tiers: Optional[Sequence[str]] = None,
    content_url_template: str = "/notes/{id}",
    platform_name: str = "OpenLearn Hub",
) -> Dict[str, Any]:
    """
    Attach a resolution outcome to every course of a candidate curriculum.

    Parameters
    ----------
    candidate : Dict[str, Any]
        Generated record set with a `curriculum` mapping of tier name →
        `{"courses": [...]}`.

    snapshot : CatalogSnapshot
        Current catalog; only `all_contents` is consulted.

    fallback_sources : Sequence[FallbackSource]
        External search sites offered for unresolved courses.

    tiers : Optional[Sequence[str]]
        Tier names to process, in order. Defaults to every tier in the
        curriculum that has a `courses` list.

    content_url_template : str
        Format string for a resolved entry's URL; receives `id`.

    platform_name : str
        Used in the note attached to unresolved courses.

    Returns
    -------
    Dict[str, Any]
        A deep copy of `candidate` with outcomes written into each course's
        `matching_criteria`.

    Raises
    ------
    ValidationInputError
        If the candidate is structurally invalid.
    """
    tier_names = _check_structure(candidate, tiers)

    validated = copy.deepcopy(candidate)
    matcher = CatalogMatcher(snapshot.all_contents)
    note = f"Not available on {platform_name} - External resources suggested"

    resolved = unresolved = 0

    for name in tier_names:
        tier = validated["curriculum"][name]
        courses: List[Dict[str, Any]] = []

        for course in tier["courses"]:
            criteria = dict(course.get("matching_criteria") or {})
            suggested = criteria.get("matched_content_id") or criteria.get("suggested_id")
            entry = matcher.find(course["title"], suggested)

            # drop outcome fields a previous pass (or the generator) left behind
            for key in _OUTCOME_KEYS:
                criteria.pop(key, None)

            if entry is not None:
                resolved += 1
                courses.append({
                    **course,
                    "title": entry.title or course["title"],
                    "matching_criteria": {
                        **criteria,
                        "validation_status": STATUS_AVAILABLE,
                        "matched_content_id": entry.id,
                        "matched_content_title": entry.title,
                        "content_url": content_url_template.format(id=entry.id),
                    },
                })
            else:
                unresolved += 1
                courses.append({
                    **course,
                    "matching_criteria": {
                        **criteria,
                        "validation_status": STATUS_ALTERNATIVE,
                        "matched_content_id": None,
                        "note": note,
                        "external_links": build_fallback_links(course["title"], fallback_sources),
                    },
                })

        tier["courses"] = courses

    logger.info(
        "Validated curriculum: %d course(s) available, %d alternative",
        resolved,
        unresolved,
    )

    return validated
