"""
Catalog Compiler

Turns the flat global content list into a categorized catalog snapshot, and
renders a snapshot as plain text for inclusion in a generation prompt.

Both functions are pure: no I/O, no randomness, and the only time-dependent
value in the output is the `generated_at` timestamp passed in by the caller.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from pydantic import ValidationError

from .models import (
    CatalogCategory,
    CatalogEntry,
    CatalogSnapshot,
    CatalogSubcategory,
    ContentItem,
)

logger = logging.getLogger("openlearn.catalog")

CATALOG_VERSION = "1.0"
MAX_RENDERED_TAGS = 5
EMPTY_CATALOG_TEXT = "No platform content available."


# ---------------------------------------------------------------------
# Compilation
# ---------------------------------------------------------------------

def _to_entry(item: ContentItem) -> CatalogEntry:
    placement = item.placement()
    return CatalogEntry(
        id=item.id,
        title=item.title,
        description=item.description,
        category=placement.category,
        subcategory=placement.subcategory,
        topic=placement.topic,
        level=item.level or "Intermediate",
        tags=list(item.tags),
        uploaded_by=item.uploaded_by,
        has_media=bool(item.video_url),
        views=item.views,
        likes=item.likes,
    )


def _parse_items(contents: Iterable[Any]) -> List[ContentItem]:
    items: List[ContentItem] = []
    for position, raw in enumerate(contents):
        try:
            items.append(ContentItem.model_validate(raw))
        except ValidationError as exc:
            logger.warning(
                "Skipping content item #%d: not a mapping with a usable id (%d error(s))",
                position,
                exc.error_count(),
            )
    return items


def compile_catalog(
    contents: Iterable[Any],
    generated_at: Optional[datetime] = None,
) -> CatalogSnapshot:
    """
    Build a catalog snapshot from raw content items.

    Parameters
    ----------
    contents : Iterable[Any]
        Raw content items (mappings), newest first as stored.

    generated_at : Optional[datetime]
        Timestamp recorded as `lastUpdated`. Omitted → null.

    Returns
    -------
    CatalogSnapshot
        Nested category → subcategory grouping in first-seen order, plus the
        flat entry list in input order.
    """
    entries = [_to_entry(item) for item in _parse_items(contents)]

    # dicts keep insertion order, which gives first-seen grouping
    grouped: Dict[str, Dict[str, List[CatalogEntry]]] = {}
    for entry in entries:
        grouped.setdefault(entry.category, {}).setdefault(entry.subcategory, []).append(entry)

    categories = [
        CatalogCategory(
            name=category,
            subcategories=[
                CatalogSubcategory(
                    name=subcategory,
                    content_count=len(members),
                    contents=members,
                )
                for subcategory, members in subcategories.items()
            ],
        )
        for category, subcategories in grouped.items()
    ]

    return CatalogSnapshot(
        version=CATALOG_VERSION,
        last_updated=generated_at.isoformat() if generated_at else None,
        total_available=len(entries),
        categories=categories,
        all_contents=entries,
    )


# ---------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------

def _render_entry(entry: CatalogEntry) -> str:
    tags = f" [{', '.join(entry.tags[:MAX_RENDERED_TAGS])}]" if entry.tags else ""
    media = " (video)" if entry.has_media else ""
    return f'     - [{entry.id}] "{entry.title}" - {entry.level}{media}{tags}'


def render_catalog(
    snapshot: Optional[CatalogSnapshot],
    platform_name: str = "OpenLearn Hub",
) -> str:
    """
    Render a snapshot as a stable, line-oriented catalog description.
    """
    if snapshot is None or not snapshot.all_contents:
        return EMPTY_CATALOG_TEXT

    lines = [
        f"=== {platform_name.upper()} CONTENT CATALOG ===",
        f"Total Available Resources: {snapshot.total_available}",
        f"Last Updated: {snapshot.last_updated or 'unknown'}",
        "",
        "IMPORTANT: When generating learning paths:",
        '- If a topic EXISTS here -> mark as "available" with matching content ID',
        '- If a topic DOES NOT EXIST -> mark as "alternative" for external resources',
        "",
        "=== AVAILABLE CONTENT BY CATEGORY ===",
        "",
    ]

    for category in snapshot.categories:
        lines.append(f"# {category.name.upper()}")
        lines.append("-" * 40)

        for sub in category.subcategories:
            lines.append(f"  > {sub.name} ({sub.content_count} items)")
            lines.extend(_render_entry(entry) for entry in sub.contents)
            lines.append("")

        lines.append("")

    lines.append("=== END OF CATALOG ===")

    return "\n".join(lines)
