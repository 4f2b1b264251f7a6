"""
Global content list operations.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from ..storage import GLOBAL_CONTENTS_PATH, DocumentStore

logger = logging.getLogger("openlearn.content")


class ContentService:

    def __init__(self, store: DocumentStore) -> None:
        self._store = store

    async def add_content(self, item: Dict[str, Any]) -> List[Any]:
        """
        Prepend a content item to the global list.

        The catalog snapshot is stale afterwards; callers regenerate it.
        """
        title = item.get("title") or item.get("id") or "untitled"
        contents = await self._store.append_to_list(
            GLOBAL_CONTENTS_PATH,
            item,
            f"Add new global content: {title}",
        )
        logger.info("Added content %s (%d items total)", item.get("id"), len(contents))
        return contents
