"""
Catalog Service

Keeps the persisted catalog snapshot in step with the global content list.
The snapshot is a cache: it is rebuilt from scratch after every content
mutation and never edited in place.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, List, Optional

from pydantic import ValidationError

from ..catalog.compiler import compile_catalog, render_catalog
from ..catalog.models import CatalogSnapshot
from ..core.errors import CorruptPayloadError, DocumentNotFoundError, RevisionConflictError
from ..storage import CATALOG_PATH, GLOBAL_CONTENTS_PATH, DocumentStore

logger = logging.getLogger("openlearn.catalog")


class CatalogService:

    def __init__(self, store: DocumentStore, platform_name: str = "OpenLearn Hub") -> None:
        self._store = store
        self._platform_name = platform_name

    async def list_contents(self) -> List[Any]:
        """Return the global content list; empty when missing or unreadable."""
        try:
            document = (await self._store.get(GLOBAL_CONTENTS_PATH)).document
        except DocumentNotFoundError:
            return []
        return document if isinstance(document, list) else []

    async def _catalog_revision(self) -> Optional[str]:
        try:
            return (await self._store.get(CATALOG_PATH)).revision
        except CorruptPayloadError as exc:
            return exc.revision
        except DocumentNotFoundError:
            return None

    async def regenerate(self) -> CatalogSnapshot:
        """
        Rebuild the snapshot from the current content list and persist it.

        The catalog revision is read before the content list, so a snapshot
        written concurrently from newer contents makes this write conflict.
        Each retry re-reads the contents and compiles again; an older
        snapshot never replaces a newer one.
        """
        max_attempts = self._store.max_attempts

        for attempt in range(1, max_attempts + 1):
            revision = await self._catalog_revision()
            contents = await self.list_contents()
            snapshot = compile_catalog(contents, generated_at=datetime.now(timezone.utc))

            try:
                await self._store.save(
                    CATALOG_PATH,
                    snapshot.to_document(),
                    f"Auto-update catalog: {snapshot.total_available} items",
                    revision,
                )
            except RevisionConflictError:
                if attempt == max_attempts:
                    raise RevisionConflictError(CATALOG_PATH, attempts=attempt)
                logger.warning(
                    "Catalog write conflicted (attempt %d/%d); recompiling",
                    attempt,
                    max_attempts,
                )
                continue
            break

        logger.info(
            "Catalog regenerated: %d categories, %d content items",
            len(snapshot.categories),
            snapshot.total_available,
        )
        return snapshot

    async def get_snapshot(self) -> Optional[CatalogSnapshot]:
        """Return the persisted snapshot, or None when missing or unreadable."""
        try:
            document = (await self._store.get(CATALOG_PATH)).document
        except DocumentNotFoundError:
            return None

        try:
            return CatalogSnapshot.model_validate(document)
        except ValidationError:
            logger.warning("Catalog snapshot at %s has an unexpected shape", CATALOG_PATH)
            return None

    async def get_or_regenerate(self) -> CatalogSnapshot:
        snapshot = await self.get_snapshot()
        if snapshot is None:
            logger.info("Catalog snapshot not found, regenerating")
            snapshot = await self.regenerate()
        return snapshot

    async def render(self) -> str:
        return render_catalog(await self.get_or_regenerate(), self._platform_name)
