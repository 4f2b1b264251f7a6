"""
Curriculum Service

Validates generated curricula against the catalog and keeps each owner's
curricula in one newest-first list document at
`data/users/{ownerId}/curricula.json`.

Record shape
------------
    {
        "id": "curriculum_<millis>_<random>",
        "ownerId": "...",
        "formData": {...},
        "curriculum": {...},          # validated record set
        "createdAt": "<ISO 8601>",
        "updatedAt": "<ISO 8601>",
        "progress": {...}             # optional
    }
"""

from __future__ import annotations

import logging
import secrets
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..config import DEFAULT_FALLBACK_SOURCES, FallbackSource
from ..core.errors import DocumentNotFoundError, RecordNotFoundError
from ..matching.engine import validate_curriculum
from ..storage import DocumentStore, curricula_path, validate_owner_id
from .catalog_service import CatalogService

logger = logging.getLogger("openlearn.curricula")

MESSAGE_GOAL_LENGTH = 50


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_curriculum_id() -> str:
    return f"curriculum_{int(time.time() * 1000)}_{secrets.token_hex(5)[:9]}"


class CurriculumService:

    def __init__(
        self,
        store: DocumentStore,
        catalog: CatalogService,
        fallback_sources: Sequence[FallbackSource] = DEFAULT_FALLBACK_SOURCES,
        content_url_template: str = "/notes/{id}",
        platform_name: str = "OpenLearn Hub",
    ) -> None:
        self._store = store
        self._catalog = catalog
        self._fallback_sources = list(fallback_sources)
        self._content_url_template = content_url_template
        self._platform_name = platform_name

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    async def validate(self, candidate: Dict[str, Any]) -> Dict[str, Any]:
        """
        Resolve every course of `candidate` against the current catalog.
        """
        snapshot = await self._catalog.get_or_regenerate()
        return validate_curriculum(
            candidate,
            snapshot,
            fallback_sources=self._fallback_sources,
            content_url_template=self._content_url_template,
            platform_name=self._platform_name,
        )

    # ------------------------------------------------------------------
    # Persistence
    # ------------------------------------------------------------------

    async def save_curriculum(
        self,
        owner_id: str,
        form_data: Dict[str, Any],
        curriculum: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Prepend a new curriculum record to the owner's list and return it.
        """
        owner_id = validate_owner_id(owner_id)
        timestamp = _now()
        record = {
            "id": new_curriculum_id(),
            "ownerId": owner_id,
            "formData": form_data,
            "curriculum": curriculum,
            "createdAt": timestamp,
            "updatedAt": timestamp,
        }

        goal = str(form_data.get("learning_goal") or "")[:MESSAGE_GOAL_LENGTH] or "New learning path"
        await self._store.append_to_list(
            curricula_path(owner_id),
            record,
            f"Add curriculum: {goal}",
        )

        logger.info("Curriculum %s saved for %s", record["id"], owner_id)
        return record

    async def validate_and_save(
        self,
        owner_id: str,
        form_data: Dict[str, Any],
        candidate: Dict[str, Any],
    ) -> Dict[str, Any]:
        validated = await self.validate(candidate)
        return await self.save_curriculum(owner_id, form_data, validated)

    async def list_curricula(self, owner_id: str) -> List[Dict[str, Any]]:
        """Return the owner's curricula, newest first. Empty if none."""
        path = curricula_path(owner_id)
        try:
            document = (await self._store.get(path)).document
        except DocumentNotFoundError:
            return []

        if not isinstance(document, list):
            return []

        records = [record for record in document if isinstance(record, dict)]
        # ISO 8601 strings in one timezone sort chronologically; sort is stable
        records.sort(key=lambda record: record.get("createdAt") or "", reverse=True)
        return records

    async def get_curriculum(self, owner_id: str, curriculum_id: str) -> Optional[Dict[str, Any]]:
        for record in await self.list_curricula(owner_id):
            if record.get("id") == curriculum_id:
                return record
        return None

    async def delete_curriculum(self, owner_id: str, curriculum_id: str) -> Dict[str, Any]:
        """
        Remove a curriculum and return the removed record.

        Raises `RecordNotFoundError` if the owner has no such curriculum.
        """
        try:
            removed = await self._store.remove_from_list(
                curricula_path(owner_id),
                lambda record: isinstance(record, dict) and record.get("id") == curriculum_id,
                f"Delete curriculum: {curriculum_id}",
            )
        except RecordNotFoundError:
            raise RecordNotFoundError(f"Curriculum '{curriculum_id}' not found") from None

        logger.info("Curriculum %s deleted for %s", curriculum_id, owner_id)
        return removed

    async def update_progress(
        self,
        owner_id: str,
        curriculum_id: str,
        progress: Dict[str, Any],
    ) -> Dict[str, Any]:
        """
        Replace a curriculum's progress and bump `updatedAt`.

        Raises `RecordNotFoundError` if the owner has no such curriculum.
        """
        def _is_target(record: Any) -> bool:
            return isinstance(record, dict) and record.get("id") == curriculum_id

        def _apply(record: Dict[str, Any]) -> Dict[str, Any]:
            return {**record, "progress": progress, "updatedAt": _now()}

        try:
            records = await self._store.upsert_in_list(
                curricula_path(owner_id),
                _is_target,
                _apply,
                f"Update progress: {curriculum_id}",
            )
        except RecordNotFoundError:
            raise RecordNotFoundError(f"Curriculum '{curriculum_id}' not found") from None

        return next(record for record in records if _is_target(record))
