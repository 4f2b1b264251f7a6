"""
Owner Profiles

A profile is created on first read, merge-updated on write, and can be
looked up in batches for list views.
"""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Sequence

from ..core.errors import InvalidOwnerError
from ..storage import DocumentStore, profile_path, validate_owner_id

logger = logging.getLogger("openlearn.profiles")

PROTECTED_FIELDS = ("ownerId", "createdAt")


def default_profile(owner_id: str) -> Dict[str, Any]:
    return {
        "ownerId": owner_id,
        "uploads": [],
        "downloads": [],
        "createdAt": datetime.now(timezone.utc).isoformat(),
    }


class ProfileService:
    """
    Per-owner profile documents at `data/users/{ownerId}/profile.json`.
    """

    def __init__(self, store: DocumentStore, batch_concurrency: int = 50) -> None:
        self._store = store
        self._batch_concurrency = batch_concurrency

    async def get_profile(self, owner_id: str) -> Dict[str, Any]:
        """
        Return the owner's profile, creating the default one if needed.
        """
        owner_id = validate_owner_id(owner_id)
        return await self._store.get_or_create_default(
            profile_path(owner_id),
            lambda: default_profile(owner_id),
            f"Create profile for user {owner_id}",
        )

    async def update_profile(self, owner_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """
        Merge `changes` into the stored profile (top-level keys replace).

        `ownerId` and `createdAt` cannot be changed.
        """
        owner_id = validate_owner_id(owner_id)

        def _merge(current: Any) -> Dict[str, Any]:
            base = current if isinstance(current, dict) else default_profile(owner_id)
            merged = {**base, **changes}
            for key in PROTECTED_FIELDS:
                if key in base:
                    merged[key] = base[key]
            merged["ownerId"] = owner_id
            return merged

        return await self._store.update(
            profile_path(owner_id),
            _merge,
            f"Update profile for user {owner_id}",
        )

    async def batch_lookup(self, owner_ids: Sequence[str]) -> Dict[str, Optional[Dict[str, Any]]]:
        """
        Look up many profiles at once without creating missing ones.

        Invalid ids, missing profiles and failed reads all map to None.
        """
        unique: List[str] = list(dict.fromkeys(owner_ids))
        paths: Dict[str, str] = {}
        for owner_id in unique:
            try:
                paths[owner_id] = profile_path(owner_id)
            except InvalidOwnerError:
                logger.info("Batch lookup skipping invalid owner id %r", owner_id)

        documents = await self._store.get_many(
            list(paths.values()),
            max_concurrency=self._batch_concurrency,
        )
        found = dict(zip(paths.keys(), documents))

        return {
            owner_id: found.get(owner_id) if isinstance(found.get(owner_id), dict) else None
            for owner_id in unique
        }
