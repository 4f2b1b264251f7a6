"""
Document Paths

Every document the application persists lives at one of these paths.
Owner ids are validated before they are interpolated so that a crafted id
can never address a file outside `data/users/{ownerId}/`.
"""

from __future__ import annotations

import re

from ..core.errors import InvalidOwnerError


GLOBAL_CONTENTS_PATH = "data/global/contents.json"
CATALOG_PATH = "data/global/catalog.json"

# Firebase-style uids, slugs and e-mail addresses
OWNER_ID_PATTERN = re.compile(r"^[A-Za-z0-9_.@+-]{1,128}$")


def validate_owner_id(owner_id: str) -> str:
    """
    Return the stripped owner id, or raise `InvalidOwnerError`.
    """
    if not owner_id or not isinstance(owner_id, str):
        raise InvalidOwnerError("owner id is required")

    owner_id = owner_id.strip()

    if not OWNER_ID_PATTERN.match(owner_id):
        raise InvalidOwnerError(
            f"Invalid owner id '{owner_id}': only letters, digits and _.@+- are allowed"
        )

    if ".." in owner_id or owner_id.startswith("."):
        raise InvalidOwnerError(f"Invalid owner id '{owner_id}': path traversal detected")

    return owner_id


def profile_path(owner_id: str) -> str:
    return f"data/users/{validate_owner_id(owner_id)}/profile.json"


def curricula_path(owner_id: str) -> str:
    return f"data/users/{validate_owner_id(owner_id)}/curricula.json"
