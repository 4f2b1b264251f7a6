"""
Storage Package

Path-addressed JSON documents persisted in a versioned blob repository.
"""

from .document_store import BlobRepository, DocumentStore, StoredDocument
from .paths import (
    CATALOG_PATH,
    GLOBAL_CONTENTS_PATH,
    curricula_path,
    profile_path,
    validate_owner_id,
)

__all__ = [
    "BlobRepository",
    "DocumentStore",
    "StoredDocument",
    "CATALOG_PATH",
    "GLOBAL_CONTENTS_PATH",
    "curricula_path",
    "profile_path",
    "validate_owner_id",
]
