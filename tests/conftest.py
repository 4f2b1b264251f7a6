"""
Shared fixtures: an in-memory stand-in for the GitHub contents API that
keeps the same revision semantics (new SHA per write, stale or missing SHA
on an existing file → conflict).
"""

import hashlib
from typing import Dict, List, Optional, Tuple

import pytest

from openlearn_core.core.errors import RevisionConflictError
from openlearn_core.github.api_client import BlobContent, BlobNotFoundError
from openlearn_core.storage import DocumentStore


class InMemoryBlobRepository:
    """
    Blob repository fake.

    `interleave_writes` lets a test simulate another writer landing between
    this caller's read and write: before the next put, each queued
    (path, bytes) is committed, making the caller's revision stale.
    """

    def __init__(self) -> None:
        self.files: Dict[str, Tuple[bytes, str]] = {}
        self.commits: List[Tuple[str, str]] = []
        self.get_calls: List[str] = []
        self.put_calls: List[Tuple[str, Optional[str]]] = []
        self.interleave_writes: List[Tuple[str, bytes]] = []
        self.failing_paths: Dict[str, Exception] = {}
        self._counter = 0

    def _commit(self, path: str, data: bytes, message: str) -> str:
        self._counter += 1
        sha = hashlib.sha1(data + str(self._counter).encode()).hexdigest()
        self.files[path] = (data, sha)
        self.commits.append((path, message))
        return sha

    def seed(self, path: str, data: bytes) -> str:
        return self._commit(path, data, "seed")

    async def get_content(self, path: str, ref: Optional[str] = None) -> BlobContent:
        self.get_calls.append(path)
        if path in self.failing_paths:
            raise self.failing_paths[path]
        if path not in self.files:
            raise BlobNotFoundError(path)
        data, sha = self.files[path]
        return BlobContent(data=data, revision=sha)

    async def put_content(
        self,
        path: str,
        data: bytes,
        message: str,
        revision: Optional[str] = None,
    ) -> str:
        self.put_calls.append((path, revision))

        while self.interleave_writes:
            other_path, other_data = self.interleave_writes.pop(0)
            self._commit(other_path, other_data, "concurrent writer")

        current = self.files.get(path)
        if current is None and revision is not None:
            raise RevisionConflictError(path)
        if current is not None and current[1] != revision:
            raise RevisionConflictError(path)

        return self._commit(path, data, message)


@pytest.fixture
def blob_repo():
    return InMemoryBlobRepository()


@pytest.fixture
def store(blob_repo):
    return DocumentStore(blob_repo, max_attempts=3, batch_concurrency=5)
