"""
Document Store

JSON documents addressed by path, persisted in a versioned blob repository
whose only write primitive is "replace the whole file if its revision is
still X".

This module compresses every read-modify-write pattern the application
needs into a handful of primitives so no caller ever hand-rolls a race.

Design choices
--------------
- Stateless: no in-process cache and no locks. Same-path writers are
  serialized only by the backing store's revision check.
- Callers never hold a revision across calls; each primitive reads,
  mutates and writes within one call.
- Missing, empty and undecodable files are all "absent" to callers
  (`CorruptPayloadError` subclasses `DocumentNotFoundError`), but a
  corrupt blob's revision is kept so it can be overwritten.
- `save` never retries. `update` and the list helpers re-read and retry a
  bounded number of times on a revision conflict, then surface it.
- Concurrent appends to the same path never lose an item, but their
  relative order is not deterministic. The backing store offers no atomic
  list append to do better.
- Transport failures always propagate unchanged.
"""

from __future__ import annotations

import asyncio
import copy
import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, List, Optional, Protocol, Sequence, Tuple

from ..core.errors import (
    CorruptPayloadError,
    DocumentNotFoundError,
    RecordNotFoundError,
    RevisionConflictError,
)
from ..github.api_client import BlobContent, BlobNotFoundError

logger = logging.getLogger("openlearn.store")

DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_BATCH_CONCURRENCY = 50


# ---------------------------------------------------------------------
# Types
# ---------------------------------------------------------------------

class BlobRepository(Protocol):
    """The backing store contract consumed by `DocumentStore`."""

    async def get_content(self, path: str, ref: Optional[str] = None) -> BlobContent:
        ...

    async def put_content(
        self,
        path: str,
        data: bytes,
        message: str,
        revision: Optional[str] = None,
    ) -> str:
        ...


@dataclass(frozen=True)
class StoredDocument:
    """A decoded document and the revision it was read at."""
    document: Any
    revision: str


Mutator = Callable[[Any], Any]
Predicate = Callable[[Any], bool]


def encode_document(document: Any) -> bytes:
    """Serialize a document the way it is committed: indented UTF-8 JSON."""
    return json.dumps(document, indent=2, ensure_ascii=False).encode("utf-8")


def decode_document(path: str, blob: BlobContent) -> Any:
    """
    Decode stored bytes, raising `CorruptPayloadError` for empty or invalid JSON.
    """
    try:
        text = blob.data.decode("utf-8")
    except UnicodeDecodeError as exc:
        raise CorruptPayloadError(path, blob.revision, "not UTF-8") from exc

    if not text.strip():
        raise CorruptPayloadError(path, blob.revision, "empty file")

    try:
        return json.loads(text)
    except json.JSONDecodeError as exc:
        raise CorruptPayloadError(path, blob.revision, f"invalid JSON ({exc.msg})") from exc


# ---------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------

class DocumentStore:
    """
    Path-addressed JSON document store with optimistic concurrency.
    """

    def __init__(
        self,
        repository: BlobRepository,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        batch_concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> None:
        """
        Parameters
        ----------
        repository : BlobRepository
            Backing blob store (normally a `GitHubContentsClient`).

        max_attempts : int
            Total attempts for `update` and the list helpers before a
            revision conflict is surfaced.

        batch_concurrency : int
            Upper bound on simultaneous reads issued by `get_many`.
        """
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        if batch_concurrency < 1:
            raise ValueError("batch_concurrency must be at least 1")

        self._repo = repository
        self._max_attempts = max_attempts
        self._batch_concurrency = batch_concurrency

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    # ------------------------------------------------------------------
    # Core operations
    # ------------------------------------------------------------------

    async def get(self, path: str) -> StoredDocument:
        """
        Read and decode the document at `path`.

        Raises
        ------
        DocumentNotFoundError
            If nothing is stored at `path`.

        CorruptPayloadError
            If the stored bytes are empty or not JSON. Subclass of
            `DocumentNotFoundError`.

        BlobTransportError
            If the backing store fails.
        """
        try:
            blob = await self._repo.get_content(path)
        except BlobNotFoundError as exc:
            raise DocumentNotFoundError(path) from exc

        return StoredDocument(document=decode_document(path, blob), revision=blob.revision)

    async def save(
        self,
        path: str,
        document: Any,
        message: str,
        revision: Optional[str] = None,
    ) -> str:
        """
        Write a whole document. Creates the path when `revision` is None,
        otherwise replaces the version identified by `revision`.

        Returns the new revision. A stale revision raises
        `RevisionConflictError` and is not retried.
        """
        return await self._repo.put_content(path, encode_document(document), message, revision)

    async def get_or_create_default(
        self,
        path: str,
        default_factory: Callable[[], Any],
        message: str,
    ) -> Any:
        """
        Return the document at `path`, creating it from `default_factory`
        when it is missing or corrupt.

        Two racing creators may both attempt the write; the loser gets
        `RevisionConflictError` and should read again.
        """
        try:
            return (await self.get(path)).document
        except CorruptPayloadError as exc:
            logger.warning("%s; replacing it with a default document", exc)
            revision = exc.revision
        except DocumentNotFoundError:
            revision = None

        document = default_factory()
        await self.save(path, document, message, revision)
        logger.info("Created default document at %s", path)
        return document

    async def update(
        self,
        path: str,
        mutate: Mutator,
        message: str,
        default: Any = None,
    ) -> Any:
        """
        Read-modify-write with bounded retry on revision conflicts.

        Parameters
        ----------
        path : str
            Document path.

        mutate : Callable[[Any], Any]
            Receives a private copy of the current document (or of `default`
            when the path is missing or corrupt) and returns the new document.
            May raise to abort without writing. Called once per attempt.

        message : str
            Commit message.

        default : Any
            Starting value when no readable document exists.

        Returns
        -------
        Any
            The document as written.
        """
        return await self._read_modify_write(path, mutate, message, default)

    async def append_to_list(self, path: str, item: Any, message: str) -> List[Any]:
        """
        Prepend `item` to the list stored at `path`.

        A missing, corrupt or non-list document is treated as an empty list.
        A valid non-list document is therefore replaced, and its data lost;
        the replacement is logged at ERROR level.
        """
        def _prepend(current: Any) -> List[Any]:
            return [copy.deepcopy(item), *current]

        return await self._read_modify_write(path, _prepend, message, [], expect_list=True)

    async def upsert_in_list(
        self,
        path: str,
        predicate: Predicate,
        mutate: Mutator,
        message: str,
    ) -> List[Any]:
        """
        Replace the first list element matching `predicate` with
        `mutate(element)`.

        Raises `RecordNotFoundError` when no element matches.
        """
        def _replace(current: List[Any]) -> List[Any]:
            index = _find_index(current, predicate)
            if index is None:
                raise RecordNotFoundError(f"No matching record in '{path}'")
            current[index] = mutate(current[index])
            return current

        return await self._read_modify_write(path, _replace, message, [], expect_list=True)

    async def remove_from_list(self, path: str, predicate: Predicate, message: str) -> Any:
        """
        Remove the first list element matching `predicate` and return it.

        Raises `RecordNotFoundError` when no element matches.
        """
        removed: List[Any] = []

        def _remove(current: List[Any]) -> List[Any]:
            removed.clear()
            index = _find_index(current, predicate)
            if index is None:
                raise RecordNotFoundError(f"No matching record in '{path}'")
            removed.append(current.pop(index))
            return current

        await self._read_modify_write(path, _remove, message, [], expect_list=True)
        return removed[0]

    # ------------------------------------------------------------------
    # Batch operations
    # ------------------------------------------------------------------

    async def get_many(
        self,
        paths: Sequence[str],
        max_concurrency: Optional[int] = None,
    ) -> List[Optional[Any]]:
        """
        Read many documents concurrently.

        At most `max_concurrency` reads are in flight at once. Results are
        positional; a path that is missing, corrupt or fails to load yields
        None instead of failing the batch.
        """
        sem = asyncio.Semaphore(max_concurrency or self._batch_concurrency)

        async def _load_one(path: str) -> Optional[Any]:
            async with sem:
                try:
                    return (await self.get(path)).document
                except DocumentNotFoundError:
                    return None
                except Exception as exc:
                    logger.warning("Batch read of %s failed: %s", path, exc)
                    return None

        return list(await asyncio.gather(*(_load_one(p) for p in paths)))

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------

    async def _read_for_update(self, path: str, default: Any, expect_list: bool) -> Tuple[Any, Optional[str]]:
        try:
            stored = await self.get(path)
        except CorruptPayloadError as exc:
            logger.warning("%s; starting from default", exc)
            return copy.deepcopy(default), exc.revision
        except DocumentNotFoundError:
            return copy.deepcopy(default), None

        if expect_list and not isinstance(stored.document, list):
            logger.error(
                "Document at %s is %s, not a list; starting from an empty list "
                "(its contents are replaced if this write succeeds)",
                path,
                type(stored.document).__name__,
            )
            return copy.deepcopy(default), stored.revision

        return stored.document, stored.revision

    async def _read_modify_write(
        self,
        path: str,
        mutate: Mutator,
        message: str,
        default: Any,
        expect_list: bool = False,
    ) -> Any:
        for attempt in range(1, self._max_attempts + 1):
            current, revision = await self._read_for_update(path, default, expect_list)
            updated = mutate(current)

            try:
                await self.save(path, updated, message, revision)
            except RevisionConflictError:
                if attempt == self._max_attempts:
                    logger.error(
                        "Giving up on %s after %d conflicting attempts",
                        path,
                        attempt,
                    )
                    raise RevisionConflictError(path, attempts=attempt)
                logger.warning(
                    "Revision conflict on %s (attempt %d/%d); re-reading",
                    path,
                    attempt,
                    self._max_attempts,
                )
                continue

            return updated

        # Unreachable: the loop either returns or raises.
        raise RevisionConflictError(path, attempts=self._max_attempts)


def _find_index(items: List[Any], predicate: Predicate) -> Optional[int]:
    for index, element in enumerate(items):
        if predicate(element):
            return index
    return None
