"""
Document Store Tests

Covers the optimistic-concurrency primitives against the in-memory blob
repository:
- Missing, empty and corrupt documents
- Save/get round trips and revision handling
- Default creation
- Append/upsert/remove with bounded conflict retry
- Batch reads
"""

import json
import logging

import pytest

from openlearn_core.core.errors import (
    BlobTransportError,
    CorruptPayloadError,
    DocumentNotFoundError,
    RecordNotFoundError,
    RevisionConflictError,
)
from openlearn_core.storage import DocumentStore
from openlearn_core.storage.document_store import encode_document


PATH = "data/users/alice/curricula.json"


class TestGetAndSave:
    """Tests for the raw get/save primitives."""

    @pytest.mark.asyncio
    async def test_get_never_written_path_is_not_found(self, store):
        with pytest.raises(DocumentNotFoundError):
            await store.get("data/never/written.json")

    @pytest.mark.asyncio
    async def test_save_then_get_round_trip(self, store):
        document = {"ownerId": "alice", "uploads": [{"id": "u1", "tags": ["a", "a"]}], "n": 1.5, "ok": None}

        revision = await store.save(PATH, document, "create")
        stored = await store.get(PATH)

        assert stored.document == document
        assert stored.revision == revision

    @pytest.mark.asyncio
    async def test_save_serializes_indented_utf8_json(self, store, blob_repo):
        await store.save(PATH, {"title": "Café", "b": 1, "a": 2}, "create")

        data, _ = blob_repo.files[PATH]
        text = data.decode("utf-8")
        assert "Café" in text
        assert text.index('"b"') < text.index('"a"')
        assert text.startswith('{\n  "title"')

    @pytest.mark.asyncio
    async def test_update_with_stale_revision_conflicts(self, store):
        first = await store.save(PATH, [1], "create")
        await store.save(PATH, [2], "update", first)

        with pytest.raises(RevisionConflictError):
            await store.save(PATH, [3], "stale update", first)

        assert (await store.get(PATH)).document == [2]

    @pytest.mark.asyncio
    async def test_create_over_existing_path_conflicts(self, store):
        await store.save(PATH, [1], "create")

        with pytest.raises(RevisionConflictError):
            await store.save(PATH, [2], "create again")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("payload", [b"", b"   \n", b"{not json", b"\xff\xfe"])
    async def test_corrupt_payload_is_a_not_found(self, store, blob_repo, payload):
        sha = blob_repo.seed(PATH, payload)

        with pytest.raises(CorruptPayloadError) as excinfo:
            await store.get(PATH)

        assert isinstance(excinfo.value, DocumentNotFoundError)
        assert excinfo.value.revision == sha

    @pytest.mark.asyncio
    async def test_transport_failure_propagates(self, store, blob_repo):
        blob_repo.failing_paths[PATH] = BlobTransportError("boom")

        with pytest.raises(BlobTransportError):
            await store.get(PATH)

        with pytest.raises(BlobTransportError):
            await store.append_to_list(PATH, {"id": 1}, "append")


class TestGetOrCreateDefault:

    @pytest.mark.asyncio
    async def test_creates_default_once(self, store, blob_repo):
        calls = []

        def factory():
            calls.append(1)
            return {"ownerId": "alice", "uploads": []}

        created = await store.get_or_create_default(PATH, factory, "create default")
        assert created == {"ownerId": "alice", "uploads": []}
        assert (await store.get(PATH)).document == created

        again = await store.get_or_create_default(PATH, factory, "create default")
        assert again == created
        assert len(calls) == 1
        assert len(blob_repo.commits) == 1

    @pytest.mark.asyncio
    async def test_replaces_corrupt_document(self, store, blob_repo):
        blob_repo.seed(PATH, b"{broken")

        created = await store.get_or_create_default(PATH, lambda: {"fresh": True}, "repair")

        assert created == {"fresh": True}
        assert (await store.get(PATH)).document == {"fresh": True}

    @pytest.mark.asyncio
    async def test_racing_creator_sees_conflict(self, store, blob_repo):
        blob_repo.interleave_writes.append((PATH, encode_document({"winner": True})))

        with pytest.raises(RevisionConflictError):
            await store.get_or_create_default(PATH, lambda: {"winner": False}, "create")

        assert (await store.get(PATH)).document == {"winner": True}


class TestAppendToList:

    @pytest.mark.asyncio
    async def test_serial_appends_keep_newest_first(self, store):
        for i in range(5):
            result = await store.append_to_list(PATH, {"id": i}, f"append {i}")
            assert len(result) == i + 1

        stored = (await store.get(PATH)).document
        assert [item["id"] for item in stored] == [4, 3, 2, 1, 0]

    @pytest.mark.asyncio
    async def test_append_to_corrupt_or_non_list_starts_empty(self, store, blob_repo):
        blob_repo.seed(PATH, json.dumps({"not": "a list"}).encode())

        result = await store.append_to_list(PATH, {"id": "x"}, "append")

        assert result == [{"id": "x"}]
        assert (await store.get(PATH)).document == [{"id": "x"}]

    @pytest.mark.asyncio
    async def test_replacing_a_non_list_document_is_logged_as_error(self, store, blob_repo, caplog):
        blob_repo.seed(PATH, json.dumps({"legacy": "data"}).encode())

        with caplog.at_level(logging.ERROR, logger="openlearn.store"):
            await store.append_to_list(PATH, {"id": "x"}, "append")

        errors = [r for r in caplog.records if r.levelno == logging.ERROR]
        assert len(errors) == 1
        assert PATH in errors[0].getMessage()

    @pytest.mark.asyncio
    async def test_upsert_on_non_list_document_does_not_write(self, store, blob_repo):
        blob_repo.seed(PATH, json.dumps({"legacy": "data"}).encode())
        commits = len(blob_repo.commits)

        with pytest.raises(RecordNotFoundError):
            await store.upsert_in_list(PATH, lambda item: True, lambda item: item, "upsert")

        assert len(blob_repo.commits) == commits
        assert (await store.get(PATH)).document == {"legacy": "data"}

    @pytest.mark.asyncio
    async def test_stale_revision_retries_once(self, store, blob_repo):
        await store.save(PATH, [{"id": "a"}], "create")
        # another writer lands between our read and our write
        blob_repo.interleave_writes.append((PATH, encode_document([{"id": "b"}, {"id": "a"}])))

        result = await store.append_to_list(PATH, {"id": "c"}, "append c")

        assert [item["id"] for item in result] == ["c", "b", "a"]
        # create + one rejected attempt + one successful retry
        assert len(blob_repo.put_calls) == 3
        stored = (await store.get(PATH)).document
        assert [item["id"] for item in stored].count("c") == 1
        assert [item["id"] for item in stored] == ["c", "b", "a"]

    @pytest.mark.asyncio
    async def test_conflict_surfaces_after_max_attempts(self, blob_repo):
        store = DocumentStore(blob_repo, max_attempts=2)
        await store.save(PATH, [], "create")

        original_put = blob_repo.put_content

        async def always_conflicting(path, data, message, revision=None):
            blob_repo.interleave_writes.append((path, encode_document(["other"])))
            return await original_put(path, data, message, revision)

        blob_repo.put_content = always_conflicting

        with pytest.raises(RevisionConflictError) as excinfo:
            await store.append_to_list(PATH, {"id": "mine"}, "append")

        assert excinfo.value.attempts == 2
        assert {"id": "mine"} not in (await store.get(PATH)).document

    @pytest.mark.asyncio
    async def test_appended_item_is_copied(self, store):
        item = {"id": "x", "tags": []}
        await store.append_to_list(PATH, item, "append")
        item["tags"].append("mutated")

        assert (await store.get(PATH)).document == [{"id": "x", "tags": []}]


class TestUpsertAndRemove:

    @pytest.mark.asyncio
    async def test_upsert_mutates_first_match_only(self, store):
        await store.save(PATH, [{"id": 1, "v": 0}, {"id": 2, "v": 0}, {"id": 2, "v": 0}], "create")

        result = await store.upsert_in_list(
            PATH,
            lambda item: item["id"] == 2,
            lambda item: {**item, "v": 9},
            "upsert",
        )

        assert result == [{"id": 1, "v": 0}, {"id": 2, "v": 9}, {"id": 2, "v": 0}]
        assert (await store.get(PATH)).document == result

    @pytest.mark.asyncio
    async def test_upsert_without_match_raises_and_does_not_write(self, store, blob_repo):
        await store.save(PATH, [{"id": 1}], "create")
        commits = len(blob_repo.commits)

        with pytest.raises(RecordNotFoundError):
            await store.upsert_in_list(PATH, lambda item: item["id"] == 99, lambda item: item, "upsert")

        assert len(blob_repo.commits) == commits

    @pytest.mark.asyncio
    async def test_upsert_on_missing_document_raises(self, store):
        with pytest.raises(RecordNotFoundError):
            await store.upsert_in_list(PATH, lambda item: True, lambda item: item, "upsert")

    @pytest.mark.asyncio
    async def test_upsert_retries_against_fresh_list(self, store, blob_repo):
        await store.save(PATH, [{"id": 1, "v": 0}], "create")
        blob_repo.interleave_writes.append((PATH, encode_document([{"id": 2, "v": 0}, {"id": 1, "v": 0}])))

        result = await store.upsert_in_list(
            PATH,
            lambda item: item["id"] == 1,
            lambda item: {**item, "v": 1},
            "upsert",
        )

        assert result == [{"id": 2, "v": 0}, {"id": 1, "v": 1}]

    @pytest.mark.asyncio
    async def test_remove_returns_removed_item(self, store):
        await store.save(PATH, [{"id": "a"}, {"id": "b"}], "create")

        removed = await store.remove_from_list(PATH, lambda item: item["id"] == "a", "remove")

        assert removed == {"id": "a"}
        assert (await store.get(PATH)).document == [{"id": "b"}]

    @pytest.mark.asyncio
    async def test_remove_missing_record_raises(self, store):
        await store.save(PATH, [{"id": "a"}], "create")

        with pytest.raises(RecordNotFoundError):
            await store.remove_from_list(PATH, lambda item: item["id"] == "zzz", "remove")


class TestUpdate:

    @pytest.mark.asyncio
    async def test_update_uses_default_when_missing(self, store):
        result = await store.update(PATH, lambda current: {**current, "n": 1}, "merge", default={"n": 0, "k": "v"})

        assert result == {"n": 1, "k": "v"}
        assert (await store.get(PATH)).document == result

    @pytest.mark.asyncio
    async def test_update_merges_into_existing(self, store):
        await store.save(PATH, {"a": 1, "b": 2}, "create")

        result = await store.update(PATH, lambda current: {**current, "b": 3}, "merge")

        assert result == {"a": 1, "b": 3}


class TestGetMany:

    @pytest.mark.asyncio
    async def test_results_are_positional_and_failures_are_none(self, store, blob_repo):
        await store.save("p/1.json", {"n": 1}, "create")
        await store.save("p/3.json", {"n": 3}, "create")
        blob_repo.seed("p/corrupt.json", b"")
        blob_repo.failing_paths["p/boom.json"] = BlobTransportError("down")

        result = await store.get_many(
            ["p/1.json", "p/2.json", "p/3.json", "p/corrupt.json", "p/boom.json"],
        )

        assert result == [{"n": 1}, None, {"n": 3}, None, None]

    @pytest.mark.asyncio
    async def test_concurrency_is_capped(self, blob_repo):
        import asyncio

        in_flight = 0
        peak = 0
        original_get = blob_repo.get_content

        async def slow_get(path, ref=None):
            nonlocal in_flight, peak
            in_flight += 1
            peak = max(peak, in_flight)
            await asyncio.sleep(0.01)
            in_flight -= 1
            return await original_get(path, ref)

        blob_repo.get_content = slow_get
        store = DocumentStore(blob_repo, batch_concurrency=3)

        result = await store.get_many([f"p/{i}.json" for i in range(10)])

        assert result == [None] * 10
        assert peak <= 3
