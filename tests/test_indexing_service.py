"""Tests for incremental indexing."""

import uuid

import pytest
from langchain_core.documents import Document

from codeindex.exceptions import EmbeddingError
from codeindex.services.document_service import load_directory, split_documents
from codeindex.services.indexing_service import chunk_key, run_index
from codeindex.services.search_service import search


def _chunks(*items):
    return [Document(page_content=content, metadata={"source": source}) for source, content in items]


FILES = [
    ("a.md", "alpha one"),
    ("a.md", "alpha two"),
    ("b.ts", "export const beta = 2;"),
    ("c.js", "const gamma = 3;"),
]


class TestChunkKey:
    """Test key derivation."""

    def test_key_is_stable_uuid(self):
        chunk = Document(page_content="text", metadata={"source": "a.md"})

        key = chunk_key(chunk, "code_index")

        assert key == chunk_key(Document(page_content="text", metadata={"source": "a.md"}), "code_index")
        assert uuid.UUID(key)

    def test_key_depends_on_content_metadata_and_namespace(self):
        chunk = Document(page_content="text", metadata={"source": "a.md"})
        base = chunk_key(chunk, "ns")

        assert chunk_key(Document(page_content="text2", metadata={"source": "a.md"}), "ns") != base
        assert chunk_key(Document(page_content="text", metadata={"source": "b.md"}), "ns") != base
        assert chunk_key(chunk, "other") != base

    def test_metadata_order_does_not_matter(self):
        first = Document(page_content="t", metadata={"source": "a", "lang": "ts"})
        second = Document(page_content="t", metadata={"lang": "ts", "source": "a"})

        assert chunk_key(first, "ns") == chunk_key(second, "ns")


class TestRunIndex:
    """Test run_index against in-memory stores."""

    def test_first_run_adds_every_chunk(self, record_manager, vector_store, embedder):
        result = run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (4, 0, 0)
        assert len(vector_store.rows) == 4
        assert len(record_manager.records) == 4
        assert {str(i) for i in vector_store.rows} == set(record_manager.records)

    def test_second_run_skips_unchanged(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)
        embedded_before = embedder.embedded_count

        result = run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (0, 4, 0)
        assert embedder.embedded_count == embedded_before
        assert len(vector_store.rows) == 4

    def test_removed_source_is_deleted(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        remaining = [item for item in FILES if item[0] != "a.md"]
        result = run_index(_chunks(*remaining), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (0, 2, 2)
        assert vector_store.sources() == ["b.ts", "c.js"]
        assert len(record_manager.records) == 2

    def test_changed_chunk_replaces_old_one(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        changed = [("a.md", "alpha one"), ("a.md", "alpha TWO"), FILES[2], FILES[3]]
        result = run_index(_chunks(*changed), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (1, 3, 1)
        contents = sorted(row.content for row in vector_store.rows.values())
        assert "alpha two" not in contents
        assert "alpha TWO" in contents

    def test_empty_run_clears_namespace(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        result = run_index([], record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (0, 0, 4)
        assert vector_store.rows == {}
        assert record_manager.records == {}

    def test_scoped_cleanup_keeps_unseen_sources(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        only_a = [("a.md", "alpha one"), ("a.md", "alpha three")]
        result = run_index(_chunks(*only_a), record_manager, vector_store, embedder, cleanup="scoped")

        assert (result.num_added, result.num_skipped, result.num_deleted) == (1, 1, 1)
        assert vector_store.sources() == ["a.md", "b.ts", "c.js"]

    def test_no_cleanup_never_deletes(self, record_manager, vector_store, embedder):
        run_index(_chunks(*FILES), record_manager, vector_store, embedder)

        result = run_index([], record_manager, vector_store, embedder, cleanup=None)

        assert result.num_deleted == 0
        assert len(vector_store.rows) == 4

    def test_duplicate_chunks_are_skipped(self, record_manager, vector_store, embedder):
        result = run_index(_chunks(("a.md", "same"), ("a.md", "same")), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped) == (1, 1)

    def test_small_batches_give_same_result(self, record_manager, vector_store, embedder):
        result = run_index(_chunks(*FILES), record_manager, vector_store, embedder, batch_size=1)

        assert result.num_added == 4
        assert [len(batch) for batch in embedder.calls] == [1, 1, 1, 1]

    def test_namespaces_are_independent(self, make_record_manager, vector_store, embedder):
        first = make_record_manager("first")
        second = make_record_manager("second")
        run_index(_chunks(*FILES), first, vector_store, embedder)

        result = run_index(_chunks(*FILES), second, vector_store, embedder)

        assert result.num_added == 4
        assert len(vector_store.rows) == 8

    def test_chunk_without_source_is_rejected(self, record_manager, vector_store, embedder):
        chunks = [Document(page_content="orphan", metadata={})]

        with pytest.raises(ValueError):
            run_index(chunks, record_manager, vector_store, embedder)

        assert vector_store.rows == {}

    def test_chunk_without_source_allowed_without_cleanup(self, record_manager, vector_store, embedder):
        chunks = [Document(page_content="orphan", metadata={})]

        result = run_index(chunks, record_manager, vector_store, embedder, cleanup=None)

        assert result.num_added == 1

    def test_unknown_cleanup_mode(self, record_manager, vector_store, embedder):
        with pytest.raises(ValueError):
            run_index([], record_manager, vector_store, embedder, cleanup="full")

    def test_embedding_failure_aborts_run(self, record_manager, vector_store):
        class BrokenEmbedder:
            def embed_batch(self, texts):
                raise RuntimeError("backend down")

        with pytest.raises(RuntimeError):
            run_index(_chunks(*FILES), record_manager, vector_store, BrokenEmbedder())

        assert record_manager.records == {}
        assert vector_store.rows == {}

    def test_short_embedding_batch_records_nothing(self, record_manager, vector_store, embedder):
        class ShortEmbedder:
            def embed_batch(self, texts):
                return embedder.embed_batch(texts)[:-1]

        with pytest.raises(EmbeddingError):
            run_index(_chunks(*FILES[:3]), record_manager, vector_store, ShortEmbedder())

        assert record_manager.records == {}
        assert vector_store.rows == {}

        result = run_index(_chunks(*FILES[:3]), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped) == (3, 0)
        assert {str(i) for i in vector_store.rows} == set(record_manager.records)


class TestEndToEnd:
    """Load, split, index and search a real directory."""

    def test_hello_md(self, tmp_path, record_manager, vector_store, embedder):
        (tmp_path / "hello.md").write_text("A B C", encoding="utf-8")

        chunks = split_documents(load_directory(tmp_path), chunk_size=2000, chunk_overlap=400)
        result = run_index(chunks, record_manager, vector_store, embedder)

        assert len(chunks) == 1
        assert result.num_added == 1
        assert len(vector_store.rows) == 1
        assert len(record_manager.records) == 1

        hits = search("A B C", 1, embedder, vector_store)

        assert len(hits) == 1
        assert hits[0].content == "A B C"
        assert hits[0].source == str(tmp_path / "hello.md")
        assert hits[0].distance == 0.0

    def test_reindex_after_file_removed(self, tmp_path, record_manager, vector_store, embedder):
        (tmp_path / "keep.md").write_text("keep me", encoding="utf-8")
        (tmp_path / "drop.js").write_text("const drop = 1;", encoding="utf-8")

        run_index(split_documents(load_directory(tmp_path)), record_manager, vector_store, embedder)
        (tmp_path / "drop.js").unlink()
        result = run_index(split_documents(load_directory(tmp_path)), record_manager, vector_store, embedder)

        assert (result.num_added, result.num_skipped, result.num_deleted) == (0, 1, 1)
        assert vector_store.sources() == [str(tmp_path / "keep.md")]
