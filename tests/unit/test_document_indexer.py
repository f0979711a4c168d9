"""Unit tests for DocumentIndexer runs over extracted documentation trees."""

from __future__ import annotations

import hashlib
import logging

import pytest

from unity_docs_mcp.domain.model import DocumentType
from unity_docs_mcp.errors import IndexingError, StorageError
from unity_docs_mcp.observability.metrics import REGISTRY
from unity_docs_mcp.search.indexer import (
    LAST_INDEXED_KEY,
    DocumentIndexer,
    iter_html_files,
    package_document_id,
    version_document_id,
)


@pytest.fixture
def indexer(store):
    return DocumentIndexer(store, progress_interval=100)


@pytest.fixture
def package_tree(tmp_path):
    root = tmp_path / "packages" / "com.unity.inputsystem" / "1.11.0"
    (root / "manual").mkdir(parents=True)
    (root / "manual" / "index.html").write_text(
        "<html><body><div class='content'><h1>Input System</h1><p>Actions bind devices.</p></div></body></html>",
        encoding="utf-8",
    )
    (root / "api").mkdir()
    (root / "api" / "UnityEngine.InputSystem.InputAction.html").write_text(
        "<html><head><title>Class InputAction | Unity Documentation</title></head>"
        "<body><article>InputAction reads devices.</article></body></html>",
        encoding="utf-8",
    )
    return root


class TestIds:
    def test_version_document_id(self):
        expected = hashlib.sha256(b"6000.1:Manual/Colliders.html").hexdigest()[:16]
        assert version_document_id("6000.1", "Manual/Colliders.html") == expected

    def test_package_document_id_ignores_package_version(self):
        expected = hashlib.sha256(b"com.unity.timeline/manual/index.html").hexdigest()[:16]
        assert package_document_id("com.unity.timeline", "manual/index.html") == expected

    def test_ids_differ_between_versions(self):
        assert version_document_id("6000.0", "Manual/A.html") != version_document_id("6000.1", "Manual/A.html")


class TestIterHtmlFiles:
    def test_sorted_posix_paths_and_html_only(self, docs_tree):
        relative = [rel for _, rel in iter_html_files(docs_tree)]
        assert relative == [
            "Manual/Colliders.html",
            "Manual/RigidbodiesOverview.html",
            "Manual/class-Rigidbody.html",
            "ScriptReference/Rigidbody.AddForce.html",
            "ScriptReference/Rigidbody.html",
        ]


class TestIndexVersion:
    def test_indexes_every_page(self, indexer, store, docs_tree):
        result = indexer.index_version(docs_tree, "6000.1")

        assert result.scope == "unity-6000.1"
        assert result.processed == 5
        assert result.failed == 0
        assert result.counts_by_type == {"manual": 3, "script-reference": 2}
        assert store.count_by_type("6000.1") == {"manual": 3, "script-reference": 2}

    def test_stored_fields(self, indexer, store, docs_tree, sample_pages):
        indexer.index_version(docs_tree, "6000.1")

        doc = store.get_document(version_document_id("6000.1", "ScriptReference/Rigidbody.html"))
        assert doc.title == "Rigidbody"
        assert doc.type is DocumentType.SCRIPT_REFERENCE
        assert doc.url == "unity://6000.1/ScriptReference/Rigidbody.html"
        assert doc.raw_markup == sample_pages["ScriptReference/Rigidbody.html"]
        assert doc.package_name is None

    def test_unreadable_file_is_counted_and_skipped(self, indexer, store, docs_tree):
        (docs_tree / "Manual" / "Broken.html").write_bytes(b"\xff\xfe\xfa<html>")

        result = indexer.index_version(docs_tree, "6000.1")

        assert result.processed == 5
        assert result.failed == 1
        assert result.total_files == 6
        assert result.errors[0][0] == "Manual/Broken.html"
        assert store.get_document(version_document_id("6000.1", "Manual/Broken.html")) is None
        assert REGISTRY.get_sample_value("unity_docs_index_failures_total", {"scope": "unity-6000.1"}) >= 1

    def test_reindex_is_idempotent(self, indexer, store, docs_tree):
        indexer.index_version(docs_tree, "6000.1")
        second = indexer.index_version(docs_tree, "6000.1")

        assert second.purged == 5
        assert store.count_documents("6000.1") == 5
        assert store.integrity_check()

    def test_reindex_drops_removed_pages(self, indexer, store, docs_tree):
        indexer.index_version(docs_tree, "6000.1")
        (docs_tree / "Manual" / "Colliders.html").unlink()

        indexer.index_version(docs_tree, "6000.1")

        assert store.count_documents("6000.1") == 4
        assert store.get_document(version_document_id("6000.1", "Manual/Colliders.html")) is None

    def test_other_versions_and_packages_survive(self, indexer, store, docs_tree, package_tree):
        indexer.index_version(docs_tree, "6000.0")
        indexer.index_package(package_tree, "com.unity.inputsystem", "1.11.0", "6000.1")

        indexer.index_version(docs_tree, "6000.1")

        assert store.count_documents("6000.0") == 5
        assert store.indexed_packages() == {"com.unity.inputsystem": {"1.11.0": 2}}

    def test_missing_root_raises(self, indexer, tmp_path):
        with pytest.raises(IndexingError, match="not found"):
            indexer.index_version(tmp_path / "nowhere", "6000.1")

    def test_storage_fault_aborts_run_and_keeps_previous_index(self, indexer, store, docs_tree):
        indexer.index_version(docs_tree, "6000.1")
        filler = "<p>" + "Physics materials tune friction and bounciness. " * 20_000 + "</p>"
        (docs_tree / "Manual" / "Huge.html").write_text(
            f"<html><body><div class='content'><h1>Huge</h1>{filler}</div></body></html>",
            encoding="utf-8",
        )
        page_count = store.connection.execute("PRAGMA page_count").fetchone()[0]
        store.connection.execute(f"PRAGMA max_page_count = {page_count}")

        with pytest.raises(StorageError, match="database or disk is full"):
            indexer.index_version(docs_tree, "6000.1")

        assert not store.connection.in_transaction
        store.connection.execute("PRAGMA max_page_count = 1073741823")
        assert store.count_documents("6000.1") == 5
        assert store.get_document(version_document_id("6000.1", "Manual/Huge.html")) is None
        assert store.integrity_check()

    def test_optimize_failure_aborts_run(self, indexer, store, docs_tree, monkeypatch):
        def fail():
            raise StorageError("database is locked")

        monkeypatch.setattr(store, "optimize_index", fail)

        with pytest.raises(IndexingError, match="optimize"):
            indexer.index_version(docs_tree, "6000.1")

    def test_progress_is_logged(self, store, docs_tree, caplog):
        caplog.set_level(logging.INFO, logger="unity_docs_mcp.search.indexer")
        DocumentIndexer(store, progress_interval=2).index_version(docs_tree, "6000.1")

        messages = [record.getMessage() for record in caplog.records]
        assert "Indexed 2 documents for unity-6000.1" in messages
        assert "Indexed 4 documents for unity-6000.1" in messages

    def test_records_last_indexed_and_gauge(self, indexer, store, docs_tree):
        indexer.index_version(docs_tree, "6000.1")

        assert store.get_metadata(LAST_INDEXED_KEY)
        assert REGISTRY.get_sample_value("unity_docs_indexed_documents", {"scope": "unity-6000.1"}) == 5

    def test_result_to_dict(self, indexer, docs_tree):
        data = indexer.index_version(docs_tree, "6000.1").to_dict()
        assert data["processed"] == 5
        assert data["total_files"] == 5
        assert data["errors"] == []


class TestIndexPackage:
    def test_package_pages_are_typed_and_attributed(self, indexer, store, package_tree):
        result = indexer.index_package(package_tree, "com.unity.inputsystem", "1.11.0", "6000.1")

        assert result.scope == "com.unity.inputsystem@1.11.0"
        assert result.processed == 2

        doc = store.get_document(package_document_id("com.unity.inputsystem", "manual/index.html"))
        assert doc.type is DocumentType.PACKAGE_DOCS
        assert doc.version == "6000.1"
        assert doc.package_version == "1.11.0"
        assert doc.url == "https://docs.unity3d.com/Packages/com.unity.inputsystem@1.11.0/manual/index.html"

    def test_package_title_from_title_tag(self, indexer, store, package_tree):
        indexer.index_package(package_tree, "com.unity.inputsystem", "1.11.0", "6000.1")
        doc = store.get_document(
            package_document_id("com.unity.inputsystem", "api/UnityEngine.InputSystem.InputAction.html")
        )
        assert doc.title == "Class InputAction"

    def test_reindex_package_keeps_version_pages(self, indexer, store, docs_tree, package_tree):
        indexer.index_version(docs_tree, "6000.1")
        indexer.index_package(package_tree, "com.unity.inputsystem", "1.11.0", "6000.1")
        indexer.index_package(package_tree, "com.unity.inputsystem", "1.11.0", "6000.1")

        assert store.count_by_type("6000.1") == {"manual": 3, "package-docs": 2, "script-reference": 2}
