"""Tests for the graphen CLI."""

from pathlib import Path

import pytest
from typer.testing import CliRunner

from fakes import FakeLLMService
from graphen.cli import app, document_id_for
from graphen.providers.llm.openai import OpenAILLMService

runner = CliRunner()


@pytest.fixture
def fake_llm(monkeypatch):
    llm = FakeLLMService()
    monkeypatch.setattr(OpenAILLMService, "from_config", classmethod(lambda cls, config: llm))
    return llm


class TestDocumentId:
    """File name to document id."""

    def test_plain_stem(self):
        """Safe stems pass through."""
        assert document_id_for(Path("reports/q3-2026.pdf")) == "q3-2026"

    def test_unsafe_characters(self):
        """Spaces and punctuation collapse to dashes."""
        assert document_id_for(Path("My Notes (final).md")) == "My-Notes-final"

    def test_nothing_left(self):
        """A stem with no safe characters gets a fallback id."""
        assert document_id_for(Path("???.txt")) == "document"


class TestHelp:
    """Command discovery."""

    def test_commands_listed(self):
        """All commands appear in help."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        for command in ("ingest", "info", "cache"):
            assert command in result.output

    def test_ingest_help(self):
        """ingest documents its options."""
        result = runner.invoke(app, ["ingest", "--help"])
        assert result.exit_code == 0
        assert "--chunk-size" in result.output
        assert "--document-id" in result.output


class TestIngest:
    """graphen ingest."""

    def test_unsupported_suffix(self, tmp_path):
        """Unknown file types exit with an error."""
        path = tmp_path / "sheet.xlsx"
        path.write_bytes(b"data")
        result = runner.invoke(app, ["ingest", str(path)])
        assert result.exit_code == 1
        assert "Unsupported file type" in result.output

    def test_invalid_chunk_config(self, tmp_path):
        """Overlap not smaller than the chunk size is rejected before any work."""
        path = tmp_path / "notes.txt"
        path.write_text("Graphen uses Neo4j.")
        result = runner.invoke(
            app,
            ["ingest", str(path), "--chunk-size", "100", "--overlap", "100",
             "--store", str(tmp_path / "graph"), "--cache", str(tmp_path / "cache")],
        )
        assert result.exit_code == 1
        assert "Invalid configuration" in result.output
        assert not (tmp_path / "graph").exists()

    def test_ingest_end_to_end(self, tmp_path, fake_llm):
        """A text file is ingested, persisted and checkpointed."""
        path = tmp_path / "notes.txt"
        path.write_text("Graphen stores its knowledge graph in Neo4j. " * 20)
        store = tmp_path / "graph"
        cache = tmp_path / "cache"

        result = runner.invoke(
            app,
            ["ingest", str(path), "--store", str(store), "--cache", str(cache),
             "--chunk-size", "300", "--overlap", "50", "--document-id", "notes-1"],
        )

        assert result.exit_code == 0, result.output
        assert "Ingestion Complete" in result.output
        assert fake_llm.extraction_calls
        assert (cache / "notes-1" / "chunks.json").exists()

        info = runner.invoke(app, ["info", "--store", str(store)])
        assert info.exit_code == 0
        assert "Documents" in info.output
        assert "Entities" in info.output


class TestInfo:
    """graphen info."""

    def test_missing_store(self, tmp_path):
        """A missing store path exits with an error."""
        result = runner.invoke(app, ["info", "--store", str(tmp_path / "nope")])
        assert result.exit_code == 1
        assert "No graph store" in result.output


class TestCacheClear:
    """graphen cache clear."""

    def test_nothing_cached(self, tmp_path):
        """Clearing an unknown document reports that nothing was cached."""
        result = runner.invoke(app, ["cache", "clear", "doc-1", "--cache", str(tmp_path)])
        assert result.exit_code == 0
        assert "No cache for doc-1" in result.output

    def test_clears_existing(self, tmp_path):
        """Existing checkpoints are removed."""
        doc_dir = tmp_path / "doc-1"
        doc_dir.mkdir()
        (doc_dir / "chunks.json").write_text("{}")

        result = runner.invoke(app, ["cache", "clear", "doc-1", "--cache", str(tmp_path)])

        assert result.exit_code == 0
        assert "Cleared cache for doc-1" in result.output
        assert not doc_dir.exists()

    def test_invalid_id(self, tmp_path):
        """Ids that could escape the cache directory are refused."""
        result = runner.invoke(app, ["cache", "clear", "../etc", "--cache", str(tmp_path)])
        assert result.exit_code == 1
