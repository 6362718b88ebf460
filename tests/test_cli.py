"""Tests for the command-line interface."""

from click.testing import CliRunner
from conftest import create_test_chunks

from epigram_cards.cache import ResultCache
from epigram_cards.chunking import ChunkStore, generate_content_id
from epigram_cards.cli import cli
from epigram_cards.models import BookMetadata, FlashcardCard

BODY = " ".join(f"Sentence {i} discusses how habits form through repetition and reward." for i in range(15))


def test_ingest_stores_chunks(tmp_path):
    path = tmp_path / "field_notes.txt"
    path.write_text(BODY)
    storage = tmp_path / "storage"

    result = CliRunner().invoke(cli, ["--storage", str(storage), "ingest", str(path)])

    assert result.exit_code == 0, result.output
    content_id = generate_content_id("field notes", "Unknown Author", str(path))
    assert content_id in result.output
    assert ChunkStore(storage / "chunks").get_chunks(content_id)


def test_reingesting_edited_file_discards_cached_cards(tmp_path):
    path = tmp_path / "field_notes.txt"
    path.write_text(BODY)
    storage = tmp_path / "storage"
    runner = CliRunner()
    runner.invoke(cli, ["--storage", str(storage), "ingest", str(path)])
    content_id = generate_content_id("field notes", "Unknown Author", str(path))
    card = FlashcardCard(id="fc1", title="Cached card", front="What is cached?", back="This card.")
    ResultCache(storage / "cache").put(content_id, [card])

    unchanged = runner.invoke(cli, ["--storage", str(storage), "ingest", str(path)])
    assert "discarded" not in unchanged.output
    assert ResultCache(storage / "cache").get(content_id) is not None

    path.write_text(BODY.replace("habits", "routines"))
    edited = runner.invoke(cli, ["--storage", str(storage), "ingest", str(path)])

    assert edited.exit_code == 0, edited.output
    assert "discarded its cached cards" in edited.output
    assert ResultCache(storage / "cache").get(content_id) is None


def test_ingest_rejects_unsupported_file(tmp_path):
    path = tmp_path / "slides.pptx"
    path.write_bytes(b"binary")

    result = CliRunner().invoke(cli, ["--storage", str(tmp_path), "ingest", str(path)])

    assert result.exit_code == 1
    assert "Unsupported" in result.output


def test_estimate(tmp_path):
    ChunkStore(tmp_path / "chunks").put_document("doc1", BookMetadata(title="Book"), create_test_chunks())

    result = CliRunner().invoke(cli, ["--storage", str(tmp_path), "estimate", "doc1"])

    assert result.exit_code == 0, result.output
    assert "Flashcard calls" in result.output
    assert "Estimated cost" in result.output


def test_estimate_unknown_document(tmp_path):
    result = CliRunner().invoke(cli, ["--storage", str(tmp_path), "estimate", "nope"])

    assert result.exit_code == 1
    assert "No chunks stored" in result.output


def test_show_and_clear_cache(tmp_path):
    card = FlashcardCard(id="fc1", title="Cached card", front="What is cached?", back="This card.")
    ResultCache(tmp_path / "cache").put("doc1", [card])
    runner = CliRunner()

    shown = runner.invoke(cli, ["--storage", str(tmp_path), "show", "doc1"])
    cleared = runner.invoke(cli, ["--storage", str(tmp_path), "clear-cache", "doc1"])
    again = runner.invoke(cli, ["--storage", str(tmp_path), "show", "doc1"])

    assert shown.exit_code == 0, shown.output
    assert "What is cached?" in shown.output
    assert "Cleared cached cards" in cleared.output
    assert "No cached cards" in again.output


def test_cleanup(tmp_path):
    result = CliRunner().invoke(cli, ["--storage", str(tmp_path), "cleanup", "--days", "1"])

    assert result.exit_code == 0, result.output
    assert "Removed 0 cache files" in result.output
