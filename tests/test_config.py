"""Tests for runtime configuration."""

from pathlib import Path

import pytest
from pydantic import ValidationError

from epigram_cards.config import PipelineSettings


def test_defaults(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    settings = PipelineSettings()

    assert settings.max_workers == 4
    assert settings.cache_ttl_days == 7
    assert settings.related_chunks_k == 3
    assert settings.completion_max_retries == 0
    assert settings.book_overview is True
    assert settings.chunks_dir == Path("storage") / "chunks"
    assert settings.cache_dir == Path("storage") / "cache"


def test_environment_overrides(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    monkeypatch.setenv("EPIGRAM_MAX_WORKERS", "7")
    monkeypatch.setenv("EPIGRAM_STORAGE_DIR", str(tmp_path / "data"))

    settings = PipelineSettings()

    assert settings.max_workers == 7
    assert settings.cache_dir == tmp_path / "data" / "cache"


def test_env_file(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    (tmp_path / ".env").write_text("EPIGRAM_MIN_CARDS=12\nUNRELATED=1\n")

    assert PipelineSettings().min_cards == 12


def test_application_window_needs_two_flashcards(monkeypatch, tmp_path):
    monkeypatch.chdir(tmp_path)
    with pytest.raises(ValidationError):
        PipelineSettings(application_window=1)
