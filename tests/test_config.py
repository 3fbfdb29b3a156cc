"""Tests for ctxkb.config module."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

import pytest

from ctxkb.config import (
    KbConfig,
    default_config,
    load_config,
    resolve_api_key,
    save_config,
)
from ctxkb.exceptions import ConfigError

if TYPE_CHECKING:
    from pathlib import Path


class TestDefaultConfig:
    def test_default_has_all_sections(self):
        config = default_config()
        assert config.chunk is not None
        assert config.embedding is not None
        assert config.vision is not None
        assert config.store is not None
        assert config.query is not None
        assert config.logging is not None

    def test_default_chunking(self):
        config = default_config()
        assert config.chunk.chunk_size == 1000
        assert config.chunk.overlap == 200

    def test_default_embedding(self):
        config = default_config()
        assert config.embedding.provider == "openai"
        assert config.embedding.model == "text-embedding-004"
        assert config.embedding.dimension == 768

    def test_default_store(self):
        config = default_config()
        assert config.store.collection_name == "contextual_kb_documents"
        assert config.store.host == ""

    def test_default_vision_model(self):
        config = default_config()
        assert config.vision.model == "mistralai/mistral-small-3.2-24b-instruct:free"
        assert config.vision.base_url == "https://openrouter.ai/api/v1"


class TestConfigRoundTrip:
    def test_save_and_load_defaults(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        save_config(default_config(), path)
        assert load_config(path) == default_config()

    def test_save_and_load_with_values(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        config = KbConfig()
        config.embedding.provider = "chromadb"
        config.embedding.dimension = 384
        config.store.host = "chroma.internal"
        config.chunk.overlap = 50
        save_config(config, path)

        loaded = load_config(path)
        assert loaded.embedding.provider == "chromadb"
        assert loaded.embedding.dimension == 384
        assert loaded.store.host == "chroma.internal"
        assert loaded.chunk.overlap == 50

    def test_save_creates_parent_dirs(self, tmp_path: Path):
        path = tmp_path / "a" / "b" / "config.toml"
        save_config(default_config(), path)
        assert path.exists()


class TestLoadConfig:
    def test_missing_file_raises(self, tmp_path: Path):
        with pytest.raises(ConfigError, match="not found"):
            load_config(tmp_path / "nope.toml")

    def test_invalid_toml_raises(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text("[store\ncollection_name = ", encoding="utf-8")
        with pytest.raises(ConfigError, match="Failed to load"):
            load_config(path)

    def test_partial_config_gets_defaults(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text('[store]\ncollection_name = "custom"\n', encoding="utf-8")
        config = load_config(path)
        assert config.store.collection_name == "custom"
        assert config.store.timeout == 30.0
        assert config.chunk.chunk_size == 1000

    def test_unknown_keys_ignored(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        body = "[chunk]\nchunk_size = 500\nfancy = true\n[extra]\nx = 1\n"
        path.write_text(body, encoding="utf-8")
        config = load_config(path)
        assert config.chunk.chunk_size == 500

    def test_section_must_be_table(self, tmp_path: Path):
        path = tmp_path / "config.toml"
        path.write_text('store = "nope"\n', encoding="utf-8")
        with pytest.raises(ConfigError, match=r"\[store\] must be a table"):
            load_config(path)


class TestResolveApiKey:
    def test_reads_env(self, monkeypatch: pytest.MonkeyPatch):
        monkeypatch.setenv("CTXKB_TEST_KEY", "abc")
        assert resolve_api_key("CTXKB_TEST_KEY") == "abc"

    def test_missing_env_warns(
        self, monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
    ):
        monkeypatch.delenv("CTXKB_TEST_KEY", raising=False)
        with caplog.at_level(logging.WARNING):
            assert resolve_api_key("CTXKB_TEST_KEY") is None
        assert "CTXKB_TEST_KEY" in caplog.text

    def test_empty_name_means_no_auth(self):
        assert resolve_api_key("") is None
