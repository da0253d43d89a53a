"""Tests for environment-backed configuration."""

import pytest


class TestHelperConfig:
    def test_string(self, helper_config, monkeypatch):
        monkeypatch.setenv("RAG_ENGINE", "  qdrant ")
        assert helper_config.get_string_val("rag_engine") == "qdrant"

    def test_empty_counts_as_unset(self, helper_config, monkeypatch):
        monkeypatch.setenv("RAG_ENGINE", "")
        assert helper_config.get_string_val("RAG_ENGINE", default="pinecone") == "pinecone"
        with pytest.raises(ValueError):
            helper_config.get_string_val("RAG_ENGINE")

    def test_numbers(self, helper_config, monkeypatch):
        monkeypatch.setenv("RETRIEVAL_CALL_TIMEOUT", "2.5")
        monkeypatch.setenv("CHUNK_SIZE", "800")
        assert helper_config.get_number_val("RETRIEVAL_CALL_TIMEOUT") == 2.5
        assert helper_config.get_int_val("CHUNK_SIZE") == 800
        assert helper_config.get_int_val("CHUNK_OVERLAP", default=200) == 200

    def test_invalid_number(self, helper_config, monkeypatch):
        monkeypatch.setenv("CHUNK_SIZE", "large")
        with pytest.raises(ValueError):
            helper_config.get_int_val("CHUNK_SIZE")

    @pytest.mark.parametrize("raw,expected", [("true", True), ("1", True), ("Yes", True), ("false", False), ("off", False)])
    def test_bool(self, helper_config, monkeypatch, raw, expected):
        monkeypatch.setenv("CHAT_USE_VECTOR_SEARCH", raw)
        assert helper_config.get_bool_val("CHAT_USE_VECTOR_SEARCH", default=True) is expected

    def test_list(self, helper_config, monkeypatch):
        monkeypatch.setenv("APP_CORS_ORIGINS", "[https://app.example.com, https://widget.example.com,]")
        assert helper_config.get_list_val("APP_CORS_ORIGINS") == ["https://app.example.com", "https://widget.example.com"]

    def test_list_requires_brackets(self, helper_config, monkeypatch):
        monkeypatch.setenv("APP_CORS_ORIGINS", "https://app.example.com")
        with pytest.raises(ValueError):
            helper_config.get_list_val("APP_CORS_ORIGINS")
