"""Tests for configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest

from aspect_rag.config import (
    get_rag_config,
    get_vector_db_config,
    load_config,
    validate_config,
)


def _valid() -> dict:
    return {
        "providers": {"text": "gemini", "embeddings": "local", "analysis": "gemini"},
        "gemini": {"api_key": "key"},
        "vector_db": {"backend": "milvus", "host": "localhost", "index_threshold": 256},
        "rag": {"default_top_k": 5},
        "analysis": {"batch_size": 10, "max_concurrency": 6},
    }


class TestLoadConfig:
    """Tests for load_config."""

    def test_env_substitution(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TEST_MILVUS_HOST", "milvus.internal")
        monkeypatch.delenv("TEST_MISSING_KEY", raising=False)
        path = tmp_path / "config.yaml"
        path.write_text(
            "vector_db:\n"
            "  host: !ENV ${TEST_MILVUS_HOST:localhost}\n"
            "  backend: !ENV ${TEST_BACKEND_UNSET:memory}\n"
            "gemini:\n"
            "  api_key: !ENV ${TEST_MISSING_KEY}\n"
        )

        config = load_config(str(path))

        assert get_vector_db_config(config)["host"] == "milvus.internal"
        assert get_vector_db_config(config)["backend"] == "memory"
        assert config["gemini"]["api_key"] == ""

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(FileNotFoundError):
            load_config(str(tmp_path / "missing.yaml"))

    def test_empty_file(self, tmp_path: Path) -> None:
        path = tmp_path / "config.yaml"
        path.write_text("")

        assert load_config(str(path)) == {}

    def test_default_config_loads(self) -> None:
        config = load_config()

        assert get_rag_config(config)["default_top_k"] == 5


class TestValidateConfig:
    """Tests for validate_config."""

    def test_valid(self) -> None:
        assert validate_config(_valid()) == []

    def test_missing_gemini_key(self) -> None:
        config = _valid()
        config["gemini"]["api_key"] = ""

        errors = validate_config(config)

        assert any("GEMINI_API_KEY" in e for e in errors)

    def test_groq_requires_key(self) -> None:
        config = _valid()
        config["providers"]["text"] = "groq"

        errors = validate_config(config)

        assert any("GROQ_API_KEY" in e for e in errors)

    def test_unknown_providers(self) -> None:
        config = _valid()
        config["providers"]["text"] = "openai"
        config["providers"]["embeddings"] = "cohere"

        errors = validate_config(config)

        assert len(errors) == 2

    def test_bad_backend(self) -> None:
        config = _valid()
        config["vector_db"]["backend"] = "sqlite"

        assert validate_config(config) == ["vector_db.backend must be one of milvus, memory"]

    def test_memory_backend_needs_no_host(self) -> None:
        config = _valid()
        config["vector_db"] = {"backend": "memory"}

        assert validate_config(config) == []

    @pytest.mark.parametrize("value", [0, -1, "many"])
    def test_non_positive_ints(self, value) -> None:
        config = _valid()
        config["rag"]["default_top_k"] = value

        assert validate_config(config) == ["rag.default_top_k must be a positive integer"]
